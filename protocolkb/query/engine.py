#!/usr/bin/env python3
"""
Query Engine for protocolkb.

Serves filtered, ranked, paginated lookups against a SearchIndex.

Design:
- Deterministic: same index + same query -> same ordered ids
- AND semantics for free text: a record must contain every query term
- Facets (category, difficulty, port) intersect with the text matches
- Invalid call parameters fail fast (QueryError); an oversized limit is
  clamped and the clamp is reported in SearchResult.notices
- Read-only over the index; safe to call concurrently
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from protocolkb.catalog.model import CATEGORY_VALUES, DIFFICULTY_VALUES, Category, Difficulty
from protocolkb.catalog.rules_loader import SEARCH_FIELDS, EngineSettings, load_settings
from protocolkb.index.search_index import SearchIndex
from protocolkb.index.tokenizer import MAX_PORT, unique_terms


class QueryError(ValueError):
    """Raised for malformed SearchQuery parameters."""


@dataclass(frozen=True)
class SearchQuery:
    """
    Search request. Every field is optional; an empty query matches everything.

    Attributes:
        text: Free text, tokenized like the indexed fields
        category / difficulty: Exact facet match (enum or its string value)
        port: Exact port match
        limit: Page size (None = contract default_limit)
        offset: Number of ranked results to skip
    """
    text: Optional[str] = None
    category: Optional[Union[Category, str]] = None
    difficulty: Optional[Union[Difficulty, str]] = None
    port: Optional[int] = None
    limit: Optional[int] = None
    offset: int = 0

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "SearchQuery":
        known = {"text", "category", "difficulty", "port", "limit", "offset"}
        unknown = set(obj) - known
        if unknown:
            raise QueryError(f"Unknown query parameter(s): {', '.join(sorted(unknown))}")
        return cls(**{k: v for k, v in obj.items() if v is not None})


@dataclass(frozen=True)
class SearchResult:
    """
    Ranked page of ids plus metadata.

    Attributes:
        ids: Page of ranked ids
        total: Number of matches before pagination
        limit / offset: Effective pagination values
        terms: Query terms after tokenization
        notices: Adjustments made to the query (e.g. limit clamped)
    """
    ids: Tuple[str, ...]
    total: int
    limit: int
    offset: int
    terms: Tuple[str, ...] = ()
    notices: Tuple[str, ...] = ()
    scores: Dict[str, int] = field(default_factory=dict)


def _facet_value(value: Union[Enum, str, None], allowed: FrozenSet[str], name: str) -> Optional[str]:
    if value is None:
        return None
    raw = value.value if isinstance(value, Enum) else value
    if not isinstance(raw, str) or raw not in allowed:
        raise QueryError(f"Unknown {name} {raw!r}; expected one of: {', '.join(sorted(allowed))}")
    return raw


def _check_int(value: Any, name: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise QueryError(f"{name} must be an integer, got {value!r}")


def _resolve_paging(query: SearchQuery, settings: EngineSettings) -> Tuple[int, int, List[str]]:
    notices: List[str] = []
    limit = settings.default_limit if query.limit is None else query.limit
    _check_int(limit, "limit")
    _check_int(query.offset, "offset")
    if limit < 0:
        raise QueryError(f"limit must be >= 0, got {limit}")
    if query.offset < 0:
        raise QueryError(f"offset must be >= 0, got {query.offset}")
    if limit > settings.max_limit:
        notices.append(f"limit {limit} clamped to {settings.max_limit}")
        limit = settings.max_limit
    return limit, query.offset, notices


def _score(index: SearchIndex, pid: str, terms: List[str], weights: Mapping[str, int]) -> int:
    """Each term scores the weight of the heaviest field it appears in."""
    total = 0
    for term in terms:
        best = 0
        for field_name in SEARCH_FIELDS:
            w = weights.get(field_name, 1)
            if w > best and pid in index.field_postings[field_name].get(term, ()):
                best = w
        total += best
    return total


def run_query(
    index: SearchIndex,
    query: Optional[SearchQuery] = None,
    settings: Optional[EngineSettings] = None,
) -> SearchResult:
    """
    Execute a query and return ranked ids with metadata.

    Ranking: weighted term score descending, then id ascending.

    Raises: QueryError for malformed parameters
    """
    query = query or SearchQuery()
    settings = settings or load_settings()

    category = _facet_value(query.category, CATEGORY_VALUES, "category")
    difficulty = _facet_value(query.difficulty, DIFFICULTY_VALUES, "difficulty")
    if query.port is not None:
        _check_int(query.port, "port")
        if not 0 < query.port <= MAX_PORT:
            raise QueryError(f"port must be in 1..{MAX_PORT}, got {query.port}")
    limit, offset, notices = _resolve_paging(query, settings)

    terms = unique_terms(query.text)
    if query.text and not terms:
        notices.append(f"text {query.text!r} has no searchable terms; ignored")

    candidates = set(index.ids)
    for term in terms:
        candidates &= index.lookup(term)
        if not candidates:
            break

    if category is not None:
        candidates &= index.categories.get(category, frozenset())
    if difficulty is not None:
        candidates &= index.difficulties.get(difficulty, frozenset())
    if query.port is not None:
        candidates &= index.ports.get(query.port, frozenset())

    scores = {pid: _score(index, pid, terms, settings.field_weights) for pid in candidates} if terms else {}
    ranked = sorted(candidates, key=lambda pid: (-scores.get(pid, 0), pid))
    page = ranked[offset:offset + limit]

    return SearchResult(
        ids=tuple(page),
        total=len(ranked),
        limit=limit,
        offset=offset,
        terms=tuple(terms),
        notices=tuple(notices),
        scores={pid: scores[pid] for pid in page if pid in scores},
    )


def search(
    index: SearchIndex,
    query: Optional[Union[SearchQuery, Mapping[str, Any]]] = None,
    settings: Optional[EngineSettings] = None,
) -> List[str]:
    """
    Ranked, paginated ids for a query. `{}` or None returns every id ascending
    (subject to the default limit).
    """
    if query is not None and not isinstance(query, SearchQuery):
        query = SearchQuery.from_dict(query)
    return list(run_query(index, query, settings).ids)


def facet_counts(index: SearchIndex) -> Dict[str, Dict[str, int]]:
    """Per-facet value counts for a filter panel (empty values omitted)."""
    return {
        "category": {k: len(v) for k, v in sorted(index.categories.items()) if v},
        "difficulty": {k: len(v) for k, v in sorted(index.difficulties.items()) if v},
        "port": {str(k): len(v) for k, v in sorted(index.ports.items()) if v},
    }
