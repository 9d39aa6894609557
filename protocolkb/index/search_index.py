#!/usr/bin/env python3
"""
Index Builder for protocolkb.

Builds an immutable SearchIndex over a record set:
- inverted postings (term -> ids) over name, shortDescription,
  fullDescription and useCases, plus per-field postings for ranking
- facet maps for category, difficulty and port

Rebuilds are idempotent: identical input yields an equal index regardless of
record order. The index is never mutated after construction.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Sequence, Set, Tuple

from protocolkb.catalog.model import Protocol
from protocolkb.catalog.rules_loader import SEARCH_FIELDS
from protocolkb.index.tokenizer import extract_ports, tokenize

INDEX_FORMAT = "protocolkb-search-index/1"

Postings = Mapping[str, FrozenSet[str]]


def _field_text(record: Protocol, field_name: str) -> Iterable[str]:
    if field_name == "name":
        return (record.name,)
    if field_name == "shortDescription":
        return (record.short_description,)
    if field_name == "fullDescription":
        return (record.full_description,)
    if field_name == "useCases":
        return record.use_cases
    raise ValueError(f"Unknown search field: {field_name}")


def _freeze(mapping: Dict[Any, Set[str]]) -> Mapping[Any, FrozenSet[str]]:
    return MappingProxyType({k: frozenset(v) for k, v in mapping.items()})


@dataclass(frozen=True)
class SearchIndex:
    """
    Immutable search index.

    Attributes:
        ids: Every indexed id, ascending
        postings: term -> ids containing the term in any searched field
        field_postings: field name -> (term -> ids), used for ranking
        categories / difficulties: facet value -> ids
        ports: port number -> ids
    """
    ids: Tuple[str, ...]
    postings: Postings
    field_postings: Mapping[str, Postings]
    categories: Postings
    difficulties: Postings
    ports: Mapping[int, FrozenSet[str]]

    def __len__(self) -> int:
        return len(self.ids)

    def __contains__(self, protocol_id: object) -> bool:
        return protocol_id in self.ids

    def lookup(self, term: str) -> FrozenSet[str]:
        return self.postings.get(term, frozenset())

    def terms(self) -> Tuple[str, ...]:
        return tuple(sorted(self.postings))

    # ------------------------------------------------------------------
    # Persistence (lossless JSON round-trip)
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        def dump(p: Mapping[Any, FrozenSet[str]]) -> Dict[str, Any]:
            return {str(k): sorted(v) for k, v in sorted(p.items(), key=lambda kv: str(kv[0]))}

        return {
            "format": INDEX_FORMAT,
            "ids": list(self.ids),
            "postings": dump(self.postings),
            "fieldPostings": {f: dump(p) for f, p in sorted(self.field_postings.items())},
            "categories": dump(self.categories),
            "difficulties": dump(self.difficulties),
            "ports": {str(k): sorted(v) for k, v in sorted(self.ports.items())},
        }

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "SearchIndex":
        if obj.get("format") != INDEX_FORMAT:
            raise ValueError(f"Unsupported index format: {obj.get('format')!r}")

        def load(p: Mapping[str, Any]) -> Mapping[str, FrozenSet[str]]:
            return MappingProxyType({k: frozenset(v) for k, v in p.items()})

        return cls(
            ids=tuple(obj["ids"]),
            postings=load(obj["postings"]),
            field_postings=MappingProxyType({f: load(p) for f, p in obj["fieldPostings"].items()}),
            categories=load(obj["categories"]),
            difficulties=load(obj["difficulties"]),
            ports=MappingProxyType({int(k): frozenset(v) for k, v in obj["ports"].items()}),
        )


def build_index(records: Sequence[Protocol]) -> SearchIndex:
    """
    Build a SearchIndex from records.

    Records without an id are skipped. Duplicate ids (already fatal in
    validation) are merged into one posting id.
    """
    ids: Set[str] = set()
    postings: Dict[str, Set[str]] = {}
    field_postings: Dict[str, Dict[str, Set[str]]] = {f: {} for f in SEARCH_FIELDS}
    categories: Dict[str, Set[str]] = {}
    difficulties: Dict[str, Set[str]] = {}
    ports: Dict[int, Set[str]] = {}

    for record in records:
        pid = record.id
        if not pid:
            continue
        ids.add(pid)

        for field_name in SEARCH_FIELDS:
            bucket = field_postings[field_name]
            for text in _field_text(record, field_name):
                for term in tokenize(text):
                    bucket.setdefault(term, set()).add(pid)
                    postings.setdefault(term, set()).add(pid)

        if record.category:
            categories.setdefault(record.category, set()).add(pid)
        if record.difficulty:
            difficulties.setdefault(record.difficulty, set()).add(pid)
        for port in extract_ports(record.port):
            ports.setdefault(port, set()).add(pid)

    return SearchIndex(
        ids=tuple(sorted(ids)),
        postings=_freeze(postings),
        field_postings=MappingProxyType({f: _freeze(p) for f, p in field_postings.items()}),
        categories=_freeze(categories),
        difficulties=_freeze(difficulties),
        ports=_freeze(ports),
    )
