#!/usr/bin/env python3
"""
Catalog snapshot pipeline for protocolkb.

raw records -> schema validation -> reference graph -> search index

A CatalogSnapshot is one validated, immutable view of the corpus. The Catalog
holder swaps in a freshly built snapshot on every rebuild, so readers always
see either the old snapshot or the new one, never a half-built mix.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from protocolkb import CONTRACT_VERSION, ENGINE_VERSION, TAXONOMY_VERSION
from protocolkb.catalog.model import Category, Protocol, ValidationReport
from protocolkb.catalog.rules_loader import EngineSettings, load_settings
from protocolkb.graph.reference_graph import ProtocolGraph, build_graph
from protocolkb.index.search_index import SearchIndex, build_index
from protocolkb.query.engine import SearchQuery, SearchResult, run_query
from protocolkb.validation.schema import validate


@dataclass(frozen=True)
class CatalogSnapshot:
    """
    Immutable, validated view of the corpus.

    Attributes:
        records: Records in authoring order
        by_id: id -> first record carrying that id
        report: Schema report followed by the reference report
        graph: Related-protocols graph
        index: Search index
        built_at: ISO timestamp of the build
    """
    records: Tuple[Protocol, ...]
    by_id: Mapping[str, Protocol]
    report: ValidationReport
    graph: ProtocolGraph
    index: SearchIndex
    settings: EngineSettings
    built_at: str

    @property
    def publishable(self) -> bool:
        return not self.report.has_fatal

    def get(self, protocol_id: str) -> Optional[Protocol]:
        return self.by_id.get(protocol_id)

    def by_category(self, category: Union[Category, str]) -> List[Protocol]:
        """Records in a category, ordered by id."""
        value = category.value if isinstance(category, Category) else category
        return [self.by_id[pid] for pid in sorted(self.index.categories.get(value, ()))]

    def related(self, protocol_id: str) -> List[Protocol]:
        """Resolved related protocols in authored order; dangling ids are skipped."""
        record = self.by_id.get(protocol_id)
        if record is None:
            return []
        out = []
        seen = set()
        for rid in record.related_protocols:
            rid = rid.strip()
            if rid in self.by_id and rid not in seen:
                out.append(self.by_id[rid])
                seen.add(rid)
        return out

    def search(self, query: Optional[SearchQuery] = None) -> SearchResult:
        return run_query(self.index, query, self.settings)

    def stats(self) -> Dict[str, Any]:
        return {
            "engine_version": ENGINE_VERSION,
            "contract_version": CONTRACT_VERSION,
            "taxonomy_version": TAXONOMY_VERSION,
            "built_at": self.built_at,
            "records": len(self.records),
            "unique_ids": len(self.by_id),
            "edges": self.graph.edge_count(),
            "terms": len(self.index.postings),
            "fatal": len(self.report.fatal),
            "warnings": len(self.report.warnings),
            "publishable": self.publishable,
        }


def build_snapshot(
    records: Iterable[Protocol],
    strict: Optional[bool] = None,
    settings: Optional[EngineSettings] = None,
) -> CatalogSnapshot:
    """
    Run the full pipeline over a record set.

    Every stage always runs so the report lists every problem in one pass;
    use `snapshot.publishable` to gate publishing.
    """
    settings = settings or load_settings()
    if strict is not None:
        settings = settings.with_overrides(strict_references=strict)

    records = tuple(records)
    schema_report = validate(records)
    graph_build = build_graph(records, strict=settings.strict_references, settings=settings)
    index = build_index(records)

    by_id: Dict[str, Protocol] = {}
    for record in records:
        if record.id and record.id not in by_id:
            by_id[record.id] = record

    return CatalogSnapshot(
        records=records,
        by_id=MappingProxyType(by_id),
        report=schema_report.merge(graph_build.report),
        graph=graph_build.graph,
        index=index,
        settings=settings,
        built_at=datetime.now().isoformat(timespec="seconds"),
    )


class Catalog:
    """
    Holder for the current snapshot.

    rebuild() builds a complete new snapshot off to the side and then swaps
    the reference under a lock. Readers call `snapshot` once and keep using
    that object for the whole request.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self._settings = settings
        self._lock = threading.Lock()
        self._snapshot: Optional[CatalogSnapshot] = None

    @property
    def snapshot(self) -> CatalogSnapshot:
        current = self._snapshot
        if current is None:
            raise RuntimeError("Catalog has not been built yet; call rebuild() first")
        return current

    @property
    def is_built(self) -> bool:
        return self._snapshot is not None

    def rebuild(
        self,
        records: Sequence[Protocol],
        strict: Optional[bool] = None,
        require_publishable: bool = False,
    ) -> CatalogSnapshot:
        """
        Build a new snapshot and swap it in.

        With require_publishable=True a snapshot with fatal violations is
        returned but NOT swapped in; the previous snapshot stays current.
        """
        fresh = build_snapshot(records, strict=strict, settings=self._settings)
        if require_publishable and not fresh.publishable:
            return fresh
        with self._lock:
            self._snapshot = fresh
        return fresh
