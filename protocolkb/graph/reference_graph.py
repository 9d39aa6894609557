#!/usr/bin/env python3
"""
Reference Graph Builder for protocolkb.

Builds a directed graph over protocol ids from relatedProtocols and reports
every reference that does not resolve.

Design:
- Outgoing edges only; reverse edges are never synthesized (A -> B does not
  imply B -> A).
- Dangling references are reported, never silently dropped. Severity is
  WARNING by default, FATAL in strict mode.
- Cycles are normal (TCP <-> UDP) and are detected for analytics only.
- The graph is immutable once built; rebuilds produce a new object.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Set, Tuple

from protocolkb.catalog.model import Protocol, Severity, ValidationReport
from protocolkb.catalog.rules_loader import EngineSettings, load_settings


class UnknownProtocolError(KeyError):
    """Raised when a graph lookup names an id that is not a node."""


@dataclass(frozen=True)
class ProtocolGraph:
    """
    Directed "related protocols" graph.

    Attributes:
        nodes: Every protocol id in the corpus
        adjacency: id -> ids it links to (resolved edges only)
        dangling: id -> referenced ids that do not exist
    """
    nodes: FrozenSet[str]
    adjacency: Mapping[str, FrozenSet[str]]
    dangling: Mapping[str, FrozenSet[str]] = field(default_factory=lambda: MappingProxyType({}))

    def _require(self, protocol_id: str) -> None:
        if protocol_id not in self.nodes:
            raise UnknownProtocolError(protocol_id)

    def neighbors(self, protocol_id: str) -> FrozenSet[str]:
        """Ids this protocol links to."""
        self._require(protocol_id)
        return self.adjacency.get(protocol_id, frozenset())

    def incoming(self, protocol_id: str) -> FrozenSet[str]:
        """Ids that link to this protocol."""
        self._require(protocol_id)
        return frozenset(src for src, dsts in self.adjacency.items() if protocol_id in dsts)

    def is_reachable(self, source: str, target: str, max_hops: Optional[int] = None) -> bool:
        """
        Whether target can be reached from source following outgoing edges.

        Args:
            max_hops: Maximum number of edges to follow (None = unbounded).
                A node always reaches itself in 0 hops.

        Raises: UnknownProtocolError for unknown ids, ValueError for negative max_hops
        """
        self._require(source)
        self._require(target)
        if max_hops is not None and max_hops < 0:
            raise ValueError(f"max_hops must be >= 0, got {max_hops}")
        if source == target:
            return True

        seen = {source}
        frontier = deque([(source, 0)])
        while frontier:
            node, depth = frontier.popleft()
            if max_hops is not None and depth >= max_hops:
                continue
            for nxt in self.adjacency.get(node, ()):
                if nxt == target:
                    return True
                if nxt not in seen:
                    seen.add(nxt)
                    frontier.append((nxt, depth + 1))
        return False

    def within_hops(self, source: str, max_hops: int) -> Dict[str, int]:
        """Map of id -> hop distance for every node reachable within max_hops (source excluded)."""
        self._require(source)
        if max_hops < 0:
            raise ValueError(f"max_hops must be >= 0, got {max_hops}")
        dist = {source: 0}
        frontier = deque([source])
        while frontier:
            node = frontier.popleft()
            if dist[node] >= max_hops:
                continue
            for nxt in sorted(self.adjacency.get(node, ())):
                if nxt not in dist:
                    dist[nxt] = dist[node] + 1
                    frontier.append(nxt)
        del dist[source]
        return dist

    def edge_count(self) -> int:
        return sum(len(v) for v in self.adjacency.values())

    def orphans(self) -> List[str]:
        """Nodes with neither incoming nor outgoing resolved edges, sorted."""
        linked: Set[str] = set()
        for src, dsts in self.adjacency.items():
            if dsts:
                linked.add(src)
                linked.update(dsts)
        return sorted(self.nodes - linked)

    def asymmetric_edges(self) -> List[Tuple[str, str]]:
        """Edges A -> B where B does not link back to A, sorted."""
        out = []
        for src, dsts in self.adjacency.items():
            for dst in dsts:
                if src != dst and src not in self.adjacency.get(dst, frozenset()):
                    out.append((src, dst))
        return sorted(out)

    def cycles(self) -> List[List[str]]:
        """
        Strongly connected components that contain a cycle, each sorted,
        listed in order of their smallest id.

        Iterative Tarjan so deep chains don't hit the recursion limit.
        """
        index_of: Dict[str, int] = {}
        low: Dict[str, int] = {}
        on_stack: Set[str] = set()
        stack: List[str] = []
        components: List[List[str]] = []
        counter = 0

        for root in sorted(self.nodes):
            if root in index_of:
                continue
            work = [(root, iter(sorted(self.adjacency.get(root, ()))))]
            index_of[root] = low[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)

            while work:
                node, children = work[-1]
                advanced = False
                for child in children:
                    if child not in index_of:
                        index_of[child] = low[child] = counter
                        counter += 1
                        stack.append(child)
                        on_stack.add(child)
                        work.append((child, iter(sorted(self.adjacency.get(child, ())))))
                        advanced = True
                        break
                    if child in on_stack:
                        low[node] = min(low[node], index_of[child])
                if advanced:
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[node])

                if low[node] == index_of[node]:
                    component = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    if len(component) > 1 or node in self.adjacency.get(node, ()):
                        components.append(sorted(component))

        return sorted(components, key=lambda c: c[0])

    def has_cycle(self) -> bool:
        return bool(self.cycles())


@dataclass(frozen=True)
class GraphBuildResult:
    """Output of build_graph: the graph plus its referential-integrity report."""
    graph: ProtocolGraph
    report: ValidationReport


def build_graph(
    records: Sequence[Protocol],
    strict: Optional[bool] = None,
    settings: Optional[EngineSettings] = None,
) -> GraphBuildResult:
    """
    Build the related-protocols graph and check every reference.

    Args:
        records: Protocol entries (records without an id, and later records
            repeating an id, are skipped; the schema validator already reports them)
        strict: Escalate dangling references to FATAL. Defaults to the
            contract's references.strict
        settings: Engine settings (defaults to the shipped contract)

    Returns: GraphBuildResult(graph, report)
    """
    if strict is None:
        strict = (settings or load_settings()).strict_references
    dangling_severity = Severity.FATAL if strict else Severity.WARNING

    nodes = frozenset(r.id for r in records if r.id)
    edges: Dict[str, Set[str]] = {pid: set() for pid in nodes}
    dangling: Dict[str, Set[str]] = {}
    report = ValidationReport()
    built: Set[str] = set()

    for record in records:
        # First record wins for a duplicated id; the schema validator reports the rest
        if not record.id or record.id in built:
            continue
        built.add(record.id)
        seen: Set[str] = set()
        for target in record.related_protocols:
            target = target.strip()
            if target in seen:
                report.add(
                    record.id, "relatedProtocols", Severity.WARNING, "duplicate_reference",
                    f"'{target}' is listed more than once",
                )
                continue
            seen.add(target)

            if target == record.id:
                report.add(
                    record.id, "relatedProtocols", Severity.WARNING, "self_reference",
                    f"'{record.id}' lists itself as related",
                )
            if target in nodes:
                edges[record.id].add(target)
            else:
                dangling.setdefault(record.id, set()).add(target)
                report.add(
                    record.id, "relatedProtocols", dangling_severity, "dangling_reference",
                    f"{record.id} -> {target}: no protocol with id '{target}'",
                )

    graph = ProtocolGraph(
        nodes=nodes,
        adjacency=MappingProxyType({k: frozenset(v) for k, v in edges.items()}),
        dangling=MappingProxyType({k: frozenset(v) for k, v in dangling.items()}),
    )
    return GraphBuildResult(graph=graph, report=report)
