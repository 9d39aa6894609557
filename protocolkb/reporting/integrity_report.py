#!/usr/bin/env python3
"""
Plain-text integrity report for a catalog snapshot.

Used as the build log: fatal problems first (they block publishing), then
warnings grouped by code, then graph analytics for content authors.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from protocolkb.catalog.model import Violation
from protocolkb.catalog.snapshot import CatalogSnapshot

_MAX_LISTED = 25


def _group_by_code(violations: List[Violation]) -> Dict[str, List[Violation]]:
    groups: Dict[str, List[Violation]] = {}
    for v in violations:
        groups.setdefault(v.code, []).append(v)
    return dict(sorted(groups.items()))


def _append_violation(lines: List[str], v: Violation) -> None:
    lines.append(f"  [{v.severity.value.upper()}] {v.record_id} ({v.field}) {v.code}: {v.message}")


def render_integrity_report(snapshot: CatalogSnapshot) -> str:
    """Return the report text."""
    stats = snapshot.stats()
    report = snapshot.report
    graph = snapshot.graph

    lines: List[str] = []
    lines.append("=" * 70)
    lines.append("PROTOCOL KNOWLEDGE BASE: INTEGRITY REPORT")
    lines.append("=" * 70)
    lines.append("")
    lines.append(f"Engine:           {stats['engine_version']}")
    lines.append(f"Contract:         {stats['contract_version']}")
    lines.append(f"Taxonomy:         {stats['taxonomy_version']}")
    lines.append(f"Built:            {stats['built_at']}")
    lines.append(f"Strict refs:      {'yes' if snapshot.settings.strict_references else 'no'}")
    lines.append("")

    lines.append("-" * 70)
    lines.append("SUMMARY")
    lines.append("-" * 70)
    lines.append(f"Records:              {stats['records']}")
    lines.append(f"Unique ids:           {stats['unique_ids']}")
    lines.append(f"Related links:        {stats['edges']}")
    lines.append(f"Indexed terms:        {stats['terms']}")
    lines.append(f"Fatal:                {stats['fatal']}")
    lines.append(f"Warnings:             {stats['warnings']}")
    lines.append(f"Publishable:          {'YES' if stats['publishable'] else 'NO'}")
    lines.append("")

    if report.fatal:
        lines.append("-" * 70)
        lines.append("FATAL (BLOCKS PUBLISHING)")
        lines.append("-" * 70)
        for v in report.fatal:
            _append_violation(lines, v)
        lines.append("")

    if report.warnings:
        lines.append("-" * 70)
        lines.append("WARNINGS")
        lines.append("-" * 70)
        for code, group in _group_by_code(report.warnings).items():
            lines.append(f"{code} ({len(group)})")
            for v in group[:_MAX_LISTED]:
                _append_violation(lines, v)
            if len(group) > _MAX_LISTED:
                lines.append(f"  ... {len(group) - _MAX_LISTED} more")
        lines.append("")

    lines.append("-" * 70)
    lines.append("RELATED-PROTOCOL GRAPH")
    lines.append("-" * 70)
    orphans = graph.orphans()
    lines.append(f"Orphans (no links in or out): {len(orphans)}")
    for pid in orphans[:_MAX_LISTED]:
        lines.append(f"  {pid}")
    cycles = graph.cycles()
    lines.append(f"Cycles: {len(cycles)}")
    for component in cycles[:_MAX_LISTED]:
        lines.append(f"  {' <-> '.join(component)}")
    asymmetric = graph.asymmetric_edges()
    lines.append(f"One-way links: {len(asymmetric)}")
    for src, dst in asymmetric[:_MAX_LISTED]:
        lines.append(f"  {src} -> {dst}")
    if len(asymmetric) > _MAX_LISTED:
        lines.append(f"  ... {len(asymmetric) - _MAX_LISTED} more")
    lines.append("")
    lines.append("=" * 70)

    return "\n".join(lines) + "\n"


def write_integrity_report(snapshot: CatalogSnapshot, output_path: Optional[Path] = None) -> str:
    """Render the report and optionally write it. Returns the text."""
    text = render_integrity_report(snapshot)
    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text, encoding="utf-8")
    return text
