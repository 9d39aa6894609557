#!/usr/bin/env python3
"""
Excel integrity workbook for a catalog snapshot.

Sheets:
- Catalog (one row per record: facets, link counts, worst severity)
- Violations (one row per violation, filterable)
- Facets (value counts per category / difficulty / port)

Always written fresh: the workbook mirrors exactly one snapshot.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List

try:
    from openpyxl import Workbook
    from openpyxl.formatting.rule import CellIsRule
    from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
    from openpyxl.utils import get_column_letter
    HAS_OPENPYXL = True
except ImportError:
    HAS_OPENPYXL = False

from protocolkb.catalog.model import Severity
from protocolkb.catalog.snapshot import CatalogSnapshot
from protocolkb.query.engine import facet_counts


_HEADER_FONT = Font(name="Calibri", size=11, bold=True, color="FFFFFFFF") if HAS_OPENPYXL else None
_HEADER_FILL = PatternFill(start_color="FF1E3A8A", end_color="FF1E3A8A", fill_type="solid") if HAS_OPENPYXL else None
_BODY_FONT = Font(name="Calibri", size=10) if HAS_OPENPYXL else None
_RED_LIGHT = PatternFill(start_color="FFFEE2E2", end_color="FFFEE2E2", fill_type="solid") if HAS_OPENPYXL else None
_AMBER_LIGHT = PatternFill(start_color="FFFEF3C7", end_color="FFFEF3C7", fill_type="solid") if HAS_OPENPYXL else None
_GREEN_LIGHT = PatternFill(start_color="FFD1FAE5", end_color="FFD1FAE5", fill_type="solid") if HAS_OPENPYXL else None
_THIN_BORDER = Border(
    left=Side(style="thin", color="FFE5E7EB"),
    right=Side(style="thin", color="FFE5E7EB"),
    top=Side(style="thin", color="FFE5E7EB"),
    bottom=Side(style="thin", color="FFE5E7EB"),
) if HAS_OPENPYXL else None

CATALOG_HEADERS = [
    "ID", "Name", "Category", "Difficulty", "Port", "Related (out)",
    "Related (in)", "Dangling", "Fatal", "Warnings", "Status",
]
VIOLATION_HEADERS = ["Record", "Field", "Severity", "Code", "Message"]
FACET_HEADERS = ["Facet", "Value", "Count"]


def _style_header_row(ws, num_cols: int) -> None:
    for col in range(1, num_cols + 1):
        cell = ws.cell(row=1, column=col)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = _THIN_BORDER


def _write_rows(ws, headers: List[str], rows: List[list], widths: List[int]) -> None:
    for col, h in enumerate(headers, 1):
        ws.cell(row=1, column=col, value=h)
    _style_header_row(ws, len(headers))
    for r, values in enumerate(rows, 2):
        for col, val in enumerate(values, 1):
            cell = ws.cell(row=r, column=col, value=val)
            cell.font = _BODY_FONT
            cell.border = _THIN_BORDER
            cell.alignment = Alignment(vertical="center")
    ws.freeze_panes = "B2"
    ws.auto_filter.ref = f"A1:{get_column_letter(len(headers))}{max(1, len(rows) + 1)}"
    for i, w in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(i)].width = w


def _catalog_rows(snapshot: CatalogSnapshot) -> List[list]:
    fatal: Dict[str, int] = {}
    warn: Dict[str, int] = {}
    for v in snapshot.report.violations:
        bucket = fatal if v.severity is Severity.FATAL else warn
        bucket[v.record_id] = bucket.get(v.record_id, 0) + 1

    graph = snapshot.graph
    rows = []
    for position, record in enumerate(snapshot.records):
        ref = record.id or f"#{position}"
        in_graph = record.id in graph.nodes
        n_fatal, n_warn = fatal.get(ref, 0), warn.get(ref, 0)
        status = "FATAL" if n_fatal else ("WARNING" if n_warn else "OK")
        rows.append([
            ref,
            record.name,
            record.category,
            record.difficulty,
            record.port or "",
            len(graph.neighbors(record.id)) if in_graph else 0,
            len(graph.incoming(record.id)) if in_graph else 0,
            ", ".join(sorted(graph.dangling.get(record.id, ()))),
            n_fatal,
            n_warn,
            status,
        ])
    return rows


def write_excel_report(snapshot: CatalogSnapshot, output_path: Path) -> Path:
    """
    Write the integrity workbook.

    Returns: Path to the Excel file

    Raises: ImportError when openpyxl is not installed
    """
    if not HAS_OPENPYXL:
        raise ImportError("openpyxl is required for the Excel integrity report")

    wb = Workbook()

    ws = wb.active
    ws.title = "Catalog"
    rows = _catalog_rows(snapshot)
    _write_rows(ws, CATALOG_HEADERS, rows, [18, 28, 16, 14, 24, 12, 12, 24, 8, 10, 12])
    status_col = get_column_letter(len(CATALOG_HEADERS))
    for val, fill in (("FATAL", _RED_LIGHT), ("WARNING", _AMBER_LIGHT), ("OK", _GREEN_LIGHT)):
        ws.conditional_formatting.add(
            f"{status_col}2:{status_col}{len(rows) + 1}",
            CellIsRule(operator="equal", formula=[f'"{val}"'], fill=fill),
        )

    ws = wb.create_sheet("Violations")
    rows = [
        [v.record_id, v.field, v.severity.value.upper(), v.code, v.message]
        for v in snapshot.report.violations
    ]
    _write_rows(ws, VIOLATION_HEADERS, rows, [18, 22, 10, 26, 80])

    ws = wb.create_sheet("Facets")
    rows = []
    for facet, counts in facet_counts(snapshot.index).items():
        for value, n in counts.items():
            rows.append([facet, value, n])
    _write_rows(ws, FACET_HEADERS, rows, [14, 24, 10])

    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    return output_path
