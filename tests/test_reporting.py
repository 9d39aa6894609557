"""Tests for the failure log, the text report and the Excel workbook."""
from __future__ import annotations

import pytest

from protocolkb.catalog.model import Severity, ValidationReport
from protocolkb.catalog.rules_loader import EngineSettings
from protocolkb.catalog.snapshot import build_snapshot
from protocolkb.governance.failure_log import FailureLog, entry_from_violation, record_report
from protocolkb.reporting.integrity_report import render_integrity_report, write_integrity_report


def test_failure_log_round_trip(tmp_path, snapshot):
    log = FailureLog(tmp_path / "logs" / "failures.jsonl")
    assert log.read_all() == []
    assert log.count() == 0

    written = record_report(log, snapshot.report, command="validate corpus", detection_source="ci")
    assert written == 1
    [entry] = log.read_all()
    assert entry.component == "references"
    assert entry.code == "dangling_reference"
    assert entry.protocol_id == "https"
    assert entry.detection_source == "ci"
    assert log.summary() == {"warning": 1}


def test_failure_log_skips_malformed_lines(tmp_path):
    path = tmp_path / "failures.jsonl"
    log = FailureLog(path)
    report = ValidationReport()
    report.add("x", "name", Severity.FATAL, "missing_field", "name is empty")
    record_report(log, report)
    with open(path, "a", encoding="utf-8") as f:
        f.write("{broken\n\n")
    assert [e.component for e in log.read_all()] == ["schema"]
    assert log.count() == 2


def test_entry_component_override():
    report = ValidationReport()
    report.add("q1", "options", Severity.FATAL, "too_few_options", "needs 2")
    entry = entry_from_violation(report.violations[0], component="quiz")
    assert entry.component == "quiz"
    assert entry.severity == "fatal"


def test_integrity_report_sections(snapshot):
    text = render_integrity_report(snapshot)
    assert "INTEGRITY REPORT" in text
    assert "Publishable:          YES" in text
    assert "dangling_reference (1)" in text
    assert "https -> http2" in text
    assert "kerberos <-> ldap" in text
    assert "FATAL (BLOCKS PUBLISHING)" not in text


def test_integrity_report_lists_fatal(protocol_factory, tmp_path):
    snap = build_snapshot([protocol_factory(id="a"), protocol_factory(id="a")], settings=EngineSettings())
    out = tmp_path / "reports" / "integrity.txt"
    text = write_integrity_report(snap, out)
    assert out.read_text(encoding="utf-8") == text
    assert "FATAL (BLOCKS PUBLISHING)" in text
    assert "  [FATAL] a (id) duplicate_id: id 'a' already used by record #0" in text
    assert "Publishable:          NO" in text


def test_excel_report(tmp_path, snapshot):
    openpyxl = pytest.importorskip("openpyxl")
    from protocolkb.reporting.excel_report import CATALOG_HEADERS, write_excel_report

    path = write_excel_report(snapshot, tmp_path / "integrity.xlsx")
    wb = openpyxl.load_workbook(path)
    assert wb.sheetnames == ["Catalog", "Violations", "Facets"]

    catalog = wb["Catalog"]
    assert [c.value for c in catalog[1]] == CATALOG_HEADERS
    rows = {row[0]: row for row in catalog.iter_rows(min_row=2, values_only=True)}
    assert len(rows) == 10
    assert rows["https"][7] == "http2"
    assert rows["https"][-1] == "WARNING"
    assert rows["tcp"][-1] == "OK"

    violations = list(wb["Violations"].iter_rows(min_row=2, values_only=True))
    assert violations == [("https", "relatedProtocols", "WARNING", "dangling_reference",
                           "https -> http2: no protocol with id 'http2'")]
