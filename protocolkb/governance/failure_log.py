#!/usr/bin/env python3
"""
protocolkb Failure Log: append-only record of corpus integrity problems.

Records schema, reference and quiz violations found during validation runs.
Never modifies engine behavior; purely observational.

Storage: JSON Lines format (one JSON object per line) at outputs/failure_log.jsonl

Components:
- schema: record structure / taxonomy violation
- references: relatedProtocols integrity
- quiz: authored quiz question violation

Detection sources:
- build: detected while building a catalog snapshot
- ci: detected by a strict CI validation run
- cli: detected by an interactive command
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from protocolkb.catalog.model import ValidationReport, Violation

# Codes produced by the reference graph builder; everything else from a
# protocol run is a schema problem.
_REFERENCE_CODES = frozenset({"dangling_reference", "self_reference", "duplicate_reference"})


@dataclass
class FailureEntry:
    """A single integrity failure record."""
    timestamp: str           # ISO 8601 timestamp
    component: str           # "schema", "references", "quiz"
    severity: str            # "fatal", "warning"
    code: str                # Violation code (e.g. "dangling_reference")
    description: str         # Factual, non-interpretive description
    command: str             # Triggering command or context (e.g. "validate corpus/")
    detection_source: str    # "build", "ci", "cli"
    protocol_id: Optional[str] = None  # Record identifier if applicable
    field: Optional[str] = None        # Source field name if applicable
    metadata: Optional[Dict[str, Any]] = None  # Additional structured data


_DEFAULT_LOG_PATH = Path("outputs") / "failure_log.jsonl"


class FailureLog:
    """
    Append-only integrity failure log.

    Safe for single-process usage (file append is atomic on most OSes).
    """

    def __init__(self, log_path: Optional[Path] = None):
        self._path = log_path or _DEFAULT_LOG_PATH

    @property
    def path(self) -> Path:
        return self._path

    def append(self, entry: FailureEntry) -> None:
        """Append a failure entry to the log file."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        record = asdict(entry)
        # Remove None values for cleaner output
        record = {k: v for k, v in record.items() if v is not None}
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=str) + "\n")

    def read_all(self) -> List[FailureEntry]:
        """Read all failure entries from the log file."""
        if not self._path.exists():
            return []

        entries: List[FailureEntry] = []
        with open(self._path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    continue  # Skip malformed lines
                entries.append(FailureEntry(
                    timestamp=data.get("timestamp", ""),
                    component=data.get("component", ""),
                    severity=data.get("severity", ""),
                    code=data.get("code", ""),
                    description=data.get("description", ""),
                    command=data.get("command", ""),
                    detection_source=data.get("detection_source", ""),
                    protocol_id=data.get("protocol_id"),
                    field=data.get("field"),
                    metadata=data.get("metadata"),
                ))

        return entries

    def count(self) -> int:
        """Count total entries without loading all into memory."""
        if not self._path.exists():
            return 0
        count = 0
        with open(self._path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    count += 1
        return count

    def summary(self) -> Dict[str, int]:
        """Return counts by severity."""
        counts: Dict[str, int] = {}
        for entry in self.read_all():
            counts[entry.severity] = counts.get(entry.severity, 0) + 1
        return counts


# ---------------------------------------------------------------------------
# Convenience functions
# ---------------------------------------------------------------------------

def entry_from_violation(
    violation: Violation,
    command: str = "",
    detection_source: str = "build",
    component: Optional[str] = None,
) -> FailureEntry:
    """Convert one Violation into a FailureEntry."""
    if component is None:
        component = "references" if violation.code in _REFERENCE_CODES else "schema"
    return FailureEntry(
        timestamp=datetime.now().isoformat(),
        component=component,
        severity=violation.severity.value,
        code=violation.code,
        description=violation.message,
        command=command,
        detection_source=detection_source,
        protocol_id=violation.record_id,
        field=violation.field,
    )


def record_report(
    log: FailureLog,
    report: ValidationReport,
    command: str = "",
    detection_source: str = "build",
    component: Optional[str] = None,
) -> int:
    """Append every violation in a report. Returns the number of entries written."""
    for violation in report.violations:
        log.append(entry_from_violation(violation, command, detection_source, component))
    return len(report.violations)
