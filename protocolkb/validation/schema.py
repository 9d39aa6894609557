#!/usr/bin/env python3
"""
Schema validation for protocol entries and quiz questions.

Checks every record against the structural contract and reports ALL problems
in one pass (no fail-fast): a docs corpus benefits from seeing every issue at
once.

Rules:
- No defaults. Missing required data = violation.
- Pure: never mutates or drops records.
- Record order matters only for duplicate detection (first occurrence wins).
"""
from __future__ import annotations

import re
from collections import Counter
from typing import Dict, Iterable, Optional, Sequence, Set, Tuple

from protocolkb.catalog.model import (
    CATEGORY_VALUES,
    DIFFICULTY_VALUES,
    RESOURCE_TYPE_VALUES,
    Protocol,
    QuizQuestion,
    Severity,
    ValidationReport,
)

ID_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

REQUIRED_TEXT_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("name", "name"),
    ("shortDescription", "short_description"),
    ("fullDescription", "full_description"),
)

STATEMENT_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("advantages", "advantages"),
    ("disadvantages", "disadvantages"),
    ("useCases", "use_cases"),
)

OPTIONAL_COLLECTION_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("versions", "versions"),
    ("diagrams", "diagrams"),
    ("commonCommands", "common_commands"),
    ("securityConsiderations", "security_considerations"),
    ("modernAlternatives", "modern_alternatives"),
)

_WS = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Case- and whitespace-insensitive form used for duplicate detection."""
    return _WS.sub(" ", text).strip().lower()


def record_ref(record: Protocol, position: int) -> str:
    """Id used in reports; falls back to the record position when the id is blank."""
    return record.id if record.id else f"#{position}"


def _check_identity(record: Protocol, ref: str, report: ValidationReport) -> None:
    if not record.id:
        report.add(ref, "id", Severity.FATAL, "missing_id", "Record has no id")
    elif not ID_PATTERN.match(record.id):
        report.add(
            ref, "id", Severity.FATAL, "invalid_id",
            f"id '{record.id}' is not a lowercase slug (a-z, 0-9, single hyphens)",
        )


def _check_text_fields(record: Protocol, ref: str, report: ValidationReport) -> None:
    for source_name, attr in REQUIRED_TEXT_FIELDS:
        if not getattr(record, attr).strip():
            report.add(ref, source_name, Severity.FATAL, "missing_field", f"{source_name} is empty")


def _check_facets(record: Protocol, ref: str, report: ValidationReport) -> None:
    if record.category not in CATEGORY_VALUES:
        report.add(
            ref, "category", Severity.FATAL, "invalid_category",
            f"category '{record.category}' is not one of: {', '.join(sorted(CATEGORY_VALUES))}",
        )
    if record.difficulty not in DIFFICULTY_VALUES:
        report.add(
            ref, "difficulty", Severity.FATAL, "invalid_difficulty",
            f"difficulty '{record.difficulty}' is not one of: Beginner, Intermediate, Advanced",
        )


def _check_statements(record: Protocol, ref: str, report: ValidationReport) -> None:
    normalized: Dict[str, Set[str]] = {}
    for source_name, attr in STATEMENT_FIELDS:
        items = getattr(record, attr)
        if not items:
            report.add(ref, source_name, Severity.WARNING, "empty_collection", f"{source_name} is empty")
            normalized[source_name] = set()
            continue

        counts = Counter(normalize_text(s) for s in items if s.strip())
        for text, n in sorted(counts.items()):
            if n > 1:
                report.add(
                    ref, source_name, Severity.WARNING, "duplicate_entry",
                    f"'{text}' appears {n} times in {source_name}",
                )
        if any(not s.strip() for s in items):
            report.add(ref, source_name, Severity.WARNING, "blank_entry", f"{source_name} contains a blank entry")
        normalized[source_name] = set(counts)

    for text in sorted(normalized["advantages"] & normalized["disadvantages"]):
        report.add(
            ref, "disadvantages", Severity.WARNING, "contradictory_statement",
            f"'{text}' is listed as both an advantage and a disadvantage",
        )


def _check_examples(record: Protocol, ref: str, report: ValidationReport) -> None:
    if not record.examples:
        report.add(ref, "examples", Severity.FATAL, "missing_examples", "examples is missing or empty")
        return

    with_code = [e for e in record.examples if e.code.strip()]
    if not with_code:
        report.add(ref, "examples", Severity.FATAL, "missing_examples", "no example has any code")
        return

    for i, example in enumerate(record.examples):
        if not example.code.strip():
            label = example.title or f"examples[{i}]"
            report.add(ref, "examples", Severity.WARNING, "empty_example_code", f"'{label}' has no code")


def _check_resources(record: Protocol, ref: str, report: ValidationReport) -> None:
    if not record.resources:
        report.add(ref, "resources", Severity.WARNING, "empty_collection", "resources is empty")
        return

    for i, res in enumerate(record.resources):
        label = res.title or f"resources[{i}]"
        if res.type not in RESOURCE_TYPE_VALUES:
            report.add(
                ref, "resources", Severity.WARNING, "invalid_resource_type",
                f"'{label}' has type '{res.type}', expected one of: {', '.join(sorted(RESOURCE_TYPE_VALUES))}",
            )
        if not res.url.strip():
            report.add(ref, "resources", Severity.WARNING, "missing_resource_url", f"'{label}' has no url")


def _check_optionals(record: Protocol, ref: str, report: ValidationReport) -> None:
    for source_name, attr in OPTIONAL_COLLECTION_FIELDS:
        value = getattr(record, attr)
        # None = intentionally omitted, which is fine
        if value is not None and len(value) == 0:
            report.add(
                ref, source_name, Severity.WARNING, "empty_optional",
                f"{source_name} is present but empty (omit it instead)",
            )
    if record.port is not None and not record.port.strip():
        report.add(ref, "port", Severity.WARNING, "empty_optional", "port is present but empty (omit it instead)")


def validate(records: Sequence[Protocol]) -> ValidationReport:
    """
    Validate every record and the corpus-wide id uniqueness.

    Args:
        records: Protocol entries in authoring order

    Returns: ValidationReport with one Violation per problem found
    """
    report = ValidationReport()
    first_seen: Dict[str, int] = {}

    for position, record in enumerate(records):
        ref = record_ref(record, position)

        _check_identity(record, ref, report)
        if record.id:
            if record.id in first_seen:
                report.add(
                    ref, "id", Severity.FATAL, "duplicate_id",
                    f"id '{record.id}' already used by record #{first_seen[record.id]} (this is #{position})",
                )
            else:
                first_seen[record.id] = position

        _check_text_fields(record, ref, report)
        _check_facets(record, ref, report)
        _check_statements(record, ref, report)
        _check_examples(record, ref, report)
        _check_resources(record, ref, report)
        _check_optionals(record, ref, report)

    return report


def find_duplicate_ids(records: Iterable[Protocol]) -> Dict[str, int]:
    """Map each id used more than once to its occurrence count."""
    counts = Counter(r.id for r in records if r.id)
    return {pid: n for pid, n in counts.items() if n > 1}


# ---------------------------------------------------------------------------
# Quiz question records
# ---------------------------------------------------------------------------

def validate_questions(
    questions: Sequence[QuizQuestion],
    protocol_ids: Iterable[str],
) -> ValidationReport:
    """
    Validate authored quiz questions against the protocol id set.

    Violations are keyed by question id (or "#<position>" when blank).
    """
    known = set(protocol_ids)
    report = ValidationReport()
    seen: Set[str] = set()

    for position, q in enumerate(questions):
        ref = q.id or f"#{position}"

        if not q.id:
            report.add(ref, "id", Severity.FATAL, "missing_id", "Question has no id")
        elif q.id in seen:
            report.add(ref, "id", Severity.FATAL, "duplicate_id", f"question id '{q.id}' is used more than once")
        else:
            seen.add(q.id)

        if q.protocol_id not in known:
            report.add(
                ref, "protocolId", Severity.FATAL, "dangling_reference",
                f"protocolId '{q.protocol_id}' does not match any protocol",
            )

        if not q.question.strip():
            report.add(ref, "question", Severity.FATAL, "missing_field", "question is empty")

        if len(q.options) < 2:
            report.add(ref, "options", Severity.FATAL, "too_few_options",
                       f"needs at least 2 options, has {len(q.options)}")

        if not 0 <= q.correct_answer < len(q.options):
            report.add(
                ref, "correctAnswer", Severity.FATAL, "answer_out_of_range",
                f"correctAnswer {q.correct_answer} is not an index into {len(q.options)} options",
            )

        counts = Counter(normalize_text(o) for o in q.options)
        for text, n in sorted(counts.items()):
            if n > 1:
                report.add(ref, "options", Severity.FATAL, "duplicate_option", f"option '{text}' appears {n} times")

        if not q.explanation.strip():
            report.add(ref, "explanation", Severity.WARNING, "missing_field", "explanation is empty")

    return report


def is_publishable(report: Optional[ValidationReport]) -> bool:
    """A corpus may be published only when its report has no fatal entries."""
    return report is not None and not report.has_fatal


__all__ = [
    "ID_PATTERN",
    "find_duplicate_ids",
    "is_publishable",
    "normalize_text",
    "record_ref",
    "validate",
    "validate_questions",
]
