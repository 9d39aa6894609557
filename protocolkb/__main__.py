#!/usr/bin/env python3
"""
protocolkb CLI: pure Python entry point.

Usage:
    python -m protocolkb validate <corpus> [--strict] [--log PATH] [--questions PATH]
    python -m protocolkb search <corpus> [text] [--category C] [--difficulty D] [--port N]
    python -m protocolkb related <corpus> <id> [--hops N]
    python -m protocolkb quiz <corpus> <id> [--count N] [--seed N]
    python -m protocolkb paths <corpus>
    python -m protocolkb report <corpus> [--text PATH] [--excel PATH] [--strict]
    python -m protocolkb export-index <corpus> <out.json>
    python -m protocolkb help

<corpus> is a JSON/YAML file or a directory of them.
"""
from __future__ import annotations

import argparse
import json
import random
import sys
from pathlib import Path
from typing import List, Optional

from protocolkb import ENGINE_VERSION
from protocolkb.catalog.model import ValidationReport
from protocolkb.catalog.snapshot import CatalogSnapshot, build_snapshot

_DEFAULT_OUTPUT_DIR = Path("outputs")


def _load_snapshot(corpus: str, strict: Optional[bool] = None) -> CatalogSnapshot:
    from protocolkb.ingestion.corpus_loader import load_protocols

    records = load_protocols(Path(corpus))
    return build_snapshot(records, strict=strict)


def _print_summary(snapshot: CatalogSnapshot) -> None:
    stats = snapshot.stats()
    print(f"  {stats['records']} records, {stats['unique_ids']} unique ids")
    print(f"  {stats['edges']} related links, {stats['terms']} indexed terms")
    print(f"  {stats['fatal']} fatal, {stats['warnings']} warnings")


def cmd_validate(args: list) -> int:
    """Validate a corpus; exit 1 on any fatal violation."""
    ap = argparse.ArgumentParser(prog="protocolkb validate")
    ap.add_argument("corpus")
    ap.add_argument("--strict", action="store_true", help="Treat dangling references as fatal")
    ap.add_argument("--log", type=Path, default=None, help="Append violations to this failure log")
    ap.add_argument("--questions", type=Path, default=None, help="Also validate quiz questions file/dir")
    opts = ap.parse_args(args)

    print(f"protocolkb {ENGINE_VERSION} -- Validating: {opts.corpus}")
    snapshot = _load_snapshot(opts.corpus, strict=True if opts.strict else None)
    report = snapshot.report
    q_report = ValidationReport()

    if opts.questions is not None:
        from protocolkb.ingestion.corpus_loader import load_quiz_questions
        from protocolkb.validation.schema import validate_questions

        questions = load_quiz_questions(opts.questions)
        q_report = validate_questions(questions, snapshot.by_id.keys())
        print(f"  {len(questions)} quiz questions, {len(q_report.fatal)} fatal, {len(q_report.warnings)} warnings")
        report = report.merge(q_report)

    _print_summary(snapshot)
    for v in report.fatal:
        print(f"  FATAL   {v.record_id}: {v.code}: {v.message}")
    for v in report.warnings:
        print(f"  WARNING {v.record_id}: {v.code}: {v.message}")

    if opts.log is not None:
        from protocolkb.governance.failure_log import FailureLog, record_report

        log = FailureLog(opts.log)
        command = f"validate {opts.corpus}"
        n = record_report(log, snapshot.report, command=command, detection_source="cli")
        n += record_report(log, q_report, command=command, detection_source="cli", component="quiz")
        print(f"  Logged {n} violation(s) to {log.path}")

    print()
    if report.has_fatal:
        print("FAIL: corpus is not publishable")
        return 1
    print("OK: corpus is publishable")
    return 0


def cmd_search(args: list) -> int:
    """Run a query and print the ranked ids."""
    from protocolkb.query.engine import QueryError, SearchQuery

    ap = argparse.ArgumentParser(prog="protocolkb search")
    ap.add_argument("corpus")
    ap.add_argument("text", nargs="*")
    ap.add_argument("--category", default=None)
    ap.add_argument("--difficulty", default=None)
    ap.add_argument("--port", type=int, default=None)
    ap.add_argument("--limit", type=int, default=None)
    ap.add_argument("--offset", type=int, default=0)
    opts = ap.parse_args(args)

    snapshot = _load_snapshot(opts.corpus)
    query = SearchQuery(
        text=" ".join(opts.text) or None,
        category=opts.category,
        difficulty=opts.difficulty,
        port=opts.port,
        limit=opts.limit,
        offset=opts.offset,
    )
    try:
        result = snapshot.search(query)
    except QueryError as e:
        print(f"Error: {e}")
        return 2

    for notice in result.notices:
        print(f"  note: {notice}")
    print(f"{result.total} match(es); showing {len(result.ids)} from offset {result.offset}")
    for pid in result.ids:
        record = snapshot.by_id[pid]
        score = result.scores.get(pid)
        suffix = f"  [score {score}]" if score is not None else ""
        print(f"  {pid:<20} {record.name}{suffix}")
    return 0


def cmd_related(args: list) -> int:
    """Show outgoing and incoming related-protocol links for one id."""
    from protocolkb.graph.reference_graph import UnknownProtocolError

    ap = argparse.ArgumentParser(prog="protocolkb related")
    ap.add_argument("corpus")
    ap.add_argument("id")
    ap.add_argument("--hops", type=int, default=1)
    opts = ap.parse_args(args)

    snapshot = _load_snapshot(opts.corpus)
    graph = snapshot.graph
    try:
        reachable = graph.within_hops(opts.id, opts.hops)
        incoming = graph.incoming(opts.id)
    except UnknownProtocolError:
        print(f"Error: unknown protocol id: {opts.id}")
        return 1
    except ValueError as e:
        print(f"Error: {e}")
        return 2

    print(f"{opts.id} -> (within {opts.hops} hop(s))")
    for pid, hops in sorted(reachable.items(), key=lambda kv: (kv[1], kv[0])):
        print(f"  {hops}  {pid}")
    dangling = sorted(graph.dangling.get(opts.id, ()))
    if dangling:
        print(f"  unresolved: {', '.join(dangling)}")
    print(f"{opts.id} <- {', '.join(sorted(incoming)) or '(none)'}")
    return 0


def cmd_quiz(args: list) -> int:
    """Generate multiple-choice questions for one protocol."""
    from protocolkb.quiz.generator import generate_questions

    ap = argparse.ArgumentParser(prog="protocolkb quiz")
    ap.add_argument("corpus")
    ap.add_argument("id")
    ap.add_argument("--count", type=int, default=5)
    ap.add_argument("--seed", type=int, default=None, help="Reproducible quiz (omit for a fresh one)")
    opts = ap.parse_args(args)

    snapshot = _load_snapshot(opts.corpus)
    protocol = snapshot.get(opts.id)
    if protocol is None:
        print(f"Error: unknown protocol id: {opts.id}")
        return 1

    rng = None if opts.seed is not None else random.Random()
    try:
        result = generate_questions(protocol, snapshot.records, opts.count, seed=opts.seed, rng=rng)
    except ValueError as e:
        print(f"Error: {e}")
        return 2

    for q in result.questions:
        print(q.question)
        for i, option in enumerate(q.options):
            marker = "*" if i == q.correct_answer else " "
            print(f"  {marker} {chr(ord('A') + i)}. {option}")
        print()
    print(f"Status: {result.status.value}")
    if result.message:
        print(f"  {result.message}")
    return 0


def cmd_paths(args: list) -> int:
    """List learning paths and their members."""
    from protocolkb.catalog.learning_paths import LEARNING_PATHS, path_members

    ap = argparse.ArgumentParser(prog="protocolkb paths")
    ap.add_argument("corpus")
    opts = ap.parse_args(args)

    snapshot = _load_snapshot(opts.corpus)
    for path in LEARNING_PATHS:
        members = path_members(snapshot.index, path.slug)
        print(f"{path.title} ({len(members)})")
        for pid in members:
            record = snapshot.by_id[pid]
            print(f"  {record.difficulty:<13} {pid}")
    return 0


def cmd_report(args: list) -> int:
    """Write the text integrity report and, optionally, the Excel workbook."""
    from protocolkb.reporting.integrity_report import write_integrity_report

    ap = argparse.ArgumentParser(prog="protocolkb report")
    ap.add_argument("corpus")
    ap.add_argument("--text", type=Path, default=_DEFAULT_OUTPUT_DIR / "integrity_report.txt")
    ap.add_argument("--excel", type=Path, default=None)
    ap.add_argument("--strict", action="store_true")
    opts = ap.parse_args(args)

    print(f"protocolkb {ENGINE_VERSION} -- Integrity report: {opts.corpus}")
    snapshot = _load_snapshot(opts.corpus, strict=True if opts.strict else None)
    _print_summary(snapshot)

    write_integrity_report(snapshot, opts.text)
    print(f"  Text:  {opts.text}")

    if opts.excel is not None:
        try:
            from protocolkb.reporting.excel_report import write_excel_report
            write_excel_report(snapshot, opts.excel)
            print(f"  Excel: {opts.excel}")
        except ImportError as exc:
            print(f"  Excel: skipped -- {exc}")

    print("Done.")
    return 0


def cmd_export_index(args: list) -> int:
    """Write the search index as JSON."""
    ap = argparse.ArgumentParser(prog="protocolkb export-index")
    ap.add_argument("corpus")
    ap.add_argument("out", type=Path)
    opts = ap.parse_args(args)

    snapshot = _load_snapshot(opts.corpus)
    opts.out.parent.mkdir(parents=True, exist_ok=True)
    opts.out.write_text(json.dumps(snapshot.index.to_dict(), indent=2), encoding="utf-8")
    print(f"Index: {len(snapshot.index)} ids, {len(snapshot.index.postings)} terms -> {opts.out}")
    return 0


def cmd_help(args: list) -> int:
    """Show help."""
    print("protocolkb: protocol knowledge base integrity & retrieval engine")
    print()
    print("Usage: python -m protocolkb <command> [args]")
    print()
    print("Commands:")
    print("  validate <corpus>           Validate records (exit 1 on fatal)")
    print("  search <corpus> [text]      Ranked search with --category/--difficulty/--port")
    print("  related <corpus> <id>       Related-protocol links (--hops N)")
    print("  quiz <corpus> <id>          Generate questions (--count N, --seed N)")
    print("  paths <corpus>              List learning paths")
    print("  report <corpus>             Write integrity report (--text, --excel)")
    print("  export-index <corpus> <out> Write the search index as JSON")
    print("  help                        Show this help message")
    print()
    print("Examples:")
    print("  python -m protocolkb validate data/protocols --strict")
    print("  python -m protocolkb search data/protocols kerberos ticket")
    print("  python -m protocolkb quiz data/protocols tcp --count 3 --seed 7")
    print()
    return 0


_COMMANDS = {
    "validate": cmd_validate,
    "search": cmd_search,
    "related": cmd_related,
    "quiz": cmd_quiz,
    "paths": cmd_paths,
    "report": cmd_report,
    "export-index": cmd_export_index,
    "help": cmd_help,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        return cmd_help([])

    command = args[0].lower()
    handler = _COMMANDS.get(command)
    if handler is None:
        print(f"Unknown command: {command}")
        print()
        return cmd_help([])

    return handler(args[1:])


if __name__ == "__main__":
    raise SystemExit(main())
