#!/usr/bin/env python3
"""
Corpus loader for protocolkb.

Reads protocol and quiz-question records from disk into plain mappings and
model objects. Accepts:
- a JSON or YAML file holding a list of records
- a JSON or YAML file holding an object with a "protocols" (or "questions") list
- a directory of such files, read in sorted filename order

Fail-closed: unreadable or malformed files stop the run with a message
naming the file. Record CONTENT is never checked here (see validation).
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Sequence

import yaml

from protocolkb.catalog.model import Protocol, QuizQuestion

JSON_SUFFIXES = (".json",)
YAML_SUFFIXES = (".yaml", ".yml")


class _CorpusYamlLoader(yaml.SafeLoader):
    """SafeLoader that keeps float-looking scalars as text (versions: [1.10] stays "1.10")."""


_CorpusYamlLoader.yaml_implicit_resolvers = {
    first: [(tag, rx) for tag, rx in resolvers if tag != "tag:yaml.org,2002:float"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _read_file(path: Path) -> Any:
    """Parse one JSON or YAML file."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise SystemExit(f"Missing corpus file: {path}")
    except (IOError, UnicodeDecodeError) as e:
        raise SystemExit(f"Unreadable corpus file: {path}\n{e}")

    if path.suffix.lower() in JSON_SUFFIXES:
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise SystemExit(f"Invalid JSON: {path}\n{e}")
    if path.suffix.lower() in YAML_SUFFIXES:
        try:
            return yaml.load(text, Loader=_CorpusYamlLoader)
        except yaml.YAMLError as e:
            raise SystemExit(f"Invalid YAML: {path}\n{e}")
    raise SystemExit(f"Unsupported corpus file type: {path}")


def _records_from(obj: Any, key: str, path: Path) -> List[Dict[str, Any]]:
    """Unwrap list / {key: [...]} / single-record shapes."""
    if obj is None:
        return []
    if isinstance(obj, dict) and key in obj:
        obj = obj[key]
    elif isinstance(obj, dict):
        obj = [obj]

    if not isinstance(obj, list):
        raise SystemExit(f"{path}: expected a list of records or an object with '{key}'")

    out = []
    for i, item in enumerate(obj):
        if not isinstance(item, dict):
            raise SystemExit(f"{path}: record {i} is not an object")
        out.append(item)
    return out


def corpus_files(path: Path) -> List[Path]:
    """Files that make up a corpus path, in load order."""
    if path.is_dir():
        suffixes = JSON_SUFFIXES + YAML_SUFFIXES
        return sorted(
            p for p in path.iterdir()
            if p.is_file() and p.suffix.lower() in suffixes and not p.name.startswith(("_", "."))
        )
    if not path.exists():
        raise SystemExit(f"Corpus not found: {path}")
    return [path]


def load_raw_records(path: Path, key: str = "protocols") -> List[Dict[str, Any]]:
    """Load raw record mappings from a file or directory."""
    records: List[Dict[str, Any]] = []
    for f in corpus_files(Path(path)):
        records.extend(_records_from(_read_file(f), key, f))
    return records


def load_protocols(path: Path) -> List[Protocol]:
    """Load protocol records (unvalidated) from a file or directory."""
    return [Protocol.from_dict(r) for r in load_raw_records(path, "protocols")]


def load_quiz_questions(path: Path) -> List[QuizQuestion]:
    """Load authored quiz questions (unvalidated) from a file or directory."""
    return [QuizQuestion.from_dict(r) for r in load_raw_records(path, "questions")]


def parse_protocols(raw: Sequence[Dict[str, Any]]) -> List[Protocol]:
    """Convert already-loaded mappings (e.g. from an API payload)."""
    return [Protocol.from_dict(r) for r in raw]
