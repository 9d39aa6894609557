#!/usr/bin/env python3
"""
Engine Contract Loader for protocolkb.

Loads the locked engine contract (severity policy, search and quiz settings)
and freezes it into an immutable EngineSettings object.

Design:
- Deterministic
- Minimal validation (fail-closed)
- Immutable settings at runtime
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
CONTRACT_PATH = PACKAGE_ROOT / "rules" / "engine_contract_v1.json"

SEARCH_FIELDS = ("name", "shortDescription", "fullDescription", "useCases")


@dataclass(frozen=True)
class EngineSettings:
    """Immutable engine settings derived from the contract."""
    strict_references: bool = False
    default_limit: int = 50
    max_limit: int = 200
    field_weights: Dict[str, int] = field(default_factory=lambda: {
        "name": 3,
        "shortDescription": 2,
        "fullDescription": 1,
        "useCases": 1,
    })
    options_per_question: int = 4
    max_distractor_overlap: float = 0.5
    contract_name: str = "engine_contract_v1"

    def with_overrides(self, **overrides: Any) -> "EngineSettings":
        """Return a copy with the given fields replaced (e.g. strict_references=True)."""
        return replace(self, **overrides)


def _read_json(path: Path) -> Dict[str, Any]:
    """Read and parse JSON file with fail-closed error handling."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise SystemExit(f"Missing JSON: {path}")
    except json.JSONDecodeError as e:
        raise SystemExit(f"Invalid JSON: {path}\n{e}")


def load_engine_contract(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load the engine contract.

    Returns: Contract dict with references, search and quiz sections

    Raises: SystemExit if contract is missing, malformed, or not locked
    """
    path = path or CONTRACT_PATH
    obj = _read_json(path)

    if not isinstance(obj, dict):
        raise SystemExit(f"{path.name}: contract must be a JSON object")

    if obj.get("meta", {}).get("locked") is not True:
        raise SystemExit(f"{path.name} must have meta.locked=true")

    for section in ("references", "search", "quiz"):
        if not isinstance(obj.get(section), dict):
            raise SystemExit(f"{path.name} missing {section} section")

    weights = obj["search"].get("field_weights", {})
    if not isinstance(weights, dict) or set(weights) != set(SEARCH_FIELDS):
        raise SystemExit(f"{path.name}: search.field_weights must cover {', '.join(SEARCH_FIELDS)}")

    return obj


def settings_from_contract(contract: Dict[str, Any]) -> EngineSettings:
    """Freeze a loaded contract into EngineSettings, checking value ranges."""
    search = contract["search"]
    quiz = contract["quiz"]
    name = contract.get("meta", {}).get("name", "engine_contract")

    default_limit = int(search.get("default_limit", 50))
    max_limit = int(search.get("max_limit", 200))
    if default_limit < 1 or max_limit < default_limit:
        raise SystemExit(f"{name}: need 1 <= default_limit <= max_limit")

    options = int(quiz.get("options_per_question", 4))
    if options < 2:
        raise SystemExit(f"{name}: quiz.options_per_question must be >= 2")

    overlap = float(quiz.get("max_distractor_overlap", 0.5))
    if not 0.0 < overlap <= 1.0:
        raise SystemExit(f"{name}: quiz.max_distractor_overlap must be in (0, 1]")

    return EngineSettings(
        strict_references=bool(contract["references"].get("strict", False)),
        default_limit=default_limit,
        max_limit=max_limit,
        field_weights={k: int(v) for k, v in search["field_weights"].items()},
        options_per_question=options,
        max_distractor_overlap=overlap,
        contract_name=name,
    )


_DEFAULT_SETTINGS: Optional[EngineSettings] = None


def load_settings(path: Optional[Path] = None) -> EngineSettings:
    """
    Load EngineSettings from a contract file.

    The shipped contract is read once and cached; explicit paths are always re-read.
    """
    global _DEFAULT_SETTINGS
    if path is not None:
        return settings_from_contract(load_engine_contract(path))
    if _DEFAULT_SETTINGS is None:
        _DEFAULT_SETTINGS = settings_from_contract(load_engine_contract())
    return _DEFAULT_SETTINGS
