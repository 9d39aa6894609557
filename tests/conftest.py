from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List

import pytest

from protocolkb.catalog.model import Protocol
from protocolkb.catalog.rules_loader import EngineSettings
from protocolkb.catalog.snapshot import CatalogSnapshot, build_snapshot
from protocolkb.ingestion.corpus_loader import load_protocols

FIXTURES = Path(__file__).parent / "fixtures"
CORPUS_DIR = FIXTURES / "corpus"

_BASE_RECORD: Dict[str, Any] = {
    "id": "sample",
    "name": "Sample",
    "category": "Web",
    "difficulty": "Beginner",
    "shortDescription": "A sample protocol",
    "fullDescription": "A sample protocol used by the tests.",
    "advantages": ["Easy to read"],
    "disadvantages": ["Not real"],
    "useCases": ["Unit tests"],
    "examples": [{"title": "Hello", "code": "hello", "explanation": "Says hello"}],
    "relatedProtocols": [],
    "resources": [{"title": "Docs", "url": "https://example.com/docs", "type": "Documentation"}],
}


def make_record(**overrides: Any) -> Dict[str, Any]:
    """Valid camelCase record dict; keyword overrides replace top-level keys."""
    record = copy.deepcopy(_BASE_RECORD)
    record.update(overrides)
    return record


def make_protocol(**overrides: Any) -> Protocol:
    return Protocol.from_dict(make_record(**overrides))


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def protocol_factory():
    return make_protocol


@pytest.fixture(scope="session")
def corpus() -> List[Protocol]:
    return load_protocols(CORPUS_DIR)


@pytest.fixture(scope="session")
def snapshot(corpus) -> CatalogSnapshot:
    return build_snapshot(corpus, settings=EngineSettings())


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()
