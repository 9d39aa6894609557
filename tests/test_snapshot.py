"""Tests for the catalog pipeline, snapshot holder and learning paths."""
from __future__ import annotations

import pytest

from protocolkb import ENGINE_VERSION
from protocolkb.catalog.learning_paths import LEARNING_PATHS, all_paths, get_path, path_members
from protocolkb.catalog.model import Category
from protocolkb.catalog.rules_loader import EngineSettings
from protocolkb.catalog.snapshot import Catalog, build_snapshot
from protocolkb.query.engine import SearchQuery


def test_fixture_snapshot_is_publishable_with_one_warning(snapshot):
    assert snapshot.publishable
    assert [v.code for v in snapshot.report.warnings] == ["dangling_reference"]
    stats = snapshot.stats()
    assert stats["records"] == 10
    assert stats["engine_version"] == ENGINE_VERSION
    assert stats["fatal"] == 0


def test_strict_snapshot_is_not_publishable(corpus):
    strict = build_snapshot(corpus, strict=True, settings=EngineSettings())
    assert not strict.publishable
    assert strict.settings.strict_references


def test_lookup_helpers(snapshot):
    assert snapshot.get("tcp").name == "TCP"
    assert snapshot.get("nope") is None
    assert [p.id for p in snapshot.by_category(Category.TRANSPORT)] == ["tcp", "udp"]
    assert [p.id for p in snapshot.by_category("Email")] == ["smtp"]
    assert [p.id for p in snapshot.related("https")] == ["http", "tls"]
    assert snapshot.related("nope") == []


def test_snapshot_search(snapshot):
    result = snapshot.search(SearchQuery(text="kerberos ticket"))
    assert result.ids[0] == "kerberos"


def test_duplicate_ids_keep_first_record(protocol_factory):
    snap = build_snapshot(
        [protocol_factory(id="a", name="First"), protocol_factory(id="a", name="Second")],
        settings=EngineSettings(),
    )
    assert not snap.publishable
    assert snap.get("a").name == "First"
    assert len(snap.records) == 2


def test_catalog_requires_a_build():
    catalog = Catalog(settings=EngineSettings())
    assert not catalog.is_built
    with pytest.raises(RuntimeError):
        catalog.snapshot


def test_catalog_swaps_whole_snapshots(corpus, protocol_factory):
    catalog = Catalog(settings=EngineSettings())
    first = catalog.rebuild(corpus)
    assert catalog.snapshot is first

    held = catalog.snapshot
    second = catalog.rebuild([protocol_factory(id="only")])
    assert catalog.snapshot is second
    # a reader holding the old snapshot still sees the old corpus
    assert len(held.index) == 10
    assert len(catalog.snapshot.index) == 1


def test_catalog_keeps_previous_snapshot_when_new_one_is_fatal(corpus, protocol_factory):
    catalog = Catalog(settings=EngineSettings())
    good = catalog.rebuild(corpus, require_publishable=True)
    bad = catalog.rebuild([protocol_factory(id="BAD")], require_publishable=True)
    assert not bad.publishable
    assert catalog.snapshot is good


# ---------------------------------------------------------------------------
# Learning paths
# ---------------------------------------------------------------------------

def test_learning_paths_order_by_difficulty_then_id(snapshot):
    assert path_members(snapshot.index, "security-protocols") == ["ldap", "tls", "kerberos"]
    assert path_members(snapshot.index, "network-foundations") == ["dns", "udp", "tcp"]
    assert path_members(snapshot.index, "web-fundamentals") == ["http", "https"]
    assert path_members(snapshot.index, "data-formats") == []


def test_all_paths(snapshot):
    paths = all_paths(snapshot.index)
    assert list(paths) == [p.slug for p in LEARNING_PATHS]
    assert paths["realtime-communication"] == ["websocket"]


def test_unknown_learning_path():
    with pytest.raises(KeyError):
        get_path("underwater-basket-weaving")
