"""Tests for the query engine."""
from __future__ import annotations

import pytest

from protocolkb.catalog.model import Category, Difficulty
from protocolkb.catalog.rules_loader import EngineSettings
from protocolkb.index.search_index import build_index
from protocolkb.query.engine import QueryError, SearchQuery, facet_counts, run_query, search


def test_empty_query_returns_all_ids_ascending(snapshot, settings):
    expected = sorted(snapshot.by_id)
    assert search(snapshot.index, {}, settings) == expected
    assert search(snapshot.index, None, settings) == expected


def test_text_query_ranks_name_matches_first(snapshot, settings):
    assert search(snapshot.index, {"text": "kerberos ticket"}, settings) == ["kerberos", "ldap"]


def test_ranking_ties_break_by_id(snapshot, settings):
    result = run_query(snapshot.index, SearchQuery(text="web"), settings)
    assert list(result.ids) == ["http", "https", "tcp"]
    assert result.scores == {"http": 2, "https": 2, "tcp": 1}


def test_text_terms_are_anded(snapshot, settings):
    assert search(snapshot.index, {"text": "encrypted web"}, settings) == ["https"]
    assert search(snapshot.index, {"text": "kerberos smtp"}, settings) == []


def test_unknown_term_matches_nothing(snapshot, settings):
    assert search(snapshot.index, {"text": "gopher"}, settings) == []


def test_search_is_case_and_accent_insensitive(snapshot, settings):
    assert search(snapshot.index, {"text": "KERBÉROS"}, settings) == search(
        snapshot.index, {"text": "kerberos"}, settings
    )


def test_facets(snapshot, settings):
    index = snapshot.index
    assert search(index, {"category": "Security"}, settings) == ["kerberos", "ldap", "tls"]
    assert search(index, {"category": Category.SECURITY, "difficulty": Difficulty.INTERMEDIATE}, settings) == [
        "ldap", "tls",
    ]
    assert search(index, {"port": 443}, settings) == ["https", "tls", "websocket"]
    assert search(index, {"category": "Email", "text": "kerberos"}, settings) == []


@pytest.mark.parametrize("query", [
    {"category": "Security"},
    {"difficulty": "Beginner"},
    {"port": 443},
    {"text": "protocol"},
])
def test_facet_filter_is_a_subset_of_the_unfiltered_query(snapshot, settings, query):
    filtered = set(search(snapshot.index, dict(query, text="protocol"), settings))
    unfiltered = set(search(snapshot.index, {"text": "protocol"}, settings))
    assert filtered <= unfiltered


@pytest.mark.parametrize("text", ["protocol", "web", "kerberos", "connection"])
@pytest.mark.parametrize("category", ["Web", "Security", "Transport", "Email"])
def test_text_and_category_results_intersect(snapshot, settings, text, category):
    by_text = set(search(snapshot.index, {"text": text}, settings))
    by_category = set(search(snapshot.index, {"category": category}, settings))
    combined = set(search(snapshot.index, {"text": text, "category": category}, settings))
    assert by_text & by_category == combined


def test_kerberos_ticket_with_limit(snapshot, settings):
    ids = search(snapshot.index, {"text": "kerberos ticket", "limit": 5}, settings)
    assert ids[0] == "kerberos"
    assert "tls" not in ids


def test_port_range_matches_every_port_inside_it(protocol_factory, settings):
    index = build_index([
        protocol_factory(id="bittorrent", port="6881-6889 (default range)"),
        protocol_factory(id="ospf", port="88 (IP Protocol), UDP for Hello packets"),
    ])
    assert search(index, {"port": 6885}, settings) == ["bittorrent"]
    assert search(index, {"port": 6889}, settings) == ["bittorrent"]
    assert search(index, {"port": 6890}, settings) == []
    assert search(index, {"port": 88}, settings) == []


def test_pagination(snapshot, settings):
    everything = search(snapshot.index, {}, settings)
    assert search(snapshot.index, {"limit": 3}, settings) == everything[:3]
    assert search(snapshot.index, {"limit": 3, "offset": 3}, settings) == everything[3:6]
    assert search(snapshot.index, {"offset": 100}, settings) == []
    assert search(snapshot.index, {"limit": 0}, settings) == []

    result = run_query(snapshot.index, SearchQuery(limit=3, offset=9), settings)
    assert result.total == 10
    assert result.ids == (everything[9],)


def test_default_limit_applies(protocol_factory):
    records = [protocol_factory(id=f"p{i:03d}") for i in range(60)]
    index = build_index(records)
    settings = EngineSettings(default_limit=50, max_limit=200)
    assert len(search(index, {}, settings)) == 50
    assert len(search(index, {"limit": 100}, settings)) == 60


def test_oversized_limit_is_clamped_with_notice(snapshot):
    settings = EngineSettings(default_limit=2, max_limit=5)
    result = run_query(snapshot.index, SearchQuery(limit=500), settings)
    assert result.limit == 5
    assert len(result.ids) == 5
    assert result.notices == ("limit 500 clamped to 5",)


def test_text_without_terms_is_ignored_with_notice(snapshot, settings):
    result = run_query(snapshot.index, SearchQuery(text="?!"), settings)
    assert result.total == 10
    assert result.terms == ()
    assert len(result.notices) == 1


@pytest.mark.parametrize("query", [
    {"limit": -1},
    {"offset": -5},
    {"category": "Cooking"},
    {"difficulty": "Expert"},
    {"port": 0},
    {"port": 70000},
    {"limit": "10"},
    {"sort": "name"},
])
def test_malformed_queries_raise(snapshot, settings, query):
    with pytest.raises(QueryError):
        search(snapshot.index, query, settings)


def test_query_error_is_a_value_error():
    assert issubclass(QueryError, ValueError)


def test_search_is_deterministic(snapshot, settings):
    query = {"text": "protocol", "limit": 4}
    assert search(snapshot.index, query, settings) == search(snapshot.index, query, settings)


def test_facet_counts(snapshot):
    counts = facet_counts(snapshot.index)
    assert counts["category"]["Security"] == 3
    assert counts["difficulty"] == {"Advanced": 1, "Beginner": 5, "Intermediate": 4}
    assert counts["port"]["443"] == 3
    assert counts["port"]["80"] == 2
