"""Tests for the tokenizer and index builder."""
from __future__ import annotations

import json

import pytest

from protocolkb.index.search_index import INDEX_FORMAT, SearchIndex, build_index
from protocolkb.index.tokenizer import extract_ports, tokenize, unique_terms


def test_tokenize_folds_case_and_accents():
    assert tokenize("Café Über-HTTP/2") == ["cafe", "uber", "http", "2"]
    assert tokenize("") == []
    assert tokenize(None) == []


def test_unique_terms_keeps_first_seen_order():
    assert unique_terms("b a b c a") == ["b", "a", "c"]


@pytest.mark.parametrize("text, expected", [
    ("80 (HTTP), 443 (HTTPS)", {80, 443}),
    ("25, 587 (submission)", {25, 587}),
    ("53", {53}),
    ("N/A (IP protocol number 50)", set()),
    ("N/A (Layer 2 protocol)", set()),
    ("UDP port 4791 (RoCEv2), Ethertype 0x8915 (RoCEv1)", {4791}),
    ("ICMP types 0 and 8", set()),
    ("Layer 2 (no TCP/UDP)", set()),
    ("Layer 2 / Layer 3 (no TCP/UDP)", set()),
    ("IP Protocol 46 (RSVP, not TCP/UDP)", set()),
    ("88 (IP Protocol), UDP for Hello packets", set()),
    ("RTP port + 1 (typically odd-numbered)", set()),
    ("6881-6889 (default range)", set(range(6881, 6890))),
    ("Various (STUN: 3478, TURN: 3478-3481, RTP: dynamic)", {3478, 3479, 3480, 3481}),
    ("24007 (management), 24008+ (bricks)", {24007, 24008}),
    ("5060 (SIP), 5004 (RTP), 1720 (H.323)", {5060, 5004, 1720}),
    ("70000", set()),
    ("", set()),
    (None, set()),
])
def test_extract_ports(text, expected):
    assert extract_ports(text) == expected


def test_index_contents(snapshot):
    index = snapshot.index
    assert index.ids == tuple(sorted(index.ids))
    assert len(index) == 10
    assert "kerberos" in index
    assert "http2" not in index
    assert index.lookup("kerberos") == {"kerberos", "ldap"}
    assert index.lookup("missing-term") == frozenset()
    assert index.categories["Security"] == {"kerberos", "ldap", "tls"}
    assert index.ports[443] == {"https", "tls", "websocket"}
    assert 6 not in index.ports


def test_only_search_fields_are_indexed(protocol_factory):
    record = protocol_factory(advantages=["zebra"], disadvantages=["yak"], useCases=["walrus"])
    index = build_index([record])
    assert index.lookup("zebra") == frozenset()
    assert index.lookup("yak") == frozenset()
    assert index.lookup("walrus") == {"sample"}
    assert index.field_postings["useCases"]["walrus"] == {"sample"}


def test_rebuild_is_idempotent_and_order_independent(corpus):
    first = build_index(corpus)
    second = build_index(corpus)
    shuffled = build_index(list(reversed(corpus)))
    assert first.to_dict() == second.to_dict() == shuffled.to_dict()


def test_records_without_id_are_skipped(protocol_factory):
    index = build_index([protocol_factory(id=""), protocol_factory(id="a")])
    assert index.ids == ("a",)


def test_json_round_trip(snapshot):
    dumped = json.dumps(snapshot.index.to_dict())
    restored = SearchIndex.from_dict(json.loads(dumped))
    assert restored.to_dict() == snapshot.index.to_dict()
    assert restored.ports[443] == {"https", "tls", "websocket"}


def test_from_dict_rejects_unknown_format(snapshot):
    data = snapshot.index.to_dict()
    assert data["format"] == INDEX_FORMAT
    data["format"] = "something-else/9"
    with pytest.raises(ValueError):
        SearchIndex.from_dict(data)


def test_index_is_read_only(snapshot):
    with pytest.raises(TypeError):
        snapshot.index.postings["new"] = frozenset()
