#!/usr/bin/env python3
"""
Deterministic tokenizer shared by the index builder and the query engine.

- ASCII-fold (NFKD, drop non-ASCII), lowercase
- Split on anything that is not a-z / 0-9
- No stemming, no stop words: identical input always yields identical terms
"""
from __future__ import annotations

import re
import unicodedata
from typing import FrozenSet, List, Optional

_SPLIT = re.compile(r"[^a-z0-9]+")

# Port text that names no TCP/UDP port at all
_NO_PORTS = re.compile(r"^\s*(?:n/a|layer\b)|\bnot?\s+tcp/udp\b", re.IGNORECASE)

# Protocol numbers, type codes, OSI layers and offsets, not ports
_NOT_A_PORT = re.compile(
    r"(?:protocol\s+(?:number|id)|ip\s+protocol|types?|ethertype|layer)\s*[:#]?\s*((?:\d+\s*(?:,|/|and)?\s*)+)"
    r"|\d+\s*\(\s*ip\s+protocol\s*\)"
    r"|port\s*\+\s*\d+",
    re.IGNORECASE,
)
_PORT_RANGE = re.compile(r"(?<![\w.])(\d{1,5})\s*-\s*(\d{1,5})(?![\w.])")
_PORT_NUMBER = re.compile(r"(?<![\w.])(\d{1,5})(?![\w.])")

MAX_PORT = 65535


def fold(text: str) -> str:
    """ASCII-fold and lowercase."""
    decomposed = unicodedata.normalize("NFKD", text)
    return decomposed.encode("ascii", "ignore").decode("ascii").lower()


def tokenize(text: Optional[str]) -> List[str]:
    """Split text into terms, keeping order and duplicates."""
    if not text:
        return []
    return [t for t in _SPLIT.split(fold(text)) if t]


def unique_terms(text: Optional[str]) -> List[str]:
    """Tokenize and de-duplicate, preserving first-seen order."""
    out: List[str] = []
    seen = set()
    for term in tokenize(text):
        if term not in seen:
            out.append(term)
            seen.add(term)
    return out


def extract_ports(port_text: Optional[str]) -> FrozenSet[int]:
    """
    Pull TCP/UDP port numbers out of the free-text port field.

    "80 (HTTP), 443 (HTTPS)" -> {80, 443}
    "6881-6889 (default range)" -> {6881, ..., 6889}
    "N/A (IP protocol number 50)" -> {}
    "Layer 2 (no TCP/UDP)" -> {}
    "88 (IP Protocol), UDP for Hello packets" -> {}
    "UDP port 4791 (RoCEv2), Ethertype 0x8915 (RoCEv1)" -> {4791}
    """
    if not port_text or _NO_PORTS.search(port_text):
        return frozenset()

    text = _NOT_A_PORT.sub(" ", port_text)
    ports = set()
    for m in _PORT_RANGE.finditer(text):
        lo, hi = int(m.group(1)), int(m.group(2))
        if 0 < lo <= hi <= MAX_PORT:
            ports.update(range(lo, hi + 1))
    text = _PORT_RANGE.sub(" ", text)

    for m in _PORT_NUMBER.finditer(text):
        n = int(m.group(1))
        if 0 < n <= MAX_PORT:
            ports.add(n)
    return frozenset(ports)
