#!/usr/bin/env python3
"""
Curated learning paths.

Each path is a named collection defined over category facets. Members are
ordered for teaching: Beginner -> Intermediate -> Advanced, then by id.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

from protocolkb.catalog.model import DIFFICULTY_RANK, Category
from protocolkb.index.search_index import SearchIndex


@dataclass(frozen=True)
class LearningPath:
    slug: str
    title: str
    description: str
    categories: Tuple[Category, ...]


LEARNING_PATHS: Tuple[LearningPath, ...] = (
    LearningPath("web-fundamentals", "Web Fundamentals",
                 "Start with HTTP, HTTPS, AJAX, and web protocols", (Category.WEB,)),
    LearningPath("file-transfer", "File Transfer",
                 "Learn FTP, SFTP, SCP, and secure file sharing", (Category.FILES,)),
    LearningPath("email-systems", "Email Systems",
                 "Master SMTP, IMAP, POP3, and email protocols", (Category.EMAIL,)),
    LearningPath("security-protocols", "Security Protocols",
                 "Understand SSH, TLS, SSL, mTLS, and security fundamentals", (Category.SECURITY,)),
    LearningPath("network-foundations", "Network Foundations",
                 "DNS, DHCP, TCP, and core networking protocols", (Category.NETWORK, Category.TRANSPORT)),
    LearningPath("realtime-communication", "Real-Time Communication",
                 "WebSockets, MQTT, and real-time protocols", (Category.REAL_TIME,)),
    LearningPath("apis-services", "APIs & Services",
                 "REST, GraphQL, gRPC, and modern API design", (Category.APIS,)),
    LearningPath("data-formats", "Data Formats",
                 "JSON, XML, and data interchange formats", (Category.DATA,)),
    LearningPath("infrastructure-cloud", "Infrastructure & Cloud",
                 "RADOS and distributed system protocols", (Category.INFRASTRUCTURE,)),
)

_BY_SLUG: Dict[str, LearningPath] = {p.slug: p for p in LEARNING_PATHS}


def get_path(slug: str) -> LearningPath:
    try:
        return _BY_SLUG[slug]
    except KeyError:
        raise KeyError(f"Unknown learning path: {slug}")


def path_members(index: SearchIndex, slug: str) -> List[str]:
    """Ids in a learning path, in teaching order."""
    path = get_path(slug)
    members = set()
    for category in path.categories:
        members |= index.categories.get(category.value, frozenset())

    rank: Dict[str, int] = {}
    for difficulty, ids in index.difficulties.items():
        for pid in ids:
            rank[pid] = DIFFICULTY_RANK.get(difficulty, len(DIFFICULTY_RANK))
    return sorted(members, key=lambda pid: (rank.get(pid, len(DIFFICULTY_RANK)), pid))


def all_paths(index: SearchIndex) -> Dict[str, List[str]]:
    """slug -> ordered member ids, for every learning path."""
    return {p.slug: path_members(index, p.slug) for p in LEARNING_PATHS}
