#!/usr/bin/env python3
"""
Quiz Generator for protocolkb.

Turns a protocol's own advantages / disadvantages / use cases into
multiple-choice questions, with distractors drawn from other protocols.

Design:
- Correct answers come only from the protocol itself
- Distractors are statements of the same kind from other protocols,
  preferring the same category, falling back to the whole pool
- A distractor never matches (after normalization) anything the protocol
  itself says, and never overlaps the correct answer too closely
- No hidden global RNG: callers pass a seed or a random.Random
- Data sparsity is a result status, never an exception
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple

from protocolkb.catalog.model import Protocol, QuizQuestion
from protocolkb.catalog.rules_loader import EngineSettings, load_settings
from protocolkb.index.tokenizer import unique_terms
from protocolkb.validation.schema import normalize_text


class StatementKind(Enum):
    ADVANTAGE = "advantage"
    DISADVANTAGE = "disadvantage"
    USE_CASE = "use case"


_PROMPTS = {
    StatementKind.ADVANTAGE: "Which of the following is an advantage of {name}?",
    StatementKind.DISADVANTAGE: "Which of the following is a disadvantage of {name}?",
    StatementKind.USE_CASE: "Which of the following is a typical use case for {name}?",
}

_LIST_LABELS = {
    StatementKind.ADVANTAGE: "advantages",
    StatementKind.DISADVANTAGE: "disadvantages",
    StatementKind.USE_CASE: "use cases",
}


class QuizStatus(Enum):
    """
    Outcome of a generation request.

    - OK: all requested questions were built
    - INSUFFICIENT_STATEMENTS: the protocol has fewer statements than requested
    - INSUFFICIENT_POOL: the pool could not supply enough distinct distractors
    """
    OK = "OK"
    INSUFFICIENT_STATEMENTS = "INSUFFICIENT_STATEMENTS"
    INSUFFICIENT_POOL = "INSUFFICIENT_POOL"


@dataclass(frozen=True)
class QuizResult:
    """Questions built (possibly fewer than requested) and why any are missing."""
    status: QuizStatus
    protocol_id: str
    requested: int
    questions: Tuple[QuizQuestion, ...] = ()
    message: str = ""
    skipped_statements: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.status is QuizStatus.OK


def _statements(protocol: Protocol) -> List[Tuple[StatementKind, str]]:
    """Protocol statements in authoring order, de-duplicated by normalized text."""
    out: List[Tuple[StatementKind, str]] = []
    seen: Set[str] = set()
    for kind, items in (
        (StatementKind.ADVANTAGE, protocol.advantages),
        (StatementKind.DISADVANTAGE, protocol.disadvantages),
        (StatementKind.USE_CASE, protocol.use_cases),
    ):
        for text in items:
            key = normalize_text(text)
            if key and key not in seen:
                out.append((kind, text.strip()))
                seen.add(key)
    return out


def _overlap(a: str, b: str) -> float:
    """Jaccard overlap of the two statements' term sets."""
    ta, tb = set(unique_terms(a)), set(unique_terms(b))
    if not ta or not tb:
        return 0.0
    return len(ta & tb) / len(ta | tb)


def _candidate_pool(
    protocol: Protocol,
    pool: Sequence[Protocol],
) -> Dict[StatementKind, Tuple[List[str], List[str]]]:
    """
    Distractor candidates per kind as (same_category, other_category) lists,
    sorted and de-duplicated so sampling is reproducible for a given seed.
    """
    own = {normalize_text(text) for _, text in _statements(protocol)}
    buckets: Dict[StatementKind, Tuple[Dict[str, str], Dict[str, str]]] = {
        kind: ({}, {}) for kind in StatementKind
    }

    for other in sorted(pool, key=lambda p: p.id):
        if other.id == protocol.id:
            continue
        same = other.category == protocol.category
        for kind, text in _statements(other):
            key = normalize_text(text)
            if key in own:
                continue
            same_bucket, other_bucket = buckets[kind]
            if same:
                other_bucket.pop(key, None)
                same_bucket.setdefault(key, text)
            elif key not in same_bucket:
                other_bucket.setdefault(key, text)

    return {
        kind: (
            [same_bucket[k] for k in sorted(same_bucket)],
            [other_bucket[k] for k in sorted(other_bucket)],
        )
        for kind, (same_bucket, other_bucket) in buckets.items()
    }


def _pick_distractors(
    correct: str,
    same_category: List[str],
    other_category: List[str],
    needed: int,
    max_overlap: float,
    rng: random.Random,
) -> Optional[List[str]]:
    """Sample `needed` distinct distractors, same-category first. None if the pool is too small."""
    correct_key = normalize_text(correct)

    def usable(texts: List[str]) -> List[str]:
        return [
            t for t in texts
            if normalize_text(t) != correct_key and _overlap(t, correct) < max_overlap
        ]

    primary = usable(same_category)
    if len(primary) >= needed:
        return rng.sample(primary, needed)

    fallback = usable(other_category)
    if len(primary) + len(fallback) < needed:
        return None
    return primary + rng.sample(fallback, needed - len(primary))


def generate_questions(
    protocol: Protocol,
    pool: Sequence[Protocol],
    count: int,
    seed: Optional[int] = None,
    rng: Optional[random.Random] = None,
    settings: Optional[EngineSettings] = None,
) -> QuizResult:
    """
    Build up to `count` questions about `protocol`.

    Args:
        protocol: Validated protocol the questions are about
        pool: Other protocols to draw distractors from (protocol itself is ignored)
        count: Number of questions wanted (>= 1)
        seed: Deterministic mode; exactly one of seed / rng must be given
        rng: Caller-owned random source
        settings: Engine settings (options per question, overlap threshold)

    Returns: QuizResult; status tells whether the request was fully met

    Raises: ValueError for invalid parameters (programmer error)
    """
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ValueError(f"count must be a positive integer, got {count!r}")
    if (seed is None) == (rng is None):
        raise ValueError("Pass exactly one of seed or rng")
    if not protocol.id:
        raise ValueError("protocol has no id")

    settings = settings or load_settings()
    if settings.options_per_question < 2:
        raise ValueError("options_per_question must be >= 2")
    rng = rng if rng is not None else random.Random(seed)
    needed = settings.options_per_question - 1

    statements = _statements(protocol)
    if not statements:
        return QuizResult(
            status=QuizStatus.INSUFFICIENT_STATEMENTS,
            protocol_id=protocol.id,
            requested=count,
            message=f"{protocol.id} has no advantages, disadvantages or use cases to ask about",
        )

    candidates = _candidate_pool(protocol, pool)
    order = list(statements)
    rng.shuffle(order)

    questions: List[QuizQuestion] = []
    skipped: List[str] = []
    for kind, correct in order:
        if len(questions) == count:
            break
        same_category, other_category = candidates[kind]
        distractors = _pick_distractors(
            correct, same_category, other_category, needed, settings.max_distractor_overlap, rng,
        )
        if distractors is None:
            skipped.append(correct)
            continue

        options = [correct] + distractors
        rng.shuffle(options)
        questions.append(QuizQuestion(
            id=f"{protocol.id}-q{len(questions) + 1}",
            protocol_id=protocol.id,
            question=_PROMPTS[kind].format(name=protocol.name),
            options=tuple(options),
            correct_answer=options.index(correct),
            explanation=f"\"{correct}\" is one of the listed {_LIST_LABELS[kind]} of {protocol.name}. "
                        f"{protocol.short_description}".strip(),
        ))

    if len(questions) == count:
        status, message = QuizStatus.OK, ""
    elif skipped:
        status = QuizStatus.INSUFFICIENT_POOL
        message = (
            f"Built {len(questions)} of {count} questions: the pool lacks {needed} distinct "
            f"distractors for {len(skipped)} statement(s)"
        )
    else:
        status = QuizStatus.INSUFFICIENT_STATEMENTS
        message = f"Built {len(questions)} of {count} questions: {protocol.id} has only {len(statements)} statement(s)"

    return QuizResult(
        status=status,
        protocol_id=protocol.id,
        requested=count,
        questions=tuple(questions),
        message=message,
        skipped_statements=tuple(skipped),
    )
