#!/usr/bin/env python3
"""
Data model classes for the protocol knowledge base.

Defines the record types fed into the engine (protocol entries and quiz
questions) and the report types produced by validation.

Design:
- Records are DATA, not code.
- Parsing never raises on malformed content; the validator decides.
- Optional fields stay None when absent so "omitted" and "present but empty"
  remain distinguishable.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


class Category(Enum):
    """Closed taxonomy of protocol categories."""
    WEB = "Web"
    FILES = "Files"
    EMAIL = "Email"
    SECURITY = "Security"
    TRANSPORT = "Transport"
    NETWORK = "Network"
    DIAGNOSTIC = "Diagnostic"
    INFRASTRUCTURE = "Infrastructure"
    MANAGEMENT = "Management"
    REAL_TIME = "Real Time"
    MICROSERVICES = "Microservices"
    APIS = "APIs"
    DATA = "Data"


class Difficulty(Enum):
    """Learning difficulty, in teaching order."""
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class ResourceType(Enum):
    """Allowed values for resources[].type."""
    RFC = "RFC"
    DOCUMENTATION = "Documentation"
    TUTORIAL = "Tutorial"
    TOOL = "Tool"
    LIBRARY = "Library"
    PLATFORM = "Platform"
    SPECIFICATION = "Specification"


CATEGORY_VALUES = frozenset(c.value for c in Category)
DIFFICULTY_VALUES = frozenset(d.value for d in Difficulty)
RESOURCE_TYPE_VALUES = frozenset(r.value for r in ResourceType)

# Teaching order used by learning paths
DIFFICULTY_RANK = {d.value: i for i, d in enumerate(Difficulty)}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _str_tuple(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(_text(v) for v in value)


def _optional_str_tuple(value: Any) -> Optional[Tuple[str, ...]]:
    if value is None:
        return None
    return _str_tuple(value)


def _optional_dict_tuple(value: Any) -> Optional[Tuple[Dict[str, Any], ...]]:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(dict(v) for v in value if isinstance(v, Mapping))


@dataclass(frozen=True)
class Example:
    """A titled code sample with an explanation."""
    title: str
    code: str
    explanation: str

    @classmethod
    def from_dict(cls, obj: Any) -> "Example":
        if not isinstance(obj, Mapping):
            return cls(title="", code="", explanation="")
        return cls(
            title=_text(obj.get("title")),
            code=_text(obj.get("code")),
            explanation=_text(obj.get("explanation")),
        )


@dataclass(frozen=True)
class Resource:
    """External reading material. `type` is kept raw so bad values can be reported."""
    title: str
    url: str
    type: str

    @classmethod
    def from_dict(cls, obj: Any) -> "Resource":
        if not isinstance(obj, Mapping):
            return cls(title="", url="", type="")
        return cls(
            title=_text(obj.get("title")),
            url=_text(obj.get("url")),
            type=_text(obj.get("type")),
        )


@dataclass(frozen=True)
class Protocol:
    """
    One documented protocol entry.

    Attributes:
        id: Lowercase slug, primary key (e.g. "http", "frame-relay")
        category: Raw category string (validated against Category)
        difficulty: Raw difficulty string (validated against Difficulty)
        related_protocols: Ids of other entries; may contain dangling ids
        port: Free text as authored (e.g. "80 (HTTP), 443 (HTTPS)")
    """
    id: str
    name: str
    category: str
    difficulty: str
    short_description: str
    full_description: str
    advantages: Tuple[str, ...] = ()
    disadvantages: Tuple[str, ...] = ()
    use_cases: Tuple[str, ...] = ()
    examples: Tuple[Example, ...] = ()
    related_protocols: Tuple[str, ...] = ()
    resources: Tuple[Resource, ...] = ()
    port: Optional[str] = None
    versions: Optional[Tuple[str, ...]] = None
    diagrams: Optional[Tuple[Dict[str, Any], ...]] = None
    common_commands: Optional[Tuple[Dict[str, Any], ...]] = None
    security_considerations: Optional[Tuple[str, ...]] = None
    modern_alternatives: Optional[Tuple[str, ...]] = None

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "Protocol":
        """Build a record from the camelCase source shape without validating it."""
        examples = obj.get("examples")
        resources = obj.get("resources")
        port = obj.get("port")
        return cls(
            id=_text(obj.get("id")).strip(),
            name=_text(obj.get("name")),
            category=_text(obj.get("category")),
            difficulty=_text(obj.get("difficulty")),
            short_description=_text(obj.get("shortDescription")),
            full_description=_text(obj.get("fullDescription")),
            advantages=_str_tuple(obj.get("advantages")),
            disadvantages=_str_tuple(obj.get("disadvantages")),
            use_cases=_str_tuple(obj.get("useCases")),
            examples=tuple(Example.from_dict(e) for e in examples) if isinstance(examples, (list, tuple)) else (),
            related_protocols=_str_tuple(obj.get("relatedProtocols")),
            resources=tuple(Resource.from_dict(r) for r in resources) if isinstance(resources, (list, tuple)) else (),
            port=None if port is None else _text(port),
            versions=_optional_str_tuple(obj.get("versions")),
            diagrams=_optional_dict_tuple(obj.get("diagrams")),
            common_commands=_optional_dict_tuple(obj.get("commonCommands")),
            security_considerations=_optional_str_tuple(obj.get("securityConsiderations")),
            modern_alternatives=_optional_str_tuple(obj.get("modernAlternatives")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the camelCase source shape. Absent optionals are omitted."""
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "difficulty": self.difficulty,
            "shortDescription": self.short_description,
            "fullDescription": self.full_description,
            "advantages": list(self.advantages),
            "disadvantages": list(self.disadvantages),
            "useCases": list(self.use_cases),
            "examples": [asdict(e) for e in self.examples],
            "relatedProtocols": list(self.related_protocols),
            "resources": [asdict(r) for r in self.resources],
        }
        optional = {
            "port": self.port,
            "versions": self.versions,
            "diagrams": self.diagrams,
            "commonCommands": self.common_commands,
            "securityConsiderations": self.security_considerations,
            "modernAlternatives": self.modern_alternatives,
        }
        for key, value in optional.items():
            if value is None:
                continue
            out[key] = value if isinstance(value, str) else [dict(v) if isinstance(v, dict) else v for v in value]
        return out


@dataclass(frozen=True)
class QuizQuestion:
    """
    A multiple-choice question about one protocol.

    Invariants (checked by validate_questions): at least two options,
    correct_answer indexes into options, protocol_id resolves.
    """
    id: str
    protocol_id: str
    question: str
    options: Tuple[str, ...]
    correct_answer: int
    explanation: str

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "QuizQuestion":
        answer = obj.get("correctAnswer")
        return cls(
            id=_text(obj.get("id")),
            protocol_id=_text(obj.get("protocolId")),
            question=_text(obj.get("question")),
            options=_str_tuple(obj.get("options")),
            correct_answer=answer if isinstance(answer, int) and not isinstance(answer, bool) else -1,
            explanation=_text(obj.get("explanation")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "protocolId": self.protocol_id,
            "question": self.question,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
        }


# ---------------------------------------------------------------------------
# Validation reports
# ---------------------------------------------------------------------------

class Severity(Enum):
    """
    Violation severity.

    - FATAL: blocks publishing the corpus
    - WARNING: surfaced as a build diagnostic, never blocks
    """
    FATAL = "fatal"
    WARNING = "warning"


@dataclass(frozen=True)
class Violation:
    """
    A single problem found in the corpus.

    Attributes:
        record_id: Offending record id, or "#<position>" when the id is unusable
        field: Source field name (camelCase, e.g. "relatedProtocols")
        severity: FATAL or WARNING
        code: Stable machine identifier (e.g. "duplicate_id")
        message: Human-readable explanation
    """
    record_id: str
    field: str
    severity: Severity
    code: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recordId": self.record_id,
            "field": self.field,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
        }


@dataclass
class ValidationReport:
    """Accumulated violations from one validation pass, in detection order."""
    violations: List[Violation] = field(default_factory=list)

    def add(
        self,
        record_id: str,
        field_name: str,
        severity: Severity,
        code: str,
        message: str,
    ) -> None:
        self.violations.append(Violation(record_id, field_name, severity, code, message))

    def extend(self, violations: Iterable[Violation]) -> None:
        self.violations.extend(violations)

    def merge(self, other: "ValidationReport") -> "ValidationReport":
        """Return a new report holding this report's violations followed by other's."""
        return ValidationReport(violations=list(self.violations) + list(other.violations))

    @property
    def fatal(self) -> List[Violation]:
        return [v for v in self.violations if v.severity is Severity.FATAL]

    @property
    def warnings(self) -> List[Violation]:
        return [v for v in self.violations if v.severity is Severity.WARNING]

    @property
    def has_fatal(self) -> bool:
        return any(v.severity is Severity.FATAL for v in self.violations)

    def for_record(self, record_id: str) -> List[Violation]:
        return [v for v in self.violations if v.record_id == record_id]

    def with_code(self, code: str) -> List[Violation]:
        return [v for v in self.violations if v.code == code]

    def counts(self) -> Dict[str, int]:
        """Counts by code."""
        out: Dict[str, int] = {}
        for v in self.violations:
            out[v.code] = out.get(v.code, 0) + 1
        return out

    def __len__(self) -> int:
        return len(self.violations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fatal": len(self.fatal),
            "warnings": len(self.warnings),
            "violations": [v.to_dict() for v in self.violations],
        }
