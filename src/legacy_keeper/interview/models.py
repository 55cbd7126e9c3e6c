"""Data models for forensic interviews and extracted knowledge."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

logger = logging.getLogger(__name__)


class ArtifactType(str, Enum):
    """Kinds of code artifact an interview can be anchored on."""

    PR = "PR"
    COMMIT = "COMMIT"
    TICKET = "TICKET"


class DocumentationLevel(str, Enum):
    """How well an artifact is documented."""

    NONE = "NONE"
    MINIMAL = "MINIMAL"
    ADEQUATE = "ADEQUATE"
    COMPREHENSIVE = "COMPREHENSIVE"


class KnowledgeCategory(str, Enum):
    """Fixed categories of tacit knowledge."""

    ARCHITECTURAL_DECISIONS = "architectural_decisions"
    BUSINESS_CONSTRAINTS = "business_constraints"
    TECHNICAL_DEBT = "technical_debt"
    PROCESS_KNOWLEDGE = "process_knowledge"
    RISK_FACTORS = "risk_factors"
    UNDOCUMENTED_DEPENDENCIES = "undocumented_dependencies"


@dataclass(frozen=True)
class CodeArtifact:
    """A PR, commit or ticket projected into interview context."""

    type: ArtifactType | str
    id: str
    title: str
    author: str = ""
    date: datetime | None = None
    complexity_indicators: tuple[str, ...] = ()
    documentation_level: DocumentationLevel = DocumentationLevel.MINIMAL
    repository: str = ""
    key_changes: tuple[str, ...] = ()

    def __post_init__(self):
        # Unknown type tags are kept as plain strings
        if isinstance(self.type, str) and not isinstance(self.type, ArtifactType):
            try:
                object.__setattr__(self, "type", ArtifactType(self.type))
            except ValueError:
                pass
        if isinstance(self.documentation_level, str) and not isinstance(
            self.documentation_level, DocumentationLevel
        ):
            try:
                level = DocumentationLevel(self.documentation_level)
            except ValueError:
                level = DocumentationLevel.MINIMAL
            object.__setattr__(self, "documentation_level", level)


@dataclass(frozen=True)
class Question:
    """An interview question, anchored on an artifact when one applies."""

    text: str
    type: str
    focus: str
    artifact_id: str | None = None
    follow_up: str | None = None


@dataclass(frozen=True)
class InterviewContext:
    """What the interviewer knows before the first question."""

    session_id: str
    employee_id: str
    undocumented_intensity_score: float = 0.0
    artifacts: tuple[CodeArtifact, ...] = ()
    department: str | None = None
    role: str | None = None

    def validate(self) -> list[str]:
        """Return a list of problems, empty when the context is usable."""
        errors = []
        if not self.session_id:
            errors.append("Session ID is required")
        if not self.employee_id:
            errors.append("Employee ID is required")
        if self.undocumented_intensity_score < 0:
            errors.append("Undocumented intensity score must be non-negative")
        return errors


@dataclass(frozen=True)
class InterviewResponse:
    """One answered interview question."""

    question: str
    answer: str
    artifact_id: str | None = None


def coerce_responses(raw: Any) -> list[InterviewResponse]:
    """Best-effort conversion of caller-supplied answers.

    Accepts InterviewResponse instances or mappings with ``question``,
    ``answer`` and optional ``artifact_id``/``artifactId`` keys. Anything else
    is dropped. Missing answers become empty strings.
    """
    if raw is None:
        return []
    if isinstance(raw, (str, bytes)) or not hasattr(raw, "__iter__"):
        logger.warning(f"Ignoring interview responses of type {type(raw).__name__}")
        return []

    responses = []
    for item in raw:
        if isinstance(item, InterviewResponse):
            responses.append(item)
        elif isinstance(item, Mapping):
            artifact_id = item.get("artifact_id", item.get("artifactId"))
            responses.append(
                InterviewResponse(
                    question=str(item.get("question") or ""),
                    answer=item["answer"] if isinstance(item.get("answer"), str) else "",
                    artifact_id=str(artifact_id) if artifact_id is not None else None,
                )
            )
        else:
            logger.debug(f"Dropping malformed interview response: {type(item).__name__}")
    return responses


@dataclass(frozen=True)
class CategorizedInsight:
    """A response filed under a knowledge category."""

    content: str
    source_artifact_id: str | None
    confidence: float
    response_index: int = 0


@dataclass(frozen=True)
class CriticalInsight:
    """Knowledge that needs attention before the employee leaves."""

    content: str
    artifact_id: str | None
    reason: str


@dataclass(frozen=True)
class TacitKnowledgeCategorization:
    """Categorized tacit knowledge for one interview.

    Read-only once built: categories and artifact mappings are exposed as
    read-only mappings of tuples.
    """

    session_id: str
    employee_id: str
    categories: Mapping[KnowledgeCategory, tuple[CategorizedInsight, ...]] = field(
        default_factory=lambda: {category: () for category in KnowledgeCategory}
    )
    artifact_mappings: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    critical_insights: tuple[CriticalInsight, ...] = ()
    confidence_score: float = 0.0
    extracted_at: datetime | None = None

    def __post_init__(self):
        categories = {category: () for category in KnowledgeCategory}
        categories.update({k: tuple(v) for k, v in self.categories.items()})
        object.__setattr__(self, "categories", MappingProxyType(categories))
        object.__setattr__(
            self,
            "artifact_mappings",
            MappingProxyType({k: tuple(v) for k, v in self.artifact_mappings.items()}),
        )
        object.__setattr__(self, "critical_insights", tuple(self.critical_insights))

    @property
    def populated_categories(self) -> list[KnowledgeCategory]:
        return [category for category, items in self.categories.items() if items]


@dataclass(frozen=True)
class KnowledgeArtifact:
    """Captured tacit knowledge plus links back to the artifacts it came from."""

    id: str
    employee_id: str
    title: str
    content: str
    tags: tuple[str, ...] = ()
    extracted_at: datetime | None = None
    confidence: float = 0.5
    related_tickets: tuple[str, ...] = ()
    related_prs: tuple[str, ...] = ()
    related_commits: tuple[str, ...] = ()
    source_artifacts: tuple[CodeArtifact, ...] = ()

    def validate(self) -> list[str]:
        """Return a list of problems, empty when the artifact can be archived."""
        errors = []
        if not self.id:
            errors.append("ID is required")
        if not self.employee_id:
            errors.append("Employee ID is required")
        if not self.title:
            errors.append("Title is required")
        if not self.content:
            errors.append("Content is required")
        if not 0.0 <= self.confidence <= 1.0:
            errors.append("Confidence must be between 0 and 1")
        return errors
