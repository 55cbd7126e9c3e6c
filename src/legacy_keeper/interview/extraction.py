"""Turn free-text interview answers into tagged, categorized knowledge.

Both entry points degrade on malformed or empty input instead of raising.
The one exception: an unexpected internal failure is logged and re-raised as
ExtractionError, which the workflow turns into a failed session.
"""

import dataclasses
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from legacy_keeper.exceptions import ExtractionError
from legacy_keeper.interview.models import (
    ArtifactType,
    CategorizedInsight,
    CriticalInsight,
    InterviewContext,
    InterviewResponse,
    KnowledgeArtifact,
    KnowledgeCategory,
    TacitKnowledgeCategorization,
    coerce_responses,
)

logger = logging.getLogger(__name__)

MAX_TAGS = 10
MAX_SYSTEM_MATCHES = 5

TECHNICAL_TERMS = (
    "api",
    "database",
    "integration",
    "deployment",
    "testing",
    "monitoring",
    "security",
    "performance",
    "architecture",
    "documentation",
    "process",
    "workflow",
    "automation",
    "configuration",
    "troubleshooting",
)

PROJECT_KEY_PATTERN = re.compile(r"[A-Z]+-\d+")
SYSTEM_NAME_PATTERN = re.compile(r'"([^"]+)"|([A-Z]{2,})')
DOMAIN_TERM_PATTERN = re.compile(
    r"\b(api|database|system|process|integration|deployment)\b", re.IGNORECASE
)

QUALITY_MARKERS = ("example", "process", "because")
REASONING_TERMS = ("because", "reason", "approach", "decision", "constraint")
EXAMPLE_MARKERS = ("example", "instance", "case")

BASELINE_CONFIDENCE = 0.5
CRITICAL_CONFIDENCE = 0.8
DEFAULT_CRITICAL_REASON = "High confidence knowledge"


@dataclass(frozen=True)
class CategoryRule:
    """Keyword group that files a response under a category."""

    category: KnowledgeCategory
    keywords: tuple[str, ...]
    bonus: float
    critical_reason: str | None = None


@dataclass(frozen=True)
class CategoryMatch:
    """One category a text was classified into."""

    category: KnowledgeCategory
    bonus: float
    critical_reason: str | None = None

    @property
    def is_critical(self) -> bool:
        return self.critical_reason is not None


DEFAULT_RULES = (
    CategoryRule(
        KnowledgeCategory.ARCHITECTURAL_DECISIONS, ("chose", "decided", "approach", "pattern"), 0.2
    ),
    CategoryRule(
        KnowledgeCategory.BUSINESS_CONSTRAINTS,
        ("requirement", "stakeholder", "business", "deadline"),
        0.2,
    ),
    CategoryRule(
        KnowledgeCategory.TECHNICAL_DEBT,
        ("compromise", "workaround", "hack", "temporary"),
        0.3,
        critical_reason="Technical debt requires careful handling",
    ),
    CategoryRule(
        KnowledgeCategory.PROCESS_KNOWLEDGE, ("process", "workflow", "procedure", "steps"), 0.2
    ),
    CategoryRule(
        KnowledgeCategory.RISK_FACTORS,
        ("break", "fail", "dangerous", "careful"),
        0.3,
        critical_reason="Risk factor requires immediate attention",
    ),
    CategoryRule(
        KnowledgeCategory.UNDOCUMENTED_DEPENDENCIES,
        ("depends", "relies", "assumes", "expects"),
        0.2,
    ),
)


class KnowledgeClassifier(Protocol):
    """Strategy that maps answer text to knowledge categories."""

    def classify(self, text: str) -> list[CategoryMatch]:
        ...


class KeywordClassifier:
    """Substring keyword heuristics over lower-cased answer text."""

    def __init__(self, rules: tuple[CategoryRule, ...] = DEFAULT_RULES):
        self.rules = rules

    def classify(self, text: str) -> list[CategoryMatch]:
        lowered = (text or "").lower()
        return [
            CategoryMatch(rule.category, rule.bonus, rule.critical_reason)
            for rule in self.rules
            if any(keyword in lowered for keyword in rule.keywords)
        ]


# Shallow extraction


def extract_tags(content: str) -> list[str]:
    """Derive up to ten tags from interview content.

    Technical vocabulary terms come first, then ``project:<KEY-123>`` for
    ticket-like identifiers and ``system:<name>`` for quoted or all-caps
    tokens.
    """
    if not content:
        return []

    tags: list[str] = []

    def add(tag: str) -> None:
        if tag not in tags:
            tags.append(tag)

    lowered = content.lower()
    for term in TECHNICAL_TERMS:
        if term in lowered:
            add(term)

    for match in PROJECT_KEY_PATTERN.findall(content):
        add(f"project:{match}")

    for match in list(SYSTEM_NAME_PATTERN.finditer(content))[:MAX_SYSTEM_MATCHES]:
        cleaned = match.group(0).replace('"', "").lower()
        if 2 < len(cleaned) < 20:
            add(f"system:{cleaned}")

    return tags[:MAX_TAGS]


def _response_quality(answer: str) -> float:
    score = 0.0
    length = len(answer)
    if length > 100:
        score += 0.3
    elif length > 50:
        score += 0.2
    elif length > 20:
        score += 0.1

    lowered = answer.lower()
    for marker in QUALITY_MARKERS:
        if marker in lowered:
            score += 0.1

    score += min(len(DOMAIN_TERM_PATTERN.findall(answer)) * 0.05, 0.2)
    return min(score, 1.0)


def calculate_response_confidence(responses: list[InterviewResponse]) -> float:
    """Average per-response quality, in [0, 1]; 0 for no responses."""
    if not responses:
        return 0.0
    total = sum(_response_quality(r.answer or "") for r in responses)
    return min(total / len(responses), 1.0)


def format_responses(responses: list[InterviewResponse]) -> str:
    """Numbered question/answer narrative."""
    return "\n".join(
        f"**Question {index}:** {r.question}\n**Response:** {r.answer}\n"
        for index, r in enumerate(responses, start=1)
    )


def _related_ids(context: InterviewContext | None, artifact_type: ArtifactType) -> tuple[str, ...]:
    if context is None:
        return ()
    return tuple(a.id for a in context.artifacts if a.type == artifact_type and a.id)


def extract_knowledge(responses: Any, context: InterviewContext | None = None) -> KnowledgeArtifact:
    """Concatenate answers into a tagged, confidence-scored knowledge artifact.

    Args:
        responses: Interview responses (instances or dicts); junk is ignored
        context: Interview context supplying employee, role and artifacts

    Returns:
        KnowledgeArtifact with confidence 0 when there is nothing to score

    Raises:
        ExtractionError: On an unexpected internal failure
    """
    try:
        items = coerce_responses(responses)
        content = format_responses(items)
        role = context.role if context and context.role else "Unknown Role"
        artifact = KnowledgeArtifact(
            id=f"knowledge_{uuid.uuid4().hex[:12]}",
            employee_id=context.employee_id if context else "",
            title=f"Knowledge Transfer Session - {role}",
            content=content,
            tags=tuple(extract_tags(content)),
            extracted_at=datetime.now(timezone.utc),
            confidence=calculate_response_confidence(items),
            related_tickets=_related_ids(context, ArtifactType.TICKET),
            related_prs=_related_ids(context, ArtifactType.PR),
            related_commits=_related_ids(context, ArtifactType.COMMIT),
            source_artifacts=context.artifacts if context else (),
        )
    except Exception as e:
        logger.error(f"Failed to extract knowledge from responses: {e}")
        raise ExtractionError("Knowledge extraction failed") from e

    logger.info(f"Extracted knowledge artifact {artifact.id} (confidence {artifact.confidence:.2f})")
    return artifact


# Deep categorization


def _insight_confidence(answer: str, matches: list[CategoryMatch]) -> float:
    confidence = BASELINE_CONFIDENCE + sum(m.bonus for m in matches)
    if len(answer) > 200:
        confidence += 0.1
    lowered = answer.lower()
    if any(marker in lowered for marker in EXAMPLE_MARKERS):
        confidence += 0.1
    return min(confidence, 1.0)


def calculate_tacit_confidence(
    responses: list[InterviewResponse], categorization: TacitKnowledgeCategorization
) -> float:
    """Length-weighted response confidence plus diversity and critical bonuses.

    Each response weighs ``min(len/100, 2)``, so empty answers carry no
    weight and an all-empty interview scores exactly 0.
    """
    if not responses:
        return 0.0

    total = 0.0
    total_weight = 0.0
    for response in responses:
        answer = response.answer or ""
        weight = min(len(answer) / 100, 2)
        confidence = 0.5
        if len(answer) > 100:
            confidence += 0.2
        if len(answer) > 300:
            confidence += 0.2
        lowered = answer.lower()
        confidence += 0.1 * sum(1 for term in REASONING_TERMS if term in lowered)
        total += confidence * weight
        total_weight += weight

    base = total / total_weight if total_weight > 0 else 0.0
    category_bonus = min(len(categorization.populated_categories) * 0.05, 0.2)
    critical_bonus = min(len(categorization.critical_insights) * 0.03, 0.15)
    return min(base + category_bonus + critical_bonus, 1.0)


def extract_tacit_knowledge(
    responses: Any,
    context: InterviewContext | None = None,
    classifier: KnowledgeClassifier | None = None,
) -> TacitKnowledgeCategorization:
    """Classify answers into the six tacit-knowledge categories.

    A response matching several keyword groups is filed under each of them.

    Raises:
        ExtractionError: On an unexpected internal failure
    """
    classifier = classifier or KeywordClassifier()
    session_id = context.session_id if context else ""
    categories: dict[KnowledgeCategory, list[CategorizedInsight]] = {
        category: [] for category in KnowledgeCategory
    }
    artifact_mappings: dict[str, list[str]] = {}
    critical_insights: list[CriticalInsight] = []

    try:
        items = coerce_responses(responses)
        for index, response in enumerate(items):
            answer = response.answer or ""
            if not answer:
                continue

            matches = classifier.classify(answer)
            confidence = _insight_confidence(answer, matches)

            for match in matches:
                categories[match.category].append(
                    CategorizedInsight(
                        content=answer,
                        source_artifact_id=response.artifact_id,
                        confidence=confidence,
                        response_index=index,
                    )
                )

            if response.artifact_id:
                artifact_mappings.setdefault(response.artifact_id, []).append(answer)

            critical = next((m for m in matches if m.is_critical), None)
            if confidence > CRITICAL_CONFIDENCE or critical is not None:
                critical_insights.append(
                    CriticalInsight(
                        content=answer,
                        artifact_id=response.artifact_id,
                        reason=critical.critical_reason if critical else DEFAULT_CRITICAL_REASON,
                    )
                )

        result = TacitKnowledgeCategorization(
            session_id=session_id,
            employee_id=context.employee_id if context else "",
            categories=categories,
            artifact_mappings=artifact_mappings,
            critical_insights=tuple(critical_insights),
            extracted_at=datetime.now(timezone.utc),
        )
        result = dataclasses.replace(
            result, confidence_score=calculate_tacit_confidence(items, result)
        )
    except Exception as e:
        logger.error(f"Failed to extract tacit knowledge for session {session_id}: {e}")
        raise ExtractionError("Tacit knowledge extraction failed") from e

    logger.info(
        f"Tacit knowledge extracted for session {result.session_id}: "
        f"{len(result.populated_categories)} categories, "
        f"{len(result.critical_insights)} critical insights, "
        f"confidence {result.confidence_score:.2f}"
    )
    return result
