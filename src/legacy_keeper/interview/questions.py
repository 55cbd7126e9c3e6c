"""Artifact-anchored forensic interview questions."""

import logging
from dataclasses import dataclass

from legacy_keeper.activity.models import IntensityReport
from legacy_keeper.interview.models import (
    ArtifactType,
    CodeArtifact,
    DocumentationLevel,
    InterviewContext,
    Question,
)

logger = logging.getLogger(__name__)

MAX_CROSS_ARTIFACT_IDS = 3
MINIMAL_DOC_COMPLEXITY = 8  # Changes this complex are treated as minimally documented

FALLBACK_QUESTIONS = (
    Question(
        text="What are the most critical pieces of undocumented knowledge in your area of work?",
        type="general",
        focus="tacit_knowledge",
    ),
    Question(
        text=(
            "What would be the biggest risk if someone took over your work "
            "without proper knowledge transfer?"
        ),
        type="general",
        focus="risk_assessment",
    ),
)

CROSS_CUTTING_QUESTIONS = (
    "What patterns or principles guide your decision-making that aren't written down anywhere?",
    "What would you want your replacement to know about the codebase that they can't learn "
    "from documentation?",
    "What are the most dangerous assumptions someone could make about your work?",
)


def artifacts_from_report(report: IntensityReport) -> list[CodeArtifact]:
    """Project a report's critical tickets, complex changes and notable commits into artifacts."""
    key_changes = {context.pr_id: context.key_changes for context in report.diff_contexts}
    artifacts = []
    for ticket in report.critical_tickets:
        artifacts.append(
            CodeArtifact(
                type=ArtifactType.TICKET,
                id=ticket.reference,
                title=ticket.title,
                author=ticket.author,
                date=ticket.updated,
                complexity_indicators=("high_activity", "low_documentation"),
                documentation_level=(
                    DocumentationLevel.NONE
                    if ticket.documentation_signal == 0
                    else DocumentationLevel.MINIMAL
                ),
            )
        )
    for change in report.high_complexity_changes:
        artifacts.append(
            CodeArtifact(
                type=ArtifactType.PR,
                id=change.id,
                title=change.title,
                author=change.author,
                date=change.updated,
                complexity_indicators=(
                    f"complexity_{change.complexity_score}",
                    f"files_{change.files_changed}",
                    f"lines_{change.total_lines_changed}",
                ),
                documentation_level=(
                    DocumentationLevel.MINIMAL
                    if change.complexity_score >= MINIMAL_DOC_COMPLEXITY
                    else DocumentationLevel.ADEQUATE
                ),
                repository=change.repository,
                key_changes=key_changes.get(change.id, ()),
            )
        )
    for commit in report.notable_commits:
        artifacts.append(
            CodeArtifact(
                type=ArtifactType.COMMIT,
                id=commit.hash,
                title=commit.title,
                author=commit.author,
                date=commit.date,
                complexity_indicators=(
                    f"files_{commit.files_changed}",
                    f"lines_{commit.lines_changed}",
                ),
                repository=commit.repository,
            )
        )
    return artifacts


def _pr_questions(artifact: CodeArtifact) -> list[Question]:
    pr = f"PR #{artifact.id}"
    questions = [
        Question(
            text=(
                f'Looking at {pr} "{artifact.title}", why did you choose this specific '
                "implementation approach over alternatives?"
            ),
            type=ArtifactType.PR.value,
            artifact_id=artifact.id,
            focus="implementation_rationale",
            follow_up=(
                f"What constraints or requirements influenced your decision in {pr} "
                "that aren't obvious from the code?"
            ),
        ),
        Question(
            text=(
                f"In {pr}, what would break or behave unexpectedly if someone modified "
                "your changes without understanding your design decisions?"
            ),
            type=ArtifactType.PR.value,
            artifact_id=artifact.id,
            focus="maintenance_risks",
            follow_up=f"What tribal knowledge is essential for maintaining the code from {pr}?",
        ),
    ]
    if artifact.complexity_indicators:
        indicators = ", ".join(artifact.complexity_indicators)
        questions.append(
            Question(
                text=(
                    f"{pr} shows high complexity indicators ({indicators}). What makes this "
                    "change particularly complex that isn't documented?"
                ),
                type=ArtifactType.PR.value,
                artifact_id=artifact.id,
                focus="complexity_rationale",
            )
        )
    if artifact.key_changes:
        questions.append(
            Question(
                text=(
                    f"The diff of {pr} shows: {'; '.join(artifact.key_changes)}. Which of these "
                    "changes carries knowledge a reviewer could not see from the diff alone?"
                ),
                type=ArtifactType.PR.value,
                artifact_id=artifact.id,
                focus="change_scope",
            )
        )
    return questions


def _commit_questions(artifact: CodeArtifact) -> list[Question]:
    short_hash = artifact.id[:8]
    return [
        Question(
            text=(
                f"In commit {short_hash}, you made significant changes to {artifact.title}. "
                "What was the reasoning behind this architectural decision?"
            ),
            type=ArtifactType.COMMIT.value,
            artifact_id=artifact.id,
            focus="architectural_decision",
            follow_up=(
                f"What alternative approaches did you consider for commit {short_hash} "
                "and why did you reject them?"
            ),
        ),
        Question(
            text=(
                f"Looking at commit {short_hash}, what edge cases or scenarios were you "
                "anticipating that led to this specific implementation?"
            ),
            type=ArtifactType.COMMIT.value,
            artifact_id=artifact.id,
            focus="edge_case_handling",
        ),
    ]


def _ticket_questions(artifact: CodeArtifact) -> list[Question]:
    questions = [
        Question(
            text=(
                f'For ticket {artifact.id} "{artifact.title}", what undocumented constraints '
                "or business requirements influenced your solution?"
            ),
            type=ArtifactType.TICKET.value,
            artifact_id=artifact.id,
            focus="business_constraints",
            follow_up=(
                f"What stakeholder discussions or decisions shaped the approach in "
                f"{artifact.id} that aren't captured in the ticket?"
            ),
        ),
        Question(
            text=(
                f"In {artifact.id}, what technical debt or compromises did you have to make, "
                "and why were they necessary?"
            ),
            type=ArtifactType.TICKET.value,
            artifact_id=artifact.id,
            focus="technical_debt",
        ),
    ]
    if artifact.documentation_level in (DocumentationLevel.NONE, DocumentationLevel.MINIMAL):
        questions.append(
            Question(
                text=(
                    f"{artifact.id} has minimal documentation. What critical knowledge about "
                    "this work exists only in your head?"
                ),
                type=ArtifactType.TICKET.value,
                artifact_id=artifact.id,
                focus="undocumented_knowledge",
            )
        )
    return questions


def _unknown_questions(artifact: CodeArtifact) -> list[Question]:
    label = artifact.id or artifact.title
    return [
        Question(
            text=f"Regarding {label}, what critical context would be lost if you weren't here to explain it?",
            type="unknown",
            artifact_id=artifact.id or None,
            focus="general_context",
        )
    ]


QUESTION_BUILDERS = {
    ArtifactType.PR: _pr_questions,
    ArtifactType.COMMIT: _commit_questions,
    ArtifactType.TICKET: _ticket_questions,
}


def generate_artifact_questions(artifacts: list[CodeArtifact] | None) -> list[Question]:
    """Generate forensic questions that reference each artifact by id or title.

    Args:
        artifacts: Artifacts to interview about (may be empty)

    Returns:
        Two generic fallback questions for empty input; otherwise per-artifact
        questions plus one cross-artifact integration question when more than
        one artifact is given.
    """
    if not artifacts:
        return list(FALLBACK_QUESTIONS)

    questions: list[Question] = []
    for artifact in artifacts:
        builder = QUESTION_BUILDERS.get(artifact.type, _unknown_questions)
        questions.extend(builder(artifact))

    if len(artifacts) > 1:
        artifact_ids = ", ".join(a.id for a in artifacts[:MAX_CROSS_ARTIFACT_IDS])
        questions.append(
            Question(
                text=(
                    f"Looking at the relationship between {artifact_ids}, how do these pieces "
                    "work together in ways that aren't documented?"
                ),
                type="cross_artifact",
                focus="system_integration",
            )
        )

    logger.debug(f"Generated {len(questions)} questions for {len(artifacts)} artifacts")
    return questions


@dataclass(frozen=True)
class InterviewPhase:
    """A stage of the interview script."""

    phase: str
    prompts: tuple[str, ...] = ()
    questions: tuple[Question, ...] = ()


def build_interview_flow(
    context: InterviewContext, questions: list[Question]
) -> list[InterviewPhase]:
    """Opening, artifact deep-dive and cross-cutting phases of the interview."""
    opening = [
        (
            "I'm conducting a forensic knowledge extraction session. Your recent activity "
            f"includes {len(context.artifacts)} artifacts with high undocumented intensity."
        ),
        (
            f"Your undocumented intensity score is {context.undocumented_intensity_score:.2f}, "
            "indicating tacit knowledge that needs to be captured."
        ),
        (
            "I'll ask specific questions about your PRs, commits and tickets to capture "
            'the "why" behind your decisions.'
        ),
    ]
    return [
        InterviewPhase(phase="opening", prompts=tuple(opening)),
        InterviewPhase(phase="artifact_deep_dive", questions=tuple(questions)),
        InterviewPhase(phase="cross_cutting_concerns", prompts=CROSS_CUTTING_QUESTIONS),
    ]
