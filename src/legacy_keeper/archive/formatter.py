"""Render knowledge artifacts as markdown Legacy Documents."""

import logging
import re

from legacy_keeper.activity.models import IntensityReport
from legacy_keeper.archive.models import ArtifactLink, FormattedArtifact
from legacy_keeper.interview.models import (
    ArtifactType,
    CodeArtifact,
    InterviewResponse,
    KnowledgeArtifact,
    KnowledgeCategory,
    TacitKnowledgeCategorization,
)

logger = logging.getLogger(__name__)

MAX_WORKFLOW_TAGS = 10

NO_RESPONSES_CONTENT = (
    "No interview responses captured. This knowledge artifact was generated from automated "
    "analysis of code artifacts and undocumented intensity patterns."
)

CATEGORY_TITLES = {
    KnowledgeCategory.ARCHITECTURAL_DECISIONS: "Architectural Decisions",
    KnowledgeCategory.BUSINESS_CONSTRAINTS: "Business Constraints",
    KnowledgeCategory.TECHNICAL_DEBT: "Technical Debt",
    KnowledgeCategory.PROCESS_KNOWLEDGE: "Process Knowledge",
    KnowledgeCategory.RISK_FACTORS: "Risk Factors",
    KnowledgeCategory.UNDOCUMENTED_DEPENDENCIES: "Undocumented Dependencies",
}


def _slug(value: str) -> str:
    return re.sub(r"\s+", "-", value.strip().lower())


def _date(artifact: CodeArtifact) -> str:
    return artifact.date.strftime("%Y-%m-%d") if artifact.date else "unknown date"


def format_interview_content(
    responses: list[InterviewResponse],
    categorization: TacitKnowledgeCategorization | None = None,
) -> str:
    """Narrative body of the archived interview."""
    if not responses:
        return NO_RESPONSES_CONTENT

    lines = ["# Cognitive Offboarding Interview Results", "", "## Interview Responses", ""]
    for index, response in enumerate(responses, start=1):
        lines += [f"**Question {index}:** {response.question}", "", f"**Response:** {response.answer}", ""]
        if response.artifact_id:
            lines += [f"*Related to artifact: {response.artifact_id}*", ""]
        lines += ["---", ""]

    if categorization and categorization.critical_insights:
        lines += ["## Critical Insights Extracted", ""]
        for index, insight in enumerate(categorization.critical_insights, start=1):
            lines += [f"{index}. **{insight.reason}**", f"   {insight.content}", ""]

    return "\n".join(lines)


def extract_workflow_tags(
    report: IntensityReport,
    department: str | None = None,
    role: str | None = None,
    categorization: TacitKnowledgeCategorization | None = None,
) -> list[str]:
    """Tags describing the offboarding session, at most ten."""
    tags = [
        "cognitive-offboarding",
        f"risk-{report.risk_level.value.lower()}",
        f"intensity-{round(report.undocumented_intensity_score)}",
    ]
    if department and department != "Unknown":
        tags.append(f"dept-{_slug(department)}")
    if role and role != "Unknown":
        tags.append(f"role-{_slug(role)}")
    if report.critical_tickets:
        tags.append("jira-tickets")
    if report.high_complexity_changes:
        tags.append("complex-prs")
    if categorization:
        for category in categorization.populated_categories:
            tags.append(f"knowledge-{category.value.replace('_', '-')}")
    return tags[:MAX_WORKFLOW_TAGS]


def extract_artifact_links(
    artifact: KnowledgeArtifact,
    jira_url: str = "",
    bitbucket_web_url: str = "",
) -> list[ArtifactLink]:
    """External links for every ticket, PR and commit the artifact references.

    Pull request and commit links include the repository slug when a source
    artifact names one.
    """
    jira_url = jira_url.rstrip("/")
    bitbucket_web_url = bitbucket_web_url.rstrip("/")
    repositories = {
        (source.type, source.id): source.repository
        for source in artifact.source_artifacts
        if source.repository
    }

    def repo_url(artifact_type: ArtifactType, artifact_id: str) -> tuple[str, str]:
        repository = repositories.get((artifact_type, artifact_id), "")
        base = f"{bitbucket_web_url}/{repository}" if repository else bitbucket_web_url
        return base, repository

    links = [
        ArtifactLink("TICKET", key, f"{jira_url}/browse/{key}", f"Ticket {key}")
        for key in artifact.related_tickets
    ]
    for pr_id in artifact.related_prs:
        base, repository = repo_url(ArtifactType.PR, pr_id)
        links.append(
            ArtifactLink(
                "PULL_REQUEST",
                pr_id,
                f"{base}/pull-requests/{pr_id}",
                f"Pull Request #{pr_id}",
                repository,
            )
        )
    for sha in artifact.related_commits:
        base, repository = repo_url(ArtifactType.COMMIT, sha)
        links.append(
            ArtifactLink("COMMIT", sha, f"{base}/commits/{sha}", f"Commit {sha[:8]}", repository)
        )
    return links


def _artifact_references(artifact: KnowledgeArtifact) -> list[str]:
    lines = ["## Source Artifacts", ""]
    if not artifact.source_artifacts:
        return lines + ["No specific artifacts were identified for this knowledge transfer session.", ""]

    lines += ["This knowledge is directly linked to the following code artifacts:", ""]
    grouped: dict[ArtifactType, list[CodeArtifact]] = {t: [] for t in ArtifactType}
    for source in artifact.source_artifacts:
        if source.type in grouped:
            grouped[source.type].append(source)

    if grouped[ArtifactType.PR]:
        lines.append("### Pull Requests")
        for pr in grouped[ArtifactType.PR]:
            lines.append(f"- **PR #{pr.id}**: {pr.title} ({_date(pr)}) - {pr.author}")
            if pr.complexity_indicators:
                lines.append(f"  - Complexity indicators: {', '.join(pr.complexity_indicators)}")
            lines.append(f"  - Documentation level: {pr.documentation_level.value}")
            if pr.key_changes:
                lines.append(f"  - Key changes: {'; '.join(pr.key_changes)}")
        lines.append("")

    if grouped[ArtifactType.COMMIT]:
        lines.append("### Commits")
        for commit in grouped[ArtifactType.COMMIT]:
            lines.append(f"- **{commit.id[:8]}**: {commit.title} ({_date(commit)}) - {commit.author}")
        lines.append("")

    if grouped[ArtifactType.TICKET]:
        lines.append("### Tickets")
        for ticket in grouped[ArtifactType.TICKET]:
            lines.append(f"- **{ticket.id}**: {ticket.title} ({_date(ticket)}) - {ticket.author}")
            lines.append(f"  - Documentation level: {ticket.documentation_level.value}")
        lines.append("")

    return lines


def _tacit_summary(categorization: TacitKnowledgeCategorization) -> list[str]:
    lines = [
        "## Tacit Knowledge Analysis",
        "",
        f"**Extraction Confidence:** {round(categorization.confidence_score * 100)}%",
        "",
    ]
    if categorization.critical_insights:
        lines += ["### Critical Insights", ""]
        for index, insight in enumerate(categorization.critical_insights, start=1):
            lines += [f"{index}. **{insight.reason}**", f"   {insight.content}"]
            if insight.artifact_id:
                lines.append(f"   *Related to: {insight.artifact_id}*")
            lines.append("")

    for category in categorization.populated_categories:
        lines += [f"### {CATEGORY_TITLES[category]}", ""]
        for index, item in enumerate(categorization.categories[category], start=1):
            lines.append(f"{index}. {item.content}")
            if item.source_artifact_id:
                lines.append(f"   *Related to: {item.source_artifact_id}*")
            lines.append("")
    return lines


def _bidirectional_links(artifact: KnowledgeArtifact) -> list[str]:
    lines = ["The following artifacts should be updated to reference this Legacy Document:", ""]
    if artifact.related_tickets:
        lines.append("**Tickets to Update:**")
        lines += [
            f'- Add comment to {key}: "Critical knowledge documented in Legacy Document: [Link to this page]"'
            for key in artifact.related_tickets
        ]
        lines.append("")
    if artifact.related_prs:
        lines.append("**Pull Requests to Reference:**")
        lines += [
            f"- PR #{pr_id}: Add comment linking to this Legacy Document for context"
            for pr_id in artifact.related_prs
        ]
        lines.append("")
    if artifact.related_commits:
        lines.append("**Related Commits:**")
        lines += [
            f"- {sha[:8]}: Context and rationale documented in this Legacy Document"
            for sha in artifact.related_commits
        ]
        lines.append("")
    return lines


def format_for_archival(
    artifact: KnowledgeArtifact,
    categorization: TacitKnowledgeCategorization | None = None,
    jira_url: str = "",
    bitbucket_web_url: str = "",
) -> FormattedArtifact:
    """Render a knowledge artifact as a Legacy Document.

    Args:
        artifact: The knowledge artifact to archive
        categorization: Tacit knowledge analysis to embed, if any
        jira_url: Base URL for ticket links
        bitbucket_web_url: Base URL for pull request and commit links

    Returns:
        FormattedArtifact with markdown content, artifact links and metadata
    """
    extracted_at = artifact.extracted_at.isoformat() if artifact.extracted_at else "unknown"
    lines = [
        f"# Legacy Document: {artifact.title}",
        "",
        f"**Employee:** {artifact.employee_id}",
        f"**Extraction Date:** {extracted_at}",
        f"**Confidence Level:** {round(artifact.confidence * 100)}%",
        "**Knowledge Type:** Tacit Knowledge Transfer",
        "",
    ]
    lines += _artifact_references(artifact)
    lines += ["## Captured Knowledge", "", artifact.content, ""]
    if categorization is not None:
        lines += _tacit_summary(categorization)
    lines += ["## Source Artifact Links", ""]
    lines += _bidirectional_links(artifact)
    lines += [
        "## Metadata",
        "",
        f"**Tags:** {', '.join(artifact.tags)}",
        f"**Related Tickets:** {', '.join(artifact.related_tickets)}",
        f"**Related Pull Requests:** {', '.join(artifact.related_prs)}",
        f"**Related Commits:** {', '.join(artifact.related_commits)}",
        f"**Source Artifacts Count:** {len(artifact.source_artifacts)}",
        "",
        "---",
        f"*Generated by Legacy Keeper during a cognitive offboarding session on {extracted_at}.*",
    ]

    return FormattedArtifact(
        title=f"Legacy Document: {artifact.title}",
        content="\n".join(lines),
        artifact_links=extract_artifact_links(artifact, jira_url, bitbucket_web_url),
        metadata={
            "knowledge_artifact_id": artifact.id,
            "employee_id": artifact.employee_id,
            "extracted_at": extracted_at,
            "confidence": artifact.confidence,
            "artifact_count": len(artifact.source_artifacts),
            "linked_tickets": list(artifact.related_tickets),
            "linked_prs": list(artifact.related_prs),
            "linked_commits": list(artifact.related_commits),
            "source_artifact_ids": [a.id for a in artifact.source_artifacts],
        },
    )
