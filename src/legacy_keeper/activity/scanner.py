"""Undocumented-intensity scanning over a trailing activity window."""

import dataclasses
import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from legacy_keeper.activity.models import (
    ActivityRecord,
    ChangeRequest,
    Commit,
    IntensityReport,
    RiskLevel,
    ScanQuery,
    ScanResponse,
    ScanSummary,
    Ticket,
)
from legacy_keeper.activity.normalizer import normalize_records, subtract_months
from legacy_keeper.activity.sources import ActivitySource
from legacy_keeper.exceptions import user_message

logger = logging.getLogger(__name__)

# Default thresholds
DEFAULT_WINDOW_MONTHS = 6
DEFAULT_MAX_DOC_SIGNAL = 3  # Critical at or below this many doc references
DEFAULT_MIN_SUMMARY_LENGTH = 50  # Critical only above this summary length
DEFAULT_COMPLEXITY_THRESHOLD = 6
DEFAULT_RISK_LOW = 1.5
DEFAULT_RISK_HIGH = 3.0
MAX_COMPLEXITY_SCORE = 10
WORKLOAD_TICKET_LIMIT = 10
DEFAULT_NOTABLE_COMMIT_LINES = 200
NOTABLE_COMMIT_LIMIT = 5

COMPLEXITY_KEYWORDS = ("refactor", "architecture", "migration", "breaking", "major")

# (exclusive lower bound, points), checked highest first
LINES_CHANGED_TIERS = ((1000, 4), (500, 3), (200, 2), (50, 1))
FILES_CHANGED_TIERS = ((20, 3), (10, 2), (5, 1))
REVIEW_COMMENT_TIERS = ((20, 2), (10, 1))

RECOMMENDED_ACTIONS = {
    RiskLevel.HIGH: (
        "Schedule immediate knowledge transfer session",
        "Prioritize documentation of critical processes",
        "Assign backup team members to shadow work",
    ),
    RiskLevel.MEDIUM: (
        "Plan knowledge sharing sessions",
        "Create documentation templates",
        "Set up regular check-ins",
    ),
    RiskLevel.LOW: (
        "Encourage documentation best practices",
        "Provide documentation training",
    ),
}


@dataclass
class ScanThresholds:
    """Tunable cutoffs for criticality, complexity and risk."""

    window_months: int = DEFAULT_WINDOW_MONTHS
    max_doc_signal: int = DEFAULT_MAX_DOC_SIGNAL
    min_summary_length: int = DEFAULT_MIN_SUMMARY_LENGTH
    complexity_threshold: int = DEFAULT_COMPLEXITY_THRESHOLD
    risk_low: float = DEFAULT_RISK_LOW
    risk_high: float = DEFAULT_RISK_HIGH
    notable_commit_lines: int = DEFAULT_NOTABLE_COMMIT_LINES

    def __post_init__(self):
        if self.risk_low > self.risk_high:
            raise ValueError(
                f"risk_low ({self.risk_low}) must not exceed risk_high ({self.risk_high})"
            )

    @classmethod
    def from_settings(cls, settings: Any = None) -> "ScanThresholds":
        """Build thresholds from application settings."""
        if settings is None:
            from legacy_keeper.config import settings
        return cls(
            window_months=settings.SCAN_WINDOW_MONTHS,
            max_doc_signal=settings.CRITICAL_TICKET_MAX_DOC_SIGNAL,
            min_summary_length=settings.CRITICAL_TICKET_MIN_SUMMARY_LENGTH,
            complexity_threshold=settings.HIGH_COMPLEXITY_THRESHOLD,
            risk_low=settings.RISK_LOW_THRESHOLD,
            risk_high=settings.RISK_HIGH_THRESHOLD,
            notable_commit_lines=settings.NOTABLE_COMMIT_MIN_LINES,
        )


def _tier_points(value: int, tiers: tuple[tuple[int, int], ...]) -> int:
    for bound, points in tiers:
        if value > bound:
            return points
    return 0


def calculate_complexity_score(change: ChangeRequest) -> int:
    """Score a change request on a 0-10 scale.

    Lines changed contribute up to 4 points, files changed up to 3, review
    comments up to 2, and a structural keyword in the title adds 1.
    """
    score = _tier_points(change.total_lines_changed, LINES_CHANGED_TIERS)
    score += _tier_points(change.files_changed, FILES_CHANGED_TIERS)
    score += _tier_points(change.review_comments, REVIEW_COMMENT_TIERS)
    title = (change.title or "").lower()
    if any(keyword in title for keyword in COMPLEXITY_KEYWORDS):
        score += 1
    return min(score, MAX_COMPLEXITY_SCORE)


def is_critical_ticket(ticket: Ticket, thresholds: ScanThresholds) -> bool:
    """Substantial work with little documentation behind it."""
    return (
        ticket.documentation_signal <= thresholds.max_doc_signal
        and len(ticket.title or "") > thresholds.min_summary_length
    )


def classify_risk(score: float, thresholds: ScanThresholds) -> RiskLevel:
    """Map an intensity score to a risk level (non-decreasing in score)."""
    if score < thresholds.risk_low:
        return RiskLevel.LOW
    if score < thresholds.risk_high:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def recommended_actions(risk_level: RiskLevel, critical_ticket_count: int) -> tuple[str, ...]:
    """Follow-up actions for a risk level."""
    actions = RECOMMENDED_ACTIONS[risk_level]
    if critical_ticket_count > WORKLOAD_TICKET_LIMIT:
        actions = actions + ("Consider workload redistribution",)
    return actions


def select_notable_commits(
    commits: Iterable[Commit],
    min_lines: int = DEFAULT_NOTABLE_COMMIT_LINES,
    limit: int = NOTABLE_COMMIT_LIMIT,
) -> tuple[Commit, ...]:
    """Largest commits with at least ``min_lines`` changed, biggest first."""
    notable = [c for c in commits if c.lines_changed >= min_lines]
    notable.sort(key=lambda c: (c.lines_changed, c.date), reverse=True)
    return tuple(notable[:limit])


def window_start(now: datetime, months: int = DEFAULT_WINDOW_MONTHS) -> datetime:
    """Start of the trailing window ending at ``now``."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return subtract_months(now, months)


class ActivityScanner:
    """Computes one IntensityReport per author from normalized activity."""

    def __init__(self, thresholds: ScanThresholds | None = None):
        """Initialize the scanner.

        Args:
            thresholds: Scoring cutoffs (module defaults if omitted)
        """
        self.thresholds = thresholds or ScanThresholds()

    def scan(self, records: Iterable[Any], now: datetime) -> list[IntensityReport]:
        """Score every author present in the trailing window.

        Args:
            records: Activity records or raw source payloads
            now: Scan time; the window is recomputed from it on every call

        Returns:
            One report per author with at least one windowed record. Order is
            not significant.
        """
        start = window_start(now, self.thresholds.window_months)
        by_author: dict[str, list[ActivityRecord]] = defaultdict(list)
        skipped = 0

        for record in normalize_records(records):
            if record.updated < start:
                skipped += 1
                continue
            by_author[record.author].append(record)

        if skipped:
            logger.debug(f"Dropped {skipped} records updated before {start.isoformat()}")

        reports = [self.score_author(author, items) for author, items in by_author.items()]
        logger.info(f"Scanned {len(reports)} authors in window starting {start.date()}")
        return reports

    def score_author(self, user_id: str, records: list[ActivityRecord]) -> IntensityReport:
        """Build the report for one author's windowed records."""
        critical_tickets: list[Ticket] = []
        complex_changes: list[ChangeRequest] = []
        doc_links: list[str] = []

        for record in records:
            for link in record.documentation_links:
                if link not in doc_links:
                    doc_links.append(link)

            if isinstance(record, Ticket):
                if is_critical_ticket(record, self.thresholds):
                    critical_tickets.append(record)
            elif isinstance(record, ChangeRequest):
                scored = dataclasses.replace(
                    record, complexity_score=calculate_complexity_score(record)
                )
                if scored.complexity_score >= self.thresholds.complexity_threshold:
                    complex_changes.append(scored)

        numerator = len(critical_tickets) + len(complex_changes)
        score = numerator / max(1, len(doc_links))
        risk_level = classify_risk(score, self.thresholds)

        report = IntensityReport(
            user_id=user_id,
            critical_tickets=tuple(critical_tickets),
            high_complexity_changes=tuple(complex_changes),
            documentation_links=tuple(doc_links),
            documentation_link_count=len(doc_links),
            undocumented_intensity_score=score,
            specific_artifacts=tuple(
                [t.reference for t in critical_tickets] + [c.reference for c in complex_changes]
            ),
            risk_level=risk_level,
            recommended_actions=recommended_actions(risk_level, len(critical_tickets)),
        )

        if risk_level == RiskLevel.HIGH:
            log_knowledge_gap_notification(report)
        return report

    def empty_report(self, user_id: str) -> IntensityReport:
        """Zero-valued LOW report used when an author has no windowed activity."""
        return IntensityReport.empty(user_id, recommended_actions(RiskLevel.LOW, 0))


def log_knowledge_gap_notification(report: IntensityReport) -> None:
    """Announce a high-risk author so HR and team leads can plan offboarding."""
    logger.warning(
        f"Knowledge gap notification: high undocumented intensity for {report.user_id}: "
        f"score {report.undocumented_intensity_score:.2f} "
        f"({len(report.critical_tickets)} critical tickets + "
        f"{len(report.high_complexity_changes)} complex PRs / "
        f"{report.documentation_link_count} docs); cognitive offboarding recommended"
    )


def summarize(reports: list[IntensityReport]) -> ScanSummary:
    """Aggregate counts over a list of reports."""
    return ScanSummary(
        total_users_scanned=len(reports),
        users_with_gaps=sum(1 for r in reports if r.has_gaps),
        high_risk_users=sum(1 for r in reports if r.risk_level == RiskLevel.HIGH),
    )


async def scan_last_six_months(
    source: ActivitySource,
    scanner: ActivityScanner | None = None,
    query: ScanQuery | None = None,
    now: datetime | None = None,
) -> ScanResponse:
    """Fetch the trailing window from a source and score it.

    Never raises for upstream failures: when the source is unavailable the
    response still reports success, with no reports and a caller-safe
    ``source_error``.
    """
    scanner = scanner or ActivityScanner()
    query = query or ScanQuery()
    now = now or datetime.now(timezone.utc)
    start = window_start(now, scanner.thresholds.window_months)

    try:
        records = await source.fetch_records(query.user_id, start)
    except Exception as e:
        logger.error(f"Activity source unavailable, continuing without data: {e}")
        return ScanResponse(success=True, source_error=user_message(e), scanned_at=now)

    reports = scanner.scan(records, now)
    if query.user_id is not None:
        reports = [r for r in reports if r.user_id == query.user_id]

    return ScanResponse(
        success=True,
        reports=reports,
        summary=summarize(reports),
        scanned_at=now,
    )
