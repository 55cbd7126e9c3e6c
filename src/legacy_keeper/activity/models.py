"""Data models for normalized activity records and intensity reports."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

# Records without a usable timestamp fall outside every scan window
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

TIMEFRAME_SIX_MONTHS = "6_MONTHS"


class RiskLevel(str, Enum):
    """Knowledge-loss risk classification."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class Ticket:
    """A work item from the ticket tracker."""

    id: str
    author: str
    created: datetime
    updated: datetime
    title: str
    key: str = ""  # Human-facing key, e.g. "PAY-142"
    description: str = ""
    status: str = ""
    comment_count: int = 0
    documentation_links: tuple[str, ...] = ()

    kind = "ticket"

    @property
    def documentation_signal(self) -> int:
        """Explicit documentation references: comments plus linked docs."""
        return self.comment_count + len(self.documentation_links)

    @property
    def reference(self) -> str:
        return self.key or self.id


@dataclass(frozen=True)
class ChangeRequest:
    """A pull request from the code-review system."""

    id: str
    author: str
    created: datetime
    updated: datetime
    title: str
    description: str = ""
    lines_added: int = 0
    lines_deleted: int = 0
    files_changed: int = 0
    review_comments: int = 0
    state: str = ""
    repository: str = ""
    documentation_links: tuple[str, ...] = ()
    complexity_score: int = 0  # Filled in by the scanner

    kind = "change_request"

    @property
    def total_lines_changed(self) -> int:
        return self.lines_added + self.lines_deleted

    @property
    def reference(self) -> str:
        return f"PR #{self.id}"


ActivityRecord = Ticket | ChangeRequest


@dataclass(frozen=True)
class Commit:
    """A commit from the code host, kept as interview material."""

    hash: str
    author: str
    date: datetime
    message: str
    files_changed: int = 0
    lines_changed: int = 0
    repository: str = ""
    branch: str = ""

    @property
    def title(self) -> str:
        """First line of the commit message."""
        return self.message.strip().splitlines()[0] if self.message.strip() else ""


class ChangeType(str, Enum):
    """How a pull request touched a file."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class ChangedFile:
    """Per-file line counts from a pull request diff."""

    path: str
    lines_added: int = 0
    lines_deleted: int = 0
    change_type: ChangeType = ChangeType.MODIFIED


@dataclass(frozen=True)
class DiffContext:
    """Which files a pull request changed and what stands out about them."""

    pr_id: str
    repository: str = ""
    changed_files: tuple[ChangedFile, ...] = ()
    key_changes: tuple[str, ...] = ()


@dataclass(frozen=True)
class IntensityReport:
    """Undocumented-intensity assessment for one author over the scan window."""

    user_id: str
    timeframe: str = TIMEFRAME_SIX_MONTHS
    critical_tickets: tuple[Ticket, ...] = ()
    high_complexity_changes: tuple[ChangeRequest, ...] = ()
    documentation_links: tuple[str, ...] = ()
    documentation_link_count: int = 0
    undocumented_intensity_score: float = 0.0
    specific_artifacts: tuple[str, ...] = ()
    risk_level: RiskLevel = RiskLevel.LOW
    recommended_actions: tuple[str, ...] = ()
    notable_commits: tuple[Commit, ...] = ()  # Attached by the workflow scan phase
    diff_contexts: tuple[DiffContext, ...] = ()

    @classmethod
    def empty(cls, user_id: str, recommended_actions: tuple[str, ...] = ()) -> "IntensityReport":
        """Zero-valued LOW-risk report for an author with no windowed activity."""
        return cls(user_id=user_id, recommended_actions=recommended_actions)

    @property
    def has_gaps(self) -> bool:
        return self.undocumented_intensity_score > 0


@dataclass(frozen=True)
class ScanQuery:
    """Optional restriction of a scan to a single author."""

    user_id: str | None = None


@dataclass
class ScanSummary:
    """Aggregate counts over a scan's reports."""

    total_users_scanned: int = 0
    users_with_gaps: int = 0
    high_risk_users: int = 0


@dataclass
class ScanResponse:
    """Result of a trailing-window scan.

    ``success`` is always True. When the record source failed, ``reports``
    is empty and ``source_error`` carries a caller-safe explanation.
    """

    success: bool = True
    reports: list[IntensityReport] = field(default_factory=list)
    summary: ScanSummary = field(default_factory=ScanSummary)
    source_error: str | None = None
    scanned_at: datetime | None = None
