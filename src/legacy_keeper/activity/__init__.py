"""Activity scanning: normalize work history and score undocumented intensity."""

from legacy_keeper.activity.models import (
    ActivityRecord,
    ChangedFile,
    ChangeRequest,
    Commit,
    DiffContext,
    IntensityReport,
    RiskLevel,
    ScanQuery,
    ScanResponse,
    ScanSummary,
    Ticket,
)
from legacy_keeper.activity.scanner import (
    ActivityScanner,
    ScanThresholds,
    calculate_complexity_score,
    classify_risk,
    scan_last_six_months,
    select_notable_commits,
)
from legacy_keeper.activity.sources import (
    ActivitySource,
    BitbucketActivitySource,
    CodeHistorySource,
    CompositeActivitySource,
    JiraActivitySource,
    StaticActivitySource,
)

__all__ = [
    # Models
    "ActivityRecord",
    "ChangedFile",
    "ChangeRequest",
    "Commit",
    "DiffContext",
    "IntensityReport",
    "RiskLevel",
    "ScanQuery",
    "ScanResponse",
    "ScanSummary",
    "Ticket",
    # Scanning
    "ActivityScanner",
    "ScanThresholds",
    "calculate_complexity_score",
    "classify_risk",
    "scan_last_six_months",
    "select_notable_commits",
    # Sources
    "ActivitySource",
    "BitbucketActivitySource",
    "CodeHistorySource",
    "CompositeActivitySource",
    "JiraActivitySource",
    "StaticActivitySource",
]
