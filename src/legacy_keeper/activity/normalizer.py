"""Convert raw Jira and Bitbucket payloads into activity records.

Normalization never raises. A payload with missing or malformed fields is
projected with safe defaults, and a payload that is not a mapping at all is
skipped. A record with no parseable timestamp is stamped with the epoch so
that it falls outside every scan window.
"""

import calendar
import logging
import re
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from legacy_keeper.activity.models import (
    EPOCH,
    ActivityRecord,
    ChangedFile,
    ChangeRequest,
    ChangeType,
    Commit,
    Ticket,
)

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "unknown"
UNKNOWN_TITLE = "Unknown Title"

URL_PATTERN = re.compile(r"https?://[^\s<>\"')\]]+")
DOCUMENTATION_URL_MARKERS = ("confluence", "wiki", "docs", "documentation")

# Paths that usually carry configuration or wiring
CRITICAL_FILE_MARKERS = ("config", "settings", "manifest", "pyproject", "package.json", "index")
LARGE_CHANGE_LINES = 500


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts the ``Z`` suffix and Jira's ``+0000`` offset form. Naive values
    are assumed to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip().replace("Z", "+00:00")
        # Jira emits "+0000"; fromisoformat wants "+00:00" on older interpreters
        text = re.sub(r"([+-]\d{2})(\d{2})$", r"\1:\2", text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def subtract_months(moment: datetime, months: int) -> datetime:
    """Step back a number of calendar months, clamping to the month's last day."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def extract_documentation_links(text: str | None) -> tuple[str, ...]:
    """Find URLs that point at documentation (Confluence, wikis, doc sites)."""
    if not text or not isinstance(text, str):
        return ()
    links = []
    for url in URL_PATTERN.findall(text):
        lowered = url.lower()
        if any(marker in lowered for marker in DOCUMENTATION_URL_MARKERS) and url not in links:
            links.append(url)
    return tuple(links)


def _as_int(value: Any) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


def _as_text(value: Any) -> str:
    """Flatten plain strings and Atlassian document format bodies to text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        parts = []
        if isinstance(value.get("text"), str):
            parts.append(value["text"])
        # Link marks carry the URL outside the text node
        for mark in value.get("marks") or []:
            if isinstance(mark, Mapping):
                href = (mark.get("attrs") or {}).get("href")
                if href:
                    parts.append(str(href))
        for child in value.get("content") or []:
            child_text = _as_text(child)
            if child_text:
                parts.append(child_text)
        return " ".join(parts)
    if isinstance(value, list):
        return " ".join(_as_text(item) for item in value)
    return str(value)


def _mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _timestamps(created_raw: Any, updated_raw: Any) -> tuple[datetime, datetime]:
    created = parse_timestamp(created_raw)
    updated = parse_timestamp(updated_raw) or created or EPOCH
    return created or updated, updated


def normalize_jira_issue(payload: Any) -> Ticket | None:
    """Normalize a Jira REST ``/search`` issue into a Ticket."""
    if not isinstance(payload, Mapping):
        logger.warning(f"Skipping non-mapping Jira payload: {type(payload).__name__}")
        return None

    fields = _mapping(payload.get("fields"))
    assignee = _mapping(fields.get("assignee"))
    reporter = _mapping(fields.get("reporter"))
    author = (
        assignee.get("accountId")
        or assignee.get("emailAddress")
        or reporter.get("accountId")
        or UNKNOWN_AUTHOR
    )
    description = _as_text(fields.get("description"))
    created, updated = _timestamps(fields.get("created"), fields.get("updated"))

    if not fields:
        logger.warning(f"Jira issue {payload.get('id', '?')} has no fields, using defaults")

    return Ticket(
        id=str(payload.get("id") or payload.get("key") or ""),
        key=str(payload.get("key") or ""),
        author=str(author),
        created=created,
        updated=updated,
        title=str(fields.get("summary") or UNKNOWN_TITLE),
        description=description,
        status=str(_mapping(fields.get("status")).get("name") or ""),
        comment_count=_as_int(_mapping(fields.get("comment")).get("total")),
        documentation_links=extract_documentation_links(description),
    )


def normalize_bitbucket_pull_request(payload: Any) -> ChangeRequest | None:
    """Normalize a Bitbucket Cloud pull request into a ChangeRequest."""
    if not isinstance(payload, Mapping):
        logger.warning(f"Skipping non-mapping Bitbucket payload: {type(payload).__name__}")
        return None

    author = _mapping(payload.get("author"))
    diff_stats = _mapping(payload.get("diff_stats"))
    source_repo = _mapping(_mapping(payload.get("source")).get("repository"))
    destination_repo = _mapping(_mapping(payload.get("destination")).get("repository"))
    description = _as_text(payload.get("description") or payload.get("summary"))
    created, updated = _timestamps(payload.get("created_on"), payload.get("updated_on"))

    return ChangeRequest(
        id=str(payload.get("id") or ""),
        author=str(
            author.get("uuid") or author.get("account_id") or author.get("nickname") or UNKNOWN_AUTHOR
        ),
        created=created,
        updated=updated,
        title=str(payload.get("title") or UNKNOWN_TITLE),
        description=description,
        lines_added=_as_int(diff_stats.get("lines_added")),
        lines_deleted=_as_int(diff_stats.get("lines_removed")),
        files_changed=_as_int(diff_stats.get("files_changed")),
        review_comments=_as_int(payload.get("comment_count")),
        state=str(payload.get("state") or "UNKNOWN"),
        repository=str(destination_repo.get("name") or source_repo.get("name") or ""),
        documentation_links=extract_documentation_links(description),
    )


def _normalize_shaped(payload: Mapping) -> ActivityRecord:
    """Normalize a dict already in the internal record shape."""
    description = _as_text(payload.get("description"))
    links = payload.get("documentation_links")
    if isinstance(links, (list, tuple)):
        doc_links = tuple(str(link) for link in links)
    else:
        doc_links = extract_documentation_links(description)
    created, updated = _timestamps(payload.get("created"), payload.get("updated"))
    common = {
        "id": str(payload.get("id") or ""),
        "author": str(payload.get("author") or UNKNOWN_AUTHOR),
        "created": created,
        "updated": updated,
        "title": str(payload.get("title") or UNKNOWN_TITLE),
        "description": description,
        "documentation_links": doc_links,
    }
    if payload.get("kind") == ChangeRequest.kind:
        return ChangeRequest(
            **common,
            lines_added=_as_int(payload.get("lines_added")),
            lines_deleted=_as_int(payload.get("lines_deleted")),
            files_changed=_as_int(payload.get("files_changed")),
            review_comments=_as_int(payload.get("review_comments")),
            state=str(payload.get("state") or ""),
            repository=str(payload.get("repository") or ""),
        )
    return Ticket(
        **common,
        key=str(payload.get("key") or ""),
        status=str(payload.get("status") or ""),
        comment_count=_as_int(payload.get("comment_count")),
    )


def normalize_record(payload: Any) -> ActivityRecord | None:
    """Normalize any supported payload, dispatching on its shape.

    Recognized shapes are already-normalized records, internal dicts with a
    ``kind`` of ``ticket`` or ``change_request``, Jira issues (``fields``) and
    Bitbucket pull requests (``diff_stats``, ``created_on`` or ``author.uuid``).
    """
    if isinstance(payload, (Ticket, ChangeRequest)):
        return payload
    if not isinstance(payload, Mapping):
        logger.warning(f"Skipping unrecognized activity payload: {type(payload).__name__}")
        return None
    if payload.get("kind") in (Ticket.kind, ChangeRequest.kind):
        return _normalize_shaped(payload)
    if "fields" in payload:
        return normalize_jira_issue(payload)
    if "diff_stats" in payload or "created_on" in payload or "comment_count" in payload:
        return normalize_bitbucket_pull_request(payload)
    logger.warning(f"Activity payload {payload.get('id', '?')} has unknown shape, treating as ticket")
    return _normalize_shaped(payload)


def normalize_records(payloads: Iterable[Any]) -> list[ActivityRecord]:
    """Normalize a batch, dropping payloads that cannot be projected at all."""
    records = []
    for payload in payloads:
        record = normalize_record(payload)
        if record is not None:
            records.append(record)
    return records


def normalize_bitbucket_commit(
    payload: Any, diffstat: list[Any] | None = None, repository: str = ""
) -> Commit | None:
    """Normalize a Bitbucket Cloud commit, with its diffstat entries if fetched."""
    if not isinstance(payload, Mapping):
        logger.warning(f"Skipping non-mapping Bitbucket commit: {type(payload).__name__}")
        return None

    author = _mapping(payload.get("author"))
    user = _mapping(author.get("user"))
    files = changed_files_from_diffstat(diffstat or [])
    return Commit(
        hash=str(payload.get("hash") or ""),
        author=str(
            user.get("uuid") or user.get("account_id") or author.get("raw") or UNKNOWN_AUTHOR
        ),
        date=parse_timestamp(payload.get("date")) or EPOCH,
        message=str(payload.get("message") or ""),
        files_changed=len(files),
        lines_changed=sum(f.lines_added + f.lines_deleted for f in files),
        repository=repository or str(_mapping(payload.get("repository")).get("name") or ""),
        branch=str(_mapping(payload.get("branch")).get("name") or ""),
    )


def _change_type(entry: Mapping, added: int, removed: int) -> ChangeType:
    """Prefer the diffstat status; fall back to line counts when it is absent."""
    status = str(entry.get("status") or "").lower()
    if status == "added":
        return ChangeType.ADDED
    if status == "removed":
        return ChangeType.DELETED
    if not status:
        if added > 0 and removed == 0:
            return ChangeType.ADDED
        if added == 0 and removed > 0:
            return ChangeType.DELETED
    return ChangeType.MODIFIED


def changed_files_from_diffstat(entries: Iterable[Any]) -> tuple[ChangedFile, ...]:
    """Project Bitbucket diffstat entries into changed files."""
    files = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        added = _as_int(entry.get("lines_added"))
        removed = _as_int(entry.get("lines_removed"))
        path = (
            _mapping(entry.get("new")).get("path")
            or _mapping(entry.get("old")).get("path")
            or "unknown"
        )
        files.append(
            ChangedFile(
                path=str(path),
                lines_added=added,
                lines_deleted=removed,
                change_type=_change_type(entry, added, removed),
            )
        )
    return tuple(files)


def extract_key_changes(title: str, files: tuple[ChangedFile, ...]) -> tuple[str, ...]:
    """Short human summary of what a pull request changed."""
    changes = []
    if title:
        changes.append(f"Primary change: {title}")

    extensions = []
    for f in files:
        name = f.path.rsplit("/", 1)[-1]
        extension = name.rsplit(".", 1)[-1] if "." in name else name
        if extension not in extensions:
            extensions.append(extension)
    if extensions:
        changes.append(f"File types modified: {', '.join(extensions)}")

    critical = [f.path for f in files if any(marker in f.path for marker in CRITICAL_FILE_MARKERS)]
    if critical:
        changes.append(f"Critical files changed: {', '.join(critical)}")

    total_lines = sum(f.lines_added + f.lines_deleted for f in files)
    if total_lines > LARGE_CHANGE_LINES:
        changes.append(f"Large change: {total_lines} total lines modified")
    return tuple(changes)
