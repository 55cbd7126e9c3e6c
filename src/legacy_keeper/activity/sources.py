"""Activity sources: where work items and code changes are fetched from."""

import asyncio
import logging
from dataclasses import replace
from collections.abc import Awaitable, Iterable
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

import httpx

from legacy_keeper.activity.models import ActivityRecord, ChangeRequest, Commit, DiffContext
from legacy_keeper.activity.normalizer import (
    changed_files_from_diffstat,
    extract_key_changes,
    normalize_bitbucket_commit,
    normalize_bitbucket_pull_request,
    normalize_jira_issue,
    normalize_records,
)
from legacy_keeper.client import AtlassianClient
from legacy_keeper.config import settings
from legacy_keeper.exceptions import LegacyKeeperError

logger = logging.getLogger(__name__)


class ActivitySource(Protocol):
    """Anything that can produce activity records for a trailing window."""

    async def fetch_records(
        self, user_id: str | None, window_start: datetime
    ) -> list[ActivityRecord]:
        """Fetch records updated at or after ``window_start``.

        ``user_id=None`` means every author. Implementations may raise
        PermissionDeniedError, RateLimitError, NetworkError or NotFoundError.
        """
        ...


@runtime_checkable
class CodeHistorySource(Protocol):
    """A source that can also report commits and pull request diffs."""

    async def fetch_commits(self, user_id: str | None, window_start: datetime) -> list[Commit]:
        ...

    async def fetch_diff_context(self, change: ChangeRequest) -> DiffContext | None:
        ...


class StaticActivitySource:
    """In-memory source over pre-fetched records or raw payloads."""

    def __init__(
        self,
        records: Iterable[Any] = (),
        commits: Iterable[Any] = (),
        diff_contexts: Iterable[DiffContext] = (),
    ):
        self.records = normalize_records(records)
        self.commits = [
            c if isinstance(c, Commit) else normalize_bitbucket_commit(c) for c in commits
        ]
        self.commits = [c for c in self.commits if c is not None]
        self.diff_contexts = {context.pr_id: context for context in diff_contexts}

    async def fetch_records(
        self, user_id: str | None, window_start: datetime
    ) -> list[ActivityRecord]:
        return [
            r
            for r in self.records
            if (user_id is None or r.author == user_id) and r.updated >= window_start
        ]

    async def fetch_commits(self, user_id: str | None, window_start: datetime) -> list[Commit]:
        return [
            c
            for c in self.commits
            if (user_id is None or c.author == user_id) and c.date >= window_start
        ]

    async def fetch_diff_context(self, change: ChangeRequest) -> DiffContext | None:
        return self.diff_contexts.get(change.id)


class JiraActivitySource(AtlassianClient):
    """Tickets from Jira Cloud issue search."""

    service = "jira"

    def __init__(
        self,
        url: str | None = None,
        username: str | None = None,
        api_token: str | None = None,
        max_results: int | None = None,
        requests_per_second: float | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            base_url=url or settings.JIRA_URL,
            username=username or settings.JIRA_USERNAME,
            secret=api_token or settings.JIRA_API_TOKEN,
            requests_per_second=requests_per_second or settings.REQUESTS_PER_SECOND,
            timeout=timeout or settings.HTTP_TIMEOUT,
            transport=transport,
        )
        self.max_results = max_results or settings.JIRA_MAX_RESULTS

    @staticmethod
    def build_jql(user_id: str | None, window_start: datetime) -> str:
        """JQL for issues updated inside the window, newest first."""
        clauses = [f'updated >= "{window_start.strftime("%Y-%m-%d")}"']
        if user_id:
            escaped = user_id.replace('"', '\\"')
            clauses.append(f'assignee = "{escaped}"')
        return " AND ".join(clauses) + " ORDER BY updated DESC"

    async def fetch_records(
        self, user_id: str | None, window_start: datetime
    ) -> list[ActivityRecord]:
        jql = self.build_jql(user_id, window_start)
        records: list[ActivityRecord] = []
        start_at = 0

        while True:
            params = {
                "jql": jql,
                "startAt": start_at,
                "maxResults": self.max_results,
                "fields": "summary,description,assignee,reporter,status,created,updated,comment",
            }
            data = await self._request("GET", "/rest/api/3/search", params=params)
            issues = data.get("issues", [])
            for issue in issues:
                ticket = normalize_jira_issue(issue)
                if ticket is not None:
                    records.append(ticket)

            start_at += len(issues)
            if not issues or start_at >= data.get("total", 0):
                break

        logger.info(f"Fetched {len(records)} Jira issues for {user_id or 'all users'}")
        return records

    async def check_connection(self) -> bool:
        await self._request("GET", "/rest/api/3/myself")
        return True

    async def add_comment(self, issue_key: str, text: str) -> None:
        """Comment on an issue; the body is a one-paragraph Atlassian document."""
        body = {
            "body": {
                "type": "doc",
                "version": 1,
                "content": [{"type": "paragraph", "content": [{"type": "text", "text": text}]}],
            }
        }
        await self._request("POST", f"/rest/api/3/issue/{issue_key}/comment", json=body)


class BitbucketActivitySource(AtlassianClient):
    """Pull requests and commits from Bitbucket Cloud repositories in one workspace."""

    service = "bitbucket"

    def __init__(
        self,
        url: str | None = None,
        username: str | None = None,
        app_password: str | None = None,
        workspace: str | None = None,
        repositories: list[str] | None = None,
        max_commits: int | None = None,
        requests_per_second: float | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            base_url=url or settings.BITBUCKET_URL,
            username=username or settings.BITBUCKET_USERNAME,
            secret=app_password or settings.BITBUCKET_APP_PASSWORD,
            requests_per_second=requests_per_second or settings.REQUESTS_PER_SECOND,
            timeout=timeout or settings.HTTP_TIMEOUT,
            transport=transport,
        )
        self.workspace = workspace or settings.BITBUCKET_WORKSPACE
        self.repositories = (
            repositories if repositories is not None else settings.bitbucket_repository_list
        )
        self.max_commits = max_commits or settings.BITBUCKET_MAX_COMMITS

    def _repo_path(self, repository: str) -> str:
        return f"/2.0/repositories/{self.workspace}/{repository}"

    @staticmethod
    def build_query(user_id: str | None, window_start: datetime) -> str:
        """Bitbucket query language filter for the window."""
        query = f"updated_on >= {window_start.strftime('%Y-%m-%dT%H:%M:%S')}"
        if user_id:
            query += f' AND author.uuid = "{user_id}"'
        return query

    async def _diffstat_entries(self, url: str) -> list[dict]:
        """Every page of a diffstat listing."""
        entries: list[dict] = []
        next_url: str | None = url
        while next_url:
            data = await self._request("GET", next_url)
            entries.extend(data.get("values", []))
            next_url = data.get("next")
        return entries

    async def _fetch_diff_stats(self, repository: str, pr_id: Any) -> dict[str, int]:
        """Sum the per-file diffstat of a pull request."""
        entries = await self._diffstat_entries(
            f"{self._repo_path(repository)}/pullrequests/{pr_id}/diffstat"
        )
        return {
            "lines_added": sum(entry.get("lines_added") or 0 for entry in entries),
            "lines_removed": sum(entry.get("lines_removed") or 0 for entry in entries),
            "files_changed": len(entries),
        }

    async def _fetch_repository(
        self, repository: str, user_id: str | None, window_start: datetime
    ) -> list[ActivityRecord]:
        records: list[ActivityRecord] = []
        url: str | None = f"{self._repo_path(repository)}/pullrequests"
        params: list | None = [
            ("q", self.build_query(user_id, window_start)),
            ("pagelen", 50),
            ("sort", "-updated_on"),
            ("state", "OPEN"),
            ("state", "MERGED"),
            ("state", "DECLINED"),
        ]

        while url:
            data = await self._request("GET", url, params=params)
            for pr in data.get("values", []):
                if isinstance(pr, dict) and "diff_stats" not in pr and pr.get("id") is not None:
                    pr = {**pr, "diff_stats": await self._fetch_diff_stats(repository, pr["id"])}
                change = normalize_bitbucket_pull_request(pr)
                if change is not None:
                    # API calls need the slug, not the display name
                    records.append(replace(change, repository=repository))
            # The "next" link already carries the query string
            url = data.get("next")
            params = None

        return records

    async def fetch_records(
        self, user_id: str | None, window_start: datetime
    ) -> list[ActivityRecord]:
        records: list[ActivityRecord] = []
        for repository in self.repositories:
            records.extend(await self._fetch_repository(repository, user_id, window_start))
        logger.info(
            f"Fetched {len(records)} pull requests from {len(self.repositories)} repositories "
            f"for {user_id or 'all users'}"
        )
        return records

    async def _fetch_repository_commits(
        self, repository: str, user_id: str | None, window_start: datetime
    ) -> list[Commit]:
        """Walk the commit log newest first until it leaves the window."""
        commits: list[Commit] = []
        url: str | None = f"{self._repo_path(repository)}/commits"
        params: dict | None = {"pagelen": 50}

        while url and len(commits) < self.max_commits:
            data = await self._request("GET", url, params=params)
            for payload in data.get("values", []):
                commit = normalize_bitbucket_commit(payload, repository=repository)
                if commit is None:
                    continue
                if commit.date < window_start:
                    return commits
                if user_id is not None and commit.author != user_id:
                    continue
                diffstat = await self._diffstat_entries(
                    f"{self._repo_path(repository)}/diffstat/{commit.hash}"
                )
                commits.append(
                    normalize_bitbucket_commit(payload, diffstat, repository=repository)
                )
                if len(commits) >= self.max_commits:
                    break
            url = data.get("next")
            params = None

        return commits

    async def fetch_commits(self, user_id: str | None, window_start: datetime) -> list[Commit]:
        """Commits inside the window, capped per repository, with diff sizes."""
        commits: list[Commit] = []
        for repository in self.repositories:
            commits.extend(await self._fetch_repository_commits(repository, user_id, window_start))
        logger.info(f"Fetched {len(commits)} commits for {user_id or 'all users'}")
        return commits

    async def fetch_diff_context(self, change: ChangeRequest) -> DiffContext | None:
        """Changed files and key changes of one pull request.

        Returns None when the pull request's repository is unknown.
        """
        repository = change.repository
        if not repository and len(self.repositories) == 1:
            repository = self.repositories[0]
        if not repository:
            logger.debug(f"No repository known for PR #{change.id}, skipping diff context")
            return None

        entries = await self._diffstat_entries(
            f"{self._repo_path(repository)}/pullrequests/{change.id}/diffstat"
        )
        files = changed_files_from_diffstat(entries)
        return DiffContext(
            pr_id=change.id,
            repository=repository,
            changed_files=files,
            key_changes=extract_key_changes(change.title, files),
        )

    async def comment_on_pull_request(self, repository: str, pr_id: str, text: str) -> None:
        await self._request(
            "POST",
            f"{self._repo_path(repository)}/pullrequests/{pr_id}/comments",
            json={"content": {"raw": text}},
        )

    async def comment_on_commit(self, repository: str, commit_hash: str, text: str) -> None:
        await self._request(
            "POST",
            f"{self._repo_path(repository)}/commit/{commit_hash}/comments",
            json={"content": {"raw": text}},
        )

    async def check_connection(self) -> bool:
        await self._request("GET", f"/2.0/workspaces/{self.workspace}")
        return True


async def _gather_tolerant(
    names: list[str], calls: list[Awaitable[list]]
) -> tuple[list, list[Exception]]:
    """Run calls concurrently, collecting results and per-call failures."""
    results = await asyncio.gather(*calls, return_exceptions=True)
    merged: list = []
    failures: list[Exception] = []
    for name, result in zip(names, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            code = result.code if isinstance(result, LegacyKeeperError) else type(result).__name__
            logger.warning(f"Activity source {name} failed ({code}), continuing without it")
            failures.append(result)
        else:
            merged.extend(result)
    return merged, failures


def _source_name(source: Any) -> str:
    return getattr(source, "service", type(source).__name__)


class CompositeActivitySource:
    """Merges several sources, tolerating the failure of some of them.

    A failing source is logged and skipped. Only when every source fails is
    the first failure raised, so the scan boundary can report it.
    """

    def __init__(self, sources: list[ActivitySource]):
        self.sources = sources

    async def fetch_records(
        self, user_id: str | None, window_start: datetime
    ) -> list[ActivityRecord]:
        if not self.sources:
            return []

        records, failures = await _gather_tolerant(
            [_source_name(source) for source in self.sources],
            [source.fetch_records(user_id, window_start) for source in self.sources],
        )
        if len(failures) == len(self.sources):
            raise failures[0]
        return records

    @property
    def code_history_sources(self) -> list[CodeHistorySource]:
        return [source for source in self.sources if isinstance(source, CodeHistorySource)]

    async def fetch_commits(self, user_id: str | None, window_start: datetime) -> list[Commit]:
        sources = self.code_history_sources
        if not sources:
            return []

        commits, failures = await _gather_tolerant(
            [_source_name(source) for source in sources],
            [source.fetch_commits(user_id, window_start) for source in sources],
        )
        if len(failures) == len(sources):
            raise failures[0]
        return commits

    async def fetch_diff_context(self, change: ChangeRequest) -> DiffContext | None:
        """First diff context any code history source can produce."""
        for source in self.code_history_sources:
            context = await source.fetch_diff_context(change)
            if context is not None:
                return context
        return None


def create_activity_source() -> ActivitySource:
    """Build the configured sources from settings."""
    sources: list[ActivitySource] = []
    if settings.jira_configured:
        sources.append(JiraActivitySource())
    if settings.bitbucket_configured and settings.bitbucket_repository_list:
        sources.append(BitbucketActivitySource())
    if not sources:
        logger.warning("No activity sources configured; scans will find no activity")
    return CompositeActivitySource(sources)
