"""Back-links from source tickets, pull requests and commits to their Legacy Document."""

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from legacy_keeper.archive.models import ArtifactLink, StoreResult
from legacy_keeper.exceptions import LegacyKeeperError

logger = logging.getLogger(__name__)


class IssueCommenter(Protocol):
    async def add_comment(self, issue_key: str, text: str) -> None: ...


class CodeCommenter(Protocol):
    repositories: list[str]

    async def comment_on_pull_request(self, repository: str, pr_id: str, text: str) -> None: ...

    async def comment_on_commit(self, repository: str, commit_hash: str, text: str) -> None: ...


def backlink_text(location: StoreResult) -> str:
    return (
        "Undocumented knowledge about this work was captured during cognitive offboarding. "
        f"Legacy Document: {location.url or location.location_id}"
    )


class ArtifactLinker:
    """Comments the archive location on every artifact a Legacy Document cites.

    A link that cannot be created is logged and skipped; only artifacts that
    were actually commented on are reported back.
    """

    def __init__(
        self,
        jira: IssueCommenter | None = None,
        bitbucket: CodeCommenter | None = None,
    ):
        self.jira = jira
        self.bitbucket = bitbucket

    def _repository(self, link: ArtifactLink) -> str:
        if link.repository:
            return link.repository
        repositories = getattr(self.bitbucket, "repositories", None) or []
        return repositories[0] if len(repositories) == 1 else ""

    async def _link_one(self, link: ArtifactLink, text: str) -> bool:
        if link.type == "TICKET":
            if self.jira is None:
                return False
            await self.jira.add_comment(link.id, text)
            return True

        if link.type not in ("PULL_REQUEST", "COMMIT") or self.bitbucket is None:
            return False
        repository = self._repository(link)
        if not repository:
            logger.warning(f"No repository known for {link.title}, not linking it")
            return False
        if link.type == "PULL_REQUEST":
            await self.bitbucket.comment_on_pull_request(repository, link.id, text)
        else:
            await self.bitbucket.comment_on_commit(repository, link.id, text)
        return True

    async def link(self, location: StoreResult, links: Iterable[ArtifactLink]) -> tuple[str, ...]:
        """Comment on each linked artifact and return the ids that succeeded."""
        text = backlink_text(location)
        linked = []
        for link in links:
            try:
                if await self._link_one(link, text):
                    linked.append(link.id)
            except LegacyKeeperError as e:
                logger.warning(f"Could not link {link.title} to {location.url}: {e.code}")
        logger.info(f"Linked {len(linked)} artifacts to Legacy Document {location.location_id}")
        return tuple(linked)


def create_artifact_linker(settings: Any = None) -> ArtifactLinker | None:
    """Linker over the configured Jira and Bitbucket clients, or None when disabled."""
    from legacy_keeper.activity.sources import BitbucketActivitySource, JiraActivitySource

    if settings is None:
        from legacy_keeper.config import settings

    if not settings.ARTIFACT_BACKLINKS:
        return None
    jira = JiraActivitySource() if settings.jira_configured else None
    bitbucket = BitbucketActivitySource() if settings.bitbucket_configured else None
    if jira is None and bitbucket is None:
        return None
    return ArtifactLinker(jira=jira, bitbucket=bitbucket)
