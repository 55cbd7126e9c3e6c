"""Document stores that persist Legacy Documents."""

import html
import logging
import uuid
from typing import Protocol

import httpx

from legacy_keeper.archive.models import FormattedArtifact, StoreResult
from legacy_keeper.client import AtlassianClient
from legacy_keeper.config import settings
from legacy_keeper.exceptions import StoreError

logger = logging.getLogger(__name__)


class ArchiveSink(Protocol):
    """Anything that can persist a formatted Legacy Document."""

    async def store(self, formatted: FormattedArtifact) -> StoreResult:
        """Persist the document and return its location.

        May raise PermissionDeniedError or StoreError.
        """
        ...


class InMemoryArchiveSink:
    """Keeps documents in a dict keyed by location id."""

    def __init__(self, base_url: str = "memory://legacy"):
        self.base_url = base_url
        self.documents: dict[str, FormattedArtifact] = {}

    async def store(self, formatted: FormattedArtifact) -> StoreResult:
        location_id = uuid.uuid4().hex
        self.documents[location_id] = formatted
        return StoreResult(location_id=location_id, url=f"{self.base_url}/{location_id}")


def to_storage_format(markdown: str) -> str:
    """Minimal conversion of markdown paragraphs to Confluence storage XHTML."""
    paragraphs = [p.strip() for p in markdown.split("\n\n") if p.strip()]
    if not paragraphs:
        return "<p>No content provided.</p>"

    blocks = []
    for paragraph in paragraphs:
        if paragraph.startswith("#"):
            level = min(len(paragraph) - len(paragraph.lstrip("#")), 6)
            blocks.append(f"<h{level}>{html.escape(paragraph.lstrip('#').strip())}</h{level}>")
        else:
            body = "<br/>".join(html.escape(line) for line in paragraph.splitlines())
            blocks.append(f"<p>{body}</p>")
    return "\n".join(blocks)


class ConfluenceArchiveSink(AtlassianClient):
    """Creates Legacy Documents as pages in a dedicated Confluence space."""

    service = "confluence"

    def __init__(
        self,
        url: str | None = None,
        username: str | None = None,
        api_token: str | None = None,
        space_key: str | None = None,
        requests_per_second: float | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            base_url=url or settings.CONFLUENCE_URL,
            username=username or settings.CONFLUENCE_USERNAME,
            secret=api_token or settings.CONFLUENCE_API_TOKEN,
            requests_per_second=requests_per_second or settings.REQUESTS_PER_SECOND,
            timeout=timeout or settings.HTTP_TIMEOUT,
            transport=transport,
        )
        self.space_key = space_key or settings.CONFLUENCE_SPACE_KEY

    def _page_url(self, page: dict) -> str:
        links = page.get("_links", {})
        if links.get("webui"):
            return f"{links.get('base') or self.base_url + '/wiki'}{links['webui']}"
        return f"{self.base_url}/wiki/spaces/{self.space_key}/pages/{page.get('id', '')}"

    async def store(self, formatted: FormattedArtifact) -> StoreResult:
        """Create the page; permission and rate-limit errors propagate unchanged."""
        payload = {
            "type": "page",
            "title": formatted.title,
            "space": {"key": self.space_key},
            "body": {
                "storage": {
                    "value": to_storage_format(formatted.content),
                    "representation": "storage",
                }
            },
        }
        page = await self._request("POST", "/wiki/rest/api/content", json=payload)

        page_id = page.get("id")
        if not page_id:
            raise StoreError("Confluence did not return a page id for the Legacy Document")

        url = self._page_url(page)
        logger.info(f"Legacy Document created in space {self.space_key}: {url}")
        return StoreResult(location_id=str(page_id), url=url)

    async def check_connection(self) -> bool:
        await self._request("GET", f"/wiki/rest/api/space/{self.space_key}")
        return True


def create_archive_sink() -> ArchiveSink:
    """Confluence when credentials are configured, otherwise in memory."""
    if settings.confluence_configured:
        return ConfluenceArchiveSink()
    logger.warning("Confluence credentials not configured; Legacy Documents are kept in memory")
    return InMemoryArchiveSink()
