"""Health check endpoints for the Legacy Keeper API."""

from typing import Any

from fastapi import APIRouter

from legacy_keeper.activity.sources import BitbucketActivitySource, JiraActivitySource
from legacy_keeper.archive.sinks import ConfluenceArchiveSink
from legacy_keeper.config import settings
from legacy_keeper.exceptions import LegacyKeeperError, error_code

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Basic health check - returns ok if the service is running."""
    return {"status": "ok"}


@router.get("/health/ready")
async def ready() -> dict[str, Any]:
    """
    Readiness check - verifies configured upstream services are reachable.

    Checks:
    - Jira: activity source for tickets
    - Bitbucket: activity source for pull requests
    - Confluence: archive for Legacy Documents

    Services without credentials are reported as not configured and do not
    degrade the status; the service falls back to empty scans or in-memory
    archiving for them.
    """
    checks = {
        "jira": (settings.jira_configured, JiraActivitySource),
        "bitbucket": (settings.bitbucket_configured, BitbucketActivitySource),
        "confluence": (settings.confluence_configured, ConfluenceArchiveSink),
    }
    services: dict[str, str] = {}
    all_ok = True

    for name, (configured, client_class) in checks.items():
        if not configured:
            services[name] = "warning: not configured"
            continue
        try:
            await client_class().check_connection()
            services[name] = "ok"
        except LegacyKeeperError as e:
            services[name] = f"error: {error_code(e)}"
            all_ok = False

    status = "ready" if all_ok else "degraded"
    return {"status": status, "services": services}
