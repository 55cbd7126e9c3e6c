"""Configuration management using pydantic-settings."""

import logging

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Legacy Keeper"
    DEBUG: bool = False

    # Jira (ticket source)
    JIRA_URL: str = "https://your-domain.atlassian.net"
    JIRA_USERNAME: str = ""
    JIRA_API_TOKEN: str = ""
    JIRA_MAX_RESULTS: int = 100  # Page size for issue search

    # Bitbucket (change-request source)
    BITBUCKET_URL: str = "https://api.bitbucket.org"
    BITBUCKET_USERNAME: str = ""
    BITBUCKET_APP_PASSWORD: str = ""
    BITBUCKET_WORKSPACE: str = ""
    BITBUCKET_REPOSITORIES: str = ""  # Comma-separated: "api,frontend,infra"
    BITBUCKET_MAX_COMMITS: int = 50  # Per repository, newest first

    # Confluence (archive sink)
    CONFLUENCE_URL: str = "https://your-domain.atlassian.net"
    CONFLUENCE_USERNAME: str = ""
    CONFLUENCE_API_TOKEN: str = ""
    CONFLUENCE_SPACE_KEY: str = "LEGACY"  # Space that receives Legacy Documents

    # Outbound HTTP
    HTTP_TIMEOUT: float = 30.0  # Seconds per request
    REQUESTS_PER_SECOND: float = 5.0  # Client-side rate limit per source

    # Activity scanning
    SCAN_WINDOW_MONTHS: int = 6  # Trailing window, calendar months
    CRITICAL_TICKET_MAX_DOC_SIGNAL: int = 3  # Ticket is critical at or below this
    CRITICAL_TICKET_MIN_SUMMARY_LENGTH: int = 50  # ...and with a longer summary than this
    HIGH_COMPLEXITY_THRESHOLD: int = 6  # Change complexity score (0-10)
    NOTABLE_COMMIT_MIN_LINES: int = 200  # Commits at least this large get interview questions
    # Risk cutoffs are illustrative defaults, tune per organisation
    RISK_LOW_THRESHOLD: float = 1.5  # Score below this = LOW
    RISK_HIGH_THRESHOLD: float = 3.0  # Score at or above this = HIGH

    # Workflow sessions
    SESSION_TTL_SECONDS: int = 7 * 24 * 3600  # Finished sessions evicted after this, 0 = never
    ARTIFACT_BACKLINKS: bool = True  # Comment the archive link on source tickets, PRs and commits

    @property
    def bitbucket_repository_list(self) -> list[str]:
        """Get Bitbucket repository slugs as a list."""
        if not self.BITBUCKET_REPOSITORIES:
            return []
        return [r.strip() for r in self.BITBUCKET_REPOSITORIES.split(",") if r.strip()]

    @property
    def jira_configured(self) -> bool:
        """Check whether Jira credentials are present."""
        return bool(self.JIRA_USERNAME and self.JIRA_API_TOKEN)

    @property
    def bitbucket_configured(self) -> bool:
        """Check whether Bitbucket credentials and a workspace are present."""
        return bool(
            self.BITBUCKET_USERNAME and self.BITBUCKET_APP_PASSWORD and self.BITBUCKET_WORKSPACE
        )

    @property
    def confluence_configured(self) -> bool:
        """Check whether Confluence credentials are present."""
        return bool(self.CONFLUENCE_USERNAME and self.CONFLUENCE_API_TOKEN)

    @model_validator(mode="after")
    def check_thresholds(self) -> "Settings":
        """Validate scanner thresholds and session policy."""
        if self.RISK_LOW_THRESHOLD > self.RISK_HIGH_THRESHOLD:
            raise ValueError(
                "RISK_LOW_THRESHOLD must not exceed RISK_HIGH_THRESHOLD "
                f"({self.RISK_LOW_THRESHOLD} > {self.RISK_HIGH_THRESHOLD})"
            )
        if self.SESSION_TTL_SECONDS <= 0:
            logging.warning(
                "SESSION_TTL_SECONDS is disabled; workflow sessions will accumulate "
                "until the process restarts"
            )
        return self


settings = Settings()
