"""Data models for archived Legacy Documents."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ArtifactLink:
    """External link from a Legacy Document back to a source artifact."""

    type: str  # "TICKET", "PULL_REQUEST" or "COMMIT"
    id: str
    url: str
    title: str
    repository: str = ""


@dataclass
class FormattedArtifact:
    """A knowledge artifact rendered for the document store."""

    title: str
    content: str
    repository: str = ""
    artifact_links: list[ArtifactLink] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StoreResult:
    """Where the document store put a Legacy Document."""

    location_id: str
    url: str = ""
    linked_artifacts: tuple[str, ...] = ()
