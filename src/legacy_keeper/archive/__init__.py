"""Archival of knowledge artifacts as Legacy Documents."""

from legacy_keeper.archive.formatter import (
    extract_artifact_links,
    extract_workflow_tags,
    format_for_archival,
    format_interview_content,
)
from legacy_keeper.archive.linker import ArtifactLinker, create_artifact_linker
from legacy_keeper.archive.models import ArtifactLink, FormattedArtifact, StoreResult
from legacy_keeper.archive.sinks import (
    ArchiveSink,
    ConfluenceArchiveSink,
    InMemoryArchiveSink,
)

__all__ = [
    "ArchiveSink",
    "ArtifactLink",
    "ArtifactLinker",
    "ConfluenceArchiveSink",
    "FormattedArtifact",
    "InMemoryArchiveSink",
    "StoreResult",
    "create_artifact_linker",
    "extract_artifact_links",
    "extract_workflow_tags",
    "format_for_archival",
    "format_interview_content",
]
