"""Forensic interviews: artifact questions and tacit knowledge extraction."""

from legacy_keeper.interview.extraction import (
    CategoryMatch,
    KeywordClassifier,
    KnowledgeClassifier,
    extract_knowledge,
    extract_tacit_knowledge,
    extract_tags,
)
from legacy_keeper.interview.models import (
    ArtifactType,
    CodeArtifact,
    DocumentationLevel,
    InterviewContext,
    InterviewResponse,
    KnowledgeArtifact,
    KnowledgeCategory,
    Question,
    TacitKnowledgeCategorization,
)
from legacy_keeper.interview.questions import (
    artifacts_from_report,
    build_interview_flow,
    generate_artifact_questions,
)

__all__ = [
    # Models
    "ArtifactType",
    "CodeArtifact",
    "DocumentationLevel",
    "InterviewContext",
    "InterviewResponse",
    "KnowledgeArtifact",
    "KnowledgeCategory",
    "Question",
    "TacitKnowledgeCategorization",
    # Questions
    "artifacts_from_report",
    "build_interview_flow",
    "generate_artifact_questions",
    # Extraction
    "CategoryMatch",
    "KeywordClassifier",
    "KnowledgeClassifier",
    "extract_knowledge",
    "extract_tacit_knowledge",
    "extract_tags",
]
