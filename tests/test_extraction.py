"""Tests for knowledge extraction and tacit knowledge categorization."""

from unittest.mock import MagicMock

import pytest

from legacy_keeper.exceptions import ExtractionError
from legacy_keeper.interview.extraction import (
    CategoryMatch,
    KeywordClassifier,
    calculate_response_confidence,
    extract_knowledge,
    extract_tacit_knowledge,
    extract_tags,
)
from legacy_keeper.interview.models import (
    ArtifactType,
    CodeArtifact,
    InterviewContext,
    InterviewResponse,
    KnowledgeCategory,
    coerce_responses,
)


@pytest.fixture
def context():
    """Interview context with one PR and one ticket."""
    return InterviewContext(
        session_id="offboarding_1_abc",
        employee_id="alice",
        undocumented_intensity_score=3.5,
        artifacts=(
            CodeArtifact(type=ArtifactType.PR, id="451", title="Ledger sharding"),
            CodeArtifact(type=ArtifactType.TICKET, id="PAY-142", title="Settlement retries"),
        ),
        role="Staff Engineer",
    )


class TestExtractTags:
    """Tests for extract_tags()."""

    def test_empty(self):
        assert extract_tags("") == []

    def test_technical_terms_and_project_keys(self):
        tags = extract_tags("The database migration for PAY-142 touched the api layer")
        assert "api" in tags
        assert "database" in tags
        assert "project:PAY-142" in tags

    def test_system_names(self):
        tags = extract_tags('We call "ledger-writer" before the KAFKA consumer')
        assert "system:ledger-writer" in tags
        assert "system:kafka" in tags

    def test_capped_at_ten(self):
        text = " ".join(
            ["api database integration deployment testing monitoring security",
             "performance architecture documentation process workflow automation"]
        )
        assert len(extract_tags(text)) == 10


class TestExtractKnowledge:
    """Tests for the shallow extract_knowledge() contract."""

    def test_empty_responses(self):
        """Empty input yields zero confidence and a list of tags."""
        artifact = extract_knowledge([])
        assert artifact.confidence == 0
        assert isinstance(artifact.tags, tuple)
        assert list(artifact.tags) == []

    def test_malformed_input_does_not_raise(self):
        artifact = extract_knowledge("not a list")
        assert artifact.confidence == 0

    def test_links_context_artifacts(self, context):
        responses = [
            InterviewResponse(
                question="Why shard the ledger?",
                answer=(
                    "Because the database could not keep up with the process volume, "
                    "for example during month end."
                ),
                artifact_id="451",
            )
        ]

        artifact = extract_knowledge(responses, context)

        assert artifact.title == "Knowledge Transfer Session - Staff Engineer"
        assert artifact.employee_id == "alice"
        assert artifact.related_prs == ("451",)
        assert artifact.related_tickets == ("PAY-142",)
        assert 0 < artifact.confidence <= 1
        assert "**Question 1:** Why shard the ledger?" in artifact.content
        assert "database" in artifact.tags

    def test_confidence_bounded(self):
        answer = "because example process " + "api database system " * 40
        responses = [InterviewResponse(question="q", answer=answer)] * 5
        assert calculate_response_confidence(responses) <= 1.0


class TestExtractTacitKnowledge:
    """Tests for the deep extract_tacit_knowledge() contract."""

    def test_empty_responses(self, context):
        result = extract_tacit_knowledge([], context)
        assert result.confidence_score == 0.0
        assert result.populated_categories == []
        assert result.critical_insights == ()
        assert set(result.categories) == set(KnowledgeCategory)

    def test_empty_answers_score_zero(self, context):
        result = extract_tacit_knowledge([{"question": "q", "answer": ""}], context)
        assert result.confidence_score == 0.0

    def test_categorizes_by_keywords(self, context):
        responses = [
            {
                "question": "Why this design?",
                "answer": "We decided on this approach because the stakeholder deadline was fixed.",
                "artifact_id": "451",
            },
        ]

        result = extract_tacit_knowledge(responses, context)

        assert len(result.categories[KnowledgeCategory.ARCHITECTURAL_DECISIONS]) == 1
        assert len(result.categories[KnowledgeCategory.BUSINESS_CONSTRAINTS]) == 1
        assert result.categories[KnowledgeCategory.TECHNICAL_DEBT] == ()
        assert result.artifact_mappings == {"451": (responses[0]["answer"],)}
        insight = result.categories[KnowledgeCategory.ARCHITECTURAL_DECISIONS][0]
        assert insight.source_artifact_id == "451"
        assert insight.confidence == pytest.approx(0.9)

    def test_technical_debt_is_critical(self, context):
        responses = [
            InterviewResponse(
                question="Any shortcuts?",
                answer="The retry loop is a temporary workaround.",
                artifact_id="PAY-142",
            )
        ]

        result = extract_tacit_knowledge(responses, context)

        assert len(result.critical_insights) == 1
        assert result.critical_insights[0].reason == "Technical debt requires careful handling"
        assert result.critical_insights[0].artifact_id == "PAY-142"

    def test_risk_factor_is_critical(self, context):
        responses = [InterviewResponse(question="q", answer="Reindexing will break billing.")]
        result = extract_tacit_knowledge(responses, context)
        assert result.critical_insights[0].reason == "Risk factor requires immediate attention"

    def test_high_confidence_is_critical(self, context):
        """Confidence above 0.8 alone marks an insight critical."""
        answer = "We decided on this pattern. The process depends on the nightly job."
        result = extract_tacit_knowledge([InterviewResponse("q", answer)], context)
        assert len(result.critical_insights) == 1
        assert result.critical_insights[0].reason == "High confidence knowledge"

    def test_confidence_in_bounds(self, context):
        long_answer = (
            "Because of the constraint we decided on a hack; the approach relies on the "
            "workflow and will break if careful steps are skipped. For example, "
        ) * 5
        responses = [InterviewResponse("q", long_answer)] * 4

        result = extract_tacit_knowledge(responses, context)

        assert 0.0 <= result.confidence_score <= 1.0
        for insights in result.categories.values():
            assert all(0.0 <= i.confidence <= 1.0 for i in insights)

    def test_custom_classifier(self, context):
        """A pluggable classifier replaces the keyword heuristics."""
        classifier = MagicMock()
        classifier.classify.return_value = [
            CategoryMatch(KnowledgeCategory.PROCESS_KNOWLEDGE, 0.1)
        ]

        result = extract_tacit_knowledge([InterviewResponse("q", "anything")], context, classifier)

        classifier.classify.assert_called_once_with("anything")
        assert len(result.categories[KnowledgeCategory.PROCESS_KNOWLEDGE]) == 1

    def test_internal_failure_raises_extraction_error(self, context):
        classifier = MagicMock()
        classifier.classify.side_effect = RuntimeError("model crashed")

        with pytest.raises(ExtractionError):
            extract_tacit_knowledge([InterviewResponse("q", "text")], context, classifier)


class TestKeywordClassifier:
    """Tests for KeywordClassifier."""

    def test_no_match(self):
        assert KeywordClassifier().classify("nothing relevant here") == []

    def test_case_insensitive(self):
        matches = KeywordClassifier().classify("It RELIES on cron")
        assert [m.category for m in matches] == [KnowledgeCategory.UNDOCUMENTED_DEPENDENCIES]


class TestCoerceResponses:
    """Tests for coerce_responses()."""

    def test_camel_case_artifact_id(self):
        responses = coerce_responses([{"question": "q", "answer": "a", "artifactId": 42}])
        assert responses[0].artifact_id == "42"

    def test_junk_dropped(self):
        assert coerce_responses([None, 5, {"question": "q", "answer": "a"}])[0].answer == "a"
        assert coerce_responses(None) == []
        assert coerce_responses(17) == []
