"""
Tests for the Field Validator/Coercer
=====================================

Coercion is total: any parsed JSON value yields well-formed entities.
"""

import pytest

from testimony_prep.parser import ParseMode
from testimony_prep.schemas import Difficulty, Priority, QuestionCategory, Severity
from testimony_prep.validator import (
    DEFAULT_TOPIC,
    MAX_QUESTIONS,
    QUESTION_PLACEHOLDER,
    coerce_analysis,
    coerce_contradiction,
    coerce_enum,
    coerce_gap,
    coerce_generation,
    coerce_question,
    coerce_questions,
)


class TestCoerceEnum:

    def test_exact_value(self):
        assert coerce_enum("impeachment", QuestionCategory) == QuestionCategory.IMPEACHMENT

    def test_case_and_whitespace_normalized(self):
        assert coerce_enum("  HIGH ", Priority) == Priority.HIGH

    @pytest.mark.parametrize("value", [None, "", "urgent", 3, ["high"], {"v": "high"}])
    def test_invalid_maps_to_default(self, value):
        assert coerce_enum(value, Priority) == Priority.MEDIUM
        assert coerce_enum(value, Severity) == Severity.MODERATE
        assert coerce_enum(value, Difficulty) == Difficulty.MEDIUM
        assert coerce_enum(value, QuestionCategory) == QuestionCategory.GENERAL


class TestCoerceQuestion:

    def test_empty_object(self):
        q = coerce_question({})
        assert q.question == QUESTION_PLACEHOLDER
        assert q.topic == DEFAULT_TOPIC
        assert q.category == QuestionCategory.GENERAL
        assert q.priority == Priority.MEDIUM
        assert q.follow_up_questions is None
        assert q.document_reference is None
        assert q.id

    def test_non_dict_values(self):
        assert coerce_question(None).question == QUESTION_PLACEHOLDER
        assert coerce_question(17).question == QUESTION_PLACEHOLDER
        assert coerce_question("Where were you?").question == "Where were you?"

    def test_number_is_stringified(self):
        q = coerce_question({"question": 42, "pageReference": 12})
        assert q.question == "42"
        assert q.page_reference == "12"

    def test_camel_and_snake_keys(self):
        camel = coerce_question({"question": "Q", "documentReference": "a.txt", "followUpQuestions": ["F"]})
        snake = coerce_question({"question": "Q", "document_reference": "a.txt", "follow_up_questions": ["F"]})
        assert camel.document_reference == snake.document_reference == "a.txt"
        assert camel.follow_up_questions == snake.follow_up_questions == ["F"]

    def test_follow_ups_coerced_element_wise(self):
        q = coerce_question({"question": "Q", "followUpQuestions": ["a", 2, None, {"x": 1}]})
        assert q.follow_up_questions == ["a", "2"]

    def test_non_list_follow_ups_dropped(self):
        assert coerce_question({"question": "Q", "followUpQuestions": "a"}).follow_up_questions is None

    def test_witness_coaching_fields(self):
        q = coerce_question({"question": "Q", "suggestedApproach": "Stay calm", "weakPoint": "Memory"})
        assert q.suggested_approach == "Stay calm"
        assert q.weak_point == "Memory"

    def test_ids_are_unique(self):
        assert coerce_question({"question": "Q"}).id != coerce_question({"question": "Q"}).id


class TestCoerceCollections:

    def test_question_cap(self):
        raw = [{"question": f"Q{i}"} for i in range(35)]
        questions = coerce_questions(raw)
        assert len(questions) == MAX_QUESTIONS
        assert questions[-1].question == "Q19"

    def test_questions_not_a_list(self):
        assert coerce_questions({"question": "Q"}) == []

    def test_gap_defaults(self):
        gap = coerce_gap({"description": "Missing timeline", "severity": "CRITICAL", "documentReferences": "a.txt"})
        assert gap.severity == Severity.MODERATE
        assert gap.document_references == []
        assert gap.suggested_questions == []

    def test_contradiction_sources(self):
        c = coerce_contradiction({
            "description": "Dates differ",
            "source1": {"document": "a.txt", "excerpt": "March 1", "page": 3},
            "source2": "bad",
            "severity": "significant",
        })
        assert c.source1.page == "3"
        assert c.source2.document == ""
        assert c.severity == Severity.SIGNIFICANT

    def test_analysis_skips_bad_events(self):
        analysis = coerce_analysis({
            "keyThemes": ["Timeline"],
            "timelineEvents": [{"date": "2023-01-01", "event": "Signed", "source": "a.txt"}, "junk"],
            "witnesses": "John",
        })
        assert analysis.key_themes == ["Timeline"]
        assert len(analysis.timeline_events) == 1
        assert analysis.witnesses == []


class TestCoerceGeneration:

    def test_array_mode(self):
        result = coerce_generation([{"question": "Q1"}, {"question": "Q2"}], ParseMode.ARRAY)
        assert [q.question for q in result.questions] == ["Q1", "Q2"]
        assert result.gaps == []

    def test_object_mode(self):
        result = coerce_generation({
            "questions": [{"question": "Q1", "category": "timeline"}],
            "gaps": [{"description": "G"}],
            "contradictions": [{}],
            "analysis": None,
        }, ParseMode.OBJECT)
        assert result.questions[0].category == QuestionCategory.TIMELINE
        assert len(result.gaps) == 1
        assert len(result.contradictions) == 1
        assert result.analysis.key_themes == []

    def test_zero_questions_is_failure(self):
        assert coerce_generation([], ParseMode.ARRAY) is None
        assert coerce_generation({"questions": [], "gaps": [{}]}, ParseMode.OBJECT) is None

    def test_object_mode_rejects_list(self):
        assert coerce_generation([{"question": "Q"}], ParseMode.OBJECT) is None
