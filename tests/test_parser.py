"""
Test Suite for the Exam Markdown Parser
=======================================
Unit tests for models, anchor patterns, the state machine and validation.
"""

from __future__ import annotations

import json
import textwrap

import pytest
from pydantic import ValidationError

from examprep.models import (
    AnomalyType,
    Exam,
    ManifestEntry,
    Option,
    Question,
    QuestionDraft,
    QuestionKind,
    ValidationReport,
)
from examprep.state_machine import (
    ANSWER_PATTERN,
    OPTION_PATTERN,
    QUESTION_PATTERN,
    LineEvent,
    MarkdownExamParser,
    ParserState,
    classify_line,
    parse_answer_letters,
    parse_exam,
    parse_title,
)
from examprep.validator import ValidationEngine


def md(text: str) -> str:
    return textwrap.dedent(text).strip("\n")


# ═══════════════════════════════════════════════════════════════════════════════
# MODEL TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestQuestion:
    """Test Question model."""

    def _make(self, correct):
        return Question(
            id=1,
            text="Which service?",
            options=[Option(letter="A", text="EC2"), Option(letter="B", text="S3")],
            correct_letters=correct,
        )

    def test_single_kind(self):
        assert self._make(["B"]).kind == QuestionKind.SINGLE

    def test_multiple_kind(self):
        assert self._make(["A", "B"]).kind == QuestionKind.MULTIPLE

    def test_serialized_shape(self):
        data = self._make(["A", "B"]).model_dump(mode="json", by_alias=True)
        assert data == {
            "id": 1,
            "text": "Which service?",
            "options": [
                {"letter": "A", "text": "EC2"},
                {"letter": "B", "text": "S3"},
            ],
            "correct": ["A", "B"],
            "type": "multiple",
        }

    def test_kind_cannot_be_set(self):
        q = self._make(["A"])
        with pytest.raises((ValidationError, AttributeError)):
            q.kind = QuestionKind.MULTIPLE

    def test_rejects_duplicate_option_letters(self):
        with pytest.raises(ValidationError):
            Question(
                id=1,
                text="Q",
                options=[Option(letter="A", text="x"), Option(letter="A", text="y")],
                correct_letters=["A"],
            )

    def test_rejects_empty_options_and_answers(self):
        with pytest.raises(ValidationError):
            Question(id=1, text="Q", options=[], correct_letters=["A"])
        with pytest.raises(ValidationError):
            Question(
                id=1, text="Q",
                options=[Option(letter="A", text="x")],
                correct_letters=[],
            )

    def test_option_letter_must_be_uppercase(self):
        with pytest.raises(ValidationError):
            Option(letter="a", text="lower")

    def test_option_strings(self):
        assert self._make(["A"]).option_strings() == ["A. EC2", "B. S3"]


class TestExamAndManifest:

    def test_exam_alias(self):
        data = Exam(title="Practice 1").model_dump(by_alias=True)
        assert data == {"examTitle": "Practice 1", "questions": []}

    def test_manifest_alias(self):
        entry = ManifestEntry(file="a.json", title="A", question_count=3)
        assert entry.model_dump(by_alias=True) == {
            "file": "a.json", "title": "A", "questionCount": 3,
        }

    def test_exam_roundtrip_from_json(self):
        exam = parse_exam(md("""
            # Exam
            1. Q?
            - A. x
            Correct answer: A
        """))
        data = json.loads(json.dumps(exam.model_dump(mode="json", by_alias=True)))
        again = Exam.model_validate(data)
        assert again.questions[0].correct_letters == ["A"]


class TestValidationReport:

    def test_success_rate(self):
        report = ValidationReport(total_questions_detected=4, questions_emitted=3)
        assert report.success_rate == 75.0

    def test_empty_report(self):
        report = ValidationReport()
        assert report.success_rate == 0.0
        assert report.dropped_questions == []


# ═══════════════════════════════════════════════════════════════════════════════
# ANCHOR PATTERN TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestAnchorPatterns:
    """Test regex patterns for structural anchors."""

    def test_question_patterns(self):
        assert QUESTION_PATTERN.match("1. What is AWS?")
        assert QUESTION_PATTERN.match("42. Which TWO?")
        assert QUESTION_PATTERN.match("3.  Extra spaces")

        assert not QUESTION_PATTERN.match("A. EC2")
        assert not QUESTION_PATTERN.match("1.5 is a number")
        assert not QUESTION_PATTERN.match("Question 1")

    def test_option_patterns(self):
        assert OPTION_PATTERN.match("A. EC2")
        assert OPTION_PATTERN.match("- B. S3")
        assert OPTION_PATTERN.match("   - C. RDS")
        assert OPTION_PATTERN.match("-D. Lambda")

        assert not OPTION_PATTERN.match("a. lowercase")
        assert not OPTION_PATTERN.match("AB. two letters")
        assert not OPTION_PATTERN.match("- Just a bullet")

    def test_answer_patterns(self):
        assert ANSWER_PATTERN.match("Correct answer: B")
        assert ANSWER_PATTERN.match("correct answer: A, C")
        assert ANSWER_PATTERN.match("  CORRECT ANSWER:D")

        assert not ANSWER_PATTERN.match("The correct answer is B")
        assert not ANSWER_PATTERN.match("Answer: B")

    def test_classify_line(self):
        assert classify_line("3. Q")[0] == LineEvent.QUESTION_START
        assert classify_line("- A. x")[0] == LineEvent.OPTION
        assert classify_line("Correct answer: A")[0] == LineEvent.CORRECT_ANSWER
        assert classify_line("")[0] == LineEvent.OTHER
        assert classify_line("continuation text")[0] == LineEvent.OTHER

    def test_title(self):
        assert parse_title("# AWS Practice Exam 1") == "AWS Practice Exam 1"
        assert parse_title("## Nested  ") == "Nested"
        assert parse_title("  Plain title  ") == "Plain title"

    def test_answer_letters(self):
        assert parse_answer_letters("B") == (["B"], [])
        assert parse_answer_letters("A, C") == (["A", "C"], [])
        assert parse_answer_letters(" a ,c ") == (["A", "C"], [])
        assert parse_answer_letters("A, A") == (["A"], [])
        assert parse_answer_letters("A, see notes") == (["A"], ["see notes"])
        assert parse_answer_letters("") == ([], [])


# ═══════════════════════════════════════════════════════════════════════════════
# STATE MACHINE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestMarkdownExamParser:
    """Test the state machine parser."""

    def test_byte_order_mark_before_title(self):
        exam = parse_exam("\ufeff# Exam\n1. Q?\n- A. x\n- B. y\nCorrect answer: B\n")
        assert exam.title == "Exam"
        assert [q.id for q in exam.questions] == [1]

    def test_single_complete_question(self):
        exam = parse_exam(md("""
            # Cloud Practitioner
            3. Which service provides object storage?
            - A. EC2
            - B. S3
            Correct answer: B
        """))

        assert exam.title == "Cloud Practitioner"
        assert len(exam.questions) == 1
        q = exam.questions[0]
        assert q.id == 3
        assert q.text == "Which service provides object storage?"
        assert q.options == [
            Option(letter="A", text="EC2"),
            Option(letter="B", text="S3"),
        ]
        assert q.correct_letters == ["B"]
        assert q.kind == QuestionKind.SINGLE

    def test_multiple_answer_question(self):
        exam = parse_exam(md("""
            # Exam
            1. Pick two.
            - A. One
            - B. Two
            - C. Three
            Correct answer: A, C
        """))

        q = exam.questions[0]
        assert q.correct_letters == ["A", "C"]
        assert q.kind == QuestionKind.MULTIPLE

    def test_multiple_questions_keep_order(self):
        exam = parse_exam(md("""
            # Exam
            2. Second first
            A. x
            Correct answer: A
            1. First second
            A. y
            B. z
            Correct answer: B
        """))

        assert [q.id for q in exam.questions] == [2, 1]
        assert exam.questions[1].options[1].text == "z"

    def test_dash_is_optional_and_indent_allowed(self):
        exam = parse_exam(md("""
            # Exam
            1. Mixed option styles
            A. plain
              - B. indented dash
            -C. tight dash
            Correct answer: C
        """))

        assert [o.letter for o in exam.questions[0].options] == ["A", "B", "C"]

    def test_other_lines_ignored(self):
        exam = parse_exam(md("""
            # Exam

            Some intro paragraph.

            1. What is IAM?
            continuation that is not captured

            - A. Identity service
            <details><summary>Answer</summary>

            Correct answer: A
            </details>
        """))

        q = exam.questions[0]
        assert q.text == "What is IAM?"
        assert q.options == [Option(letter="A", text="Identity service")]
        assert q.correct_letters == ["A"]

    def test_question_without_options_is_dropped(self):
        exam = parse_exam(md("""
            # Exam
            1. No options here
            Correct answer: A
        """))
        assert exam.questions == []

    def test_question_without_answer_is_dropped(self):
        exam = parse_exam(md("""
            # Exam
            1. Missing answer
            - A. x
            - B. y
        """))
        assert exam.questions == []

    def test_bad_question_does_not_affect_neighbours(self):
        exam = parse_exam(md("""
            # Exam
            1. Good
            - A. x
            Correct answer: A
            2. Bad
            - A. x
            3. Also good
            - A. x
            - B. y
            Correct answer: A, B
        """))

        assert [q.id for q in exam.questions] == [1, 3]
        assert exam.questions[1].kind == QuestionKind.MULTIPLE

    def test_malformed_only_input(self):
        exam = parse_exam("# Exam\n1. Broken\n")
        assert exam.title == "Exam"
        assert exam.questions == []

    def test_empty_input(self):
        exam = parse_exam("")
        assert exam.title == ""
        assert exam.questions == []

    def test_first_line_is_always_title(self):
        exam = parse_exam(md("""
            1. Looks like a question
            2. Real question
            - A. x
            Correct answer: A
        """))
        assert exam.title == "1. Looks like a question"
        assert [q.id for q in exam.questions] == [2]

    def test_lines_before_first_question_ignored(self):
        parser = MarkdownExamParser()
        title, drafts = parser.parse(md("""
            # Exam
            - A. stray option
            Correct answer: B
            1. Real
            - A. x
            Correct answer: A
        """))

        assert len(drafts) == 1
        assert drafts[0].options == [Option(letter="A", text="x")]
        assert parser.orphan_lines == 2

    def test_duplicate_option_letter_keeps_first(self):
        parser = MarkdownExamParser()
        _, drafts = parser.parse(md("""
            # Exam
            1. Q
            - A. first
            - A. second
            Correct answer: A
        """))

        draft = drafts[0]
        assert draft.options == [Option(letter="A", text="first")]
        assert draft.is_valid
        assert any(
            a.type == AnomalyType.DUPLICATE_OPTION_LETTER for a in draft.anomalies
        )

    def test_later_answer_line_replaces_earlier(self):
        exam = parse_exam(md("""
            # Exam
            1. Q
            - A. x
            - B. y
            Correct answer: A
            Correct answer: B
        """))
        assert exam.questions[0].correct_letters == ["B"]

    def test_non_letter_answer_tokens(self):
        parser = MarkdownExamParser()
        _, drafts = parser.parse(md("""
            # Exam
            1. Q
            - A. x
            Correct answer: S3 bucket
        """))

        draft = drafts[0]
        assert not draft.is_valid
        types = {a.type for a in draft.anomalies}
        assert AnomalyType.INVALID_ANSWER_TOKEN in types
        assert AnomalyType.MISSING_ANSWER in types

    def test_unknown_answer_letter_is_reported_not_dropped(self):
        parser = MarkdownExamParser()
        _, drafts = parser.parse(md("""
            # Exam
            1. Q
            - A. x
            Correct answer: E
        """))

        assert drafts[0].is_valid
        assert drafts[0].anomalies[0].type == AnomalyType.UNKNOWN_ANSWER_LETTER

    def test_state_transitions(self):
        parser = MarkdownExamParser()
        assert parser.state == ParserState.NO_QUESTION_OPEN

        parser.feed("1. Q", 2)
        assert parser.state == ParserState.QUESTION_OPEN

        parser.feed("- A. x", 3)
        parser.feed("2. Next", 4)
        assert parser.state == ParserState.QUESTION_OPEN
        assert len(parser.drafts) == 1

        parser.finalize()
        assert parser.state == ParserState.NO_QUESTION_OPEN
        assert [d.id for d in parser.drafts] == [1, 2]

    def test_parser_is_reusable(self):
        parser = MarkdownExamParser()
        parser.parse("# A\n1. Q\n- A. x\nCorrect answer: A")
        title, drafts = parser.parse("# B\n")
        assert title == "B"
        assert drafts == []

    def test_kind_always_matches_answer_count(self):
        exam = parse_exam(md("""
            # Exam
            1. a
            - A. x
            - B. y
            - C. z
            Correct answer: A
            2. b
            - A. x
            - B. y
            - C. z
            Correct answer: A, B
            3. c
            - A. x
            - B. y
            - C. z
            Correct answer: C, B, A
        """))

        for q in exam.questions:
            expected = (
                QuestionKind.MULTIPLE if len(q.correct_letters) > 1
                else QuestionKind.SINGLE
            )
            assert q.kind == expected


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATION TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestValidationEngine:
    """Test the validation engine."""

    def _drafts(self, text: str):
        parser = MarkdownExamParser()
        _, drafts = parser.parse(text)
        return drafts, parser.orphan_lines

    def test_empty_questions(self):
        report = ValidationEngine().validate([])
        assert report.total_questions_detected == 0
        assert report.questions_emitted == 0

    def test_perfect_parse(self):
        drafts, orphans = self._drafts(md("""
            # Exam
            1. a
            - A. x
            Correct answer: A
            2. b
            - A. x
            - B. y
            Correct answer: A, B
        """))

        report = ValidationEngine().validate(drafts, orphan_lines=orphans)

        assert report.total_questions_detected == 2
        assert report.questions_emitted == 2
        assert report.multiple_answer_questions == 1
        assert report.success_rate == 100.0
        assert report.dropped_questions == []
        assert report.anomaly_breakdown == {}

    def test_dropped_questions_listed(self):
        drafts, _ = self._drafts(md("""
            # Exam
            1. no answer
            - A. x
            2. no options
            Correct answer: A
        """))

        report = ValidationEngine().validate(drafts)

        assert report.questions_emitted == 0
        assert [d.id for d in report.dropped_questions] == [1, 2]
        assert report.dropped_questions[0].reasons == ["missing_answer"]
        assert report.dropped_questions[1].reasons == ["no_options"]
        assert report.anomaly_breakdown["missing_answer"] == 1
        assert report.anomaly_breakdown["no_options"] == 1

    def test_gap_and_duplicate_detection(self):
        drafts = [
            QuestionDraft(
                id=n,
                text="q",
                options=[Option(letter="A", text="x")],
                correct_letters=["A"],
            )
            for n in [1, 2, 2, 5]
        ]

        report = ValidationEngine().validate(drafts)

        assert report.missing_question_numbers == [3, 4]
        assert report.duplicate_question_numbers == [2]
        assert report.anomaly_breakdown["duplicate_question_number"] == 1

    def test_orphan_lines_counted(self):
        report = ValidationEngine().validate([], orphan_lines=3)
        assert report.orphan_lines == 3
        assert report.anomaly_breakdown == {"orphan_line": 3}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
