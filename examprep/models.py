"""
Data Models
===========
Pydantic models for parsed exams, question metadata and AI explanations.
All output models serialize to the camelCase JSON consumed by the web app
(``model_dump(by_alias=True)``).
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)


# ─── Enums ────────────────────────────────────────────────────────────────────


class QuestionKind(str, Enum):
    """Single- or multiple-answer classification."""
    SINGLE = "single"
    MULTIPLE = "multiple"


class ComplexityTier(str, Enum):
    """Coarse rendering complexity of a question body."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnomalyType(str, Enum):
    """Types of structural anomalies detected during parsing."""
    MISSING_ANSWER = "missing_answer"
    NO_OPTIONS = "no_options"
    EMPTY_QUESTION_TEXT = "empty_question_text"
    DUPLICATE_OPTION_LETTER = "duplicate_option_letter"
    UNKNOWN_ANSWER_LETTER = "unknown_answer_letter"
    INVALID_ANSWER_TOKEN = "invalid_answer_token"
    DUPLICATE_QUESTION_NUMBER = "duplicate_question_number"
    ORPHAN_LINE = "orphan_line"


# Anomalies that make a question unusable; such questions are never emitted.
BLOCKING_ANOMALIES = frozenset({
    AnomalyType.MISSING_ANSWER,
    AnomalyType.NO_OPTIONS,
})


# ─── Anomaly Model ────────────────────────────────────────────────────────────


class Anomaly(BaseModel):
    """A structural anomaly detected in a question block."""
    type: AnomalyType
    severity: int = Field(
        ge=0, le=100,
        description="Severity score 0-100"
    )
    message: str
    line_number: Optional[int] = None


# ─── Question Models ──────────────────────────────────────────────────────────


class Option(BaseModel):
    """One lettered answer option."""
    model_config = ConfigDict(frozen=True)

    letter: str = Field(pattern=r"^[A-Z]$")
    text: str


class Question(BaseModel):
    """
    A validated exam question.

    ``kind`` is derived from ``correct_letters`` and cannot be set.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    text: str
    options: list[Option] = Field(min_length=1)
    correct_letters: list[str] = Field(alias="correct", min_length=1)

    @field_validator("options")
    @classmethod
    def _unique_letters(cls, options: list[Option]) -> list[Option]:
        letters = [o.letter for o in options]
        if len(letters) != len(set(letters)):
            raise ValueError(f"duplicate option letters: {letters}")
        return options

    @field_validator("correct_letters")
    @classmethod
    def _single_letters(cls, letters: list[str]) -> list[str]:
        for letter in letters:
            if len(letter) != 1 or not ("A" <= letter <= "Z"):
                raise ValueError(f"invalid answer letter: {letter!r}")
        if len(letters) != len(set(letters)):
            raise ValueError(f"duplicate answer letters: {letters}")
        return letters

    @computed_field(alias="type")
    @property
    def kind(self) -> QuestionKind:
        if len(self.correct_letters) > 1:
            return QuestionKind.MULTIPLE
        return QuestionKind.SINGLE

    def option_strings(self) -> list[str]:
        """Options rendered as ``"A. text"`` lines."""
        return [f"{o.letter}. {o.text}" for o in self.options]


class QuestionDraft(BaseModel):
    """
    A question block as accumulated by the parser, before validation.
    Drafts with blocking anomalies are dropped from the output.
    """
    id: int
    text: str = ""
    line_number: int = 0
    options: list[Option] = Field(default_factory=list)
    correct_letters: list[str] = Field(default_factory=list)
    anomalies: list[Anomaly] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not any(a.type in BLOCKING_ANOMALIES for a in self.anomalies)

    @property
    def drop_reasons(self) -> list[str]:
        return [
            a.type.value for a in self.anomalies
            if a.type in BLOCKING_ANOMALIES
        ]

    def to_question(self) -> Question:
        return Question(
            id=self.id,
            text=self.text,
            options=list(self.options),
            correct_letters=list(self.correct_letters),
        )


class Exam(BaseModel):
    """One parsed exam file."""
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(alias="examTitle")
    questions: list[Question] = Field(default_factory=list)


class ManifestEntry(BaseModel):
    """Summary of one exam JSON written by the directory parser."""
    model_config = ConfigDict(populate_by_name=True)

    file: str
    title: str
    question_count: int = Field(alias="questionCount", ge=0)


# ─── Validation ───────────────────────────────────────────────────────────────


class DroppedQuestion(BaseModel):
    """A question block excluded from the output, and why."""
    id: int
    line_number: int
    reasons: list[str]


class ValidationReport(BaseModel):
    """Post-parse validation report for one exam file."""
    total_questions_detected: int = 0
    questions_emitted: int = 0
    multiple_answer_questions: int = 0
    dropped_questions: list[DroppedQuestion] = Field(default_factory=list)
    missing_question_numbers: list[int] = Field(default_factory=list)
    duplicate_question_numbers: list[int] = Field(default_factory=list)
    orphan_lines: int = 0
    anomaly_breakdown: dict[str, int] = Field(default_factory=dict)

    @computed_field
    @property
    def success_rate(self) -> float:
        if self.total_questions_detected == 0:
            return 0.0
        return round(
            self.questions_emitted / self.total_questions_detected * 100,
            2
        )


# ─── Parse Results ────────────────────────────────────────────────────────────


class ExamParseResult(BaseModel):
    """Output of parsing one exam source."""
    exam: Exam
    validation: ValidationReport = Field(default_factory=ValidationReport)
    source_file: str = ""
    output_file: str = ""


class FileFailure(BaseModel):
    """A source file the directory parser could not process."""
    source_file: str
    error: str


class DirectoryParseResult(BaseModel):
    """Output of parsing a directory of exam files."""
    manifest: list[ManifestEntry] = Field(default_factory=list)
    results: list[ExamParseResult] = Field(default_factory=list)
    failures: list[FileFailure] = Field(default_factory=list)
    manifest_path: str = ""

    @property
    def ok(self) -> bool:
        return not self.failures


# ─── Question Content Metadata ────────────────────────────────────────────────

MEDIUM_MIN_CODE_BLOCKS = 1
MEDIUM_MIN_SERVICES = 4
HIGH_MIN_CODE_BLOCKS = 2
HIGH_MIN_SERVICES = 6


class ParsedQuestionMetadata(BaseModel):
    """
    Render hints derived from one question's Markdown body.
    Recomputed on demand; never persisted.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    raw_content: str = Field(alias="rawContent")
    code_blocks: list[str] = Field(default_factory=list, alias="codeBlocks")
    mentioned_services: list[str] = Field(
        default_factory=list, alias="mentionedServices"
    )
    has_embedded_image: bool = Field(default=False, alias="hasEmbeddedImage")

    @computed_field(alias="complexityTier")
    @property
    def complexity_tier(self) -> ComplexityTier:
        code = len(self.code_blocks)
        services = len(self.mentioned_services)

        tier = ComplexityTier.LOW
        if code >= MEDIUM_MIN_CODE_BLOCKS or services >= MEDIUM_MIN_SERVICES:
            tier = ComplexityTier.MEDIUM
        if (
            code >= HIGH_MIN_CODE_BLOCKS
            or services >= HIGH_MIN_SERVICES
            or self.has_embedded_image
        ):
            tier = ComplexityTier.HIGH
        return tier


# ─── AI Explanation Models ────────────────────────────────────────────────────


class ExplainedQuestion(BaseModel):
    """One record of the combined AI-explained output array."""
    question: str
    options: list[str] = Field(default_factory=list)
    correct: str
    explanation: str


class ExplanationRequest(BaseModel):
    """Input for the structured and personalized explanation prompts."""
    question_content: str = Field(
        validation_alias=AliasChoices("question", "question_content")
    )
    options: list[str]
    correct_answer: str
    user_answer: Optional[str] = None
    topic: str = "General"
    difficulty: str = Field(default="medium", pattern=r"^(easy|medium|hard)$")
    existing_explanation: Optional[str] = None


class AIExplanation(BaseModel):
    """Structured explanation returned by the text-generation service."""
    model_config = ConfigDict(populate_by_name=True)

    explanation: str
    key_points: list[str] = Field(default_factory=list, alias="keyPoints")
    related_concepts: list[str] = Field(
        default_factory=list, alias="relatedConcepts"
    )
    study_tips: list[str] = Field(default_factory=list, alias="studyTips")
    common_mistakes: list[str] = Field(
        default_factory=list, alias="commonMistakes"
    )
