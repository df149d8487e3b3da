"""
State Machine Parser
====================
Deterministic line-oriented state machine that splits one exam's Markdown
into question blocks.

Recognized dialect (one per line):

    # Exam title                      first line only
    12. Question text                 question start
    - B. Option text                  option (dash optional)
    Correct answer: A, C              answer letters (case-insensitive)

Every other line is ignored.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Optional

from .models import (
    Anomaly,
    AnomalyType,
    Exam,
    Option,
    QuestionDraft,
)

logger = logging.getLogger(__name__)

# ─── Anchor Patterns ──────────────────────────────────────────────────────────

# "# AWS Cloud Practitioner", "## Practice Exam 3"
TITLE_PATTERN = re.compile(r"^\s*#+\s*")

# "3. Which service provides object storage?"
QUESTION_PATTERN = re.compile(r"^(\d+)\.\s+(.*)$")

# "A. EC2", "- B. S3", "   - C. RDS"
OPTION_PATTERN = re.compile(r"^\s*(?:-\s*)?([A-Z])\.\s+(.*)$")

# "Correct answer: B", "correct answer: A, C"
ANSWER_PATTERN = re.compile(r"^\s*Correct answer:\s*(.*)$", re.IGNORECASE)


class ParserState(Enum):
    """Whether a question block is currently being accumulated."""
    NO_QUESTION_OPEN = "NO_QUESTION_OPEN"
    QUESTION_OPEN = "QUESTION_OPEN"


class LineEvent(Enum):
    """Classification of a single source line."""
    QUESTION_START = "QUESTION_START"
    OPTION = "OPTION"
    CORRECT_ANSWER = "CORRECT_ANSWER"
    OTHER = "OTHER"


def classify_line(line: str) -> tuple[LineEvent, Optional[re.Match]]:
    """Return the event a line triggers and the match that produced it."""
    match = QUESTION_PATTERN.match(line)
    if match:
        return LineEvent.QUESTION_START, match

    match = OPTION_PATTERN.match(line)
    if match:
        return LineEvent.OPTION, match

    match = ANSWER_PATTERN.match(line)
    if match:
        return LineEvent.CORRECT_ANSWER, match

    return LineEvent.OTHER, None


def parse_title(first_line: str) -> str:
    """Strip a leading heading marker from the first line."""
    return TITLE_PATTERN.sub("", first_line, count=1).strip()


def parse_answer_letters(raw: str) -> tuple[list[str], list[str]]:
    """
    Split a correct-answer payload on commas.

    Returns (letters, rejected): single-letter tokens uppercased and
    deduplicated in order, and every other non-empty token.
    """
    letters: list[str] = []
    rejected: list[str] = []
    for piece in raw.split(","):
        token = piece.strip().upper()
        if not token:
            continue
        if len(token) == 1 and "A" <= token <= "Z":
            if token not in letters:
                letters.append(token)
        else:
            rejected.append(piece.strip())
    return letters, rejected


class MarkdownExamParser:
    """
    Finite state machine that transforms exam Markdown into question drafts.

    Transitions:
        NO_QUESTION_OPEN --QUESTION_START--> QUESTION_OPEN
        QUESTION_OPEN    --QUESTION_START--> QUESTION_OPEN  (finalize previous)
        QUESTION_OPEN    --OPTION / CORRECT_ANSWER--> QUESTION_OPEN
        any              --end of input--> NO_QUESTION_OPEN (finalize open)
    """

    def __init__(self):
        self.state = ParserState.NO_QUESTION_OPEN
        self.current: Optional[QuestionDraft] = None
        self.drafts: list[QuestionDraft] = []
        self.orphan_lines = 0

    def reset(self):
        """Reset the state machine for a fresh parsing run."""
        self.state = ParserState.NO_QUESTION_OPEN
        self.current = None
        self.drafts = []
        self.orphan_lines = 0

    def parse(self, text: str) -> tuple[str, list[QuestionDraft]]:
        """
        Parse one file's content.

        Returns the exam title and every finalized draft, valid or not,
        in order of appearance.
        """
        self.reset()

        lines = text.removeprefix("\ufeff").splitlines()
        if not lines:
            return "", []

        title = parse_title(lines[0])

        for line_number, line in enumerate(lines[1:], start=2):
            self.feed(line, line_number)

        self.finalize()
        return title, self.drafts

    def feed(self, line: str, line_number: int = 0):
        """Process one line."""
        event, match = classify_line(line)

        if event == LineEvent.QUESTION_START:
            self._start_question(int(match.group(1)), match.group(2), line_number)
            return

        if event == LineEvent.OTHER:
            return

        if self.state == ParserState.NO_QUESTION_OPEN:
            self.orphan_lines += 1
            logger.debug(f"Ignoring {event.value} line {line_number} outside a question")
            return

        if event == LineEvent.OPTION:
            self._add_option(match.group(1), match.group(2), line_number)
        elif event == LineEvent.CORRECT_ANSWER:
            self._set_answer(match.group(1), line_number)

    def finalize(self):
        """Finalize any in-progress question at end of input."""
        if self.state == ParserState.QUESTION_OPEN:
            self._finalize_question()

    # ─── Transitions ──────────────────────────────────────────────────────

    def _start_question(self, number: int, text: str, line_number: int):
        if self.state == ParserState.QUESTION_OPEN:
            self._finalize_question()

        logger.debug(f"Detected question {number} on line {line_number}")
        self.current = QuestionDraft(
            id=number,
            text=text.strip(),
            line_number=line_number,
        )
        self.state = ParserState.QUESTION_OPEN

    def _add_option(self, letter: str, text: str, line_number: int):
        q = self.current
        if any(o.letter == letter for o in q.options):
            q.anomalies.append(Anomaly(
                type=AnomalyType.DUPLICATE_OPTION_LETTER,
                severity=40,
                message=f"Option {letter} repeated; later occurrence ignored",
                line_number=line_number,
            ))
            return
        q.options.append(Option(letter=letter, text=text.strip()))

    def _set_answer(self, payload: str, line_number: int):
        q = self.current
        letters, rejected = parse_answer_letters(payload)
        q.correct_letters = letters
        for token in rejected:
            q.anomalies.append(Anomaly(
                type=AnomalyType.INVALID_ANSWER_TOKEN,
                severity=30,
                message=f"Ignored answer token {token!r}",
                line_number=line_number,
            ))

    def _finalize_question(self):
        """Attach validity anomalies and store the draft."""
        q = self.current

        if not q.options:
            q.anomalies.append(Anomaly(
                type=AnomalyType.NO_OPTIONS,
                severity=80,
                message="Question has no options",
                line_number=q.line_number,
            ))

        if not q.correct_letters:
            q.anomalies.append(Anomaly(
                type=AnomalyType.MISSING_ANSWER,
                severity=60,
                message="Question has no correct answer",
                line_number=q.line_number,
            ))
        else:
            known = {o.letter for o in q.options}
            unknown = [l for l in q.correct_letters if l not in known]
            if q.options and unknown:
                q.anomalies.append(Anomaly(
                    type=AnomalyType.UNKNOWN_ANSWER_LETTER,
                    severity=40,
                    message=f"Answer letters {unknown} match no option",
                    line_number=q.line_number,
                ))

        if not q.text:
            q.anomalies.append(Anomaly(
                type=AnomalyType.EMPTY_QUESTION_TEXT,
                severity=20,
                message="Question has no prompt text",
                line_number=q.line_number,
            ))

        if not q.is_valid:
            logger.debug(f"Question {q.id} dropped: {', '.join(q.drop_reasons)}")

        self.drafts.append(q)
        self.current = None
        self.state = ParserState.NO_QUESTION_OPEN


def build_exam(title: str, drafts: list[QuestionDraft]) -> Exam:
    """Keep only valid drafts, in source order."""
    return Exam(
        title=title,
        questions=[d.to_question() for d in drafts if d.is_valid],
    )


def parse_exam(text: str) -> Exam:
    """Parse one exam file's content into an Exam."""
    title, drafts = MarkdownExamParser().parse(text)
    return build_exam(title, drafts)
