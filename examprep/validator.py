"""
Validation Engine
=================
Post-parse validation and reporting.

After parsing each exam file, generates a report:
    - Total Questions Detected
    - Questions Emitted (valid)
    - Dropped Questions (with reasons)
    - Missing Question Numbers (gaps in sequence)
    - Duplicate Question Numbers
    - Orphan option / answer lines
    - Anomaly breakdown by type

Dropped questions are always listed, never silently ignored.
"""

from __future__ import annotations

import logging
from collections import Counter

from .models import (
    AnomalyType,
    DroppedQuestion,
    QuestionDraft,
    QuestionKind,
    ValidationReport,
)

logger = logging.getLogger(__name__)


class ValidationEngine:
    """
    Validates parsed question drafts and produces a report.
    """

    def validate(
        self,
        drafts: list[QuestionDraft],
        orphan_lines: int = 0,
        source: str = "",
    ) -> ValidationReport:
        """
        Run full validation on parsed drafts.

        Args:
            drafts: Every finalized draft, valid or not.
            orphan_lines: Option/answer lines seen outside any question.
            source: Name used in log output.

        Returns:
            ValidationReport with all detected issues.
        """
        report = ValidationReport(orphan_lines=orphan_lines)
        anomaly_counts: Counter[str] = Counter()
        if orphan_lines:
            anomaly_counts[AnomalyType.ORPHAN_LINE.value] = orphan_lines

        if not drafts:
            logger.warning(f"No questions detected in {source or 'input'}")
            report.anomaly_breakdown = dict(anomaly_counts)
            return report

        report.total_questions_detected = len(drafts)

        numbers = [d.id for d in drafts]
        number_counts = Counter(numbers)
        report.duplicate_question_numbers = sorted(
            num for num, count in number_counts.items() if count > 1
        )
        if report.duplicate_question_numbers:
            anomaly_counts[AnomalyType.DUPLICATE_QUESTION_NUMBER.value] = len(
                report.duplicate_question_numbers
            )

        expected = set(range(min(numbers), max(numbers) + 1))
        report.missing_question_numbers = sorted(expected - set(numbers))

        for draft in drafts:
            for anomaly in draft.anomalies:
                anomaly_counts[anomaly.type.value] += 1

            if not draft.is_valid:
                report.dropped_questions.append(DroppedQuestion(
                    id=draft.id,
                    line_number=draft.line_number,
                    reasons=draft.drop_reasons,
                ))
                continue

            report.questions_emitted += 1
            if draft.to_question().kind == QuestionKind.MULTIPLE:
                report.multiple_answer_questions += 1

        report.anomaly_breakdown = dict(sorted(anomaly_counts.items()))

        self._log_summary(report, source)
        return report

    def _log_summary(self, report: ValidationReport, source: str):
        logger.info("=" * 60)
        logger.info(f"VALIDATION REPORT {source}".rstrip())
        logger.info("=" * 60)
        logger.info(
            f"Total Questions Detected: {report.total_questions_detected}"
        )
        logger.info(
            f"Questions Emitted: {report.questions_emitted} "
            f"({report.success_rate}%)"
        )
        logger.info(f"Dropped Questions: {len(report.dropped_questions)}")
        logger.info(
            f"Missing Question Numbers: "
            f"{len(report.missing_question_numbers)}"
        )
        logger.info(
            f"Duplicate Question Numbers: "
            f"{len(report.duplicate_question_numbers)}"
        )

        if report.anomaly_breakdown:
            logger.info("Anomaly Breakdown:")
            for anomaly_type, count in report.anomaly_breakdown.items():
                logger.info(f"  • {anomaly_type}: {count}")

        logger.info("=" * 60)
