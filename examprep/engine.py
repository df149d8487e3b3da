"""
Exam Parser Engine
==================
Main orchestrator that combines state machine parsing, validation and JSON
output into the exam ingestion pipeline.

Usage:
    engine = ParserEngine(config)
    result = engine.parse_directory("questions-md", "public/exams")
    # writes one <exam>.json per source file plus manifest.json

Architecture:
    Markdown → MarkdownExamParser → QuestionDrafts → ValidationEngine →
    Exam (JSON) → Manifest
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import storage
from .explainer import ExplanationService
from .models import (
    DirectoryParseResult,
    ExamParseResult,
    ExplainedQuestion,
    FileFailure,
    ManifestEntry,
)
from .state_machine import MarkdownExamParser, build_exam
from .validator import ValidationEngine

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class ParserConfig:
    """Configuration for the parser engine."""

    # File naming
    source_extension: str = ".md"
    output_extension: str = ".json"
    manifest_name: str = "manifest.json"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


class ParserEngine:
    """
    Exam ingestion engine.

    Orchestrates the full pipeline:
        1. State machine parsing (question detection)
        2. Validation (dropped and suspicious questions)
        3. Output (per-exam JSON, manifest or explained batch)
    """

    def __init__(self, config: Optional[ParserConfig] = None):
        self.config = config or ParserConfig()
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        # Configure root logger for the examprep package
        package_logger = logging.getLogger("examprep")
        package_logger.setLevel(log_level)

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(
                logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
            )
            package_logger.addHandler(console)
        else:
            for handler in package_logger.handlers:
                handler.setLevel(log_level)

        # File handler
        if self.config.log_file:
            log_path = Path(self.config.log_file).resolve()
            already = any(
                isinstance(h, logging.FileHandler)
                and Path(h.baseFilename) == log_path
                for h in package_logger.handlers
            )
            if not already:
                storage.ensure_dir(log_path.parent)
                file_handler = logging.FileHandler(log_path, encoding="utf-8")
                file_handler.setLevel(log_level)
                file_handler.setFormatter(
                    logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
                )
                package_logger.addHandler(file_handler)

    # ─── Single Source ────────────────────────────────────────────────────

    def parse_text(self, text: str, source: str = "") -> ExamParseResult:
        """Parse one exam's Markdown content."""
        parser = MarkdownExamParser()
        title, drafts = parser.parse(text)

        validation = ValidationEngine().validate(
            drafts, orphan_lines=parser.orphan_lines, source=source
        )

        return ExamParseResult(
            exam=build_exam(title, drafts),
            validation=validation,
            source_file=source,
        )

    def parse_file(self, path: str) -> ExamParseResult:
        """
        Parse one exam file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            OSError / UnicodeDecodeError: If it cannot be read as UTF-8.
        """
        source = Path(path)
        if not source.is_file():
            raise FileNotFoundError(f"Exam file not found: {source}")

        logger.info(f"Parsing: {source.name}")
        return self.parse_text(storage.read_exam_file(source), source=source.name)

    def write_exam(self, result: ExamParseResult, output_dir: str) -> Path:
        """Write ``{examTitle, questions}`` next to the other exam outputs."""
        name = storage.output_name_for(
            result.source_file or "exam", self.config.output_extension
        )
        target = storage.write_json(
            result.exam.model_dump(mode="json", by_alias=True),
            Path(output_dir) / name,
        )
        result.output_file = name
        return target

    # ─── Directory Mode ───────────────────────────────────────────────────

    def parse_directory(
        self,
        source_dir: str,
        output_dir: str,
        progress_callback: Optional[callable] = None,
    ) -> DirectoryParseResult:
        """
        Parse every exam file in ``source_dir`` into ``output_dir``.

        One unreadable file is recorded as a failure and does not stop its
        siblings. The manifest is written once, after every file, and lists
        only the files that were written.

        Raises:
            FileNotFoundError: If ``source_dir`` doesn't exist.
            OSError: If ``output_dir`` cannot be created.
        """
        start_time = time.time()
        files = storage.list_exam_files(source_dir, self.config.source_extension)
        destination = storage.ensure_dir(output_dir)

        logger.info(f"Found {len(files)} exam files in {source_dir}")

        result = DirectoryParseResult()

        for index, path in enumerate(files, start=1):
            if progress_callback:
                progress_callback(path.name, index, len(files))

            output_name = storage.output_name_for(path, self.config.output_extension)
            if output_name == self.config.manifest_name:
                error = f"Output name {output_name} is reserved for the manifest"
                logger.error(f"Skipping {path.name}: {error}")
                result.failures.append(FileFailure(source_file=path.name, error=error))
                continue

            try:
                exam_result = self.parse_file(str(path))
                self.write_exam(exam_result, str(destination))
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Failed to process {path.name}: {e}")
                result.failures.append(FileFailure(
                    source_file=path.name, error=str(e)
                ))
                continue

            result.results.append(exam_result)
            result.manifest.append(ManifestEntry(
                file=exam_result.output_file,
                title=exam_result.exam.title,
                question_count=len(exam_result.exam.questions),
            ))

        manifest_path = destination / self.config.manifest_name
        storage.write_json(
            [e.model_dump(mode="json", by_alias=True) for e in result.manifest],
            manifest_path,
        )
        result.manifest_path = str(manifest_path)

        elapsed = time.time() - start_time
        logger.info(
            f"Directory parse complete in {elapsed:.2f}s: "
            f"{len(result.manifest)} exams written, "
            f"{len(result.failures)} failures"
        )
        return result

    # ─── Explained Batch Mode ─────────────────────────────────────────────

    def explain_directory(
        self,
        source_dir: str,
        output_path: str,
        service: ExplanationService,
        progress_callback: Optional[callable] = None,
    ) -> list[ExplainedQuestion]:
        """
        Parse every exam file and write one combined, explained JSON array.

        Questions keep file order, then source order within each file.
        """
        files = storage.list_exam_files(source_dir, self.config.source_extension)

        questions = []
        for path in files:
            questions.extend(self.parse_file(str(path)).exam.questions)

        logger.info(
            f"Generating explanations for {len(questions)} questions "
            f"from {len(files)} files"
        )
        explained = service.explain_questions(
            questions, progress_callback=progress_callback
        )

        storage.write_json(
            [q.model_dump(mode="json") for q in explained],
            output_path,
        )
        logger.info(f"Parsed {len(explained)} questions. Saved to {output_path}")
        return explained
