"""
AI Explanations
===============
Attaches natural-language explanations to parsed questions by delegating to
an external text-generation service.

The service is reached through the ``TextGenerator`` capability
("given prompt text, return generated text, or raise GenerationError");
``OpenAITextGenerator`` implements it over an OpenAI-compatible
chat-completions endpoint.

Failure policy: a failed call for one question is logged and replaced by
``FALLBACK_EXPLANATION``; the batch always continues.
"""

from __future__ import annotations

import json
import logging
import os
import random
import re
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from openai import OpenAI
from pydantic import ValidationError

from .errors import ConfigurationError, GenerationError
from .models import (
    AIExplanation,
    ExplainedQuestion,
    ExplanationRequest,
    Question,
)

logger = logging.getLogger(__name__)

FALLBACK_EXPLANATION = "Explanation unavailable."
MAX_RECOMMENDATIONS = 5

_MISSING_KEY_MESSAGE = """Missing OpenAI API key.

Create a file named ".env" in the project root with:
    OPENAI_API_KEY=sk-your-key-here

or set the environment variable before running:
    OPENAI_API_KEY=sk-your-key examprep explain questions-md/"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)
_BULLET_RE = re.compile(r"^(?:[-•*]|\d+[.)])\s*")


# ─── Configuration ────────────────────────────────────────────────────────────


@dataclass
class ExplainerConfig:
    """Settings for the text-generation client."""

    api_key: str = ""
    model: str = "gpt-4o-mini"
    base_url: Optional[str] = None
    temperature: float = 0.5
    max_tokens: int = 1000
    timeout: float = 60.0
    max_retries: int = 2
    retry_base_seconds: float = 1.0
    retry_max_seconds: float = 8.0

    @classmethod
    def from_env(cls) -> "ExplainerConfig":
        """
        Build a config from environment variables.

        Raises:
            ConfigurationError: If OPENAI_API_KEY is not set.
        """
        api_key = os.getenv("OPENAI_API_KEY", "").strip()
        if not api_key:
            raise ConfigurationError(_MISSING_KEY_MESSAGE)

        try:
            return cls(
                api_key=api_key,
                model=os.getenv("EXAMPREP_MODEL", cls.model),
                base_url=os.getenv("OPENAI_BASE_URL") or None,
                temperature=float(os.getenv("EXAMPREP_TEMPERATURE", cls.temperature)),
                max_retries=int(os.getenv("EXAMPREP_MAX_RETRIES", cls.max_retries)),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid explainer setting: {e}") from e


# ─── Text Generation ──────────────────────────────────────────────────────────


class TextGenerator(Protocol):
    def generate(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        ...


class OpenAITextGenerator:
    """Chat-completions client with retry and exponential backoff."""

    def __init__(self, config: ExplainerConfig, client: Optional[OpenAI] = None):
        if not config.api_key and client is None:
            raise ConfigurationError(_MISSING_KEY_MESSAGE)
        self.config = config
        self.client = client or OpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            # Retries are handled in generate().
            max_retries=0,
        )

    def generate(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        retries = max(0, self.config.max_retries)
        delay = self.config.retry_base_seconds
        for attempt in range(retries + 1):
            try:
                completion = self.client.chat.completions.create(
                    model=self.config.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=(
                        self.config.temperature if temperature is None else temperature
                    ),
                    max_tokens=max_tokens or self.config.max_tokens,
                )
                text = (completion.choices[0].message.content or "").strip()
                if not text:
                    raise GenerationError("Empty response from text-generation service")
                return text
            except Exception as e:
                if attempt >= retries:
                    if isinstance(e, GenerationError):
                        raise
                    raise GenerationError(f"Text generation failed: {e}") from e
                sleep_for = min(self.config.retry_max_seconds, delay)
                if sleep_for > 0:
                    sleep_for += random.uniform(0, 0.25)
                logger.warning(
                    f"Generation attempt {attempt + 1} failed ({e}); "
                    f"retrying in {sleep_for:.1f}s"
                )
                time.sleep(sleep_for)
                delay *= 2
        raise GenerationError("Text generation failed")


# ─── Prompts ──────────────────────────────────────────────────────────────────


def build_batch_prompt(question: str, options: list[str], correct: str) -> str:
    option_lines = "\n".join(f"- {o}" for o in options)
    return f"""You are an AWS certification trainer. Given the following question and answer options,
explain why the correct answer(s) is right and why the other options are wrong.
Write in an educational but concise tone.

Question:
{question}

Options:
{option_lines}

Correct answer(s): {correct}

Format the output EXACTLY as:
"Correct answer: {correct}. <Your explanation here>"
"""


def build_structured_prompt(request: ExplanationRequest) -> str:
    option_lines = "\n".join(request.options)
    existing = (
        f"EXISTING EXPLANATION: {request.existing_explanation}"
        if request.existing_explanation else ""
    )
    return f"""As an AWS Cloud Practitioner certification expert, provide a comprehensive explanation for this question:

QUESTION:
{request.question_content}

OPTIONS:
{option_lines}

CORRECT ANSWER: {request.correct_answer}
TOPIC: {request.topic}
DIFFICULTY: {request.difficulty}

{existing}

Please provide a detailed explanation in the following JSON format:
{{
  "explanation": "Detailed explanation of why the correct answer is right and others are wrong",
  "keyPoints": ["Key point 1", "Key point 2", "Key point 3"],
  "relatedConcepts": ["Related AWS concept 1", "Related AWS concept 2"],
  "studyTips": ["Study tip 1", "Study tip 2"],
  "commonMistakes": ["Common mistake 1", "Common mistake 2"]
}}

Focus on:
- Clear explanation of AWS concepts
- Why the correct answer is right
- Why other options are incorrect
- Practical examples and use cases
- Common misconceptions to avoid"""


def build_personalized_prompt(request: ExplanationRequest) -> str:
    user, correct = request.user_answer, request.correct_answer
    return f"""The user selected answer {user} but the correct answer is {correct}.

Question: {request.question_content}

Provide a brief, personalized explanation (2-3 sentences) that:
1. Acknowledges why answer {user} might seem appealing
2. Explains the key difference that makes {correct} correct
3. Helps the user remember this for future questions

Keep it encouraging and educational."""


def build_recommendation_prompt(
    topic: str,
    difficulty: str,
    performance: Optional[tuple[int, int]] = None,
) -> str:
    context = ""
    if performance and performance[1] > 0:
        correct, total = performance
        context = (
            f"The user has answered {correct} out of {total} questions correctly "
            f"in this topic ({correct / total * 100:.1f}% accuracy)."
        )
    return f"""As an AWS Cloud Practitioner certification expert, provide 3-5 specific study recommendations for the topic "{topic}" at {difficulty} difficulty level.

{context}

Focus on:
- Specific AWS services and features to study
- Hands-on practice suggestions
- Key documentation or resources
- Common exam scenarios

Provide recommendations as a JSON array of strings."""


# ─── Response Parsing ─────────────────────────────────────────────────────────


def _load_json(text: str):
    stripped = text.strip()
    fenced = _FENCE_RE.match(stripped)
    if fenced:
        stripped = fenced.group(1)
    return json.loads(stripped)


def parse_ai_explanation(text: str) -> AIExplanation:
    """
    Parse a structured explanation; non-JSON text becomes the explanation.
    """
    try:
        data = _load_json(text)
    except json.JSONDecodeError:
        return AIExplanation(explanation=text)

    if not isinstance(data, dict):
        return AIExplanation(explanation=text)

    try:
        return AIExplanation(
            explanation=data.get("explanation") or text,
            key_points=data.get("keyPoints") or [],
            related_concepts=data.get("relatedConcepts") or [],
            study_tips=data.get("studyTips") or [],
            common_mistakes=data.get("commonMistakes") or [],
        )
    except ValidationError:
        logger.warning("Structured explanation had unexpected field types")
        return AIExplanation(explanation=text)


def parse_recommendations(text: str) -> list[str]:
    """JSON array of strings, or one recommendation per non-empty line."""
    try:
        data = _load_json(text)
        if isinstance(data, list):
            return [str(item).strip() for item in data if str(item).strip()]
    except json.JSONDecodeError:
        pass

    lines = [
        _BULLET_RE.sub("", line.strip()).strip()
        for line in text.splitlines()
    ]
    return [line for line in lines if line][:MAX_RECOMMENDATIONS]


# ─── Service ──────────────────────────────────────────────────────────────────


class ExplanationService:
    """Prompt construction and response handling around a TextGenerator."""

    def __init__(self, generator: TextGenerator):
        self.generator = generator

    def explain_question(self, question: Question) -> ExplainedQuestion:
        """One explanation attempt; falls back on failure."""
        options = question.option_strings()
        correct = ", ".join(question.correct_letters)
        prompt = build_batch_prompt(question.text, options, correct)

        try:
            explanation = self.generator.generate(prompt)
        except GenerationError as e:
            logger.warning(f"Explanation failed for question {question.id}: {e}")
            explanation = FALLBACK_EXPLANATION

        return ExplainedQuestion(
            question=question.text,
            options=options,
            correct=correct,
            explanation=explanation,
        )

    def explain_questions(
        self,
        questions: list[Question],
        progress_callback: Optional[callable] = None,
    ) -> list[ExplainedQuestion]:
        """Explain questions sequentially, preserving input order."""
        explained = []
        for index, question in enumerate(questions, start=1):
            explained.append(self.explain_question(question))
            if progress_callback:
                progress_callback(index, len(questions))
        return explained

    def generate_structured_explanation(
        self, request: ExplanationRequest
    ) -> AIExplanation:
        text = self.generator.generate(
            build_structured_prompt(request), temperature=0.7, max_tokens=1000
        )
        return parse_ai_explanation(text)

    def generate_personalized_explanation(
        self, request: ExplanationRequest
    ) -> Optional[str]:
        """None unless the user picked a wrong answer."""
        if request.user_answer is None:
            return None
        if request.user_answer.strip().upper() == request.correct_answer.strip().upper():
            return None
        return self.generator.generate(
            build_personalized_prompt(request), temperature=0.7, max_tokens=500
        )

    def generate_study_recommendations(
        self,
        topic: str,
        difficulty: str = "medium",
        performance: Optional[tuple[int, int]] = None,
    ) -> list[str]:
        text = self.generator.generate(
            build_recommendation_prompt(topic, difficulty, performance),
            temperature=0.6,
            max_tokens=400,
        )
        return parse_recommendations(text)
