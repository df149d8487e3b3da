"""
HTTP Service
============
Flask-based HTTP API exposing the parser, the metadata extractor and the
AI explanation helpers to the web application.

Endpoints:
    GET    /api/health                 → Health check
    GET    /api/info                   → Version and capability info
    POST   /api/parse                  → Parse exam Markdown
    POST   /api/question-metadata      → Render metadata for a question body
    POST   /api/highlight              → Highlight service names in text
    POST   /api/ai-explanation         → Structured (and personalized) explanation
    POST   /api/study-recommendations  → Study recommendations for a topic
"""

from __future__ import annotations

import logging

from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError

from . import __version__
from .engine import ParserConfig, ParserEngine
from .errors import ConfigurationError, GenerationError
from .explainer import ExplainerConfig, ExplanationService, OpenAITextGenerator
from .metadata import DEFAULT_CATALOG, extract_metadata, highlight_services
from .models import ExplanationRequest

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)


def create_app(config: dict = None) -> Flask:
    """
    Create and configure the Flask app.

    Recognized config keys:
        SERVICE_CATALOG: ServiceCatalog used by metadata and highlighting.
        TEXT_GENERATOR:  TextGenerator for AI endpoints; built from the
                         environment when absent.
        LOG_LEVEL:       Logging level for the examprep package.
    """
    if config:
        app.config.update(config)

    app.config.setdefault("SERVICE_CATALOG", DEFAULT_CATALOG)
    app.config.setdefault("LOG_LEVEL", "INFO")
    app.config.setdefault("MAX_CONTENT_LENGTH", 5 * 1024 * 1024)  # 5MB

    if app.config.get("TEXT_GENERATOR") is None:
        try:
            app.config["TEXT_GENERATOR"] = OpenAITextGenerator(
                ExplainerConfig.from_env()
            )
        except ConfigurationError:
            logger.warning("OPENAI_API_KEY not set; AI endpoints disabled")
            app.config["TEXT_GENERATOR"] = None

    return app


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _explanation_service():
    generator = app.config.get("TEXT_GENERATOR")
    if generator is None:
        return None
    return ExplanationService(generator)


# ─── Health Check ─────────────────────────────────────────────────────────────


@app.route("/api/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "examprep",
        "version": __version__,
        "ai_enabled": app.config.get("TEXT_GENERATOR") is not None,
    })


@app.route("/api/info", methods=["GET"])
def info():
    """Version and capability info."""
    return jsonify({
        "version": __version__,
        "capabilities": [
            "markdown_parsing",
            "question_metadata",
            "service_highlighting",
            "ai_explanations",
            "study_recommendations",
        ],
        "supported_formats": ["md"],
        "recognized_services": len(app.config.get("SERVICE_CATALOG", DEFAULT_CATALOG)),
    })


# ─── Parsing ──────────────────────────────────────────────────────────────────


@app.route("/api/parse", methods=["POST"])
def parse_markdown():
    """
    Parse one exam's Markdown synchronously.

    JSON body: {"markdown": "...", "source": "optional-name.md"}
    """
    data = _json_body()
    markdown = data.get("markdown")
    if not isinstance(markdown, str):
        return jsonify({"error": "markdown (string) is required"}), 400

    engine = ParserEngine(ParserConfig(log_level=app.config["LOG_LEVEL"]))
    result = engine.parse_text(markdown, source=str(data.get("source", "")))

    return jsonify({
        "exam": result.exam.model_dump(mode="json", by_alias=True),
        "validation": result.validation.model_dump(mode="json"),
    }), 200


# ─── Question Content ─────────────────────────────────────────────────────────


@app.route("/api/question-metadata", methods=["POST"])
def question_metadata():
    """JSON body: {"content": "..."}"""
    content = _json_body().get("content")
    if not isinstance(content, str):
        return jsonify({"error": "content (string) is required"}), 400

    result = extract_metadata(content, app.config["SERVICE_CATALOG"])
    return jsonify(result.model_dump(mode="json", by_alias=True))


@app.route("/api/highlight", methods=["POST"])
def highlight():
    """JSON body: {"text": "..."}"""
    text = _json_body().get("text")
    if not isinstance(text, str):
        return jsonify({"error": "text (string) is required"}), 400

    return jsonify({
        "html": highlight_services(text, app.config["SERVICE_CATALOG"]),
    })


# ─── AI Endpoints ─────────────────────────────────────────────────────────────


@app.route("/api/ai-explanation", methods=["POST"])
def ai_explanation():
    """
    JSON body: {"question", "options", "correct_answer",
                "user_answer"?, "topic"?, "difficulty"?, "existing_explanation"?}
    """
    service = _explanation_service()
    if service is None:
        return jsonify({"error": "AI explanations are not configured"}), 503

    try:
        req = ExplanationRequest.model_validate(_json_body())
    except ValidationError as e:
        return jsonify({
            "error": "Invalid request",
            "details": e.errors(include_url=False, include_context=False),
        }), 400

    try:
        explanation = service.generate_structured_explanation(req)
        personalized = service.generate_personalized_explanation(req)
    except GenerationError as e:
        logger.error(f"AI explanation failed: {e}")
        return jsonify({"error": "Failed to generate explanation"}), 502

    return jsonify({
        "explanation": explanation.model_dump(mode="json", by_alias=True),
        "personalizedExplanation": personalized,
    })


@app.route("/api/study-recommendations", methods=["POST"])
def study_recommendations():
    """JSON body: {"topic", "difficulty"?, "performance"?: {"correct", "total"}}"""
    service = _explanation_service()
    if service is None:
        return jsonify({"error": "AI explanations are not configured"}), 503

    data = _json_body()
    topic = data.get("topic")
    if not isinstance(topic, str) or not topic.strip():
        return jsonify({"error": "topic is required"}), 400

    difficulty = data.get("difficulty", "medium")
    if difficulty not in ("easy", "medium", "hard"):
        return jsonify({"error": "difficulty must be easy, medium or hard"}), 400

    performance = None
    perf = data.get("performance")
    if isinstance(perf, dict):
        try:
            performance = (int(perf["correct"]), int(perf["total"]))
        except (KeyError, TypeError, ValueError):
            return jsonify({"error": "performance needs integer correct and total"}), 400

    try:
        recommendations = service.generate_study_recommendations(
            topic, difficulty, performance
        )
    except GenerationError as e:
        logger.error(f"Study recommendations failed: {e}")
        return jsonify({"error": "Failed to generate recommendations"}), 502

    return jsonify({"recommendations": recommendations})


# ─── Error Handlers ───────────────────────────────────────────────────────────


@app.errorhandler(404)
def not_found(_e):
    return jsonify({"error": "Not found"}), 404


@app.errorhandler(500)
def internal_error(e):
    logger.error(f"Unhandled error: {e}")
    return jsonify({"error": "Internal server error"}), 500


# ─── Run Server ──────────────────────────────────────────────────────────────


def run_server(
    host: str = "0.0.0.0",
    port: int = 5000,
    debug: bool = False,
):
    """Start the HTTP service."""
    create_app()
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    run_server(debug=True)
