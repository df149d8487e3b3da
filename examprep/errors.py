"""
Errors
======
Exception hierarchy shared by the engine, the explainer and the outer
surfaces (CLI and HTTP service).
"""


class ExamPrepError(Exception):
    """Base class for all toolkit errors."""


class ConfigurationError(ExamPrepError):
    """A required setting (e.g. an API key) is missing or invalid."""


class GenerationError(ExamPrepError):
    """The text-generation service failed to return usable text."""
