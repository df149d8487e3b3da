"""
Exam Prep Toolkit
=================
Markdown ingestion and question-content analysis for AWS certification
exam practice material.

Architecture:
    - State Machine: Splits exam Markdown into question records
    - Validator: Reports dropped and suspicious questions
    - Engine: Parses files and directories into JSON plus a manifest
    - Explainer: Attaches AI-generated explanations to parsed questions
    - Metadata: Extracts render hints (code, services, images, complexity)

Version: 1.0.0
"""

__version__ = "1.0.0"
