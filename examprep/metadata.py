"""
Question Content Metadata
=========================
Render-time analysis of a single question's Markdown body.

Everything here is a pure function of its input: no I/O, no caching and no
shared mutable state, so it is safe to call concurrently.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import cached_property

from .models import ParsedQuestionMetadata

# ─── Patterns ─────────────────────────────────────────────────────────────────

CODE_BLOCK_PATTERN = re.compile(r"```.*?```", re.DOTALL)

# ![alt](url)
IMAGE_PATTERN = re.compile(r"!\[[^\]]*\]\([^)]*\)")

DEFAULT_HIGHLIGHT_TEMPLATE = '<span class="aws-service">{match}</span>'

# AWS service names and keywords recognized in question text
AWS_SERVICES = (
    "EC2",
    "S3",
    "RDS",
    "Lambda",
    "CloudFront",
    "Route 53",
    "VPC",
    "IAM",
    "CloudWatch",
    "CloudTrail",
    "EBS",
    "EFS",
    "DynamoDB",
    "ElastiCache",
    "Redshift",
    "EMR",
    "Kinesis",
    "SQS",
    "SNS",
    "SES",
    "API Gateway",
    "CloudFormation",
    "Elastic Beanstalk",
    "ECS",
    "EKS",
    "Fargate",
    "Auto Scaling",
    "Load Balancer",
    "ALB",
    "NLB",
    "CLB",
    "WAF",
    "Shield",
    "GuardDuty",
    "Inspector",
    "Macie",
    "Config",
    "Systems Manager",
    "Secrets Manager",
    "Parameter Store",
    "KMS",
    "Certificate Manager",
    "Direct Connect",
    "VPN",
    "Transit Gateway",
    "PrivateLink",
)


def _word_pattern(name: str) -> str:
    return rf"\b{re.escape(name)}\b"


class ServiceCatalog:
    """
    Immutable, ordered set of recognized service names.

    Order matters: extraction reports matches in catalog order.
    """

    def __init__(self, names: Iterable[str]):
        seen: list[str] = []
        for name in names:
            name = name.strip()
            if name and name.lower() not in (s.lower() for s in seen):
                seen.append(name)
        self._names = tuple(seen)

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    def __iter__(self):
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ServiceCatalog) and other._names == self._names

    def __hash__(self) -> int:
        return hash(self._names)

    def __repr__(self) -> str:
        return f"ServiceCatalog({len(self._names)} names)"

    @cached_property
    def _patterns(self) -> tuple[tuple[str, re.Pattern], ...]:
        return tuple(
            (name, re.compile(_word_pattern(name), re.IGNORECASE))
            for name in self._names
        )

    @cached_property
    def _alternation(self) -> re.Pattern | None:
        if not self._names:
            return None
        # Longest first so "Transit Gateway" wins over a shorter overlapping name.
        ordered = sorted(self._names, key=len, reverse=True)
        return re.compile(
            "|".join(_word_pattern(name) for name in ordered),
            re.IGNORECASE,
        )

    def mentioned_in(self, text: str) -> list[str]:
        """Names occurring in ``text`` as whole words, in catalog order."""
        return [name for name, pattern in self._patterns if pattern.search(text)]

    def sub(self, text: str, template: str) -> str:
        """Wrap every whole-word occurrence using ``template``."""
        if self._alternation is None:
            return text
        return self._alternation.sub(
            lambda m: template.format(match=m.group(0)), text
        )


DEFAULT_CATALOG = ServiceCatalog(AWS_SERVICES)


# ─── Extraction ───────────────────────────────────────────────────────────────


def extract_code_blocks(content: str) -> list[str]:
    """Fenced code blocks, fences included, in order of appearance."""
    return CODE_BLOCK_PATTERN.findall(content)


def has_embedded_image(content: str) -> bool:
    return IMAGE_PATTERN.search(content) is not None


def extract_metadata(
    content: str,
    catalog: ServiceCatalog = DEFAULT_CATALOG,
) -> ParsedQuestionMetadata:
    """
    Derive render hints from a question's Markdown body.

    Args:
        content: Raw Markdown of one question.
        catalog: Recognized service names.

    Returns:
        ParsedQuestionMetadata; its complexity tier is computed from the
        code blocks, mentioned services and image flag.
    """
    return ParsedQuestionMetadata(
        raw_content=content,
        code_blocks=extract_code_blocks(content),
        mentioned_services=catalog.mentioned_in(content),
        has_embedded_image=has_embedded_image(content),
    )


# ─── Text Rewrites ────────────────────────────────────────────────────────────


def highlight_services(
    text: str,
    catalog: ServiceCatalog = DEFAULT_CATALOG,
    template: str = DEFAULT_HIGHLIGHT_TEMPLATE,
) -> str:
    """
    Wrap recognized service names in a highlight tag.

    Matching is case-insensitive and whole-word; the matched text keeps its
    original casing and everything else is left untouched.
    """
    return catalog.sub(text, template)


def clean_markdown(content: str) -> str:
    """Trim, collapse runs of blank lines and expand tabs."""
    content = content.strip()
    content = re.sub(r"\n{3,}", "\n\n", content)
    return content.replace("\t", "  ")
