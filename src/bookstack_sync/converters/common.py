"""Common types and utilities for format conversion."""

import re
from dataclasses import dataclass, field

# BookStack's editors tag code blocks with ``class="language-xxx"``.
_LANGUAGE_CLASS = re.compile(r"(?:^|\s)language-([\w+#.-]+)")

_WHITESPACE_RUN = re.compile(r"\s+")
_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")


@dataclass
class ConversionResult:
    """Result of format conversion with metadata and warnings.

    Attributes:
        text: Converted text output
        source_format: Format of input text ('html' or 'unknown')
        target_format: Format of output text ('markdown')
        converted: True if conversion performed, False if pass-through
        warnings: List of warnings about lossy conversions or unsupported features
    """

    text: str
    source_format: str = "unknown"
    target_format: str = "unknown"
    converted: bool = False
    warnings: list[str] = field(default_factory=list)


def code_language_from_class(class_attr: str | None) -> str:
    """Extract a Markdown fence language from an HTML ``class`` attribute.

    Returns an empty string when no ``language-*`` class is present.
    """
    if not class_attr:
        return ""
    match = _LANGUAGE_CLASS.search(class_attr)
    return match.group(1).lower() if match else ""


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace to a single space (HTML text semantics)."""
    return _WHITESPACE_RUN.sub(" ", text)


def collapse_blank_lines(text: str) -> str:
    """Limit consecutive blank lines to one."""
    return _EXCESS_BLANK_LINES.sub("\n\n", text)
