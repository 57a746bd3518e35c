"""Format conversion from BookStack HTML to Markdown."""

from .common import ConversionResult
from .html_to_markdown import HtmlToMarkdownConverter, html_to_markdown

__all__ = [
    "ConversionResult",
    "HtmlToMarkdownConverter",
    "html_to_markdown",
]
