"""BookStack HTML to Markdown conversion using the lxml element tree."""

from lxml import etree, html

from .common import (
    ConversionResult,
    code_language_from_class,
    collapse_blank_lines,
    collapse_whitespace,
)

_HEADINGS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6}
_CONTAINERS = frozenset(
    {
        "div",
        "section",
        "article",
        "main",
        "header",
        "footer",
        "figure",
        "details",
        "body",
    }
)
_BLOCKS = (
    frozenset(_HEADINGS)
    | _CONTAINERS
    | frozenset({"p", "ul", "ol", "pre", "blockquote", "hr", "table"})
)
_TRANSPARENT_INLINE = frozenset(
    {"span", "u", "mark", "small", "sup", "sub", "abbr", "label", "font"}
)


class HtmlToMarkdownConverter:
    """Convert the HTML body of a BookStack page to Markdown.

    This is a best-effort conversion: unknown elements are reduced to their
    text content and reported in ``warnings``.
    """

    def __init__(self):
        self.warnings: list[str] = []

    def convert(self, html_text: str) -> ConversionResult:
        self.warnings = []
        if not html_text or not html_text.strip():
            return self._result("")

        try:
            root = html.fragment_fromstring(
                html_text, create_parent="div"
            )
        except etree.ParserError as exc:
            self.warnings.append(f"HTML could not be parsed: {exc}")
            return self._result(html_text.strip())

        text = collapse_blank_lines(self._render_blocks(root))
        return self._result(text.strip())

    def _result(self, text: str) -> ConversionResult:
        return ConversionResult(
            text=text,
            source_format="html",
            target_format="markdown",
            converted=True,
            warnings=list(self.warnings),
        )

    # ------------------------------------------------------------------
    # Block level
    # ------------------------------------------------------------------

    def _render_blocks(self, element) -> str:
        blocks: list[str] = []
        inline: list[str] = [collapse_whitespace(element.text or "")]

        def flush() -> None:
            paragraph = "".join(inline).strip()
            if paragraph:
                blocks.append(paragraph)
            inline.clear()

        for child in element:
            if not isinstance(child.tag, str):
                # comments and processing instructions
                inline.append(collapse_whitespace(child.tail or ""))
                continue
            if child.tag in _BLOCKS:
                flush()
                block = self._render_block(child)
                if block.strip():
                    blocks.append(block)
            else:
                inline.append(self._render_inline(child))
            inline.append(collapse_whitespace(child.tail or ""))
        flush()
        return "\n\n".join(blocks)

    def _render_block(self, element) -> str:
        tag = element.tag
        if tag in _HEADINGS:
            return f"{'#' * _HEADINGS[tag]} {self._inner_inline(element).strip()}"
        if tag == "p":
            return self._inner_inline(element).strip()
        if tag in ("ul", "ol"):
            return self._render_list(element, depth=0)
        if tag == "pre":
            return self._render_pre(element)
        if tag == "blockquote":
            inner = self._render_blocks(element)
            return "\n".join(
                f"> {line}" if line else ">" for line in inner.splitlines()
            )
        if tag == "hr":
            return "---"
        if tag == "table":
            return self._render_table(element)
        return self._render_blocks(element)

    def _render_pre(self, element) -> str:
        code = element.find("code")
        source = code if code is not None else element
        language = code_language_from_class(
            source.get("class")
        ) or code_language_from_class(element.get("class"))
        body = source.text_content().strip("\n")
        return f"```{language}\n{body}\n```"

    def _render_list(self, element, depth: int) -> str:
        ordered = element.tag == "ol"
        lines: list[str] = []
        number = 1
        for item in element:
            if not isinstance(item.tag, str) or item.tag != "li":
                continue
            marker = f"{number}." if ordered else "-"
            number += 1

            parts = [collapse_whitespace(item.text or "")]
            nested: list[str] = []
            for child in item:
                if not isinstance(child.tag, str):
                    pass
                elif child.tag in ("ul", "ol"):
                    nested.append(self._render_list(child, depth + 1))
                elif child.tag == "p":
                    parts.append(self._inner_inline(child))
                else:
                    parts.append(self._render_inline(child))
                parts.append(collapse_whitespace(child.tail or ""))

            lines.append(f"{'  ' * depth}{marker} {''.join(parts).strip()}")
            lines.extend(nested)
        return "\n".join(lines)

    def _render_table(self, element) -> str:
        rows: list[list[str]] = []
        for row in element.iter("tr"):
            cells = [
                self._inner_inline(cell).strip().replace("|", "\\|")
                for cell in row
                if isinstance(cell.tag, str) and cell.tag in ("th", "td")
            ]
            if cells:
                rows.append(cells)
        if not rows:
            return ""

        width = max(len(r) for r in rows)
        rows = [r + [""] * (width - len(r)) for r in rows]
        lines = [
            "| " + " | ".join(rows[0]) + " |",
            "| " + " | ".join(["---"] * width) + " |",
        ]
        lines.extend("| " + " | ".join(r) + " |" for r in rows[1:])
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Inline level
    # ------------------------------------------------------------------

    def _inner_inline(self, element) -> str:
        parts = [collapse_whitespace(element.text or "")]
        for child in element:
            if isinstance(child.tag, str):
                parts.append(self._render_inline(child))
            parts.append(collapse_whitespace(child.tail or ""))
        return "".join(parts)

    def _render_inline(self, element) -> str:
        tag = element.tag
        if tag in ("strong", "b"):
            inner = self._inner_inline(element)
            return f"**{inner}**" if inner.strip() else inner
        if tag in ("em", "i"):
            inner = self._inner_inline(element)
            return f"*{inner}*" if inner.strip() else inner
        if tag in ("s", "del", "strike"):
            inner = self._inner_inline(element)
            return f"~~{inner}~~" if inner.strip() else inner
        if tag == "code":
            return f"`{element.text_content()}`"
        if tag == "a":
            inner = self._inner_inline(element)
            href = element.get("href")
            return f"[{inner}]({href})" if href else inner
        if tag == "img":
            return f"![{element.get('alt', '')}]({element.get('src', '')})"
        if tag == "br":
            return "\n"
        if tag in _BLOCKS:
            return self._render_block(element)
        if tag not in _TRANSPARENT_INLINE:
            warning = f"Unsupported element <{tag}> reduced to text"
            if warning not in self.warnings:
                self.warnings.append(warning)
        return self._inner_inline(element)


def html_to_markdown(html_text: str) -> ConversionResult:
    """
    Convert BookStack page HTML to Markdown.

    Args:
        html_text: HTML body of a page

    Returns:
        ConversionResult with Markdown text and warnings about lossy conversions
    """
    return HtmlToMarkdownConverter().convert(html_text)
