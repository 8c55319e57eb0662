"""Markdown rendering for question text and explanations.

Question and explanation text is stored as markdown that may contain
``$...$`` LaTeX. The server renders it to HTML fragments and leaves the math
delimiters untouched so the client can typeset them with MathJax.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Converts markdown-with-math into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        """Render a markdown string into an HTML fragment."""

        sanitized = markdown_text.strip() or ""
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        return self._markdown.render(sanitized)

    def render_optional(self, markdown_text: str | None) -> str | None:
        if not markdown_text:
            return None
        return self.render_fragment(markdown_text)


# MarkdownIt is safe to share for read-only renders across API worker threads.
renderer = MarkdownMathRenderer()
