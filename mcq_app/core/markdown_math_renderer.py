"""Markdown + LaTeX rendering helpers for question text.

Architecture note:
    The server converts question and option markup into HTML and leaves the
    math to MathJax in the browser. Quiz files stay plain text, and the same
    JSON can be rendered by any client that knows MathJax.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt

MATHJAX_SCRIPT = (
    "https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"
)


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

    def render_inline(self, markdown_text: str) -> str:
        """Render a single line (an option label) without a wrapping paragraph."""

        return self._markdown.renderInline(markdown_text.strip())


renderer = MarkdownMathRenderer()
