from __future__ import annotations

from typing import Protocol

import markdown2

NO_CHANGES_PLACEHOLDER = "No changes listed for this version."

_MARKDOWN_EXTRAS = [
    "fenced-code-blocks",
    "tables",
    "strike",
    "target-blank-links",
    "task_list",
    "code-friendly",
]


class NotesRenderer(Protocol):
    """Markdown to HTML conversion for feed descriptions."""

    def render(self, markdown: str) -> str: ...


class Markdown2Renderer:
    """NotesRenderer backed by ``markdown2``."""

    def render(self, markdown: str) -> str:
        return str(markdown2.markdown(markdown, extras=_MARKDOWN_EXTRAS)).strip()


def render_release_notes(renderer: NotesRenderer, changes: str | None) -> str:
    """Render the changelog block, or the placeholder when there is none."""
    source = changes if changes else NO_CHANGES_PLACEHOLDER
    return renderer.render(source)
