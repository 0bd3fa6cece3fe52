"""Markdown rendering for prose runs.

The stream session only depends on the ``MarkdownRenderer`` protocol;
``PythonMarkdownRenderer`` is the default implementation, backed by the
``markdown`` package with fenced code and tables enabled.
"""

from __future__ import annotations

import html
import logging
from typing import Protocol

import markdown as md

logger = logging.getLogger(__name__)


class MarkdownRenderer(Protocol):
    """Converts a plain-text run into an HTML fragment."""

    def render(self, text: str) -> str: ...


class PythonMarkdownRenderer:
    """Markdown renderer using Python-Markdown.

    A fresh conversion is done for every call because the stream
    re-renders the whole current run on each tick, and the parser
    keeps state between conversions unless it is reset.
    """

    def __init__(self, extensions: list[str] | None = None) -> None:
        self._md = md.Markdown(
            extensions=extensions if extensions is not None else ["fenced_code", "tables"],
            output_format="html",
        )

    def render(self, text: str) -> str:
        self._md.reset()
        try:
            return self._md.convert(text)
        except Exception:
            # If markdown rendering fails, show the run as escaped text
            logger.exception("Markdown conversion failed, rendering as plain text")
            return f"<p>{html.escape(text)}</p>"


class PlainTextRenderer:
    """Escapes text into a single paragraph. Useful for tests and logs."""

    def render(self, text: str) -> str:
        return f"<p>{html.escape(text)}</p>"
