"""Markdown outline extraction for the "on this page" panel."""

import logging
import re
from typing import Any

from markdown_it import MarkdownIt
from pydantic import BaseModel

logger = logging.getLogger(__name__)

MIN_LEVEL = 2
MAX_LEVEL = 4

_PUNCTUATION_RE = re.compile(r"[^\w\s-]")
_WHITESPACE_RE = re.compile(r"\s+")


class Heading(BaseModel):
    """One outline entry."""

    id: str
    text: str
    level: int


def slugify(text: str) -> str:
    """Anchor id for a heading: lower-case, punctuation dropped, spaces to dashes."""
    return _WHITESPACE_RE.sub("-", _PUNCTUATION_RE.sub("", text.lower()).strip())


class OutlineParser:
    """Collects level 2-4 headings from markdown."""

    def __init__(self):
        self.md = MarkdownIt()

    def parse(self, content: str) -> list[Heading]:
        tokens = self.md.parse(content)
        headings: list[Heading] = []

        i = 0
        while i < len(tokens):
            token = tokens[i]
            if token.type == "heading_open":
                level = int(token.tag[1])
                if (
                    MIN_LEVEL <= level <= MAX_LEVEL
                    and i + 1 < len(tokens)
                    and tokens[i + 1].type == "inline"
                ):
                    text = self._get_text(tokens[i + 1])
                    headings.append(Heading(id=slugify(text), text=text, level=level))
                    i += 2
                    continue
            i += 1

        logger.debug("Outline extracted: %d headings", len(headings))
        return headings

    def _get_text(self, inline_token: Any) -> str:
        """Extract plain text from inline token."""
        if not inline_token.children:
            return getattr(inline_token, "content", "")

        parts = []
        for child in inline_token.children:
            if child.type in ("text", "code_inline"):
                parts.append(child.content)
            elif child.type == "softbreak":
                parts.append(" ")
            elif child.content:
                parts.append(child.content)

        return "".join(parts)


_parser = OutlineParser()


def extract_outline(content: str) -> list[Heading]:
    return _parser.parse(content)
