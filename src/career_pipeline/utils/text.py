"""Text helpers shared by the stages."""

import html
import re

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def strip_html(markup: str) -> str:
    """Remove markup from a posting description and collapse whitespace.
    
    Greenhouse returns descriptions entity-escaped, so entities are decoded
    before tags are removed.
    """
    text = html.unescape(markup or "")
    text = _TAG_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", text).strip()


def excerpt(markup: str, limit: int) -> str:
    """Plain-text prefix of a description, at most ``limit`` characters."""
    return strip_html(markup)[:limit]
