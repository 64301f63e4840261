"""Lenient parsing of reasoning-service replies."""

import json
import re
from typing import Any, Dict

from career_pipeline.utils.logging import get_logger

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_json_object(text: Any) -> Dict[str, Any]:
    """
    Decode a reply that should hold a single JSON object.
    
    Code fences are stripped, and if the reply has prose around the object the
    outermost ``{...}`` block is tried. Anything that still does not decode to
    an object yields an empty dict, so callers fall back to field defaults.
    
    Args:
        text: Raw reply content
        
    Returns:
        The decoded object, or ``{}``
    """
    if not isinstance(text, str) or not text.strip():
        return {}
    
    cleaned = _FENCE_RE.sub("", text.strip())
    for candidate in (cleaned, _first_object(cleaned)):
        if not candidate:
            continue
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
        break
    
    logger.warning("Reasoning reply is not a JSON object", preview=text[:200])
    return {}


def _first_object(text: str) -> str:
    match = _OBJECT_RE.search(text)
    return match.group(0) if match else ""
