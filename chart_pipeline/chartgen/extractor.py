"""
Pull a JSON object out of raw model text.

Rationale:
- Models wrap JSON in prose or markdown fences even when told not to.
- Three fixed strategies, tried in order on the untouched text; the first
  that parses wins. No brace balancing, no repair of broken JSON, so failures
  stay predictable.
"""

import json
import logging
import re
from typing import Any, Callable, List, Optional, Tuple

from .errors import ParseError

logger = logging.getLogger(__name__)

_JSON_FENCE_RE = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)


def _whole_text(text: str) -> Optional[str]:
    return text


def _fenced_block(text: str) -> Optional[str]:
    match = _JSON_FENCE_RE.search(text)
    return match.group(1) if match else None


def _outer_braces(text: str) -> Optional[str]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None
    return text[start:end + 1]


STRATEGIES: List[Tuple[str, Callable[[str], Optional[str]]]] = [
    ("whole text", _whole_text),
    ("json fence", _fenced_block),
    ("outer braces", _outer_braces),
]


def extract_json(text: str) -> Any:
    """
    Return the first JSON value recovered from `text`.
    Raises ParseError if none of the strategies yields valid JSON.
    """
    if not isinstance(text, str) or not text.strip():
        raise ParseError("Model returned an empty response")

    for name, strategy in STRATEGIES:
        candidate = strategy(text)
        if candidate is None:
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as e:
            logger.debug(f"JSON extraction via {name} failed: {e}")

    logger.debug(f"No JSON found in model response: {text[:500]!r}")
    raise ParseError("Failed to parse JSON response from the model")
