"""
Pull a JSON object out of LLM response text.

Models wrap JSON in markdown fences or surround it with prose. This parser
strips fences, takes the outermost ``{...}`` span and decodes it. It returns
None instead of raising so callers can treat a bad response as a provider
failure.
"""

import json
import re
from typing import Any, Dict, Optional


FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.I)


def strip_code_fences(text: str) -> str:
    match = FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    # Unterminated fence: drop the markers and keep the rest
    return re.sub(r"```(?:json)?", "", text, flags=re.I).strip()


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Decode the first JSON object found in ``text``.

    Returns:
        The decoded dict, or None if there is no object or it does not parse
    """
    if not text or not isinstance(text, str):
        return None

    candidate = strip_code_fences(text)
    start = candidate.find("{")
    end = candidate.rfind("}")
    if start == -1 or end <= start:
        return None

    try:
        parsed = json.loads(candidate[start:end + 1])
    except (json.JSONDecodeError, ValueError):
        return None

    if not isinstance(parsed, dict):
        return None
    return parsed
