"""Utilities for parsing judgment responses into :class:`ModerationJudgment`."""

from __future__ import annotations

import json
from typing import Any, Dict

from jsonschema import Draft7Validator

from elaina.datatypes.moderation_datatypes import ModerationJudgment
from elaina.util.errors import JudgmentParseError
from elaina.util.logger import get_logger

logger = get_logger("moderation_parsing")

JUDGMENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "violation": {"type": ["boolean", "string", "integer"]},
        "reason": {"type": ["string", "null"]},
        "redeem": {"type": ["boolean", "string", "integer"]},
    },
    "additionalProperties": True,
}

_validator = Draft7Validator(JUDGMENT_SCHEMA)


def _strip_code_fences(raw: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```), if any."""
    text = raw.strip()
    if not text.startswith("```"):
        return text
    text = text[3:]
    newline = text.find("\n")
    if newline != -1 and text[:newline].strip().isalpha():
        text = text[newline + 1:]
    if text.rstrip().endswith("```"):
        text = text.rstrip()[:-3]
    return text.strip()


def _extract_json_payload(raw: str) -> Dict[str, Any]:
    """Return the last JSON object that decodes in ``raw``.

    Models sometimes wrap the answer in commentary; scanning backwards from
    the last ``}`` and trying each ``{`` before it finds the final object.
    """
    text = _strip_code_fences(raw)
    try:
        payload = json.loads(text)
        if isinstance(payload, dict):
            return payload
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    end = text.rfind("}")
    while end != -1:
        start = text.rfind("{", 0, end)
        while start != -1:
            try:
                payload, consumed = decoder.raw_decode(text[start:end + 1])
            except json.JSONDecodeError:
                start = text.rfind("{", 0, start)
                continue
            if isinstance(payload, dict) and consumed == end + 1 - start:
                return payload
            start = text.rfind("{", 0, start)
        end = text.rfind("}", 0, end)

    raise JudgmentParseError("no JSON object found in judgment response", raw=raw)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "y")
    return False


def parse_judgment(raw: str) -> ModerationJudgment:
    """Parse a judgment response.

    Missing keys default to a clean verdict with no reason.

    Raises:
        JudgmentParseError: empty response, no JSON object, or a payload that
            fails schema validation.
    """
    if not raw or not raw.strip():
        raise JudgmentParseError("empty judgment response", raw=raw or "")

    payload = _extract_json_payload(raw)

    errors = sorted(_validator.iter_errors(payload), key=lambda e: list(e.path))
    if errors:
        logger.warning("[PARSE] Judgment failed schema validation: %s", errors[0].message)
        raise JudgmentParseError(f"invalid judgment payload: {errors[0].message}", raw=raw)

    violation = _as_bool(payload.get("violation", False))
    reason = str(payload.get("reason") or "").strip()
    return ModerationJudgment(
        violation=violation,
        reason=reason,
        redeem_granted=_as_bool(payload.get("redeem", False)),
    )
