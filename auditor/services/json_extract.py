from __future__ import annotations

import json
import re
from typing import Any

from auditor.models.errors import AuditError, ErrorKind

DIAGNOSTIC_PREFIX_CHARS = 200

_FENCED_BLOCK = re.compile(r"```(?:[A-Za-z0-9_-]+)?\s*\n?(.*?)```", re.DOTALL)


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _fenced_interior(text: str) -> str | None:
    match = _FENCED_BLOCK.search(text)
    return match.group(1).strip() if match else None


def _brace_span(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None
    return text[start : end + 1]


def parse_json_payload(raw_text: str | None) -> dict[str, Any]:
    """Parse a JSON object from an LLM response that may carry extra text.

    Tries, in order: the whole response, the first fenced code block, and the
    span between the first ``{`` and the last ``}``.
    """
    text = (raw_text or "").strip()

    parsed = _loads_object(text)
    if parsed is not None:
        return parsed

    interior = _fenced_interior(text)
    if interior is not None:
        parsed = _loads_object(interior)
        if parsed is not None:
            return parsed

    span = _brace_span(text)
    if span is not None:
        parsed = _loads_object(span)
        if parsed is not None:
            return parsed

    raise AuditError(
        ErrorKind.MALFORMED_EXTRACTION,
        "Failed to parse structured response.",
        diagnostic=text[:DIAGNOSTIC_PREFIX_CHARS],
    )
