"""
Structured-output parsing for Gemini responses.

Every caller that expects JSON back from the model goes through
``parse_structured_output``. Stages, in order:

1. direct parse of the trimmed text
2. contents of a fenced code block (```json optional)
3. the first bracket span of the expected shape
4. that span again after closing truncated strings and brackets
"""
import json
import re
import logging
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r'```(?:json)?\s*([\s\S]*?)\s*```', re.IGNORECASE)


class ParseError(ValueError):
    """Model output could not be coerced into the expected JSON shape."""


def _repair_truncated_json(text: str) -> str:
    """Close strings, arrays and objects left open by a truncated generation."""
    text = text.rstrip()
    text = re.sub(r',\s*$', '', text)

    stack = []
    in_string = False
    i = 0
    while i < len(text):
        c = text[i]
        if c == '\\' and in_string:
            i += 2
            continue
        if c == '"':
            in_string = not in_string
        elif not in_string:
            if c in ('{', '['):
                stack.append(c)
            elif c == '}' and stack and stack[-1] == '{':
                stack.pop()
            elif c == ']' and stack and stack[-1] == '[':
                stack.pop()
        i += 1

    if in_string:
        text += '"'

    for opener in reversed(stack):
        text += ']' if opener == '[' else '}'

    # Trailing commas are invalid JSON but common in model output
    return re.sub(r',\s*([}\]])', r'\1', text)


def _bracket_span(text: str, expected: type) -> Optional[str]:
    """Return the first ``[...]`` (or ``{...}``) span, open-ended if unclosed."""
    opener, closer = ('[', ']') if expected is list else ('{', '}')
    start = text.find(opener)
    if start == -1:
        return None
    end = text.rfind(closer)
    if end > start:
        return text[start:end + 1]
    return text[start:]


def _try_load(candidate: Optional[str], expected: type) -> Any:
    if candidate is None:
        return None
    try:
        value = json.loads(candidate)
    except (json.JSONDecodeError, TypeError):
        return None
    return value if isinstance(value, expected) else None


def parse_structured_output(text: Optional[str], expected: type = list) -> Union[list, dict]:
    """Coerce model text into a ``list`` or ``dict``.

    Raises:
        ParseError: if no stage yields a value of the expected type.
    """
    if expected not in (list, dict):
        raise TypeError("expected must be list or dict")
    if not text or not text.strip():
        raise ParseError("Model response was empty")

    trimmed = text.strip()

    value = _try_load(trimmed, expected)
    if value is not None:
        return value

    fenced = _FENCED_BLOCK.search(trimmed)
    if fenced:
        value = _try_load(fenced.group(1).strip(), expected)
        if value is not None:
            return value

    span = _bracket_span(trimmed, expected)
    value = _try_load(span, expected)
    if value is not None:
        return value

    if span is not None:
        value = _try_load(_repair_truncated_json(span), expected)
        if value is not None:
            logger.info("Structured output repaired from truncated model text")
            return value

    logger.warning(f"Could not parse model output as {expected.__name__}: {trimmed[:200]}")
    raise ParseError(f"Model response contained no usable JSON {expected.__name__}")


def coerce_string_list(value: Any, limit: Optional[int] = None) -> list[str]:
    """Keep the non-empty strings of ``value`` in order, without duplicates."""
    if not isinstance(value, list):
        return []
    seen = set()
    items = []
    for item in value:
        if not isinstance(item, str):
            continue
        cleaned = item.strip()
        if not cleaned or cleaned.lower() in seen:
            continue
        seen.add(cleaned.lower())
        items.append(cleaned)
        if limit is not None and len(items) >= limit:
            break
    return items
