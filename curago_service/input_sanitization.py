"""
Input cleanup for user-supplied chat messages and symptom phrases.

Text is not HTML-escaped: it is never rendered as markup here, and escaping
would break phrase matching ("that's all").
"""
import re
from typing import Optional

MAX_MESSAGE_LENGTH = 2000
MAX_SYMPTOM_LENGTH = 200
MAX_SYMPTOMS = 20

_SCRIPT_OR_STYLE = re.compile(r"<(script|style)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]+>")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_text(text: Optional[str], max_length: Optional[int] = None) -> str:
    """Strip tags and control characters, trim, and truncate to ``max_length``."""
    if not text:
        return ""
    text = _SCRIPT_OR_STYLE.sub("", text)
    text = _TAG.sub("", text)
    text = _CONTROL_CHARS.sub("", text)
    text = text.strip()
    if max_length and len(text) > max_length:
        text = text[:max_length].rstrip()
    return text


def sanitize_message(text: Optional[str]) -> str:
    return sanitize_text(text, max_length=MAX_MESSAGE_LENGTH)


def sanitize_symptoms(symptoms: list[str]) -> list[str]:
    """Clean each phrase, drop blanks and case-insensitive repeats, cap the count."""
    cleaned: list[str] = []
    seen = set()
    for symptom in symptoms:
        phrase = sanitize_text(symptom, max_length=MAX_SYMPTOM_LENGTH)
        key = phrase.casefold()
        if phrase and key not in seen:
            seen.add(key)
            cleaned.append(phrase)
        if len(cleaned) >= MAX_SYMPTOMS:
            break
    return cleaned
