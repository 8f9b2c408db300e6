"""Process-wide memo for LLM-derived results."""
from typing import Any, Optional


def normalize_key(key: str) -> str:
    return key.strip().casefold()


class ResponseCache:
    """Keyed by case-folded, trimmed input. No expiry and no eviction.

    Writes are idempotent for a given key, so concurrent requests that both
    miss and both write are harmless on the event loop.
    """

    def __init__(self, name: str = "responses"):
        self.name = name
        self._entries: dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._entries.get(normalize_key(key))

    def set(self, key: str, value: Any) -> None:
        self._entries[normalize_key(key)] = value

    def __contains__(self, key: str) -> bool:
        return normalize_key(key) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
