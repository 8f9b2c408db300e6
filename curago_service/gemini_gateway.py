"""
Gemini Gateway - single entry point for every text-completion call.

Models are tried in priority order (fast model first, stronger model second).
Each attempt is raced against a timeout. A 429 from the provider sleeps for the
provider's suggested retry delay (or a default) before moving on to the next
model. When every model fails, ``generate`` returns ``None`` and the caller
applies its own local fallback; the gateway never invents medical content.
"""
import asyncio
import re
from typing import Any, Awaitable, Callable, Optional

from google import genai
from google.genai import types

from .config import Settings, get_settings
from .structured_logging import StructuredLogger

logger = StructuredLogger(__name__)

RETRY_INFO_TYPE = "type.googleapis.com/google.rpc.RetryInfo"
_RETRY_DELAY_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*s?\s*$")


def is_rate_limited(exc: BaseException) -> bool:
    """True for HTTP 429 / RESOURCE_EXHAUSTED errors from the Gemini SDK."""
    code = getattr(exc, "code", None)
    status = getattr(exc, "status", None)
    return code == 429 or status == 429 or status == "RESOURCE_EXHAUSTED"


def parse_retry_delay(details: Any) -> Optional[float]:
    """Extract the ``RetryInfo.retryDelay`` hint (e.g. ``"21s"``) in seconds.

    ``details`` is the error payload attached to the SDK exception, either the
    full ``{"error": {...}}`` body or the inner error object.
    """
    if not isinstance(details, dict):
        return None
    error = details.get("error", details)
    if not isinstance(error, dict):
        return None
    entries = error.get("details") or []
    if not isinstance(entries, list):
        return None
    for entry in entries:
        if not isinstance(entry, dict) or entry.get("@type") != RETRY_INFO_TYPE:
            continue
        delay = entry.get("retryDelay")
        if not isinstance(delay, str):
            return None
        match = _RETRY_DELAY_PATTERN.match(delay)
        if match:
            return float(match.group(1))
        return None
    return None


class GeminiGateway:
    """Prioritized, time-bounded, rate-limit-aware Gemini text generation."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        models: Optional[list[str]] = None,
        timeout_seconds: Optional[float] = None,
        default_retry_delay: Optional[float] = None,
        client: Any = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.models = list(models) if models else settings.model_priority
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.timeout_seconds
        )
        self.default_retry_delay = (
            default_retry_delay if default_retry_delay is not None
            else settings.retry_delay_seconds
        )
        self.client = client
        self._sleep = sleep

    @property
    def available(self) -> bool:
        return self.client is not None

    def initialize(self) -> bool:
        """Create the Gemini client. Returns False (fallback-only mode) without a key."""
        if self.client is not None:
            return True
        if not self.api_key:
            logger.warning("GEMINI_API_KEY is not set; AI features will use local fallbacks only")
            return False
        self.client = genai.Client(
            api_key=self.api_key,
            http_options=types.HttpOptions(timeout=int(self.timeout_seconds * 1000)),
        )
        logger.info(
            "Gemini gateway initialized",
            models=self.models,
            timeout_seconds=self.timeout_seconds,
        )
        return True

    async def _call_model(
        self, model_name: str, prompt: str, system_instruction: Optional[str]
    ) -> str:
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=0.3,
        ) if system_instruction else None
        response = await self.client.aio.models.generate_content(
            model=model_name,
            contents=prompt,
            config=config,
        )
        return response.text or ""

    async def generate(
        self, prompt: str, system_instruction: Optional[str] = None
    ) -> Optional[str]:
        """Return generated text, or ``None`` when no model produced any."""
        if self.client is None:
            return None

        for model_name in self.models:
            try:
                logger.info("Attempting Gemini model", model=model_name)
                text = await asyncio.wait_for(
                    self._call_model(model_name, prompt, system_instruction),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Gemini request timed out",
                    model=model_name,
                    timeout_seconds=self.timeout_seconds,
                )
                continue
            except Exception as e:
                if is_rate_limited(e):
                    delay = parse_retry_delay(getattr(e, "details", None))
                    if delay is None:
                        delay = self.default_retry_delay
                    logger.warning(
                        "Gemini rate limit hit, backing off before next model",
                        model=model_name,
                        retry_delay_seconds=delay,
                    )
                    await self._sleep(delay)
                else:
                    logger.error("Gemini model failed", model=model_name, error=str(e))
                continue

            if text.strip():
                return text
            logger.warning("Gemini returned an empty response", model=model_name)

        logger.error("All Gemini models failed", models=self.models)
        return None


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------
_gateway_instance: Optional[GeminiGateway] = None


def get_gateway() -> GeminiGateway:
    """Get or create the gateway singleton."""
    global _gateway_instance
    if _gateway_instance is None:
        _gateway_instance = GeminiGateway()
    return _gateway_instance
