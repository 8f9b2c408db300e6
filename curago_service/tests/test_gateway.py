"""Tests for the Gemini gateway: model fallback, timeouts and 429 backoff."""
import asyncio
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from curago_service.config import Settings
from curago_service.gemini_gateway import (
    RETRY_INFO_TYPE,
    GeminiGateway,
    is_rate_limited,
    parse_retry_delay,
)


class FakeAPIError(Exception):
    """Mimics the attributes of google.genai.errors.APIError."""

    def __init__(self, code, details=None, status=None):
        super().__init__(f"{code} {status}")
        self.code = code
        self.status = status
        self.details = details


def quota_details(delay="21s"):
    return {
        "error": {
            "code": 429,
            "status": "RESOURCE_EXHAUSTED",
            "details": [
                {"@type": "type.googleapis.com/google.rpc.QuotaFailure"},
                {"@type": RETRY_INFO_TYPE, "retryDelay": delay},
            ],
        }
    }


def make_gateway(generate_content, sleep=None, timeout_seconds=1.0):
    client = MagicMock()
    client.aio.models.generate_content = generate_content
    return GeminiGateway(
        api_key="test-key",
        models=["gemini-fast", "gemini-strong"],
        timeout_seconds=timeout_seconds,
        default_retry_delay=5.0,
        client=client,
        sleep=sleep or AsyncMock(),
    )


class TestRetryDelayParsing:
    """Test retry delay parsing from rate-limit errors."""

    def test_full_error_body(self):
        """Test the delay from a full error body."""
        assert parse_retry_delay(quota_details("21s")) == 21.0

    def test_inner_error_object(self):
        """Test the delay from a bare error object."""
        assert parse_retry_delay(quota_details("3.5s")["error"]) == 3.5

    def test_missing_retry_info(self):
        """Test that missing RetryInfo gives no delay."""
        assert parse_retry_delay({"error": {"details": []}}) is None

    def test_unparseable_delay(self):
        """Test that an unparseable delay is ignored."""
        assert parse_retry_delay(quota_details("soon")) is None

    def test_not_a_dict(self):
        """Test that non-dict details are ignored."""
        assert parse_retry_delay("429 Too Many Requests") is None
        assert parse_retry_delay(None) is None

    def test_is_rate_limited(self):
        """Test 429 detection by code and status."""
        assert is_rate_limited(FakeAPIError(429))
        assert is_rate_limited(FakeAPIError(None, status="RESOURCE_EXHAUSTED"))
        assert not is_rate_limited(FakeAPIError(500))
        assert not is_rate_limited(ValueError("boom"))


class TestGeminiGateway(unittest.TestCase):
    """Test the GeminiGateway class."""

    def test_first_model_success(self):
        """Test that the first model's answer is returned."""
        generate_content = AsyncMock(return_value=SimpleNamespace(text='["Neurologist"]'))
        gateway = make_gateway(generate_content)

        result = asyncio.run(gateway.generate("prompt"))

        self.assertEqual(result, '["Neurologist"]')
        generate_content.assert_awaited_once()
        self.assertEqual(generate_content.await_args.kwargs["model"], "gemini-fast")

    def test_error_falls_through_to_next_model(self):
        """Test that an error moves on to the next model."""
        generate_content = AsyncMock(side_effect=[
            RuntimeError("503 unavailable"),
            SimpleNamespace(text="from the strong model"),
        ])
        sleep = AsyncMock()
        gateway = make_gateway(generate_content, sleep=sleep)

        result = asyncio.run(gateway.generate("prompt"))

        self.assertEqual(result, "from the strong model")
        models = [c.kwargs["model"] for c in generate_content.await_args_list]
        self.assertEqual(models, ["gemini-fast", "gemini-strong"])
        sleep.assert_not_awaited()

    def test_rate_limit_sleeps_for_suggested_delay(self):
        """Test that a 429 sleeps for the suggested delay."""
        generate_content = AsyncMock(side_effect=[
            FakeAPIError(429, quota_details("21s")),
            SimpleNamespace(text="ok"),
        ])
        sleep = AsyncMock()
        gateway = make_gateway(generate_content, sleep=sleep)

        result = asyncio.run(gateway.generate("prompt"))

        self.assertEqual(result, "ok")
        sleep.assert_awaited_once_with(21.0)
        self.assertEqual(generate_content.await_args_list[1].kwargs["model"], "gemini-strong")

    def test_rate_limit_without_hint_uses_default_delay(self):
        """Test that a 429 without a hint sleeps for the default delay."""
        generate_content = AsyncMock(side_effect=[
            FakeAPIError(429, {"error": {"message": "quota"}}),
            SimpleNamespace(text="ok"),
        ])
        sleep = AsyncMock()
        gateway = make_gateway(generate_content, sleep=sleep)

        asyncio.run(gateway.generate("prompt"))

        sleep.assert_awaited_once_with(5.0)

    def test_timeout_moves_to_next_model(self):
        """Test that a timeout moves on to the next model."""
        async def generate_content(model, contents, config):
            if model == "gemini-fast":
                await asyncio.sleep(5)
            return SimpleNamespace(text="late but fine")

        gateway = make_gateway(generate_content, timeout_seconds=0.05)

        result = asyncio.run(gateway.generate("prompt"))

        self.assertEqual(result, "late but fine")

    def test_empty_text_moves_to_next_model(self):
        """Test that an empty answer moves on to the next model."""
        generate_content = AsyncMock(side_effect=[
            SimpleNamespace(text="   "),
            SimpleNamespace(text=None),
        ])
        gateway = make_gateway(generate_content)

        result = asyncio.run(gateway.generate("prompt"))

        self.assertIsNone(result)
        self.assertEqual(generate_content.await_count, 2)

    def test_all_models_fail_returns_none(self):
        """Test that None is returned when every model fails."""
        generate_content = AsyncMock(side_effect=RuntimeError("down"))
        gateway = make_gateway(generate_content)

        self.assertIsNone(asyncio.run(gateway.generate("prompt")))

    def test_system_instruction_is_passed_in_config(self):
        """Test that the system instruction goes into the request config."""
        generate_content = AsyncMock(return_value=SimpleNamespace(text="hi"))
        gateway = make_gateway(generate_content)

        asyncio.run(gateway.generate("prompt", system_instruction="Be brief."))

        config = generate_content.await_args.kwargs["config"]
        self.assertEqual(config.system_instruction, "Be brief.")


class TestGatewayWithoutKey(unittest.TestCase):
    """Test the gateway with no API key."""

    def setUp(self):
        self.gateway = GeminiGateway(settings=Settings(gemini_api_key=None))

    def test_initialize_reports_fallback_mode(self):
        """Test that initialize reports no client."""
        self.assertFalse(self.gateway.initialize())
        self.assertFalse(self.gateway.available)

    def test_generate_returns_none(self):
        """Test that generate returns None without a client."""
        self.assertIsNone(asyncio.run(self.gateway.generate("prompt")))

    def test_model_priority_from_settings(self):
        """Test that models come from settings in priority order."""
        gateway = GeminiGateway(settings=Settings(default_model="a", fallback_model="a"))
        self.assertEqual(gateway.models, ["a"])
