"""Tests for the classifier common layer.

Covers:
- Gateway: disabled without credentials, 429 retry/backoff, no retry on
  other statuses, timeout / network / malformed payload mapping
- Router: per-scope policy and token budget
- Providers: factory, Gemini request/response handling, mock provider
- json_tools: fence stripping, prose prefix, tagged parse outcome
- Audit: hashed record, raw text only in debug mode
"""

import asyncio
import hashlib
import json
import logging
import os
import unittest
from unittest.mock import AsyncMock, call, patch

import httpx
import pytest

from feedback_ai.core.config import get_settings
from feedback_ai.core.errors import FailureReason
from feedback_ai.services.ai.common.gateway import (
    ClassifierGateway,
    GatewayConfig,
    GatewayResult,
    RetryPolicy,
)
from feedback_ai.services.ai.common.providers.base import BaseProvider, ProviderResult


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://generativelanguage.googleapis.com/v1beta/models/m:generateContent")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"status {status}", request=request, response=response)


def _provider_result(text='{"sentiment": "positive", "confidence": 90, "summary": "ok"}'):
    return ProviderResult(
        raw_text=text,
        model="test-model",
        provider="mock",
        prompt_tokens=10,
        completion_tokens=5,
        latency_ms=12.5,
    )


def _gateway(side_effect, *, sleep=None):
    provider = AsyncMock(spec=BaseProvider)
    provider.generate.side_effect = side_effect
    gateway = ClassifierGateway(GatewayConfig(model="test-model"), provider=provider, sleep=sleep or AsyncMock())
    return gateway, provider


class RetryPolicyTests(unittest.TestCase):
    def test_delay_grows_linearly_with_attempt(self):
        policy = RetryPolicy(max_attempts=3, base_delay_ms=10_000)
        self.assertEqual(policy.delay_seconds(1), 10.0)
        self.assertEqual(policy.delay_seconds(2), 20.0)

    def test_zero_base_delay(self):
        self.assertEqual(RetryPolicy(max_attempts=1, base_delay_ms=0).delay_seconds(1), 0.0)


class GatewayTests(unittest.TestCase):
    def test_disabled_without_credentials(self):
        gateway = ClassifierGateway(GatewayConfig(provider_name="gemini", api_key=""))
        self.assertFalse(gateway.is_enabled())

        result = asyncio.run(gateway.invoke("prompt", 100, RetryPolicy(3, 0)))
        self.assertFalse(result.ok)
        self.assertEqual(result.reason, FailureReason.DISABLED)
        self.assertEqual(result.attempts, 0)

    def test_unknown_provider_is_disabled(self):
        gateway = ClassifierGateway(GatewayConfig(provider_name="openai", api_key="sk-x"))
        self.assertFalse(gateway.is_enabled())

    def test_success_returns_raw_text(self):
        gateway, provider = _gateway([_provider_result("not json at all")])

        result = asyncio.run(gateway.invoke("prompt", 300, RetryPolicy(3, 1000)))

        self.assertTrue(result.ok)
        self.assertEqual(result.text, "not json at all")
        self.assertEqual(result.attempts, 1)
        provider.generate.assert_awaited_once()
        self.assertEqual(provider.generate.await_args.kwargs["max_tokens"], 300)
        self.assertEqual(provider.generate.await_args.kwargs["model"], "test-model")

    def test_single_attempt_policy_makes_one_call_on_429(self):
        sleep = AsyncMock()
        gateway, provider = _gateway(_status_error(429), sleep=sleep)

        result = asyncio.run(gateway.invoke("prompt", 300, RetryPolicy(1, 0)))

        self.assertFalse(result.ok)
        self.assertEqual(result.reason, FailureReason.RATE_LIMITED)
        self.assertEqual(result.status, 429)
        self.assertEqual(provider.generate.await_count, 1)
        sleep.assert_not_awaited()

    def test_429_then_success_retries_with_backoff(self):
        sleep = AsyncMock()
        gateway, provider = _gateway(
            [_status_error(429), _status_error(429), _provider_result()],
            sleep=sleep,
        )

        result = asyncio.run(gateway.invoke("prompt", 1000, RetryPolicy(3, 10_000)))

        self.assertTrue(result.ok)
        self.assertEqual(result.attempts, 3)
        self.assertEqual(provider.generate.await_count, 3)
        self.assertEqual(sleep.await_args_list, [call(10.0), call(20.0)])

    def test_exhausted_retries_never_exceed_max_attempts(self):
        sleep = AsyncMock()
        gateway, provider = _gateway(_status_error(429), sleep=sleep)

        result = asyncio.run(gateway.invoke("prompt", 1000, RetryPolicy(3, 500)))

        self.assertEqual(result.reason, FailureReason.RATE_LIMITED)
        self.assertEqual(result.attempts, 3)
        self.assertEqual(provider.generate.await_count, 3)
        # No wait after the final attempt.
        self.assertEqual(sleep.await_count, 2)

    def test_server_error_is_not_retried(self):
        gateway, provider = _gateway(_status_error(500))

        result = asyncio.run(gateway.invoke("prompt", 1000, RetryPolicy(3, 0)))

        self.assertEqual(result.reason, FailureReason.UPSTREAM_ERROR)
        self.assertEqual(result.status, 500)
        self.assertEqual(provider.generate.await_count, 1)

    def test_timeout_is_not_retried(self):
        gateway, provider = _gateway(httpx.ReadTimeout("timed out"))

        result = asyncio.run(gateway.invoke("prompt", 1000, RetryPolicy(3, 0)))

        self.assertEqual(result.reason, FailureReason.TIMEOUT)
        self.assertEqual(provider.generate.await_count, 1)

    def test_network_error(self):
        gateway, _ = _gateway(httpx.ConnectError("connection refused"))

        result = asyncio.run(gateway.invoke("prompt", 1000, RetryPolicy(3, 0)))

        self.assertEqual(result.reason, FailureReason.NETWORK_ERROR)

    def test_unexpected_payload_shape(self):
        gateway, _ = _gateway(KeyError("candidates"))

        result = asyncio.run(gateway.invoke("prompt", 1000, RetryPolicy(3, 0)))

        self.assertEqual(result.reason, FailureReason.MALFORMED_RESPONSE)

    def test_unexpected_provider_exception_becomes_failure(self):
        gateway, provider = _gateway(RuntimeError("provider bug"))

        result = asyncio.run(gateway.invoke("prompt", 1000, RetryPolicy(3, 0)))

        self.assertFalse(result.ok)
        self.assertEqual(result.reason, FailureReason.UPSTREAM_ERROR)
        self.assertEqual(result.attempts, 1)
        self.assertEqual(provider.generate.await_count, 1)

    def test_failure_factory(self):
        result = GatewayResult.failure(FailureReason.TIMEOUT, attempts=2)
        self.assertFalse(result.ok)
        self.assertEqual(result.text, "")
        self.assertIsNone(result.provider_result)


class TestGatewayConcurrency:
    async def test_backoff_does_not_block_other_invocations(self):
        """A rate-limited call waiting on backoff must not delay an unrelated call."""
        order: list[str] = []

        async def slow_sleep(seconds):
            order.append("sleep-start")
            await asyncio.sleep(0.05)
            order.append("sleep-end")

        limited, _ = _gateway([_status_error(429), _provider_result()], sleep=slow_sleep)
        fast, _ = _gateway([_provider_result()])

        async def run_fast():
            await asyncio.sleep(0)
            result = await fast.invoke("prompt", 100, RetryPolicy(1, 0))
            order.append("fast-done")
            return result

        limited_result, fast_result = await asyncio.gather(
            limited.invoke("prompt", 100, RetryPolicy(2, 1000)),
            run_fast(),
        )

        assert limited_result.ok and fast_result.ok
        assert order.index("fast-done") < order.index("sleep-end")


class RouterTests(unittest.TestCase):
    def test_sentiment_scope_is_single_attempt(self):
        from feedback_ai.services.ai.common.router import resolve

        config = resolve("sentiment")
        self.assertEqual(config.policy.max_attempts, 1)
        self.assertEqual(config.policy.base_delay_ms, 0)
        self.assertEqual(config.max_tokens, 300)

    @patch.dict(os.environ, {"AI_MAX_ATTEMPTS": "4", "AI_BASE_DELAY_MS": "250"})
    def test_full_policy_comes_from_settings(self):
        from feedback_ai.services.ai.common.router import resolve

        get_settings.cache_clear()
        for scope, tokens in (("external", 300), ("bulk", 1000), ("page_extract", 2000), ("paste_summary", 3000)):
            config = resolve(scope)
            self.assertEqual(config.policy, RetryPolicy(max_attempts=4, base_delay_ms=250), scope)
            self.assertEqual(config.max_tokens, tokens, scope)

    def test_injected_gateway_wins(self):
        from feedback_ai.services.ai.common.router import resolve

        gateway, _ = _gateway([_provider_result()])
        self.assertIs(resolve("bulk", gateway=gateway).gateway, gateway)

    def test_default_gateway_disabled_without_key(self):
        from feedback_ai.services.ai.common.router import resolve

        self.assertFalse(resolve("bulk").gateway.is_enabled())

    def test_unknown_scope_gets_defaults(self):
        from feedback_ai.services.ai.common.router import resolve

        self.assertEqual(resolve("something_else").max_tokens, 1000)


class ProviderTests(unittest.TestCase):
    def test_factory(self):
        from feedback_ai.services.ai.common.providers import MockProvider, get_provider
        from feedback_ai.services.ai.common.providers.gemini import GeminiProvider

        self.assertIsInstance(get_provider("mock"), MockProvider)
        self.assertIsInstance(get_provider("GEMINI", api_key="k"), GeminiProvider)
        self.assertIsNone(get_provider("gemini", api_key=""))
        self.assertIsNone(get_provider("claude", api_key="k"))

    def test_mock_provider_returns_json(self):
        from feedback_ai.services.ai.common.providers.mock import MockProvider

        result = asyncio.run(MockProvider().generate("hello world"))
        self.assertEqual(result.provider, "mock")
        self.assertEqual(json.loads(result.raw_text)["sentiment"], "neutral")

    def test_gemini_request_and_response(self):
        from feedback_ai.services.ai.common.providers.gemini import GeminiProvider

        request = httpx.Request("POST", "https://api.test/models/gemini-x:generateContent")
        response = httpx.Response(
            200,
            request=request,
            json={
                "candidates": [{"content": {"parts": [{"text": '{"sentiment": "positive"}'}]}}],
                "usageMetadata": {"promptTokenCount": 42, "candidatesTokenCount": 7},
            },
        )
        post = AsyncMock(return_value=response)

        with patch("httpx.AsyncClient.post", new=post):
            result = asyncio.run(
                GeminiProvider(api_key="secret", api_base="https://api.test/models/").generate(
                    "classify this", model="gemini-x", temperature=0.2, max_tokens=300
                )
            )

        self.assertEqual(result.raw_text, '{"sentiment": "positive"}')
        self.assertEqual(result.prompt_tokens, 42)
        self.assertEqual(result.completion_tokens, 7)
        url = post.await_args.args[0]
        self.assertEqual(url, "https://api.test/models/gemini-x:generateContent")
        kwargs = post.await_args.kwargs
        self.assertEqual(kwargs["headers"]["x-goog-api-key"], "secret")
        self.assertEqual(kwargs["json"]["generationConfig"], {"temperature": 0.2, "maxOutputTokens": 300})
        self.assertEqual(kwargs["json"]["contents"][0]["parts"][0]["text"], "classify this")

    def test_gemini_raises_on_429(self):
        from feedback_ai.services.ai.common.providers.gemini import GeminiProvider

        request = httpx.Request("POST", "https://api.test/models/m:generateContent")
        post = AsyncMock(return_value=httpx.Response(429, request=request))

        with patch("httpx.AsyncClient.post", new=post):
            with self.assertRaises(httpx.HTTPStatusError):
                asyncio.run(GeminiProvider(api_key="secret").generate("x"))


class JsonToolsTests(unittest.TestCase):
    def test_plain_object(self):
        from feedback_ai.services.ai.common.json_tools import parse_json_object

        outcome = parse_json_object('{"sentiment": "positive"}')
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.value, {"sentiment": "positive"})

    def test_markdown_fences(self):
        from feedback_ai.services.ai.common.json_tools import parse_json_object

        outcome = parse_json_object('```json\n{"sentiment": "negative", "confidence": 80}\n```')
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.value["confidence"], 80)

    def test_prose_prefix(self):
        from feedback_ai.services.ai.common.json_tools import extract_json

        result = extract_json('Sure! Here is the analysis: {"a": {"b": 1}} Hope that helps.')
        self.assertEqual(result, {"a": {"b": 1}})

    def test_failures_are_tagged(self):
        from feedback_ai.services.ai.common.json_tools import parse_json_object

        for text in (None, "", "   ", "no json here", "{broken", "[1, 2, 3]"):
            outcome = parse_json_object(text)
            self.assertFalse(outcome.ok, text)
            self.assertIsNone(outcome.value)
            self.assertTrue(outcome.error)

    def test_strip_code_fences(self):
        from feedback_ai.services.ai.common.json_tools import strip_code_fences

        self.assertEqual(strip_code_fences("```\n{}\n```"), "{}")


class AuditTests(unittest.TestCase):
    def test_record_hashes_prompt_and_response(self):
        from feedback_ai.services.ai.common.audit import build_audit_record

        result = _provider_result("response text")
        record = build_audit_record(
            scope="bulk",
            provider_result=result,
            prompt_text="prompt text",
            parsed_output={"overallSentiment": "positive", "overallScore": 80},
            extra_meta={"attempts": 2},
        )

        self.assertEqual(record["action"], "AI_BULK_SUMMARY_GENERATED")
        self.assertEqual(record["prompt_hash"], hashlib.sha256(b"prompt text").hexdigest())
        self.assertEqual(record["response_hash"], hashlib.sha256(b"response text").hexdigest())
        self.assertEqual(record["output_keys"], ["overallScore", "overallSentiment"])
        self.assertEqual(record["attempts"], 2)
        self.assertEqual(record["total_tokens"], 15)
        self.assertNotIn("prompt_raw", record)

    @patch.dict(os.environ, {"AI_DEBUG_STORE_RAW": "true"})
    def test_raw_text_only_in_debug_mode(self):
        from feedback_ai.services.ai.common.audit import build_audit_record

        get_settings.cache_clear()
        record = build_audit_record(
            scope="sentiment",
            provider_result=_provider_result("raw"),
            prompt_text="the prompt",
            parsed_output=None,
        )
        self.assertEqual(record["prompt_raw"], "the prompt")
        self.assertEqual(record["response_raw"], "raw")
        self.assertEqual(record["output_keys"], [])

    def test_log_ai_run_emits_one_line(self):
        from feedback_ai.services.ai.common.audit import log_ai_run

        with self.assertLogs("feedback_ai.services.ai.common.audit", level=logging.INFO) as logs:
            log_ai_run(
                scope="external",
                provider_result=_provider_result(),
                prompt_text="p",
                parsed_output={"sentiment": "positive"},
            )
        self.assertEqual(len(logs.output), 1)
        self.assertIn("AI_EXTERNAL_FEEDBACK_CLASSIFIED", logs.output[0])

    def test_log_ai_run_skips_without_provider_result(self):
        from feedback_ai.services.ai.common.audit import log_ai_run

        with patch("feedback_ai.services.ai.common.audit.logger") as logger:
            log_ai_run(scope="bulk", provider_result=None, prompt_text="p", parsed_output=None)
        logger.info.assert_not_called()


@pytest.mark.parametrize(
    "env, enabled",
    [
        ({"AI_PROVIDER": "mock"}, True),
        ({"AI_PROVIDER": "gemini", "GEMINI_API_KEY": "key"}, True),
        ({"AI_PROVIDER": "gemini", "GEMINI_API_KEY": ""}, False),
        ({"AI_PROVIDER": "Unknown"}, False),
    ],
)
def test_settings_ai_enabled(monkeypatch, env, enabled):
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()
    assert get_settings().ai_enabled is enabled


def test_settings_clamp_retry_values(monkeypatch):
    monkeypatch.setenv("AI_MAX_ATTEMPTS", "0")
    monkeypatch.setenv("AI_BASE_DELAY_MS", "-5")
    get_settings.cache_clear()
    settings = get_settings()
    assert settings.ai_max_attempts == 1
    assert settings.ai_base_delay_ms == 0
