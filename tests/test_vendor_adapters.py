"""Tests for the AI vendor adapters (mocked HTTP)."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from app.gateway.types import AiUpstreamError, AiVendor, CompletionRequest
from app.gateway.vendor_adapters import (
    ADAPTER_REGISTRY,
    GeminiAdapter,
    YandexGPTAdapter,
    get_adapter,
)


def _make_httpx_response(status_code: int, json_data: dict | None = None, text: str = "") -> httpx.Response:
    """Create a proper httpx.Response with request set (needed for raise_for_status)."""
    request = httpx.Request("POST", "https://example.com")
    if json_data is not None:
        resp = httpx.Response(status_code, json=json_data, request=request)
    else:
        resp = httpx.Response(status_code, text=text, request=request)
    return resp


def _mock_gemini_response(text="Привет!", finish_reason="STOP"):
    return _make_httpx_response(
        200,
        json_data={
            "candidates": [
                {
                    "content": {"parts": [{"text": text}]},
                    "finishReason": finish_reason,
                }
            ],
            "usageMetadata": {"totalTokenCount": 30},
        },
    )


def _mock_yandex_response(text="Привет мир", status="ALTERNATIVE_STATUS_FINAL"):
    return _make_httpx_response(
        200,
        json_data={
            "result": {
                "alternatives": [{"message": {"role": "assistant", "text": text}, "status": status}],
                "usage": {"inputTextTokens": "10", "completionTokens": "20", "totalTokens": "30"},
                "modelVersion": "07.03.2024",
            }
        },
    )


def _patched_client(response=None, side_effect=None):
    mock_client = AsyncMock()
    if side_effect is not None:
        mock_client.post.side_effect = side_effect
    else:
        mock_client.post.return_value = response
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    return mock_client


class TestGeminiAdapter:
    @pytest.mark.asyncio
    async def test_success(self):
        adapter = GeminiAdapter(api_key="test-key")
        req = CompletionRequest(user_prompt="Привет", system_prompt="Ты ассистент")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client = _patched_client(_mock_gemini_response())
            mock_client_cls.return_value = mock_client

            text = await adapter.complete(req)

        assert text == "Привет!"
        args, kwargs = mock_client.post.call_args
        assert args[0].endswith("/models/gemini-1.5-flash:generateContent")
        assert kwargs["params"] == {"key": "test-key"}
        assert kwargs["json"]["systemInstruction"] == {"parts": [{"text": "Ты ассистент"}]}
        assert kwargs["json"]["contents"][0]["parts"][0]["text"] == "Привет"

    @pytest.mark.asyncio
    async def test_no_system_instruction_when_empty(self):
        adapter = GeminiAdapter(api_key="test-key", model="gemini-1.5-pro")
        req = CompletionRequest(user_prompt="Hello")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client = _patched_client(_mock_gemini_response())
            mock_client_cls.return_value = mock_client

            await adapter.complete(req)

        args, kwargs = mock_client.post.call_args
        assert "systemInstruction" not in kwargs["json"]
        assert "gemini-1.5-pro" in args[0]

    @pytest.mark.asyncio
    async def test_safety_filter(self):
        adapter = GeminiAdapter(api_key="test-key")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(_mock_gemini_response(text="", finish_reason="SAFETY"))

            with pytest.raises(AiUpstreamError) as exc_info:
                await adapter.complete(CompletionRequest(user_prompt="Test"))

        assert exc_info.value.error_code == "SAFETY"
        assert exc_info.value.vendor == AiVendor.GEMINI

    @pytest.mark.asyncio
    async def test_prompt_blocked(self):
        adapter = GeminiAdapter(api_key="test-key")
        blocked_response = _make_httpx_response(
            200,
            json_data={"candidates": [], "promptFeedback": {"blockReason": "OTHER"}},
        )

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(blocked_response)

            with pytest.raises(AiUpstreamError) as exc_info:
                await adapter.complete(CompletionRequest(user_prompt="Test"))

        assert exc_info.value.error_code == "BLOCKED_OTHER"

    @pytest.mark.asyncio
    async def test_http_429(self):
        adapter = GeminiAdapter(api_key="test-key")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(_make_httpx_response(429, text="quota"))

            with pytest.raises(AiUpstreamError) as exc_info:
                await adapter.complete(CompletionRequest(user_prompt="Test"))

        assert exc_info.value.error_code == "429"

    @pytest.mark.asyncio
    async def test_http_500(self):
        adapter = GeminiAdapter(api_key="test-key")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(_make_httpx_response(500, text="boom"))

            with pytest.raises(AiUpstreamError) as exc_info:
                await adapter.complete(CompletionRequest(user_prompt="Test"))

        assert exc_info.value.error_code == "500"

    @pytest.mark.asyncio
    async def test_timeout(self):
        adapter = GeminiAdapter(api_key="test-key")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(side_effect=httpx.ReadTimeout("slow"))

            with pytest.raises(AiUpstreamError) as exc_info:
                await adapter.complete(CompletionRequest(user_prompt="Test"), timeout=5)

        assert exc_info.value.error_code == "TIMEOUT"

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        adapter = GeminiAdapter(api_key="test-key")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(_make_httpx_response(200, text="<html>gateway</html>"))

            with pytest.raises(AiUpstreamError) as exc_info:
                await adapter.complete(CompletionRequest(user_prompt="Test"))

        assert exc_info.value.error_code == "BAD_RESPONSE"
        assert exc_info.value.vendor == AiVendor.GEMINI

    @pytest.mark.asyncio
    async def test_json_array_body(self):
        adapter = GeminiAdapter(api_key="test-key")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(_make_httpx_response(200, text='["not", "an", "object"]'))

            with pytest.raises(AiUpstreamError) as exc_info:
                await adapter.complete(CompletionRequest(user_prompt="Test"))

        assert exc_info.value.error_code == "BAD_RESPONSE"

    @pytest.mark.asyncio
    async def test_empty_answer_on_max_tokens(self):
        adapter = GeminiAdapter(api_key="test-key")
        truncated = _make_httpx_response(
            200,
            json_data={"candidates": [{"content": {"parts": []}, "finishReason": "MAX_TOKENS"}]},
        )

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(truncated)

            with pytest.raises(AiUpstreamError) as exc_info:
                await adapter.complete(CompletionRequest(user_prompt="Test"))

        assert exc_info.value.error_code == "EMPTY"
        assert "MAX_TOKENS" in str(exc_info.value)


class TestYandexGPTAdapter:
    @pytest.mark.asyncio
    async def test_success(self):
        adapter = YandexGPTAdapter(api_key="test-key", folder_id="b1g123")
        req = CompletionRequest(user_prompt="Привет", system_prompt="Ты ассистент")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client = _patched_client(_mock_yandex_response())
            mock_client_cls.return_value = mock_client

            text = await adapter.complete(req)

        assert text == "Привет мир"
        _, kwargs = mock_client.post.call_args
        assert kwargs["json"]["modelUri"] == "gpt://b1g123/yandexgpt-lite/latest"
        assert kwargs["json"]["messages"] == [
            {"role": "system", "text": "Ты ассистент"},
            {"role": "user", "text": "Привет"},
        ]
        assert kwargs["headers"]["Authorization"] == "Api-Key test-key"
        assert kwargs["headers"]["x-folder-id"] == "b1g123"

    @pytest.mark.asyncio
    async def test_content_filter(self):
        adapter = YandexGPTAdapter(api_key="test-key", folder_id="b1g123")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(
                _mock_yandex_response(text="", status="ALTERNATIVE_STATUS_CONTENT_FILTER")
            )

            with pytest.raises(AiUpstreamError) as exc_info:
                await adapter.complete(CompletionRequest(user_prompt="Test"))

        assert exc_info.value.error_code == "SAFETY"
        assert exc_info.value.vendor == AiVendor.YANDEXGPT

    @pytest.mark.asyncio
    async def test_no_alternatives(self):
        adapter = YandexGPTAdapter(api_key="test-key", folder_id="b1g123")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(_make_httpx_response(200, json_data={"result": {}}))

            with pytest.raises(AiUpstreamError):
                await adapter.complete(CompletionRequest(user_prompt="Test"))

    @pytest.mark.asyncio
    async def test_transport_error(self):
        adapter = YandexGPTAdapter(api_key="test-key", folder_id="b1g123")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(side_effect=httpx.ConnectError("refused"))

            with pytest.raises(AiUpstreamError) as exc_info:
                await adapter.complete(CompletionRequest(user_prompt="Test"))

        assert "transport error" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_empty_answer(self):
        adapter = YandexGPTAdapter(api_key="test-key", folder_id="b1g123")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(_mock_yandex_response(text=""))

            with pytest.raises(AiUpstreamError) as exc_info:
                await adapter.complete(CompletionRequest(user_prompt="Test"))

        assert exc_info.value.error_code == "EMPTY"
        assert exc_info.value.vendor == AiVendor.YANDEXGPT

    @pytest.mark.asyncio
    async def test_malformed_alternatives(self):
        adapter = YandexGPTAdapter(api_key="test-key", folder_id="b1g123")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(
                _make_httpx_response(200, json_data={"result": {"alternatives": ["x"]}})
            )

            with pytest.raises(AiUpstreamError) as exc_info:
                await adapter.complete(CompletionRequest(user_prompt="Test"))

        assert exc_info.value.error_code == "BAD_RESPONSE"

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        adapter = YandexGPTAdapter(api_key="test-key", folder_id="b1g123")

        with patch("app.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client_cls.return_value = _patched_client(_make_httpx_response(200, text="upstream maintenance"))

            with pytest.raises(AiUpstreamError) as exc_info:
                await adapter.complete(CompletionRequest(user_prompt="Test"))

        assert exc_info.value.error_code == "BAD_RESPONSE"

    def test_model_uri(self):
        adapter = YandexGPTAdapter(api_key="test", folder_id="b1gfoo")
        assert adapter._model_uri("yandexgpt/latest") == "gpt://b1gfoo/yandexgpt/latest"

    def test_auth_header_api_key(self):
        adapter = YandexGPTAdapter(api_key="my-key", use_iam=False)
        assert adapter._auth_header() == {"Authorization": "Api-Key my-key"}

    def test_auth_header_iam(self):
        adapter = YandexGPTAdapter(api_key="iam-token", use_iam=True)
        assert adapter._auth_header() == {"Authorization": "Bearer iam-token"}


class TestAdapterRegistry:
    def test_all_vendors_registered(self):
        for vendor in AiVendor:
            assert vendor in ADAPTER_REGISTRY

    def test_get_adapter(self):
        adapter = get_adapter(AiVendor.YANDEXGPT, "key", folder_id="b1g", model="yandexgpt/latest")
        assert isinstance(adapter, YandexGPTAdapter)
        assert adapter.model == "yandexgpt/latest"
        assert adapter.folder_id == "b1g"

    def test_get_adapter_default_model(self):
        adapter = get_adapter(AiVendor.GEMINI, "key")
        assert isinstance(adapter, GeminiAdapter)
        assert adapter.model == "gemini-1.5-flash"
