"""Vendor-Specific Adapters: protocol-level handling for each AI vendor.

Each adapter translates a CompletionRequest into the vendor's HTTP protocol,
sends it, and returns the generated text. Every failure (HTTP error, timeout,
safety block, empty answer) is raised as AiUpstreamError.

Vendor-specific behaviors:
  - Gemini: Google AI generateContent, systemInstruction, finishReason SAFETY → blocked
  - YandexGPT: Foundation Models completion, Api-Key auth, gpt://<folder>/<model> URI
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

import httpx

from app.gateway.types import AiUpstreamError, AiVendor, CompletionRequest

logger = logging.getLogger(__name__)


class BaseVendorAdapter(ABC):
    """Base class for all vendor adapters."""

    vendor: AiVendor
    default_model: str = ""

    def __init__(self, api_key: str, model: str = "", **kwargs):
        self.api_key = api_key
        self.model = model or self.default_model

    @abstractmethod
    async def complete(self, request: CompletionRequest, timeout: float = 60.0) -> str:
        """Send a prompt to the vendor and return the generated text."""
        ...

    def _error(self, message: str, error_code: str = "") -> AiUpstreamError:
        return AiUpstreamError(message, vendor=self.vendor, error_code=error_code)

    def _check_status(self, resp: httpx.Response) -> None:
        if resp.status_code == 429:
            raise self._error(f"Rate limited by {self.vendor.value}", error_code="429")
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._error(str(e), error_code=str(e.response.status_code)) from e

    def _decode(self, resp: httpx.Response) -> dict:
        try:
            data = resp.json()
        except ValueError as e:
            raise self._error("Invalid JSON in response", error_code="BAD_RESPONSE") from e
        if not isinstance(data, dict):
            raise self._error("Unexpected response shape", error_code="BAD_RESPONSE")
        return data

    @abstractmethod
    def _extract_text(self, data: dict) -> str:
        """Pull the answer text out of a decoded vendor response."""
        ...

    def _parse(self, resp: httpx.Response) -> str:
        self._check_status(resp)
        data = self._decode(resp)
        try:
            return self._extract_text(data)
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            raise self._error("Unexpected response shape", error_code="BAD_RESPONSE") from e


# ---------------------------------------------------------------------------
# Gemini Adapter (Google AI)
# ---------------------------------------------------------------------------


class GeminiAdapter(BaseVendorAdapter):
    """Google Gemini adapter with SAFETY filter detection."""

    vendor = AiVendor.GEMINI
    default_model = "gemini-1.5-flash"
    api_url_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    async def complete(self, request: CompletionRequest, timeout: float = 60.0) -> str:
        model = request.model or self.model
        url = self.api_url_template.format(model=model)
        start = time.monotonic()

        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": request.user_prompt}],
                }
            ],
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": request.max_tokens,
            },
        }

        # System instruction (separate from contents in Gemini API)
        if request.system_prompt:
            payload["systemInstruction"] = {
                "parts": [{"text": request.system_prompt}],
            }

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(
                    url,
                    json=payload,
                    params={"key": self.api_key},
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException as e:
            raise self._error(f"Gemini timeout after {timeout}s", error_code="TIMEOUT") from e
        except httpx.HTTPError as e:
            raise self._error(f"Gemini transport error: {e}") from e

        text = self._parse(resp)

        logger.debug("Gemini %s: %d chars in %dms", model, len(text), int((time.monotonic() - start) * 1000))
        return text

    def _extract_text(self, data: dict) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = data.get("promptFeedback", {}).get("blockReason", "")
            if block_reason:
                raise self._error(f"Prompt blocked: {block_reason}", error_code=f"BLOCKED_{block_reason}")
            raise self._error("Gemini returned no candidates")

        candidate = candidates[0]
        if candidate.get("finishReason", "") == "SAFETY":
            raise self._error("Gemini safety filter triggered", error_code="SAFETY")

        parts = candidate.get("content", {}).get("parts", [])
        text = "".join(p.get("text", "") for p in parts if "text" in p)
        if not text:
            finish_reason = candidate.get("finishReason", "-")
            raise self._error(f"Gemini returned an empty answer (finishReason={finish_reason})", error_code="EMPTY")
        return text


# ---------------------------------------------------------------------------
# YandexGPT Adapter
# ---------------------------------------------------------------------------


class YandexGPTAdapter(BaseVendorAdapter):
    """YandexGPT synchronous completion adapter.

    Supports two auth modes:
      - API Key: Authorization: Api-Key <key>
      - IAM Token: Authorization: Bearer <iam_token>
    """

    vendor = AiVendor.YANDEXGPT
    default_model = "yandexgpt-lite/latest"
    api_url = "https://llm.api.cloud.yandex.net/foundationModels/v1/completion"

    def __init__(self, api_key: str, model: str = "", folder_id: str = "", use_iam: bool = False, **kwargs):
        super().__init__(api_key=api_key, model=model, **kwargs)
        self.folder_id = folder_id
        self.use_iam = use_iam

    def _model_uri(self, model: str) -> str:
        return f"gpt://{self.folder_id}/{model}"

    def _auth_header(self) -> dict[str, str]:
        if self.use_iam:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {"Authorization": f"Api-Key {self.api_key}"}

    async def complete(self, request: CompletionRequest, timeout: float = 60.0) -> str:
        model = request.model or self.model

        payload = {
            "modelUri": self._model_uri(model),
            "completionOptions": {
                "stream": False,
                "temperature": request.temperature,
                "maxTokens": str(request.max_tokens),
            },
            "messages": [],
        }
        if request.system_prompt:
            payload["messages"].append({"role": "system", "text": request.system_prompt})
        payload["messages"].append({"role": "user", "text": request.user_prompt})

        headers = {
            **self._auth_header(),
            "Content-Type": "application/json",
            "x-folder-id": self.folder_id,
        }

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise self._error(f"YandexGPT timeout after {timeout}s", error_code="TIMEOUT") from e
        except httpx.HTTPError as e:
            raise self._error(f"YandexGPT transport error: {e}") from e

        return self._parse(resp)

    def _extract_text(self, data: dict) -> str:
        result = data.get("result", data)
        alternatives = result.get("alternatives", [])
        if not alternatives:
            raise self._error("YandexGPT returned no alternatives")

        alternative = alternatives[0]
        if alternative.get("status") == "ALTERNATIVE_STATUS_CONTENT_FILTER":
            raise self._error("YandexGPT content filter triggered", error_code="SAFETY")

        text = (alternative.get("message") or {}).get("text", "")
        if not text:
            raise self._error("YandexGPT returned an empty answer", error_code="EMPTY")
        return text


# ---------------------------------------------------------------------------
# Adapter registry
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[AiVendor, type[BaseVendorAdapter]] = {
    AiVendor.GEMINI: GeminiAdapter,
    AiVendor.YANDEXGPT: YandexGPTAdapter,
}


def get_adapter(vendor: AiVendor, api_key: str, **kwargs) -> BaseVendorAdapter:
    """Factory: get the appropriate adapter for a vendor."""
    cls = ADAPTER_REGISTRY.get(vendor)
    if cls is None:
        raise ValueError(f"No adapter registered for vendor: {vendor}")
    return cls(api_key=api_key, **kwargs)
