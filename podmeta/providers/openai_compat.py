"""OpenAI-compatible vision provider (Mistral, Groq)."""

import json
import re

import httpx

from podmeta.config.settings import get_settings
from podmeta.metadata.models import ApiResponse, Marketplace
from podmeta.providers.base import ImagePayload, ProviderDescriptor, RequestTarget, VisionProvider
from podmeta.providers.errors import (
    ANALYSIS_FAILED_MESSAGE,
    ErrorKind,
    ProviderError,
    classify_status,
)
from podmeta.providers.prompts import build_messages

# Error codes some providers return with HTTP 400 for a model they no longer serve
_MODEL_GONE_CODES = {"model_not_found", "model_decommissioned", "invalid_model"}
_FENCE_RE = re.compile(r"^```[\w-]*\s*(.*?)\s*(?:```)?$", re.DOTALL)


class OpenAICompatibleProvider(VisionProvider):
    """Sends vision chat-completions requests to an OpenAI-compatible API."""

    def __init__(self, descriptor: ProviderDescriptor):
        self.descriptor = descriptor
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            settings = get_settings()
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    settings.request_timeout_seconds,
                    connect=settings.connect_timeout_seconds,
                )
            )
        return self._client

    @staticmethod
    def _build_headers(api_key: str) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def _error(self, kind: ErrorKind, message: str, model: str = "",
               status_code: int | None = None) -> ProviderError:
        return ProviderError(
            kind,
            f"[{self.descriptor.label}] {message}",
            provider=self.descriptor.name,
            model=model,
            status_code=status_code,
        )

    def build_body(self, image: ImagePayload, marketplace: Marketplace, model: str) -> dict:
        settings = get_settings()
        return {
            "model": model,
            "messages": build_messages(marketplace, image.data_uri),
            "response_format": {"type": "json_object"},
            "temperature": settings.temperature,
        }

    async def analyze(
        self, image: ImagePayload, marketplace: Marketplace, target: RequestTarget
    ) -> ApiResponse:
        body = self.build_body(image, marketplace, target.model)
        headers = self._build_headers(target.api_key)

        client = await self._get_client()
        try:
            response = await client.post(self.descriptor.chat_url, json=body, headers=headers)
        except httpx.TimeoutException:
            raise self._error(ErrorKind.NETWORK, "Provider timed out", target.model)
        except httpx.HTTPError as e:
            raise self._error(ErrorKind.NETWORK, f"Cannot reach provider: {e}", target.model)

        if not response.is_success:
            raise self._classify_failure(response, target.model)

        try:
            envelope = response.json()
            content = envelope["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise self._error(
                ErrorKind.MALFORMED_RESPONSE, ANALYSIS_FAILED_MESSAGE,
                target.model, response.status_code,
            )
        return self._parse_content(content, target.model, response.status_code)

    def _classify_failure(self, response: httpx.Response, model: str = "") -> ProviderError:
        status = response.status_code
        message, code = _extract_error(response)
        kind = classify_status(status)
        if kind is ErrorKind.REQUEST_REJECTED and code in _MODEL_GONE_CODES:
            kind = ErrorKind.MODEL_UNAVAILABLE
        if kind is ErrorKind.MODEL_UNAVAILABLE and model:
            message = f"Model {model} unavailable: {message}"
        return self._error(kind, message, model, status)

    def _parse_content(self, content, model: str, status_code: int) -> ApiResponse:
        if not isinstance(content, str) or not content.strip():
            raise self._error(ErrorKind.MALFORMED_RESPONSE, ANALYSIS_FAILED_MESSAGE, model, status_code)

        text = _strip_fence(content)
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            raise self._error(ErrorKind.MALFORMED_RESPONSE, ANALYSIS_FAILED_MESSAGE, model, status_code)

        if not isinstance(data, dict):
            raise self._error(ErrorKind.MALFORMED_RESPONSE, ANALYSIS_FAILED_MESSAGE, model, status_code)
        return data

    async def validate_key(self, api_key: str) -> bool:
        client = await self._get_client()
        try:
            response = await client.get(self.descriptor.models_url, headers=self._build_headers(api_key))
        except httpx.TimeoutException:
            raise self._error(ErrorKind.NETWORK, "Provider timed out")
        except httpx.HTTPError as e:
            raise self._error(ErrorKind.NETWORK, f"Cannot reach provider: {e}")

        if response.is_success:
            return True
        if response.status_code in (401, 403):
            return False
        raise self._classify_failure(response)

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def _extract_error(response: httpx.Response) -> tuple[str, str]:
    """Pull (message, code) out of an error envelope, falling back to the status text."""
    fallback = response.reason_phrase or f"HTTP {response.status_code}"
    try:
        data = response.json()
    except ValueError:
        return fallback, ""
    if not isinstance(data, dict):
        return fallback, ""

    error = data.get("error")
    if isinstance(error, dict):
        return str(error.get("message") or fallback), str(error.get("code") or "")
    if isinstance(error, str) and error:
        return error, ""
    for key in ("message", "detail"):
        if isinstance(data.get(key), str) and data[key]:
            return data[key], str(data.get("code") or "")
    return fallback, ""


def _strip_fence(content: str) -> str:
    """Drop a leading ```lang fence and a trailing ``` fence, on one line or many."""
    text = content.strip()
    match = _FENCE_RE.match(text)
    if match:
        text = match.group(1).strip()
    return text
