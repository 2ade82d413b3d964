from __future__ import annotations

from typing import Any

import httpx

from novel_translator.app.translation.backends.base import (
    TranslationBackend,
    TranslationBackendError,
)
from novel_translator.app.translation.config import TranslatorConfig


class GeminiBackend(TranslationBackend):
    def __init__(
        self,
        config: TranslatorConfig,
        model: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not config.credentials_configured:
            raise TranslationBackendError("GEMINI_API_KEY is required for gemini mode")
        self._config = config
        self._model_name = model.removeprefix("models/")
        self._transport = transport

    @property
    def name(self) -> str:
        return f"gemini:{self._model_name}"

    async def generate(self, prompt: str) -> str:
        endpoint = f"{self._config.api_base_url}/models/{self._model_name}:generateContent"
        headers = {"x-goog-api-key": self._config.api_key or ""}
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self._config.temperature,
                "responseMimeType": "text/plain",
            },
        }

        timeout = httpx.Timeout(self._config.timeout_seconds)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(endpoint, headers=headers, json=body)
        except httpx.TimeoutException as exc:
            raise TranslationBackendError(
                f"{self._model_name} timed out after {self._config.timeout_seconds}s"
            ) from exc
        except httpx.RequestError as exc:
            raise TranslationBackendError(f"{self._model_name} request failed: {exc}") from exc

        if response.status_code != 200:
            raise TranslationBackendError(self._describe_status_error(response))

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranslationBackendError(
                f"{self._model_name} returned a malformed response"
            ) from exc

        return self._extract_text(payload)

    def _describe_status_error(self, response: httpx.Response) -> str:
        detail = ""
        try:
            error_payload = response.json()
        except ValueError:
            error_payload = None

        if isinstance(error_payload, dict):
            error = error_payload.get("error")
            if isinstance(error, dict):
                detail = str(error.get("message") or "").strip()

        message = f"{self._model_name} returned HTTP {response.status_code}"
        if detail:
            message = f"{message}: {detail}"
        return message

    def _extract_text(self, payload: Any) -> str:
        if not isinstance(payload, dict):
            raise TranslationBackendError(f"{self._model_name} returned a malformed response")

        candidates = payload.get("candidates")
        if candidates is None or candidates == []:
            return ""

        parts = None
        first = candidates[0] if isinstance(candidates, list) else None
        if isinstance(first, dict):
            content = first.get("content") or {}
            if isinstance(content, dict):
                parts = content.get("parts", [])
        if not isinstance(parts, list):
            raise TranslationBackendError(f"{self._model_name} returned a malformed response")

        segments = [
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        return "".join(segments).strip()
