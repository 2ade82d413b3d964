from __future__ import annotations

import logging

from novel_translator.app.settings import Settings
from novel_translator.app.translation.backends.base import (
    TranslationBackend,
    TranslationBackendError,
)
from novel_translator.app.translation.backends.gemini import GeminiBackend
from novel_translator.app.translation.backends.mock import MockBackend
from novel_translator.app.translation.config import TranslatorConfig
from novel_translator.app.translation.types import (
    EMPTY_RESPONSE_MESSAGE,
    MISSING_CREDENTIALS_MESSAGE,
    FailureKind,
    TranslationOutcome,
)


def build_prompt(source_text: str, target_language: str) -> str:
    return (
        f"Translate the following text into {target_language}.\n"
        "Keep all names and proper nouns in their original form; do not translate them.\n"
        "Return only the translation, without explanations or commentary.\n"
        "\n"
        f'Text to translate:\n"{source_text}"'
    )


class ModelFallbackClient:
    """Translate through a primary backend, hopping once to a secondary on a hard error.

    An empty primary response is a failure in its own right and does not
    trigger the hop. Every outcome comes back as a ``TranslationOutcome``;
    backend exceptions never escape ``translate``.
    """

    def __init__(
        self,
        config: TranslatorConfig,
        logger: logging.Logger,
        primary: TranslationBackend | None = None,
        secondary: TranslationBackend | None = None,
    ) -> None:
        self._config = config
        self._logger = logger
        self._primary = primary
        self._secondary = secondary

    @property
    def credentials_configured(self) -> bool:
        return self._config.credentials_configured and self._primary is not None

    @property
    def backend_names(self) -> list[str]:
        return [backend.name for backend in (self._primary, self._secondary) if backend]

    async def translate(self, source_text: str, target_language: str) -> TranslationOutcome:
        if not self.credentials_configured:
            self._logger.error(
                "missing_credentials",
                extra={"event": "missing_credentials", "target_language": target_language},
            )
            return TranslationOutcome.failure(
                MISSING_CREDENTIALS_MESSAGE, FailureKind.MISSING_CREDENTIALS
            )

        primary = self._primary
        if primary is None:
            return TranslationOutcome.failure(
                MISSING_CREDENTIALS_MESSAGE, FailureKind.MISSING_CREDENTIALS
            )
        prompt = build_prompt(source_text, target_language)

        try:
            text = await primary.generate(prompt)
        except TranslationBackendError as exc:
            self._logger.warning(
                "translation_primary_failed",
                extra={
                    "event": "translation_primary_failed",
                    "backend_name": primary.name,
                    "reason": str(exc),
                    "fallback_available": self._secondary is not None,
                },
            )
            if self._secondary is None:
                return TranslationOutcome.failure(
                    str(exc), FailureKind.BACKEND_ERROR, primary.name
                )
            return await self._call_secondary(self._secondary, prompt)

        return self._accept(text, primary)

    async def _call_secondary(
        self, backend: TranslationBackend, prompt: str
    ) -> TranslationOutcome:
        try:
            text = await backend.generate(prompt)
        except TranslationBackendError as exc:
            self._logger.error(
                "translation_failed",
                extra={
                    "event": "translation_failed",
                    "backend_name": backend.name,
                    "reason": str(exc),
                },
            )
            return TranslationOutcome.failure(str(exc), FailureKind.BACKEND_ERROR, backend.name)

        return self._accept(text, backend)

    def _accept(self, text: str, backend: TranslationBackend) -> TranslationOutcome:
        if not (text or "").strip():
            self._logger.warning(
                "translation_empty_response",
                extra={"event": "translation_empty_response", "backend_name": backend.name},
            )
            return TranslationOutcome.failure(
                EMPTY_RESPONSE_MESSAGE, FailureKind.EMPTY_RESPONSE, backend.name
            )
        return TranslationOutcome.success(text.strip(), backend.name)


def build_translation_client(settings: Settings, logger: logging.Logger) -> ModelFallbackClient:
    config = TranslatorConfig.from_settings(settings)
    if settings.translation_mode == "mock":
        return ModelFallbackClient(
            config=config,
            logger=logger,
            primary=MockBackend("primary", settings.mock_translation_delay_seconds),
            secondary=MockBackend("fallback", settings.mock_translation_delay_seconds),
        )

    if not config.credentials_configured:
        return ModelFallbackClient(config=config, logger=logger)

    if settings.translation_mode == "gemini":
        return ModelFallbackClient(
            config=config,
            logger=logger,
            primary=GeminiBackend(config, config.primary_model),
            secondary=GeminiBackend(config, config.fallback_model),
        )

    raise ValueError("unsupported translation mode. Expected 'gemini' or 'mock'.")
