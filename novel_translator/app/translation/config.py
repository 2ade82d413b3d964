from __future__ import annotations

from dataclasses import dataclass

from novel_translator.app.settings import Settings


@dataclass(frozen=True)
class TranslatorConfig:
    api_key: str | None
    primary_model: str
    fallback_model: str
    api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout_seconds: float = 30.0
    temperature: float = 0.2
    requires_credentials: bool = True

    @property
    def credentials_configured(self) -> bool:
        if not self.requires_credentials:
            return True
        return bool((self.api_key or "").strip())

    @classmethod
    def from_settings(cls, settings: Settings) -> TranslatorConfig:
        return cls(
            api_key=settings.gemini_api_key,
            primary_model=settings.gemini_primary_model,
            fallback_model=settings.gemini_fallback_model,
            api_base_url=settings.gemini_api_base_url,
            timeout_seconds=settings.translation_timeout_seconds,
            temperature=settings.translation_temperature,
            requires_credentials=settings.translation_mode != "mock",
        )
