from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def load_env_file(env_path: Path) -> None:
    if not env_path.exists():
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[len("export ") :]

        key, separator, value = line.partition("=")
        if not separator:
            continue

        env_key = key.strip()
        if not env_key:
            continue

        os.environ.setdefault(env_key, _strip_quotes(value.strip()))


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_mode(
    key: str,
    default: str,
    allowed: tuple[str, ...],
) -> str:
    value = os.getenv(key, default).strip().lower()
    if value not in allowed:
        allowed_csv = ", ".join(allowed)
        raise ValueError(f"{key} must be one of: {allowed_csv}")
    return value


def _env_optional(key: str) -> str | None:
    value = os.getenv(key)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class Settings:
    service_name: str
    service_version: str
    environment: str
    log_level: str
    host: str
    port: int
    translation_mode: str
    gemini_api_key: str | None
    gemini_api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_primary_model: str = "gemini-3-flash-preview"
    gemini_fallback_model: str = "gemini-2.0-flash-exp"
    translation_timeout_seconds: float = 30.0
    translation_temperature: float = 0.2
    default_target_language: str = "চলমান বাংলা ভাষার"
    mock_translation_delay_seconds: float = 0.0
    document_max_bytes: int = 50 * 1024 * 1024
    realtime_enabled: bool = True
    realtime_client_queue_maxsize: int = 128
    realtime_recent_events_limit: int = 200

    @property
    def gemini_key_configured(self) -> bool:
        return bool(self.gemini_api_key)

    def redacted(self) -> dict[str, str | int | float | bool | None]:
        return {
            "service_name": self.service_name,
            "service_version": self.service_version,
            "environment": self.environment,
            "log_level": self.log_level,
            "host": self.host,
            "port": self.port,
            "translation_mode": self.translation_mode,
            "gemini_key_configured": self.gemini_key_configured,
            "gemini_api_base_url": self.gemini_api_base_url,
            "gemini_primary_model": self.gemini_primary_model,
            "gemini_fallback_model": self.gemini_fallback_model,
            "translation_timeout_seconds": self.translation_timeout_seconds,
            "translation_temperature": self.translation_temperature,
            "default_target_language": self.default_target_language,
            "mock_translation_delay_seconds": self.mock_translation_delay_seconds,
            "document_max_bytes": self.document_max_bytes,
            "realtime_enabled": self.realtime_enabled,
            "realtime_client_queue_maxsize": self.realtime_client_queue_maxsize,
            "realtime_recent_events_limit": self.realtime_recent_events_limit,
        }


def build_settings(project_root: Path) -> Settings:
    load_env_file(project_root / ".env")

    return Settings(
        service_name=os.getenv("READER_SERVICE_NAME", "novel-translator"),
        service_version=os.getenv("READER_SERVICE_VERSION", "0.1.0"),
        environment=os.getenv("READER_ENV", "development"),
        log_level=os.getenv("READER_LOG_LEVEL", "INFO").upper(),
        host=os.getenv("READER_HOST", "127.0.0.1"),
        port=int(os.getenv("READER_PORT", "8000")),
        translation_mode=_env_mode("TRANSLATION_MODE", "gemini", ("gemini", "mock")),
        gemini_api_key=_env_optional("GEMINI_API_KEY"),
        gemini_api_base_url=os.getenv(
            "GEMINI_API_BASE_URL",
            "https://generativelanguage.googleapis.com/v1beta",
        ).rstrip("/"),
        gemini_primary_model=os.getenv("GEMINI_PRIMARY_MODEL", "gemini-3-flash-preview"),
        gemini_fallback_model=os.getenv("GEMINI_FALLBACK_MODEL", "gemini-2.0-flash-exp"),
        translation_timeout_seconds=float(os.getenv("TRANSLATION_TIMEOUT_SECONDS", "30.0")),
        translation_temperature=float(os.getenv("TRANSLATION_TEMPERATURE", "0.2")),
        default_target_language=os.getenv("DEFAULT_TARGET_LANGUAGE", "চলমান বাংলা ভাষার"),
        mock_translation_delay_seconds=float(
            os.getenv("MOCK_TRANSLATION_DELAY_SECONDS", "0.0")
        ),
        document_max_bytes=int(os.getenv("DOCUMENT_MAX_BYTES", str(50 * 1024 * 1024))),
        realtime_enabled=_env_bool("REALTIME_ENABLED", True),
        realtime_client_queue_maxsize=int(
            os.getenv("REALTIME_CLIENT_QUEUE_MAXSIZE", "128")
        ),
        realtime_recent_events_limit=int(os.getenv("REALTIME_RECENT_EVENTS_LIMIT", "200")),
    )
