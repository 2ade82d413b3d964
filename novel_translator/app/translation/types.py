from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

FAILED_TO_TRANSLATE_MESSAGE = "Failed to translate. Please try again."
MISSING_CREDENTIALS_MESSAGE = "missing credentials"
EMPTY_RESPONSE_MESSAGE = "translation failed"


@dataclass(frozen=True)
class Selection:
    text: str


@dataclass(frozen=True)
class TranslationRequest:
    request_id: int
    source_text: str
    target_language: str
    created_at: datetime

    def to_dict(self) -> dict[str, object]:
        return {
            "request_id": self.request_id,
            "source_text": self.source_text,
            "target_language": self.target_language,
            "created_at": self.created_at.isoformat(),
        }


class FailureKind(str, Enum):
    MISSING_CREDENTIALS = "missing_credentials"
    BACKEND_ERROR = "backend_error"
    EMPTY_RESPONSE = "empty_response"


@dataclass(frozen=True)
class TranslationOutcome:
    """Either a translated ``text`` or a failure ``message`` with its ``failure_kind``."""

    text: str | None = None
    message: str | None = None
    failure_kind: FailureKind | None = None
    backend_name: str | None = None

    @classmethod
    def success(cls, text: str, backend_name: str | None = None) -> TranslationOutcome:
        return cls(text=text, backend_name=backend_name)

    @classmethod
    def failure(
        cls,
        message: str,
        kind: FailureKind,
        backend_name: str | None = None,
    ) -> TranslationOutcome:
        return cls(message=message, failure_kind=kind, backend_name=backend_name)

    @property
    def ok(self) -> bool:
        return self.failure_kind is None


@dataclass(frozen=True)
class TranslationResult:
    request_id: int
    outcome: TranslationOutcome
    completed_at: datetime
    latency_ms: float

    def to_dict(self) -> dict[str, object]:
        return {
            "request_id": self.request_id,
            "ok": self.outcome.ok,
            "text": self.outcome.text,
            "message": self.outcome.message,
            "failure_kind": self.outcome.failure_kind.value if self.outcome.failure_kind else None,
            "backend_name": self.outcome.backend_name,
            "completed_at": self.completed_at.isoformat(),
            "latency_ms": self.latency_ms,
        }


class PanelStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class PanelState:
    visible: bool = False
    source_text: str = ""
    target_language: str = ""
    status: PanelStatus = PanelStatus.IDLE
    translated_text: str = ""
    error_message: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "visible": self.visible,
            "source_text": self.source_text,
            "target_language": self.target_language,
            "status": self.status.value,
            "translated_text": self.translated_text,
            "error_message": self.error_message,
        }
