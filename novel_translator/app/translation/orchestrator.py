from __future__ import annotations

import asyncio
import itertools
import logging
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from time import monotonic
from typing import Awaitable, Callable

from novel_translator.app.translation.client import ModelFallbackClient
from novel_translator.app.translation.selection import SelectionSource
from novel_translator.app.translation.types import (
    FAILED_TO_TRANSLATE_MESSAGE,
    FailureKind,
    PanelState,
    PanelStatus,
    Selection,
    TranslationOutcome,
    TranslationRequest,
    TranslationResult,
)

PanelStateHandler = Callable[[PanelState, int], Awaitable[None]]


class ReaderPhase(str, Enum):
    CLOSED = "closed"
    LOADING = "loading"
    SHOWN = "shown"
    ERRORED = "errored"


_PHASE_BY_STATUS = {
    PanelStatus.IDLE: ReaderPhase.CLOSED,
    PanelStatus.LOADING: ReaderPhase.LOADING,
    PanelStatus.SUCCESS: ReaderPhase.SHOWN,
    PanelStatus.ERROR: ReaderPhase.ERRORED,
}


@dataclass
class OrchestratorMetrics:
    requests_dispatched: int = 0
    results_accepted: int = 0
    results_discarded: int = 0
    failures: int = 0
    closes: int = 0
    last_latency_ms: float = 0.0
    last_error: str | None = None
    last_result_at: str | None = None


class TranslationOrchestrator:
    """Owns the reader panel and decides which translation result may reach it.

    Selection, language-change and close events update the panel before the
    method awaits anything, so a pending network call can never overwrite
    them. Each dispatch gets a fresh request id; results carrying any other
    id are dropped.
    """

    def __init__(
        self,
        client: ModelFallbackClient,
        logger: logging.Logger,
        default_language: str,
        selection_source: SelectionSource | None = None,
        recent_results_limit: int = 50,
    ) -> None:
        self._client = client
        self._logger = logger
        self._preferred_language = default_language
        self._selection_source = selection_source
        self._panel = PanelState()
        self._current: TranslationRequest | None = None
        self._request_ids = itertools.count(1)
        self._revision = 0
        self._pending: set[asyncio.Task[None]] = set()
        self._handlers: list[PanelStateHandler] = []
        self._metrics = OrchestratorMetrics()
        self._recent_results: deque[TranslationResult] = deque(
            maxlen=max(1, recent_results_limit)
        )

    def register_state_handler(self, handler: PanelStateHandler) -> None:
        self._handlers.append(handler)

    @property
    def panel(self) -> PanelState:
        return self._panel

    @property
    def phase(self) -> ReaderPhase:
        return _PHASE_BY_STATUS[self._panel.status]

    @property
    def preferred_language(self) -> str:
        return self._preferred_language

    @property
    def current_request(self) -> TranslationRequest | None:
        return self._current

    @property
    def revision(self) -> int:
        return self._revision

    async def handle_selection(self, selection: Selection) -> TranslationRequest | None:
        if not selection.text.strip():
            return None
        request = self._dispatch(selection.text, self._preferred_language)
        await self._notify()
        return request

    async def change_language(self, language: str) -> TranslationRequest | None:
        self._preferred_language = language
        if self.phase is ReaderPhase.CLOSED:
            self._logger.debug(
                "language_changed_while_closed",
                extra={"event": "language_changed", "target_language": language},
            )
            return None

        request = self._dispatch(self._panel.source_text, language)
        await self._notify()
        return request

    async def close(self) -> None:
        if self.phase is ReaderPhase.CLOSED:
            return

        superseded = self._current
        self._current = None
        self._set_panel(PanelState())
        self._metrics.closes += 1
        self._logger.info(
            "panel_closed",
            extra={
                "event": "panel_closed",
                "superseded_request_id": superseded.request_id if superseded else None,
            },
        )
        if self._selection_source is not None:
            await self._selection_source.clear_selection()
        await self._notify()

    async def wait_for_pending(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def stop(self) -> None:
        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()

    def snapshot(self) -> dict[str, object]:
        payload = asdict(self._metrics)
        payload["phase"] = self.phase.value
        payload["revision"] = self._revision
        payload["preferred_language"] = self._preferred_language
        payload["current_request_id"] = self._current.request_id if self._current else None
        payload["pending_requests"] = len(self._pending)
        payload["backends"] = self._client.backend_names
        payload["credentials_configured"] = self._client.credentials_configured
        return payload

    def recent_results(self, limit: int = 10) -> list[dict[str, object]]:
        bounded = max(1, min(limit, 100))
        return [item.to_dict() for item in list(self._recent_results)[-bounded:]][::-1]

    def _dispatch(self, source_text: str, language: str) -> TranslationRequest:
        request = TranslationRequest(
            request_id=next(self._request_ids),
            source_text=source_text,
            target_language=language,
            created_at=datetime.now(timezone.utc),
        )
        self._current = request
        self._set_panel(
            PanelState(
                visible=True,
                source_text=source_text,
                target_language=language,
                status=PanelStatus.LOADING,
            )
        )
        self._metrics.requests_dispatched += 1

        task = asyncio.create_task(
            self._run(request), name=f"translation-request-{request.request_id}"
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        self._logger.info(
            "translation_dispatched",
            extra={
                "event": "translation_dispatched",
                "request_id": request.request_id,
                "target_language": language,
                "source_length": len(source_text),
            },
        )
        return request

    async def _run(self, request: TranslationRequest) -> None:
        started = monotonic()
        try:
            outcome = await self._client.translate(request.source_text, request.target_language)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._logger.error(
                "translation_unexpected_error",
                extra={
                    "event": "translation_unexpected_error",
                    "request_id": request.request_id,
                    "reason": str(exc),
                },
            )
            outcome = TranslationOutcome.failure(
                FAILED_TO_TRANSLATE_MESSAGE, FailureKind.BACKEND_ERROR
            )

        result = TranslationResult(
            request_id=request.request_id,
            outcome=outcome,
            completed_at=datetime.now(timezone.utc),
            latency_ms=round((monotonic() - started) * 1000.0, 3),
        )
        await self._accept(result)

    async def _accept(self, result: TranslationResult) -> None:
        self._recent_results.append(result)
        current = self._current
        if current is None or result.request_id != current.request_id:
            self._metrics.results_discarded += 1
            self._logger.debug(
                "translation_result_discarded",
                extra={
                    "event": "translation_result_discarded",
                    "request_id": result.request_id,
                    "current_request_id": current.request_id if current else None,
                },
            )
            return

        outcome = result.outcome
        self._metrics.results_accepted += 1
        self._metrics.last_latency_ms = result.latency_ms
        self._metrics.last_result_at = result.completed_at.isoformat()

        if outcome.ok:
            self._set_panel(
                PanelState(
                    visible=True,
                    source_text=current.source_text,
                    target_language=current.target_language,
                    status=PanelStatus.SUCCESS,
                    translated_text=outcome.text or "",
                )
            )
            self._logger.info(
                "translation_completed",
                extra={
                    "event": "translation_completed",
                    "request_id": result.request_id,
                    "backend_name": outcome.backend_name,
                    "latency_ms": result.latency_ms,
                },
            )
        else:
            message = outcome.message or FAILED_TO_TRANSLATE_MESSAGE
            self._metrics.failures += 1
            self._metrics.last_error = message
            self._set_panel(
                PanelState(
                    visible=True,
                    source_text=current.source_text,
                    target_language=current.target_language,
                    status=PanelStatus.ERROR,
                    error_message=message,
                )
            )
            self._logger.warning(
                "translation_failed",
                extra={
                    "event": "translation_failed",
                    "request_id": result.request_id,
                    "failure_kind": outcome.failure_kind.value if outcome.failure_kind else None,
                    "reason": message,
                },
            )

        await self._notify()

    def _set_panel(self, panel: PanelState) -> None:
        self._panel = panel
        self._revision += 1

    async def _notify(self) -> None:
        panel = self._panel
        revision = self._revision
        for handler in self._handlers:
            try:
                await handler(panel, revision)
            except Exception as exc:  # pragma: no cover - safety net
                self._logger.error(
                    "panel_state_handler_error",
                    extra={
                        "event": "panel_state_handler_error",
                        "reason": str(exc),
                        "revision": revision,
                    },
                )
