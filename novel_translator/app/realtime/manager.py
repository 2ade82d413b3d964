from __future__ import annotations

import asyncio
import logging
from collections import defaultdict, deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

from novel_translator.app.settings import Settings
from novel_translator.app.translation.types import PanelState


@dataclass
class RealtimeMetrics:
    connected_clients: int = 0
    total_clients_seen: int = 0
    events_emitted: int = 0
    events_dropped: int = 0
    last_event_at: str | None = None
    last_error: str | None = None
    by_type: dict[str, int] = field(default_factory=dict)


@dataclass
class _ClientSession:
    client_id: int
    websocket: WebSocket
    queue: asyncio.Queue[dict[str, Any]]
    sender_task: asyncio.Task[None] | None = None


class RealtimeEventManager:
    """Fans reader events out to every connected WebSocket client.

    Each client has a bounded queue; when it is full the oldest event is
    dropped so a slow client never blocks the orchestrator.
    """

    def __init__(self, settings: Settings, logger: logging.Logger) -> None:
        self._settings = settings
        self._logger = logger
        self._metrics = RealtimeMetrics()
        self._clients: dict[int, _ClientSession] = {}
        self._recent_events: deque[dict[str, Any]] = deque(
            maxlen=max(1, settings.realtime_recent_events_limit)
        )
        self._event_type_counts: defaultdict[str, int] = defaultdict(int)
        self._client_id_counter = 0
        self._stopping = False

    async def stop(self) -> None:
        self._stopping = True
        for client_id in list(self._clients.keys()):
            await self.disconnect(client_id)
        self._metrics.connected_clients = 0

    async def connect(self, websocket: WebSocket) -> int | None:
        if not self._settings.realtime_enabled:
            await websocket.close(code=1013)
            return None

        await websocket.accept()
        self._client_id_counter += 1
        session = _ClientSession(
            client_id=self._client_id_counter,
            websocket=websocket,
            queue=asyncio.Queue(maxsize=max(1, self._settings.realtime_client_queue_maxsize)),
        )
        self._clients[session.client_id] = session
        self._metrics.connected_clients = len(self._clients)
        self._metrics.total_clients_seen += 1

        session.sender_task = asyncio.create_task(
            self._sender_loop(session),
            name=f"realtime-client-sender-{session.client_id}",
        )
        return session.client_id

    async def disconnect(self, client_id: int) -> None:
        session = self._clients.pop(client_id, None)
        self._metrics.connected_clients = len(self._clients)
        if session is None:
            return

        if session.sender_task is not None and session.sender_task is not asyncio.current_task():
            session.sender_task.cancel()
            try:
                await session.sender_task
            except asyncio.CancelledError:
                pass

        try:
            await session.websocket.close()
        except Exception:
            # Already closed by the peer.
            pass

    async def publish_panel_state(self, panel: PanelState, revision: int) -> None:
        await self.publish(
            event_type="panel.updated",
            payload={"revision": revision, "panel": panel.to_dict()},
        )

    async def publish_selection_cleared(self) -> None:
        await self.publish(event_type="selection.cleared", payload={})

    async def publish_document_loaded(self, num_pages: int) -> None:
        await self.publish(event_type="document.loaded", payload={"num_pages": num_pages})

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        if not self._settings.realtime_enabled:
            return

        event = {
            "event": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "payload": payload,
        }
        self._recent_events.append(event)
        self._event_type_counts[event_type] += 1
        self._metrics.events_emitted += 1
        self._metrics.last_event_at = event["timestamp"]
        self._metrics.by_type = dict(self._event_type_counts)

        for client in list(self._clients.values()):
            if client.queue.full():
                try:
                    client.queue.get_nowait()
                    client.queue.task_done()
                except asyncio.QueueEmpty:
                    pass
                self._metrics.events_dropped += 1
            client.queue.put_nowait(event)

    def snapshot(self) -> dict[str, Any]:
        payload = asdict(self._metrics)
        payload["realtime_enabled"] = self._settings.realtime_enabled
        payload["recent_events_count"] = len(self._recent_events)
        payload["connected_client_ids"] = list(self._clients.keys())
        return payload

    def recent_events(self, limit: int = 20) -> list[dict[str, Any]]:
        bounded = max(1, min(limit, 200))
        return list(self._recent_events)[-bounded:][::-1]

    async def _sender_loop(self, session: _ClientSession) -> None:
        while not self._stopping:
            event = await session.queue.get()
            try:
                await session.websocket.send_json(event)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._metrics.last_error = str(exc)
                self._logger.warning(
                    "realtime_client_send_failed",
                    extra={
                        "event": "realtime_client_send_failed",
                        "client_id": session.client_id,
                        "reason": str(exc),
                    },
                )
                break
            finally:
                session.queue.task_done()

        await self.disconnect(session.client_id)
