from __future__ import annotations

import logging
from typing import Awaitable, Callable, Protocol

from novel_translator.app.translation.types import Selection


class SelectionSource(Protocol):
    def read_selection(self) -> str: ...

    async def clear_selection(self) -> None: ...


class ReadingSurface:
    """Server-side mirror of the browser's native text selection.

    The front end reports the raw selection string on every release gesture;
    clearing notifies listeners so the browser can drop its highlight.
    """

    def __init__(self) -> None:
        self._current_text = ""
        self._clear_count = 0
        self._clear_handlers: list[Callable[[], Awaitable[None]]] = []

    def register_clear_handler(self, handler: Callable[[], Awaitable[None]]) -> None:
        self._clear_handlers.append(handler)

    def report(self, text: str) -> None:
        self._current_text = text

    def read_selection(self) -> str:
        return self._current_text

    async def clear_selection(self) -> None:
        self._current_text = ""
        self._clear_count += 1
        for handler in self._clear_handlers:
            await handler()

    @property
    def clear_count(self) -> int:
        return self._clear_count


class SelectionCapture:
    def __init__(
        self,
        source: SelectionSource,
        handler: Callable[[Selection], Awaitable[object]],
        logger: logging.Logger,
    ) -> None:
        self._source = source
        self._handler = handler
        self._logger = logger
        self._last_text = ""

    @property
    def last_text(self) -> str:
        return self._last_text

    async def on_release(self) -> Selection | None:
        text = self._source.read_selection() or ""
        if not text.strip():
            return None

        self._last_text = text
        selection = Selection(text=text)
        self._logger.debug(
            "selection_captured",
            extra={"event": "selection_captured", "length": len(text)},
        )
        await self._handler(selection)
        return selection
