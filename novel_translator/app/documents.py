from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable

import fitz  # PyMuPDF

ACCEPTED_MIME_TYPE = "application/pdf"
UNSUPPORTED_FILE_MESSAGE = "Please upload a valid PDF file."

MIN_ZOOM = 0.5
MAX_ZOOM = 2.0
ZOOM_STEP = 0.1


class DocumentError(Exception):
    """Base class for document upload and navigation failures."""


class UnsupportedFileError(DocumentError):
    def __init__(self, content_type: str | None) -> None:
        super().__init__(UNSUPPORTED_FILE_MESSAGE)
        self.content_type = content_type


class DocumentTooLargeError(DocumentError):
    pass


class UnreadableDocumentError(DocumentError):
    pass


def validate_upload(content_type: str | None) -> None:
    normalized = (content_type or "").split(";", 1)[0].strip().lower()
    if normalized != ACCEPTED_MIME_TYPE:
        raise UnsupportedFileError(content_type)


def clamp_page(page: int, num_pages: int) -> int:
    return max(1, min(page, max(1, num_pages)))


def clamp_zoom(factor: float) -> float:
    stepped = round(round(factor / ZOOM_STEP) * ZOOM_STEP, 1)
    return max(MIN_ZOOM, min(stepped, MAX_ZOOM))


@dataclass(frozen=True)
class LoadedDocument:
    filename: str
    num_pages: int
    size_bytes: int
    loaded_at: datetime
    page_texts: tuple[str, ...]


class DocumentSession:
    """The single open document plus the reader's page and zoom position."""

    def __init__(self, logger: logging.Logger, max_bytes: int) -> None:
        self._logger = logger
        self._max_bytes = max_bytes
        self._document: LoadedDocument | None = None
        self._current_page = 1
        self._zoom = 1.0
        self._loaded_handlers: list[Callable[[int], Awaitable[None]]] = []

    def register_loaded_handler(self, handler: Callable[[int], Awaitable[None]]) -> None:
        self._loaded_handlers.append(handler)

    @property
    def document(self) -> LoadedDocument | None:
        return self._document

    @property
    def num_pages(self) -> int:
        return self._document.num_pages if self._document else 0

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def zoom(self) -> float:
        return self._zoom

    async def load(self, filename: str, content_type: str | None, data: bytes) -> LoadedDocument:
        try:
            validate_upload(content_type)
        except UnsupportedFileError:
            self._logger.warning(
                "document_rejected",
                extra={
                    "event": "document_rejected",
                    "document_name": filename,
                    "content_type": content_type,
                },
            )
            raise

        if len(data) > self._max_bytes:
            raise DocumentTooLargeError(
                f"document exceeds the {self._max_bytes} byte upload limit"
            )

        try:
            with fitz.open(stream=data, filetype="pdf") as pdf:
                page_texts = tuple(page.get_text("text") for page in pdf)
        except (RuntimeError, ValueError) as exc:
            raise UnreadableDocumentError(f"Failed to load PDF: {exc}") from exc
        if not page_texts:
            raise UnreadableDocumentError("Failed to load PDF: document has no pages")

        document = LoadedDocument(
            filename=filename,
            num_pages=len(page_texts),
            size_bytes=len(data),
            loaded_at=datetime.now(timezone.utc),
            page_texts=page_texts,
        )
        self._document = document
        self._current_page = 1
        self._logger.info(
            "document_loaded",
            extra={
                "event": "document_loaded",
                "document_name": filename,
                "num_pages": document.num_pages,
                "size_bytes": document.size_bytes,
            },
        )
        for handler in self._loaded_handlers:
            await handler(document.num_pages)
        return document

    def reset(self) -> None:
        self._document = None
        self._current_page = 1

    def set_current_page(self, page: int) -> int:
        self._current_page = clamp_page(page, self.num_pages)
        return self._current_page

    def change_page(self, offset: int) -> int:
        return self.set_current_page(self._current_page + offset)

    def set_zoom(self, factor: float) -> float:
        self._zoom = clamp_zoom(factor)
        return self._zoom

    def zoom_in(self) -> float:
        return self.set_zoom(self._zoom + ZOOM_STEP)

    def zoom_out(self) -> float:
        return self.set_zoom(self._zoom - ZOOM_STEP)

    def page_text(self, page: int) -> str:
        if self._document is None or not 1 <= page <= self._document.num_pages:
            raise IndexError(page)
        return self._document.page_texts[page - 1]

    def snapshot(self) -> dict[str, object]:
        document = self._document
        return {
            "loaded": document is not None,
            "filename": document.filename if document else None,
            "num_pages": self.num_pages,
            "size_bytes": document.size_bytes if document else 0,
            "loaded_at": document.loaded_at.isoformat() if document else None,
            "current_page": self._current_page,
            "zoom": self._zoom,
        }
