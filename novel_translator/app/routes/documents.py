from __future__ import annotations

from typing import Any

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from novel_translator.app.documents import (
    DocumentTooLargeError,
    UnreadableDocumentError,
    UnsupportedFileError,
)

router = APIRouter(prefix="/documents", tags=["documents"])


class PageRequest(BaseModel):
    page: int | None = None
    offset: int | None = None


class ZoomRequest(BaseModel):
    factor: float | None = None
    step: int | None = None


@router.post("")
async def upload_document(request: Request, file: UploadFile = File(...)) -> dict[str, Any]:
    session = request.app.state.document_session
    data = await file.read()
    try:
        await session.load(file.filename or "document.pdf", file.content_type, data)
    except UnsupportedFileError as exc:
        raise HTTPException(status_code=415, detail=str(exc)) from exc
    except DocumentTooLargeError as exc:
        raise HTTPException(status_code=413, detail=str(exc)) from exc
    except UnreadableDocumentError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return session.snapshot()


@router.get("/current")
def get_current_document(request: Request) -> dict[str, Any]:
    return request.app.state.document_session.snapshot()


@router.delete("/current")
def reset_document(request: Request) -> dict[str, Any]:
    session = request.app.state.document_session
    session.reset()
    return session.snapshot()


@router.get("/current/pages/{page}")
def get_page_text(request: Request, page: int) -> dict[str, Any]:
    session = request.app.state.document_session
    try:
        text = session.page_text(page)
    except IndexError as exc:
        raise HTTPException(status_code=404, detail=f"page {page} not found") from exc
    return {"page": page, "num_pages": session.num_pages, "text": text}


@router.post("/current/page")
def set_page(request: Request, body: PageRequest) -> dict[str, Any]:
    session = request.app.state.document_session
    if session.document is None:
        raise HTTPException(status_code=409, detail="no document loaded")
    if body.page is not None:
        session.set_current_page(body.page)
    elif body.offset is not None:
        session.change_page(body.offset)
    else:
        raise HTTPException(status_code=422, detail="page or offset is required")
    return session.snapshot()


@router.post("/current/zoom")
def set_zoom(request: Request, body: ZoomRequest) -> dict[str, Any]:
    session = request.app.state.document_session
    if body.factor is not None:
        session.set_zoom(body.factor)
    elif body.step is not None and body.step > 0:
        session.zoom_in()
    elif body.step is not None and body.step < 0:
        session.zoom_out()
    else:
        raise HTTPException(status_code=422, detail="factor or a non-zero step is required")
    return session.snapshot()
