from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from novel_translator.app.languages import LANGUAGES, find_language

router = APIRouter(tags=["reader"])


class SelectionReleaseRequest(BaseModel):
    text: str = ""


class LanguageChangeRequest(BaseModel):
    language: str


def _panel_response(request: Request, **extra: Any) -> dict[str, Any]:
    orchestrator = request.app.state.orchestrator
    payload: dict[str, Any] = {
        "revision": orchestrator.revision,
        "phase": orchestrator.phase.value,
        "preferred_language": orchestrator.preferred_language,
        "panel": orchestrator.panel.to_dict(),
    }
    payload.update(extra)
    return payload


@router.get("/languages")
def list_languages(request: Request) -> dict[str, Any]:
    orchestrator = request.app.state.orchestrator
    return {
        "languages": [language.to_dict() for language in LANGUAGES],
        "selected": orchestrator.preferred_language,
    }


@router.post("/reader/selection")
async def release_selection(request: Request, body: SelectionReleaseRequest) -> dict[str, Any]:
    surface = request.app.state.reading_surface
    capture = request.app.state.selection_capture
    surface.report(body.text)
    selection = await capture.on_release()
    orchestrator = request.app.state.orchestrator
    current = orchestrator.current_request
    return _panel_response(
        request,
        emitted=selection is not None,
        request_id=current.request_id if selection is not None and current else None,
    )


@router.post("/reader/language")
async def change_language(request: Request, body: LanguageChangeRequest) -> dict[str, Any]:
    language = find_language(body.language)
    if language is None:
        raise HTTPException(status_code=422, detail=f"unsupported language: {body.language}")

    orchestrator = request.app.state.orchestrator
    dispatched = await orchestrator.change_language(language.name)
    return _panel_response(
        request,
        request_id=dispatched.request_id if dispatched else None,
    )


@router.post("/reader/close")
async def close_panel(request: Request) -> dict[str, Any]:
    await request.app.state.orchestrator.close()
    return _panel_response(request)


@router.get("/reader/panel")
def get_panel(request: Request) -> dict[str, Any]:
    return _panel_response(request)


@router.get("/reader/status")
def get_reader_status(request: Request) -> dict[str, Any]:
    return request.app.state.orchestrator.snapshot()


@router.get("/reader/results")
def get_recent_results(
    request: Request,
    limit: int = Query(default=10, ge=1, le=100),
) -> dict[str, Any]:
    results = request.app.state.orchestrator.recent_results(limit=limit)
    return {"results": results, "count": len(results)}
