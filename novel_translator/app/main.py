from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from novel_translator.app.documents import DocumentSession
from novel_translator.app.logging_config import configure_logging
from novel_translator.app.realtime.manager import RealtimeEventManager
from novel_translator.app.routes.documents import router as documents_router
from novel_translator.app.routes.health import router as health_router
from novel_translator.app.routes.reader import router as reader_router
from novel_translator.app.routes.realtime import router as realtime_router
from novel_translator.app.settings import build_settings
from novel_translator.app.translation.client import build_translation_client
from novel_translator.app.translation.orchestrator import TranslationOrchestrator
from novel_translator.app.translation.selection import ReadingSurface, SelectionCapture


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _service_logger() -> logging.Logger:
    return logging.getLogger("novel_translator.reader")


def create_app() -> FastAPI:
    settings = build_settings(_project_root())
    configure_logging(settings.log_level)
    logger = _service_logger()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings
        app.state.started_at = datetime.now(timezone.utc)
        app.state.realtime_manager = RealtimeEventManager(settings=settings, logger=logger)

        app.state.document_session = DocumentSession(
            logger=logger, max_bytes=settings.document_max_bytes
        )
        app.state.document_session.register_loaded_handler(
            app.state.realtime_manager.publish_document_loaded
        )

        app.state.reading_surface = ReadingSurface()
        app.state.reading_surface.register_clear_handler(
            app.state.realtime_manager.publish_selection_cleared
        )

        app.state.orchestrator = TranslationOrchestrator(
            client=build_translation_client(settings, logger),
            logger=logger,
            default_language=settings.default_target_language,
            selection_source=app.state.reading_surface,
        )
        app.state.orchestrator.register_state_handler(
            app.state.realtime_manager.publish_panel_state
        )

        app.state.selection_capture = SelectionCapture(
            source=app.state.reading_surface,
            handler=app.state.orchestrator.handle_selection,
            logger=logger,
        )

        logger.info(
            "service_startup",
            extra={
                "event": "startup",
                "service_name": settings.service_name,
                "service_version": settings.service_version,
            },
        )
        logger.info(
            "service_config_loaded",
            extra={
                "event": "config_loaded",
                "service_name": settings.service_name,
                "service_version": settings.service_version,
                "config": settings.redacted(),
            },
        )
        yield
        await app.state.orchestrator.stop()
        await app.state.realtime_manager.stop()
        logger.info(
            "service_shutdown",
            extra={
                "event": "shutdown",
                "service_name": settings.service_name,
                "service_version": settings.service_version,
            },
        )

    app = FastAPI(
        title=settings.service_name,
        version=settings.service_version,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root() -> dict[str, str]:
        return {"message": "Novel translator reader backend is running."}

    app.include_router(health_router)
    app.include_router(documents_router)
    app.include_router(reader_router)
    app.include_router(realtime_router)
    return app


app = create_app()
