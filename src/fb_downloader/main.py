"""FastAPI application entrypoint for the Facebook Video Downloader service."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Final

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from fb_downloader.api.http import error_response, router as api_router
from fb_downloader.core.config import Settings, get_settings
from fb_downloader.core.logging_cfg import setup_logging

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Notes
    -----
    - Serves static assets from ``/static`` and a single-page HTML UI from disk
      (no server-side templating).
    - Malformed request bodies are answered with the API's 400 error envelope
      rather than FastAPI's default 422.
    - Logging is configured up front based on settings; settings are loaded once.

    Returns
    -------
    FastAPI
        The configured FastAPI application.
    """

    settings: Settings = get_settings()
    setup_logging(settings.debug)

    app: FastAPI = FastAPI(title=settings.app_name, version=settings.app_version)

    base_dir: Path = Path(__file__).parent
    ui_dir: Path = base_dir / "ui"
    templates_dir: Path = ui_dir / "templates"
    static_dir: Path = ui_dir / "static"

    app.mount("/static", StaticFiles(directory=static_dir), name="static")
    app.include_router(api_router)

    @app.exception_handler(RequestValidationError)
    async def on_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Rejected malformed request body", extra={"path": request.url.path})
        return error_response(400, "Request body must be JSON of the form {\"url\": \"<facebook video url>\"}")

    @app.get("/", tags=["ui"])
    def index() -> FileResponse:
        """Serve the UI index page.

        Notes
        -----
        - Delivers a static HTML file; the frontend calls ``POST /api/download``.
        """

        index_file: Path = templates_dir / "index.html"
        return FileResponse(index_file)

    @app.get("/health", tags=["system"])
    def health() -> dict[str, str]:
        """Health check endpoint.

        Notes
        -----
        - Lightweight liveness probe; does not perform external calls.
        """

        return {"status": "ok"}

    return app


app: Final[FastAPI] = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("fb_downloader.main:app", host="127.0.0.1", port=8000, reload=True)
