"""HTTP API routes for the Facebook Video Downloader service."""
from __future__ import annotations

import logging
from typing import Any, Final, Optional

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse

from fb_downloader.core.config import Settings, get_settings
from fb_downloader.core.errors import UrlValidationError
from fb_downloader.domain.video import ApiResponse, DownloadRequest, VideoResult
from fb_downloader.services.resolver import resolve
from fb_downloader.services.validator import SUPPORTED_FORMATS, supported_formats_message, validate

logger = logging.getLogger(__name__)

router: APIRouter = APIRouter(prefix="/api", tags=["api"])

CORS_HEADERS: Final[dict[str, str]] = {
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,OPTIONS,PATCH,DELETE,POST,PUT",
    "Access-Control-Allow-Headers": (
        "X-CSRF-Token, X-Requested-With, Accept, Accept-Version, Content-Length, "
        "Content-MD5, Content-Type, Date, X-Api-Version"
    ),
}


def envelope_response(status_code: int, envelope: ApiResponse) -> JSONResponse:
    """Serialize an ``ApiResponse`` with CORS headers attached."""

    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(mode="json", exclude_none=True),
        headers=CORS_HEADERS,
    )


def error_response(status_code: int, message: str) -> JSONResponse:
    return envelope_response(status_code, ApiResponse(success=False, error=message))


@router.options("/download")
@router.options("/info")
def options_preflight() -> Response:
    """Answer CORS preflight requests with an empty 200."""

    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/download", response_model=ApiResponse)
async def post_download(payload: Optional[DownloadRequest] = None) -> JSONResponse:
    """Resolve a Facebook video URL to downloadable renditions.

    Parameters
    ----------
    payload: Optional[DownloadRequest]
        Body ``{"url": "<facebook video url>"}``; a missing body is treated as a missing URL.

    Returns
    -------
    JSONResponse
        ``{"success": true, "data": VideoResult}`` on success.

    Notes
    -----
    - 400 when ``url`` is missing or not a supported Facebook video URL; the message
      lists the accepted URL shapes.
    - 404 when nothing could be resolved (only possible with synthetic fallback disabled).
    - 500 for unexpected failures; the full traceback is logged server-side.
    """

    url: Optional[str] = payload.url if payload is not None else None
    if not url or not url.strip():
        return error_response(400, f"A Facebook video URL is required. {supported_formats_message()}")

    if not validate(url).ok:
        return error_response(400, supported_formats_message())

    logger.info("Processing download request", extra={"url": url})
    try:
        result: Optional[VideoResult] = await resolve(url)
    except UrlValidationError as ve:
        return error_response(400, str(ve))
    except Exception as ex:  # noqa: BLE001 - surface a simple message to clients
        logger.exception("Resolution failed", extra={"url": url})
        return error_response(500, f"Resolution failed: {ex}")

    if result is None:
        return error_response(404, "No downloadable video could be found for this URL")
    return envelope_response(200, ApiResponse(success=True, data=result))


@router.api_route("/download", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
def download_method_not_allowed() -> JSONResponse:
    """Reject non-POST methods with the API's error envelope."""

    return error_response(405, "Method not allowed. Use POST.")


@router.get("/info")
def get_info() -> JSONResponse:
    """Return a static description of the service and its endpoints.

    Notes
    -----
    - No business logic; intended for discovery and uptime checks.
    """

    settings: Settings = get_settings()
    info: dict[str, Any] = {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "active",
        "endpoints": {
            "download": "/api/download",
            "info": "/api/info",
        },
        "usage": {
            "method": "POST",
            "body": {"url": "facebook_video_url"},
        },
        "supportedFormats": list(SUPPORTED_FORMATS),
    }
    return JSONResponse(content=info, headers=CORS_HEADERS)
