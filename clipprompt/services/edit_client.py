import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from clipprompt.config import settings
from clipprompt.models.schemas import (
    AIEditRequest,
    EditPlan,
    VideoProcessRequest,
    VideoProcessResponse,
)

logger = logging.getLogger(__name__)

AI_EDIT_PATH = "/video/aiEdit"
PROCESS_EDITS_PATH = "/video/processEdits"


class EditServiceError(RuntimeError):
    """Raised when a call to the external edit service does not succeed."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TransportError(EditServiceError):
    """Network failure or non-2xx response."""


class UpstreamError(EditServiceError):
    """The service answered with ``status: "error"``."""


_http_client: Optional[httpx.AsyncClient] = None


def _default_headers() -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if settings.edit_service_api_key:
        headers["Authorization"] = f"Bearer {settings.edit_service_api_key}"
    return headers


def create_http_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.edit_service_base_url,
        headers=_default_headers(),
        timeout=httpx.Timeout(settings.edit_service_timeout_seconds),
        transport=transport,
    )


def get_http_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = create_http_client()
    return _http_client


def set_http_client(client: Optional[httpx.AsyncClient]) -> None:
    global _http_client
    _http_client = client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
    _http_client = None


async def _post_json(path: str, payload: Dict[str, Any], request_id: Optional[str]) -> Dict[str, Any]:
    client = get_http_client()
    headers = {"X-Request-ID": request_id} if request_id else None
    try:
        response = await client.post(path, json=payload, headers=headers)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as exc:
        logger.error("Edit service %s returned HTTP %s", path, exc.response.status_code)
        raise TransportError(f"HTTP error {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        logger.error("Edit service %s request failed: %s", path, exc)
        raise TransportError(str(exc) or exc.__class__.__name__) from exc
    except ValueError as exc:
        logger.error("Edit service %s returned a non-JSON body", path)
        raise TransportError("Invalid JSON in edit service response") from exc


async def request_ai_edit(request: AIEditRequest, request_id: Optional[str] = None) -> EditPlan:
    """Return the edit plan exactly as decoded from the AI service.

    Only the `status` discriminator is checked; the plan itself is never validated.
    """
    body = await _post_json(AI_EDIT_PATH, request.to_wire(), request_id)
    if not isinstance(body, dict):
        raise UpstreamError("AI processing failed")

    edit_plan = body.get("editPlan")
    if body.get("status") != "success" or not isinstance(edit_plan, dict):
        raise UpstreamError(body.get("message") or "AI processing failed")
    return edit_plan


async def process_video_edit(request: VideoProcessRequest, request_id: Optional[str] = None) -> str:
    payload = {"videoFileUrl": request.video_file_url, "editPlan": request.edit_plan}
    body = await _post_json(PROCESS_EDITS_PATH, payload, request_id)
    try:
        process_response = VideoProcessResponse.model_validate(body)
    except ValidationError as exc:
        raise UpstreamError("Video processing failed") from exc

    if process_response.status == "error" or not process_response.edited_video_url:
        raise UpstreamError(process_response.message or "Video processing failed")
    return process_response.edited_video_url
