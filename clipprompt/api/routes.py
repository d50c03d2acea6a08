import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from clipprompt.api.dependencies import get_session
from clipprompt.config import settings
from clipprompt.models.schemas import (
    EditPromptRequest,
    EditRequest,
    EditStatusResponse,
    LoginRequest,
    PromptHistoryEntry,
    SessionResponse,
    Video,
    VideoCreateRequest,
)
from clipprompt.services import edit_service, session_service, video_repository
from clipprompt.services.edit_service import (
    EditInProgressError,
    EditOutcome,
    EditRequestNotFoundError,
    InvalidPromptError,
)
from clipprompt.services.session_service import SessionData
from clipprompt.services.video_repository import VideoNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _owned_video(video_id: str, session: SessionData) -> Video:
    try:
        return video_repository.get_owned_video(video_id, session.user.id)
    except VideoNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _owned_edit(edit_id: str, session: SessionData) -> EditRequest:
    try:
        edit_request = edit_service.get_edit_request(edit_id)
    except EditRequestNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if edit_request.user_id != session.user.id:
        raise HTTPException(status_code=404, detail=f"Edit request {edit_id} not found")
    return edit_request


def _status_response(outcome: EditOutcome) -> EditStatusResponse:
    return EditStatusResponse(
        edit_request=outcome.edit_request.model_copy(),
        label=edit_service.status_label(outcome.edit_request.status),
        detail=outcome.message,
        processed_video_url=outcome.processed_video_url,
    )


@router.get("/health")
async def health_check():
    return {"status": "ok"}


@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def login(payload: LoginRequest):
    if not payload.email.strip():
        raise HTTPException(status_code=400, detail="Email cannot be empty.")
    token, session = session_service.create_session(payload.name, payload.email)
    return SessionResponse(token=token, user=session.user, expires_at=session.expires_at)


@router.delete("/sessions", status_code=204)
async def logout(session: SessionData = Depends(get_session)):
    session_service.revoke_session(session.session_id)
    return Response(status_code=204)


@router.post("/videos", response_model=Video, status_code=201)
async def create_video(payload: VideoCreateRequest, session: SessionData = Depends(get_session)):
    if not payload.original_video_file.strip():
        raise HTTPException(status_code=400, detail="Video file reference cannot be empty.")
    title = payload.video_title.strip() or "Untitled video"
    return video_repository.register_video(
        session.user.id,
        payload.original_video_file.strip(),
        title,
        payload.video_description,
    )


@router.get("/videos", response_model=List[Video])
async def list_videos(session: SessionData = Depends(get_session)):
    return video_repository.get_video_repository().list_by_owner(session.user.id)


@router.get("/videos/{video_id}", response_model=Video)
async def get_video(video_id: str, session: SessionData = Depends(get_session)):
    return _owned_video(video_id, session)


@router.post("/videos/{video_id}/edits", response_model=EditStatusResponse, status_code=202)
async def submit_edit(
    video_id: str,
    payload: EditPromptRequest,
    response: Response,
    wait: bool = False,
    session: SessionData = Depends(get_session),
):
    video = _owned_video(video_id, session)

    prompt = (payload.prompt or "").strip()
    if len(prompt) > settings.prompt_char_limit:
        raise HTTPException(
            status_code=400,
            detail=f"Prompt too long. Maximum {settings.prompt_char_limit} characters.",
        )

    try:
        edit_request = edit_service.start_edit_request(video, session.user.id, prompt)
    except InvalidPromptError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except EditInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    if wait:
        response.status_code = 200
        return _status_response(await edit_service.wait_for_edit_request(edit_request.id))
    return _status_response(edit_service.get_edit_outcome(edit_request.id))


@router.get("/videos/{video_id}/edits", response_model=List[EditRequest])
async def list_edits(video_id: str, session: SessionData = Depends(get_session)):
    _owned_video(video_id, session)
    return edit_service.list_edit_requests(video_id)


@router.get("/videos/{video_id}/history", response_model=List[PromptHistoryEntry])
async def get_history(video_id: str, session: SessionData = Depends(get_session)):
    _owned_video(video_id, session)
    return edit_service.get_prompt_history(video_id)


@router.delete("/videos/{video_id}/history", status_code=204)
async def clear_history(video_id: str, session: SessionData = Depends(get_session)):
    _owned_video(video_id, session)
    edit_service.clear_prompt_history(video_id)
    return Response(status_code=204)


@router.get("/edits/{edit_id}", response_model=EditStatusResponse)
async def get_edit_status(edit_id: str, session: SessionData = Depends(get_session)):
    _owned_edit(edit_id, session)
    return _status_response(edit_service.get_edit_outcome(edit_id))


@router.post("/edits/{edit_id}/cancel", response_model=EditStatusResponse)
async def cancel_edit(edit_id: str, session: SessionData = Depends(get_session)):
    _owned_edit(edit_id, session)
    if edit_service.cancel_edit_request(edit_id):
        return _status_response(await edit_service.wait_for_edit_request(edit_id))
    return _status_response(edit_service.get_edit_outcome(edit_id))
