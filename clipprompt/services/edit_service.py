import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Set

from clipprompt.config import settings
from clipprompt.models.schemas import (
    STATUS_MESSAGES,
    AIEditRequest,
    EditRequest,
    EditRequestStatus,
    PromptHistoryEntry,
    Video,
    VideoProcessRequest,
    VideoStatus,
)
from clipprompt.services import edit_client
from clipprompt.services.edit_client import EditServiceError
from clipprompt.services.video_repository import get_video_repository

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Edit request cancelled"
TIMED_OUT_MESSAGE = "Edit request timed out"


class EditRequestNotFoundError(RuntimeError):
    pass


class InvalidPromptError(ValueError):
    pass


class EditInProgressError(RuntimeError):
    pass


class InvalidStatusTransition(RuntimeError):
    pass


@dataclass
class EditOutcome:
    edit_request: EditRequest
    processed_video_url: Optional[str] = None
    message: Optional[str] = None


_EDIT_STORE: Dict[str, EditRequest] = {}
_OUTCOMES: Dict[str, EditOutcome] = {}
_RUNNING_TASKS: Dict[str, asyncio.Task] = {}
_IN_FLIGHT_BY_VIDEO: Dict[str, Set[str]] = {}
_PROMPT_HISTORY: Dict[str, List[PromptHistoryEntry]] = {}


def _generate_edit_id() -> str:
    return f"edit_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def _transition(edit_request: EditRequest, status: EditRequestStatus) -> None:
    if edit_request.status.is_terminal:
        raise InvalidStatusTransition(
            f"Edit request {edit_request.id} is already {edit_request.status.value}"
        )
    edit_request.status = status


def submit_edit_request(video_id: str, user_id: str, prompt_text: str) -> EditRequest:
    prompt = (prompt_text or "").strip()
    if not prompt:
        raise InvalidPromptError("Prompt cannot be empty.")

    in_flight = _IN_FLIGHT_BY_VIDEO.setdefault(video_id, set())
    if in_flight and not settings.allow_concurrent_edits:
        raise EditInProgressError(f"Video {video_id} already has an edit in progress")

    edit_request = EditRequest(
        id=_generate_edit_id(),
        video_id=video_id,
        user_id=user_id,
        prompt_text=prompt,
        created_date=datetime.now(timezone.utc),
        status=EditRequestStatus.IN_PROGRESS,
    )
    _EDIT_STORE[edit_request.id] = edit_request
    in_flight.add(edit_request.id)
    logger.info("Submitted edit request %s for video %s", edit_request.id, video_id)
    return edit_request


def _release(edit_request: EditRequest) -> None:
    in_flight = _IN_FLIGHT_BY_VIDEO.get(edit_request.video_id)
    if in_flight is not None:
        in_flight.discard(edit_request.id)


def _fail(edit_request: EditRequest, message: str) -> EditOutcome:
    if not edit_request.status.is_terminal:
        _transition(edit_request, EditRequestStatus.ERROR)
    logger.error("Edit request %s failed: %s", edit_request.id, message)
    outcome = EditOutcome(edit_request=edit_request, message=message)
    _OUTCOMES[edit_request.id] = outcome
    return outcome


async def _execute(
    edit_request: EditRequest,
    video_uri: str,
    conversation_history: Optional[Sequence[PromptHistoryEntry]],
) -> str:
    plan = await edit_client.request_ai_edit(
        AIEditRequest(
            prompt=edit_request.prompt_text,
            video_id=edit_request.video_id,
            conversation_history=list(conversation_history) if conversation_history else None,
        ),
        request_id=edit_request.id,
    )
    edit_request.response_json = json.dumps(plan)
    logger.info(
        "Edit request %s received a plan with %d effects", edit_request.id, len(plan.get("effects") or [])
    )

    return await edit_client.process_video_edit(
        VideoProcessRequest(video_file_url=video_uri, edit_plan=plan),
        request_id=edit_request.id,
    )


async def run_edit_request(
    edit_request: EditRequest,
    video_uri: str,
    conversation_history: Optional[Sequence[PromptHistoryEntry]] = None,
    timeout: Optional[float] = None,
) -> EditOutcome:
    """Drive an ``In Progress`` request to ``Completed`` or ``Error``.

    The plan request always resolves before processing starts. Failures from
    either call end in ``Error``; the message only lives on the returned outcome.
    """
    if edit_request.status.is_terminal:
        raise InvalidStatusTransition(f"Edit request {edit_request.id} has already finished")

    timeout = settings.edit_workflow_timeout_seconds if timeout is None else timeout
    try:
        processed_video_url = await asyncio.wait_for(
            _execute(edit_request, video_uri, conversation_history), timeout
        )
    except EditServiceError as exc:
        return _fail(edit_request, exc.message)
    except asyncio.TimeoutError:
        return _fail(edit_request, TIMED_OUT_MESSAGE)
    except asyncio.CancelledError:
        _fail(edit_request, CANCELLED_MESSAGE)
        raise
    finally:
        _release(edit_request)

    _transition(edit_request, EditRequestStatus.COMPLETED)
    logger.info("Edit request %s completed: %s", edit_request.id, processed_video_url)
    outcome = EditOutcome(edit_request=edit_request, processed_video_url=processed_video_url)
    _OUTCOMES[edit_request.id] = outcome
    return outcome


async def handle_edit_request(
    video_id: str,
    user_id: str,
    prompt_text: str,
    video_uri: str,
    conversation_history: Optional[Sequence[PromptHistoryEntry]] = None,
) -> EditOutcome:
    edit_request = submit_edit_request(video_id, user_id, prompt_text)
    return await run_edit_request(edit_request, video_uri, conversation_history)


def _settle_video(video: Video, outcome: Optional[EditOutcome]) -> None:
    repository = get_video_repository()
    if outcome is not None and outcome.processed_video_url:
        video.edited_video_file = outcome.processed_video_url
    if _IN_FLIGHT_BY_VIDEO.get(video.id):
        video.status = VideoStatus.PROCESSING
    else:
        video.status = VideoStatus.READY if video.edited_video_file else VideoStatus.UPLOADED
    repository.update(video)


async def _run_in_background(
    edit_request: EditRequest,
    video: Video,
    conversation_history: List[PromptHistoryEntry],
) -> None:
    outcome = None
    try:
        outcome = await run_edit_request(edit_request, video.original_video_file, conversation_history)
    except asyncio.CancelledError:
        logger.info("Edit request %s was cancelled", edit_request.id)
        raise
    except Exception:
        logger.exception("Unexpected failure while running edit request %s", edit_request.id)
        _fail(edit_request, "Unexpected error while processing the edit")
    finally:
        _settle_video(video, outcome)


def _on_task_done(task: asyncio.Task, edit_request: EditRequest, video: Video) -> None:
    _RUNNING_TASKS.pop(edit_request.id, None)
    # A task cancelled before its first step never reaches run_edit_request.
    if task.cancelled() and not edit_request.status.is_terminal:
        _release(edit_request)
        _fail(edit_request, CANCELLED_MESSAGE)
        _settle_video(video, None)


def start_edit_request(video: Video, user_id: str, prompt_text: str) -> EditRequest:
    """Submit a prompt for ``video`` and run the workflow as a background task.

    Must be called from inside a running event loop.
    """
    history = get_prompt_history(video.id)
    edit_request = submit_edit_request(video.id, user_id, prompt_text)
    record_prompt(video.id, edit_request.prompt_text)

    video.status = VideoStatus.PROCESSING
    get_video_repository().update(video)

    task = asyncio.get_running_loop().create_task(
        _run_in_background(edit_request, video, history),
        name=f"edit-request-{edit_request.id}",
    )
    _RUNNING_TASKS[edit_request.id] = task
    task.add_done_callback(lambda done: _on_task_done(done, edit_request, video))
    return edit_request


async def wait_for_edit_request(edit_id: str) -> EditOutcome:
    task = _RUNNING_TASKS.get(edit_id)
    if task is not None:
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
    return get_edit_outcome(edit_id)


def cancel_edit_request(edit_id: str) -> bool:
    get_edit_request(edit_id)
    task = _RUNNING_TASKS.get(edit_id)
    if task is None or task.done():
        return False
    task.cancel()
    logger.info("Cancellation requested for edit request %s", edit_id)
    return True


def get_edit_request(edit_id: str) -> EditRequest:
    edit_request = _EDIT_STORE.get(edit_id)
    if edit_request is None:
        raise EditRequestNotFoundError(f"Edit request {edit_id} not found")
    return edit_request


def get_edit_outcome(edit_id: str) -> EditOutcome:
    edit_request = get_edit_request(edit_id)
    return _OUTCOMES.get(edit_id) or EditOutcome(edit_request=edit_request)


def list_edit_requests(video_id: str) -> List[EditRequest]:
    requests = [request for request in _EDIT_STORE.values() if request.video_id == video_id]
    return sorted(requests, key=lambda request: request.created_date)


def status_label(status: EditRequestStatus) -> str:
    return STATUS_MESSAGES[status]


def get_prompt_history(video_id: str) -> List[PromptHistoryEntry]:
    return list(_PROMPT_HISTORY.get(video_id, []))


def record_prompt(video_id: str, prompt: str) -> PromptHistoryEntry:
    entry = PromptHistoryEntry(prompt=prompt, timestamp=datetime.now(timezone.utc))
    _PROMPT_HISTORY.setdefault(video_id, []).append(entry)
    return entry


def clear_prompt_history(video_id: str) -> None:
    _PROMPT_HISTORY.pop(video_id, None)

