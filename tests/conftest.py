import json
from typing import Callable, Dict, List

import httpx
import pytest

from clipprompt.services import edit_client, edit_service, session_service, video_repository


class FakeEditService:
    """Stands in for the external AI/processing endpoints via ``httpx.MockTransport``."""

    def __init__(self):
        self.ai_response: Dict = {
            "status": "success",
            "editPlan": {"effects": [{"type": "text", "startTime": 0, "endTime": 5}]},
        }
        self.process_response: Dict = {"status": "success", "editedVideoUrl": "https://example/out.mp4"}
        self.ai_status_code = 200
        self.process_status_code = 200
        self.ai_handler: Callable = None
        self.calls: List[httpx.Request] = []

    def bodies(self, path_suffix: str) -> List[Dict]:
        return [json.loads(request.content) for request in self.calls if request.url.path.endswith(path_suffix)]

    def count(self, path_suffix: str) -> int:
        return len(self.bodies(path_suffix))

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if request.url.path.endswith(edit_client.AI_EDIT_PATH):
            if self.ai_handler is not None:
                return await self.ai_handler(request)
            return httpx.Response(self.ai_status_code, json=self.ai_response)
        if request.url.path.endswith(edit_client.PROCESS_EDITS_PATH):
            return httpx.Response(self.process_status_code, json=self.process_response)
        return httpx.Response(404, json={"detail": "not found"})


@pytest.fixture(autouse=True)
def isolated_state(monkeypatch):
    monkeypatch.setattr(edit_service, "_EDIT_STORE", {})
    monkeypatch.setattr(edit_service, "_OUTCOMES", {})
    monkeypatch.setattr(edit_service, "_RUNNING_TASKS", {})
    monkeypatch.setattr(edit_service, "_IN_FLIGHT_BY_VIDEO", {})
    monkeypatch.setattr(edit_service, "_PROMPT_HISTORY", {})
    monkeypatch.setattr(session_service, "_SESSIONS", {})
    monkeypatch.setattr(session_service, "_USERS_BY_EMAIL", {})
    monkeypatch.setattr(video_repository, "_repository", video_repository.InMemoryVideoRepository())
    yield
    edit_client.set_http_client(None)


@pytest.fixture
def fake_service():
    fake = FakeEditService()
    client = edit_client.create_http_client(transport=httpx.MockTransport(fake.handle))
    edit_client.set_http_client(client)
    return fake
