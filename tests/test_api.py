import json

import pytest
from fastapi.testclient import TestClient

from clipprompt.app import app
from clipprompt.services import edit_service


@pytest.fixture
def client(fake_service):
    with TestClient(app) as test_client:
        yield test_client


def _login(client, email="demo@example.com"):
    response = client.post("/api/sessions", json={"name": "Demo User", "email": email})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}


def _create_video(client, headers):
    response = client.post(
        "/api/videos",
        json={"originalVideoFile": "https://example/in.mp4", "videoTitle": "Beach Sunset"},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


class TestSessions:
    def test_routes_require_session(self, client):
        assert client.get("/api/videos").status_code == 401
        assert client.get("/api/videos", headers={"Authorization": "Bearer nope"}).status_code == 401

    def test_login_returns_token_and_user(self, client):
        response = client.post("/api/sessions", json={"name": "Demo User", "email": "Demo@Example.com"})
        body = response.json()

        assert response.status_code == 201
        assert body["user"]["email"] == "demo@example.com"
        assert body["user"]["name"] == "Demo User"
        assert "expiresAt" in body

    def test_logout_revokes_session(self, client):
        headers = _login(client)

        assert client.delete("/api/sessions", headers=headers).status_code == 204
        assert client.get("/api/videos", headers=headers).status_code == 401


class TestVideos:
    def test_register_and_list(self, client):
        headers = _login(client)
        video = _create_video(client, headers)

        assert video["status"] == "Uploaded"
        assert video["editedVideoFile"] is None
        listed = client.get("/api/videos", headers=headers).json()
        assert [item["id"] for item in listed] == [video["id"]]
        assert client.get(f"/api/videos/{video['id']}", headers=headers).json()["videoTitle"] == "Beach Sunset"

    def test_other_users_cannot_see_video(self, client):
        video = _create_video(client, _login(client))
        other = _login(client, email="other@example.com")

        assert client.get(f"/api/videos/{video['id']}", headers=other).status_code == 404
        assert client.get("/api/videos", headers=other).json() == []

    def test_missing_fields_are_rejected(self, client):
        headers = _login(client)
        response = client.post("/api/videos", json={"videoTitle": "No file"}, headers=headers)

        assert response.status_code == 400


class TestEdits:
    def test_submit_and_wait_completes(self, client, fake_service):
        headers = _login(client)
        video = _create_video(client, headers)

        response = client.post(
            f"/api/videos/{video['id']}/edits?wait=true",
            json={"prompt": "Add a caption"},
            headers=headers,
        )
        body = response.json()

        assert response.status_code == 200
        assert body["editRequest"]["status"] == "Completed"
        assert body["label"] == "Processing complete!"
        assert body["processedVideoUrl"] == "https://example/out.mp4"
        assert json.loads(body["editRequest"]["responseJSON"]) == fake_service.ai_response["editPlan"]

        refreshed = client.get(f"/api/videos/{video['id']}", headers=headers).json()
        assert refreshed["status"] == "Ready"
        assert refreshed["editedVideoFile"] == "https://example/out.mp4"

        status = client.get(f"/api/edits/{body['editRequest']['id']}", headers=headers).json()
        assert status["editRequest"]["status"] == "Completed"

    def test_submit_returns_in_progress_immediately(self, client):
        headers = _login(client)
        video = _create_video(client, headers)

        response = client.post(
            f"/api/videos/{video['id']}/edits",
            json={"prompt": "Add a caption"},
            headers=headers,
        )

        assert response.status_code == 202
        assert response.json()["editRequest"]["status"] == "In Progress"
        assert response.json()["label"] == "Processing your video with AI..."

    def test_upstream_error_surfaces_message(self, client, fake_service):
        fake_service.ai_response = {"status": "error", "message": "quota exceeded"}
        headers = _login(client)
        video = _create_video(client, headers)

        body = client.post(
            f"/api/videos/{video['id']}/edits?wait=true",
            json={"prompt": "Add a caption"},
            headers=headers,
        ).json()

        assert body["editRequest"]["status"] == "Error"
        assert body["detail"] == "quota exceeded"
        assert body["processedVideoUrl"] is None
        assert fake_service.count("/video/processEdits") == 0

    @pytest.mark.parametrize("prompt", ["", "    "])
    def test_blank_prompt_is_rejected(self, client, prompt):
        headers = _login(client)
        video = _create_video(client, headers)

        response = client.post(f"/api/videos/{video['id']}/edits", json={"prompt": prompt}, headers=headers)

        assert response.status_code == 400
        assert client.get(f"/api/videos/{video['id']}/edits", headers=headers).json() == []

    def test_overlong_prompt_is_rejected(self, client, monkeypatch):
        monkeypatch.setattr(edit_service.settings, "prompt_char_limit", 10)
        headers = _login(client)
        video = _create_video(client, headers)

        response = client.post(
            f"/api/videos/{video['id']}/edits", json={"prompt": "x" * 11}, headers=headers
        )

        assert response.status_code == 400

    def test_exclusive_policy_returns_conflict(self, client, monkeypatch):
        monkeypatch.setattr(edit_service.settings, "allow_concurrent_edits", False)
        headers = _login(client)
        video = _create_video(client, headers)
        edit_service.submit_edit_request(video["id"], "someone", "already running")

        response = client.post(
            f"/api/videos/{video['id']}/edits", json={"prompt": "Add a caption"}, headers=headers
        )

        assert response.status_code == 409

    def test_unknown_edit_is_not_found(self, client):
        headers = _login(client)

        assert client.get("/api/edits/edit_missing", headers=headers).status_code == 404
        assert client.post("/api/edits/edit_missing/cancel", headers=headers).status_code == 404

    def test_history_listing_and_clearing(self, client):
        headers = _login(client)
        video = _create_video(client, headers)
        for prompt in ("make it brighter", "Add a caption"):
            client.post(
                f"/api/videos/{video['id']}/edits?wait=true", json={"prompt": prompt}, headers=headers
            )

        history = client.get(f"/api/videos/{video['id']}/history", headers=headers).json()
        assert [entry["prompt"] for entry in history] == ["make it brighter", "Add a caption"]
        edits = client.get(f"/api/videos/{video['id']}/edits", headers=headers).json()
        assert [edit["promptText"] for edit in edits] == ["make it brighter", "Add a caption"]

        assert client.delete(f"/api/videos/{video['id']}/history", headers=headers).status_code == 204
        assert client.get(f"/api/videos/{video['id']}/history", headers=headers).json() == []

    def test_cancel_finished_edit_keeps_status(self, client):
        headers = _login(client)
        video = _create_video(client, headers)
        edit = client.post(
            f"/api/videos/{video['id']}/edits?wait=true", json={"prompt": "Add a caption"}, headers=headers
        ).json()["editRequest"]

        body = client.post(f"/api/edits/{edit['id']}/cancel", headers=headers).json()

        assert body["editRequest"]["status"] == "Completed"
