"""Tests for the avatar provider webhook: payload probing, token check and idempotency."""

import uuid

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from reelestate.api import webhooks
from reelestate.models.render_job import JobStatus
from reelestate.services.webhook_bridge import (
    WebhookBridge,
    WebhookOutcome,
    extract_completion,
)

WEBHOOK_SECRET = "s3cret-token"

AVATAR_URL = "https://files.heygen.example.com/avatar.mp4"
SUCCESS_PAYLOAD = {"event_type": "avatar_video.success", "event_data": {"url": AVATAR_URL}}


class TestExtractCompletion:
    """Tests for reading status and locator from different payload shapes."""

    def test_event_envelope(self):
        notice = extract_completion(SUCCESS_PAYLOAD)
        assert notice.is_completed
        assert notice.video_url == AVATAR_URL

    def test_event_data_video_url(self):
        notice = extract_completion(
            {"event_data": {"status": "completed", "video_url": AVATAR_URL}}
        )
        assert notice.is_completed
        assert notice.video_url == AVATAR_URL

    def test_nested_data(self):
        notice = extract_completion({"data": {"status": "completed", "video_url": AVATAR_URL}})
        assert notice.is_completed
        assert notice.video_url == AVATAR_URL

    def test_flat_body(self):
        notice = extract_completion({"status": "success", "url": AVATAR_URL})
        assert notice.is_completed
        assert notice.video_url == AVATAR_URL

    def test_first_non_empty_path_wins(self):
        notice = extract_completion(
            {
                "status": "completed",
                "event_data": {"url": ""},
                "data": {"video_url": "https://a.example.com/1.mp4"},
                "video_url": "https://b.example.com/2.mp4",
            }
        )
        assert notice.video_url == "https://a.example.com/1.mp4"

    def test_failure_event(self):
        notice = extract_completion({"event_type": "avatar_video.fail", "event_data": {}})
        assert notice.status == "failed"
        assert not notice.is_completed

    def test_processing_status(self):
        notice = extract_completion({"data": {"status": "processing"}})
        assert not notice.is_completed
        assert notice.video_url is None

    @pytest.mark.parametrize("payload", [{}, [], "text", None, {"data": "oops"}])
    def test_garbage_payloads(self, payload):
        notice = extract_completion(payload)
        assert not notice.is_completed
        assert notice.video_url is None


class TestWebhookBridge:
    @pytest.fixture
    def bridge(self, job_store, settings):
        return WebhookBridge(job_store, settings)

    def test_advances_waiting_job(self, bridge, make_job, job_store):
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        outcome = bridge.handle(str(job.id), WEBHOOK_SECRET, SUCCESS_PAYLOAD)

        assert outcome == WebhookOutcome.ADVANCED
        stored = job_store.get(job.id)
        assert stored.status == JobStatus.RENDERING.value
        assert stored.avatar_video_locator == AVATAR_URL

    def test_duplicate_delivery_is_noop(self, bridge, make_job, job_store):
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        assert bridge.handle(str(job.id), WEBHOOK_SECRET, SUCCESS_PAYLOAD) == WebhookOutcome.ADVANCED

        second = {"event_type": "avatar_video.success", "event_data": {"url": "https://x.example.com/2.mp4"}}
        assert bridge.handle(str(job.id), WEBHOOK_SECRET, second) == WebhookOutcome.DUPLICATE
        assert job_store.get(job.id).avatar_video_locator == AVATAR_URL

    def test_wrong_token_rejected(self, bridge, make_job, job_store):
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        assert bridge.handle(str(job.id), "wrong", SUCCESS_PAYLOAD) == WebhookOutcome.UNAUTHORIZED
        assert job_store.get(job.id).status == JobStatus.HEYGEN_REQUESTED.value

    def test_missing_token_rejected(self, bridge, make_job, job_store):
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        assert bridge.handle(str(job.id), None, SUCCESS_PAYLOAD) == WebhookOutcome.UNAUTHORIZED
        assert job_store.get(job.id).status == JobStatus.HEYGEN_REQUESTED.value

    def test_permissive_without_secret(self, job_store, settings, make_job):
        bridge = WebhookBridge(job_store, settings.model_copy(update={"heygen_webhook_secret": ""}))
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        assert bridge.handle(str(job.id), None, SUCCESS_PAYLOAD) == WebhookOutcome.ADVANCED

    def test_incomplete_payload_changes_nothing(self, bridge, make_job, job_store):
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        outcome = bridge.handle(str(job.id), WEBHOOK_SECRET, {"data": {"status": "processing"}})
        assert outcome == WebhookOutcome.INCOMPLETE
        assert job_store.get(job.id).status == JobStatus.HEYGEN_REQUESTED.value

    def test_completed_without_url_changes_nothing(self, bridge, make_job, job_store):
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        outcome = bridge.handle(str(job.id), WEBHOOK_SECRET, {"status": "completed"})
        assert outcome == WebhookOutcome.INCOMPLETE

    def test_unknown_job(self, bridge):
        outcome = bridge.handle(str(uuid.uuid4()), WEBHOOK_SECRET, SUCCESS_PAYLOAD)
        assert outcome == WebhookOutcome.UNKNOWN_JOB

    def test_malformed_job_id(self, bridge):
        assert bridge.handle("not-a-uuid", WEBHOOK_SECRET, SUCCESS_PAYLOAD) == WebhookOutcome.UNKNOWN_JOB
        assert bridge.handle(None, WEBHOOK_SECRET, SUCCESS_PAYLOAD) == WebhookOutcome.UNKNOWN_JOB

    def test_job_id_from_body(self, bridge, make_job, job_store):
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        payload = {"job_id": str(job.id), "status": "completed", "video_url": AVATAR_URL}
        assert bridge.handle(None, WEBHOOK_SECRET, payload) == WebhookOutcome.ADVANCED

    def test_callback_for_failed_job_is_ignored(self, bridge, make_job, job_store):
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        job_store.fail(job.id, JobStatus.HEYGEN_REQUESTED, "cancelled")
        assert bridge.handle(str(job.id), WEBHOOK_SECRET, SUCCESS_PAYLOAD) == WebhookOutcome.DUPLICATE
        assert job_store.get(job.id).status == JobStatus.FAILED.value


class TestWebhookEndpoint:
    """The endpoint always acknowledges and applies the callback afterwards."""

    @pytest.fixture
    def client(self, job_store, settings):
        app = FastAPI()
        app.include_router(webhooks.router)
        app.dependency_overrides[webhooks.get_webhook_bridge] = lambda: WebhookBridge(
            job_store, settings
        )
        return TestClient(app)

    def _post(self, client, job_id, token=WEBHOOK_SECRET, json=None, content=None):
        params = {"job_id": str(job_id)}
        if token is not None:
            params["token"] = token
        if content is not None:
            return client.post("/heygen-callback", params=params, content=content)
        return client.post("/heygen-callback", params=params, json=json)

    def test_success_advances_job(self, client, make_job, job_store):
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        response = self._post(client, job.id, json=SUCCESS_PAYLOAD)

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        stored = job_store.get(job.id)
        assert stored.status == JobStatus.RENDERING.value
        assert stored.avatar_video_locator == AVATAR_URL

    def test_repeat_delivery_acknowledged(self, client, make_job, job_store):
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        first = self._post(client, job.id, json=SUCCESS_PAYLOAD)
        second = self._post(client, job.id, json=SUCCESS_PAYLOAD)

        assert first.json() == {"ok": True}
        assert second.json() == {"ok": True}
        assert job_store.get(job.id).status == JobStatus.RENDERING.value

    def test_bad_token_still_acknowledged(self, client, make_job, job_store):
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        response = self._post(client, job.id, token="nope", json=SUCCESS_PAYLOAD)

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert job_store.get(job.id).status == JobStatus.HEYGEN_REQUESTED.value

    def test_unknown_job_acknowledged(self, client):
        response = self._post(client, uuid.uuid4(), json=SUCCESS_PAYLOAD)
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_invalid_json_acknowledged(self, client, make_job, job_store):
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        response = self._post(client, job.id, content=b"{not json")

        assert response.status_code == 200
        assert job_store.get(job.id).status == JobStatus.HEYGEN_REQUESTED.value

    def test_processing_payload_acknowledged(self, client, make_job, job_store):
        job = make_job(JobStatus.HEYGEN_REQUESTED)
        response = self._post(client, job.id, json={"data": {"status": "processing"}})

        assert response.status_code == 200
        assert job_store.get(job.id).status == JobStatus.HEYGEN_REQUESTED.value

    def test_internal_error_still_acknowledged(self, make_job):
        app = FastAPI()
        app.include_router(webhooks.router)
        broken = WebhookBridge.__new__(WebhookBridge)

        def explode(*args, **kwargs):
            raise RuntimeError("database down")

        broken.handle = explode
        app.dependency_overrides[webhooks.get_webhook_bridge] = lambda: broken
        client = TestClient(app)

        response = client.post("/heygen-callback", params={"job_id": str(uuid.uuid4())}, json={})
        assert response.status_code == 200
        assert response.json() == {"ok": True}
