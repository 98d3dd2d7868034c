"""Webhook bridge: resumes a job when the avatar provider reports completion.

Provider payloads differ between API versions, so the status and the video
locator are probed from an ordered list of candidate paths and the first
non-empty value wins.
"""

import hmac
import logging
import uuid
from enum import Enum
from typing import Any

from reelestate.config import Settings, get_settings
from reelestate.models.render_job import JobStatus
from reelestate.schemas.webhook import CompletionNotice
from reelestate.services.job_store import JobStore

logger = logging.getLogger(__name__)

# Ordered: HeyGen v2 event envelope, then nested data, then flat bodies
VIDEO_URL_PATHS: tuple[tuple[str, ...], ...] = (
    ("event_data", "url"),
    ("event_data", "video_url"),
    ("data", "video_url"),
    ("data", "url"),
    ("video_url",),
    ("url",),
)

STATUS_PATHS: tuple[tuple[str, ...], ...] = (
    ("event_data", "status"),
    ("data", "status"),
    ("status",),
)

JOB_ID_PATHS: tuple[tuple[str, ...], ...] = (
    ("job_id",),
    ("data", "job_id"),
)


class WebhookOutcome(str, Enum):
    ADVANCED = "advanced"
    UNAUTHORIZED = "unauthorized"
    INCOMPLETE = "incomplete"
    UNKNOWN_JOB = "unknown_job"
    DUPLICATE = "duplicate"


def _dig(payload: Any, path: tuple[str, ...]) -> Any:
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def first_match(payload: Any, paths: tuple[tuple[str, ...], ...]) -> str | None:
    """Return the first non-empty string found along ``paths``."""
    for path in paths:
        value = _dig(payload, path)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def extract_completion(payload: Any) -> CompletionNotice:
    """Read status and video locator from any supported payload shape."""
    status = None
    event_type = _dig(payload, ("event_type",))
    if isinstance(event_type, str) and event_type.endswith(".success"):
        status = "completed"
    elif isinstance(event_type, str) and event_type.endswith(".fail"):
        status = "failed"
    if status is None:
        status = first_match(payload, STATUS_PATHS)
    return CompletionNotice(status=status, video_url=first_match(payload, VIDEO_URL_PATHS))


class WebhookBridge:
    """Authenticate a provider callback and advance the matching job."""

    def __init__(self, store: JobStore, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or get_settings()

    def is_authorized(self, token: str | None) -> bool:
        secret = self.settings.heygen_webhook_secret
        if not secret:
            # Permissive mode: no secret configured
            return True
        if not token:
            return False
        return hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8"))

    def resolve_job_id(self, job_id: str | None, payload: Any) -> str | None:
        return job_id or first_match(payload, JOB_ID_PATHS)

    def handle(self, job_id: str | None, token: str | None, payload: Any) -> WebhookOutcome:
        """Apply one callback. Never raises for business-level problems."""
        if not self.is_authorized(token):
            logger.warning("Rejected webhook with invalid token (job_id=%s)", job_id)
            return WebhookOutcome.UNAUTHORIZED

        job_id = self.resolve_job_id(job_id, payload)
        try:
            job_uuid = uuid.UUID(str(job_id))
        except ValueError:
            logger.warning("Dropped webhook with missing or malformed job_id: %r", job_id)
            return WebhookOutcome.UNKNOWN_JOB

        notice = extract_completion(payload)
        if not notice.is_completed or not notice.video_url:
            logger.info(
                "Webhook for job %s not actionable yet (status=%s, video_url=%s)",
                job_uuid,
                notice.status,
                bool(notice.video_url),
            )
            return WebhookOutcome.INCOMPLETE

        job = self.store.claim(
            job_uuid,
            JobStatus.HEYGEN_REQUESTED,
            JobStatus.RENDERING,
            avatar_video_locator=notice.video_url,
        )
        if job is not None:
            logger.info("Webhook advanced job %s to rendering", job_uuid)
            return WebhookOutcome.ADVANCED

        existing = self.store.get(job_uuid)
        if existing is None:
            logger.warning("Dropped webhook for unknown job %s", job_uuid)
            return WebhookOutcome.UNKNOWN_JOB

        logger.info(
            "Ignored duplicate or out-of-order webhook for job %s (status=%s)",
            job_uuid,
            existing.status,
        )
        return WebhookOutcome.DUPLICATE
