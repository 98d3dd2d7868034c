"""Publish finished renders and notify the requester."""

import logging
from pathlib import Path

from reelestate.config import Settings, get_settings
from reelestate.exceptions import PublishError
from reelestate.services.notification_service import NotificationService
from reelestate.services.storage_service import StorageService, get_storage_service

logger = logging.getLogger(__name__)


def render_storage_key(job_id: str) -> str:
    return f"renders/{job_id}/final.mp4"


class Publisher:
    """Upload the composite to durable storage and announce it."""

    def __init__(
        self,
        settings: Settings | None = None,
        storage: StorageService | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._storage = storage
        self.notifier = notifier or NotificationService(self.settings)

    @property
    def storage(self) -> StorageService:
        if self._storage is None:
            self._storage = get_storage_service(self.settings)
        return self._storage

    def publish(self, local_asset_path: str | Path, job_id: str) -> str:
        """Upload the asset and return its public locator.

        Raises:
            PublishError: If the file is missing or the upload fails
        """
        local_asset_path = Path(local_asset_path)
        if not local_asset_path.exists() or local_asset_path.stat().st_size == 0:
            raise PublishError(f"Rendered file missing or empty: {local_asset_path.name}")

        storage_key = render_storage_key(job_id)
        try:
            locator = self.storage.upload_file(str(local_asset_path), storage_key, "video/mp4")
        except Exception as e:
            raise PublishError(f"Upload to {storage_key} failed: {e}") from e

        logger.info("Published job %s to %s", job_id, locator)
        return locator

    def notify(self, contact: str | None, locator: str, job_id: str) -> bool:
        """Email the locator to ``contact``. Failures are logged, never raised."""
        if not contact:
            return False
        if not self.notifier.is_configured:
            logger.info("Email not configured; skipping notification for job %s", job_id)
            return False
        try:
            self.notifier.send_video_ready(contact, locator, job_id)
        except Exception:
            logger.exception("Notification for job %s failed", job_id)
            return False
        logger.info("Email sent for job %s", job_id)
        return True
