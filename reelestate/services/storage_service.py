"""Durable storage for finished renders.

Local disk in development, a GCS bucket in production. Both backends take a
storage key such as ``renders/<job_id>/final.mp4`` and return the public URL
the requester is sent. Uploading to an existing key replaces the object.
"""

import logging
import shutil
from pathlib import Path

from reelestate.config import Settings, get_settings

logger = logging.getLogger(__name__)


class LocalStorageService:
    """Local file storage for development without GCS."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.root = Path(self.settings.local_storage_path)
        self.root.mkdir(parents=True, exist_ok=True)

    def get_file_path(self, storage_key: str) -> Path:
        """Disk location backing ``storage_key``."""
        target = self.root / storage_key
        target.parent.mkdir(parents=True, exist_ok=True)
        return target

    def get_public_url(self, storage_key: str) -> str:
        return f"{self.settings.public_base_url.rstrip('/')}/{storage_key}"

    def upload_file(self, local_path: str, storage_key: str, content_type: str | None = None) -> str:
        shutil.copyfile(local_path, self.get_file_path(storage_key))
        logger.debug("Stored %s locally", storage_key)
        return self.get_public_url(storage_key)


class GCSStorageService:
    """Google Cloud Storage service for production."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._bucket = None

    @property
    def bucket(self):
        if self._bucket is None:
            from google.cloud import storage

            project = self.settings.gcs_project_id or None
            client = storage.Client(project=project)
            self._bucket = client.bucket(self.settings.gcs_bucket_name)
        return self._bucket

    def get_public_url(self, storage_key: str) -> str:
        return f"https://storage.googleapis.com/{self.settings.gcs_bucket_name}/{storage_key}"

    def upload_file(self, local_path: str, storage_key: str, content_type: str | None = None) -> str:
        blob = self.bucket.blob(storage_key)
        blob.upload_from_filename(local_path, content_type=content_type)
        logger.debug("Uploaded %s to gs://%s", storage_key, self.settings.gcs_bucket_name)
        return self.get_public_url(storage_key)


StorageService = LocalStorageService | GCSStorageService


def get_storage_service(settings: Settings | None = None) -> StorageService:
    """Use LocalStorageService or GCSStorageService based on config."""
    settings = settings or get_settings()
    if settings.use_local_storage:
        return LocalStorageService(settings)
    return GCSStorageService(settings)
