"""
Pytest fixtures for reelestate worker tests.

The job store runs against SQLite; the claim protocol only relies on
conditional UPDATE row counts, which SQLite reports the same way Postgres does.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from reelestate.config import Settings
from reelestate.models import Base
from reelestate.models.render_job import JobStatus
from reelestate.services.job_store import JobStore

WEBHOOK_SECRET = "s3cret-token"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        openai_api_key="test-openai-key",
        heygen_api_key="test-heygen-key",
        heygen_callback_base_url="https://worker.example.com/heygen-callback",
        heygen_webhook_secret=WEBHOOK_SECRET,
        heygen_avatar_id_male="avatar-m",
        heygen_avatar_id_female="avatar-f",
        heygen_voice_id_male="voice-m",
        heygen_voice_id_female="voice-f",
        local_storage_path=str(tmp_path / "storage"),
        public_base_url="https://cdn.example.com/files",
        download_backoff_seconds=0.0,
        poll_interval_seconds=0.01,
    )


@pytest.fixture
def engine(tmp_path: Path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'jobs.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(engine, class_=Session, expire_on_commit=False)


@pytest.fixture
def job_store(session_factory) -> JobStore:
    return JobStore(session_factory)


@pytest.fixture
def make_job(job_store):
    """Create a job and force it into ``status`` through the claim path."""
    path = {
        JobStatus.QUEUED: [],
        JobStatus.PROCESSING: [JobStatus.PROCESSING],
        JobStatus.HEYGEN_REQUESTED: [JobStatus.PROCESSING, JobStatus.HEYGEN_REQUESTED],
        JobStatus.RENDERING: [
            JobStatus.PROCESSING,
            JobStatus.HEYGEN_REQUESTED,
            JobStatus.RENDERING,
        ],
        JobStatus.RENDERING_IN_PROGRESS: [
            JobStatus.PROCESSING,
            JobStatus.HEYGEN_REQUESTED,
            JobStatus.RENDERING,
            JobStatus.RENDERING_IN_PROGRESS,
        ],
    }

    def _make(
        status=JobStatus.QUEUED,
        walkthrough_source="https://media.example.com/walk.mp4",
        avatar_variant="female",
        requester_contact=None,
        created_at=None,
        **fields,
    ):
        job = job_store.create(
            walkthrough_source,
            avatar_variant=avatar_variant,
            requester_contact=requester_contact,
            created_at=created_at,
        )
        current = JobStatus.QUEUED
        for step in path[status]:
            job = job_store.claim(job.id, current, step)
            current = step
        if fields:
            job = job_store.update(job.id, **fields)
        return job

    return _make


@pytest.fixture
def base_time() -> datetime:
    return datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
