"""Render job persistence and the claim protocol.

A claim is a single conditional UPDATE keyed on the job id *and* the status
the caller expects the job to be in. Exactly one of several concurrent
claimants sees an affected row; everyone else gets ``None`` and moves on.
The store never reads a status and then writes it in a separate statement.
"""

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from reelestate.exceptions import (
    ImmutableFieldError,
    InvalidTransitionError,
    StatusBoundFieldError,
)
from reelestate.models.base import utcnow
from reelestate.models.database import get_session_maker
from reelestate.models.render_job import (
    IMMUTABLE_FIELDS,
    STATUS_BOUND_FIELDS,
    JobStatus,
    RenderJob,
    is_allowed_transition,
)

logger = logging.getLogger(__name__)


def _as_uuid(value: uuid.UUID | str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def _check_fields(fields: dict[str, Any], new: JobStatus | None = None) -> None:
    """Reject intake fields, status, and result fields written out of their transition.

    ``new`` is the status set by the same statement, ``None`` for plain updates.
    """
    for name in fields:
        if name in IMMUTABLE_FIELDS:
            raise ImmutableFieldError(name)
        if name == "status":
            raise InvalidTransitionError("<unconditional>", str(fields[name]))
        bound = STATUS_BOUND_FIELDS.get(name)
        if bound is not None and new != bound:
            raise StatusBoundFieldError(name, bound.value)


class JobStore:
    """Render job table access for workers and the webhook bridge."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        *,
        error_max_length: int = 2000,
    ) -> None:
        self._session_factory = session_factory or get_session_maker()
        self.error_max_length = error_max_length

    def create(
        self,
        walkthrough_source: str,
        avatar_variant: str = "female",
        max_duration_seconds: int = 20,
        requester_contact: str | None = None,
        *,
        created_at: datetime | None = None,
    ) -> RenderJob:
        """Insert a new job in ``queued``; the intake path calls this."""
        job = RenderJob(
            status=JobStatus.QUEUED.value,
            walkthrough_source=walkthrough_source,
            avatar_variant=avatar_variant.lower(),
            max_duration_seconds=max_duration_seconds,
            requester_contact=requester_contact,
        )
        if created_at is not None:
            job.created_at = created_at
        with self._session_factory() as session, session.begin():
            session.add(job)
        logger.info("Created render job %s", job.id)
        return job

    def get(self, job_id: uuid.UUID | str) -> RenderJob | None:
        with self._session_factory() as session:
            return session.get(RenderJob, _as_uuid(job_id))

    def oldest_with_status(
        self,
        status: JobStatus,
        *,
        require_avatar_video: bool = False,
    ) -> RenderJob | None:
        """Return the oldest job in ``status`` (FIFO by created_at)."""
        stmt = select(RenderJob).where(RenderJob.status == status.value)
        if require_avatar_video:
            stmt = stmt.where(
                RenderJob.avatar_video_locator.is_not(None),
                RenderJob.avatar_video_locator != "",
            )
        stmt = stmt.order_by(RenderJob.created_at.asc()).limit(1)
        with self._session_factory() as session:
            return session.execute(stmt).scalar_one_or_none()

    def claim(
        self,
        job_id: uuid.UUID | str,
        expected: JobStatus,
        new: JobStatus,
        **fields: Any,
    ) -> RenderJob | None:
        """Atomically move a job from ``expected`` to ``new``.

        Args:
            job_id: Job to update
            expected: Status the job must currently have
            new: Status to set
            **fields: Extra columns written in the same statement

        Returns:
            The updated job, or None when the precondition did not hold
            (another worker or callback got there first).

        Raises:
            InvalidTransitionError: ``expected -> new`` is not a state machine edge
            ImmutableFieldError: ``fields`` names an intake field
            StatusBoundFieldError: ``fields`` sets a result column ``new`` does not own
        """
        if not is_allowed_transition(expected, new):
            raise InvalidTransitionError(expected.value, new.value)
        _check_fields(fields, new)

        job_uuid = _as_uuid(job_id)
        stmt = (
            update(RenderJob)
            .where(RenderJob.id == job_uuid, RenderJob.status == expected.value)
            .values(status=new.value, updated_at=utcnow(), **fields)
            .execution_options(synchronize_session=False)
        )
        with self._session_factory() as session, session.begin():
            result = session.execute(stmt)
            if result.rowcount != 1:
                logger.debug(
                    "Claim %s -> %s on job %s affected no rows", expected.value, new.value, job_uuid
                )
                return None
            # Same transaction: the row is still locked by our UPDATE
            return session.get(RenderJob, job_uuid)

    def update(self, job_id: uuid.UUID | str, **fields: Any) -> RenderJob | None:
        """Unconditionally write non-state fields."""
        _check_fields(fields)
        job_uuid = _as_uuid(job_id)
        stmt = (
            update(RenderJob)
            .where(RenderJob.id == job_uuid)
            .values(updated_at=utcnow(), **fields)
            .execution_options(synchronize_session=False)
        )
        with self._session_factory() as session, session.begin():
            result = session.execute(stmt)
            if result.rowcount != 1:
                return None
            return session.get(RenderJob, job_uuid)

    def fail(
        self,
        job_id: uuid.UUID | str,
        expected: JobStatus,
        message: str,
    ) -> RenderJob | None:
        """Move a job to ``failed`` with a truncated ``last_error``."""
        message = (message or "Unknown error")[: self.error_max_length]
        return self.claim(job_id, expected, JobStatus.FAILED, last_error=message)
