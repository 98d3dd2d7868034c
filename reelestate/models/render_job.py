from enum import Enum

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from reelestate.models.base import Base, TimestampMixin, UUIDMixin


class JobStatus(str, Enum):
    """Render job status."""

    QUEUED = "queued"
    PROCESSING = "processing"
    HEYGEN_REQUESTED = "heygen_requested"
    RENDERING = "rendering"
    RENDERING_IN_PROGRESS = "rendering_in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class AvatarVariant(str, Enum):
    MALE = "male"
    FEMALE = "female"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# Forward edges of the job state machine; FAILED is added for every
# non-terminal state.
_FORWARD: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.HEYGEN_REQUESTED}),
    JobStatus.HEYGEN_REQUESTED: frozenset({JobStatus.RENDERING}),
    JobStatus.RENDERING: frozenset({JobStatus.RENDERING_IN_PROGRESS}),
    # Back to RENDERING un-claims a job whose avatar footage is missing
    JobStatus.RENDERING_IN_PROGRESS: frozenset({JobStatus.COMPLETED, JobStatus.RENDERING}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    status: targets if status in TERMINAL_STATUSES else targets | {JobStatus.FAILED}
    for status, targets in _FORWARD.items()
}


def is_allowed_transition(current: JobStatus, new: JobStatus) -> bool:
    return new in TRANSITIONS[current]


# Fixed at intake, never written by the core
IMMUTABLE_FIELDS = frozenset(
    {
        "id",
        "created_at",
        "walkthrough_source",
        "avatar_variant",
        "max_duration_seconds",
        "requester_contact",
    }
)

# Result columns, written only by the transition that produces them
STATUS_BOUND_FIELDS: dict[str, JobStatus] = {
    "final_asset_locator": JobStatus.COMPLETED,
    "last_error": JobStatus.FAILED,
}


class RenderJob(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "render_jobs"

    # See JobStatus for the full state machine
    status: Mapped[str] = mapped_column(String(50), default=JobStatus.QUEUED.value, index=True)

    # Intake
    walkthrough_source: Mapped[str] = mapped_column(Text, nullable=False)
    avatar_variant: Mapped[str] = mapped_column(
        String(20), default=AvatarVariant.FEMALE.value, nullable=False
    )
    max_duration_seconds: Mapped[int] = mapped_column(Integer, default=20, nullable=False)
    requester_contact: Mapped[str | None] = mapped_column(String(320), nullable=True)

    # Avatar provider
    avatar_request_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    avatar_video_locator: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Narration
    transcript_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    script_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Output
    final_asset_locator: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Error handling
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def job_status(self) -> JobStatus:
        return JobStatus(self.status)

    def __repr__(self) -> str:
        return f"<RenderJob {self.id} ({self.status})>"
