from reelestate.models.base import Base
from reelestate.models.render_job import (
    IMMUTABLE_FIELDS,
    STATUS_BOUND_FIELDS,
    TRANSITIONS,
    AvatarVariant,
    JobStatus,
    RenderJob,
    is_allowed_transition,
)

__all__ = [
    "Base",
    "RenderJob",
    "JobStatus",
    "AvatarVariant",
    "TRANSITIONS",
    "IMMUTABLE_FIELDS",
    "STATUS_BOUND_FIELDS",
    "is_allowed_transition",
]
