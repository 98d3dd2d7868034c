"""Decide what the worker does next.

Queued jobs are always started before composites are rendered, so a burst
of webhook completions cannot starve intake.
"""

from dataclasses import dataclass
from enum import Enum

from reelestate.models.render_job import RenderJob


class ActionKind(str, Enum):
    PROCESS_QUEUED = "process_queued"
    PROCESS_RENDERING = "process_rendering"
    IDLE = "idle"


@dataclass(frozen=True)
class Action:
    kind: ActionKind
    job: RenderJob | None = None


IDLE = Action(ActionKind.IDLE)


def select_next_action(
    queued_candidate: RenderJob | None,
    rendering_candidate: RenderJob | None,
) -> Action:
    if queued_candidate is not None:
        return Action(ActionKind.PROCESS_QUEUED, queued_candidate)
    if rendering_candidate is not None:
        return Action(ActionKind.PROCESS_RENDERING, rendering_candidate)
    return IDLE
