"""Polling render worker.

Each cycle picks at most one job, claims it with a conditional update, runs
one phase and writes the outcome with another conditional update. Several
worker processes can share one database: a claim that affects no rows just
means someone else got there first.
"""

import logging
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Callable

from reelestate.config import Settings, get_settings
from reelestate.exceptions import ReelEstateError
from reelestate.models.render_job import JobStatus, RenderJob
from reelestate.render.compositor import BrandingAssets, Compositor
from reelestate.render.lower_third import render_lower_third
from reelestate.services.audio_extractor import extract_audio_for_transcription
from reelestate.services.avatar_service import AvatarVideoRequester
from reelestate.services.job_store import JobStore
from reelestate.services.media_fetcher import MediaFetcher
from reelestate.services.publisher import Publisher
from reelestate.services.script_writer import ScriptWriter
from reelestate.services.transcription_service import TranscriptionService
from reelestate.worker.scheduler import Action, ActionKind, select_next_action

logger = logging.getLogger(__name__)


def _error_text(exc: Exception) -> str:
    if isinstance(exc, ReelEstateError):
        return exc.diagnostic()
    return f"{type(exc).__name__}: {exc}"


class Worker:
    """Drive render jobs through both pipeline phases."""

    def __init__(
        self,
        store: JobStore,
        settings: Settings | None = None,
        fetcher: MediaFetcher | None = None,
        transcriber: TranscriptionService | None = None,
        script_writer: ScriptWriter | None = None,
        avatar_requester: AvatarVideoRequester | None = None,
        compositor: Compositor | None = None,
        publisher: Publisher | None = None,
        audio_extractor: Callable[..., str] = extract_audio_for_transcription,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.fetcher = fetcher or MediaFetcher(self.settings)
        self.transcriber = transcriber or TranscriptionService(self.settings)
        self.script_writer = script_writer or ScriptWriter(self.settings)
        self.avatar_requester = avatar_requester or AvatarVideoRequester(self.settings)
        self.compositor = compositor or Compositor(self.settings)
        self.publisher = publisher or Publisher(self.settings)
        self.audio_extractor = audio_extractor
        self._stop = threading.Event()

    # ------------------------------------------------------------------
    # Loop control
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Ask the loop to exit after the current phase."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def run_forever(self) -> None:
        logger.info(
            "Worker started (poll interval %.1fs)", self.settings.poll_interval_seconds
        )
        while not self._stop.is_set():
            try:
                worked = self.run_once()
            except Exception:
                # Store or connectivity trouble outside a phase
                logger.exception("Worker cycle failed")
                worked = False
            if not worked:
                self._stop.wait(self.settings.poll_interval_seconds)
        logger.info("Worker stopped")

    def run_once(self) -> bool:
        """Run one cycle. Returns True when a claim was attempted."""
        queued = self.store.oldest_with_status(JobStatus.QUEUED)
        rendering = None
        if queued is None:
            rendering = self.store.oldest_with_status(
                JobStatus.RENDERING, require_avatar_video=True
            )
        return self.execute(select_next_action(queued, rendering))

    def execute(self, action: Action) -> bool:
        if action.kind == ActionKind.PROCESS_QUEUED:
            self.process_queued(action.job)
            return True
        if action.kind == ActionKind.PROCESS_RENDERING:
            return self.process_rendering(action.job)
        return False

    # ------------------------------------------------------------------
    # Phase 1: queued -> processing -> heygen_requested
    # ------------------------------------------------------------------

    def process_queued(self, candidate: RenderJob) -> RenderJob | None:
        job = self.store.claim(candidate.id, JobStatus.QUEUED, JobStatus.PROCESSING)
        if job is None:
            logger.debug("Job %s already claimed by another worker", candidate.id)
            return None

        logger.info("Processing job %s", job.id)
        workdir = Path(tempfile.mkdtemp(prefix=f"reelestate_{job.id}_"))
        try:
            walkthrough = self.fetcher.fetch(job.walkthrough_source, workdir / "walkthrough.mp4")
            audio_path = self.audio_extractor(
                str(walkthrough),
                str(workdir / "audio.m4a"),
                job.max_duration_seconds,
                self.settings,
            )
            transcript = self.transcriber.transcribe(audio_path)
            script = self.script_writer.rewrite(transcript, job.max_duration_seconds)
            request_id = self.avatar_requester.request_avatar_video(
                script, job.avatar_variant, str(job.id)
            )
        except Exception as e:
            logger.error("Job %s failed during processing: %s", job.id, e)
            self.store.fail(job.id, JobStatus.PROCESSING, _error_text(e))
            return None
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

        updated = self.store.claim(
            job.id,
            JobStatus.PROCESSING,
            JobStatus.HEYGEN_REQUESTED,
            avatar_request_id=request_id,
            transcript_text=transcript,
            script_text=script,
        )
        if updated is None:
            logger.warning("Job %s left processing before the avatar request was recorded", job.id)
        else:
            logger.info("Job %s waiting for avatar video %s", job.id, request_id)
        return updated

    # ------------------------------------------------------------------
    # Phase 2: rendering -> rendering_in_progress -> completed
    # ------------------------------------------------------------------

    def process_rendering(self, candidate: RenderJob) -> bool:
        """Render one job. Returns False when the job had to be handed back."""
        job = self.store.claim(
            candidate.id, JobStatus.RENDERING, JobStatus.RENDERING_IN_PROGRESS
        )
        if job is None:
            logger.debug("Job %s already claimed by another worker", candidate.id)
            return True

        if not job.avatar_video_locator:
            logger.warning("Job %s has no avatar video yet; returning it to rendering", job.id)
            self.store.claim(job.id, JobStatus.RENDERING_IN_PROGRESS, JobStatus.RENDERING)
            return False

        logger.info("Rendering job %s", job.id)
        workdir = Path(tempfile.mkdtemp(prefix=f"reelestate_{job.id}_"))
        try:
            walkthrough = self.fetcher.fetch(job.walkthrough_source, workdir / "walkthrough.mp4")
            avatar = self.fetcher.fetch(job.avatar_video_locator, workdir / "avatar.mp4")
            branding = self._prepare_branding(workdir)
            output = self.compositor.compose(walkthrough, avatar, branding, workdir / "final.mp4")
            locator = self.publisher.publish(output, str(job.id))
        except Exception as e:
            logger.error("Job %s failed during rendering: %s", job.id, e)
            self.store.fail(job.id, JobStatus.RENDERING_IN_PROGRESS, _error_text(e))
            return True
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

        completed = self.store.claim(
            job.id,
            JobStatus.RENDERING_IN_PROGRESS,
            JobStatus.COMPLETED,
            final_asset_locator=locator,
        )
        if completed is None:
            logger.warning("Job %s left rendering_in_progress before completion", job.id)
            return True

        logger.info("Job %s completed: %s", job.id, locator)
        self.publisher.notify(job.requester_contact, locator, str(job.id))
        return True

    def _prepare_branding(self, workdir: Path) -> BrandingAssets:
        branding = BrandingAssets()
        if self.settings.lower_third_enabled:
            branding.lower_third_path = render_lower_third(
                workdir / "lower_third.png", settings=self.settings
            )
        if self.settings.logo_url:
            branding.logo_path = self.fetcher.fetch(self.settings.logo_url, workdir / "logo.png")
        return branding
