"""Custom exceptions for the reelestate worker.

Every error raised inside a pipeline phase derives from ReelEstateError and
carries a machine-readable code plus a short diagnostic message. The worker
writes ``"<code>: <message>"`` to the job's ``last_error`` column.
"""


class ReelEstateError(Exception):
    """Base exception for all reelestate errors."""

    code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None, *, code: str | None = None):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        super().__init__(self.message)

    def diagnostic(self) -> str:
        """Short form stored on the failed job."""
        return f"{self.code}: {self.message}"


# =============================================================================
# Pipeline Errors (fail the job)
# =============================================================================


class PipelineError(ReelEstateError):
    """Base class for errors that abort a phase."""

    code = "PIPELINE_ERROR"


class DownloadError(PipelineError):
    """Remote media could not be fetched within size/time limits."""

    code = "DOWNLOAD_FAILED"
    message = "Download failed"


class TranscriptionError(PipelineError):
    """Audio extraction or speech-to-text failed or returned nothing."""

    code = "TRANSCRIPTION_FAILED"
    message = "Transcription failed"


class ScriptGenerationError(PipelineError):
    """Narration rewrite failed or returned nothing."""

    code = "SCRIPT_GENERATION_FAILED"
    message = "Script generation failed"


class ProviderRequestError(PipelineError):
    """Avatar provider rejected the request or returned no identifier."""

    code = "PROVIDER_REQUEST_FAILED"
    message = "Avatar provider request failed"


class CompositionError(PipelineError):
    """External renderer exited non-zero or could not be started."""

    code = "COMPOSITION_FAILED"
    message = "Composition failed"


class PublishError(PipelineError):
    """Upload to durable storage failed."""

    code = "PUBLISH_FAILED"
    message = "Publish failed"


# =============================================================================
# Job Store Errors (programming errors, never written to a job)
# =============================================================================


class JobStoreError(ReelEstateError):
    """Base class for job store contract violations."""

    code = "JOB_STORE_ERROR"


class InvalidTransitionError(JobStoreError):
    """Requested status change is not an edge of the job state machine."""

    code = "INVALID_TRANSITION"
    message = "Invalid status transition"

    def __init__(self, current: str | None = None, new: str | None = None):
        message = f"Invalid status transition: {current} -> {new}" if current else self.message
        super().__init__(message)


class ImmutableFieldError(JobStoreError):
    """Attempted to overwrite a field fixed at intake."""

    code = "IMMUTABLE_FIELD"
    message = "Field is immutable"

    def __init__(self, field: str | None = None):
        message = f"Field is immutable: {field}" if field else self.message
        super().__init__(message)


class StatusBoundFieldError(JobStoreError):
    """Field may only be written together with one specific status."""

    code = "STATUS_BOUND_FIELD"
    message = "Field can only be written with its status"

    def __init__(self, field: str | None = None, status: str | None = None):
        if field and status:
            message = f"Field {field} can only be written when moving to {status}"
        else:
            message = self.message
        super().__init__(message)
