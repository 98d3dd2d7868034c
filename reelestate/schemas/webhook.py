from pydantic import BaseModel


class WebhookAck(BaseModel):
    """Transport-level acknowledgment; sent regardless of business outcome."""

    ok: bool = True


class CompletionNotice(BaseModel):
    """What the bridge could read out of a provider callback body."""

    status: str | None = None
    video_url: str | None = None

    @property
    def is_completed(self) -> bool:
        return (self.status or "").lower() in ("completed", "success")
