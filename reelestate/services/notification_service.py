"""Email notification through the Resend HTTP API."""

import html
import logging

import httpx

from reelestate.config import Settings, get_settings

logger = logging.getLogger(__name__)

EMAIL_SUBJECT = "Your ReelEstate Video Is Ready"


def build_email_html(locator: str, job_id: str) -> str:
    url = html.escape(locator, quote=True)
    return (
        '<div style="font-family: Arial, sans-serif; line-height: 1.4;">'
        "<h2>Your video is ready</h2>"
        f"<p><strong>Job:</strong> {html.escape(str(job_id))}</p>"
        "<p>Click below to view/download your rendered video:</p>"
        f'<p><a href="{url}" target="_blank" rel="noopener noreferrer">{url}</a></p>'
        "</div>"
    )


class NotificationService:
    """Send the finished-video email to the requester."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.resend_api_key and self.settings.from_email)

    def send_video_ready(self, to: str, locator: str, job_id: str) -> None:
        """Send the email; raises on transport errors or non-2xx responses."""
        client = self._client or httpx.Client()
        try:
            response = client.post(
                self.settings.resend_api_url,
                headers={
                    "Authorization": f"Bearer {self.settings.resend_api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "from": self.settings.from_email,
                    "to": [to],
                    "subject": EMAIL_SUBJECT,
                    "html": build_email_html(locator, job_id),
                },
                timeout=30.0,
            )
        finally:
            if self._client is None:
                client.close()
        response.raise_for_status()
