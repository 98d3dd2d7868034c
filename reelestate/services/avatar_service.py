"""Avatar video requests against the HeyGen generate API."""

import logging
from urllib.parse import urlencode

import httpx

from reelestate.config import Settings, get_settings
from reelestate.exceptions import ProviderRequestError

logger = logging.getLogger(__name__)


class AvatarVideoRequester:
    """Submit narration scripts to the avatar provider.

    The provider renders the avatar on a solid key-colour background and calls
    back with the finished video; the callback URL carries the job id and the
    shared webhook secret so the bridge can route and verify it.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client

    def build_callback_url(self, job_id: str) -> str:
        params = {}
        if self.settings.heygen_webhook_secret:
            params["token"] = self.settings.heygen_webhook_secret
        params["job_id"] = str(job_id)
        base = self.settings.heygen_callback_base_url
        separator = "&" if "?" in base else "?"
        return f"{base}{separator}{urlencode(params)}"

    def build_payload(self, script: str, avatar_variant: str, job_id: str) -> dict:
        variant = (avatar_variant or "female").lower()
        return {
            "video_inputs": [
                {
                    "character": {
                        "type": "avatar",
                        "avatar_id": self.settings.avatar_id_for(variant),
                    },
                    "voice": {
                        "type": "text",
                        "voice_id": self.settings.voice_id_for(variant),
                        "input_text": script.strip(),
                    },
                    "background": {"type": "color", "value": self.settings.key_color_hex},
                }
            ],
            "dimension": {
                "width": self.settings.canvas_width,
                "height": self.settings.canvas_height,
            },
            "callback_url": self.build_callback_url(job_id),
        }

    def request_avatar_video(self, script: str, avatar_variant: str, job_id: str) -> str:
        """Request an avatar video and return the provider's video id.

        Not retried: a failed request fails the job.

        Raises:
            ProviderRequestError: Non-2xx response or no video id in the body
        """
        payload = self.build_payload(script, avatar_variant, job_id)
        logger.info("Creating HeyGen video for job %s (variant=%s)", job_id, avatar_variant)

        client = self._client or httpx.Client()
        try:
            response = client.post(
                self.settings.heygen_api_url,
                headers={
                    "Content-Type": "application/json",
                    "X-Api-Key": self.settings.heygen_api_key,
                },
                json=payload,
                timeout=self.settings.heygen_request_timeout_seconds,
            )
        except httpx.HTTPError as e:
            raise ProviderRequestError(f"HeyGen request failed: {e}") from e
        finally:
            if self._client is None:
                client.close()

        if not response.is_success:
            logger.error(f"HeyGen error: {response.status_code} {response.text[:500]}")
            raise ProviderRequestError(f"HeyGen generate failed ({response.status_code})")

        try:
            data = response.json()
        except ValueError:
            data = None

        video_id = None
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            video_id = data["data"].get("video_id")
        if not video_id:
            logger.error("HeyGen response without video_id: %s", response.text[:500])
            raise ProviderRequestError("HeyGen did not return video_id")

        logger.info("HeyGen video id for job %s: %s", job_id, video_id)
        return str(video_id)
