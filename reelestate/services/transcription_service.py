"""
Transcription service using OpenAI Whisper API.

The walkthrough audio is only used to learn what the agent said about the
property; the final video carries the avatar's narration instead.
"""

import logging
from pathlib import Path

import httpx

from reelestate.config import Settings, get_settings
from reelestate.exceptions import TranscriptionError

logger = logging.getLogger(__name__)


class TranscriptionService:
    """
    Service for transcribing walkthrough audio using OpenAI Whisper API.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ):
        self.settings = settings or get_settings()
        self._client = client

    def transcribe(self, audio_path: str) -> str:
        """
        Transcribe an audio file to plain text.

        Args:
            audio_path: Path to the extracted audio

        Returns:
            Transcript text, stripped

        Raises:
            TranscriptionError: On API failure or an empty transcript
        """
        logger.info("Transcribing walkthrough audio (%s)", Path(audio_path).name)
        try:
            result = self._call_openai_api(audio_path)
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Whisper request failed: {e}") from e

        transcript = (result.get("text") or "").strip()
        if not transcript:
            raise TranscriptionError("Empty transcript from Whisper")
        return transcript

    def _call_openai_api(self, audio_path: str) -> dict:
        """Call OpenAI Whisper API for transcription."""
        api_key = self.settings.openai_api_key
        if not api_key:
            raise TranscriptionError("OPENAI_API_KEY not configured")

        client = self._client or httpx.Client()
        try:
            with open(audio_path, "rb") as audio_file:
                response = client.post(
                    f"{self.settings.openai_api_url}/audio/transcriptions",
                    headers={"Authorization": f"Bearer {api_key}"},
                    files={"file": (Path(audio_path).name, audio_file)},
                    data={
                        "model": self.settings.whisper_model,
                        "response_format": "json",
                    },
                    timeout=300.0,
                )
        finally:
            if self._client is None:
                client.close()

        if response.status_code != 200:
            logger.error(f"Whisper API error: {response.status_code} {response.text[:500]}")
            raise TranscriptionError(f"OpenAI API error: {response.status_code}")

        try:
            result = response.json()
        except ValueError as e:
            raise TranscriptionError("Whisper returned a non-JSON response") from e
        if not isinstance(result, dict):
            raise TranscriptionError("Whisper returned an unexpected response")
        return result
