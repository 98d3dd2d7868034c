"""Script writer: rewrites a walkthrough transcript into avatar narration."""

import logging

import httpx

from reelestate.config import Settings, get_settings
from reelestate.exceptions import ScriptGenerationError

logger = logging.getLogger(__name__)

# Natural on-camera speaking pace
WORDS_PER_SECOND = 2.4
MIN_WORD_TARGET = 35

SCRIPT_SYSTEM_PROMPT = (
    "You are a professional real estate agent speaking on camera. "
    "Rewrite the transcript into a confident natural spoken script for an avatar narrator. "
    "No bullet points. No headings. No emojis. No stage directions. "
    "Do NOT mention 'walkthrough', 'recording', or 'this video'. "
    "Keep it concise and persuasive. Stay within the word target. "
    "End with a simple call-to-action to book a viewing."
)


def estimate_word_target(seconds: float) -> int:
    """Words that fit in ``seconds`` of narration at the speaking pace."""
    return max(MIN_WORD_TARGET, round(seconds * WORDS_PER_SECOND))


def build_script_messages(transcript: str, max_seconds: float) -> list[dict[str, str]]:
    word_target = estimate_word_target(max_seconds)
    return [
        {"role": "system", "content": SCRIPT_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": (
                f"MAX SECONDS: {max_seconds}\n"
                f"WORD TARGET: ~{word_target}\n\n"
                f"TRANSCRIPT:\n{transcript}"
            ),
        },
    ]


class ScriptWriter:
    """Turn a transcript into a spoken narration script."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client

    def rewrite(self, transcript: str, max_seconds: float) -> str:
        """Rewrite ``transcript`` into narration bounded by ``max_seconds``.

        Raises:
            ScriptGenerationError: If the API call fails or returns nothing
        """
        if not self.settings.openai_api_key:
            raise ScriptGenerationError("OPENAI_API_KEY not configured")

        logger.info(
            "Writing avatar script (max %ss, ~%d words)",
            max_seconds,
            estimate_word_target(max_seconds),
        )
        client = self._client or httpx.Client()
        try:
            response = client.post(
                f"{self.settings.openai_api_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.settings.openai_api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.settings.openai_script_model,
                    "temperature": self.settings.script_temperature,
                    "messages": build_script_messages(transcript, max_seconds),
                },
                timeout=120.0,
            )
        except httpx.HTTPError as e:
            raise ScriptGenerationError(f"Script request failed: {e}") from e
        finally:
            if self._client is None:
                client.close()

        if response.status_code != 200:
            logger.error(f"OpenAI API error: {response.status_code} {response.text[:500]}")
            raise ScriptGenerationError(f"OpenAI API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ScriptGenerationError("OpenAI returned a non-JSON response") from e
        try:
            content = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            content = ""

        script = content.strip() if isinstance(content, str) else ""
        if not script:
            raise ScriptGenerationError("Empty script from OpenAI")
        return script
