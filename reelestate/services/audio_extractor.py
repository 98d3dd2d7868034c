"""Audio extraction service for converting walkthrough video to speech audio."""

import os

from reelestate.config import Settings, get_settings
from reelestate.exceptions import TranscriptionError
from reelestate.render.process import run_process


def build_extract_command(
    input_path: str,
    output_path: str,
    max_seconds: int | None = None,
    settings: Settings | None = None,
) -> list[str]:
    """Build the FFmpeg command for a mono AAC track suited to Whisper."""
    settings = settings or get_settings()
    cmd = [
        settings.ffmpeg_path,
        "-y",  # Overwrite
        "-i", str(input_path),
    ]
    if max_seconds:
        cmd.extend(["-t", str(max_seconds)])
    cmd.extend([
        "-vn",  # No video
        "-ac", "1",  # Mono
        "-ar", "44100",  # Sample rate
        "-c:a", "aac",
        "-b:a", "128k",
        str(output_path),
    ])
    return cmd


def extract_audio_for_transcription(
    input_path: str,
    output_path: str,
    max_seconds: int | None = None,
    settings: Settings | None = None,
) -> str:
    """
    Extract the narration-relevant audio from a walkthrough video.

    Args:
        input_path: Path to input video file
        output_path: Path to output .m4a file
        max_seconds: Trim the source to at most this many seconds

    Returns:
        Path to extracted audio file

    Raises:
        TranscriptionError: If the input is missing or FFmpeg fails
    """
    if not os.path.exists(input_path):
        raise TranscriptionError(f"Input file not found: {input_path}")

    cmd = build_extract_command(input_path, output_path, max_seconds, settings)
    result = run_process(cmd)
    if not result.ok:
        raise TranscriptionError(
            f"Audio extraction failed (rc={result.returncode}): {result.stderr_tail(500)}"
        )
    return str(output_path)
