"""Final composite with FFmpeg filter_complex.

Input layout:
    0  walkthrough (background, its audio is discarded)
    1  keyed avatar video (provides the narration audio)
    2+ optional branding PNGs: lower third, then logo

The filter graph is built by a pure function so the exact FFmpeg invocation
can be inspected without running it.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from reelestate.config import Settings, get_settings
from reelestate.exceptions import CompositionError
from reelestate.render.lower_third import slide_in_x_expression
from reelestate.render.process import ProcessResult, run_process

logger = logging.getLogger(__name__)


@dataclass
class BrandingAssets:
    """Pre-rendered overlay images. ``None`` skips that layer."""

    lower_third_path: Path | None = None
    logo_path: Path | None = None


def build_filter_graph(
    settings: Settings,
    lower_third_input: int | None = None,
    logo_input: int | None = None,
) -> str:
    """Build the filter_complex string. The final video stream is labelled ``[outv]``."""
    w = settings.canvas_width
    h = settings.canvas_height

    filters = [
        f"[0:v]scale={w}:{h}:force_original_aspect_ratio=decrease,"
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2:color=black,setsar=1[bg]"
    ]

    avatar = (
        f"[1:v]format=rgba,"
        f"colorkey={settings.key_color}:{settings.key_similarity}:{settings.key_blend}"
    )
    if settings.edge_soften > 0:
        avatar += f",boxblur={settings.edge_soften}:{settings.edge_soften}"
    if settings.avatar_opacity < 1.0:
        avatar += f",colorchannelmixer=aa={settings.avatar_opacity}"
    avatar += f",scale={settings.avatar_width}:-2[av]"
    filters.append(avatar)
    filters.append(
        f"[bg][av]overlay=x=W-w-{settings.avatar_margin_x}:y=H-h-{settings.avatar_margin_y}[v1]"
    )
    current = "[v1]"

    if lower_third_input is not None:
        x0 = settings.lower_third_x
        if settings.lower_third_slide_in:
            x_expr = f"'{slide_in_x_expression(x0, settings.lower_third_slide_seconds)}'"
        else:
            x_expr = str(x0)
        filters.append(f"[{lower_third_input}:v]format=rgba[lt]")
        filters.append(f"{current}[lt]overlay=x={x_expr}:y={settings.lower_third_y}[v2]")
        current = "[v2]"

    if logo_input is not None:
        filters.append(f"[{logo_input}:v]scale={settings.logo_width}:-1,format=rgba[lg]")
        filters.append(
            f"{current}[lg]overlay=x=W-w-{settings.logo_margin_x}:y={settings.logo_margin_y}[v3]"
        )
        current = "[v3]"

    filters.append(f"{current}null[outv]")
    return ";".join(filters)


class Compositor:
    """Layer avatar and branding over the walkthrough and encode the result."""

    def __init__(
        self,
        settings: Settings | None = None,
        runner: Callable[[list[str]], ProcessResult] = run_process,
    ) -> None:
        self.settings = settings or get_settings()
        self.runner = runner

    def build_command(
        self,
        background_path: str | Path,
        avatar_path: str | Path,
        branding: BrandingAssets | None,
        output_path: str | Path,
    ) -> list[str]:
        """Build the full FFmpeg argument list."""
        branding = branding or BrandingAssets()
        cmd = [
            self.settings.ffmpeg_path,
            "-y",
            "-i", str(background_path),
            "-i", str(avatar_path),
        ]

        next_input = 2
        lower_third_input = None
        logo_input = None
        if branding.lower_third_path is not None:
            cmd.extend(["-loop", "1", "-i", str(branding.lower_third_path)])
            lower_third_input = next_input
            next_input += 1
        if branding.logo_path is not None:
            cmd.extend(["-loop", "1", "-i", str(branding.logo_path)])
            logo_input = next_input

        cmd.extend([
            "-filter_complex",
            build_filter_graph(self.settings, lower_third_input, logo_input),
            "-map", "[outv]",
            "-map", "1:a?",
            "-shortest",
            "-c:v", "libx264",
            "-preset", self.settings.render_preset,
            "-crf", str(self.settings.render_crf),
            "-pix_fmt", "yuv420p",
            "-c:a", "aac",
            "-b:a", self.settings.render_audio_bitrate,
            "-movflags", "+faststart",
            str(output_path),
        ])
        return cmd

    def compose(
        self,
        background_path: str | Path,
        avatar_path: str | Path,
        branding: BrandingAssets | None,
        output_path: str | Path,
    ) -> Path:
        """Render the composite to ``output_path``.

        Raises:
            CompositionError: If an input is missing or FFmpeg fails. Any
                partial output is removed.
        """
        output_path = Path(output_path)
        for label, path in (("background", background_path), ("avatar", avatar_path)):
            if not Path(path).exists():
                raise CompositionError(f"{label} input not found: {Path(path).name}")

        cmd = self.build_command(background_path, avatar_path, branding, output_path)
        result = self.runner(cmd)
        if not result.ok or not output_path.exists():
            output_path.unlink(missing_ok=True)
            tail = result.stderr_tail(500).strip()
            raise CompositionError(f"ffmpeg exited with code {result.returncode}: {tail}")

        logger.info("Composite written to %s", output_path)
        return output_path
