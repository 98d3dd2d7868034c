"""Lower-third branding overlay.

The bar and its text are drawn into a transparent PNG with Pillow. FFmpeg
only ever sees the image, so branding strings never reach the filter graph.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from reelestate.config import Settings, get_settings

logger = logging.getLogger(__name__)

FALLBACK_FONTS = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
)

TEXT_PADDING_X = 48
LINE_GAP = 10


@dataclass
class LowerThirdText:
    """Text lines shown on the bar. Empty lines are skipped."""

    headline: str
    subline: str = ""
    tag: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> "LowerThirdText":
        return cls(
            headline=settings.lower_third_headline,
            subline=settings.lower_third_subline,
            tag=settings.lower_third_tag,
        )

    def lines(self) -> list[tuple[str, float]]:
        """Non-empty lines paired with their size relative to the bar height."""
        sized = [(self.headline, 0.30), (self.subline, 0.18), (self.tag, 0.14)]
        return [(text.strip(), scale) for text, scale in sized if text and text.strip()]


def _load_font(font_file: str, size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    for path in (font_file, *FALLBACK_FONTS):
        if not path:
            continue
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue
    logger.warning("No TrueType font found for lower third, using PIL default")
    return ImageFont.load_default()


def render_lower_third(
    output_path: str | Path,
    text: LowerThirdText | None = None,
    settings: Settings | None = None,
) -> Path:
    """Draw the lower-third bar as an RGBA PNG sized canvas width x bar height."""
    settings = settings or get_settings()
    text = text or LowerThirdText.from_settings(settings)
    output_path = Path(output_path)

    width = settings.canvas_width
    height = settings.lower_third_height
    bar_alpha = int(round(settings.lower_third_bar_alpha * 255))

    img = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    draw.rectangle([(0, 0), (width - 1, height - 1)], fill=(0, 0, 0, bar_alpha))

    lines = text.lines()
    fonts = [_load_font(settings.font_file, max(12, int(height * scale))) for _, scale in lines]
    heights = []
    for (line, _), font in zip(lines, fonts):
        bbox = draw.textbbox((0, 0), line, font=font)
        heights.append(bbox[3] - bbox[1])

    block_height = sum(heights) + LINE_GAP * max(0, len(lines) - 1)
    y = max(0, (height - block_height) // 2)
    for (line, _), font, line_height in zip(lines, fonts, heights):
        bbox = draw.textbbox((0, 0), line, font=font)
        draw.text((TEXT_PADDING_X, y - bbox[1]), line, font=font, fill=(255, 255, 255, 255))
        y += line_height + LINE_GAP

    output_path.parent.mkdir(parents=True, exist_ok=True)
    img.save(output_path, "PNG")
    return output_path


def slide_in_x_expression(x0: int, seconds: float) -> str:
    """Overlay x expression that slides in from the left and rests at ``x0`` from ``t=seconds``."""
    if seconds <= 0:
        return str(x0)
    return f"if(lt(t,{seconds}),{x0}-({x0}+w)*(1-t/{seconds}),{x0})"
