from __future__ import annotations

import io
import logging
from typing import Optional

from PIL import Image, ImageColor, ImageDraw, ImageFont

from .models import Business

logger = logging.getLogger(__name__)

OG_WIDTH = 1200
OG_HEIGHT = 630
OG_PADDING = 80
DEFAULT_BRAND_COLOR = "#2f8f3a"

_BOLD_FONTS = ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf")
_REGULAR_FONTS = ("DejaVuSans.ttf", "Arial.ttf", "arial.ttf")


def _font(candidates: tuple[str, ...], size: int) -> ImageFont.ImageFont:
    for name in candidates:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def _background(brand_color: Optional[str]) -> tuple[int, ...]:
    try:
        return ImageColor.getrgb(brand_color or DEFAULT_BRAND_COLOR)
    except ValueError:
        logger.warning("Invalid brand colour %r, using default", brand_color)
        return ImageColor.getrgb(DEFAULT_BRAND_COLOR)


def _subtitle(business: Business) -> str:
    location = ", ".join(part for part in (business.city, business.state) if part)
    return " • ".join(part for part in (business.primary_category, location) if part)


def render_og_image(business: Business) -> bytes:
    """1200x630 PNG share card: name, category and location, Enoma credit."""
    image = Image.new("RGB", (OG_WIDTH, OG_HEIGHT), _background(business.brand_color))
    draw = ImageDraw.Draw(image)

    title_font = _font(_BOLD_FONTS, 64)
    subtitle_font = _font(_REGULAR_FONTS, 34)
    credit_font = _font(_REGULAR_FONTS, 26)

    lines = [(business.name or "", title_font, (255, 255, 255), 0)]
    subtitle = _subtitle(business)
    if subtitle:
        lines.append((subtitle, subtitle_font, (255, 255, 255), 20))
    lines.append(("Built with Enoma", credit_font, (235, 235, 235), 40))

    heights = [draw.textbbox((0, 0), text, font=font)[3] for text, font, _, _ in lines]
    total = sum(heights) + sum(gap for _, _, _, gap in lines)
    y = (OG_HEIGHT - total) // 2
    for (text, font, colour, gap), height in zip(lines, heights):
        y += gap
        draw.text((OG_PADDING, y), text, font=font, fill=colour)
        y += height

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
