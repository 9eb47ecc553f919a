"""
Receipt logo loading and the built-in placeholder logo.

- Resolve a font from env/common locations
- Render the default 240x80 "LOGO" placeholder (white text on black)
- Load a configured logo image from disk
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, List, Optional

from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

LOGO_WIDTH = 240
LOGO_HEIGHT = 80
LOGO_TEXT = "LOGO"
LOGO_FONT_SIZE = 48


def resolve_font(font_size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """
    Resolve a TTF font, preferring:
    1) RECEIPTPRINTER_FONT_PATH environment variable
    2) A list of common system font paths (DejaVu, FreeSans, Liberation, Noto)
    3) A DejaVuSans.ttf shipped inside the Pillow installation
    Falls back to Pillow's default font if none are found.
    """
    candidates: List[str] = []
    env_path = os.environ.get("RECEIPTPRINTER_FONT_PATH")
    if env_path:
        candidates.append(env_path)

    common: Sequence[str] = (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
        "/usr/share/fonts/truetype/noto/NotoSans-Regular.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/TTF/DejaVuSans.ttf",
    )
    for pth in common:
        if pth not in candidates:
            candidates.append(pth)

    for pth in candidates:
        try:
            return ImageFont.truetype(pth, font_size)
        except OSError:
            continue

    try:
        import PIL  # type: ignore

        pil_dir = Path(PIL.__file__).resolve().parent
        for rel in ("fonts/DejaVuSans.ttf", "Tests/fonts/DejaVuSans.ttf"):
            candidate = pil_dir / rel
            if candidate.exists():
                return ImageFont.truetype(str(candidate), font_size)
    except Exception:
        pass

    logger.debug("No TTF font found; using Pillow's default font")
    try:
        return ImageFont.load_default(size=font_size)
    except TypeError:
        # Pillow < 10.1 has no sized default font
        return ImageFont.load_default()


def render_placeholder_logo(
    width: int = LOGO_WIDTH,
    height: int = LOGO_HEIGHT,
    text: str = LOGO_TEXT,
) -> Image.Image:
    """Black box with centred white text."""
    img = Image.new("RGB", (width, height), (0, 0, 0))
    draw = ImageDraw.Draw(img)
    font = resolve_font(LOGO_FONT_SIZE)
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = (width - (right - left)) / 2 - left
    y = (height - (bottom - top)) / 2 - top
    draw.text((x, y), text, fill=(255, 255, 255), font=font)
    return img


def load_logo(settings: Mapping[str, Any]) -> Optional[Image.Image]:
    """
    Return the logo to print for settings, or None when logos are disabled.

    A configured logo_path that cannot be read falls back to the placeholder.
    """
    if not settings.get("print_logo", True):
        return None
    path = settings.get("logo_path")
    if path:
        try:
            with Image.open(path) as img:
                img.load()
                return img.copy()
        except (OSError, ValueError) as e:
            logger.warning("Logo %s could not be loaded, using placeholder: %s", path, e)
    return render_placeholder_logo()


__all__ = ["LOGO_HEIGHT", "LOGO_TEXT", "LOGO_WIDTH", "load_logo", "render_placeholder_logo", "resolve_font"]
