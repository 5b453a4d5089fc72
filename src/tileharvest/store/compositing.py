"""Alpha compositing of tiles written to the same coordinate."""

from __future__ import annotations

from typing import Optional

from PIL import Image


def merge_tiles(
    existing: Optional[Image.Image],
    new: Optional[Image.Image],
) -> Optional[Image.Image]:
    """Overlay ``new`` on ``existing`` (source-over) anchored at the top-left corner.

    The canvas takes the larger width and height of the two inputs. When
    either input is ``None`` the other one is returned unchanged.
    """

    if existing is None:
        return new
    if new is None:
        return existing
    width = max(existing.width, new.width)
    height = max(existing.height, new.height)
    canvas = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    canvas.alpha_composite(existing.convert("RGBA"), dest=(0, 0))
    canvas.alpha_composite(new.convert("RGBA"), dest=(0, 0))
    return canvas
