"""Pixel comparison of before/after focus screenshots.

Both PNG buffers are decoded to RGBA; the ratio is the share of raw
channel bytes that differ. Different sizes compare over the overlapping
region and count the remainder as changed.
"""

from __future__ import annotations

import io

from PIL import Image, ImageChops

FOCUS_PADDING_PX = 6


def padded_box(rect: dict, padding: int = FOCUS_PADDING_PX) -> dict | None:
    """Expand an element rect by padding, clipped to non-negative coordinates."""
    try:
        x = max(0.0, float(rect["x"]) - padding)
        y = max(0.0, float(rect["y"]) - padding)
        width = float(rect["width"]) + 2 * padding
        height = float(rect["height"]) + 2 * padding
    except (KeyError, TypeError, ValueError):
        return None
    if width <= 2 * padding or height <= 2 * padding:
        return None
    return {"x": x, "y": y, "width": width, "height": height}


def _decode(png: bytes) -> Image.Image:
    with Image.open(io.BytesIO(png)) as img:
        return img.convert("RGBA")


def byte_diff_ratio(before_png: bytes, after_png: bytes) -> float:
    """Fraction of RGBA bytes that differ between two screenshots (0.0-1.0)."""
    if not before_png or not after_png:
        return 0.0
    if before_png == after_png:
        return 0.0
    before = _decode(before_png)
    after = _decode(after_png)

    w = min(before.width, after.width)
    h = min(before.height, after.height)
    total = max(before.width * before.height, after.width * after.height) * 4
    if total == 0:
        return 0.0

    diff = ImageChops.difference(before.crop((0, 0, w, h)), after.crop((0, 0, w, h)))
    overlap = w * h * 4
    # histogram() is 256 bins per band; bin 0 of each band counts unchanged bytes
    hist = diff.histogram()
    unchanged = sum(hist[band * 256] for band in range(len(diff.getbands())))
    changed = overlap - unchanged + (total - overlap)
    return changed / total
