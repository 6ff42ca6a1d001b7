from __future__ import annotations

import numpy as np
from PIL import Image

from .codec import Bitmap
from .preprocess import bitmap_to_image

DIVIDER_WIDTH = 2


def compose_comparison(original: Bitmap, upscaled: Bitmap, position: float = 50.0) -> Bitmap:
    """
    Before/after still of the comparison slider.

    The upscaled image covers the left ``position`` percent, the original
    (resized to the same size) shows through on the right, and a white
    divider marks the boundary.
    """
    if not 0.0 <= position <= 100.0:
        raise ValueError(f"slider position must be within [0, 100], got {position}")

    w, h = upscaled.width, upscaled.height
    before = bitmap_to_image(original).resize((w, h), Image.Resampling.BICUBIC)

    left = np.asarray(bitmap_to_image(upscaled))
    out = np.array(before)  # writable copy, [H,W,4]

    cut = int(round(w * position / 100.0))
    out[:, :cut] = left[:, :cut]

    x0 = min(max(cut - DIVIDER_WIDTH // 2, 0), max(w - DIVIDER_WIDTH, 0))
    out[:, x0:x0 + DIVIDER_WIDTH] = (255, 255, 255, 255)

    return Bitmap(width=w, height=h, data=out.tobytes())
