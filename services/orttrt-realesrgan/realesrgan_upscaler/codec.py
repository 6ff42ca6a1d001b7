"""
Pixel/tensor codec.

Converts between the interleaved RGBA byte layout a decoded image comes in
(R,G,B,A per pixel, row-major, top-to-bottom) and the planar float layout
the super-resolution graph consumes (all R values, then all G, then all B).

Alpha is not modelled: it is dropped on the way in and written back as 255
on the way out.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

BytesLike = Union[bytes, bytearray, memoryview, np.ndarray]


class InvalidInput(ValueError):
    """Buffer or tensor length does not match the declared width/height."""


@dataclass(frozen=True)
class Bitmap:
    width: int
    height: int
    data: BytesLike  # RGBA, len == width * height * 4

    @property
    def num_pixels(self) -> int:
        return self.width * self.height


def _check_dims(width, height) -> int:
    for v in (width, height):
        if isinstance(v, bool) or not isinstance(v, (int, np.integer)):
            raise InvalidInput(f"width/height must be integers, got {width!r}x{height!r}")
    if width <= 0 or height <= 0:
        raise InvalidInput(f"width/height must be positive, got {width}x{height}")
    return int(width) * int(height)


def _as_uint8(data: BytesLike) -> np.ndarray:
    if isinstance(data, np.ndarray):
        if data.dtype != np.uint8:
            raise InvalidInput(f"bitmap data must be uint8, got {data.dtype}")
        return data.reshape(-1)
    return np.frombuffer(data, dtype=np.uint8)


def encode(bitmap: Bitmap) -> np.ndarray:
    """RGBA bitmap -> planar float32 tensor of length 3*W*H, values in [0, 1]."""
    hw = _check_dims(bitmap.width, bitmap.height)
    buf = _as_uint8(bitmap.data)
    if buf.size != 4 * hw:
        raise InvalidInput(
            f"bitmap buffer has {buf.size} bytes, expected {4 * hw} for {bitmap.width}x{bitmap.height} RGBA"
        )

    rgb = buf.reshape(hw, 4)[:, :3]                  # drop alpha
    planar = np.ascontiguousarray(rgb.T, dtype=np.float32)  # [3, HW], fresh copy
    planar /= 255.0
    return planar.reshape(-1)


def decode(tensor: Union[Sequence[float], np.ndarray], width: int, height: int) -> bytes:
    """Planar float tensor of length 3*W*H -> RGBA bytes of length 4*W*H."""
    hw = _check_dims(width, height)
    try:
        # one float32 working copy; everything below runs in place on it
        t = np.array(tensor, dtype=np.float32).reshape(-1)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"tensor is not a flat sequence of numbers: {e}") from e
    if t.size != 3 * hw:
        raise InvalidInput(
            f"tensor has {t.size} values, expected {3 * hw} for 3x{height}x{width}"
        )

    # saturating clamp; fmax/fmin drop NaN, so NaN -> 0 like a browser's clamped byte array
    np.fmax(t, 0.0, out=t)
    np.fmin(t, 1.0, out=t)
    np.multiply(t, 255.0, out=t)
    np.rint(t, out=t)

    out = np.empty((hw, 4), dtype=np.uint8)
    out[:, :3] = t.reshape(3, hw).T
    out[:, 3] = 255
    return out.tobytes()
