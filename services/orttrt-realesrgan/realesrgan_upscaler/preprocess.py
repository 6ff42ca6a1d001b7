import base64
import io
import os
from typing import Union

import numpy as np
from PIL import Image

from .codec import Bitmap, encode

# inputs above 1000x1000 pixels are refused unless the cap is raised
DEFAULT_MAX_PIXELS = 1000 * 1000

ImageSource = Union[str, os.PathLike, bytes, Image.Image]


class ImageTooLarge(ValueError):
    pass


def image_to_bitmap(img: Image.Image) -> Bitmap:
    img = img.convert("RGBA")
    w, h = img.size
    return Bitmap(width=w, height=h, data=img.tobytes())


def load_bitmap(src: ImageSource) -> Bitmap:
    if isinstance(src, Image.Image):
        return image_to_bitmap(src)
    if isinstance(src, (bytes, bytearray)):
        src = io.BytesIO(src)
    with Image.open(src) as img:
        return image_to_bitmap(img)


def decode_image_b64_to_bitmap(image_b64: str) -> Bitmap:
    s = image_b64.strip()
    if s.startswith("data:"):
        s = s.split(",", 1)[1]
    raw = base64.b64decode(s)
    return load_bitmap(raw)


def check_image_size(bitmap: Bitmap, max_pixels: int = DEFAULT_MAX_PIXELS) -> None:
    if max_pixels <= 0:
        return
    if bitmap.num_pixels > max_pixels:
        raise ImageTooLarge(
            f"Image too large! {bitmap.width}x{bitmap.height} exceeds {max_pixels} pixels; "
            "use a smaller image (e.g. under 1000px per side)."
        )


def image_to_tensor(bitmap: Bitmap) -> np.ndarray:
    # planar float32 -> NCHW [1,3,H,W]
    return encode(bitmap).reshape(1, 3, bitmap.height, bitmap.width)


def bitmap_to_image(bitmap: Bitmap) -> Image.Image:
    return Image.frombytes("RGBA", (bitmap.width, bitmap.height), bytes(bitmap.data))


def bitmap_to_png(bitmap: Bitmap) -> bytes:
    buf = io.BytesIO()
    bitmap_to_image(bitmap).save(buf, format="PNG")
    return buf.getvalue()


def bitmap_to_data_url(bitmap: Bitmap) -> str:
    return "data:image/png;base64," + base64.b64encode(bitmap_to_png(bitmap)).decode("ascii")


def output_filename(source_name: str) -> str:
    base = os.path.basename(str(source_name))
    return f"HD-{base.split('.')[0]}.png"
