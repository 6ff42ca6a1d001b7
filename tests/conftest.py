from types import SimpleNamespace

import numpy as np
import pytest
from PIL import Image

from realesrgan_upscaler.codec import Bitmap


class FakeSession:
    """Stands in for ort.InferenceSession: nearest-neighbour 4x upscale of the NCHW input."""

    def __init__(self, scale=4, input_name="input", output_name="output", output=None):
        self.scale = scale
        self._inputs = [SimpleNamespace(name=input_name)]
        self._outputs = [SimpleNamespace(name=output_name)]
        self._output = output
        self.calls = []

    def get_inputs(self):
        return self._inputs

    def get_outputs(self):
        return self._outputs

    def run(self, output_names, feeds):
        self.calls.append(feeds)
        if self._output is not None:
            return [self._output]
        (x,) = feeds.values()
        y = x.repeat(self.scale, axis=2).repeat(self.scale, axis=3)
        return [y.astype(np.float32)]


@pytest.fixture
def fake_session():
    return FakeSession()


def make_bitmap(width, height, seed=0):
    rng = np.random.default_rng(seed)
    px = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    px[..., 3] = 255
    return Bitmap(width=width, height=height, data=px.tobytes())


@pytest.fixture
def png_path(tmp_path):
    img = Image.new("RGB", (5, 3), (10, 200, 30))
    img.putpixel((0, 0), (255, 0, 0))
    path = tmp_path / "photo.test.png"
    img.save(path)
    return path
