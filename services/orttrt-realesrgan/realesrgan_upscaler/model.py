import os
import glob
import logging
from typing import Callable, Optional

import numpy as np
import onnxruntime as ort

from .codec import Bitmap, decode
from .metrics import INFER_LATENCY, INPUT_PIXELS, UPSCALE_FAILURES
from .preprocess import DEFAULT_MAX_PIXELS, check_image_size, image_to_tensor
from .schemas import EngineInfo

logger = logging.getLogger(__name__)

ProgressFn = Callable[[str], None]

# Real-ESRGAN x4 graphs are exported with a fixed 4x factor
DEFAULT_SCALE = 4


class OrtRealEsrganUpscaler:
    def __init__(self, model_id: str, sess: ort.InferenceSession, provider: str,
                 scale: int = DEFAULT_SCALE, max_pixels: int = DEFAULT_MAX_PIXELS):
        if scale <= 0:
            raise ValueError(f"scale must be positive, got {scale}")
        self.model_id = model_id
        self.sess = sess
        self.provider = provider
        self.scale = scale
        self.max_pixels = max_pixels

        self.input_names = [i.name for i in sess.get_inputs()]
        self.output_names = [o.name for o in sess.get_outputs()]

    @staticmethod
    def _find_onnx(model_dir: str) -> str:
        cands = sorted(glob.glob(os.path.join(model_dir, "*.onnx")))
        if not cands:
            raise FileNotFoundError(f"No .onnx found under {model_dir}")
        return cands[0]

    @classmethod
    def from_env(cls, onnx_path: Optional[str] = None, provider: Optional[str] = None,
                 max_pixels: Optional[int] = None) -> "OrtRealEsrganUpscaler":
        model_dir = os.getenv("MODEL_DIR", "/models/realesrgan")
        onnx_path = onnx_path or os.getenv("ONNX_PATH", "").strip() or cls._find_onnx(model_dir)

        provider = (provider or os.getenv("PROVIDER", "cpu")).lower()
        scale = int(os.getenv("SCALE", str(DEFAULT_SCALE)))
        if max_pixels is None:
            max_pixels = int(os.getenv("MAX_PIXELS", str(DEFAULT_MAX_PIXELS)))

        logger.info("Initializing AI Engine... (%s, provider=%s)", onnx_path, provider)
        sess = cls._make_session(onnx_path, provider)
        model_id = os.path.splitext(os.path.basename(onnx_path))[0]
        return cls(model_id=model_id, sess=sess, provider=provider, scale=scale, max_pixels=max_pixels)

    @staticmethod
    def _make_session(onnx_path: str, provider: str) -> ort.InferenceSession:
        if not os.path.isfile(onnx_path):
            raise FileNotFoundError(f"ONNX model not found: {onnx_path}")

        so = ort.SessionOptions()
        so.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL

        if provider == "tensorrt":
            trt_fp16 = os.getenv("TRT_FP16", "1") == "1"
            trt_engine_cache = os.getenv("TRT_ENGINE_CACHE", "/cache/trt_engines")
            trt_timing_cache = os.getenv("TRT_TIMING_CACHE", "/cache/trt_timing.cache")
            os.makedirs(trt_engine_cache, exist_ok=True)
            os.makedirs(os.path.dirname(trt_timing_cache), exist_ok=True)

            providers = ["TensorrtExecutionProvider", "CUDAExecutionProvider", "CPUExecutionProvider"]
            provider_options = [
                {
                    "trt_fp16_enable": int(trt_fp16),
                    "trt_engine_cache_enable": 1,
                    "trt_engine_cache_path": trt_engine_cache,
                    "trt_timing_cache_enable": 1,
                    "trt_timing_cache_path": trt_timing_cache,
                },
                {},
                {},
            ]
        elif provider == "cuda":
            providers = ["CUDAExecutionProvider", "CPUExecutionProvider"]
            provider_options = [{}, {}]
        else:
            providers = ["CPUExecutionProvider"]
            provider_options = [{}]

        try:
            return ort.InferenceSession(onnx_path, sess_options=so, providers=providers,
                                        provider_options=provider_options)
        except Exception as e:
            if providers == ["CPUExecutionProvider"]:
                raise
            # a model CPU can't load either fails again below with the same error
            logger.warning("Session with %s failed (%s); retrying on CPU", providers[0], e)
            return ort.InferenceSession(onnx_path, sess_options=so, providers=["CPUExecutionProvider"])

    def info(self) -> EngineInfo:
        return EngineInfo(
            model=self.model_id,
            provider=self.provider,
            scale=self.scale,
            input_names=self.input_names,
            output_names=self.output_names,
        )

    def _report(self, progress: Optional[ProgressFn], msg: str) -> None:
        logger.info(msg)
        if progress is not None:
            progress(msg)

    def upscale(self, bitmap: Bitmap, progress: Optional[ProgressFn] = None) -> Bitmap:
        try:
            return self._upscale(bitmap, progress)
        except Exception:
            UPSCALE_FAILURES.inc()
            raise

    def _upscale(self, bitmap: Bitmap, progress: Optional[ProgressFn]) -> Bitmap:
        self._report(progress, "Preparing Image...")
        check_image_size(bitmap, self.max_pixels)
        pixel_values = image_to_tensor(bitmap)  # [1,3,H,W] float32
        INPUT_PIXELS.observe(bitmap.num_pixels)

        # Most Real-ESRGAN exports name the image input "input"; otherwise use the first one
        input_name = "input" if "input" in self.input_names else self.input_names[0]
        feeds = {input_name: pixel_values}

        self._report(progress, "Upscaling...")
        with INFER_LATENCY.time():
            outs = self.sess.run(None, feeds)

        self._report(progress, "Rendering...")
        x = np.asarray(outs[0])
        logger.debug("Model output %s %s", x.shape, x.dtype)
        out_w, out_h = bitmap.width * self.scale, bitmap.height * self.scale
        expected = (1, 3, out_h, out_w)
        if tuple(x.shape) != expected:
            raise RuntimeError(
                f"Unexpected model output shape {tuple(x.shape)}, expected {expected} "
                f"for a {self.scale}x model"
            )

        data = decode(x, out_w, out_h)
        self._report(progress, "Done!")
        return Bitmap(width=out_w, height=out_h, data=data)
