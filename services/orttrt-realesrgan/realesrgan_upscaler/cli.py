#!/usr/bin/env python3
import argparse
import logging
import os
import sys
import time

from .codec import InvalidInput
from .compare import compose_comparison
from .metrics import write_metrics
from .model import OrtRealEsrganUpscaler
from .preprocess import (
    ImageTooLarge,
    bitmap_to_data_url,
    bitmap_to_png,
    decode_image_b64_to_bitmap,
    load_bitmap,
    output_filename,
)
from .schemas import UpscaleResult

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Upscale an image 4x with a Real-ESRGAN ONNX model.")
    p.add_argument("input", nargs="?", help="Image to upscale (png/jpg/...), or a data:image/...;base64 URL.")
    p.add_argument("-o", "--output", help="Output PNG. Default: HD-<name>.png next to the input.")
    p.add_argument("--model", help="Path to the .onnx model (overrides ONNX_PATH / MODEL_DIR).")
    p.add_argument("--provider", choices=["cpu", "cuda", "tensorrt"], help="Execution provider (overrides PROVIDER).")
    p.add_argument("--max-pixels", type=int, help="Refuse inputs larger than this many pixels; 0 disables.")
    p.add_argument("--compare", help="Also write a before/after comparison PNG here.")
    p.add_argument("--slider", type=float, default=50.0, help="Comparison split position in percent.")
    p.add_argument("--json", action="store_true", help="Print the result as JSON on stdout.")
    p.add_argument("--data-url", action="store_true", help="Include the upscaled PNG as a data URL in the JSON result.")
    p.add_argument("--metrics-file", help="Write Prometheus metrics to this file when done.")
    p.add_argument("--info", action="store_true", help="Print engine info and exit.")
    p.add_argument("-v", "--verbose", action="store_true")
    args = p.parse_args(argv)

    if not args.info and not args.input:
        p.error("the following arguments are required: input")
    if not 0.0 <= args.slider <= 100.0:
        p.error("--slider must be within [0, 100]")
    return args


def _write(path: str, data: bytes) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)


def run(args) -> int:
    upscaler = OrtRealEsrganUpscaler.from_env(
        onnx_path=args.model, provider=args.provider, max_pixels=args.max_pixels,
    )
    if args.info:
        print(upscaler.info().model_dump_json(indent=2))
        return 0

    t0 = time.perf_counter()
    if args.input.startswith("data:"):
        source = "data-url"
        original = decode_image_b64_to_bitmap(args.input)
        default_output = output_filename("image")
    else:
        source = args.input
        original = load_bitmap(args.input)
        default_output = os.path.join(os.path.dirname(args.input), output_filename(args.input))
    upscaled = upscaler.upscale(original)

    output = args.output or default_output
    _write(output, bitmap_to_png(upscaled))
    logger.info("Saved %dx%d -> %s", upscaled.width, upscaled.height, output)

    if args.compare:
        side_by_side = compose_comparison(original, upscaled, args.slider)
        _write(args.compare, bitmap_to_png(side_by_side))
        logger.info("Saved comparison -> %s", args.compare)

    result = UpscaleResult(
        model=upscaler.model_id,
        provider=upscaler.provider,
        source=source,
        output=output,
        comparison=args.compare,
        data_url=bitmap_to_data_url(upscaled) if args.data_url else None,
        input_width=original.width,
        input_height=original.height,
        output_width=upscaled.width,
        output_height=upscaled.height,
        scale=upscaler.scale,
        elapsed_seconds=time.perf_counter() - t0,
    )
    if args.json:
        print(result.model_dump_json(indent=2))
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    try:
        code = run(args)
    except (InvalidInput, ImageTooLarge) as e:
        logger.error("%s", e)
        code = 2
    except Exception as e:
        logger.error("AI Error: %s", e)
        logger.debug("Traceback", exc_info=True)
        code = 1

    if args.metrics_file:
        write_metrics(args.metrics_file)
    return code


if __name__ == "__main__":
    sys.exit(main())
