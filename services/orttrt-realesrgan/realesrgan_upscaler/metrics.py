from prometheus_client import Counter, Histogram, REGISTRY, generate_latest, write_to_textfile

INFER_LATENCY = Histogram("realesrgan_infer_seconds", "Inference latency in seconds")
INPUT_PIXELS = Histogram(
    "realesrgan_input_pixels", "Input image size in pixels",
    buckets=(16_384, 65_536, 262_144, 500_000, 1_000_000, 4_000_000),
)
UPSCALE_FAILURES = Counter("realesrgan_upscale_failures", "Upscale calls that raised")

def metrics_text() -> str:
    return generate_latest(REGISTRY).decode("utf-8")

def write_metrics(path: str) -> None:
    # node-exporter textfile collector format
    write_to_textfile(path, REGISTRY)
