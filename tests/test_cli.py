import base64
import json

import pytest
from PIL import Image

from realesrgan_upscaler import cli
from realesrgan_upscaler.model import OrtRealEsrganUpscaler

from conftest import FakeSession


@pytest.fixture
def fake_env(monkeypatch):
    made = {}

    def fake_from_env(onnx_path=None, provider=None, max_pixels=None):
        made.update(onnx_path=onnx_path, provider=provider, max_pixels=max_pixels)
        return OrtRealEsrganUpscaler(
            "realesrgan-x4", FakeSession(), provider=provider or "cpu",
            max_pixels=1_000_000 if max_pixels is None else max_pixels,
        )

    monkeypatch.setattr(OrtRealEsrganUpscaler, "from_env", staticmethod(fake_from_env))
    return made


def test_default_output_name(png_path, fake_env):
    assert cli.main([str(png_path)]) == 0
    out = png_path.parent / "HD-photo.png"
    with Image.open(out) as img:
        assert img.size == (20, 12)
        assert img.getpixel((0, 0))[:3] == (255, 0, 0)


def test_json_and_compare(png_path, tmp_path, fake_env, capsys):
    out = tmp_path / "out" / "big.png"
    cmp_path = tmp_path / "cmp.png"
    code = cli.main([
        str(png_path), "-o", str(out), "--compare", str(cmp_path), "--slider", "25",
        "--json", "--provider", "cuda", "--model", "/m/x4.onnx",
    ])
    assert code == 0
    assert out.exists()
    assert cmp_path.exists()

    result = json.loads(capsys.readouterr().out)
    assert result["output_width"] == 20
    assert result["output_height"] == 12
    assert result["input_width"] == 5
    assert result["scale"] == 4
    assert result["provider"] == "cuda"
    assert result["comparison"] == str(cmp_path)
    assert fake_env["onnx_path"] == "/m/x4.onnx"


def test_too_large_exit_code(png_path, fake_env, caplog):
    assert cli.main([str(png_path), "--max-pixels", "4"]) == 2
    assert "too large" in caplog.text


def test_other_errors_exit_one(tmp_path, fake_env):
    assert cli.main([str(tmp_path / "missing.png")]) == 1


def test_info(fake_env, capsys):
    assert cli.main(["--info"]) == 0
    info = json.loads(capsys.readouterr().out)
    assert info["model"] == "realesrgan-x4"
    assert info["input_names"] == ["input"]


def test_metrics_file(png_path, tmp_path, fake_env):
    metrics = tmp_path / "realesrgan.prom"
    assert cli.main([str(png_path), "--metrics-file", str(metrics)]) == 0
    text = metrics.read_text()
    assert "realesrgan_infer_seconds" in text
    assert "realesrgan_input_pixels" in text


def test_input_required():
    with pytest.raises(SystemExit):
        cli.main([])


def test_slider_range():
    with pytest.raises(SystemExit):
        cli.main(["x.png", "--slider", "150"])


def test_data_url_in_and_out(png_path, tmp_path, fake_env, capsys, monkeypatch):
    monkeypatch.chdir(tmp_path)
    url = "data:image/png;base64," + base64.b64encode(png_path.read_bytes()).decode()

    assert cli.main([url, "--json", "--data-url"]) == 0
    result = json.loads(capsys.readouterr().out)

    assert result["source"] == "data-url"
    assert result["output"] == "HD-image.png"
    assert (tmp_path / "HD-image.png").exists()
    assert result["data_url"].startswith("data:image/png;base64,")
    assert result["output_width"] == 20


def test_no_data_url_by_default(png_path, fake_env, capsys):
    assert cli.main([str(png_path), "--json"]) == 0
    assert json.loads(capsys.readouterr().out)["data_url"] is None


def test_logs_under_module_name(png_path, fake_env, caplog):
    cli.main([str(png_path), "--max-pixels", "4"])
    assert any(r.name == "realesrgan_upscaler.cli" and r.levelname == "ERROR" for r in caplog.records)
