"""Tests for the typer CLI."""

from PIL import Image
from typer.testing import CliRunner

from main import app

runner = CliRunner()


def test_init_writes_config(tmp_path):
    config_path = tmp_path / "config.ini"
    result = runner.invoke(
        app,
        ["init", "--gallery", str(tmp_path / "pics"), "--config", str(config_path)],
    )
    assert result.exit_code == 0
    assert config_path.exists()
    assert "[gallery]" in config_path.read_text()


def test_stats_counts_images_and_cache(tmp_path):
    pics = tmp_path / "pics"
    pics.mkdir()
    Image.new("RGB", (10, 10)).save(pics / "a.jpg", format="JPEG")
    Image.new("RGB", (10, 10)).save(pics / "b.png", format="PNG")
    cache = tmp_path / "cache"
    cache.mkdir()
    (cache / "a.jpg_300").write_bytes(b"x" * 10)

    config_path = tmp_path / "config.ini"
    runner.invoke(
        app,
        ["init", "--gallery", str(pics), "--cache", str(cache), "--config", str(config_path)],
    )
    result = runner.invoke(app, ["stats", "--config", str(config_path)])

    assert result.exit_code == 0
    assert "Images: 2" in result.output
    assert "Cached thumbnails: 1" in result.output


def test_stats_without_config_fails(tmp_path):
    result = runner.invoke(app, ["stats", "--config", str(tmp_path / "missing.ini")])
    assert result.exit_code == 1
    assert "config.ini not found" in result.output
