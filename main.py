"""Galilego CLI entry point."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from gallery.cache import CacheStore
from gallery.config import DEFAULT_CONFIG_PATH, GalleryConfig, load_config, write_default_config
from gallery.listing import count_images
from gallery.logging_config import setup_logging


__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="Galilego web gallery CLI")
logger = logging.getLogger("galilego")

STARTUP_BANNER = r"""
   ____       _ _ _
  / ___| __ _| (_) | ___  __ _  ___
 | |  _ / _` | | | |/ _ \/ _` |/ _ \
 | |_| | (_| | | | |  __/ (_| | (_) |
  \____|\__,_|_|_|_|\___|\__, |\___/
                         |___/
"""


def _ensure_config(config_path: Optional[Path]) -> GalleryConfig:
    try:
        return load_config(config_path)
    except FileNotFoundError:
        typer.echo("[ERROR] config.ini not found. Run: galilego init --gallery /path/to/images")
        raise typer.Exit(code=1)


@app.command()
def init(
    gallery: Path = typer.Option(..., "--gallery", help="Path to your image folders"),
    cache: Path = typer.Option(Path("imgcache"), "--cache", help="Thumbnail cache folder"),
    name: str = typer.Option("Galilego", "--name", help="Gallery name"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file to write"),
) -> None:
    """Initialize config.ini with default settings."""
    config_path = config or DEFAULT_CONFIG_PATH
    write_default_config(config_path, gallery, cache, name)
    typer.echo(f"[OK] Config created at {config_path}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Server host"),
    port: Optional[int] = typer.Option(None, "--port", help="Server port"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Start the gallery web server."""
    from web.app import run_server

    setup_logging()

    typer.echo(typer.style(STARTUP_BANNER, fg=typer.colors.CYAN, bold=True))
    gallery_config = _ensure_config(config)
    if not gallery_config.gallery_root.is_dir():
        logger.error(f"Gallery path does not exist: {gallery_config.gallery_root}")
        raise typer.Exit(code=1)
    if gallery_config.auth.enabled:
        logger.info(f"Basic authentication enabled for {len(gallery_config.auth.users)} users")

    try:
        run_server(gallery_config, host=host, port=port)
    except KeyboardInterrupt:
        pass


@app.command()
def stats(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Show gallery and thumbnail cache statistics."""
    gallery_config = _ensure_config(config)

    images = count_images(gallery_config.gallery_root)
    entries = list(CacheStore(gallery_config.cache_root).iter_entries())
    total_size = sum(entry.stat().st_size for entry in entries)
    size_mb = total_size / (1024 ** 2)

    typer.echo("Gallery Statistics:")
    typer.echo(f"  Gallery path: {gallery_config.gallery_root}")
    typer.echo(f"  Images: {images}")
    typer.echo(f"  Cache path: {gallery_config.cache_root}")
    typer.echo(f"  Cached thumbnails: {len(entries)}")
    typer.echo(f"  Cache size: {size_mb:.1f} MB")


if __name__ == "__main__":
    app()
