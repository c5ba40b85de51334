"""Config management for Galilego.

Reads `config.ini` from DATA_DIR (env var, defaults to the project root).
The loaded `GalleryConfig` is passed explicitly to the worker and the web app.
"""

from __future__ import annotations

import configparser
import dataclasses
import os
import pathlib
import sys
from typing import Optional

from .logging_config import get_logger

logger = get_logger(__name__)


def _get_project_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(sys.executable).resolve().parent
    return pathlib.Path(__file__).resolve().parents[1]


PROJECT_ROOT = _get_project_root()

# DATA_DIR holds config.ini and galilego.log.
# Set via env var for Docker; defaults to PROJECT_ROOT for standalone use.
DATA_DIR = pathlib.Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"


@dataclasses.dataclass(frozen=True)
class LibraryConfig:
    path: pathlib.Path
    name: str = "Galilego"


@dataclasses.dataclass(frozen=True)
class CacheConfig:
    path: pathlib.Path


@dataclasses.dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8064
    certfile: Optional[pathlib.Path] = None
    keyfile: Optional[pathlib.Path] = None

    @property
    def tls_enabled(self) -> bool:
        return self.certfile is not None and self.keyfile is not None


@dataclasses.dataclass(frozen=True)
class AuthConfig:
    """Basic auth settings. `users` maps username to password."""

    enabled: bool = False
    realm: str = "galilego"
    users: dict[str, str] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class ThumbnailConfig:
    quality: int = 85
    thumb_width: int = 300
    slide_width: int = 1200


@dataclasses.dataclass(frozen=True)
class GalleryConfig:
    library: LibraryConfig
    cache: CacheConfig
    server: ServerConfig
    auth: AuthConfig
    thumbnails: ThumbnailConfig

    @property
    def gallery_root(self) -> pathlib.Path:
        return self.library.path

    @property
    def cache_root(self) -> pathlib.Path:
        return self.cache.path


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _optional_path(value: str) -> Optional[pathlib.Path]:
    value = value.strip()
    if not value:
        return None
    return pathlib.Path(value).expanduser()


def load_config(config_path: Optional[pathlib.Path] = None) -> GalleryConfig:
    """Load configuration from config.ini.

    Defaults to `config.ini` in DATA_DIR. Relative gallery and cache paths
    are resolved against the directory holding the config file.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    parser = configparser.ConfigParser(interpolation=None)
    # Usernames are case sensitive.
    parser.optionxform = str
    parser.read(path)
    base_dir = path.absolute().parent

    def _dir(section: str, fallback: str) -> pathlib.Path:
        value = pathlib.Path(parser.get(section, "path", fallback=fallback)).expanduser()
        return value if value.is_absolute() else base_dir / value

    library = LibraryConfig(
        path=_dir("gallery", "gallery"),
        name=parser.get("gallery", "name", fallback="Galilego"),
    )
    cache = CacheConfig(path=_dir("cache", "imgcache"))

    server = ServerConfig(
        host=parser.get("server", "host", fallback="0.0.0.0"),
        port=parser.getint("server", "port", fallback=8064),
        certfile=_optional_path(parser.get("server", "certfile", fallback="")),
        keyfile=_optional_path(parser.get("server", "keyfile", fallback="")),
    )

    users: dict[str, str] = {}
    if parser.has_section("users"):
        users = {
            name.strip(): password
            for name, password in parser.items("users")
            if name.strip()
        }
    auth = AuthConfig(
        enabled=_parse_bool(parser.get("auth", "enabled", fallback="false"), False),
        realm=parser.get("auth", "realm", fallback=server.host),
        users=users,
    )
    if auth.enabled and not auth.users:
        logger.warning("Authentication enabled but no [users] configured; every request will be rejected")

    thumbs = ThumbnailConfig(
        quality=parser.getint("thumbnails", "quality", fallback=85),
        thumb_width=parser.getint("thumbnails", "thumb_width", fallback=300),
        slide_width=parser.getint("thumbnails", "slide_width", fallback=1200),
    )

    return GalleryConfig(
        library=library,
        cache=cache,
        server=server,
        auth=auth,
        thumbnails=thumbs,
    )


def write_default_config(
    config_path: pathlib.Path,
    gallery_path: pathlib.Path,
    cache_path: pathlib.Path,
    name: str = "Galilego",
) -> pathlib.Path:
    """Write a default config.ini pointing at the given gallery and cache."""
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str

    parser["gallery"] = {
        "path": str(gallery_path.expanduser()),
        "name": name,
    }
    parser["cache"] = {
        "path": str(cache_path.expanduser()),
    }
    parser["server"] = {
        "host": "0.0.0.0",
        "port": "8064",
        "certfile": "",
        "keyfile": "",
    }
    parser["auth"] = {
        "enabled": "false",
        "realm": "galilego",
    }
    parser["users"] = {}
    parser["thumbnails"] = {
        "quality": "85",
        "thumb_width": "300",
        "slide_width": "1200",
    }

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        parser.write(handle)
    return config_path
