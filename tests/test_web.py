"""Tests for the gallery HTTP endpoints."""

import base64
import io
from email.utils import format_datetime, parsedate_to_datetime
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from gallery.config import AuthConfig, CacheConfig, GalleryConfig, LibraryConfig, ServerConfig, ThumbnailConfig
from web.app import create_app
from web.router import parse_width


def _write_jpeg(path, size=(800, 600)):
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color="orange").save(path, format="JPEG")
    return path


@pytest.fixture
def test_config(tmp_path):
    """Create a test configuration with a small gallery."""
    gallery = tmp_path / "gallery"
    _write_jpeg(gallery / "foo.jpg")
    _write_jpeg(gallery / "Holidays 2015" / "beach.jpg", (300, 900))
    (gallery / "Holidays 2015" / "broken.gif").write_text("nope")
    (gallery / "readme.txt").write_text("not listed")

    return GalleryConfig(
        library=LibraryConfig(path=gallery, name="Test Gallery"),
        cache=CacheConfig(path=tmp_path / "imgcache"),
        server=ServerConfig(),
        auth=AuthConfig(),
        thumbnails=ThumbnailConfig(),
    )


@pytest.fixture
def client(test_config):
    with TestClient(create_app(test_config)) as client:
        yield client


@pytest.fixture
def auth_client(test_config):
    config = GalleryConfig(
        library=test_config.library,
        cache=test_config.cache,
        server=test_config.server,
        auth=AuthConfig(enabled=True, realm="example.net", users={"bob": "bobpassword"}),
        thumbnails=test_config.thumbnails,
    )
    with TestClient(create_app(config)) as client:
        yield client


def _basic(user, password):
    token = base64.b64encode(f"{user}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


def test_home_lists_folders_and_images(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "Test Gallery" in response.text
    assert "/gallery/Holidays%202015/" in response.text
    assert "/gallery/foo.jpg?width=300" in response.text
    assert "/gallery/foo.jpg?width=1200" in response.text
    assert "readme.txt" not in response.text


def test_folder_listing_with_breadcrumbs(client):
    response = client.get("/gallery/Holidays%202015/")
    assert response.status_code == 200
    assert "/gallery/Holidays%202015/beach.jpg?width=300" in response.text
    assert "broken.gif" in response.text


def test_missing_folder_is_404(client):
    assert client.get("/gallery/nowhere/").status_code == 404


def test_original_image(client, test_config):
    response = client.get("/gallery/foo.jpg")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"
    assert response.content == (test_config.gallery_root / "foo.jpg").read_bytes()
    assert "last-modified" in response.headers


def test_thumbnail_image(client, test_config):
    response = client.get("/gallery/Holidays%202015/beach.jpg?width=300")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"
    with Image.open(io.BytesIO(response.content)) as thumb:
        assert thumb.size == (100, 300)
    assert (test_config.cache_root / "Holidays 2015" / "beach.jpg_300").is_file()


def test_expires_one_year_ahead(client):
    response = client.get("/gallery/foo.jpg?width=100")
    expires = parsedate_to_datetime(response.headers["expires"])
    assert expires > datetime.now(timezone.utc) + timedelta(days=364)


def test_invalid_width_serves_original(client, test_config):
    response = client.get("/gallery/foo.jpg?width=abc")
    assert response.status_code == 200
    assert response.content == (test_config.gallery_root / "foo.jpg").read_bytes()


def test_missing_image_is_404(client, test_config):
    response = client.get("/gallery/missing.jpg?width=100")
    assert response.status_code == 404
    assert not (test_config.cache_root / "missing.jpg_100").exists()


def test_corrupt_image_is_415(client, test_config):
    response = client.get("/gallery/Holidays%202015/broken.gif?width=100")
    assert response.status_code == 415
    assert not (test_config.cache_root / "Holidays 2015" / "broken.gif_100").exists()


def test_if_modified_since_returns_304(client):
    first = client.get("/gallery/foo.jpg?width=200")
    response = client.get(
        "/gallery/foo.jpg?width=200",
        headers={"If-Modified-Since": first.headers["last-modified"]},
    )
    assert response.status_code == 304
    assert response.content == b""


def test_stale_if_modified_since_returns_200(client):
    old = format_datetime(datetime(2000, 1, 1, tzinfo=timezone.utc), usegmt=True)
    response = client.get("/gallery/foo.jpg", headers={"If-Modified-Since": old})
    assert response.status_code == 200


def test_security_headers(client):
    response = client.get("/")
    assert response.headers["x-frame-options"] == "SAMEORIGIN"
    assert response.headers["x-content-type-options"] == "nosniff"
    assert "max-age=31536000" in response.headers["strict-transport-security"]


def test_static_assets(client):
    response = client.get("/statics/style.css")
    assert response.status_code == 200


def test_auth_required(auth_client):
    response = auth_client.get("/")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == 'Basic realm="example.net"'
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["x-frame-options"] == "SAMEORIGIN"
    assert response.text == "please authenticate"


def test_auth_wrong_password(auth_client):
    response = auth_client.get("/gallery/foo.jpg", headers=_basic("bob", "wrong"))
    assert response.status_code == 401


def test_auth_unknown_user(auth_client):
    response = auth_client.get("/", headers=_basic("mallory", "bobpassword"))
    assert response.status_code == 401


def test_auth_success(auth_client):
    response = auth_client.get("/gallery/foo.jpg?width=50", headers=_basic("bob", "bobpassword"))
    assert response.status_code == 200


def test_auth_skips_statics(auth_client):
    assert auth_client.get("/statics/style.css").status_code == 200


@pytest.mark.parametrize(
    "raw, expected",
    [(None, 0), ("", 0), ("300", 300), ("0", 0), ("-5", 0), ("abc", 0), ("12.5", 0)],
)
def test_parse_width(raw, expected):
    assert parse_width(raw) == expected


def test_cache_write_failure_is_500(test_config, tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_bytes(b"")
    config = GalleryConfig(
        library=test_config.library,
        cache=CacheConfig(path=blocker),
        server=test_config.server,
        auth=test_config.auth,
        thumbnails=test_config.thumbnails,
    )
    with TestClient(create_app(config)) as client:
        response = client.get("/gallery/foo.jpg?width=100")

    assert response.status_code == 500
    assert response.json() == {"detail": "Unable to serve image"}


def test_symlink_outside_gallery_is_404(client, test_config, tmp_path):
    secret = tmp_path / "secret.jpg"
    secret.write_bytes(b"TOPSECRET")
    (test_config.gallery_root / "leak.jpg").symlink_to(secret)

    for url in ("/gallery/leak.jpg", "/gallery/leak.jpg?width=100"):
        response = client.get(url)
        assert response.status_code == 404
        assert b"TOPSECRET" not in response.content


def test_app_lifespan_can_run_twice(test_config):
    app = create_app(test_config)
    for _ in range(2):
        with TestClient(app) as client:
            assert client.get("/gallery/foo.jpg?width=64").status_code == 200
