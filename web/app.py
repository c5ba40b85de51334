"""FastAPI application for the Galilego web gallery.

Exposes:
- GET /                       (gallery root listing)
- GET /gallery/{path}         (directory listing, or image with ?width=N)
- GET /statics/{file}         (static assets, no auth)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware

from gallery.config import GalleryConfig
from gallery.gateway import ImageGateway
from gallery.logging_config import get_logger

from . import auth as basic_auth
from .router import STATIC_DIR, router

logger = get_logger(__name__)

SECURITY_HEADERS = {
    "X-Frame-Options": "SAMEORIGIN",
    "X-Content-Type-Options": "nosniff",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response, including auth challenges."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class BasicAuthMiddleware(BaseHTTPMiddleware):
    """Require valid basic auth credentials when enabled in config."""

    async def dispatch(self, request, call_next):
        auth_config = request.app.state.config.auth
        if not auth_config.enabled:
            return await call_next(request)
        if request.url.path.startswith("/statics/"):
            return await call_next(request)

        try:
            basic_auth.authenticate(
                request.headers.get("authorization"), auth_config.users
            )
        except basic_auth.AuthFailure as exc:
            logger.warning(f"auth failed: {exc}")
            return PlainTextResponse(
                basic_auth.UNAUTHORIZED_BODY,
                status_code=401,
                headers=basic_auth.challenge_headers(auth_config.realm),
            )
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log the first client connection for debugging."""

    async def dispatch(self, request, call_next):
        if not getattr(request.app.state, "logged_first_request", False):
            user_agent = request.headers.get("user-agent", "")
            client_ip = request.client.host if request.client else "unknown"
            logging.getLogger("galilego.request").info(
                'client_connected ip="%s" url="%s %s" ua="%s"'
                % (client_ip, request.method, str(request.url), user_agent)
            )
            request.app.state.logged_first_request = True
        return await call_next(request)


def create_app(config: GalleryConfig, gateway: Optional[ImageGateway] = None) -> FastAPI:
    """Build the FastAPI app around an explicit config and image gateway.

    The gateway's worker is started on application startup and stopped on
    shutdown.
    """
    if gateway is None:
        gateway = ImageGateway.from_config(config)

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        if not gateway.worker.running:
            gateway.worker.start()
        logger.info(f"Serving gallery {config.gallery_root} (cache: {config.cache_root})")
        try:
            yield
        finally:
            gateway.worker.stop(timeout=5)

    app = FastAPI(title=config.library.name, lifespan=_lifespan, docs_url=None, redoc_url=None)
    app.state.config = config
    app.state.gateway = gateway

    # Last added runs first: security headers wrap the auth challenge too.
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(BasicAuthMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(router)
    app.mount("/statics", StaticFiles(directory=str(STATIC_DIR)), name="statics")

    @app.get("/favicon.ico", include_in_schema=False)
    def favicon() -> Response:
        return Response(status_code=204)

    return app


class _AccessFilter(logging.Filter):
    """Hide access log lines for successful and not-modified responses."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            return True
        return not any(code in msg for code in ('" 200', '" 204', '" 304'))


def run_server(
    config: GalleryConfig,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> None:
    """Run the app with Uvicorn, over TLS when cert and key are configured."""
    import uvicorn

    effective_host = host or config.server.host
    effective_port = port or config.server.port

    logging.getLogger("uvicorn.access").addFilter(_AccessFilter())

    ssl_options = {}
    if config.server.tls_enabled:
        ssl_options = {
            "ssl_certfile": str(config.server.certfile),
            "ssl_keyfile": str(config.server.keyfile),
        }
        scheme = "https"
    else:
        scheme = "http"
    logger.info(f"Gallery available at {scheme}://{effective_host}:{effective_port}/")

    uvicorn.run(
        create_app(config),
        host=effective_host,
        port=effective_port,
        log_level="info",
        log_config=None,
        **ssl_options,
    )
