"""Galilego web layer: FastAPI app, basic auth and gallery routes."""

from .router import router

__all__ = ["router"]
