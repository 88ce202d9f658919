"""Vercel serverless entry: every /api/* route is served by the one ASGI app."""
from enoma_api.api import app

__all__ = ["app"]
