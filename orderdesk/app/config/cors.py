"""CORS configuration derived from settings."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import Settings


def allowed_origins(settings: Settings) -> list[str]:
    return [
        origin.strip()
        for origin in settings.allowed_origins.split(",")
        if origin.strip()
    ]


def configure_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the dashboard origins to call the API with credentials."""
    origins = allowed_origins(settings)
    if not origins:
        return
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )
