"""
FastAPI application entrypoint for the truck logistics bot.
"""

from __future__ import annotations

from fastapi import FastAPI

from truckbot.api.routes import router as api_router
from truckbot.core.config import get_settings
from truckbot.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Truck Logistics Bot",
        version="0.1.0",
        description="Chat webhook for truck repair, stay and sheet entry requests.",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
