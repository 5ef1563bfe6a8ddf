"""Standalone FastAPI entry point for Lumina.

Run the server:
    python -m lumina.main --port 8090

Environment variables:
    LUMINA_HOST, LUMINA_PORT: Bind address (default: 127.0.0.1:8090)
    LUMINA_LOG_LEVEL: Logging level (default: INFO)
    LUMINA_AUTO_RUN: Run passes automatically after edits (default: true)
"""
import logging
from typing import Optional

from fastapi import FastAPI

from .api import router
from .config import Settings, settings
from .engine import Engine


def create_app(engine: Optional[Engine] = None, app_settings: Optional[Settings] = None) -> FastAPI:
    """Create the Lumina API application.

    The engine is kept on ``app.state.engine``; pass one to share it with
    other code or to configure it for tests.
    """
    app_settings = app_settings or settings
    app = FastAPI(title="Lumina Graph Engine", docs_url="/docs")
    app.state.engine = engine if engine is not None else Engine(settings=app_settings)
    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "nodes": len(app.state.engine.graph)}

    return app


def main():
    """Run the standalone server."""
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Lumina graph engine server")
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help=f"HTTP port (default: {settings.PORT}, env: LUMINA_PORT)"
    )
    parser.add_argument(
        "--host", "-H",
        default=None,
        help=f"Host to bind to (default: {settings.HOST}, env: LUMINA_HOST)"
    )
    args = parser.parse_args()

    # CLI args > env vars > defaults (via settings)
    port = args.port or settings.PORT
    host = args.host or settings.HOST

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info("Starting Lumina on %s:%d", host, port)
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    main()
