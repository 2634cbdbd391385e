"""
Provider Connect — application entry point.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import config
from connectors.encryption import is_encryption_enabled
from connectors.registry import ConnectorRegistry
from connectors.routes import router as connectors_router
from connectors.sql_store import SqlConnectionStore
from database.session import get_session_factory, init_models

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "sqlalchemy.engine"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Provider Connect",
        version="1.0.0",
        description="OAuth connections between local accounts and external service providers.",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(connectors_router, prefix="/api/v1/connectors")

    @app.on_event("startup")
    async def on_startup():
        logger.info("Preparing connection store…")
        await init_models()
        if not is_encryption_enabled():
            logger.warning("Stored access tokens are not encrypted")

        registry = ConnectorRegistry()
        registry.discover(SqlConnectionStore(get_session_factory()))
        logger.info("Providers ready: %s", ", ".join(registry.list_configured()) or "none")

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
