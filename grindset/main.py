"""grindset - daily coding-practice challenges with money at stake."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from grindset.core.db_client import close_connection, init_db
from grindset.core.logging import configure_logfire, instrument_fastapi
from grindset.interface.api_router import register_exception_handlers
from grindset.interface.api_router import router as api_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    configure_logfire()

    await init_db()
    logger.info("Database initialized")

    yield

    await close_connection()


app = FastAPI(
    title="grindset",
    description="Accountability engine for daily coding-practice grinds",
    version="0.1.0",
    lifespan=lifespan,
)

instrument_fastapi(app)
register_exception_handlers(app)
app.include_router(api_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)
