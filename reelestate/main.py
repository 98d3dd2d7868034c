import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from reelestate.api import webhooks
from reelestate.config import get_settings
from reelestate.models.database import get_engine, init_db

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    init_db()
    yield
    # Shutdown
    get_engine().dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(webhooks.router, tags=["webhooks"])


@app.get("/")
async def root() -> dict:
    return {"name": settings.app_name, "version": settings.app_version}


@app.get("/health")
async def health() -> dict:
    return {"status": "healthy", "version": settings.app_version, "git_hash": settings.git_hash}
