"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from storygraph.config import get_settings
from storygraph.routers import books
from storygraph.routers import text as text_router
from storygraph.services.analysis import build_analysis_service

logger = logging.getLogger(__name__)


def _prepare_cache_tables() -> None:
    """Create the cache table if missing and prime the DB connection at process start."""

    from storygraph.db.base import Base
    from storygraph.db.session import engine

    try:
        Base.metadata.create_all(engine)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Cache table preparation failed; cache reads and writes will degrade to misses.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.cache_backend == "database":
        _prepare_cache_tables()
    app.state.analysis_service = build_analysis_service(settings)
    yield


app = FastAPI(title="StoryGraph API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(books.router, tags=["books"])
app.include_router(text_router.router, tags=["analysis"])


@app.get("/health")
def health() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok"}
