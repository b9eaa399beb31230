from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from campus_rag.api import router as api_router
from campus_rag.core.config import Settings, get_settings
from campus_rag.core.container import build_container
from campus_rag.core.logging import configure_logging, get_logger

logger = get_logger(__name__)


def create_app(settings: Settings | None = None, **overrides) -> FastAPI:
    """`overrides` are handed to build_container (embedder, generator, index, ...)."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL)
        app.state.container = await build_container(settings, **overrides)
        logger.info("%s started (%s)", settings.APP_NAME, settings.ENV)
        try:
            yield
        finally:
            await app.state.container.close()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/health")
    def health():
        return {"status": "ok", "time": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()
