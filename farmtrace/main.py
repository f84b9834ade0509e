from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from farmtrace.core.config import get_settings
from farmtrace.core.logging import configure_logging
from farmtrace.core.middleware import RequestIdMiddleware
from farmtrace.api.v1.router import v1_router
from farmtrace.db.base import Base
import farmtrace.models  # noqa: F401  (register tables on Base.metadata)
from farmtrace.db.session import engine

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.create_tables_on_startup:
            Base.metadata.create_all(bind=engine)
            logger.info("[startup] tables ensured on %s", engine.url.render_as_string(hide_password=True))
        yield

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()
