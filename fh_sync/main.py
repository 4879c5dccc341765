import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fh_sync.api.endpoints import entities, environments, sync
from fh_sync.core.config import settings
from fh_sync.core.exceptions import SyncEngineError

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # httpx logs every request line at INFO, which buries the sync log
    logging.getLogger("httpx").setLevel(logging.WARNING)


def create_app() -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.PROJECT_NAME)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SyncEngineError)
    async def sync_engine_error_handler(request: Request, exc: SyncEngineError):
        # stage tells the UI whether anything was changed before the failure
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "stage": exc.stage},
        )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(sync.router, prefix=f"{settings.API_PREFIX}/sync", tags=["sync"])
    app.include_router(entities.router, prefix=f"{settings.API_PREFIX}/entities", tags=["entities"])
    app.include_router(environments.router, prefix=settings.API_PREFIX, tags=["environments"])

    logger.info(
        "Configured environments: %s", ", ".join(settings.environment_labels()) or "none"
    )
    return app


app = create_app()
