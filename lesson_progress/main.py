import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from .config import Settings, get_settings
from .logging_config import configure_logging
from .persistence import build_gateway
from .routes import get_progress_store, router
from .store import ProgressStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, store: Optional[ProgressStore] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        progress_store = store
        if progress_store is None:
            progress_store = ProgressStore(build_gateway(settings))
            progress_store.initialize()
        app.state.progress_store = progress_store
        logger.info("Progress data: %s", progress_store.gateway.describe())
        yield

    app = FastAPI(title="Lesson Progress", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)

    @app.get("/healthz")
    def health(request: Request) -> Dict[str, str]:
        progress_store = get_progress_store(request)
        return {"status": "ok", "persistence": progress_store.gateway.describe()}

    app.include_router(router)

    if settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")
    else:
        logger.debug("Static directory %s not found; serving API only", settings.static_dir)

    return app


def run() -> None:
    import uvicorn

    configure_logging()
    settings = get_settings()
    logger.info("Server starting on http://%s:%s", settings.host, settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level="info")
