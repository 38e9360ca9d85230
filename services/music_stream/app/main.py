from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.common.logging import get_logger, setup_logging
from src.common.metrics import JOB_DURATION, PREFETCH_QUEUE_DEPTH, setup_metrics
from src.common.telemetry import setup_otel

from . import deps
from .api import router
from .errors import register_error_handlers
from .library import TrackLibrary
from .prefetch import PrefetchQueue, PrefetchWorker

SERVICE_NAME = "music_stream"

logger = get_logger(__name__)


def create_app(settings: deps.Settings | None = None) -> FastAPI:
    """Build the application and the prefetch queue/worker it owns."""

    settings = settings or deps.get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(title=SERVICE_NAME)
    library = TrackLibrary(settings.music_dir)
    queue = PrefetchQueue(settings.prefetch_queue_capacity)
    worker = PrefetchWorker(
        queue,
        library,
        interval=settings.prefetch_interval_ms / 1000,
        chunk_size=settings.prefetch_chunk_size,
    )
    app.state.settings = settings
    app.state.library = library
    app.state.prefetch_queue = queue
    app.state.prefetch_worker = worker

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_metrics(app, SERVICE_NAME)
    setup_otel(app, SERVICE_NAME, settings.otel_exporter_otlp_endpoint)
    register_error_handlers(app)

    @app.on_event("startup")
    async def on_startup() -> None:
        if not settings.jwt_secret:
            logger.warning("jwt_secret_missing", detail="bearer tokens will be rejected")
        PREFETCH_QUEUE_DEPTH.labels(SERVICE_NAME).set(len(queue))
        JOB_DURATION.labels(SERVICE_NAME, "startup").observe(0)
        worker.start()
        logger.info("service_started", music_dir=str(library.root))

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await worker.stop()

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/readyz")
    async def readyz() -> dict[str, str]:
        return {"status": "ready"}

    app.include_router(router)
    return app


app = create_app()
