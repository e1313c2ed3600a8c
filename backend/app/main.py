import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.config import settings
from app.logging_config import RequestIdMiddleware, configure_logging

# Configure structured JSON logging before anything else logs
configure_logging(level=settings.log_level)

from app.api.jobs import router as jobs_router  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up")
    stop_event: asyncio.Event | None = None
    worker_task: asyncio.Task | None = None

    if settings.embedded_worker:
        from app.worker import build_worker

        stop_event = asyncio.Event()
        worker_task = asyncio.create_task(build_worker().run(stop_event))
        logger.info("Embedded worker started")

    yield

    if worker_task is not None:
        stop_event.set()
        await worker_task
    logger.info("Application shutting down")


app = FastAPI(title="Interview Video Agent API", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.include_router(jobs_router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}


# Static mounts; the lip-sync provider fetches media through these
for _mount, _directory in (
    ("/outputs", settings.outputs_dir),
    ("/inputs", Path(settings.input_examples_dir)),
    ("/uploads", settings.uploads_dir),
):
    Path(_directory).mkdir(parents=True, exist_ok=True)
    app.mount(_mount, StaticFiles(directory=str(_directory)), name=_mount.strip("/"))
