"""Polling worker: claims the oldest pending job and processes it.

Run standalone with ``python -m app.worker`` (from ``backend/``), or let the
API start it in-process with ``EMBEDDED_WORKER=true``. Exactly one job runs
at a time; a tick that fires while a job is in flight does nothing.
"""

import asyncio
import logging
import signal
from typing import Optional

from app.config import settings
from app.logging_config import configure_logging
from app.services.job_service import JobService
from app.services.job_worker import JobProcessor, build_job_processor

logger = logging.getLogger(__name__)


class Worker:
    def __init__(
        self,
        job_service: JobService,
        processor: JobProcessor,
        poll_interval_seconds: float = settings.worker_poll_interval_ms / 1000,
    ) -> None:
        self.job_service = job_service
        self.processor = processor
        self.poll_interval_seconds = poll_interval_seconds
        self._processing = False

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def poll_once(self) -> Optional[str]:
        """Process the oldest pending job, if any.

        Returns the processed job id, or None when idle or already busy.
        Job failures are logged and swallowed here; the job record carries
        the error.
        """
        if self._processing:
            return None
        self._processing = True
        try:
            pending = self.job_service.list_pending()
            if not pending:
                return None
            job = pending[0]
            logger.info("Processing job %s (%d pending)", job.job_id, len(pending))
            try:
                await self.processor.process_job(job)
            except Exception as e:
                logger.error("Job %s failed: %s", job.job_id, e)
            return job.job_id
        finally:
            self._processing = False

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Tick every ``poll_interval_seconds`` until ``stop_event`` is set."""
        stop_event = stop_event or asyncio.Event()
        logger.info("Worker started (poll interval %.1fs)", self.poll_interval_seconds)
        while not stop_event.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Worker poll cycle failed")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Worker stopped")


def build_worker() -> Worker:
    job_service = JobService(settings.jobs_dir)
    return Worker(job_service, build_job_processor(settings, job_service))


async def _main() -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            signal.signal(sig, lambda *_: stop_event.set())
    await build_worker().run(stop_event)


def main() -> None:
    configure_logging(settings.log_level)
    asyncio.run(_main())


if __name__ == "__main__":
    main()
