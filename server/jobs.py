"""Background execution of reindex jobs.

Accepted jobs are handed to APScheduler and run on the application's event
loop, so the HTTP request that accepted a job returns immediately.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Set

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)


class JobRunner:
    """Runs coroutine jobs in the background with APScheduler."""

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._active: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the scheduler; must be called from within the event loop."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler(
            executors={'default': AsyncIOExecutor()},
            job_defaults={
                'coalesce': False,
                'misfire_grace_time': None,
            }
        )
        self.scheduler.add_listener(self._job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._job_error, EVENT_JOB_ERROR)
        self.scheduler.start()
        self._running = True
        logger.info("Job runner started")

    async def shutdown(self, wait: bool = True, timeout: float = 30.0):
        """Stop the scheduler.

        With ``wait`` running jobs get ``timeout`` seconds to finish. Jobs
        still running after that are cancelled and awaited, so their cleanup
        completes before the caller closes shared clients.
        """
        self._running = False
        if wait and self._active:
            logger.info(f"Waiting for {len(self._active)} running job(s)")
            await asyncio.wait(set(self._active), timeout=timeout)

        pending = [task for task in self._active if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
        logger.info("Job runner shutdown complete")

    async def _run_tracked(self, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        task = asyncio.current_task()
        self._active.add(task)
        try:
            return await func(*args)
        finally:
            self._active.discard(task)

    def submit(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        job_id: Optional[str] = None,
    ) -> str:
        """Schedule ``func(*args)`` to run as soon as possible."""
        if not self._running:
            raise RuntimeError("Job runner not started")

        job_id = job_id or str(uuid.uuid4())
        self.scheduler.add_job(
            self._run_tracked,
            'date',
            run_date=datetime.now(),
            args=[func, *args],
            id=job_id,
        )
        logger.info(f"Submitted job {job_id}")
        return job_id

    def _job_executed(self, event):
        logger.info(f"Job {event.job_id} executed successfully")

    def _job_error(self, event):
        logger.error(f"Job {event.job_id} failed: {event.exception!r}")
