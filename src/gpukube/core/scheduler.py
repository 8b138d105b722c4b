import asyncio
import logging
from typing import Callable, Coroutine, List

logger = logging.getLogger(__name__)


def _job_name(job_func: Callable) -> str:
    return getattr(job_func, "__name__", repr(job_func))


class Scheduler:
    """
    Manages the scheduling and execution of periodic async tasks using asyncio.

    Each job runs on a fixed period measured on the event loop clock. A run
    never overlaps the previous run of the same job: if a run takes longer than
    the period, the ticks it covered are dropped and the job resumes on the
    next period boundary.
    """

    def __init__(self):
        self.tasks: List[asyncio.Task] = []
        logger.debug("AsyncScheduler initialized.")

    async def _run_periodically(self, interval_seconds: float, job_func: Callable[[], Coroutine]):
        """Internal loop to run a job periodically."""
        loop = asyncio.get_running_loop()
        next_run = loop.time() + interval_seconds
        try:
            while True:
                await asyncio.sleep(max(0.0, next_run - loop.time()))
                try:
                    await job_func()
                except Exception as e:
                    logger.error(f"Error in scheduled job '{_job_name(job_func)}': {e}", exc_info=True)

                next_run += interval_seconds
                now = loop.time()
                if next_run < now:
                    missed = int((now - next_run) // interval_seconds) + 1
                    logger.warning(f"Job '{_job_name(job_func)}' overran its period; skipping {missed} tick(s).")
                    next_run += missed * interval_seconds
        except asyncio.CancelledError:
            logger.info(f"Job '{_job_name(job_func)}' cancelled.")
            raise

    def add_job(self, job_func: Callable[[], Coroutine], interval_seconds: float) -> asyncio.Task:
        """
        Adds a new async job to the schedule. Must be called from a running event loop.
        """
        if interval_seconds <= 0:
            raise ValueError(f"Interval must be positive, got {interval_seconds}.")

        task = asyncio.create_task(self._run_periodically(interval_seconds, job_func))
        self.tasks.append(task)
        logger.info(f"Scheduled job '{_job_name(job_func)}' to run every {interval_seconds:g} second(s).")
        return task

    async def stop(self):
        """Cancels all scheduled tasks and waits for them to finish."""
        logger.info("Stopping scheduler...")
        for task in self.tasks:
            task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks.clear()
