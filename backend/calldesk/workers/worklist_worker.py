"""
Worklist Worker
Background refresh loop for the operator worklist.

Run as separate process:
    python -m calldesk.workers.worklist_worker

One asyncio task ticks once per second and runs each job when its interval
has elapsed:
- countdowns and reminders (every tick)
- overdue detection (10s)
- priority re-sort (15s)
- scheduled-call re-poll (30s)
- lead list refresh (120s)
"""
import asyncio
import logging
import signal
import time
from typing import Awaitable, Callable, Dict, Optional

from dotenv import load_dotenv

from calldesk.core.config import ConfigManager, SchedulerConfig, Settings, get_settings
from calldesk.domain.services.countdown import CountdownNotifier
from calldesk.domain.services.priority_evaluator import PriorityEvaluator
from calldesk.domain.services.scheduled_call_cache import ScheduledCallCache
from calldesk.domain.services.scheduled_call_repository import (
    ScheduledCallFetchError,
    ScheduledCallRepository,
)
from calldesk.domain.services.worklist import LeadRefreshError, Worklist
from calldesk.infrastructure.notifications.factory import create_notification_sink
from calldesk.infrastructure.stores.factory import StoreFactory

logger = logging.getLogger(__name__)


def build_worklist(settings: Settings, config: ConfigManager) -> Worklist:
    """Wire stores, cache, repository and notifier from configuration."""
    scheduler = config.get_scheduler_config()
    lead_store, call_store = StoreFactory.create(settings)

    cache = ScheduledCallCache()
    repository = ScheduledCallRepository(
        call_store,
        cache,
        retry_attempts=scheduler.calls_retry_attempts,
        retry_delay_seconds=scheduler.calls_retry_delay_seconds
    )
    notifier = CountdownNotifier(
        sink=create_notification_sink(settings),
        title=config.get("notifications.title", "Call Reminder")
    )
    return Worklist(
        lead_store,
        repository,
        evaluator=PriorityEvaluator(settings.display_timezone),
        notifier=notifier,
        retry_attempts=scheduler.leads_retry_attempts,
        retry_delay_seconds=scheduler.leads_retry_delay_seconds
    )


class WorklistWorker:
    """
    Single cancellable scheduler for every recurring worklist job.

    Fetch jobs run as their own tasks so a slow store never delays the
    countdown tick; a fetch job is not started again while its previous
    run is still going. Stopping the worker cancels the loop and every
    job, and closes the worklist so late responses are dropped.
    """

    def __init__(
        self,
        worklist: Worklist,
        config: Optional[SchedulerConfig] = None,
        monotonic: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.worklist = worklist
        self.config = config or SchedulerConfig()
        self._monotonic = monotonic
        self._sleep = sleep

        self.running = False
        self._task: Optional[asyncio.Task] = None
        self._jobs: Dict[str, asyncio.Task] = {}
        self._last_run: Dict[str, float] = {}
        self._wakeup = asyncio.Event()
        self._refresh_requested = False

        # Stats
        self._ticks = 0
        self._recomputes = 0
        self._job_failures = 0

    @property
    def intervals(self) -> Dict[str, float]:
        return {
            "overdue": self.config.overdue_check_seconds,
            "priority": self.config.priority_refresh_seconds,
            "calls": self.config.calls_refresh_seconds,
            "leads": self.config.leads_refresh_seconds,
        }

    async def initialize(self) -> None:
        """Ask for notification permission and do the first load."""
        logger.info("Initializing Worklist Worker...")
        granted = await self.worklist.notifier.request_permission()
        logger.info(f"Reminder notifications {'enabled' if granted else 'disabled'}")

        try:
            await self.worklist.load(silent=False)
        except LeadRefreshError as e:
            # Background refreshes keep trying
            logger.error(f"Initial worklist load failed: {e.message}")
            self.worklist.recompute()
        except ScheduledCallFetchError as e:
            logger.error(f"Initial scheduled call load incomplete: {e.message}")

        now = self._monotonic()
        self._last_run = {name: now for name in self.intervals}

    async def start(self) -> None:
        """Initialize and run the loop in a background task."""
        await self.initialize()
        self._task = asyncio.create_task(self.run(), name="worklist-worker")

    def refresh_now(self) -> None:
        """Re-poll scheduled calls and re-sort on the next tick."""
        self._refresh_requested = True
        self._wakeup.set()

    async def run(self) -> None:
        """Main loop; errors are logged and never stop the worker."""
        logger.info("Worklist Worker started")
        self.running = True
        consecutive_errors = 0

        while self.running:
            try:
                await self.tick()
                consecutive_errors = 0
                await self._wait(self.config.tick_seconds)

            except asyncio.CancelledError:
                logger.info("Worker received cancellation signal")
                break

            except Exception as e:
                consecutive_errors += 1
                logger.error(f"Worker error ({consecutive_errors}): {e}", exc_info=True)

                delay = self.config.tick_seconds
                if consecutive_errors >= self.config.max_consecutive_errors:
                    delay = min(5 * consecutive_errors, 60)
                    logger.critical(
                        f"{consecutive_errors} consecutive worker errors, backing off {delay}s"
                    )
                await self._sleep(delay)

        logger.info("Worklist Worker stopped")

    async def _wait(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        self._wakeup.clear()

    def _due(self, name: str, now: float) -> bool:
        if now - self._last_run.setdefault(name, now) >= self.intervals[name]:
            self._last_run[name] = now
            return True
        return False

    async def tick(self) -> None:
        """Run one scheduler tick."""
        self._ticks += 1
        now = self._monotonic()
        worklist = self.worklist
        if worklist.closed:
            return

        if self._refresh_requested:
            self._refresh_requested = False
            self._last_run["calls"] = now
            self._spawn("calls", self._refresh_calls)

        worklist.tick_countdowns()

        recompute = False
        if self._due("overdue", now):
            newly_overdue = worklist.detect_newly_overdue()
            recompute = bool(newly_overdue) or worklist.needs_priority_refresh()
        if self._due("priority", now):
            recompute = True
        if recompute:
            self._recompute()

        if self._due("calls", now):
            self._spawn("calls", self._refresh_calls)
        if self._due("leads", now):
            self._spawn("leads", self._refresh_leads)

    def _recompute(self) -> None:
        self._recomputes += 1
        self.worklist.recompute()

    async def _refresh_calls(self) -> None:
        await self.worklist.refresh_scheduled_calls(silent=True)
        if not self.worklist.closed:
            self._recompute()

    async def _refresh_leads(self) -> None:
        await self.worklist.load(silent=True)

    def _spawn(self, name: str, job: Callable[[], Awaitable[None]]) -> None:
        running = self._jobs.get(name)
        if running is not None and not running.done():
            logger.debug(f"Job {name} still running, skipping")
            return
        task = asyncio.create_task(job(), name=f"worklist-{name}")
        task.add_done_callback(lambda t, job_name=name: self._job_done(job_name, t))
        self._jobs[name] = task

    def _job_done(self, name: str, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._job_failures += 1
            logger.error(f"Worklist job {name} failed: {error}", exc_info=error)

    async def wait_for_jobs(self) -> None:
        """Wait for fetch jobs already started."""
        jobs = [task for task in self._jobs.values() if not task.done()]
        if jobs:
            await asyncio.gather(*jobs, return_exceptions=True)

    def request_stop(self) -> None:
        """Let the loop finish its current tick and exit."""
        self.running = False
        self._wakeup.set()

    async def stop(self) -> None:
        """Cancel the loop and every in-flight job."""
        self.request_stop()

        tasks = [task for task in self._jobs.values() if not task.done()]
        if self._task is not None and not self._task.done():
            tasks.append(self._task)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._task = None
        self._jobs.clear()

    async def shutdown(self) -> None:
        """Graceful shutdown."""
        logger.info("Shutting down Worklist Worker...")
        await self.stop()

        self.worklist.close()
        await self.worklist.notifier.close()
        await self.worklist.lead_store.close()
        await self.worklist.repository.store.close()

        logger.info(
            f"Worklist Worker shutdown complete. "
            f"Ticks: {self._ticks}, "
            f"Recomputes: {self._recomputes}, "
            f"Job failures: {self._job_failures}"
        )

    def get_stats(self) -> dict:
        """Get worker statistics."""
        return {
            "running": self.running,
            "ticks": self._ticks,
            "recomputes": self._recomputes,
            "job_failures": self._job_failures,
            "leads": len(self.worklist.leads),
            "repository": self.worklist.repository.get_stats(),
            "notifications": self.worklist.notifier.get_stats(),
        }


async def main():
    """Entry point for running the worklist worker as a separate process."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    settings = get_settings()
    config = ConfigManager(settings.environment)
    worker = WorklistWorker(build_worklist(settings, config), config.get_scheduler_config())

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        worker.request_stop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        await worker.initialize()
        await worker.run()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
