"""Fixed-interval background sweeps backed by APScheduler."""

from __future__ import annotations

from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from flowsense_agent.log import get_logger

logger = get_logger(__name__)


class PeriodicSweeper:
    """Runs ``sweep`` every ``interval`` seconds on a daemon scheduler thread.

    The sweep callable returns the number of entries it removed.
    """

    def __init__(self, name: str, interval: float, sweep: Callable[[], int]):
        if interval <= 0:
            raise ValueError(f"Sweep interval must be positive, got {interval}")
        self.name = name
        self.interval = interval
        self._sweep = sweep
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        if self._scheduler is not None:
            return
        scheduler = BackgroundScheduler(daemon=True)
        scheduler.add_job(
            self._run,
            trigger=IntervalTrigger(seconds=self.interval),
            id=self.name,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.debug("sweeper_started", sweeper=self.name, interval=self.interval)

    def stop(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.debug("sweeper_stopped", sweeper=self.name)

    def _run(self) -> None:
        try:
            removed = self._sweep()
        except Exception as e:
            logger.error("sweep_failed", sweeper=self.name, error=str(e))
            return
        if removed:
            logger.info("sweep_completed", sweeper=self.name, removed=removed)
