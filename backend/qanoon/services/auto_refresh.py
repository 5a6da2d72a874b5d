"""Periodic refresh of a caller-supplied callback.

Wraps one APScheduler interval job. Hiding the view pauses the job;
showing it again resumes the job and refreshes straight away so the data
is never a full interval stale.

The job holds a bound method of an object that references the scheduler,
so it cannot be pickled. It must live in a non-persistent job store
(``MEMORY_JOBSTORE`` on the app scheduler).
"""

from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Union
import inspect
import logging
import uuid

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60
MEMORY_JOBSTORE = "memory"

RefreshCallback = Callable[[], Union[None, Awaitable[None]]]


class AutoRefresh:
    
    def __init__(
        self,
        scheduler: BaseScheduler,
        callback: RefreshCallback,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        enabled: bool = True,
        jobstore: str = MEMORY_JOBSTORE,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.scheduler = scheduler
        self.jobstore = jobstore
        self.callback = callback
        self.interval_seconds = interval_seconds
        self.enabled = enabled
        self.visible = True
        self.last_refresh: Optional[datetime] = None
        self.job_id = f"auto_refresh_{uuid.uuid4().hex[:8]}"
        self._job = None
    
    @property
    def is_active(self) -> bool:
        """Scheduled and not paused."""
        return self._job is not None and self.enabled and self.visible
    
    async def _run(self) -> None:
        result = self.callback()
        if inspect.isawaitable(result):
            await result
        self.last_refresh = datetime.now(timezone.utc)
    
    def start(self) -> None:
        if not self.enabled or self._job is not None:
            return
        self._job = self.scheduler.add_job(
            self._run,
            IntervalTrigger(seconds=self.interval_seconds),
            id=self.job_id,
            name="Auto Refresh",
            jobstore=self.jobstore,
            replace_existing=True,
        )
        if not self.visible:
            self.scheduler.pause_job(self.job_id, jobstore=self.jobstore)
        logger.debug(f"Auto refresh {self.job_id} started every {self.interval_seconds}s")
    
    def stop(self) -> None:
        if self._job is None:
            return
        self.scheduler.remove_job(self.job_id, jobstore=self.jobstore)
        self._job = None
    
    def toggle(self) -> bool:
        """Flip enabled. Returns the new state."""
        self.enabled = not self.enabled
        if self.enabled:
            self.start()
        else:
            self.stop()
        return self.enabled
    
    async def manual_refresh(self) -> None:
        await self._run()
    
    async def set_visible(self, visible: bool) -> None:
        if visible == self.visible:
            return
        self.visible = visible
        if self._job is None:
            return
        
        if visible:
            self.scheduler.resume_job(self.job_id, jobstore=self.jobstore)
            await self._run()
        else:
            self.scheduler.pause_job(self.job_id, jobstore=self.jobstore)
