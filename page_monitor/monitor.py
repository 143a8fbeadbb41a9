"""Page monitor: single-flight checks, status lifecycle and the interval schedule."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta
from typing import Optional

import structlog

from page_monitor.browser import BrowserSession
from page_monitor.classifier import evaluate_page
from page_monitor.config import MonitorConfig
from page_monitor.scheduler import JobScheduler
from page_monitor.state import MANUAL_MODE_LABEL, MonitorState, MonitorStatus, status_label, utc_now


logger = structlog.get_logger(__name__)

INTERVAL_JOB_ID = "page_check"

TRIGGER_STARTUP = "startup"
TRIGGER_INTERVAL = "interval"
TRIGGER_MANUAL = "manual"

MESSAGE_MANUAL_RUNNING = "Ручная проверка cloud..."
MESSAGE_AUTO_RUNNING = "Автоматическая cloud-проверка..."
MESSAGE_CHECK_FAILED = "Ошибка cloud-проверки"
MESSAGE_MANUAL_MODE = "Проверка запускается только по кнопке (watch/check)"


class PageMonitor:
    """
    Owns the monitor state and the browser session for one target page.

    ``run_check`` is the only way a check is performed. Concurrent callers share
    the check that is already running, so at most one navigation happens at a
    time and ``check_count`` grows by one per physical check.
    """

    def __init__(self, config: MonitorConfig, session: BrowserSession):
        self.config = config
        self.session = session
        self.scheduler = JobScheduler()
        self._state = MonitorState.initial()
        self._ready_streak = 0
        self._check_task: Optional[asyncio.Task[MonitorState]] = None
        # Guards the session: held for a whole check and while releasing it.
        self._session_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self.scheduler.running

    @property
    def ready_streak(self) -> int:
        return self._ready_streak

    def get_state(self) -> MonitorState:
        return self._state

    def _update_state(self, **changes) -> MonitorState:
        self._state = self._state.evolve(**changes)
        return self._state

    def _next_check_at(self, started_at: datetime) -> datetime | None:
        if not self.config.auto_checks_enabled:
            return None
        return started_at + timedelta(seconds=self.config.check_interval_seconds)

    def _ensure_check_task(self, trigger: str) -> asyncio.Task[MonitorState]:
        task = self._check_task
        if task is None:
            task = asyncio.ensure_future(self._perform_check(trigger))
            self._check_task = task
            task.add_done_callback(self._forget_check_task)
        else:
            logger.debug("Check already in flight; joining it", trigger=trigger)
        return task

    def _forget_check_task(self, task: asyncio.Task[MonitorState]) -> None:
        if self._check_task is task:
            self._check_task = None

    async def run_check(self, trigger: str = TRIGGER_INTERVAL) -> MonitorState:
        """Run a check, or wait for the one already running, and return the resulting state."""
        task = self._ensure_check_task(trigger)
        # A cancelled caller (e.g. a dropped HTTP client) must not cancel the shared check.
        return await asyncio.shield(task)

    async def _perform_check(self, trigger: str) -> MonitorState:
        async with self._session_lock:
            started_at = utc_now()
            started = time.perf_counter()
            next_check_at = self._next_check_at(started_at)
            self._update_state(
                in_flight=True,
                message=MESSAGE_MANUAL_RUNNING if trigger == TRIGGER_MANUAL else MESSAGE_AUTO_RUNNING,
            )
            logger.info("Check started", trigger=trigger, target=self.config.target_url)

            try:
                await self.session.acquire()
                await self.session.navigate(self.config.target_url, self.config.check_timeout_seconds)
                await asyncio.sleep(self.config.navigation_settle_seconds)
                url = self.session.current_url()
                text = await self.session.extract_visible_text()

                result = evaluate_page(text, url, self.config, self._ready_streak)
                self._ready_streak = result.streak
                state = self._update_state(
                    status=result.status,
                    status_label=status_label(result.status),
                    message=result.message,
                    in_flight=False,
                    check_count=self._state.check_count + 1,
                    last_checked_at=started_at,
                    next_check_at=next_check_at,
                    last_error=result.message if result.status is MonitorStatus.ERROR else None,
                )
                logger.info(
                    "Check completed",
                    trigger=trigger,
                    status=state.status.value,
                    streak=self._ready_streak,
                    check_count=state.check_count,
                    elapsed_ms=round((time.perf_counter() - started) * 1000.0, 1),
                )
                return state
            except asyncio.CancelledError:
                self._update_state(in_flight=False)
                raise
            except Exception as e:
                error = str(e) or type(e).__name__
                self._ready_streak = 0
                state = self._update_state(
                    status=MonitorStatus.ERROR,
                    status_label=status_label(MonitorStatus.ERROR),
                    message=MESSAGE_CHECK_FAILED,
                    in_flight=False,
                    check_count=self._state.check_count + 1,
                    last_checked_at=started_at,
                    next_check_at=next_check_at,
                    last_error=error,
                )
                logger.warning(
                    "Check failed",
                    trigger=trigger,
                    error_type=type(e).__name__,
                    error=error,
                    check_count=state.check_count,
                    elapsed_ms=round((time.perf_counter() - started) * 1000.0, 1),
                )
                return state

    async def _interval_tick(self) -> None:
        # Enqueue only: a tick landing during a running check joins it instead of piling up.
        self._ensure_check_task(TRIGGER_INTERVAL)

    async def start(self) -> None:
        """Enter manual mode, or run the startup check and begin the interval schedule."""
        if not self.config.auto_checks_enabled:
            self._update_state(
                status=MonitorStatus.INITIALIZING,
                status_label=MANUAL_MODE_LABEL,
                message=MESSAGE_MANUAL_MODE,
                in_flight=False,
                next_check_at=None,
            )
            logger.info("Automatic checks disabled; manual mode")
            return

        await self.run_check(TRIGGER_STARTUP)
        self.scheduler.start()
        self.scheduler.add_interval_job(
            job_id=INTERVAL_JOB_ID,
            func=self._interval_tick,
            seconds=self.config.check_interval_seconds,
            description="Automatic page check",
        )

    async def stop(self) -> None:
        """Stop the schedule and release the browser once any in-flight check has finished."""
        self.scheduler.stop()
        async with self._session_lock:
            held = self.session.acquired
            await self.session.close()
            if held:
                logger.info("Browser session released")
