"""Polling cadence and foreground/background handling for the contact detector.

At most one polling task runs at a time: the steady poll, or a short burst of
fast polls after the app returns to the foreground. Sources that publish change
events are subscribed to instead of polled; events that arrive while a check
is running are folded into one follow-up check.
"""

import asyncio
import logging
from collections.abc import Callable

from contextcrm.application.contact_detector import ContactChangeDetector
from contextcrm.application.dto import CheckResult
from contextcrm.application.ports import ContactSnapshotSource
from contextcrm.application.settings import MonitorSettings
from contextcrm.domain import AppState

logger = logging.getLogger(__name__)


class LifecycleScheduler:
    def __init__(
        self,
        detector: ContactChangeDetector,
        source: ContactSnapshotSource,
        settings: MonitorSettings | None = None,
    ) -> None:
        self._detector = detector
        self._source = source
        self._settings = settings or MonitorSettings()
        self._running = False
        self._steady_task: asyncio.Task | None = None
        self._burst_task: asyncio.Task | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._change_task: asyncio.Task | None = None
        self._changes_pending = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def polling(self) -> bool:
        return self._steady_task is not None

    @property
    def bursting(self) -> bool:
        return self._burst_task is not None

    def start(self) -> None:
        """Start detection. Must be called from the event loop. Idempotent."""
        if self._running:
            return
        self._running = True
        if getattr(self._source, "supports_change_events", False):
            self._unsubscribe = self._source.subscribe(self._on_contacts_changed)
            logger.info("Contact monitoring started (change events)")
        else:
            self._start_steady()
            logger.info(
                "Contact monitoring started (every %.1fs)", self._settings.poll_interval
            )

    def stop(self) -> None:
        """Cancel every timer and subscription. Safe to call at any time, any number of times.

        A tick already past its timer keeps running to completion.
        """
        self._running = False
        self._cancel_burst()
        if self._steady_task is not None:
            self._steady_task.cancel()
            self._steady_task = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def handle_app_state_change(self, app_state: AppState) -> None:
        app_state = AppState(app_state)
        previous = self._detector.app_state
        self._detector.set_app_state(app_state)
        if previous is app_state:
            return
        logger.info("App state %s -> %s", previous.value, app_state.value)
        if app_state is AppState.BACKGROUND:
            if self._burst_task is not None:
                self._cancel_burst()
                if self._running:
                    self._start_steady()
            return
        if self._detector.has_pending and self._detector.deliver_pending() is not None:
            return
        if not self._running:
            return
        if self._unsubscribe is not None:
            await self._tick()
            return
        self._start_burst()

    # --- timers ---

    def _start_steady(self) -> None:
        if self._steady_task is None:
            self._steady_task = asyncio.create_task(
                self._poll(self._settings.poll_interval), name="contact-monitor-steady"
            )

    def _start_burst(self) -> None:
        self._cancel_burst()
        if self._steady_task is not None:
            self._steady_task.cancel()
            self._steady_task = None
        logger.debug(
            "Starting burst polling (%d x %.1fs)",
            self._settings.burst_iterations,
            self._settings.burst_interval,
        )
        self._burst_task = asyncio.create_task(
            self._run_burst(), name="contact-monitor-burst"
        )

    def _cancel_burst(self) -> None:
        if self._burst_task is not None:
            self._burst_task.cancel()
            self._burst_task = None

    async def _run_burst(self) -> None:
        await self._poll(
            self._settings.burst_interval, iterations=self._settings.burst_iterations
        )
        self._burst_task = None
        if self._running:
            self._start_steady()

    async def _poll(self, interval: float, *, iterations: int | None = None) -> None:
        count = 0
        while iterations is None or count < iterations:
            await asyncio.sleep(interval)
            await self._tick()
            count += 1

    async def _tick(self) -> CheckResult | None:
        try:
            # Shielded so cancelling a timer never aborts a check halfway through.
            return await asyncio.shield(self._detector.check_for_new_contacts())
        except Exception:
            logger.exception("Contact check failed")
            return None

    def _on_contacts_changed(self) -> None:
        if not self._running:
            return
        self._changes_pending = True
        if self._change_task is None or self._change_task.done():
            self._change_task = asyncio.get_running_loop().create_task(
                self._process_changes(), name="contact-monitor-changes"
            )
            self._change_task.add_done_callback(self._change_task_done)

    async def _process_changes(self) -> None:
        """Check once per burst of change events; events during a check trigger one more check."""
        while self._changes_pending and self._running:
            self._changes_pending = False
            await self._detector.wait_idle()
            if not self._running:
                return
            result = await self._tick()
            if result is not None and result.skipped:
                # Another caller started a check first; it may have read a stale snapshot.
                self._changes_pending = True

    def _change_task_done(self, task: asyncio.Task) -> None:
        if self._change_task is task:
            self._change_task = None
