"""Best-effort registration of the periodic background contact check."""

import asyncio
import logging

from contextcrm.application.contact_detector import ContactChangeDetector
from contextcrm.application.dto import BackgroundStatus, BackgroundTaskResult
from contextcrm.application.ports import BackgroundTaskApi

logger = logging.getLogger(__name__)

BACKGROUND_TASK_ID = "contact-monitor-background"


class BackgroundRegistrar:
    """Registers a host background task that runs one contact check per invocation.

    Registration failures are logged and reported as False; foreground polling
    stays the primary detection path.
    """

    def __init__(
        self,
        api: BackgroundTaskApi | None,
        detector: ContactChangeDetector,
        *,
        min_interval_seconds: float = 15 * 60,
        timeout_seconds: float = 25.0,
        task_id: str = BACKGROUND_TASK_ID,
    ) -> None:
        self._api = api
        self._detector = detector
        self._min_interval = min_interval_seconds
        self._timeout = timeout_seconds
        self._task_id = task_id
        self._supported = api is not None

    @property
    def supported(self) -> bool:
        return self._supported

    async def register(self) -> bool:
        if self._api is None:
            logger.warning("Background execution not available; foreground monitoring only")
            return False
        try:
            if not await self._api.is_available():
                logger.warning(
                    "Background execution not available in this environment; "
                    "foreground monitoring will still work"
                )
                self._supported = False
                return False
            await self._api.register(
                self._task_id,
                min_interval_seconds=self._min_interval,
                callback=self.run_task,
            )
        except Exception as e:
            logger.warning("Background registration skipped: %s", e)
            self._supported = False
            return False
        self._supported = True
        logger.info(
            "Background task registered; checking contacts every %.0f minutes",
            self._min_interval / 60,
        )
        return True

    async def unregister(self) -> None:
        """Remove the background task. Safe when registration never succeeded."""
        if self._api is None or not self._supported:
            return
        try:
            await self._api.unregister(self._task_id)
        except Exception as e:
            logger.warning("Background unregister skipped: %s", e)
            return
        logger.info("Background task unregistered")

    async def run_task(self) -> BackgroundTaskResult:
        """Body of the background task. Always returns a completion signal within the timeout."""
        logger.info("[Background] Checking contacts...")
        try:
            # The check keeps running past the deadline so detected contacts still get routed.
            result = await asyncio.wait_for(
                asyncio.shield(self._detector.check_for_new_contacts()),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("[Background] Contact check exceeded %.1fs", self._timeout)
            return BackgroundTaskResult.FAILED
        except Exception:
            logger.exception("[Background] Contact check failed")
            return BackgroundTaskResult.FAILED
        if result.failed:
            return BackgroundTaskResult.FAILED
        if result.new_contact_ids:
            return BackgroundTaskResult.NEW_DATA
        return BackgroundTaskResult.NO_DATA

    async def status(self) -> BackgroundStatus:
        if self._api is None:
            return BackgroundStatus(available=False, registered=False, supported=False)
        try:
            available = await self._api.is_available()
            registered = await self._api.is_registered(self._task_id)
        except Exception as e:
            logger.warning("Background status unavailable: %s", e)
            return BackgroundStatus(available=False, registered=False, supported=False)
        return BackgroundStatus(
            available=available, registered=registered, supported=self._supported
        )
