"""BackgroundTaskApi adapters for Python hosts.

AsyncioBackgroundTaskApi runs registered tasks on the host event loop, honouring a
platform-style minimum interval and killing runs that miss their deadline.
UnavailableBackgroundTaskApi stands in for hosts without background execution.
"""

import asyncio
import logging
from dataclasses import dataclass

from contextcrm.application.dto import BackgroundTaskResult
from contextcrm.application.errors import BackgroundRegistrationError
from contextcrm.application.ports import BackgroundCallback

logger = logging.getLogger(__name__)


@dataclass
class _Registration:
    interval: float
    callback: BackgroundCallback
    task: asyncio.Task | None = None
    last_result: BackgroundTaskResult | None = None


class AsyncioBackgroundTaskApi:
    def __init__(
        self,
        *,
        minimum_interval_seconds: float = 15 * 60,
        deadline_seconds: float = 30.0,
    ) -> None:
        self._minimum_interval = minimum_interval_seconds
        self._deadline = deadline_seconds
        self._registrations: dict[str, _Registration] = {}

    async def is_available(self) -> bool:
        return True

    async def register(
        self,
        task_id: str,
        *,
        min_interval_seconds: float,
        callback: BackgroundCallback,
    ) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise BackgroundRegistrationError("No running event loop") from e
        await self.unregister(task_id)
        interval = max(min_interval_seconds, self._minimum_interval)
        registration = _Registration(interval=interval, callback=callback)
        registration.task = loop.create_task(
            self._run_periodically(task_id, registration), name=f"background:{task_id}"
        )
        self._registrations[task_id] = registration
        logger.info("Registered background task %s (every %.0fs)", task_id, interval)

    async def unregister(self, task_id: str) -> None:
        registration = self._registrations.pop(task_id, None)
        if registration is not None and registration.task is not None:
            registration.task.cancel()

    async def is_registered(self, task_id: str) -> bool:
        return task_id in self._registrations

    def last_result(self, task_id: str) -> BackgroundTaskResult | None:
        registration = self._registrations.get(task_id)
        return registration.last_result if registration else None

    async def run_now(self, task_id: str) -> BackgroundTaskResult:
        """Run a registered task immediately, outside its schedule."""
        registration = self._registrations.get(task_id)
        if registration is None:
            raise KeyError(task_id)
        return await self._run_once(task_id, registration)

    async def close(self) -> None:
        for task_id in list(self._registrations):
            await self.unregister(task_id)

    async def _run_periodically(self, task_id: str, registration: _Registration) -> None:
        while True:
            await asyncio.sleep(registration.interval)
            await self._run_once(task_id, registration)

    async def _run_once(
        self, task_id: str, registration: _Registration
    ) -> BackgroundTaskResult:
        try:
            result = await asyncio.wait_for(registration.callback(), timeout=self._deadline)
        except asyncio.TimeoutError:
            logger.warning("Background task %s killed after %.1fs", task_id, self._deadline)
            result = BackgroundTaskResult.FAILED
        except Exception:
            logger.exception("Background task %s raised", task_id)
            result = BackgroundTaskResult.FAILED
        registration.last_result = result
        logger.debug("Background task %s finished: %s", task_id, result.value)
        return result


class UnavailableBackgroundTaskApi:
    async def is_available(self) -> bool:
        return False

    async def register(
        self,
        task_id: str,
        *,
        min_interval_seconds: float,
        callback: BackgroundCallback,
    ) -> None:
        raise BackgroundRegistrationError("Background execution is not available on this host")

    async def unregister(self, task_id: str) -> None:
        return None

    async def is_registered(self, task_id: str) -> bool:
        return False
