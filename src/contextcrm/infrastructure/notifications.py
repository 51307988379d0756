"""In-memory NotificationDispatcher: records what would have been shown to the user."""

import logging

from contextcrm.application.dto import NotificationRequest

logger = logging.getLogger(__name__)


class InMemoryNotificationDispatcher:
    def __init__(self, *, permission_granted: bool = True) -> None:
        self.permission_granted = permission_granted
        self.scheduled: list[NotificationRequest] = []

    async def request_permission(self) -> bool:
        return self.permission_granted

    async def schedule(self, request: NotificationRequest) -> None:
        logger.info("Notification: %s - %s", request.title, request.body)
        self.scheduled.append(request)
