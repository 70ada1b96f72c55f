"""No-op notification provider (logs only)."""
from __future__ import annotations

import logging

from lifecoach.api.schemas.insights import Intervention
from lifecoach.services.notifications.base import NotificationResult, NotificationService


logger = logging.getLogger(__name__)


class NoopNotificationService(NotificationService):
    def notify_intervention(
        self,
        *,
        user_id: str,
        intervention: Intervention,
        request_id: str | None,
    ) -> NotificationResult:
        logger.info(
            "Notification queued (noop) intervention user=%s id=%s type=%s severity=%s",
            user_id,
            intervention.id,
            intervention.type,
            intervention.severity,
        )
        return NotificationResult(status="noop", reason="notification provider is noop")
