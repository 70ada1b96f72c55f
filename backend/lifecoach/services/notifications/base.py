"""Notification service interface."""
from __future__ import annotations

from dataclasses import dataclass

from lifecoach.api.schemas.insights import Intervention


@dataclass
class NotificationResult:
    status: str
    reason: str


class NotificationService:
    """Base interface for notification providers."""

    def notify_intervention(
        self,
        *,
        user_id: str,
        intervention: Intervention,
        request_id: str | None,
    ) -> NotificationResult:
        raise NotImplementedError
