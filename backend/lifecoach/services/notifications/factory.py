"""Pick the notification backend named by ``NOTIFICATIONS_PROVIDER``."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable, Dict

from lifecoach.core.config import settings
from lifecoach.services.notifications.base import NotificationService
from lifecoach.services.notifications.noop import NoopNotificationService

logger = logging.getLogger(__name__)

PROVIDERS: Dict[str, Callable[[], NotificationService]] = {
    "noop": NoopNotificationService,
}


@lru_cache
def get_notification_service() -> NotificationService:
    provider = settings.notifications_provider.strip().lower()
    factory = PROVIDERS.get(provider)
    if factory is None:
        logger.warning("Unknown notifications provider %r; intervention alerts will only be logged.", provider)
        return NoopNotificationService()
    return factory()
