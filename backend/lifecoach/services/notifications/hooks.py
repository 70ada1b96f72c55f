"""Dispatch critical interventions to the configured notification provider."""
from __future__ import annotations

import logging
from time import perf_counter
from typing import List

from lifecoach.api.schemas.insights import Intervention
from lifecoach.core.config import settings
from lifecoach.observability.metrics import log_metric
from lifecoach.observability.tracing import trace
from lifecoach.services.notifications.base import NotificationResult
from lifecoach.services.notifications.factory import get_notification_service


logger = logging.getLogger(__name__)


def notify_critical_interventions(
    user_id: str,
    interventions: List[Intervention],
    request_id: str | None,
) -> List[NotificationResult]:
    critical = [item for item in interventions if item.severity == "critical"]
    if not critical:
        return []
    if not settings.notifications_enabled:
        log_metric("notifications.skipped", len(critical), metadata={"reason": "disabled"})
        return [NotificationResult(status="skipped", reason="notifications disabled") for _ in critical]

    service = get_notification_service()
    results: List[NotificationResult] = []
    for intervention in critical:
        start = perf_counter()
        with trace(
            "notifications.intervention",
            metadata={
                "user_id": user_id,
                "intervention_id": intervention.id,
                "type": intervention.type,
                "provider": settings.notifications_provider,
                "llm_input_text": intervention.title[:500],
            },
            user_id=user_id,
            request_id=request_id,
        ) as notification_trace:
            result = service.notify_intervention(user_id=user_id, intervention=intervention, request_id=request_id)
            if notification_trace:
                notification_trace.update(output={"llm_output_text": (result.reason or result.status)[:500]})
        log_metric("notifications.sent", 1, metadata={"type": intervention.type, "provider": settings.notifications_provider})
        log_metric("notifications.duration_ms", (perf_counter() - start) * 1000, metadata={"type": intervention.type})
        results.append(result)
    return results
