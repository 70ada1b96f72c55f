from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from lifecoach.api.schemas.life_data import LifeData
from lifecoach.services import intervention_service
from lifecoach.services.intervention_service import (
    InterventionStore,
    check_all,
    check_budget,
    check_burnout,
    check_focus,
    check_streaks,
)

NOW = datetime(2026, 3, 4, 14, 0)  # Wednesday
TODAY = NOW.date()


def _days_ago(days: int) -> str:
    return (TODAY - timedelta(days=days)).isoformat()


def _overworked_payload() -> dict:
    return {
        "timeEntries": [
            {"category": "work", "duration": 650, "date": f"{_days_ago(day)}T09:00:00"} for day in range(6)
        ],
        "journalEntries": [
            {"date": _days_ago(day), "mood": 3, "energy": 3, "content": "Feeling exhausted and stressed"}
            for day in range(6)
        ],
        "habits": [{"id": "h1", "name": "Morning run", "streak": 0, "completions": []}],
    }


def test_burnout_critical_for_overworked_week() -> None:
    intervention = check_burnout(LifeData.from_payload(_overworked_payload()), NOW)

    assert intervention is not None
    assert intervention.severity == "critical"
    assert intervention.evidence["score"] == pytest.approx(0.76)
    assert intervention.evidence["work_hours"] == 65.0
    assert intervention.evidence["stress_mentions"] == 6
    assert "set_work_boundary" in [action.action for action in intervention.actions]


def test_burnout_silent_for_balanced_week() -> None:
    payload = {
        "timeEntries": [{"category": "work", "duration": 400, "date": f"{_days_ago(1)}T09:00:00"}],
        "journalEntries": [{"date": _days_ago(1), "mood": 8, "energy": 7, "content": "Good day"}],
    }

    assert check_burnout(LifeData.from_payload(payload), NOW) is None


def test_budget_alert_severity_follows_spend() -> None:
    def _spend(amount: float) -> LifeData:
        return LifeData.from_payload(
            {
                "settings": {"weeklyBudget": 500},
                "transactions": [
                    {"type": "expense", "amount": amount, "category": "dining", "date": _days_ago(1)},
                    {"type": "expense", "amount": 999, "category": "travel", "date": _days_ago(7)},
                ],
            }
        )

    assert check_budget(_spend(150), NOW) is None
    warning = check_budget(_spend(400), NOW)
    critical = check_budget(_spend(475), NOW)

    assert warning.severity == "warning"
    assert warning.evidence["week_spending"] == 400
    assert "Top category: dining ($400)" in warning.explanation
    assert critical.severity == "critical"


def test_streak_alerts_only_after_alert_hour(monkeypatch) -> None:
    monkeypatch.setattr(intervention_service.settings, "streak_alert_hour", 18)
    life_data = LifeData.from_payload(
        {
            "habits": [
                {"id": "long", "name": "Meditate", "streak": 20},
                {"id": "short", "name": "Stretch", "streak": 6},
                {"id": "tiny", "name": "Floss", "streak": 2},
                {
                    "id": "done",
                    "name": "Read",
                    "streak": 30,
                    "completions": [{"date": TODAY.isoformat(), "completed": True}],
                },
                {"id": "paused", "name": "Piano", "streak": 40, "active": False},
            ]
        }
    )

    assert check_streaks(life_data, NOW.replace(hour=10)) == []
    alerts = check_streaks(life_data, NOW.replace(hour=19))

    assert [(alert.evidence["habit_id"], alert.severity) for alert in alerts] == [
        ("long", "critical"),
        ("short", "warning"),
    ]
    assert alerts[0].actions[0].action == "complete_habit:long"


def test_focus_check_during_work_hours(monkeypatch) -> None:
    monkeypatch.setattr(intervention_service.settings, "work_hours_start", 10)
    monkeypatch.setattr(intervention_service.settings, "work_hours_end", 18)
    tasks = [{"id": str(index), "title": f"Task {index}", "dueDate": _days_ago(index)} for index in range(4)]
    life_data = LifeData.from_payload({"tasks": tasks})

    intervention = check_focus(life_data, NOW)

    assert intervention is not None
    assert intervention.severity == "warning"
    assert intervention.evidence["expected_minutes"] == 150
    assert intervention.actions[1].action == "focus_task:Task 3"
    assert check_focus(life_data, NOW.replace(hour=20)) is None


def test_focus_check_satisfied_by_logged_work(monkeypatch) -> None:
    monkeypatch.setattr(intervention_service.settings, "work_hours_start", 10)
    monkeypatch.setattr(intervention_service.settings, "work_hours_end", 18)
    life_data = LifeData.from_payload(
        {
            "tasks": [{"title": "Report", "dueDate": TODAY.isoformat()}],
            "timeEntries": [{"category": "study", "duration": 120, "date": f"{TODAY.isoformat()}T10:00:00"}],
        }
    )

    assert check_focus(life_data, NOW) is None


def test_detection_ids_are_stable() -> None:
    life_data = LifeData.from_payload(_overworked_payload())

    first = [item.id for item in check_all(life_data, NOW)]
    second = [item.id for item in check_all(life_data, NOW)]

    assert first == second
    assert first[0].startswith("burnout-2026-03-04-")


def test_store_dismiss_keeps_item_out_of_active() -> None:
    store = InterventionStore()
    detected = check_all(LifeData.from_payload(_overworked_payload()), NOW)

    fresh = store.refresh("u1", detected)
    assert [item.id for item in fresh] == [item.id for item in detected]

    assert store.dismiss("u1", detected[0].id) is True
    assert store.dismiss("u1", "missing") is False
    assert detected[0].id not in [item.id for item in store.active("u1")]

    again = store.refresh("u1", detected)
    assert detected[0].id not in [item.id for item in again]
    assert store.active("u2") == []


def test_store_is_bounded() -> None:
    store = InterventionStore(limit=3)
    base = check_burnout(LifeData.from_payload(_overworked_payload()), NOW)

    for index in range(5):
        store.refresh("u1", [base.model_copy(update={"id": f"item-{index}"})])

    assert [item.id for item in store.active("u1")] == ["item-4", "item-3", "item-2"]


def test_store_forgets_oldest_dismissals() -> None:
    store = InterventionStore(dismissed_limit=2)
    base = check_burnout(LifeData.from_payload(_overworked_payload()), NOW)
    items = [base.model_copy(update={"id": f"item-{index}"}) for index in range(3)]

    for item in items:
        store.refresh("u1", [item])
        assert store.dismiss("u1", item.id) is True

    again = store.refresh("u1", items)

    assert [item.id for item in again] == ["item-0"]
