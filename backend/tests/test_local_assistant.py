from __future__ import annotations

from datetime import date, datetime

from lifecoach.api.schemas.life_data import LifeData
from lifecoach.services import context_aggregator, local_assistant
from lifecoach.services.intent_classifier import Intent, classify

NOW = datetime(2026, 3, 4, 9, 0)


def _reply(message: str, life_data: LifeData | None = None):
    life_data = life_data or LifeData()
    snapshot = context_aggregator.build(life_data, NOW)
    return local_assistant.respond(message, snapshot, life_data, classify(message))


def test_greeting_includes_overview() -> None:
    life_data = LifeData.from_payload({"settings": {"userName": "Sam"}})

    reply = _reply("hi", life_data)

    assert reply.message.startswith("Good morning, Sam!\nHere's your morning overview:")
    assert reply.actions == []


def test_create_task_produces_action() -> None:
    reply = _reply("Create task: Buy groceries")

    assert reply.message == 'Task created: "Buy groceries" (priority medium, personal).'
    assert reply.wire_actions() == [
        {"type": "create_task", "data": {"title": "Buy groceries", "domain": "personal", "priority": "medium"}}
    ]


def test_expense_is_categorized() -> None:
    reply = _reply("Spent $45 on lunch")

    assert reply.message == "Expense logged: $45.00 for lunch (food)."
    action = reply.wire_actions()[0]
    assert action["type"] == "add_expense"
    assert action["data"]["amount"] == 45.0
    assert action["data"]["category"] == "food"


def test_complete_task_matches_existing_record() -> None:
    life_data = LifeData.from_payload({"tasks": [{"id": "t1", "title": "Buy groceries"}]})

    reply = _reply("complete task groceries", life_data)

    assert reply.wire_actions() == [{"type": "complete_task", "data": {"taskId": "t1", "title": "Buy groceries"}}]


def test_complete_task_without_match_has_no_action() -> None:
    reply = _reply("complete task taxes")

    assert reply.message == 'I couldn\'t find a task matching "taxes".'
    assert reply.actions == []


def test_unmatched_message_gets_help() -> None:
    reply = _reply("what is the meaning of life?")

    assert reply.message == local_assistant.HELP_MESSAGE
    assert [suggestion.action for suggestion in reply.suggestions] == ["log_time", "create_journal"]


def test_greeting_intent_is_respected_even_for_action_words() -> None:
    snapshot = context_aggregator.build(LifeData(), NOW)

    reply = local_assistant.respond("add", snapshot, LifeData(), Intent.GREETING)

    assert reply.message.startswith("Good morning, User!")


def test_time_of_day_suggestions_lead_with_timed_item() -> None:
    snapshot = context_aggregator.build(LifeData(), NOW)

    morning = local_assistant.time_of_day_suggestions(snapshot, NOW)
    evening = local_assistant.time_of_day_suggestions(snapshot, NOW.replace(hour=20))

    assert morning[0].action == "plan_day"
    assert evening[0].action == "create_journal"
    assert len(morning) == 3


def test_prioritize_orders_by_score() -> None:
    life_data = LifeData.from_payload(
        {
            "tasks": [
                {"id": "a", "title": "Low chore", "priority": "low"},
                {"id": "b", "title": "Late report", "priority": "high", "dueDate": "2026-03-02"},
                {"id": "c", "title": "Blocked launch", "priority": "critical", "status": "blocked"},
                {"id": "d", "title": "Draft", "priority": "medium", "status": "in_progress", "dueDate": "2026-03-06"},
                {"id": "e", "title": "Done", "priority": "high", "status": "completed"},
            ]
        }
    )

    ranked = local_assistant.prioritize(life_data, date(2026, 3, 4))

    assert [(item.task_id, item.score) for item in ranked] == [("b", 95), ("c", 65), ("d", 65), ("a", 30)]
    assert ranked[0].reasoning == "high priority, overdue by 2 days"
    assert ranked[2].reasoning == "medium priority, due in 2 days, already in progress"
