"""Rule-based replies used when no provider credential is configured.

Also hosts the deterministic helpers behind ``/ai/suggestions`` and
``/ai/prioritize``, which never call the provider.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Optional

from lifecoach.api.schemas.life_data import LifeData, Task
from lifecoach.services.context_aggregator import LifeSnapshot
from lifecoach.services.intent_classifier import Intent
from lifecoach.services.response_parser import ParsedReply, Suggestion, normalize_action

AMOUNT = re.compile(r"\$?(\d+(?:\.\d{1,2})?)")
DURATION = re.compile(r"(\d+)\s*(minutes?|mins?|m|hours?|hrs?|h)\b", re.IGNORECASE)
QUOTED = re.compile(r"[\"']([^\"']+)[\"']")

EXPENSE_CATEGORIES = {
    "food": ("lunch", "dinner", "breakfast", "food", "grocer", "coffee", "restaurant"),
    "transport": ("uber", "taxi", "bus", "train", "gas", "fuel", "parking"),
    "entertainment": ("movie", "game", "concert", "netflix", "spotify"),
    "shopping": ("clothes", "amazon", "shoes", "shopping"),
    "health": ("gym", "doctor", "pharmacy", "medicine"),
    "bills": ("rent", "bill", "electric", "internet", "phone"),
}
TASK_DOMAINS = {
    "work": ("work", "meeting", "project", "client", "report"),
    "health": ("gym", "doctor", "workout", "run", "health"),
    "learning": ("study", "learn", "course", "read", "exam"),
    "finance": ("pay", "bank", "budget", "tax"),
}
POSITIVE_WORDS = ("great", "happy", "amazing", "good", "excited", "grateful", "awesome")
NEGATIVE_WORDS = ("sad", "tired", "stressed", "bad", "anxious", "angry", "exhausted", "awful")


@dataclass
class _Rule:
    matches: Callable[[str], bool]
    respond: Callable[[str, LifeSnapshot, LifeData], Optional[ParsedReply]]


def _classify(text: str, table: dict, default: str) -> str:
    for label, words in table.items():
        if any(word in text for word in words):
            return label
    return default


def _strip_words(message: str, pattern: str) -> str:
    cleaned = re.sub(pattern, " ", message, flags=re.IGNORECASE)
    return re.sub(r"\s+", " ", cleaned).strip(" :,-.")


def _extract_title(message: str, keyword_pattern: str, filler_pattern: str) -> str:
    quoted = QUOTED.search(message)
    if quoted:
        return quoted.group(1).strip()
    after = re.search(rf"(?:{keyword_pattern})\s*[:\-]\s*(.+)$", message, re.IGNORECASE)
    if after:
        return after.group(1).strip()
    return _strip_words(message, filler_pattern)


def _minutes(message: str, default: int = 30) -> int:
    match = DURATION.search(message)
    if not match:
        return default
    value = int(match.group(1))
    return value * 60 if match.group(2).lower().startswith("h") else value


def _mood_from(text: str) -> int:
    if any(word in text for word in POSITIVE_WORDS):
        return 8
    if any(word in text for word in NEGATIVE_WORDS):
        return 3
    return 6


def _reply(message: str, action: Optional[dict] = None) -> ParsedReply:
    normalized = normalize_action(action) if action else None
    return ParsedReply(message=message, actions=[normalized] if normalized else [])


def _create_task(message: str, snapshot: LifeSnapshot, life_data: LifeData) -> Optional[ParsedReply]:
    title = _extract_title(message, "task|todo", r"\b(create|add|new|make|remind|me|to|task|todo|a|an)\b")
    if not title:
        return None
    lower = message.lower()
    if any(word in lower for word in ("urgent", "important", "critical")):
        priority = "high"
    elif "low priority" in lower:
        priority = "low"
    else:
        priority = "medium"
    domain = _classify(lower, TASK_DOMAINS, "personal")
    return _reply(
        f'Task created: "{title}" (priority {priority}, {domain}).',
        {"type": "create_task", "title": title, "priority": priority, "domain": domain},
    )


def _create_goal(message: str, snapshot: LifeSnapshot, life_data: LifeData) -> Optional[ParsedReply]:
    title = _extract_title(message, "goal", r"\b(create|add|new|set|goal|target|objective|a|an)\b")
    if not title:
        return None
    return _reply(
        f'Goal set: "{title}". Want to break it into a few tasks?',
        {"type": "create_goal", "title": title, "category": _classify(message.lower(), TASK_DOMAINS, "personal")},
    )


def _create_habit(message: str, snapshot: LifeSnapshot, life_data: LifeData) -> Optional[ParsedReply]:
    name = _extract_title(message, "habit", r"\b(create|add|new|start|track|habit|routine|a|an)\b")
    if not name:
        return None
    lower = message.lower()
    frequency = "weekly" if "weekly" in lower else "monthly" if "monthly" in lower else "daily"
    return _reply(
        f'Habit added: "{name}" ({frequency}). Start the streak today.',
        {"type": "create_habit", "name": name, "frequency": frequency},
    )


def _add_expense(message: str, snapshot: LifeSnapshot, life_data: LifeData) -> Optional[ParsedReply]:
    match = AMOUNT.search(message)
    amount = float(match.group(1)) if match else 0.0
    if amount <= 0:
        return None
    category = _classify(message.lower(), EXPENSE_CATEGORIES, "other")
    description = _strip_words(
        message, r"\b(spent|paid|bought|expense|purchase|for|on|dollars?)\b|\$?\d+(?:\.\d{1,2})?"
    ) or f"{category} purchase"
    return _reply(
        f"Expense logged: ${amount:.2f} for {description} ({category}).",
        {"type": "add_expense", "amount": amount, "category": category, "description": description},
    )


def _add_income(message: str, snapshot: LifeSnapshot, life_data: LifeData) -> Optional[ParsedReply]:
    match = AMOUNT.search(message)
    amount = float(match.group(1)) if match else 0.0
    if amount <= 0:
        return None
    description = _strip_words(
        message, r"\b(earned|received|income|salary|paid|me|for|on|dollars?)\b|\$?\d+(?:\.\d{1,2})?"
    ) or "Income"
    return _reply(
        f"Income recorded: ${amount:.2f} from {description}.",
        {"type": "add_income", "amount": amount, "description": description},
    )


def _log_study(message: str, snapshot: LifeSnapshot, life_data: LifeData) -> Optional[ParsedReply]:
    duration = _minutes(message)
    subject_match = re.search(r"(?:studied|studying|study|learned|learning|practiced|practice)\s+([a-z0-9]+)", message, re.IGNORECASE)
    subject = subject_match.group(1) if subject_match else "General"
    return _reply(
        f"Study session logged: {duration} minutes of {subject}.",
        {"type": "log_study", "subject": subject, "duration": duration},
    )


def _log_time(message: str, snapshot: LifeSnapshot, life_data: LifeData) -> Optional[ParsedReply]:
    duration = _minutes(message)
    lower = message.lower()
    task = _strip_words(
        message,
        r"\b(worked|work|working|spent|time|logged|log|tracked|on|for|a|an)\b|\d+\s*(?:minutes?|mins?|m|hours?|hrs?|h)\b",
    ) or "Work"
    focus = "deep" if re.search(r"deep|focus|concentrated|uninterrupted", lower) else "moderate"
    return _reply(
        f'Time logged: {duration} minutes on "{task}" ({focus} focus).',
        {
            "type": "log_time",
            "task": task,
            "duration": duration,
            "category": _classify(lower, TASK_DOMAINS, "work"),
            "focusQuality": focus,
        },
    )


def _journal(message: str, snapshot: LifeSnapshot, life_data: LifeData) -> Optional[ParsedReply]:
    content = re.sub(
        r"^(create|add|make|new|write)?\s*(a|an)?\s*(note|journal|entry)?\s*:?\s*", "", message, flags=re.IGNORECASE
    ).strip()
    if not content:
        return None
    mood = _mood_from(message.lower())
    closing = "Glad you're feeling good!" if mood >= 7 else "I hope things get better soon." if mood <= 4 else "Thanks for sharing!"
    return _reply(
        f"Journal entry saved (mood {mood}/10). {closing}",
        {"type": "create_journal", "content": content, "mood": mood, "energy": mood},
    )


def _complete_task(message: str, snapshot: LifeSnapshot, life_data: LifeData) -> Optional[ParsedReply]:
    match = re.search(r"(?:task|todo)\s+[\"']?([^\"'\n]+)[\"']?", message, re.IGNORECASE)
    if not match:
        return None
    wanted = match.group(1).strip().lower()
    task = next((task for task in life_data.tasks if wanted in task.title.lower() and not task.is_completed), None)
    if task is None:
        return _reply(f'I couldn\'t find a task matching "{match.group(1).strip()}".')
    return _reply(f'Marked "{task.title}" as done. Nice work!', {"type": "complete_task", "taskId": task.id, "title": task.title})


def _complete_habit(message: str, snapshot: LifeSnapshot, life_data: LifeData) -> Optional[ParsedReply]:
    match = re.search(r"habit\s+[\"']?([^\"'\n]+)[\"']?", message, re.IGNORECASE)
    if not match:
        return None
    wanted = match.group(1).strip().lower()
    habit = next((habit for habit in life_data.habits if wanted in habit.name.lower()), None)
    if habit is None:
        return _reply(f'I couldn\'t find a habit matching "{match.group(1).strip()}".')
    return _reply(
        f'"{habit.name}" done for today, streak now {habit.streak + 1} days.',
        {"type": "complete_habit", "habitId": habit.id, "name": habit.name},
    )


def _overview(message: str, snapshot: LifeSnapshot, life_data: LifeData) -> Optional[ParsedReply]:
    tasks = snapshot.tasks
    habits = snapshot.habits
    lines = [f"Here's your {snapshot.profile.time_of_day} overview:"]
    lines.append(
        f"- Tasks: {tasks.pending} pending, {tasks.due_today} due today"
        + (f", {tasks.overdue} overdue" if tasks.overdue else "")
    )
    if habits.total:
        lines.append(f"- Habits: {habits.completed_today}/{habits.total} done today")
        if habits.streaks_at_risk:
            lines.append("- Streaks at risk: " + ", ".join(risk.name for risk in habits.streaks_at_risk))
    if snapshot.time.today_minutes:
        lines.append(f"- Time tracked today: {snapshot.time.today_minutes:.0f} minutes")
    if snapshot.finance.month_income or snapshot.finance.month_expenses:
        lines.append(f"- Balance this month: ${snapshot.finance.balance:.2f}")
    return _reply("\n".join(lines))


def _has(*patterns: str) -> Callable[[str], bool]:
    compiled = [re.compile(pattern, re.IGNORECASE) for pattern in patterns]
    return lambda text: all(regex.search(text) for regex in compiled)


RULES: List[_Rule] = [
    _Rule(_has(r"\b(create|add|new|make|remind)\b", r"\b(task|todo)\b"), _create_task),
    _Rule(_has(r"\b(complete|done|finish|finished)\b", r"\btask\b"), _complete_task),
    _Rule(_has(r"\b(complete|done|did|mark)\b", r"\bhabit\b"), _complete_habit),
    _Rule(_has(r"\b(create|add|new|set)\b", r"\b(goal|target|objective)\b"), _create_goal),
    _Rule(_has(r"\b(create|add|new|start|track)\b", r"\b(habit|routine)\b"), _create_habit),
    _Rule(_has(r"\b(earned|received|income|salary)\b"), _add_income),
    _Rule(_has(r"\b(spent|paid|bought|expense|purchase)\b|\$\d"), _add_expense),
    _Rule(_has(r"\b(studied|study|studying|learned|practiced)\b"), _log_study),
    _Rule(_has(r"\b(worked|working|logged|tracked|log)\b", r"\d"), _log_time),
    _Rule(_has(r"^(note|journal|write|i|i'm|im|feeling|felt)\b"), _journal),
    _Rule(_has(r"\b(today|schedule|overview|summary|priorities|pending)\b"), _overview),
]

HELP_MESSAGE = (
    "My full assistant is offline right now, but I can still help with things like:\n"
    '- "Create task: Buy groceries"\n'
    '- "Spent $45 on lunch"\n'
    '- "Worked 2 hours on the project"\n'
    '- "Show today\'s overview"'
)


def respond(message: str, snapshot: LifeSnapshot, life_data: LifeData, intent: Intent) -> ParsedReply:
    """Answer a turn without the provider; always returns a reply."""
    suggestions = suggestions_for(snapshot)
    if intent == Intent.GREETING:
        reply = _overview(message, snapshot, life_data)
        greeting = f"Good {snapshot.profile.time_of_day}, {snapshot.profile.name}!"
        return ParsedReply(message=f"{greeting}\n{reply.message}", suggestions=suggestions)

    for rule in RULES:
        if rule.matches(message):
            reply = rule.respond(message, snapshot, life_data)
            if reply is not None:
                return ParsedReply(message=reply.message, actions=reply.actions, suggestions=suggestions)
    return ParsedReply(message=HELP_MESSAGE, suggestions=suggestions)


def suggestions_for(snapshot: LifeSnapshot, limit: int = 3) -> List[Suggestion]:
    suggestions: List[Suggestion] = []
    if snapshot.tasks.overdue:
        suggestions.append(
            Suggestion(text="Show my overdue tasks", action="show_overdue", reason=f"You have {snapshot.tasks.overdue} overdue tasks")
        )
    if snapshot.habits.completed_today < snapshot.habits.total:
        remaining = snapshot.habits.total - snapshot.habits.completed_today
        suggestions.append(
            Suggestion(text="What habits should I do today?", action="show_habits", reason=f"{remaining} habits remaining")
        )
    if snapshot.time.today_minutes < 60:
        suggestions.append(Suggestion(text="Log my work time", action="log_time", reason="Low time logged today"))
    if snapshot.journal.days_since_last_entry is None or snapshot.journal.days_since_last_entry >= 3:
        suggestions.append(Suggestion(text="Write a quick journal entry", action="create_journal", reason="No recent reflection"))
    return suggestions[:limit]


def time_of_day_suggestions(snapshot: LifeSnapshot, now: datetime) -> List[Suggestion]:
    """Suggestions tuned to the hour, followed by data-driven ones."""
    hour = now.hour
    if hour < 12:
        timed = Suggestion(text="Plan my top 3 priorities for today", action="plan_day", reason="Morning planning sets the tone")
    elif hour < 17:
        timed = Suggestion(text="Start a 25 minute focus session", action="start_pomodoro", reason="Afternoon focus block")
    else:
        timed = Suggestion(text="Reflect on how today went", action="create_journal", reason="Evening reflection")
    return [timed] + suggestions_for(snapshot, limit=3)


PRIORITY_BASE = {"critical": 85, "urgent": 85, "high": 70, "medium": 50, "low": 30}


@dataclass(frozen=True)
class TaskPriority:
    task_id: Optional[str]
    title: str
    score: int
    reasoning: str


def score_task(task: Task, today: date) -> TaskPriority:
    score = PRIORITY_BASE.get(task.priority, 50)
    reasons = [f"{task.priority} priority"]
    if task.due_date is not None:
        days = (task.due_date - today).days
        if days < 0:
            score += 25
            reasons.append(f"overdue by {-days} day{'s' if days != -1 else ''}")
        elif days == 0:
            score += 20
            reasons.append("due today")
        elif days <= 3:
            score += 10
            reasons.append(f"due in {days} days")
    if task.status == "blocked":
        score -= 20
        reasons.append("blocked")
    elif task.status == "in_progress":
        score += 5
        reasons.append("already in progress")
    return TaskPriority(task_id=task.id, title=task.title, score=max(0, min(100, score)), reasoning=", ".join(reasons))


def prioritize(life_data: LifeData, today: date) -> List[TaskPriority]:
    scored = [score_task(task, today) for task in life_data.tasks if not task.is_completed]
    return sorted(scored, key=lambda item: (-item.score, item.title))
