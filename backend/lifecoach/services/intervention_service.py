"""Risk detectors that turn life data into interventions."""
from __future__ import annotations

import hashlib
import logging
import re
import threading
from collections import OrderedDict, defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from statistics import mean
from typing import Dict, List, Optional

from lifecoach.api.schemas.insights import Intervention, InterventionAction
from lifecoach.api.schemas.life_data import Habit, JournalEntry, LifeData, Task
from lifecoach.core.config import settings
from lifecoach.services.clock import last_days, week_start

logger = logging.getLogger(__name__)

# Burnout
BURNOUT_WEIGHTS = {
    "work_hours": 0.30,
    "low_energy": 0.20,
    "low_mood": 0.20,
    "no_exercise": 0.15,
    "stress_mentions": 0.15,
}
BURNOUT_WORK_HOURS_CAP = 60
BURNOUT_NEUTRAL_SCORE = 5
BURNOUT_EXERCISE_TARGET = 3
BURNOUT_STRESS_CAP = 5
BURNOUT_MIN_SCORE = 0.5
BURNOUT_CRITICAL = 0.75
BURNOUT_WARNING = 0.6

# Budget
BUDGET_OVERRUN_MARGIN = 10
BUDGET_CRITICAL_PERCENT = 90
BUDGET_WARNING_PERCENT = 70

# Streaks
STREAK_MIN = 5
STREAK_CRITICAL = 14

# Focus
FOCUS_MINUTES_PER_HOUR = 30
FOCUS_SHORTFALL_RATIO = 0.7
FOCUS_WARNING_OVERDUE = 3
FOCUS_CATEGORIES = {"work", "study"}

STORE_LIMIT = 10
DISMISSED_LIMIT = 50

EXERCISE_PATTERN = re.compile(r"gym|exercise|workout|run|yoga", re.IGNORECASE)
STRESS_PATTERN = re.compile(r"stress|overwhelm|exhausted|burned|tired|anxious", re.IGNORECASE)


@dataclass(frozen=True)
class BurnoutSignals:
    work_hours: float
    low_energy: float
    low_mood: float
    no_exercise: float
    stress_mentions: float

    @property
    def score(self) -> float:
        return sum(getattr(self, name) * weight for name, weight in BURNOUT_WEIGHTS.items())

    def as_dict(self) -> Dict[str, float]:
        return {name: round(getattr(self, name), 3) for name in BURNOUT_WEIGHTS}


def _intervention_id(kind: str, key: str, day: date) -> str:
    digest = hashlib.sha1(f"{kind}:{key}:{day.isoformat()}".encode("utf-8")).hexdigest()[:10]
    return f"{kind}-{day.isoformat()}-{digest}"


def is_exercise_habit(habit: Habit) -> bool:
    return bool(EXERCISE_PATTERN.search(habit.name))


def recent_journals(entries: List[JournalEntry], today: date, days: int = 7) -> List[JournalEntry]:
    window = set(last_days(today, days))
    return [entry for entry in entries if entry.date in window]


def _mean_or_neutral(values: List[Optional[float]]) -> float:
    present = [value for value in values if value is not None]
    return mean(present) if present else float(BURNOUT_NEUTRAL_SCORE)


def burnout_signals(life_data: LifeData, today: date) -> tuple[BurnoutSignals, Dict[str, float]]:
    """Normalize the five burnout inputs into [0, 1] signals.

    Returns the signals and the raw observations behind them.
    """
    window = set(last_days(today, 7))
    work_minutes = sum(
        entry.duration
        for entry in life_data.time_entries
        if entry.date is not None and entry.date.date() in window and entry.category == "work"
    )
    work_hours = work_minutes / 60

    journals = recent_journals(life_data.journal_entries, today)
    avg_energy = _mean_or_neutral([entry.energy for entry in journals])
    avg_mood = _mean_or_neutral([entry.mood for entry in journals])

    exercise_days = sum(
        1
        for habit in life_data.habits
        if is_exercise_habit(habit)
        for completion in habit.completions
        if completion.completed and completion.date in window
    )
    stress_mentions = sum(1 for entry in journals if STRESS_PATTERN.search(entry.content or ""))

    signals = BurnoutSignals(
        work_hours=min(1.0, work_hours / BURNOUT_WORK_HOURS_CAP),
        low_energy=(BURNOUT_NEUTRAL_SCORE - avg_energy) / BURNOUT_NEUTRAL_SCORE if avg_energy < BURNOUT_NEUTRAL_SCORE else 0.0,
        low_mood=(BURNOUT_NEUTRAL_SCORE - avg_mood) / BURNOUT_NEUTRAL_SCORE if avg_mood < BURNOUT_NEUTRAL_SCORE else 0.0,
        no_exercise=(
            (BURNOUT_EXERCISE_TARGET - exercise_days) / BURNOUT_EXERCISE_TARGET
            if exercise_days < BURNOUT_EXERCISE_TARGET
            else 0.0
        ),
        stress_mentions=min(1.0, stress_mentions / BURNOUT_STRESS_CAP),
    )
    observed = {
        "work_hours": round(work_hours, 1),
        "avg_energy": round(avg_energy, 1),
        "avg_mood": round(avg_mood, 1),
        "exercise_days": exercise_days,
        "stress_mentions": stress_mentions,
    }
    return signals, observed


def burnout_severity(score: float) -> Optional[str]:
    if score < BURNOUT_MIN_SCORE:
        return None
    if score > BURNOUT_CRITICAL:
        return "critical"
    if score > BURNOUT_WARNING:
        return "warning"
    return "info"


def check_burnout(life_data: LifeData, now: datetime) -> Optional[Intervention]:
    today = now.date()
    signals, observed = burnout_signals(life_data, today)
    score = signals.score
    severity = burnout_severity(score)
    if severity is None:
        return None

    parts: List[str] = []
    if signals.work_hours > 0.7:
        parts.append(f"{observed['work_hours']:.0f}h worked this week (high)")
    if signals.low_energy > 0.3:
        parts.append(f"Energy averaging {observed['avg_energy']:.1f}/10")
    if signals.no_exercise > 0.5:
        parts.append(f"Only {observed['exercise_days']} exercise days")
    if signals.stress_mentions > 0.3:
        parts.append("Multiple stress mentions in journal")

    actions: List[InterventionAction] = []
    if signals.work_hours > 0.6:
        actions.append(InterventionAction(text="Set hard stop at 6pm today", action="set_work_boundary", priority="critical"))
    if signals.no_exercise > 0.4:
        actions.append(InterventionAction(text="Schedule a walk for today", action="schedule_exercise", priority="high"))
    if signals.low_energy > 0.4:
        actions.append(InterventionAction(text="Take a 20min break now", action="start_break_timer", priority="high"))
    actions.append(InterventionAction(text="Talk to the assistant about workload", action="open_chat:burnout", priority="medium"))

    return Intervention(
        id=_intervention_id("burnout", severity, today),
        type="burnout",
        severity=severity,
        title="Burnout risk detected" if severity == "critical" else "High stress warning",
        message=f"Your burnout risk score is {score * 100:.0f}%",
        explanation=" / ".join(parts),
        actions=actions,
        created_at=now,
        evidence={"score": round(score, 3), "signals": signals.as_dict(), **observed},
    )


def check_budget(life_data: LifeData, now: datetime) -> Optional[Intervention]:
    today = now.date()
    weekly_budget = life_data.settings.weekly_budget or settings.weekly_budget
    if weekly_budget <= 0:
        return None

    monday = week_start(today)
    days_into_week = today.weekday() + 1
    week_expenses = [
        tx
        for tx in life_data.transactions
        if tx.type == "expense" and tx.date is not None and monday <= tx.date <= today
    ]
    week_spending = sum(tx.amount for tx in week_expenses)
    projected = week_spending / days_into_week * 7
    percent_of_budget = week_spending / weekly_budget * 100
    expected_percent = days_into_week / 7 * 100
    if percent_of_budget <= expected_percent + BUDGET_OVERRUN_MARGIN:
        return None

    if percent_of_budget > BUDGET_CRITICAL_PERCENT:
        severity = "critical"
    elif percent_of_budget > BUDGET_WARNING_PERCENT:
        severity = "warning"
    else:
        severity = "info"

    by_category: Dict[str, float] = defaultdict(float)
    for tx in week_expenses:
        by_category[tx.category] += tx.amount
    top = max(sorted(by_category.items()), key=lambda item: item[1]) if by_category else None
    explanation = f"At this pace, you'll spend ${projected:.0f} this week vs your ${weekly_budget:.0f} budget."
    if top:
        explanation += f" Top category: {top[0]} (${top[1]:.0f})"

    return Intervention(
        id=_intervention_id("budget", severity, today),
        type="budget",
        severity=severity,
        title="Budget alert",
        message=(
            f"You've spent ${week_spending:.0f} ({percent_of_budget:.0f}%) "
            f"with {7 - days_into_week} days left"
        ),
        explanation=explanation,
        actions=[
            InterventionAction(text="Review transactions", action="navigate:/finance", priority="high"),
            InterventionAction(text="Cut 2 purchases", action="suggest_cuts", priority="medium"),
            InterventionAction(text="Adjust weekly budget", action="edit_budget", priority="low"),
        ],
        created_at=now,
        evidence={
            "week_spending": round(week_spending, 2),
            "weekly_budget": weekly_budget,
            "projected_spending": round(projected, 2),
            "category_spending": dict(by_category),
        },
    )


def check_streaks(life_data: LifeData, now: datetime) -> List[Intervention]:
    """One intervention per long streak not yet completed today, after the alert hour."""
    if now.hour < settings.streak_alert_hour:
        return []
    today = now.date()
    interventions: List[Intervention] = []
    for habit in life_data.habits:
        if not habit.active or habit.streak < STREAK_MIN or habit.completed_on(today):
            continue
        key = habit.id or habit.name
        last_done = habit.last_completed()
        interventions.append(
            Intervention(
                id=_intervention_id("streak", key, today),
                type="streak",
                severity="critical" if habit.streak >= STREAK_CRITICAL else "warning",
                title=f"{habit.streak}-day streak at risk",
                message=f'Your "{habit.name}" streak will break at midnight!',
                explanation=f'You\'ve built a {habit.streak}-day streak with "{habit.name}". Don\'t let it reset now.',
                actions=[
                    InterventionAction(text="Mark as done", action=f"complete_habit:{key}", priority="critical"),
                    InterventionAction(text="Remind me in 1 hour", action=f"remind:{key}:1h", priority="medium"),
                    InterventionAction(text="Skip today (break streak)", action=f"skip:{key}", priority="low"),
                ],
                created_at=now,
                evidence={
                    "habit_id": habit.id,
                    "streak": habit.streak,
                    "last_completed": last_done.isoformat() if last_done else None,
                },
            )
        )
    return interventions


def _pending_due(tasks: List[Task], today: date) -> List[Task]:
    due = [task for task in tasks if not task.is_completed and task.due_date is not None and task.due_date <= today]
    return sorted(due, key=lambda task: (task.due_date, task.title))


def check_focus(life_data: LifeData, now: datetime) -> Optional[Intervention]:
    hour = now.hour
    if hour < settings.work_hours_start or hour > settings.work_hours_end:
        return None
    today = now.date()
    focus_minutes = sum(
        entry.duration
        for entry in life_data.time_entries
        if entry.date is not None and entry.date.date() == today and entry.category in FOCUS_CATEGORIES
    )
    expected = (hour - (settings.work_hours_start - 1)) * FOCUS_MINUTES_PER_HOUR
    if focus_minutes >= expected * FOCUS_SHORTFALL_RATIO:
        return None

    overdue = _pending_due(life_data.tasks, today)
    if not overdue:
        return None
    urgent = overdue[0]
    plural = "s" if len(overdue) > 1 else ""
    return Intervention(
        id=_intervention_id("focus", urgent.id or urgent.title, today),
        type="focus",
        severity="warning" if len(overdue) > FOCUS_WARNING_OVERDUE else "info",
        title="Focus check",
        message=f"{focus_minutes:.0f}min logged, {len(overdue)} tasks pending",
        explanation=(
            f"It's {hour}:00 and you've logged {focus_minutes:.0f}min of focused work, "
            f"but have {len(overdue)} overdue task{plural}. Time to focus!"
        ),
        actions=[
            InterventionAction(text="Start 25min focus session", action="start_pomodoro", priority="high"),
            InterventionAction(text=f"Work on: {urgent.title[:30]}", action=f"focus_task:{urgent.title}", priority="high"),
            InterventionAction(text="Block distractions", action="block_distractions", priority="medium"),
        ],
        created_at=now,
        evidence={"focus_minutes": focus_minutes, "expected_minutes": expected, "overdue_count": len(overdue)},
    )


def check_all(life_data: LifeData, now: datetime) -> List[Intervention]:
    """Run every detector and merge the results in a fixed order."""
    interventions: List[Intervention] = []
    burnout = check_burnout(life_data, now)
    if burnout:
        interventions.append(burnout)
    budget = check_budget(life_data, now)
    if budget:
        interventions.append(budget)
    interventions.extend(check_streaks(life_data, now))
    focus = check_focus(life_data, now)
    if focus:
        interventions.append(focus)
    return interventions


class InterventionStore:
    """Per-user bounded list of recent interventions, newest first."""

    def __init__(self, limit: int = STORE_LIMIT, dismissed_limit: int = DISMISSED_LIMIT) -> None:
        self._limit = limit
        self._dismissed_limit = dismissed_limit
        self._items: Dict[str, List[Intervention]] = {}
        self._dismissed: Dict[str, OrderedDict[str, None]] = defaultdict(OrderedDict)
        self._lock = threading.Lock()

    def refresh(self, user_id: str, detected: List[Intervention]) -> List[Intervention]:
        """Merge freshly detected interventions and return the ones not dismissed before."""
        with self._lock:
            dismissed = self._dismissed[user_id]
            fresh = [item for item in detected if item.id not in dismissed]
            fresh_ids = {item.id for item in fresh}
            kept = [
                item
                for item in self._items.get(user_id, [])
                if not item.dismissed and item.id not in fresh_ids
            ]
            self._items[user_id] = (fresh + kept)[: self._limit]
            return list(fresh)

    def dismiss(self, user_id: str, intervention_id: str) -> bool:
        with self._lock:
            for index, item in enumerate(self._items.get(user_id, [])):
                if item.id == intervention_id:
                    self._items[user_id][index] = item.model_copy(update={"dismissed": True})
                    dismissed = self._dismissed[user_id]
                    dismissed[intervention_id] = None
                    # Ids carry their date, so only the most recent ones can recur.
                    while len(dismissed) > self._dismissed_limit:
                        dismissed.popitem(last=False)
                    return True
            return False

    def active(self, user_id: str) -> List[Intervention]:
        with self._lock:
            return [item for item in self._items.get(user_id, []) if not item.dismissed]
