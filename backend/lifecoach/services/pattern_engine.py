"""Local cross-domain correlation and cascade detection."""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from math import sqrt
from statistics import mean
from typing import Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from lifecoach.api.schemas.insights import CascadeChain, Correlation, DetectionResult, PatternInsight
from lifecoach.api.schemas.life_data import LifeData
from lifecoach.core.config import settings
from lifecoach.services import intervention_service
from lifecoach.services.intervention_service import is_exercise_habit

logger = logging.getLogger(__name__)

MIN_PAIRED_DAYS = 5
MIN_GROUP_DAYS = 3
MIN_STRESSED_DAYS = 3
SPENDING_WINDOW_DAYS = 30
HABIT_TASK_THRESHOLD = 0.5
EXERCISE_MOOD_THRESHOLD = 0.4
SPENDING_STRESS_THRESHOLD = 0.5
EXERCISE_MOOD_SCALE = 5
STRESSED_MOOD = 4
STRESS_KEYWORD = "stress"
PEAK_HOURS = 3
CASCADE_MIN_FREQUENCY = 3
CASCADE_CRITICAL_FREQUENCY = 5
SLEEP_CASCADE = ["Poor Sleep", "Low Energy", "Skipped Exercise", "Low Mood", "Task Failure"]


@dataclass
class DailyCounts:
    habits_completed: int = 0
    habits_total: int = 0
    tasks_completed: int = 0
    tasks_total: int = 0


def clamp(value: float, low: float = -1.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def pearson(xs: Sequence[float], ys: Sequence[float]) -> Optional[float]:
    """Pearson coefficient, or None with fewer than five pairs or zero variance."""
    n = len(xs)
    if n != len(ys) or n < MIN_PAIRED_DAYS:
        return None
    sum_x = sum(xs)
    sum_y = sum(ys)
    sum_xy = sum(x * y for x, y in zip(xs, ys))
    sum_x2 = sum(x * x for x in xs)
    sum_y2 = sum(y * y for y in ys)
    numerator = n * sum_xy - sum_x * sum_y
    variance = (n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y)
    if variance <= 0:
        return None
    return clamp(numerator / sqrt(variance))


def group_by_date(life_data: LifeData) -> Dict[date, DailyCounts]:
    days: Dict[date, DailyCounts] = defaultdict(DailyCounts)
    for habit in life_data.habits:
        for completion in habit.completions:
            counts = days[completion.date]
            counts.habits_total += 1
            if completion.completed:
                counts.habits_completed += 1
    for task in life_data.tasks:
        if task.completed_at is None:
            continue
        counts = days[task.completed_at.date()]
        counts.tasks_total += 1
        if task.is_completed:
            counts.tasks_completed += 1
    return dict(days)


def habit_task_correlation(life_data: LifeData) -> Optional[float]:
    days = group_by_date(life_data)
    ordered = sorted(days.items())
    xs = [counts.habits_completed / max(counts.habits_total, 1) for _, counts in ordered]
    ys = [counts.tasks_completed / max(counts.tasks_total, 1) for _, counts in ordered]
    return pearson(xs, ys)


def exercise_mood_correlation(life_data: LifeData) -> Optional[float]:
    """Normalized difference between mean mood on exercise days and other days."""
    exercise_habits = [habit for habit in life_data.habits if is_exercise_habit(habit)]
    if not exercise_habits or len(life_data.journal_entries) < MIN_PAIRED_DAYS:
        return None

    exercised = {
        completion.date
        for habit in exercise_habits
        for completion in habit.completions
        if completion.completed
    }
    moods: Dict[date, float] = {}
    for entry in life_data.journal_entries:
        if entry.date is not None and entry.mood is not None and entry.mood > 0:
            moods[entry.date] = entry.mood

    with_exercise = [mood for day, mood in moods.items() if day in exercised]
    without_exercise = [mood for day, mood in moods.items() if day not in exercised]
    if len(with_exercise) < MIN_GROUP_DAYS or len(without_exercise) < MIN_GROUP_DAYS:
        return None
    return clamp((mean(with_exercise) - mean(without_exercise)) / EXERCISE_MOOD_SCALE)


def spending_stress_correlation(life_data: LifeData) -> Optional[float]:
    """Relative difference in daily spending between stressed and normal days."""
    stressed_days = {
        entry.date
        for entry in life_data.journal_entries
        if entry.date is not None
        and ((entry.mood is not None and entry.mood < STRESSED_MOOD) or STRESS_KEYWORD in (entry.content or "").lower())
    }
    if len(stressed_days) < MIN_STRESSED_DAYS:
        return None

    stressed_total = 0.0
    normal_total = 0.0
    for tx in life_data.transactions:
        if tx.type != "expense" or tx.date is None:
            continue
        if tx.date in stressed_days:
            stressed_total += tx.amount
        else:
            normal_total += tx.amount

    stressed_avg = stressed_total / len(stressed_days)
    normal_avg = normal_total / max(SPENDING_WINDOW_DAYS - len(stressed_days), 1)
    if normal_avg == 0:
        return None
    return clamp((stressed_avg - normal_avg) / normal_avg)


def find_correlations(life_data: LifeData) -> List[Correlation]:
    correlations: List[Correlation] = []

    habit_task = habit_task_correlation(life_data)
    if habit_task is not None and abs(habit_task) > HABIT_TASK_THRESHOLD:
        correlations.append(
            Correlation(
                from_signal="habits_completed",
                to_signal="task_completion",
                coefficient=habit_task,
                direction="positive" if habit_task > 0 else "negative",
                confidence=0.75,
                evidence=f"Correlation of {habit_task * 100:.0f}% between habit completion and task success",
                impact=(
                    "Days with completed habits show higher task completion"
                    if habit_task > 0
                    else "Habit completion inversely affects productivity"
                ),
            )
        )

    exercise_mood = exercise_mood_correlation(life_data)
    if exercise_mood is not None and abs(exercise_mood) > EXERCISE_MOOD_THRESHOLD:
        correlations.append(
            Correlation(
                from_signal="exercise",
                to_signal="mood",
                coefficient=exercise_mood,
                direction="positive" if exercise_mood > 0 else "negative",
                confidence=0.8,
                evidence=f"Exercise days show {'higher' if exercise_mood > 0 else 'lower'} mood scores",
                impact="Exercise significantly impacts daily wellbeing",
                recommendation="Prioritize morning exercise" if exercise_mood > 0 else None,
            )
        )

    spending_stress = spending_stress_correlation(life_data)
    if spending_stress is not None and abs(spending_stress) > SPENDING_STRESS_THRESHOLD:
        correlations.append(
            Correlation(
                from_signal="stress_level",
                to_signal="spending",
                coefficient=spending_stress,
                direction="positive" if spending_stress > 0 else "negative",
                confidence=0.7,
                evidence=f"{'Higher' if spending_stress > 0 else 'Lower'} spending on stressed days",
                impact="Emotional spending pattern detected",
                recommendation="Track triggers before impulse purchases",
            )
        )
    return correlations


def peak_focus_hours(life_data: LifeData) -> List[str]:
    """Rank local start hours of deep-focus sessions by average duration."""
    zone = ZoneInfo(settings.timezone)
    totals: Dict[int, Tuple[float, int]] = {}
    for entry in life_data.time_entries:
        if entry.focus_quality != "deep" or entry.date is None:
            continue
        started = entry.date.astimezone(zone) if entry.date.tzinfo else entry.date
        total, count = totals.get(started.hour, (0.0, 0))
        totals[started.hour] = (total + entry.duration, count + 1)
    ranked = sorted(totals.items(), key=lambda item: (-(item[1][0] / item[1][1]), item[0]))
    return [f"{hour}:00-{hour + 1}:00" for hour, _ in ranked[:PEAK_HOURS]]


def sleep_cascade(life_data: LifeData) -> CascadeChain:
    """Count consecutive journal pairs where a tired day is followed by a low day."""
    entries = sorted(
        (entry for entry in life_data.journal_entries if entry.date is not None),
        key=lambda entry: entry.date,
    )
    frequency = 0
    for previous, current in zip(entries, entries[1:]):
        tired = "tired" in (previous.content or "").lower() or (previous.energy is not None and previous.energy < 4)
        low = (current.mood is not None and current.mood < 5) or (current.energy is not None and current.energy < 4)
        if tired and low:
            frequency += 1
    return CascadeChain(
        chain=list(SLEEP_CASCADE),
        frequency=frequency,
        total_impact=(
            "Critical - affects multiple life domains" if frequency > CASCADE_CRITICAL_FREQUENCY else "Moderate"
        ),
    )


def analyze(life_data: LifeData) -> Tuple[List[Correlation], List[CascadeChain], List[PatternInsight]]:
    correlations = find_correlations(life_data)
    cascades: List[CascadeChain] = []
    insights: List[PatternInsight] = []

    peaks = peak_focus_hours(life_data)
    if peaks:
        insights.append(
            PatternInsight(
                type="pattern",
                title="Peak Focus Windows",
                description=f"Your deep focus quality peaks during {', '.join(peaks)}",
                actionable=True,
                suggested_action="Schedule important tasks during these hours",
            )
        )

    cascade = sleep_cascade(life_data)
    if cascade.frequency > CASCADE_MIN_FREQUENCY:
        cascades.append(cascade)
        insights.append(
            PatternInsight(
                type="warning",
                title="Sleep-Productivity Cascade",
                description=(
                    f"Poor sleep leads to {' -> '.join(cascade.chain[1:])}, detected {cascade.frequency} times"
                ),
                actionable=True,
                suggested_action="Set a consistent sleep schedule",
            )
        )
    return correlations, cascades, insights


def detect(life_data: LifeData, now: datetime) -> DetectionResult:
    """Run the correlation analysis and every intervention detector."""
    correlations, cascades, insights = analyze(life_data)
    interventions = intervention_service.check_all(life_data, now)
    logger.debug(
        "Detection complete correlations=%s cascades=%s interventions=%s",
        len(correlations),
        len(cascades),
        len(interventions),
    )
    return DetectionResult(
        correlations=correlations,
        cascade_chains=cascades,
        insights=insights,
        interventions=interventions,
    )
