"""Local forecasts: tiered burnout risk, goal completion and next-week outlook."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import List

from lifecoach.api.schemas.insights import BurnoutAssessment, BurnoutSignal, GoalPrediction, WeekForecast
from lifecoach.api.schemas.life_data import Goal, LifeData
from lifecoach.services.clock import last_days
from lifecoach.services.intervention_service import recent_journals

DEFAULT_RATE = 70
FORECAST_CONFIDENCE = 0.7
VELOCITY_FLOOR = 0.1
ON_TRACK = 0.7
AT_RISK = 0.4


def _average(values: List[float | None], default: float = 5.0) -> float:
    present = [value for value in values if value is not None]
    return sum(present) / len(present) if present else default


def calculate_burnout_risk(life_data: LifeData, now: datetime) -> BurnoutAssessment:
    today = now.date()
    window = set(last_days(today, 7))
    work_hours = (
        sum(
            entry.duration
            for entry in life_data.time_entries
            if entry.date is not None and entry.date.date() in window
        )
        / 60
    )
    journals = recent_journals(life_data.journal_entries, today)
    avg_mood = _average([entry.mood for entry in journals])
    avg_energy = _average([entry.energy for entry in journals])

    score = 0.0
    if work_hours > 60:
        score += 0.3
    elif work_hours > 50:
        score += 0.2
    elif work_hours > 45:
        score += 0.1

    if avg_mood < 4:
        score += 0.25
    elif avg_mood < 5:
        score += 0.15

    if avg_energy < 4:
        score += 0.25
    elif avg_energy < 5:
        score += 0.15

    if score > 0.6:
        level = "Critical"
    elif score > 0.4:
        level = "High"
    elif score > 0.2:
        level = "Moderate"
    else:
        level = "Low"

    recommendations: List[str] = []
    if work_hours > 50:
        recommendations.append("Reduce work hours to under 50/week")
    if avg_mood < 5:
        recommendations.append("Schedule activities that boost mood")
    if avg_energy < 5:
        recommendations.append("Prioritize sleep and exercise")

    return BurnoutAssessment(
        score=round(score, 2),
        level=level,
        signals=[
            BurnoutSignal(signal="Work Hours", value=round(work_hours, 1), concern=work_hours > 50),
            BurnoutSignal(signal="Avg Mood", value=round(avg_mood, 1), concern=avg_mood < 5),
            BurnoutSignal(signal="Avg Energy", value=round(avg_energy, 1), concern=avg_energy < 5),
        ],
        recommendations=recommendations,
    )


def recent_velocity(life_data: LifeData, today: date) -> float:
    """Tasks completed per day over the last week, used as a progress proxy."""
    window = set(last_days(today, 7))
    completed = sum(
        1 for task in life_data.tasks if task.completed_at is not None and task.completed_at.date() in window
    )
    return completed / 7


def predict_goal_completion(goal: Goal, life_data: LifeData, now: datetime) -> GoalPrediction:
    today = now.date()
    days_remaining = max(1, (goal.target_date - today).days) if goal.target_date else 1
    required = max(0.0, 100 - goal.progress) / days_remaining
    current = recent_velocity(life_data, today)
    probability = min(1.0, current / max(VELOCITY_FLOOR, required))

    recommendation = None
    if probability > ON_TRACK:
        verdict = "On Track"
    elif probability > AT_RISK:
        verdict = "At Risk"
        recommendation = f"Increase daily effort by {(1 - probability) * 100:.0f}% to meet target"
    else:
        verdict = "Failing"
        recommendation = "Consider extending deadline or reducing scope. Current pace won't meet target."

    return GoalPrediction(
        goal_id=goal.id,
        title=goal.title,
        probability=round(probability, 3),
        verdict=verdict,
        required_daily_progress=round(required, 3),
        current_daily_progress=round(current, 3),
        recommendation=recommendation,
    )


def predict_goals(life_data: LifeData, now: datetime) -> List[GoalPrediction]:
    return [
        predict_goal_completion(goal, life_data, now)
        for goal in life_data.goals
        if goal.status in {"active", "at_risk"} and goal.target_date is not None
    ]


def forecast_next_week(life_data: LifeData, now: datetime) -> WeekForecast:
    today = now.date()
    cutoff = today - timedelta(days=14)
    recent = [task for task in life_data.tasks if task.completed_at is not None and task.completed_at.date() > cutoff]
    done = sum(1 for task in recent if task.is_completed)
    task_completion = round(done / len(recent) * 100) if recent else DEFAULT_RATE

    habit_total = 0
    habit_done = 0
    for habit in life_data.habits:
        for day in last_days(today, 7):
            logged = [completion for completion in habit.completions if completion.date == day]
            if logged:
                habit_total += 1
                if any(completion.completed for completion in logged):
                    habit_done += 1
    habit_consistency = round(habit_done / habit_total * 100) if habit_total else DEFAULT_RATE

    return WeekForecast(
        task_completion=task_completion,
        habit_consistency=habit_consistency,
        life_score=round(task_completion * 0.4 + habit_consistency * 0.4 + DEFAULT_RATE * 0.2),
        confidence=FORECAST_CONFIDENCE,
        explanation=(
            f"Based on {len(recent)} tasks and {len(life_data.habits)} habits from the past 2 weeks."
        ),
    )
