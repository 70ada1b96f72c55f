"""Compact, token-bounded snapshots of a user's life data.

The aggregator never forwards raw records to the model. Each domain is reduced
to counts, a short ranked sample and a rate, and ``compact_prompt`` renders only
the lines that carry information.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from statistics import mean
from typing import Dict, Iterable, List, Optional, Tuple

from lifecoach.api.schemas.insights import Pattern
from lifecoach.api.schemas.life_data import Goal, Habit, JournalEntry, LifeData, Task, Transaction
from lifecoach.services.clock import last_days, local_now, time_of_day, week_start

SAMPLE_SIZE = 5
TODAY_LIST_SIZE = 8
THEME_LIMIT = 10
LIGHT_STREAK_MIN = 3
UNUSUAL_SPEND_MULTIPLIER = 2
UNUSUAL_SPEND_MIN_TRANSACTIONS = 5
UNUSUAL_SPEND_LOOKBACK_DAYS = 60
MOOD_TREND_WINDOW = 3
MOOD_TREND_MIN_ENTRIES = 4
MOOD_TREND_THRESHOLD = 0.5

ACTION_SCHEMA_BLOCK = (
    "When the user asks to create or change something, append one JSON object:\n"
    '{"message":"...","actions":[{"type":"<action>","data":{...}}],'
    '"suggestions":[{"text":"...","action":"...","reason":"..."}]}\n'
    "Actions: create_task(title,description?,domain?,priority?,dueDate?), "
    "create_habit(name,category?,frequency?), create_goal(title,category?,targetDate?), "
    "add_expense(amount,category?,description?), add_income(amount,description?), "
    "log_time(task,duration,category?,focusQuality?), log_study(subject,duration), "
    "create_journal(content,mood?,energy?), complete_task(taskId), complete_habit(habitId), navigate(path)"
)


@dataclass(frozen=True)
class Profile:
    name: str
    day_of_week: str
    time_of_day: str
    current_time: str
    current_date: str


@dataclass(frozen=True)
class TaskSummary:
    total: int = 0
    pending: int = 0
    completed: int = 0
    overdue: int = 0
    due_today: int = 0
    high_priority: int = 0
    blocked: int = 0
    recently_completed: Tuple[str, ...] = ()
    overdue_list: Tuple[str, ...] = ()
    today_list: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StreakRisk:
    name: str
    streak: int
    last_done: str


@dataclass(frozen=True)
class HabitSummary:
    total: int = 0
    completed_today: int = 0
    streaks_at_risk: Tuple[StreakRisk, ...] = ()
    top_streaks: Tuple[Tuple[str, int], ...] = ()
    completion_rate_week: int = 0


@dataclass(frozen=True)
class GoalSummary:
    active: int = 0
    at_risk: int = 0
    recently_completed: Tuple[str, ...] = ()
    top_goals: Tuple[Tuple[str, float, str], ...] = ()
    at_risk_titles: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FinanceSummary:
    month_income: float = 0.0
    month_expenses: float = 0.0
    balance: float = 0.0
    top_categories: Tuple[Tuple[str, float], ...] = ()
    unusual_spending: Tuple[str, ...] = ()
    savings_rate: int = 0


@dataclass(frozen=True)
class TimeSummary:
    today_minutes: float = 0.0
    week_minutes: float = 0.0
    avg_daily_minutes: int = 0
    top_categories: Tuple[Tuple[str, float], ...] = ()
    focus_distribution: Tuple[Tuple[str, float], ...] = (("deep", 0.0), ("moderate", 0.0), ("shallow", 0.0))

    def focus_minutes(self, quality: str) -> float:
        return dict(self.focus_distribution).get(quality, 0.0)


@dataclass(frozen=True)
class JournalSummary:
    recent_mood: Optional[float] = None
    mood_trend: str = "unknown"
    avg_mood_week: Optional[float] = None
    avg_energy_week: Optional[float] = None
    recent_themes: Tuple[str, ...] = ()
    last_entry_date: Optional[str] = None
    days_since_last_entry: Optional[int] = None


@dataclass(frozen=True)
class StudySummary:
    week_hours: float = 0.0
    total_sessions: int = 0
    subjects: Tuple[str, ...] = ()
    avg_session_length: int = 0


@dataclass(frozen=True)
class LifeSnapshot:
    profile: Profile
    tasks: TaskSummary = field(default_factory=TaskSummary)
    habits: HabitSummary = field(default_factory=HabitSummary)
    goals: GoalSummary = field(default_factory=GoalSummary)
    finance: FinanceSummary = field(default_factory=FinanceSummary)
    time: TimeSummary = field(default_factory=TimeSummary)
    journal: JournalSummary = field(default_factory=JournalSummary)
    study: StudySummary = field(default_factory=StudySummary)
    patterns: Tuple[Pattern, ...] = ()


def build(life_data: LifeData, now: datetime | None = None) -> LifeSnapshot:
    """Reduce raw per-domain records into a snapshot plus detected patterns."""
    now = now or local_now()
    today = now.date()

    tasks, overdue_tasks = summarize_tasks(life_data.tasks, today)
    habits = summarize_habits(life_data.habits, today)
    goals = summarize_goals(life_data.goals, today)
    finance = summarize_finance(life_data.transactions, today)
    time_summary = summarize_time(life_data, today)
    journal = summarize_journal(life_data.journal_entries, today)
    study = summarize_study(life_data, today)

    profile = Profile(
        name=life_data.settings.user_name or "User",
        day_of_week=now.strftime("%A"),
        time_of_day=time_of_day(now),
        current_time=now.strftime("%H:%M"),
        current_date=now.strftime("%A, %B %d, %Y"),
    )
    snapshot = LifeSnapshot(
        profile=profile,
        tasks=tasks,
        habits=habits,
        goals=goals,
        finance=finance,
        time=time_summary,
        journal=journal,
        study=study,
    )
    patterns = detect_patterns(snapshot, life_data, overdue_tasks, today)
    return LifeSnapshot(
        profile=profile,
        tasks=tasks,
        habits=habits,
        goals=goals,
        finance=finance,
        time=time_summary,
        journal=journal,
        study=study,
        patterns=tuple(patterns),
    )


def summarize_tasks(tasks: List[Task], today: date) -> Tuple[TaskSummary, List[Task]]:
    pending = [task for task in tasks if not task.is_completed]
    completed = [task for task in tasks if task.is_completed]
    overdue = [
        task for task in pending if task.due_date and task.due_date < today and task.status != "blocked"
    ]
    overdue.sort(key=lambda task: task.due_date)
    due_today = [task for task in pending if task.due_date == today]
    high_priority = [task for task in pending if task.priority in {"high", "critical", "urgent"}]
    blocked = [task for task in tasks if task.status == "blocked"]
    monday = week_start(today)
    recently_completed = [
        task.title for task in completed if task.completed_at and task.completed_at.date() >= monday
    ][:SAMPLE_SIZE]

    summary = TaskSummary(
        total=len(tasks),
        pending=len(pending),
        completed=len(completed),
        overdue=len(overdue),
        due_today=len(due_today),
        high_priority=len(high_priority),
        blocked=len(blocked),
        recently_completed=tuple(recently_completed),
        overdue_list=tuple(f"{task.title} (due: {task.due_date.isoformat()})" for task in overdue[:SAMPLE_SIZE]),
        today_list=tuple(f"{task.title} [{task.priority}]" for task in due_today[:TODAY_LIST_SIZE]),
    )
    return summary, overdue


def lightweight_streaks_at_risk(habits: Iterable[Habit], today: date) -> List[StreakRisk]:
    """Streaks of 3+ days whose last completion is yesterday or earlier."""
    risks: List[StreakRisk] = []
    for habit in habits:
        if habit.streak < LIGHT_STREAK_MIN:
            continue
        last_done = habit.last_completed()
        if last_done is None or (today - last_done).days >= 1:
            risks.append(
                StreakRisk(
                    name=habit.name,
                    streak=habit.streak,
                    last_done=last_done.isoformat() if last_done else "never",
                )
            )
    return risks


def summarize_habits(habits: List[Habit], today: date) -> HabitSummary:
    active = [habit for habit in habits if habit.active]
    if not active:
        return HabitSummary()
    completed_today = sum(1 for habit in active if habit.completed_on(today))
    top_streaks = sorted((habit for habit in active if habit.streak > 0), key=lambda habit: -habit.streak)

    week = last_days(today, 7)
    possible = len(active) * len(week)
    done = sum(1 for habit in active for day in week if habit.completed_on(day))
    return HabitSummary(
        total=len(active),
        completed_today=completed_today,
        streaks_at_risk=tuple(lightweight_streaks_at_risk(active, today)),
        top_streaks=tuple((habit.name, habit.streak) for habit in top_streaks[:SAMPLE_SIZE]),
        completion_rate_week=round(done / possible * 100) if possible else 0,
    )


def summarize_goals(goals: List[Goal], today: date) -> GoalSummary:
    active = [goal for goal in goals if goal.status in {"active", "at_risk"}]
    at_risk = [goal for goal in goals if goal.status in {"at_risk", "failing"}]
    monday = week_start(today)
    recently_completed = [
        goal.title
        for goal in goals
        if goal.status == "completed" and goal.completed_at and goal.completed_at.date() >= monday
    ]
    return GoalSummary(
        active=len(active),
        at_risk=len(at_risk),
        recently_completed=tuple(recently_completed[:SAMPLE_SIZE]),
        top_goals=tuple((goal.title, goal.progress, goal.status) for goal in active[:SAMPLE_SIZE]),
        at_risk_titles=tuple(goal.title for goal in at_risk[:SAMPLE_SIZE]),
    )


def _same_month(day: Optional[date], today: date) -> bool:
    return day is not None and day.year == today.year and day.month == today.month


def summarize_finance(transactions: List[Transaction], today: date) -> FinanceSummary:
    month = [tx for tx in transactions if _same_month(tx.date, today)]
    if not month:
        return FinanceSummary()
    income = sum(tx.amount for tx in month if tx.type == "income")
    expenses = sum(tx.amount for tx in month if tx.type == "expense")

    by_category: Dict[str, float] = defaultdict(float)
    for tx in month:
        if tx.type == "expense":
            by_category[tx.category] += tx.amount
    ranked = sorted(by_category.items(), key=lambda item: (-item[1], item[0]))

    unusual: List[str] = []
    if len(month) > UNUSUAL_SPEND_MIN_TRANSACTIONS:
        lookback = today - timedelta(days=UNUSUAL_SPEND_LOOKBACK_DAYS)
        for category, amount in ranked:
            previous = [
                tx.amount
                for tx in transactions
                if tx.type == "expense"
                and tx.category == category
                and tx.date is not None
                and not _same_month(tx.date, today)
                and tx.date > lookback
            ]
            previous_avg = sum(previous) / max(len(previous), 1)
            if previous_avg > 0 and amount > previous_avg * UNUSUAL_SPEND_MULTIPLIER:
                unusual.append(f"{category}: ${amount:.0f} (2x above usual ${previous_avg:.0f})")

    return FinanceSummary(
        month_income=income,
        month_expenses=expenses,
        balance=income - expenses,
        top_categories=tuple(ranked[:SAMPLE_SIZE]),
        unusual_spending=tuple(unusual),
        savings_rate=round((income - expenses) / income * 100) if income > 0 else 0,
    )


def summarize_time(life_data: LifeData, today: date) -> TimeSummary:
    monday = week_start(today)
    entries = [entry for entry in life_data.time_entries if entry.date is not None]
    today_entries = [entry for entry in entries if entry.date.date() == today]
    week_entries = [entry for entry in entries if entry.date.date() >= monday]
    week_minutes = sum(entry.duration for entry in week_entries)

    by_category: Dict[str, float] = defaultdict(float)
    focus = {"deep": 0.0, "moderate": 0.0, "shallow": 0.0}
    for entry in week_entries:
        by_category[entry.category or "other"] += entry.duration
        focus[entry.focus_quality] = focus.get(entry.focus_quality, 0.0) + entry.duration
    ranked = sorted(by_category.items(), key=lambda item: (-item[1], item[0]))

    return TimeSummary(
        today_minutes=sum(entry.duration for entry in today_entries),
        week_minutes=week_minutes,
        avg_daily_minutes=round(week_minutes / 7),
        top_categories=tuple(ranked[:SAMPLE_SIZE]),
        focus_distribution=tuple(focus.items()),
    )


def mood_trend(entries: List[JournalEntry]) -> str:
    """Compare the mean of the latest three moods with the three before them.

    ``entries`` must be sorted newest first.
    """
    moods = [entry.mood for entry in entries if entry.mood is not None]
    if len(moods) < MOOD_TREND_MIN_ENTRIES:
        return "unknown"
    recent = mean(moods[:MOOD_TREND_WINDOW])
    previous = mean(moods[MOOD_TREND_WINDOW : MOOD_TREND_WINDOW * 2])
    if previous <= 0:
        return "unknown"
    diff = recent - previous
    if diff > MOOD_TREND_THRESHOLD:
        return "improving"
    if diff < -MOOD_TREND_THRESHOLD:
        return "declining"
    return "stable"


def summarize_journal(entries: List[JournalEntry], today: date) -> JournalSummary:
    dated = sorted((entry for entry in entries if entry.date is not None), key=lambda entry: entry.date, reverse=True)
    if not dated:
        return JournalSummary()
    recent = dated[:7]
    monday = week_start(today)
    this_week = [entry for entry in recent if entry.date >= monday]
    week_moods = [entry.mood for entry in this_week if entry.mood is not None]
    week_energy = [entry.energy for entry in this_week if entry.energy is not None]

    themes: List[str] = []
    for entry in recent:
        for theme in entry.ai_themes or entry.tags:
            if theme not in themes:
                themes.append(theme)

    return JournalSummary(
        recent_mood=recent[0].mood,
        mood_trend=mood_trend(recent),
        avg_mood_week=round(mean(week_moods), 1) if week_moods else None,
        avg_energy_week=round(mean(week_energy), 1) if week_energy else None,
        recent_themes=tuple(themes[:THEME_LIMIT]),
        last_entry_date=dated[0].date.isoformat(),
        days_since_last_entry=(today - dated[0].date).days,
    )


def summarize_study(life_data: LifeData, today: date) -> StudySummary:
    monday = week_start(today)
    sessions = [
        session
        for session in life_data.study_sessions
        if session.created_at is not None and session.created_at.date() >= monday
    ]
    if not sessions:
        return StudySummary()
    minutes = sum(session.duration for session in sessions)
    subjects: List[str] = []
    for session in sessions:
        if session.subject and session.subject not in subjects:
            subjects.append(session.subject)
    return StudySummary(
        week_hours=round(minutes / 60, 1),
        total_sessions=len(sessions),
        subjects=tuple(subjects[:SAMPLE_SIZE]),
        avg_session_length=round(minutes / len(sessions)),
    )


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


def detect_patterns(
    snapshot: LifeSnapshot,
    life_data: LifeData,
    overdue_tasks: List[Task],
    today: date,
) -> List[Pattern]:
    patterns: List[Pattern] = []
    tasks = snapshot.tasks
    habits = snapshot.habits

    if tasks.overdue >= 5:
        patterns.append(
            Pattern(
                kind="warning",
                domain="tasks",
                message=f"{tasks.overdue} overdue tasks piling up, consider reprioritizing or breaking them down",
                urgency="high",
            )
        )
    elif tasks.overdue > 0:
        titles = ", ".join(task.title for task in overdue_tasks[:3])
        patterns.append(
            Pattern(
                kind="warning",
                domain="tasks",
                message=f"{_plural(tasks.overdue, 'overdue task')}: {titles}",
                urgency="medium",
            )
        )
    if tasks.blocked > 0:
        patterns.append(
            Pattern(
                kind="insight",
                domain="tasks",
                message=f"{_plural(tasks.blocked, 'blocked task')} may need external input or replanning",
                urgency="medium",
            )
        )
    if tasks.due_today > 5:
        patterns.append(
            Pattern(
                kind="warning",
                domain="tasks",
                message=f"Heavy day ahead: {tasks.due_today} tasks due today. Consider deferring non-critical ones.",
                urgency="medium",
            )
        )

    for risk in habits.streaks_at_risk:
        patterns.append(
            Pattern(
                kind="warning",
                domain="habits",
                message=f'"{risk.name}" streak ({risk.streak} days) at risk, last done {risk.last_done}',
                urgency="high" if risk.streak >= 7 else "medium",
            )
        )
    if habits.total > 0 and habits.completion_rate_week < 30:
        patterns.append(
            Pattern(
                kind="warning",
                domain="habits",
                message=f"Habit completion rate is only {habits.completion_rate_week}% this week, momentum dropping",
                urgency="high",
            )
        )
    elif habits.total > 0 and habits.completion_rate_week >= 80:
        patterns.append(
            Pattern(
                kind="positive",
                domain="habits",
                message=f"Excellent habit consistency at {habits.completion_rate_week}% this week",
                urgency="low",
            )
        )

    if snapshot.goals.at_risk > 0:
        patterns.append(
            Pattern(
                kind="warning",
                domain="goals",
                message=f"{_plural(snapshot.goals.at_risk, 'goal')} at risk: {', '.join(snapshot.goals.at_risk_titles)}",
                urgency="high",
            )
        )

    finance = snapshot.finance
    if finance.month_income > 0 and finance.month_expenses > finance.month_income:
        patterns.append(
            Pattern(
                kind="warning",
                domain="finance",
                message=f"Spending exceeds income this month by ${finance.month_expenses - finance.month_income:.0f}",
                urgency="high",
            )
        )
    for unusual in finance.unusual_spending:
        patterns.append(
            Pattern(kind="insight", domain="finance", message=f"Unusual spending detected: {unusual}", urgency="medium")
        )
    if finance.month_income > 0 and finance.month_expenses < finance.month_income * 0.5:
        share = round(finance.month_expenses / finance.month_income * 100)
        patterns.append(
            Pattern(
                kind="positive",
                domain="finance",
                message=f"Strong savings month, spending only {share}% of income",
                urgency="low",
            )
        )

    journal = snapshot.journal
    if journal.days_since_last_entry is not None and journal.days_since_last_entry >= 3:
        patterns.append(
            Pattern(
                kind="opportunity",
                domain="journal",
                message=f"Haven't journaled in {journal.days_since_last_entry} days, reflection helps maintain clarity",
                urgency="low",
            )
        )
    if journal.mood_trend == "declining":
        patterns.append(
            Pattern(
                kind="warning",
                domain="wellbeing",
                message="Mood has been declining over the past few days, consider a lighter workload or self-care",
                urgency="high",
            )
        )
    elif journal.mood_trend == "improving":
        patterns.append(
            Pattern(
                kind="positive",
                domain="wellbeing",
                message="Mood has been improving recently, keep up what you're doing",
                urgency="low",
            )
        )

    if snapshot.time.today_minutes > 480:
        patterns.append(
            Pattern(
                kind="warning",
                domain="time",
                message="Over 8 hours tracked today, make sure to take breaks",
                urgency="medium",
            )
        )
    if snapshot.time.week_minutes < 60 and tasks.total > 5:
        patterns.append(
            Pattern(
                kind="insight",
                domain="time",
                message="Very little time tracked this week despite many tasks, consider using the time tracker",
                urgency="low",
            )
        )

    monday = week_start(today)
    week_moods = [
        entry.mood
        for entry in life_data.journal_entries
        if entry.date is not None and entry.date >= monday and entry.mood is not None
    ]
    avg_week_mood = mean(week_moods) if week_moods else None
    if avg_week_mood is not None and avg_week_mood < 4 and tasks.overdue > 3:
        patterns.append(
            Pattern(
                kind="warning",
                domain="cross-domain",
                message="Low mood combined with mounting overdue tasks is a burnout risk. Consider clearing small wins first.",
                urgency="high",
            )
        )
    if avg_week_mood is not None and avg_week_mood >= 7 and habits.completion_rate_week > 70:
        patterns.append(
            Pattern(
                kind="positive",
                domain="cross-domain",
                message="Strong habit consistency is tracking with good mood, your routines are paying off",
                urgency="low",
            )
        )
    return patterns


def compact_prompt(snapshot: LifeSnapshot, *, include_actions: bool = False) -> str:
    """Render a short system prompt containing only non-empty snapshot lines."""
    lines: List[str] = [
        "You are a warm, concise AI life assistant inside a personal life-management app. "
        "Answer any question directly.",
        f"User: {snapshot.profile.name} | {snapshot.profile.day_of_week} {snapshot.profile.current_time}",
    ]

    tasks = snapshot.tasks
    task_bits = []
    if tasks.due_today:
        task_bits.append(f"{tasks.due_today} due today")
    if tasks.overdue:
        task_bits.append(f"{tasks.overdue} overdue")
    if tasks.high_priority:
        task_bits.append(f"{tasks.high_priority} high-pri")
    if tasks.pending:
        task_bits.append(f"{tasks.pending} pending")
    if task_bits:
        lines.append(f"Tasks: {', '.join(task_bits)}")

    habits = snapshot.habits
    if habits.total:
        habit_line = (
            f"Habits: {habits.completed_today}/{habits.total} done today, "
            f"{habits.completion_rate_week}% this week"
        )
        if habits.streaks_at_risk:
            at_risk = ", ".join(f"{risk.name}({risk.streak}d)" for risk in habits.streaks_at_risk[:SAMPLE_SIZE])
            habit_line += f" | AT RISK: {at_risk}"
        lines.append(habit_line)

    goals = snapshot.goals
    if goals.active:
        goal_line = f"Goals: {goals.active} active"
        if goals.at_risk:
            goal_line += f", {goals.at_risk} at risk"
        lines.append(goal_line)

    finance = snapshot.finance
    if finance.month_income > 0 or finance.month_expenses > 0:
        lines.append(
            f"Finance: ${finance.month_income:.0f} in / ${finance.month_expenses:.0f} out / "
            f"balance ${finance.balance:.0f}"
        )

    if snapshot.time.today_minutes or snapshot.time.week_minutes:
        lines.append(
            f"Time: {snapshot.time.today_minutes:.0f}min today, {snapshot.time.week_minutes / 60:.0f}h this week"
        )

    journal = snapshot.journal
    if journal.recent_mood is not None:
        lines.append(f"Mood: {journal.recent_mood:g}/10 ({journal.mood_trend})")

    urgent = [pattern.message for pattern in snapshot.patterns if pattern.urgency == "high"]
    if urgent:
        lines.append(f"Urgent: {'; '.join(urgent)}")

    lines.append(
        "Reply in plain text. Be brief (2-4 sentences for simple questions). "
        "Reference user data naturally when relevant."
    )
    if include_actions:
        lines.append(ACTION_SCHEMA_BLOCK)
    return "\n".join(lines)


def full_prompt(snapshot: LifeSnapshot) -> str:
    """Long-form prompt used for deep conversations and pattern analysis."""
    tasks = snapshot.tasks
    habits = snapshot.habits
    goals = snapshot.goals
    finance = snapshot.finance
    time_summary = snapshot.time
    journal = snapshot.journal
    study = snapshot.study

    sections: List[str] = [
        "You are a deeply aware AI life assistant. You answer any question and help the user manage their life.",
        f"Name: {snapshot.profile.name}\n"
        f"Right now: {snapshot.profile.current_date}, {snapshot.profile.current_time} ({snapshot.profile.time_of_day})",
    ]

    task_lines = [
        f"- {tasks.due_today} tasks due today" + (f": {', '.join(tasks.today_list)}" if tasks.today_list else ""),
        f"- {tasks.overdue} overdue" + (f": {', '.join(tasks.overdue_list)}" if tasks.overdue_list else ""),
        f"- {tasks.high_priority} high priority, {tasks.blocked} blocked",
        f"- Recently completed: {', '.join(tasks.recently_completed) or 'none this week'}",
    ]
    sections.append("TASKS\n" + "\n".join(task_lines))

    if habits.total:
        habit_lines = [
            f"- {habits.completed_today}/{habits.total} habits done today",
            f"- Week completion rate: {habits.completion_rate_week}%",
        ]
        if habits.top_streaks:
            habit_lines.append("- Top streaks: " + ", ".join(f"{name} ({streak}d)" for name, streak in habits.top_streaks))
        if habits.streaks_at_risk:
            habit_lines.append(
                "- At risk: " + ", ".join(f"{risk.name} ({risk.streak}d streak)" for risk in habits.streaks_at_risk)
            )
        sections.append("HABITS\n" + "\n".join(habit_lines))

    if goals.active or goals.at_risk:
        goal_lines = [f"- {goals.active} active goals, {goals.at_risk} at risk"]
        goal_lines.extend(f'- "{title}": {progress:.0f}% ({status})' for title, progress, status in goals.top_goals)
        sections.append("GOALS\n" + "\n".join(goal_lines))

    if finance.month_income or finance.month_expenses:
        finance_lines = [
            f"- Income: ${finance.month_income:.0f} | Expenses: ${finance.month_expenses:.0f} | "
            f"Balance: ${finance.balance:.0f}",
            f"- Savings rate: {finance.savings_rate}%",
        ]
        if finance.top_categories:
            finance_lines.append(
                "- Top spending: " + ", ".join(f"{category}: ${amount:.0f}" for category, amount in finance.top_categories)
            )
        if finance.unusual_spending:
            finance_lines.append("- Unusual: " + "; ".join(finance.unusual_spending))
        sections.append("FINANCES THIS MONTH\n" + "\n".join(finance_lines))

    if time_summary.week_minutes:
        sections.append(
            "TIME & FOCUS\n"
            f"- Today: {time_summary.today_minutes:.0f}min | This week: {time_summary.week_minutes / 60:.0f}h\n"
            f"- Focus: deep {time_summary.focus_minutes('deep'):.0f}min, "
            f"moderate {time_summary.focus_minutes('moderate'):.0f}min, "
            f"shallow {time_summary.focus_minutes('shallow'):.0f}min"
        )

    if journal.last_entry_date:
        wellbeing = [
            f"- Recent mood: {journal.recent_mood if journal.recent_mood is not None else 'no data'}/10 "
            f"(trend: {journal.mood_trend})",
            f"- Week average mood: {journal.avg_mood_week if journal.avg_mood_week is not None else '?'}/10, "
            f"energy: {journal.avg_energy_week if journal.avg_energy_week is not None else '?'}/10",
            f"- Last journal: {journal.days_since_last_entry} day(s) ago",
        ]
        if journal.recent_themes:
            wellbeing.append("- Themes: " + ", ".join(journal.recent_themes))
        sections.append("WELLBEING\n" + "\n".join(wellbeing))

    if study.total_sessions:
        study_line = f"- This week: {study.week_hours}h across {study.total_sessions} sessions"
        if study.subjects:
            study_line += f" ({', '.join(study.subjects)})"
        sections.append("STUDY\n" + study_line)

    urgent = [f"- [{p.domain}] {p.message}" for p in snapshot.patterns if p.urgency == "high"]
    if urgent:
        sections.append("URGENT PATTERNS\n" + "\n".join(urgent))
    positive = [f"- [{p.domain}] {p.message}" for p in snapshot.patterns if p.kind == "positive"]
    if positive:
        sections.append("POSITIVE SIGNALS\n" + "\n".join(positive))

    sections.append(
        "GUIDELINES\n"
        "- Reference the user's data naturally when relevant, do not dump stats.\n"
        "- If they seem stressed, acknowledge it before jumping to solutions.\n"
        "- Be warm but concise."
    )
    sections.append(ACTION_SCHEMA_BLOCK)
    return "\n\n".join(sections)
