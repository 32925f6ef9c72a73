"""
Goal progress model.

Every metric here is a pure function of a goal's stored fields and the current
date; nothing computed in this module is ever written back to storage except
the rebuilt daily log in :func:`sync_daily_logs`.
"""

import math
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from errors import InvalidOperation
from schemas import DailyLog, Goal, GoalMetrics, GoalStatus

DIFFICULTY_MULTIPLIERS = {"Hard": 0.85, "Medium": 1.0, "Easy": 1.1}
EARLY_BIRD_SHARE = 0.15
HIGH_VELOCITY_FACTOR = 1.25


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Divide, returning ``default`` when the denominator is zero or negative.

    All denominators in the goal model (target value, day counts, expected
    progress) are non-negative quantities, so a non-positive one means
    "nothing to divide by".
    """
    if denominator is None or denominator <= 0:
        return default
    return numerator / denominator


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def is_past_end(goal: Goal, now: datetime) -> bool:
    """True once the wall clock has moved past the start of the end date."""
    return now.replace(tzinfo=None) > datetime.combine(goal.end_date, time.min)


def total_days(goal: Goal) -> int:
    return max(1, (goal.end_date - goal.start_date).days + 1)


def daily_target(goal: Goal) -> float:
    return safe_divide(goal.target_value, total_days(goal))


def is_complete(goal: Goal) -> bool:
    return goal.is_completed or goal.current_value >= goal.target_value


def goal_status(goal: Goal, overdue: bool, efficiency: float) -> GoalStatus:
    if is_complete(goal):
        return GoalStatus.COMPLETED
    if overdue:
        return GoalStatus.LATE
    if efficiency >= 95:
        return GoalStatus.ON_TRACK
    if efficiency >= 80:
        return GoalStatus.AT_RISK
    return GoalStatus.BEHIND


def health_score(efficiency: float, progress: float, difficulty: str, days_remaining: int) -> float:
    score = clamp(efficiency * 0.7 + progress * 0.3, 0, 100)
    score *= DIFFICULTY_MULTIPLIERS.get(difficulty, 1.0)
    if days_remaining <= 1 and progress < 90:
        score *= 0.5
    return round(clamp(score, 0, 100), 1)


def smart_suggestion(complete: bool, overdue: bool, efficiency: float, required_velocity: float) -> str:
    if complete:
        return "Goal achieved! Great work."
    if overdue:
        return "This goal is overdue. Extend the end date or close it out."
    if efficiency >= 110:
        return "Ahead of schedule. Keep the momentum going!"
    if efficiency >= 95:
        return "On track. Stay consistent."
    if efficiency >= 80:
        return "At risk. Increase your effort a little to stay on pace."
    if efficiency >= 60:
        return f"Behind schedule. You need {required_velocity:.2f}/day to catch up."
    return f"High risk. You need {required_velocity:.2f}/day to recover."


def achievement_badges(complete: bool, days_remaining: int, days_total: int,
                       velocity: float, per_day_target: float) -> List[str]:
    if not complete:
        return []
    badges = ["Finisher"]
    if days_remaining > days_total * EARLY_BIRD_SHARE:
        badges.append("Early Bird")
    if velocity > per_day_target * HIGH_VELOCITY_FACTOR:
        badges.append("High Velocity")
    return badges


def compute_metrics(goal: Goal, now: Optional[datetime] = None) -> GoalMetrics:
    """Derive status, velocity, health and suggestions for ``goal`` as of ``now``."""
    now = now or datetime.now()
    today = now.date()
    overdue = is_past_end(goal, now)
    days_total = total_days(goal)
    per_day_target = daily_target(goal)
    days_passed = int(clamp((today - goal.start_date).days, 0, days_total))
    days_remaining = max(0, (goal.end_date - today).days)
    expected = per_day_target * min(days_passed + 1, days_total)

    current = goal.current_value
    progress = clamp(safe_divide(current * 100, goal.target_value), 0, 100)
    velocity = safe_divide(current, days_passed, default=current)
    complete = is_complete(goal)
    remaining = max(0.0, goal.target_value - current)
    required = 0.0 if complete else safe_divide(remaining, days_remaining)
    efficiency = safe_divide(current * 100, expected, default=100.0 if current > 0 else 0.0)

    status = goal_status(goal, overdue, efficiency)
    # A finished goal is fully healthy regardless of difficulty.
    health = 100.0 if complete else health_score(efficiency, progress, goal.difficulty, days_remaining)

    estimated = None
    if days_passed > 0 and current > 0 and velocity > 0:
        estimated = today + timedelta(days=math.ceil(remaining / velocity))

    return GoalMetrics(
        status=status,
        total_days=days_total,
        days_passed=days_passed,
        days_remaining=days_remaining,
        daily_target=round(per_day_target, 2),
        expected_progress=round(expected, 2),
        progress_percentage=round(progress, 1),
        current_velocity=round(velocity, 2),
        required_velocity=round(required, 2),
        performance_efficiency=round(efficiency, 1),
        health_score=health,
        smart_suggestion=smart_suggestion(complete, overdue, efficiency, required),
        estimated_completion_date=estimated,
        achievement_badges=achievement_badges(complete, days_remaining, days_total, velocity, per_day_target),
    )


def sync_daily_logs(goal: Goal) -> Goal:
    """Rebuild the per-day log to span the goal's whole date range.

    Existing ``actual`` values are kept by date, days outside the range are
    dropped and new days start at zero. ``current_value`` becomes the sum of
    the logged actuals.
    """
    actuals = {log.date: log.actual for log in goal.daily_logs}
    target = round(daily_target(goal), 2)
    logs = []
    for offset in range(total_days(goal)):
        day = goal.start_date + timedelta(days=offset)
        logs.append(DailyLog(date=day, target=target, actual=actuals.get(day, 0)))
    return goal.model_copy(update={
        "daily_logs": logs,
        "current_value": sum(log.actual for log in logs),
    })


def log_progress(goal: Goal, day: date, actual: float) -> Goal:
    """Record ``actual`` for ``day`` and resync the log."""
    if day < goal.start_date or day > goal.end_date:
        raise InvalidOperation("Log date must fall between the goal's start and end dates.", field="date")
    synced = sync_daily_logs(goal)
    logs = [
        log.model_copy(update={"actual": actual}) if log.date == day else log
        for log in synced.daily_logs
    ]
    return sync_daily_logs(synced.model_copy(update={"daily_logs": logs}))
