from datetime import date, datetime, timedelta

import pytest

from errors import InvalidOperation
from goals import compute_metrics, log_progress, safe_divide, sync_daily_logs
from schemas import DailyLog, Goal, GoalStatus

NOW = datetime(2026, 10, 18, 12, 0)
TODAY = NOW.date()


def make_goal(start_offset=-4, end_offset=5, target=100, current=0, **extra):
    return Goal(
        id=1,
        user_id="1",
        title="Read books",
        start_date=TODAY + timedelta(days=start_offset),
        end_date=TODAY + timedelta(days=end_offset),
        target_value=target,
        current_value=current,
        **extra,
    )


@pytest.mark.parametrize("target,current", [(100, 0), (100, 50), (100, 250), (0, 10), (7, 3)])
def test_progress_percentage_is_bounded(target, current):
    metrics = compute_metrics(make_goal(target=target, current=current), NOW)
    assert 0 <= metrics.progress_percentage <= 100


def test_reached_target_is_completed_and_fully_healthy():
    metrics = compute_metrics(make_goal(target=100, current=100, difficulty="Hard"), NOW)
    assert metrics.status == GoalStatus.COMPLETED
    assert metrics.health_score == 100


def test_goal_ending_today_without_progress_is_late():
    metrics = compute_metrics(make_goal(start_offset=-10, end_offset=0, target=100, current=0), NOW)
    assert metrics.status == GoalStatus.LATE
    assert metrics.days_remaining == 0


def test_on_track_goal_metrics():
    metrics = compute_metrics(make_goal(current=50), NOW)
    assert metrics.total_days == 10
    assert metrics.days_passed == 4
    assert metrics.days_remaining == 5
    assert metrics.daily_target == 10
    assert metrics.expected_progress == 50
    assert metrics.performance_efficiency == 100
    assert metrics.status == GoalStatus.ON_TRACK
    assert metrics.health_score == pytest.approx(85.0)
    assert metrics.current_velocity == 12.5
    assert metrics.required_velocity == 10
    assert metrics.estimated_completion_date == TODAY + timedelta(days=4)


@pytest.mark.parametrize("current,status", [(45, GoalStatus.AT_RISK), (20, GoalStatus.BEHIND)])
def test_status_follows_efficiency(current, status):
    assert compute_metrics(make_goal(current=current), NOW).status == status


def test_behind_goal_suggests_required_pace():
    metrics = compute_metrics(make_goal(current=20), NOW)
    assert metrics.smart_suggestion == "High risk. You need 16.00/day to recover."


# Default goal: 10 per day, 50 expected by today, 5 days left.
@pytest.mark.parametrize("current,suggestion", [
    (55, "Ahead of schedule. Keep the momentum going!"),
    (54, "On track. Stay consistent."),
    (47.5, "On track. Stay consistent."),
    (47, "At risk. Increase your effort a little to stay on pace."),
    (40, "At risk. Increase your effort a little to stay on pace."),
    (39.5, "Behind schedule. You need 12.10/day to catch up."),
    (30, "Behind schedule. You need 14.00/day to catch up."),
    (29.5, "High risk. You need 14.10/day to recover."),
])
def test_suggestion_tiers_follow_efficiency(current, suggestion):
    metrics = compute_metrics(make_goal(current=current), NOW)
    assert metrics.smart_suggestion == suggestion


def test_overdue_goal_suggests_extending():
    metrics = compute_metrics(make_goal(start_offset=-10, end_offset=-1, current=95), NOW)
    assert metrics.status == GoalStatus.LATE
    assert metrics.smart_suggestion == "This goal is overdue. Extend the end date or close it out."


def test_difficulty_scales_health():
    metrics = compute_metrics(make_goal(current=50, difficulty="Easy"), NOW)
    assert metrics.health_score == pytest.approx(93.5)


def test_last_day_penalty_halves_health():
    metrics = compute_metrics(make_goal(start_offset=-9, end_offset=1, target=110, current=50), NOW)
    assert metrics.days_remaining == 1
    assert metrics.health_score == pytest.approx(24.3)


def test_completed_goal_badges():
    goal = make_goal(start_offset=-2, end_offset=17, target=10, current=10)
    metrics = compute_metrics(goal, NOW)
    assert metrics.achievement_badges == ["Finisher", "Early Bird", "High Velocity"]
    assert metrics.smart_suggestion == "Goal achieved! Great work."


def test_open_goal_has_no_badges():
    assert compute_metrics(make_goal(current=50), NOW).achievement_badges == []


def test_manual_completion_flag_completes_goal():
    metrics = compute_metrics(make_goal(current=10, is_completed=True), NOW)
    assert metrics.status == GoalStatus.COMPLETED
    assert metrics.required_velocity == 0


def test_safe_divide():
    assert safe_divide(10, 4) == 2.5
    assert safe_divide(10, 0) == 0.0
    assert safe_divide(10, -1, default=7) == 7
    assert safe_divide(10, None) == 0.0


def test_sync_daily_logs_spans_range_and_is_idempotent():
    goal = Goal(
        user_id="1",
        title="Walk",
        start_date=date(2026, 10, 1),
        end_date=date(2026, 10, 5),
        target_value=50,
        current_value=99,
        daily_logs=[
            DailyLog(date=date(2026, 10, 2), target=1, actual=3),
            DailyLog(date=date(2026, 9, 30), target=1, actual=7),
        ],
    )
    synced = sync_daily_logs(goal)
    assert [log.date for log in synced.daily_logs] == [date(2026, 10, d) for d in range(1, 6)]
    assert all(log.target == 10 for log in synced.daily_logs)
    assert synced.current_value == 3
    assert sync_daily_logs(synced).model_dump() == synced.model_dump()


def test_log_progress_updates_current_value():
    goal = make_goal(target=100)
    logged = log_progress(goal, TODAY, 12)
    logged = log_progress(logged, TODAY - timedelta(days=1), 8)
    assert logged.current_value == 20
    assert len(logged.daily_logs) == 10


def test_log_progress_rejects_dates_outside_goal():
    with pytest.raises(InvalidOperation) as exc:
        log_progress(make_goal(), TODAY + timedelta(days=30), 5)
    assert exc.value.field == "date"
