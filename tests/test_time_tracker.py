import json
from datetime import datetime, timedelta, timezone

import pytest

from errors import InvalidOperation
from schemas import SessionStatus, TimeEntry
from time_tracker import SessionRegistry, TimeTrackerSession, apply_entry_edit

T0 = datetime(2026, 10, 18, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock(T0)


def test_stop_after_125_seconds_records_one_entry(clock, tmp_path):
    saved = []
    session = TimeTrackerSession("1", tmp_path / "s.json", sink=lambda e: saved.append(e) or e, clock=clock)
    session.start("Write report")
    clock.advance(125.7)
    entry = session.stop()

    assert saved == [entry]
    assert entry.duration_in_seconds == 125
    assert entry.end_time == entry.start_time + timedelta(seconds=125)
    assert entry.start_time == T0
    assert entry.date == T0.date()
    assert entry.task_name == "Write report"
    assert entry.formatted_duration == "00:02:05"
    assert session.status == SessionStatus.STOPPED
    assert session.daily_total == 125


def test_failed_entry_write_keeps_session_running(clock, tmp_path):
    path = tmp_path / "s.json"

    def full_disk(entry):
        raise OSError("disk full")

    session = TimeTrackerSession("1", path, sink=full_disk, clock=clock)
    session.start("Write report")
    clock.advance(125)
    with pytest.raises(OSError):
        session.stop()

    assert session.status == SessionStatus.RUNNING
    reloaded = TimeTrackerSession("1", path, sink=lambda e: e, clock=clock)
    assert reloaded.status == SessionStatus.RUNNING
    assert reloaded.start_time == T0
    assert reloaded.daily_total == 0
    assert reloaded.stop().duration_in_seconds == 125
    assert reloaded.daily_total == 125


def test_unnamed_task_default(clock):
    session = TimeTrackerSession(clock=clock)
    session.start()
    clock.advance(3)
    assert session.stop().task_name == "Unnamed Task"


def test_stop_when_stopped_is_noop(clock):
    session = TimeTrackerSession(clock=clock)
    assert session.stop() is None


def test_double_start_is_rejected(clock):
    session = TimeTrackerSession(clock=clock)
    session.start("a")
    with pytest.raises(InvalidOperation):
        session.start("b")


def test_running_session_survives_reload(clock, tmp_path):
    path = tmp_path / "s.json"
    TimeTrackerSession("1", path, clock=clock).start("Deep work")
    clock.advance(60)

    reloaded = TimeTrackerSession("1", path, clock=clock)
    assert reloaded.status == SessionStatus.RUNNING
    assert reloaded.task_name == "Deep work"
    assert reloaded.elapsed_seconds == 60


def test_paused_state_loads_as_stopped(clock, tmp_path):
    path = tmp_path / "s.json"
    path.write_text(json.dumps({
        "status": "paused",
        "startTime": T0.isoformat(),
        "taskName": "Legacy",
        "dailyTotal": 30,
        "date": T0.date().isoformat(),
    }))
    session = TimeTrackerSession("1", path, clock=clock)
    assert session.status == SessionStatus.STOPPED
    assert session.daily_total == 30
    assert session.stop() is None


def test_daily_total_resets_on_new_day(clock, tmp_path):
    path = tmp_path / "s.json"
    path.write_text(json.dumps({"status": "stopped", "dailyTotal": 500, "date": "2026-10-17"}))
    assert TimeTrackerSession("1", path, clock=clock).daily_total == 0


def test_session_crossing_midnight(tmp_path):
    clock = FakeClock(datetime(2026, 10, 18, 23, 59, 0))
    session = TimeTrackerSession("1", tmp_path / "s.json", clock=clock)
    session.daily_total = 40
    session.start("Late shift")
    clock.advance(120)
    entry = session.stop()
    assert entry.date.isoformat() == "2026-10-18"
    assert session.daily_total == 120


def test_unreadable_state_starts_stopped(clock, tmp_path):
    path = tmp_path / "s.json"
    path.write_text("{not json")
    assert TimeTrackerSession("1", path, clock=clock).status == SessionStatus.STOPPED


def test_snapshot_reports_elapsed(clock):
    session = TimeTrackerSession(clock=clock)
    session.start("Focus")
    clock.advance(42)
    snap = session.snapshot()
    assert snap.status == SessionStatus.RUNNING
    assert snap.elapsed_seconds == 42
    assert snap.daily_total_seconds == 42


def test_entry_edit_keeps_start_and_recomputes_end():
    entry = TimeEntry(
        id=3,
        user_id="1",
        task_name="Old",
        start_time=T0,
        end_time=T0 + timedelta(seconds=10),
        duration_in_seconds=10,
        date=T0.date(),
    )
    edited = apply_entry_edit(entry, "New", 3600)
    assert edited.start_time == T0
    assert edited.end_time == T0 + timedelta(hours=1)
    assert edited.task_name == "New"
    assert edited.formatted_duration == "01:00:00"


def test_registry_keeps_one_lock_per_user(tmp_path):
    registry = SessionRegistry(tmp_path)
    assert registry.lock_for("1") is registry.lock_for("1")
    assert registry.lock_for("1") is not registry.lock_for("2")
    assert registry.session_for("7").state_path == tmp_path / "7.json"
