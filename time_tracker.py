"""
Stopwatch-style work session tracking.

A session is either ``stopped`` or ``running``; there is no paused state. A
stored ``paused`` state (written by older clients) loads as ``stopped``.
Stopping a running session produces one completed :class:`TimeEntry` whose
duration is authoritative: ``end_time`` is always ``start_time + duration``.
"""

import json
import logging
import math
import threading
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, Optional

from errors import InvalidOperation
from schemas import SessionStatus, SessionStateOut, TimeEntry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
EntrySink = Callable[[TimeEntry], TimeEntry]


def local_now() -> datetime:
    return datetime.now().astimezone()


class TimeTrackerSession:
    """One start/stop stopwatch, persisted to a small JSON state file."""

    def __init__(
        self,
        user_id: str = "",
        state_path: Optional[Path] = None,
        sink: Optional[EntrySink] = None,
        clock: Clock = local_now,
    ):
        self.user_id = user_id
        self.state_path = Path(state_path) if state_path else None
        self.sink = sink
        self.clock = clock

        self.status = SessionStatus.STOPPED
        self.start_time: Optional[datetime] = None
        self.task_name = ""
        self.daily_total = 0
        self.day: date = self.clock().date()
        self.load_state()

    # ------- persistence -------

    def load_state(self) -> None:
        state: Dict = {}
        if self.state_path and self.state_path.exists():
            try:
                state = json.loads(self.state_path.read_text(encoding="utf-8") or "{}")
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Ignoring unreadable session state {self.state_path}: {e}")
                state = {}

        today = self.clock().date()
        saved_day = state.get("date")
        if saved_day == today.isoformat():
            self.daily_total = int(state.get("dailyTotal", 0))
        else:
            self.daily_total = 0
        self.day = today

        raw_status = state.get("status", SessionStatus.STOPPED.value)
        if raw_status == SessionStatus.RUNNING.value and state.get("startTime"):
            self.status = SessionStatus.RUNNING
            self.start_time = datetime.fromisoformat(state["startTime"])
        else:
            # Anything else, including the retired "paused" state, is stopped.
            self.status = SessionStatus.STOPPED
            self.start_time = None
        self.task_name = state.get("taskName", "")

    def save_state(self) -> None:
        if not self.state_path:
            return
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        state = {
            "status": self.status.value,
            "startTime": self.start_time.isoformat() if self.start_time else None,
            "taskName": self.task_name,
            "dailyTotal": self.daily_total,
            "date": self.day.isoformat(),
        }
        self.state_path.write_text(json.dumps(state, indent=2), encoding="utf-8")

    # ------- transitions -------

    @property
    def elapsed_seconds(self) -> int:
        if self.status != SessionStatus.RUNNING or self.start_time is None:
            return 0
        return max(0, math.floor((self.clock() - self.start_time).total_seconds()))

    def _roll_day(self) -> None:
        today = self.clock().date()
        if today != self.day:
            self.day = today
            self.daily_total = 0

    def start(self, task_name: str = "") -> None:
        if self.status == SessionStatus.RUNNING:
            raise InvalidOperation("A session is already running. Stop it first.")
        self._roll_day()
        self.task_name = task_name or ""
        self.start_time = self.clock()
        self.status = SessionStatus.RUNNING
        self.save_state()
        logger.info(f"Started session for user {self.user_id!r}: {self.task_name or 'Unnamed Task'}")

    def stop(self) -> Optional[TimeEntry]:
        """Finish the running session and hand the entry to the sink.

        Returns the (persisted) entry, or None when nothing was running.
        """
        if self.status != SessionStatus.RUNNING or self.start_time is None:
            return None
        start = self.start_time
        elapsed = max(0, math.floor((self.clock() - start).total_seconds()))
        entry = TimeEntry(
            user_id=self.user_id,
            task_name=self.task_name or "Unnamed Task",
            start_time=start,
            end_time=start + timedelta(seconds=elapsed),
            duration_in_seconds=elapsed,
            date=start.date(),
        )

        # A failing sink leaves the session running.
        if self.sink is not None:
            entry = self.sink(entry)

        self._roll_day()
        self.daily_total += elapsed
        self.status = SessionStatus.STOPPED
        self.start_time = None
        self.save_state()
        logger.info(f"Stopped session for user {self.user_id!r} after {elapsed}s")
        return entry

    def snapshot(self) -> SessionStateOut:
        self._roll_day()
        return SessionStateOut(
            status=self.status,
            task_name=self.task_name,
            start_time=self.start_time,
            elapsed_seconds=self.elapsed_seconds,
            daily_total_seconds=self.daily_total + self.elapsed_seconds,
        )


def apply_entry_edit(entry: TimeEntry, task_name: str, duration_in_seconds: int) -> TimeEntry:
    """Change an entry's task name and duration; the start time never moves."""
    return entry.model_copy(update={
        "task_name": task_name,
        "duration_in_seconds": duration_in_seconds,
        "end_time": entry.start_time + timedelta(seconds=duration_in_seconds),
    })


class SessionRegistry:
    """Per-user sessions whose state lives under ``<data_dir>/sessions``."""

    def __init__(self, state_dir: Path, clock: Clock = local_now):
        self.state_dir = Path(state_dir)
        self.clock = clock
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, user_id: str) -> threading.Lock:
        """Lock serialising start/stop for one user."""
        with self._guard:
            return self._locks.setdefault(user_id, threading.Lock())

    def session_for(self, user_id: str, sink: Optional[EntrySink] = None) -> TimeTrackerSession:
        return TimeTrackerSession(
            user_id=user_id,
            state_path=self.state_dir / f"{user_id}.json",
            sink=sink,
            clock=self.clock,
        )
