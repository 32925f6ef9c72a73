"""
Time tracking endpoints.

Completed entries can be saved directly or produced by the per-user
stopwatch session (``/start`` and ``/stop``). Either way the stored duration
is authoritative and ``endTime`` is derived from it.
"""

import logging
from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from dependencies import get_session_registry, get_time_entry_repo
from repositories import TimeEntryRepository
from schemas import SessionStartIn, SessionStateOut, TimeEntry, TimeEntryIn, TimeEntryUpdate, User
from security import require_capability
from time_tracker import SessionRegistry, apply_entry_edit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/time-entries", tags=["time tracking"])


@router.get("", response_model=List[TimeEntry])
def list_entries(
    user: User = Depends(require_capability("can_access_widgets")),
    entries: TimeEntryRepository = Depends(get_time_entry_repo),
):
    return entries.get_all(str(user.id))


@router.post("", response_model=TimeEntry, status_code=status.HTTP_201_CREATED)
def save_entry(
    body: TimeEntryIn,
    user: User = Depends(require_capability("can_access_widgets")),
    entries: TimeEntryRepository = Depends(get_time_entry_repo),
):
    entry = TimeEntry(
        user_id=str(user.id),
        task_name=body.task_name.strip() or "Unnamed Task",
        start_time=body.start_time,
        end_time=body.start_time + timedelta(seconds=body.duration_in_seconds),
        duration_in_seconds=body.duration_in_seconds,
        date=body.day or body.start_time.date(),
    )
    return entries.add(entry)


@router.put("/{entry_id}", response_model=TimeEntry)
def update_entry(
    entry_id: int,
    body: TimeEntryUpdate,
    user: User = Depends(require_capability("can_access_widgets")),
    entries: TimeEntryRepository = Depends(get_time_entry_repo),
):
    entry = entries.get(entry_id, str(user.id))
    if not entry:
        raise HTTPException(status_code=404, detail="Time entry not found")
    return entries.update(apply_entry_edit(entry, body.task_name, body.duration_in_seconds), str(user.id))


@router.delete("/{entry_id}")
def delete_entry(
    entry_id: int,
    user: User = Depends(require_capability("can_access_widgets")),
    entries: TimeEntryRepository = Depends(get_time_entry_repo),
):
    if not entries.delete(entry_id, str(user.id)):
        raise HTTPException(status_code=404, detail="Time entry not found")
    return {"ok": True}


# ------- Stopwatch session -------

@router.get("/session", response_model=SessionStateOut)
def session_state(
    user: User = Depends(require_capability("can_access_widgets")),
    registry: SessionRegistry = Depends(get_session_registry),
):
    return registry.session_for(str(user.id)).snapshot()


@router.post("/start", response_model=SessionStateOut)
def start_session(
    body: SessionStartIn,
    user: User = Depends(require_capability("can_access_widgets")),
    registry: SessionRegistry = Depends(get_session_registry),
):
    owner = str(user.id)
    with registry.lock_for(owner):
        session = registry.session_for(owner)
        session.start(body.task_name.strip())
        return session.snapshot()


@router.post("/stop", response_model=Optional[TimeEntry])
def stop_session(
    user: User = Depends(require_capability("can_access_widgets")),
    registry: SessionRegistry = Depends(get_session_registry),
    entries: TimeEntryRepository = Depends(get_time_entry_repo),
):
    """Stop the running session; answers ``null`` when nothing was running."""
    owner = str(user.id)
    with registry.lock_for(owner):
        return registry.session_for(owner, sink=entries.add).stop()
