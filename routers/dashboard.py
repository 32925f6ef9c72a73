"""
Dashboard endpoints.

The dashboard view gathers the current user's notes, habits and goals with
their widget permissions and PIN state. Notes and habits are managed here as
well, each gated by its widget.
"""

import logging
import secrets
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from config import Settings, get_settings
from dependencies import get_goal_repo, get_habit_repo, get_note_repo, get_user_repo
from goals import compute_metrics
from repositories import GoalRepository, HabitRepository, NoteRepository, UserRepository
from schemas import DashboardOut, GoalOut, Habit, HabitIn, Note, NoteIn, PinVerifyIn, User
from security import (
    ALL_WIDGETS_UNLOCKED,
    get_token_payload,
    require_capability,
    require_widget,
    token_for,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

NOTES_WIDGET = "Personal Notes"
HABITS_WIDGET = "Habit Tracker"


@router.get("", response_model=DashboardOut)
def dashboard(
    user: User = Depends(require_capability("can_access_dashboard")),
    payload: dict = Depends(get_token_payload),
    users: UserRepository = Depends(get_user_repo),
    notes: NoteRepository = Depends(get_note_repo),
    habits: HabitRepository = Depends(get_habit_repo),
    goals: GoalRepository = Depends(get_goal_repo),
):
    owner = str(user.id)
    everyone = users.get_all()
    today = date.today()
    return DashboardOut(
        notes=notes.get_all(owner),
        habits=habits.get_all(owner),
        goals=[GoalOut(**g.model_dump(), metrics=compute_metrics(g)) for g in goals.get_all(owner)],
        permitted_widgets=user.permitted_widgets,
        has_security_pin=bool(user.security_pin),
        is_pin_verified=bool(payload.get("unlocked")),
        total_users=len(everyone),
        new_users_today=sum(1 for u in everyone if u.created_at.date() == today),
    )


@router.post("/verify-pin")
def verify_pin(
    body: PinVerifyIn,
    user: User = Depends(require_capability("can_access_dashboard")),
    payload: dict = Depends(get_token_payload),
    settings: Settings = Depends(get_settings),
):
    """Unlock one widget (or every widget when none is named) for this session."""
    if not user.security_pin:
        raise HTTPException(status_code=400, detail="No security PIN is set for this account")
    if body.widget and body.widget not in user.permitted_widgets:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")
    if not secrets.compare_digest(user.security_pin, body.pin):
        logger.warning(f"Invalid PIN attempt for user {user.id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid PIN")

    unlocked = list(payload.get("unlocked") or [])
    grant = body.widget or ALL_WIDGETS_UNLOCKED
    if grant not in unlocked:
        unlocked.append(grant)
    return {"success": True, "token": token_for(user, settings, unlocked_widgets=unlocked)}


# ------- Notes -------

@router.get("/notes", response_model=List[Note])
def list_notes(
    user: User = Depends(require_widget(NOTES_WIDGET)),
    notes: NoteRepository = Depends(get_note_repo),
):
    return notes.get_all(str(user.id))


@router.post("/notes", response_model=Note, status_code=status.HTTP_201_CREATED)
def add_note(
    body: NoteIn,
    user: User = Depends(require_widget(NOTES_WIDGET)),
    notes: NoteRepository = Depends(get_note_repo),
):
    return notes.add(Note(user_id=str(user.id), text=body.text))


@router.put("/notes/{note_id}", response_model=Note)
def edit_note(
    note_id: int,
    body: NoteIn,
    user: User = Depends(require_widget(NOTES_WIDGET)),
    notes: NoteRepository = Depends(get_note_repo),
):
    note = notes.update_text(note_id, str(user.id), body.text)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


@router.delete("/notes/{note_id}")
def delete_note(
    note_id: int,
    user: User = Depends(require_widget(NOTES_WIDGET)),
    notes: NoteRepository = Depends(get_note_repo),
):
    if not notes.delete(note_id, str(user.id)):
        raise HTTPException(status_code=404, detail="Note not found")
    return {"ok": True}


# ------- Habits -------

@router.get("/habits", response_model=List[Habit])
def list_habits(
    user: User = Depends(require_widget(HABITS_WIDGET)),
    habits: HabitRepository = Depends(get_habit_repo),
):
    return habits.get_all(str(user.id))


@router.post("/habits", response_model=Habit, status_code=status.HTTP_201_CREATED)
def add_habit(
    body: HabitIn,
    user: User = Depends(require_widget(HABITS_WIDGET)),
    habits: HabitRepository = Depends(get_habit_repo),
):
    habit = Habit(
        user_id=str(user.id),
        name=body.name,
        description=body.description,
        frequency=body.frequency,
        custom_days=body.custom_days,
        start_date=body.start_date or date.today(),
    )
    return habits.add(habit)


@router.post("/habits/{habit_id}/toggle", response_model=Habit)
def toggle_habit(
    habit_id: int,
    user: User = Depends(require_widget(HABITS_WIDGET)),
    habits: HabitRepository = Depends(get_habit_repo),
):
    habit = habits.get(habit_id, str(user.id))
    if not habit:
        raise HTTPException(status_code=404, detail="Habit not found")
    return habits.toggle(habit)


@router.delete("/habits/{habit_id}")
def delete_habit(
    habit_id: int,
    user: User = Depends(require_widget(HABITS_WIDGET)),
    habits: HabitRepository = Depends(get_habit_repo),
):
    if not habits.delete(habit_id, str(user.id)):
        raise HTTPException(status_code=404, detail="Habit not found")
    return {"ok": True}
