import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from dependencies import get_goal_repo
from goals import compute_metrics, log_progress, sync_daily_logs
from repositories import GoalRepository
from schemas import Goal, GoalIn, GoalLogIn, GoalOut, GoalUpdate, User
from security import require_widget

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/goals", tags=["goals"])

GOALS_WIDGET = "Goal Tracking"


def with_metrics(goal: Goal) -> GoalOut:
    return GoalOut(**goal.model_dump(), metrics=compute_metrics(goal))


def _owned(goals: GoalRepository, goal_id: int, user: User) -> Goal:
    goal = goals.get(goal_id, str(user.id))
    if not goal:
        raise HTTPException(status_code=404, detail="Goal not found")
    return goal


@router.get("", response_model=List[GoalOut])
def list_goals(
    user: User = Depends(require_widget(GOALS_WIDGET)),
    goals: GoalRepository = Depends(get_goal_repo),
):
    return [with_metrics(g) for g in goals.get_all(str(user.id))]


@router.get("/{goal_id}", response_model=GoalOut)
def get_goal(
    goal_id: int,
    user: User = Depends(require_widget(GOALS_WIDGET)),
    goals: GoalRepository = Depends(get_goal_repo),
):
    return with_metrics(_owned(goals, goal_id, user))


@router.post("", response_model=GoalOut, status_code=status.HTTP_201_CREATED)
def create_goal(
    body: GoalIn,
    user: User = Depends(require_widget(GOALS_WIDGET)),
    goals: GoalRepository = Depends(get_goal_repo),
):
    goal = Goal(user_id=str(user.id), **body.model_dump(exclude={"track_daily"}))
    if body.track_daily:
        goal = sync_daily_logs(goal)
    stored = goals.add(goal)
    logger.info(f"User {user.id} created goal {stored.id}: {stored.title}")
    return with_metrics(stored)


@router.put("/{goal_id}", response_model=GoalOut)
def update_goal(
    goal_id: int,
    body: GoalUpdate,
    user: User = Depends(require_widget(GOALS_WIDGET)),
    goals: GoalRepository = Depends(get_goal_repo),
):
    existing = _owned(goals, goal_id, user)
    changes = body.model_dump(exclude={"track_daily", "is_completed"})
    if body.is_completed is not None:
        changes["is_completed"] = body.is_completed
    goal = existing.model_copy(update=changes)
    if body.track_daily or goal.daily_logs:
        goal = sync_daily_logs(goal)
    return with_metrics(goals.update(goal))


@router.post("/{goal_id}/logs", response_model=GoalOut)
def log_goal_progress(
    goal_id: int,
    body: GoalLogIn,
    user: User = Depends(require_widget(GOALS_WIDGET)),
    goals: GoalRepository = Depends(get_goal_repo),
):
    goal = log_progress(_owned(goals, goal_id, user), body.date, body.actual)
    return with_metrics(goals.update(goal))


@router.post("/{goal_id}/toggle", response_model=GoalOut)
def toggle_goal(
    goal_id: int,
    user: User = Depends(require_widget(GOALS_WIDGET)),
    goals: GoalRepository = Depends(get_goal_repo),
):
    goal = _owned(goals, goal_id, user)
    return with_metrics(goals.update(goal.model_copy(update={"is_completed": not goal.is_completed})))


@router.delete("/{goal_id}")
def delete_goal(
    goal_id: int,
    user: User = Depends(require_widget(GOALS_WIDGET)),
    goals: GoalRepository = Depends(get_goal_repo),
):
    if not goals.delete(goal_id, str(user.id)):
        raise HTTPException(status_code=404, detail="Goal not found")
    return {"ok": True}
