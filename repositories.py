"""
Repositories over the JSON collections.

Each repository converts between stored camelCase documents and the pydantic
models in ``schemas``. Lookups that miss return ``None``; callers decide
whether that is a 404.
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from database import Database
from errors import InvalidOperation
from permissions import find_role, resolve_user
from schemas import Goal, Habit, Note, Role, TimeEntry, User, Widget

logger = logging.getLogger(__name__)

ALL_WIDGETS = [
    "Weather Details",
    "Currency Conversion",
    "Time Conversion",
    "Headlines / News",
    "World Countries",
    "Personal Notes",
    "Habit Tracker",
    "Emergency Numbers",
    "Language Translator",
    "PDF Converter",
    "Goal Tracking",
]


def _default_widgets() -> List[dict]:
    return [{"id": i, "name": name} for i, name in enumerate(ALL_WIDGETS, start=1)]


def _default_roles() -> List[dict]:
    roles = [
        Role(
            id=1, name="Admin", permitted_widgets=list(ALL_WIDGETS),
            can_view_users=True, can_add_user=True, can_edit_user=True, can_delete_user=True,
            can_access_dashboard=True, can_access_widgets=True, can_access_settings=True,
        ),
        Role(
            id=2, name="User",
            permitted_widgets=[
                "Weather Details", "Currency Conversion", "Time Conversion", "Headlines / News",
                "World Countries", "Emergency Numbers", "Language Translator", "Goal Tracking",
            ],
            can_view_users=True, can_access_dashboard=True, can_access_widgets=True,
        ),
        Role(
            id=3, name="Private",
            permitted_widgets=[
                "Weather Details", "Time Conversion", "Personal Notes", "Emergency Numbers",
                "Language Translator",
            ],
            can_access_dashboard=True, can_access_widgets=True,
        ),
        Role(
            id=4, name="Visitor",
            permitted_widgets=[
                "Weather Details", "Currency Conversion", "Time Conversion", "Headlines / News",
                "World Countries", "Emergency Numbers",
            ],
            can_access_dashboard=True,
        ),
    ]
    return [to_doc(r, keep_id=True) for r in roles]


def to_doc(model, keep_id: bool = False, exclude: Optional[set] = None) -> dict:
    skip = set(exclude or ())
    if not keep_id:
        skip.add("id")
    return model.model_dump(mode="json", by_alias=True, exclude=skip)


class WidgetRepository:
    def __init__(self, db: Database):
        self.col = db.collection("widgets", seed=_default_widgets)

    def get_all(self) -> List[Widget]:
        return [Widget.model_validate(d) for d in self.col.find()]

    def names(self) -> List[str]:
        return [w.name for w in self.get_all()]


class RoleRepository:
    def __init__(self, db: Database):
        self.col = db.collection("roles", seed=_default_roles)

    def get_all(self) -> List[Role]:
        return [Role.model_validate(d) for d in self.col.find()]

    def get(self, role_id: int) -> Optional[Role]:
        doc = self.col.get(role_id)
        return Role.model_validate(doc) if doc else None

    def get_by_name(self, name: str) -> Optional[Role]:
        return find_role(self.get_all(), None, name)

    def _check_unique_name(self, name: str, own_id: Optional[int] = None) -> None:
        clash = self.get_by_name(name)
        if clash is not None and clash.id != own_id:
            raise InvalidOperation(f"A role named '{clash.name}' already exists.", field="name")

    def add(self, role: Role) -> Role:
        with self.col.lock:
            self._check_unique_name(role.name)
            stored = self.col.insert_one(to_doc(role))
        logger.info(f"Created role {stored['name']} (id={stored['id']})")
        return Role.model_validate(stored)

    def update(self, role: Role) -> Optional[Role]:
        """Replace a role, matched by id or, failing that, by name."""
        with self.col.lock:
            existing = find_role(self.get_all(), role.id or None, role.name)
            if existing is None:
                return None
            self._check_unique_name(role.name, own_id=existing.id)
            stored = self.col.replace_one({"id": existing.id}, to_doc(role))
        if existing.name != role.name:
            logger.info(f"Renamed role {existing.name} -> {role.name}")
        return Role.model_validate(stored)


class UserRepository:
    """User directory. Every read joins the user with its Role."""

    def __init__(self, db: Database, roles: RoleRepository):
        self.col = db.collection("users")
        self.roles = roles

    def _load(self, docs: List[dict]) -> List[User]:
        roles = self.roles.get_all()
        return [resolve_user(User.model_validate(d), roles) for d in docs]

    def get_all(self) -> List[User]:
        return self._load(self.col.find())

    def get_by_id(self, user_id: int) -> Optional[User]:
        doc = self.col.get(user_id)
        return self._load([doc])[0] if doc else None

    def get_by_email(self, email: str) -> Optional[User]:
        wanted = (email or "").strip().lower()
        for doc in self.col.find():
            if str(doc.get("email", "")).lower() == wanted:
                return self._load([doc])[0]
        return None

    def count(self) -> int:
        return self.col.count()

    def add(self, user: User) -> User:
        doc = to_doc(user)
        doc["email"] = doc["email"].lower()
        with self.col.lock:
            if self.get_by_email(user.email) is not None:
                raise InvalidOperation("Email already exists.", field="email")
            stored = self.col.insert_one(doc)
        logger.info(f"Created user {stored['id']} with role {stored.get('role')}")
        return self._load([stored])[0]

    def update(self, user: User) -> Optional[User]:
        doc = to_doc(user)
        doc["email"] = doc["email"].lower()
        with self.col.lock:
            other = self.get_by_email(user.email)
            if other is not None and other.id != user.id:
                raise InvalidOperation("Email already exists.", field="email")
            stored = self.col.replace_one({"id": user.id}, doc)
        return self._load([stored])[0] if stored else None

    def delete(self, user_id: int) -> bool:
        return self.col.delete_one({"id": user_id})

    def record_login(self, user: User, when: Optional[datetime] = None) -> User:
        when = when or datetime.now()
        updated = user.model_copy(update={
            "login_history": [*user.login_history, when],
            "login_count": user.login_count + 1,
            "last_login_date": when,
        })
        return self.update(updated) or updated


class GoalRepository:
    def __init__(self, db: Database):
        self.col = db.collection("goals")

    def get_all(self, user_id: str) -> List[Goal]:
        return [Goal.model_validate(d) for d in self.col.find({"userId": user_id})]

    def get(self, goal_id: int, user_id: str) -> Optional[Goal]:
        doc = self.col.find_one({"id": goal_id, "userId": user_id})
        return Goal.model_validate(doc) if doc else None

    def add(self, goal: Goal) -> Goal:
        return Goal.model_validate(self.col.insert_one(to_doc(goal)))

    def update(self, goal: Goal) -> Optional[Goal]:
        stored = self.col.replace_one({"id": goal.id, "userId": goal.user_id}, to_doc(goal))
        return Goal.model_validate(stored) if stored else None

    def delete(self, goal_id: int, user_id: str) -> bool:
        return self.col.delete_one({"id": goal_id, "userId": user_id})


class TimeEntryRepository:
    def __init__(self, db: Database):
        self.col = db.collection("time_entries")

    def get_all(self, user_id: str) -> List[TimeEntry]:
        entries = [TimeEntry.model_validate(d) for d in self.col.find({"userId": user_id})]
        return sorted(entries, key=lambda e: (e.date, e.start_time.replace(tzinfo=None)))

    def get(self, entry_id: int, user_id: str) -> Optional[TimeEntry]:
        doc = self.col.find_one({"id": entry_id, "userId": user_id})
        return TimeEntry.model_validate(doc) if doc else None

    def add(self, entry: TimeEntry) -> TimeEntry:
        stored = self.col.insert_one(to_doc(entry, exclude={"formatted_duration"}))
        return TimeEntry.model_validate(stored)

    def update(self, entry: TimeEntry, user_id: str) -> Optional[TimeEntry]:
        changes = to_doc(entry, exclude={"formatted_duration", "user_id"})
        stored = self.col.update_one({"id": entry.id, "userId": user_id}, changes)
        return TimeEntry.model_validate(stored) if stored else None

    def delete(self, entry_id: int, user_id: str) -> bool:
        return self.col.delete_one({"id": entry_id, "userId": user_id})


class NoteRepository:
    def __init__(self, db: Database):
        self.col = db.collection("notes")

    def get_all(self, user_id: str) -> List[Note]:
        notes = [Note.model_validate(d) for d in self.col.find({"userId": user_id})]
        return sorted(notes, key=lambda n: n.created_at, reverse=True)

    def add(self, note: Note) -> Note:
        return Note.model_validate(self.col.insert_one(to_doc(note)))

    def update_text(self, note_id: int, user_id: str, text: str) -> Optional[Note]:
        stored = self.col.update_one({"id": note_id, "userId": user_id}, {"text": text})
        return Note.model_validate(stored) if stored else None

    def delete(self, note_id: int, user_id: str) -> bool:
        return self.col.delete_one({"id": note_id, "userId": user_id})


class HabitRepository:
    def __init__(self, db: Database):
        self.col = db.collection("habits")

    def get_all(self, user_id: str) -> List[Habit]:
        habits = [Habit.model_validate(d) for d in self.col.find({"userId": user_id})]
        return sorted(habits, key=lambda h: h.created_at, reverse=True)

    def get(self, habit_id: int, user_id: str) -> Optional[Habit]:
        doc = self.col.find_one({"id": habit_id, "userId": user_id})
        return Habit.model_validate(doc) if doc else None

    def add(self, habit: Habit) -> Habit:
        return Habit.model_validate(self.col.insert_one(to_doc(habit)))

    def toggle(self, habit: Habit, day: Optional[date] = None) -> Habit:
        """Mark ``day`` (default today) done, or undo it if already done."""
        day = day or date.today()
        if day in habit.completed_dates:
            dates = [d for d in habit.completed_dates if d != day]
        else:
            dates = sorted([*habit.completed_dates, day])
        updated = habit.model_copy(update={"completed_dates": dates})
        self.col.replace_one({"id": habit.id, "userId": habit.user_id}, to_doc(updated))
        return updated

    def delete(self, habit_id: int, user_id: str) -> bool:
        return self.col.delete_one({"id": habit_id, "userId": user_id})
