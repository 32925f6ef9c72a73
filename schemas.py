"""
Dashboard Schemas

Each stored entity maps to one JSON collection under the data directory
(users, roles, widgets, goals, time_entries, notes, habits). Field names are
camelCase on the wire and on disk, snake_case in Python.
"""
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GoalStatus(str, Enum):
    COMPLETED = "Completed"
    LATE = "Late"
    ON_TRACK = "On Track"
    AT_RISK = "At Risk"
    BEHIND = "Behind"


class SessionStatus(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


Difficulty = Literal["Easy", "Medium", "Hard"]
Priority = Literal["Low", "Medium", "High"]
Category = Literal["Health", "Finance", "Study", "Personal", "Work"]
HabitFrequency = Literal["Daily", "Weekly", "Custom"]

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def _not_blank(value: str, message: str) -> str:
    if value is None or not value.strip():
        raise ValueError(message)
    return value.strip()


# ------- Reference data -------

class Widget(CamelModel):
    id: int = 0
    name: str


class Role(CamelModel):
    id: int = 0
    name: str = Field(..., min_length=1, max_length=50)
    permitted_widgets: List[str] = Field(default_factory=list)
    can_view_users: bool = False
    can_add_user: bool = False
    can_edit_user: bool = False
    can_delete_user: bool = False
    can_access_dashboard: bool = False
    can_access_widgets: bool = False
    can_access_settings: bool = False


CAPABILITIES = (
    "can_view_users",
    "can_add_user",
    "can_edit_user",
    "can_delete_user",
    "can_access_dashboard",
    "can_access_widgets",
    "can_access_settings",
)


# ------- Users -------

class User(CamelModel):
    id: int = 0
    name: str
    email: EmailStr
    password_hash: str = ""
    role_id: Optional[int] = None
    role: str = "User"
    permitted_widgets: List[str] = Field(default_factory=list)
    security_pin: Optional[str] = None
    is_email_verified: bool = False
    login_history: List[datetime] = Field(default_factory=list)
    login_count: int = 0
    last_login_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)


class UserOut(CamelModel):
    id: int
    name: str
    email: EmailStr
    role_id: Optional[int] = None
    role: str
    permitted_widgets: List[str]
    has_security_pin: bool = False
    is_email_verified: bool = False
    login_count: int = 0
    last_login_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role_id=user.role_id,
            role=user.role,
            permitted_widgets=user.permitted_widgets,
            has_security_pin=bool(user.security_pin),
            is_email_verified=user.is_email_verified,
            login_count=user.login_count,
            last_login_date=user.last_login_date,
            created_at=user.created_at,
        )


class CredentialsIn(CamelModel):
    email: EmailStr
    password: str


class SignupIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    security_pin: Optional[str] = Field(None, pattern=r"^[0-9]{4,6}$")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _not_blank(v, "Name cannot be empty.")


class UserCreateIn(SignupIn):
    role: str = "User"
    permitted_widgets: List[str] = Field(default_factory=list)


class UserUpdateIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    role: str
    security_pin: Optional[str] = Field(None, pattern=r"^[0-9]{4,6}$")
    is_email_verified: bool = True
    password: Optional[str] = None
    permitted_widgets: List[str] = Field(default_factory=list)

    @field_validator("password")
    @classmethod
    def password_length(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v.strip() and len(v) < 6:
            raise ValueError("Password must be at least 6 characters.")
        return v


class OtpVerifyIn(CamelModel):
    email: EmailStr
    otp: str = Field(..., pattern=r"^[0-9]{6}$")


class TokenOut(BaseModel):
    token: str
    token_type: str = "bearer"


class PendingOut(CamelModel):
    email: EmailStr
    expires_at: datetime
    message: str = "Verification code sent"


class PinVerifyIn(CamelModel):
    pin: str = Field(..., pattern=r"^[0-9]{4,6}$")
    widget: Optional[str] = None


# ------- Roles -------

class RoleIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    permitted_widgets: List[str] = Field(default_factory=list)
    can_view_users: bool = False
    can_add_user: bool = False
    can_edit_user: bool = False
    can_delete_user: bool = False
    can_access_dashboard: bool = True
    can_access_widgets: bool = False
    can_access_settings: bool = False


class RolePermissionsUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    permitted_widgets: List[str]
    can_view_users: Optional[bool] = None
    can_add_user: Optional[bool] = None
    can_edit_user: Optional[bool] = None
    can_delete_user: Optional[bool] = None
    can_access_dashboard: Optional[bool] = None
    can_access_widgets: Optional[bool] = None
    can_access_settings: Optional[bool] = None


class RoleInfo(CamelModel):
    role_id: int
    role_name: str
    permitted_widgets: List[str]


class RolePermissionsView(CamelModel):
    roles: List[RoleInfo]
    all_available_widgets: List[str]


# ------- Goals -------

class DailyLog(CamelModel):
    date: date
    target: float = 0
    actual: float = Field(0, ge=0)


class Goal(CamelModel):
    id: int = 0
    user_id: str
    title: str
    description: str = ""
    start_date: date
    end_date: date
    target_value: float = Field(..., ge=0)
    current_value: float = Field(0, ge=0)
    category: Category = "Personal"
    priority: Priority = "Medium"
    difficulty: Difficulty = "Medium"
    created_date: datetime = Field(default_factory=datetime.now)
    is_completed: bool = False
    daily_logs: List[DailyLog] = Field(default_factory=list)


class GoalIn(CamelModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = ""
    start_date: date = Field(default_factory=date.today)
    end_date: date
    target_value: float = Field(..., gt=0)
    current_value: float = Field(0, ge=0)
    category: Category = "Personal"
    priority: Priority = "Medium"
    difficulty: Difficulty = "Medium"
    track_daily: bool = False

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = _not_blank(v, "Title must be at least 3 characters.")
        if len(v) < 3:
            raise ValueError("Title must be at least 3 characters.")
        return v

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date < self.start_date:
            raise ValueError("End date cannot be before the start date.")
        return self


class GoalUpdate(GoalIn):
    is_completed: Optional[bool] = None


class GoalLogIn(CamelModel):
    date: date
    actual: float = Field(..., ge=0)


class GoalMetrics(CamelModel):
    status: GoalStatus
    total_days: int
    days_passed: int
    days_remaining: int
    daily_target: float
    expected_progress: float
    progress_percentage: float
    current_velocity: float
    required_velocity: float
    performance_efficiency: float
    health_score: float
    smart_suggestion: str
    estimated_completion_date: Optional[date] = None
    achievement_badges: List[str] = Field(default_factory=list)


class GoalOut(Goal):
    metrics: GoalMetrics


# ------- Time tracking -------

def format_duration(seconds: int) -> str:
    """``HH:MM:SS``; hours are not wrapped at 24."""
    seconds = max(0, int(seconds or 0))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


class TimeEntry(CamelModel):
    id: int = 0
    user_id: str = ""
    task_name: str = ""
    start_time: datetime
    end_time: datetime
    duration_in_seconds: int = Field(0, ge=0)
    date: date

    @computed_field
    @property
    def formatted_duration(self) -> str:
        return format_duration(self.duration_in_seconds)


class TimeEntryIn(CamelModel):
    task_name: str = ""
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_in_seconds: int = Field(..., ge=0)
    day: Optional[date] = Field(None, alias="date")


class TimeEntryUpdate(CamelModel):
    task_name: str
    duration_in_seconds: int = Field(..., ge=0)


class SessionStartIn(CamelModel):
    task_name: str = ""


class SessionStateOut(CamelModel):
    status: SessionStatus
    task_name: str = ""
    start_time: Optional[datetime] = None
    elapsed_seconds: int = 0
    daily_total_seconds: int = 0


# ------- Notes & habits -------

class Note(CamelModel):
    id: int = 0
    user_id: str
    text: str
    created_at: datetime = Field(default_factory=datetime.now)


class NoteIn(CamelModel):
    text: str

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        return _not_blank(v, "Note text cannot be empty.")


class Habit(CamelModel):
    id: int = 0
    user_id: str
    name: str
    description: str = ""
    frequency: HabitFrequency = "Daily"
    custom_days: List[str] = Field(default_factory=list)
    start_date: date = Field(default_factory=date.today)
    completed_dates: List[date] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)


class HabitIn(CamelModel):
    name: str
    description: str = ""
    frequency: HabitFrequency = "Daily"
    custom_days: List[str] = Field(default_factory=list)
    start_date: Optional[date] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _not_blank(v, "Habit name cannot be empty.")

    @model_validator(mode="after")
    def keep_known_days(self):
        # Custom days only apply to Custom habits; unknown names are dropped.
        if self.frequency != "Custom":
            self.custom_days = []
        else:
            known = {d.lower(): d for d in WEEKDAYS}
            self.custom_days = [known[d.strip().lower()] for d in self.custom_days if d.strip().lower() in known]
        return self


# ------- Dashboard -------

class DashboardOut(CamelModel):
    notes: List[Note]
    habits: List[Habit]
    goals: List[GoalOut]
    permitted_widgets: List[str]
    has_security_pin: bool
    is_pin_verified: bool
    total_users: int = 0
    new_users_today: int = 0


# ------- Translation -------

class TranslateIn(CamelModel):
    texts: List[str]
    target_language: str = Field(..., min_length=2, max_length=10)
    source_language: str = Field("en", min_length=2, max_length=10)


TranslateOut = Dict[str, str]
