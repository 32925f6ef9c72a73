import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from dependencies import get_user_repo
from errors import InvalidOperation
from notifications import EmailSender, PendingSignupStore, get_email_sender, get_pending_store, start_verification
from permissions import authorized_widgets, find_role, has_capability
from repositories import UserRepository
from schemas import OtpVerifyIn, PendingOut, User, UserCreateIn, UserOut, UserUpdateIn
from security import get_password_hash, require_capability

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

SORT_KEYS = {
    "name": lambda u: u.name.lower(),
    "email": lambda u: u.email.lower(),
    "login": lambda u: u.login_count,
    "date": lambda u: u.last_login_date or datetime.min,
    "role": lambda u: u.role.lower(),
}
HISTORY_WINDOWS = {"7days": 7, "30days": 30}


def sort_users(users: List[User], sort_order: Optional[str]) -> List[User]:
    """Sort by ``name``/``email``/``login``/``date``/``role``; a ``_desc`` suffix reverses."""
    order = (sort_order or "name").lower()
    descending = order.endswith("_desc")
    key = SORT_KEYS.get(order[:-5] if descending else order, SORT_KEYS["name"])
    return sorted(users, key=key, reverse=descending)


def filter_users(users: List[User], sees_private: bool, search: Optional[str], login_filter: Optional[str],
                 today: Optional[date] = None) -> List[User]:
    today = today or date.today()
    if not sees_private:
        users = [u for u in users if u.role != "Private"]
    if login_filter == "today":
        users = [u for u in users if u.last_login_date and u.last_login_date.date() == today]
    if search:
        needle = search.lower()
        users = [u for u in users if needle in u.name.lower() or needle in u.email.lower()]
    return users


@router.get("", response_model=List[UserOut])
def list_users(
    search: Optional[str] = Query(None, description="Name or email substring"),
    login_filter: Optional[str] = Query(None, alias="filter", description="'today' limits to users who logged in today"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    viewer: User = Depends(require_capability("can_view_users")),
    users: UserRepository = Depends(get_user_repo),
):
    # Admin means the settings capability, not a role name.
    viewer_role = find_role(users.roles.get_all(), viewer.role_id, viewer.role)
    sees_private = has_capability(viewer_role, "can_access_settings")
    found = filter_users(users.get_all(), sees_private, search, login_filter)
    return [UserOut.from_user(u) for u in sort_users(found, sort_order)]


@router.post("", response_model=PendingOut, status_code=status.HTTP_202_ACCEPTED)
def create_user(
    body: UserCreateIn,
    users: UserRepository = Depends(get_user_repo),
    pending: PendingSignupStore = Depends(get_pending_store),
    sender: EmailSender = Depends(get_email_sender),
    admin: User = Depends(require_capability("can_add_user")),
):
    if users.get_by_email(body.email):
        raise InvalidOperation("Email already exists.", field="email")
    role = users.roles.get_by_name(body.role)
    if role is None:
        raise InvalidOperation(f"Unknown role '{body.role}'.", field="role")
    user = User(
        name=body.name,
        email=body.email.lower(),
        password_hash=get_password_hash(body.password),
        role=role.name,
        role_id=role.id,
        permitted_widgets=authorized_widgets(role, body.permitted_widgets),
        security_pin=body.security_pin,
    )
    held = start_verification(user, pending, sender)
    logger.info(f"User {admin.id} started creating {user.email} as {role.name}")
    return {"email": user.email, "expires_at": held.expires_at}


@router.post("/verify-otp", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def verify_new_user(
    body: OtpVerifyIn,
    users: UserRepository = Depends(get_user_repo),
    pending: PendingSignupStore = Depends(get_pending_store),
    admin: User = Depends(require_capability("can_add_user")),
):
    return UserOut.from_user(users.add(pending.verify(body.email, body.otp)))


@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: int,
    users: UserRepository = Depends(get_user_repo),
    viewer: User = Depends(require_capability("can_view_users")),
):
    user = users.get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return UserOut.from_user(user)


@router.get("/{user_id}/login-history", response_model=List[datetime])
def login_history(
    user_id: int,
    window: str = Query("all", alias="filter", pattern="^(all|7days|30days)$"),
    users: UserRepository = Depends(get_user_repo),
    viewer: User = Depends(require_capability("can_view_users")),
):
    user = users.get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    history = sorted(user.login_history, reverse=True)
    if window in HISTORY_WINDOWS:
        since = datetime.now() - timedelta(days=HISTORY_WINDOWS[window])
        history = [d for d in history if d.replace(tzinfo=None) >= since]
    return history


@router.put("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    body: UserUpdateIn,
    users: UserRepository = Depends(get_user_repo),
    editor: User = Depends(require_capability("can_edit_user")),
):
    existing = users.get_by_id(user_id)
    if not existing:
        raise HTTPException(status_code=404, detail="User not found")
    role = users.roles.get_by_name(body.role)
    if role is None:
        raise InvalidOperation(f"Unknown role '{body.role}'.", field="role")

    changes = {
        "name": body.name,
        "email": body.email.lower(),
        "security_pin": body.security_pin,
        "is_email_verified": body.is_email_verified,
        "role": role.name,
        "role_id": role.id,
        "permitted_widgets": authorized_widgets(role, body.permitted_widgets),
    }
    if body.password and body.password.strip():
        changes["password_hash"] = get_password_hash(body.password)
    updated = users.update(existing.model_copy(update=changes))
    logger.info(f"User {editor.id} updated user {user_id}")
    return UserOut.from_user(updated)


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    users: UserRepository = Depends(get_user_repo),
    admin: User = Depends(require_capability("can_delete_user")),
):
    if not users.delete(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    logger.info(f"User {admin.id} deleted user {user_id}")
    return {"ok": True}
