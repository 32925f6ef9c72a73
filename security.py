from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, Header, HTTPException, status
from jose import JWTError, jwt
from passlib.context import CryptContext

from config import Settings, get_settings
from dependencies import get_role_repo, get_user_repo
from permissions import can_use_widget, find_role, has_capability
from repositories import RoleRepository, UserRepository
from schemas import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ALL_WIDGETS_UNLOCKED = "*"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=settings.access_token_expire_days))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def token_for(user: User, settings: Settings, unlocked_widgets: Optional[List[str]] = None) -> str:
    claims: Dict[str, Any] = {"sub": str(user.id), "role": user.role}
    if unlocked_widgets:
        claims["unlocked"] = unlocked_widgets
    return create_access_token(claims, settings)


async def get_token_payload(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("sub") is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


async def get_current_user(
    payload: dict = Depends(get_token_payload),
    users: UserRepository = Depends(get_user_repo),
) -> User:
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")
    user = users.get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def is_pin_verified(payload: dict, widget: Optional[str] = None) -> bool:
    unlocked = payload.get("unlocked") or []
    if ALL_WIDGETS_UNLOCKED in unlocked:
        return True
    return widget is not None and widget in unlocked


def require_capability(capability: str) -> Callable:
    """Dependency factory: the current user's role must carry ``capability``."""

    async def dependency(
        user: User = Depends(get_current_user),
        roles: RoleRepository = Depends(get_role_repo),
    ) -> User:
        role = find_role(roles.get_all(), user.role_id, user.role)
        if not has_capability(role, capability):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")
        return user

    return dependency


def require_widget(widget: str) -> Callable:
    """Dependency factory: the widget must be permitted, and PIN-unlocked when the user has a PIN."""

    async def dependency(
        user: User = Depends(get_current_user),
        payload: dict = Depends(get_token_payload),
    ) -> User:
        if not can_use_widget(user, widget):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: '{widget}' is not enabled for your role",
            )
        if user.security_pin and not is_pin_verified(payload, widget):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Security PIN verification required",
            )
        return user

    return dependency
