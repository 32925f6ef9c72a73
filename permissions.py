"""
Role-based widget permissions.

A user's ``permittedWidgets`` and ``role`` fields are a cache of the linked
Role. They are recomputed from the role registry every time a user is read,
so a role edit or rename reaches every linked user on their next read.
"""

import logging
from typing import Iterable, List, Optional

from schemas import CAPABILITIES, Role, User

logger = logging.getLogger(__name__)


def find_role(roles: Iterable[Role], role_id: Optional[int], role_name: Optional[str]) -> Optional[Role]:
    """Look up a role by id, falling back to a case-insensitive name match."""
    roles = list(roles)
    if role_id is not None:
        for role in roles:
            if role.id == role_id:
                return role
    if role_name:
        wanted = role_name.strip().lower()
        for role in roles:
            if role.name.lower() == wanted:
                return role
    return None


def resolve_user(user: User, roles: Iterable[Role]) -> User:
    """Return ``user`` with its role name and widgets synced from its Role.

    When neither the role id nor the legacy role name matches a Role, the
    stored values are returned untouched.
    """
    role = find_role(roles, user.role_id, user.role)
    if role is None:
        logger.warning(
            f"User {user.id} links to unknown role (id={user.role_id}, name={user.role!r}); "
            "stored widget permissions are ungoverned"
        )
        return user
    return user.model_copy(update={
        "permitted_widgets": list(role.permitted_widgets),
        "role": role.name,
        "role_id": role.id,
    })


def authorized_widgets(role: Optional[Role], requested: Iterable[str]) -> List[str]:
    """Bound a requested widget list by what ``role`` permits.

    Keeps the order of ``requested``; an unknown role permits nothing.
    """
    if role is None:
        return []
    allowed = set(role.permitted_widgets)
    seen = set()
    result = []
    for widget in requested:
        if widget in allowed and widget not in seen:
            seen.add(widget)
            result.append(widget)
    return result


def has_capability(role: Optional[Role], capability: str) -> bool:
    if capability not in CAPABILITIES:
        raise ValueError(f"Unknown capability: {capability}")
    return bool(role is not None and getattr(role, capability))


def can_use_widget(user: User, widget: str) -> bool:
    return widget in user.permitted_widgets
