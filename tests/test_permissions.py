import pytest

from errors import InvalidOperation
from permissions import authorized_widgets, find_role, has_capability, resolve_user
from repositories import ALL_WIDGETS, RoleRepository
from schemas import Role, User


def stored_user(user_repo, **fields):
    """Write a user document as-is, bypassing any role lookup."""
    doc = {"name": "Grace", "email": "grace@example.com", "passwordHash": "x", **fields}
    return user_repo.col.insert_one(doc)["id"]


def test_default_roles_are_seeded(db):
    roles = RoleRepository(db).get_all()
    assert [r.name for r in roles] == ["Admin", "User", "Private", "Visitor"]
    assert roles[0].permitted_widgets == ALL_WIDGETS


def test_role_rename_reaches_linked_users(user_repo):
    user_id = stored_user(user_repo, roleId=2, role="User", permittedWidgets=["Weather Details"])
    role = user_repo.roles.get(2)
    user_repo.roles.update(role.model_copy(update={"name": "Member", "permitted_widgets": ["Goal Tracking"]}))

    user = user_repo.get_by_id(user_id)
    assert user.role == "Member"
    assert user.permitted_widgets == ["Goal Tracking"]


def test_legacy_role_name_resolves_without_id(user_repo):
    user_id = stored_user(user_repo, role="private", permittedWidgets=[])
    user = user_repo.get_by_id(user_id)
    assert user.role_id == 3
    assert user.role == "Private"
    assert "Personal Notes" in user.permitted_widgets


def test_dangling_role_keeps_stored_values(user_repo):
    user_id = stored_user(user_repo, roleId=99, role="Ghost", permittedWidgets=["PDF Converter"])
    user = user_repo.get_by_id(user_id)
    assert user.role == "Ghost"
    assert user.permitted_widgets == ["PDF Converter"]


def test_find_role_prefers_id_over_name():
    roles = [Role(id=1, name="Admin"), Role(id=2, name="User")]
    assert find_role(roles, 2, "Admin").name == "User"
    assert find_role(roles, 42, "admin").id == 1
    assert find_role(roles, None, None) is None


def test_resolve_user_is_pure():
    user = User(name="Lin", email="lin@example.com", role="User", permitted_widgets=["Old"])
    resolved = resolve_user(user, [Role(id=2, name="User", permitted_widgets=["New"])])
    assert resolved.permitted_widgets == ["New"]
    assert user.permitted_widgets == ["Old"]


def test_authorized_widgets_bounded_by_role():
    role = Role(id=2, name="User", permitted_widgets=["Weather Details", "Goal Tracking"])
    requested = ["Goal Tracking", "PDF Converter", "Goal Tracking", "Weather Details"]
    assert authorized_widgets(role, requested) == ["Goal Tracking", "Weather Details"]
    assert authorized_widgets(None, requested) == []


def test_has_capability():
    role = Role(id=1, name="Admin", can_view_users=True)
    assert has_capability(role, "can_view_users")
    assert not has_capability(role, "can_delete_user")
    assert not has_capability(None, "can_view_users")
    with pytest.raises(ValueError):
        has_capability(role, "can_fly")


def test_role_names_are_unique(db):
    roles = RoleRepository(db)
    with pytest.raises(InvalidOperation):
        roles.add(Role(name="admin"))
    visitor = roles.get_by_name("Visitor")
    with pytest.raises(InvalidOperation):
        roles.update(visitor.model_copy(update={"name": "User"}))
