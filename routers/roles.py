from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from dependencies import get_role_repo, get_widget_repo
from errors import InvalidOperation
from repositories import RoleRepository, WidgetRepository
from schemas import Role, RoleIn, RoleInfo, RolePermissionsUpdate, RolePermissionsView, User, Widget
from security import get_current_user, require_capability

router = APIRouter(tags=["roles"])


def _check_widgets(requested: List[str], known: List[str]) -> None:
    unknown = [w for w in requested if w not in known]
    if unknown:
        raise InvalidOperation(f"Unknown widgets: {', '.join(unknown)}", field="permittedWidgets")


@router.get("/widgets", response_model=List[Widget])
def list_widgets(
    widgets: WidgetRepository = Depends(get_widget_repo),
    user: User = Depends(get_current_user),
):
    return widgets.get_all()


@router.get("/roles", response_model=List[Role])
def list_roles(
    roles: RoleRepository = Depends(get_role_repo),
    user: User = Depends(require_capability("can_access_settings")),
):
    return roles.get_all()


@router.get("/roles/permissions", response_model=RolePermissionsView)
def role_permissions(
    roles: RoleRepository = Depends(get_role_repo),
    widgets: WidgetRepository = Depends(get_widget_repo),
    user: User = Depends(require_capability("can_access_settings")),
):
    return RolePermissionsView(
        roles=[RoleInfo(role_id=r.id, role_name=r.name, permitted_widgets=r.permitted_widgets)
               for r in roles.get_all()],
        all_available_widgets=widgets.names(),
    )


@router.post("/roles", response_model=Role, status_code=status.HTTP_201_CREATED)
def create_role(
    body: RoleIn,
    roles: RoleRepository = Depends(get_role_repo),
    widgets: WidgetRepository = Depends(get_widget_repo),
    user: User = Depends(require_capability("can_access_settings")),
):
    _check_widgets(body.permitted_widgets, widgets.names())
    return roles.add(Role(**body.model_dump()))


@router.put("/roles/{role_id}/permissions", response_model=Role)
def update_role_permissions(
    role_id: int,
    body: RolePermissionsUpdate,
    roles: RoleRepository = Depends(get_role_repo),
    widgets: WidgetRepository = Depends(get_widget_repo),
    user: User = Depends(require_capability("can_access_settings")),
):
    role = roles.get(role_id)
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")
    _check_widgets(body.permitted_widgets, widgets.names())
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    return roles.update(role.model_copy(update=changes))
