from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from docvault.deps import get_user_service
from docvault.enums import UserRole
from docvault.pagination import PageParams, page_params
from docvault.schemas import ChangePasswordRequest, CreateUserRequest, UpdateUserRequest
from docvault.security import Actor, CurrentActor, require_roles
from docvault.serializers import user_detail
from docvault.services.users import UserService

router = APIRouter(prefix="/users", tags=["users"])

UserServiceDep = Annotated[UserService, Depends(get_user_service)]
Admin = Annotated[Actor, Depends(require_roles(UserRole.ADMIN))]
Staff = Annotated[Actor, Depends(require_roles(UserRole.ADMIN, UserRole.EDITOR))]


@router.post("", status_code=201)
def create_user(request: CreateUserRequest, _: Admin, service: UserServiceDep) -> dict[str, Any]:
    return user_detail(service.create(**request.model_dump()))


@router.get("")
def list_users(
    _: Staff,
    service: UserServiceDep,
    params: Annotated[PageParams, Depends(page_params)],
    search: str | None = Query(default=None, max_length=100),
) -> dict[str, Any]:
    return service.list(params, search=search).to_dict(user_detail)


@router.get("/stats")
def user_stats(_: Admin, service: UserServiceDep) -> dict[str, Any]:
    return service.stats()


@router.get("/{user_id}")
def get_user(user_id: UUID, _: CurrentActor, service: UserServiceDep) -> dict[str, Any]:
    return user_detail(service.get(str(user_id)))


@router.patch("/{user_id}")
def update_user(
    user_id: UUID,
    request: UpdateUserRequest,
    actor: CurrentActor,
    service: UserServiceDep,
) -> dict[str, Any]:
    changes = request.model_dump(exclude_unset=True)
    return user_detail(service.update(str(user_id), changes, actor))


@router.post("/{user_id}/change-password")
def change_password(
    user_id: UUID,
    request: ChangePasswordRequest,
    actor: CurrentActor,
    service: UserServiceDep,
) -> dict[str, str]:
    service.change_password(
        str(user_id),
        current_password=request.current_password,
        new_password=request.new_password,
        actor=actor,
    )
    return {"message": "Password changed successfully"}


@router.delete("/{user_id}")
def delete_user(user_id: UUID, actor: Admin, service: UserServiceDep) -> dict[str, str]:
    service.remove(str(user_id), actor)
    return {"id": str(user_id), "status": "deleted"}
