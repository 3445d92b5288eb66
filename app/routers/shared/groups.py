from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status

from app.middlewares.auth_middleware import require_admin, require_sender
from app.services.group_service import GroupService, get_group_service
from app.schemas.group_schemas import CreateGroupRequest, UpdateGroupRequest
from app.utils.responses import ResponseBuilder
from app.utils.error_handlers import handle_service_error

groups_router = APIRouter()


@groups_router.get(
    "",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="List groups with member counts",
    dependencies=[Depends(require_sender)],
)
async def list_groups(
    request: Request,
    search: Optional[str] = Query(default=None, description="Name filter"),
    group_service: GroupService = Depends(get_group_service),
):
    groups = await group_service.list_groups(search)
    return ResponseBuilder.success(
        request=request,
        data=[g.model_dump(by_alias=True) for g in groups],
        message=f"Retrieved {len(groups)} group{'s' if len(groups) != 1 else ''}",
    )


@groups_router.post(
    "",
    response_model=None,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new group",
    dependencies=[Depends(require_admin)],
)
async def create_group(
    request: Request,
    group_data: CreateGroupRequest,
    group_service: GroupService = Depends(get_group_service),
):
    try:
        group = await group_service.create_group(group_data)
        return ResponseBuilder.success(
            request=request,
            data=group.model_dump(by_alias=True),
            message="Group created successfully",
            status_code=status.HTTP_201_CREATED,
        )
    except ValueError as e:
        return handle_service_error(request, e)


@groups_router.patch(
    "/{group_id}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Update a group and its membership",
    dependencies=[Depends(require_admin)],
)
async def update_group(
    request: Request,
    group_data: UpdateGroupRequest,
    group_id: Annotated[str, Path(description="Group ID to update")],
    group_service: GroupService = Depends(get_group_service),
):
    try:
        group = await group_service.update_group(group_id, group_data)
        return ResponseBuilder.success(
            request=request,
            data=group.model_dump(by_alias=True),
            message="Group updated successfully",
        )
    except ValueError as e:
        return handle_service_error(request, e)


@groups_router.delete(
    "/{group_id}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Delete a group",
    description="The default group cannot be deleted.",
    dependencies=[Depends(require_admin)],
)
async def delete_group(
    request: Request,
    group_id: Annotated[str, Path(description="Group ID to delete")],
    group_service: GroupService = Depends(get_group_service),
):
    try:
        await group_service.delete_group(group_id)
        return ResponseBuilder.success(
            request=request, data={"id": group_id}, message="Group deleted successfully"
        )
    except ValueError as e:
        return handle_service_error(request, e)
