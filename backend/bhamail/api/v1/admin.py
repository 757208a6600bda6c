"""Admin API router: user statistics, listing and account activation."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter

from bhamail.api.deps import AdminUser, Pagination, UserServiceDep
from bhamail.core.logging import get_logger
from bhamail.schemas.base import ErrorResponse, PaginatedResponse
from bhamail.schemas.user import UserProfile, UserStats

router = APIRouter(
    responses={403: {"model": ErrorResponse, "description": "Insufficient permissions"}}
)

logger = get_logger(__name__)


@router.get("/stats", response_model=UserStats, summary="User statistics")
async def user_stats(admin: AdminUser, users: UserServiceDep) -> UserStats:
    return UserStats.model_validate(await users.get_stats())


@router.get(
    "/users",
    response_model=PaginatedResponse[UserProfile],
    summary="List users",
)
async def list_users(
    admin: AdminUser, pagination: Pagination, users: UserServiceDep
) -> PaginatedResponse[UserProfile]:
    items, total = await users.list_users(skip=pagination.skip, limit=pagination.limit)
    return PaginatedResponse[UserProfile].create(
        items=[UserProfile.model_validate(user) for user in items],
        total=total,
        skip=pagination.skip,
        limit=pagination.limit,
    )


@router.post(
    "/users/{user_id}/deactivate",
    response_model=UserProfile,
    summary="Deactivate a user and end their sessions",
)
async def deactivate_user(
    user_id: UUID, admin: AdminUser, users: UserServiceDep
) -> UserProfile:
    user = await users.set_active(user_id, active=False, actor_id=admin.id)
    logger.info(
        "Admin deactivated user",
        extra={
            "context": {
                "action": "deactivate_user",
                "admin_id": str(admin.id),
                "user_id": str(user.id),
            }
        },
    )
    return UserProfile.model_validate(user)


@router.post(
    "/users/{user_id}/activate",
    response_model=UserProfile,
    summary="Reactivate a user",
)
async def activate_user(
    user_id: UUID, admin: AdminUser, users: UserServiceDep
) -> UserProfile:
    user = await users.set_active(user_id, active=True)
    logger.info(
        "Admin activated user",
        extra={
            "context": {
                "action": "activate_user",
                "admin_id": str(admin.id),
                "user_id": str(user.id),
            }
        },
    )
    return UserProfile.model_validate(user)
