"""User self-service API router."""

from __future__ import annotations

from fastapi import APIRouter

from bhamail.api.deps import CurrentUser, UserServiceDep
from bhamail.schemas.base import MessageResponse
from bhamail.schemas.user import ChangePasswordRequest, ProfileUpdateRequest, UserProfile

router = APIRouter()


@router.put("/profile", response_model=UserProfile, summary="Update own profile")
async def update_profile(
    body: ProfileUpdateRequest, current_user: CurrentUser, users: UserServiceDep
) -> UserProfile:
    user = await users.update_profile(
        current_user.id, **body.model_dump(exclude_unset=True)
    )
    return UserProfile.model_validate(user)


@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change own password",
)
async def change_password(
    body: ChangePasswordRequest, current_user: CurrentUser, users: UserServiceDep
) -> MessageResponse:
    """Change the password and end every session of the caller."""
    await users.change_password(
        current_user.id, body.current_password, body.new_password
    )
    return MessageResponse(message="Password changed successfully")
