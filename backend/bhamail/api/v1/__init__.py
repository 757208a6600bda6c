"""API v1 routing configuration.

This module defines all v1 API routes.
"""

from fastapi import APIRouter

from bhamail.api.errors import ERROR_RESPONSES
from bhamail.api.v1 import admin, auth, users

router = APIRouter()

# Domain routers
router.include_router(auth.router, prefix="/auth", tags=["Auth"], responses=ERROR_RESPONSES)
router.include_router(users.router, prefix="/users", tags=["Users"], responses=ERROR_RESPONSES)
router.include_router(admin.router, prefix="/admin", tags=["Admin"], responses=ERROR_RESPONSES)


@router.get("/status", tags=["Status"])
async def api_status() -> dict[str, str]:
    """API v1 status check."""
    return {"status": "ok", "version": "v1"}
