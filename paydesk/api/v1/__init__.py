"""API v1 routes (served under API_PREFIX, default /functions/v1)."""

from fastapi import APIRouter

from paydesk.api.v1 import auth, health, users

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
