"""
Admin status and library statistics
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from linguaspark.core.lesson_store import PublicLessonStore
from linguaspark.core.security import CurrentUser, get_current_user, is_admin, require_admin
from linguaspark.db import get_session

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/check-status")
async def check_status(
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    return {"isAdmin": await is_admin(session, user.id), "userId": user.id}


@router.get("/stats")
async def stats(
    admin: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    return {"success": True, "stats": await PublicLessonStore(session).stats(admin.id)}
