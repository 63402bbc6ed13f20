"""
Public lesson library: open reads, admin-only writes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from linguaspark.core.exceptions import ContentValidationError
from linguaspark.core.lesson_store import PublicLessonStore
from linguaspark.core.logging import get_logger
from linguaspark.core.security import CurrentUser, require_admin
from linguaspark.db import get_session
from linguaspark.schemas import (
    CEFR_LEVELS,
    LESSON_CATEGORIES,
    LESSON_TYPES,
    PublicLessonCreateRequest,
    PublicLessonListResponse,
    PublicLessonUpdateRequest,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/public-lessons", tags=["public-lessons"])

NO_CACHE = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _check_choice(name: str, value: Optional[str], allowed) -> Optional[str]:
    if value and value not in allowed:
        raise ContentValidationError(f"Invalid {name} '{value}'", suggestions=[f"Use one of: {', '.join(allowed)}"])
    return value or None


@router.get("", response_model=PublicLessonListResponse)
async def list_public_lessons(
    response: Response,
    category: Optional[str] = None,
    cefr_level: Optional[str] = None,
    lesson_type: Optional[str] = None,
    search: Optional[str] = None,
    cursor: Optional[str] = None,
    limit: int = Query(default=20),
    session: AsyncSession = Depends(get_session)
):
    """Newest first with cursor pagination; limit is clamped to 1-100."""
    lessons, next_cursor = await PublicLessonStore(session).list(
        category=_check_choice("category", category, LESSON_CATEGORIES),
        cefr_level=_check_choice("cefr_level", cefr_level, CEFR_LEVELS),
        lesson_type=_check_choice("lesson_type", lesson_type, LESSON_TYPES),
        search=search,
        cursor=cursor,
        limit=limit,
    )
    response.headers.update(NO_CACHE)
    return PublicLessonListResponse(lessons=lessons, next_cursor=next_cursor)


@router.get("/{lesson_id}")
async def get_public_lesson(lesson_id: str, session: AsyncSession = Depends(get_session)):
    lesson = await PublicLessonStore(session).get(lesson_id)
    return {"success": True, "lesson": lesson.to_dict()}


@router.post("")
async def create_public_lesson(
    req: PublicLessonCreateRequest,
    admin: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    lesson_id = await PublicLessonStore(session).create(req.lesson, req.metadata.model_dump(), admin.id)
    return {"success": True, "id": lesson_id}


@router.put("/{lesson_id}")
async def update_public_lesson(
    lesson_id: str,
    req: PublicLessonUpdateRequest,
    admin: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    lesson = await PublicLessonStore(session).update(
        lesson_id,
        content=req.lesson,
        metadata=req.metadata.model_dump() if req.metadata else None,
    )
    logger.info("Public lesson updated", lesson_id=lesson_id, admin_id=admin.id)
    return {"success": True, "lesson": lesson.to_dict()}


@router.delete("/{lesson_id}")
async def delete_public_lesson(
    lesson_id: str,
    admin: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    await PublicLessonStore(session).delete(lesson_id)
    return {"success": True}
