"""
Lesson persistence: tutor-owned lessons and the admin-curated public library
"""
import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from linguaspark.core.exceptions import ContentValidationError, NotFoundError, PersistenceError
from linguaspark.core.logging import get_logger, log_execution_time
from linguaspark.core.security import CurrentUser
from linguaspark.models import Lesson, PublicLesson, Tutor

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
RECENT_LESSONS = 10

MAIN_SECTIONS = ("vocabulary", "grammar", "reading", "discussion", "pronunciation")


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_PAGE_SIZE
    return min(max(int(limit), 1), MAX_PAGE_SIZE)


def parse_cursor(cursor: Optional[str]) -> Optional[datetime]:
    if not cursor:
        return None
    try:
        return datetime.fromisoformat(cursor.replace("Z", "+00:00"))
    except ValueError:
        raise ContentValidationError(f"Invalid cursor '{cursor}'", suggestions=["Use the nextCursor value from the previous page"])


def parse_id(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFoundError(f"Lesson {value} not found")


def validate_public_lesson_content(content: Dict[str, Any]) -> List[str]:
    """Errors for a public lesson body; empty when the lesson can be published."""
    errors = []
    if not str(content.get("title") or "").strip():
        errors.append("Lesson title is required")

    warmup = content.get("warmup")
    questions = warmup.get("questions") if isinstance(warmup, dict) else warmup
    if not questions:
        errors.append("Warmup section with at least one question is required")

    wrapup = content.get("wrapup")
    summary = wrapup.get("summary") if isinstance(wrapup, dict) else wrapup
    if not summary or (isinstance(summary, str) and not summary.strip()):
        errors.append("Wrapup section with summary is required")

    if not any(content.get(section) for section in MAIN_SECTIONS):
        errors.append(
            "At least one main content section (vocabulary, grammar, reading, discussion, or pronunciation) is required"
        )

    metadata = content.get("metadata")
    if not isinstance(metadata, dict):
        errors.append("Lesson metadata is required")
    else:
        if not metadata.get("cefr_level"):
            errors.append("CEFR level is required in metadata")
        if not metadata.get("lesson_type"):
            errors.append("Lesson type is required in metadata")
    return errors


class LessonStore:
    """Lessons owned by a single tutor"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def ensure_tutor(self, user: CurrentUser) -> Tutor:
        tutor = await self.session.get(Tutor, uuid.UUID(user.id))
        if tutor is None:
            tutor = Tutor(id=uuid.UUID(user.id), email=user.email or "")
            self.session.add(tutor)
            await self.session.flush()
            logger.info("Tutor profile created", tutor_id=user.id)
        return tutor

    @log_execution_time
    async def insert(
        self,
        user: CurrentUser,
        title: str,
        lesson_type: str,
        student_level: str,
        target_language: str,
        lesson_data: Dict[str, Any],
        source_url: Optional[str] = None,
        source_text: Optional[str] = None
    ) -> str:
        try:
            await self.ensure_tutor(user)
            lesson = Lesson(
                id=uuid.uuid4(),
                tutor_id=uuid.UUID(user.id),
                title=title,
                lesson_type=lesson_type,
                student_level=student_level,
                target_language=target_language,
                source_url=source_url,
                source_text=source_text,
                lesson_data=lesson_data,
            )
            self.session.add(lesson)
            await self.session.commit()
        except (SQLAlchemyError, OSError, ValueError) as e:
            await self.session.rollback()
            logger.error("Failed to save lesson", tutor_id=user.id, error=str(e))
            raise PersistenceError(f"Failed to save lesson: {e}")

        logger.info("Lesson saved", lesson_id=str(lesson.id), tutor_id=user.id)
        return str(lesson.id)

    async def list_for(self, user: CurrentUser, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        stmt = (
            select(Lesson)
            .where(Lesson.tutor_id == uuid.UUID(user.id))
            .order_by(Lesson.created_at.desc())
            .limit(clamp_limit(limit))
        )
        result = await self.session.execute(stmt)
        return [lesson.to_dict() for lesson in result.scalars().all()]

    async def get(self, user: CurrentUser, lesson_id: str) -> Lesson:
        lesson = await self.session.get(Lesson, parse_id(lesson_id))
        if lesson is None or str(lesson.tutor_id) != user.id:
            raise NotFoundError(f"Lesson {lesson_id} not found")
        return lesson

    async def delete(self, user: CurrentUser, lesson_id: str):
        stmt = (
            delete(Lesson)
            .where(Lesson.id == parse_id(lesson_id), Lesson.tutor_id == uuid.UUID(user.id))
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            await self.session.rollback()
            raise NotFoundError(f"Lesson {lesson_id} not found")
        await self.session.commit()
        logger.info("Lesson deleted", lesson_id=lesson_id, tutor_id=user.id)


class PublicLessonStore:
    """Public library; writes are only reached through admin-gated routes"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list(
        self,
        category: Optional[str] = None,
        cefr_level: Optional[str] = None,
        lesson_type: Optional[str] = None,
        search: Optional[str] = None,
        cursor: Optional[str] = None,
        limit: Optional[int] = None
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """Newest first; the cursor is the created_at of the last row of the previous page."""
        limit = clamp_limit(limit)
        stmt = select(PublicLesson).order_by(PublicLesson.created_at.desc()).limit(limit)

        before = parse_cursor(cursor)
        if before is not None:
            stmt = stmt.where(PublicLesson.created_at < before)
        if category:
            stmt = stmt.where(PublicLesson.category == category)
        if cefr_level:
            stmt = stmt.where(PublicLesson.cefr_level == cefr_level)
        if lesson_type:
            stmt = stmt.where(PublicLesson.lesson_type == lesson_type)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(or_(PublicLesson.title.ilike(pattern), PublicLesson.source_title.ilike(pattern)))

        result = await self.session.execute(stmt)
        lessons = [lesson.to_dict() for lesson in result.scalars().all()]
        next_cursor = lessons[-1]["created_at"] if len(lessons) == limit else None
        return lessons, next_cursor

    async def get(self, lesson_id: str) -> PublicLesson:
        lesson = await self.session.get(PublicLesson, parse_id(lesson_id))
        if lesson is None:
            raise NotFoundError(f"Public lesson {lesson_id} not found")
        return lesson

    async def create(self, content: Dict[str, Any], metadata: Dict[str, Any], creator_id: str) -> str:
        errors = validate_public_lesson_content(content)
        if errors:
            raise ContentValidationError("Lesson content validation failed", suggestions=errors)

        meta = content["metadata"]
        lesson = PublicLesson(
            id=uuid.uuid4(),
            creator_id=uuid.UUID(creator_id),
            title=content["title"],
            content=content,
            source_url=meta.get("source_url"),
            source_title=meta.get("source_title"),
            banner_image_url=meta.get("banner_image_url"),
            category=metadata["category"],
            cefr_level=meta["cefr_level"],
            lesson_type=meta["lesson_type"],
            tags=metadata.get("tags") or [],
            estimated_duration_minutes=metadata.get("estimated_duration_minutes"),
        )
        try:
            self.session.add(lesson)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to create public lesson", error=str(e))
            raise PersistenceError(f"Failed to create public lesson: {e}")

        logger.info("Public lesson created", lesson_id=str(lesson.id), creator_id=creator_id)
        return str(lesson.id)

    async def update(
        self,
        lesson_id: str,
        content: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> PublicLesson:
        lesson = await self.get(lesson_id)
        if content is not None:
            errors = validate_public_lesson_content(content)
            if errors:
                raise ContentValidationError("Lesson content validation failed", suggestions=errors)
            meta = content["metadata"]
            lesson.title = content["title"]
            lesson.content = content
            lesson.source_url = meta.get("source_url")
            lesson.source_title = meta.get("source_title")
            lesson.banner_image_url = meta.get("banner_image_url")
            lesson.cefr_level = meta["cefr_level"]
            lesson.lesson_type = meta["lesson_type"]
        if metadata is not None:
            lesson.category = metadata["category"]
            lesson.tags = metadata.get("tags") or []
            lesson.estimated_duration_minutes = metadata.get("estimated_duration_minutes")

        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceError(f"Failed to update public lesson: {e}")
        await self.session.refresh(lesson)
        return lesson

    async def delete(self, lesson_id: str):
        result = await self.session.execute(delete(PublicLesson).where(PublicLesson.id == parse_id(lesson_id)))
        if result.rowcount == 0:
            await self.session.rollback()
            raise NotFoundError(f"Public lesson {lesson_id} not found")
        await self.session.commit()
        logger.info("Public lesson deleted", lesson_id=lesson_id)

    async def stats(self, admin_id: str) -> Dict[str, Any]:
        total = await self.session.scalar(select(func.count()).select_from(PublicLesson))
        rows = (await self.session.execute(select(PublicLesson.category, PublicLesson.cefr_level))).all()
        recent = await self.session.execute(
            select(PublicLesson).order_by(PublicLesson.created_at.desc()).limit(RECENT_LESSONS)
        )
        mine = await self.session.scalar(
            select(func.count()).select_from(PublicLesson).where(PublicLesson.creator_id == uuid.UUID(admin_id))
        )
        return {
            "total_lessons": total or 0,
            "lessons_by_category": dict(Counter(category for category, _ in rows)),
            "lessons_by_level": dict(Counter(level for _, level in rows)),
            "recent_lessons": [lesson.to_dict() for lesson in recent.scalars().all()],
            "my_lessons_count": mine or 0,
        }
