"""
Lesson generation, validation and owner-scoped lesson routes
"""
import asyncio
import json
import re
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from linguaspark.core.content_validator import check_content_quality, quality_suggestions, validate_content
from linguaspark.core.error_classifier import error_classifier
from linguaspark.core.exceptions import LinguaSparkException, PersistenceError
from linguaspark.core.exporter import render_lesson_markdown
from linguaspark.core.lesson_store import LessonStore
from linguaspark.core.logging import get_logger
from linguaspark.core.progressive_generator import GeneratedLesson, ProgressiveGenerator
from linguaspark.core.security import CurrentUser, get_current_user
from linguaspark.db import async_session, get_session
from linguaspark.schemas import (
    GenerateLessonRequest,
    GenerateLessonResponse,
    SaveLessonRequest,
    SaveLessonResponse,
    ValidateContentRequest,
    ValidateContentResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["lessons"])


def get_generator() -> ProgressiveGenerator:
    """One generator per request; overridden in tests"""
    return ProgressiveGenerator()


def get_session_factory():
    return async_session


async def save_generated_lesson(
    session: AsyncSession,
    user: CurrentUser,
    req: GenerateLessonRequest,
    lesson: GeneratedLesson
) -> Optional[str]:
    """Persist a generated lesson; None when the insert fails."""
    try:
        return await LessonStore(session).insert(
            user,
            title=lesson.title,
            lesson_type=lesson.lesson_type,
            student_level=lesson.student_level,
            target_language=lesson.target_language,
            lesson_data=lesson.to_dict(),
            source_url=req.source_url,
            source_text=req.source_text,
        )
    except PersistenceError as e:
        logger.error("Generated lesson could not be saved", generation_id=lesson.generation_id, error=e.message)
        return None


async def _generate(generator: ProgressiveGenerator, req: GenerateLessonRequest, on_progress=None) -> GeneratedLesson:
    return await generator.generate_lesson(
        source_text=req.source_text or "",
        lesson_type=req.lesson_type or "",
        student_level=req.student_level or "",
        target_language=req.target_language or "",
        on_progress=on_progress,
    )


@router.post("/generate-lesson", response_model=GenerateLessonResponse)
async def generate_lesson(
    req: GenerateLessonRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    generator: ProgressiveGenerator = Depends(get_generator)
):
    """Generate a full lesson and save it for the caller."""
    logger.info("Lesson generation request received",
                user_id=user.id,
                lesson_type=req.lesson_type,
                student_level=req.student_level)

    lesson = await _generate(generator, req)
    lesson_id = await save_generated_lesson(session, user, req, lesson)
    return GenerateLessonResponse(
        lesson=lesson.to_dict(),
        id=lesson_id,
        saved=lesson_id is not None,
        quality=lesson.quality,
    )


def sse_message(data: Dict[str, Any]) -> str:
    return f"data: {json.dumps(data, ensure_ascii=False)}\n\n"


def stream_error_event(exc: BaseException) -> Dict[str, Any]:
    if isinstance(exc, LinguaSparkException):
        return {"type": "error", "error": exc.message, "code": exc.error_type.value, "message": exc.message}

    classified = error_classifier.classify_error(exc, {"route": "generate-lesson-stream"})
    user_message = error_classifier.generate_user_message(classified)
    return {
        "type": "error",
        "error": user_message["title"],
        "code": classified.type.value,
        "message": user_message["message"],
        "error_id": classified.error_id,
    }


async def relay_progress(
    queue: "asyncio.Queue[Dict[str, Any]]",
    task: asyncio.Task
) -> AsyncIterator[Dict[str, Any]]:
    """Queued progress events until `task` finishes, then whatever is left in the queue."""
    getter: Optional[asyncio.Task] = None
    try:
        while True:
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
            if getter in done:
                yield getter.result()
                continue
            getter.cancel()
            while not queue.empty():
                yield queue.get_nowait()
            return
    finally:
        if getter is not None and not getter.done():
            getter.cancel()


@router.post("/generate-lesson-stream")
async def generate_lesson_stream(
    req: GenerateLessonRequest,
    user: CurrentUser = Depends(get_current_user),
    generator: ProgressiveGenerator = Depends(get_generator),
    session_factory=Depends(get_session_factory)
):
    """Server-Sent Events: one event per finished stage, then `complete` or `error`."""
    queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()

    async def run() -> Dict[str, Any]:
        lesson = await _generate(generator, req, on_progress=queue.put)
        async with session_factory() as session:
            lesson_id = await save_generated_lesson(session, user, req, lesson)
        return {
            "type": "complete",
            "lesson": lesson.to_dict(),
            "id": lesson_id,
            "saved": lesson_id is not None,
            "quality": lesson.quality,
        }

    async def events() -> AsyncIterator[str]:
        task = asyncio.create_task(run())
        progress = relay_progress(queue, task)
        try:
            async for event in progress:
                yield sse_message(event)

            try:
                yield sse_message(task.result())
            except Exception as e:
                logger.warning("Streaming generation failed", error=str(e), error_type=type(e).__name__)
                yield sse_message(stream_error_event(e))
        finally:
            await progress.aclose()
            if not task.done():
                task.cancel()
                logger.info("Client disconnected, generation cancelled", user_id=user.id)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/validate-content", response_model=ValidateContentResponse)
async def validate_content_route(req: ValidateContentRequest):
    """Hard validation gates plus an informational quality score."""
    result = validate_content(req.text)
    quality = check_content_quality(req.text)
    suggestions = list(result.suggestions)
    if result.valid:
        suggestions.extend(quality_suggestions(quality))
    return ValidateContentResponse(
        valid=result.valid,
        errors=result.errors,
        suggestions=suggestions,
        word_count=result.word_count,
        quality=quality.to_dict(),
    )


@router.post("/save-lesson", response_model=SaveLessonResponse)
async def save_lesson(
    req: SaveLessonRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    lesson_id = await LessonStore(session).insert(
        user,
        title=req.title,
        lesson_type=req.lesson_type,
        student_level=req.student_level,
        target_language=req.target_language,
        lesson_data=req.lesson_data,
        source_url=req.source_url,
        source_text=req.source_text,
    )
    return SaveLessonResponse(id=lesson_id)


@router.get("/get-lessons")
async def get_lessons(
    limit: int = Query(default=20),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    lessons = await LessonStore(session).list_for(user, limit)
    return {"lessons": lessons}


@router.get("/get-lesson/{lesson_id}")
async def get_lesson(
    lesson_id: str,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    lesson = await LessonStore(session).get(user, lesson_id)
    return {"lesson": lesson.to_dict()}


@router.delete("/delete-lesson/{lesson_id}")
async def delete_lesson(
    lesson_id: str,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    await LessonStore(session).delete(user, lesson_id)
    return {"success": True}


@router.get("/export-lesson/{lesson_id}")
async def export_lesson(
    lesson_id: str,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session)
):
    """Markdown download of a saved lesson."""
    lesson = await LessonStore(session).get(user, lesson_id)
    markdown = render_lesson_markdown(lesson.lesson_data or {}, title=lesson.title)
    filename = re.sub(r"[^\w\- ]", "", lesson.title).strip().replace(" ", "_")[:50] or "lesson"
    return Response(
        content=markdown,
        media_type="text/markdown; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}.md"'},
    )
