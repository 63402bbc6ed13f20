"""
Progressive lesson generation: shared context first, then every section in dependency order
"""
import asyncio
import inspect
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import structlog

from linguaspark.config import settings
from linguaspark.core.content_validator import validate_content
from linguaspark.core.error_classifier import error_classifier
from linguaspark.core.exceptions import ContentValidationError, SectionDependencyError
from linguaspark.core.llm import LLMProvider, UsageMeter, get_llm_provider
from linguaspark.core.logging import metrics_logger
from linguaspark.core.quality_metrics import QualityMetricsTracker
from linguaspark.core.section_graph import DEFAULT_SECTION_GRAPH, SectionGraph
from linguaspark.core.sections.base import SectionGenerator, registry
from linguaspark.core.sections.dialogue import DialogueFillGapGenerator, DialoguePracticeGenerator
from linguaspark.core.sections.grammar import GrammarGenerator
from linguaspark.core.sections.policy import GenerationStrategy, SectionResult
from linguaspark.core.sections.pronunciation import PronunciationGenerator
from linguaspark.core.sections.questions import (
    ComprehensionGenerator,
    DiscussionGenerator,
    WarmupGenerator,
    WrapupGenerator,
)
from linguaspark.core.sections.vocabulary import ReadingGenerator, VocabularyGenerator
from linguaspark.core.shared_context import CEFRLevel, SharedContext, build_shared_context, fallback_context

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


def build_section_generators(llm: LLMProvider) -> Dict[str, SectionGenerator]:
    return registry([
        WarmupGenerator(llm),
        VocabularyGenerator(llm),
        ReadingGenerator(llm),
        ComprehensionGenerator(llm),
        DiscussionGenerator(llm),
        DialoguePracticeGenerator(llm),
        DialogueFillGapGenerator(llm),
        GrammarGenerator(llm),
        PronunciationGenerator(llm),
        WrapupGenerator(llm),
    ])


@dataclass
class GeneratedLesson:
    """Assembled lesson plus its quality report"""
    generation_id: str
    lesson_type: str
    student_level: str
    target_language: str
    title: str
    sections: Dict[str, Any]
    quality: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lessonType": self.lesson_type,
            "studentLevel": self.student_level,
            "targetLanguage": self.target_language,
            "title": self.title,
            "sections": self.sections,
            "quality": self.quality,
        }


def parse_level(student_level: str) -> CEFRLevel:
    try:
        return CEFRLevel(str(student_level).strip().upper())
    except ValueError:
        raise ContentValidationError(
            f"Unsupported student level '{student_level}'",
            suggestions=[f"Use one of: {', '.join(level.value for level in CEFRLevel)}"],
        )


class ProgressiveGenerator:
    """Runs one lesson generation. Create a new instance per request."""

    def __init__(self, llm: Optional[LLMProvider] = None, graph: SectionGraph = DEFAULT_SECTION_GRAPH):
        self.llm = llm or get_llm_provider()
        self.graph = graph
        self.generators = build_section_generators(self.llm)
        self.tracker = QualityMetricsTracker()

    async def generate_lesson(
        self,
        source_text: str,
        lesson_type: str,
        student_level: str,
        target_language: str,
        on_progress: Optional[ProgressCallback] = None
    ) -> GeneratedLesson:
        """Validate the input, build the shared context and run every section under the request deadline."""
        missing = [name for name, value in (
            ("sourceText", source_text),
            ("lessonType", lesson_type),
            ("studentLevel", student_level),
            ("targetLanguage", target_language),
        ) if not value or not str(value).strip()]
        if missing:
            raise ContentValidationError(f"Missing required fields: {', '.join(missing)}")

        level = parse_level(student_level)
        validation = validate_content(source_text)
        if not validation.valid:
            raise ContentValidationError(
                validation.errors[0],
                suggestions=validation.suggestions,
                word_count=validation.word_count,
            )

        generation_id = str(uuid.uuid4())
        start_time = time.monotonic()
        deadline = start_time + settings.generation_deadline_seconds
        metrics_logger.log_generation_start(generation_id, lesson_type, level.value, validation.word_count)

        try:
            context = await self._build_context(source_text, lesson_type, level, target_language, deadline)
            await self._emit(on_progress, {
                "type": "context_ready",
                "generation_id": generation_id,
                "title": context.lesson_title,
                "vocabulary": list(context.key_vocabulary),
                "themes": list(context.main_themes),
            })

            results: Dict[str, SectionResult] = {}
            order = self.graph.execution_order()
            for index, name in enumerate(order, start=1):
                missing_deps = [dep for dep in self.graph.dependencies_of(name) if dep not in results]
                if missing_deps:
                    raise SectionDependencyError(name, missing_deps)

                section_start = time.monotonic()
                result = await self._run_section(name, context, results, deadline)
                results[name] = result
                quality = self.tracker.record(result, time.monotonic() - section_start)

                await self._emit(on_progress, {
                    "type": "section_complete",
                    "section": name,
                    "content": result.content,
                    "strategy": result.generation_strategy.value,
                    "score": quality.score,
                    "completed": index,
                    "total": len(order),
                })

            lesson = GeneratedLesson(
                generation_id=generation_id,
                lesson_type=lesson_type,
                student_level=level.value,
                target_language=target_language,
                title=context.lesson_title,
                sections={name: results[name].content for name in order},
                quality=self.tracker.report(),
            )
        except asyncio.CancelledError:
            metrics_logger.log_generation_error(generation_id, "cancelled")
            raise
        except Exception as e:
            metrics_logger.log_generation_error(generation_id, str(e))
            raise

        metrics_logger.log_generation_complete(
            generation_id, time.monotonic() - start_time, self.tracker.fallback_count
        )
        await self._emit(on_progress, {"type": "lesson_complete", "lesson": lesson.to_dict()})
        return lesson

    async def _build_context(
        self,
        source_text: str,
        lesson_type: str,
        level: CEFRLevel,
        target_language: str,
        deadline: float
    ) -> SharedContext:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.warning("Generation deadline reached before shared context, using fallback")
            return fallback_context(source_text, lesson_type, level, target_language)

        try:
            return await asyncio.wait_for(
                build_shared_context(self.llm, source_text, lesson_type, level, target_language, usage=UsageMeter()),
                timeout=remaining,
            )
        except asyncio.TimeoutError as e:
            classified = error_classifier.classify_error(e, {"section": "context", "deadline": True})
            logger.warning("Shared context timed out, using fallback", error_id=classified.error_id)
            return fallback_context(source_text, lesson_type, level, target_language)

    async def _run_section(
        self,
        name: str,
        context: SharedContext,
        previous: Dict[str, SectionResult],
        deadline: float
    ) -> SectionResult:
        generator = self.generators[name]
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.warning("Generation deadline reached, using fallback", section=name)
            return self._fallback_result(generator, context, previous, ["generation deadline reached"], attempts=0)

        try:
            return await asyncio.wait_for(generator.run(context, previous, usage=UsageMeter()), timeout=remaining)
        except asyncio.TimeoutError as e:
            classified = error_classifier.classify_error(e, {"section": name, "deadline": True})
            return self._fallback_result(
                generator, context, previous, ["section timed out"], error_id=classified.error_id
            )
        except Exception as e:
            classified = error_classifier.classify_error(e, {"section": name})
            logger.error("Section generator failed unexpectedly, using fallback",
                         section=name, error=str(e), error_id=classified.error_id)
            return self._fallback_result(
                generator, context, previous, [f"unexpected error: {e}"], error_id=classified.error_id
            )

    @staticmethod
    def _fallback_result(generator, context, previous, issues, attempts=1, error_id=None) -> SectionResult:
        return SectionResult(
            section_name=generator.name,
            content=generator.fallback(context, previous),
            generation_strategy=GenerationStrategy.FALLBACK,
            attempts=attempts,
            issues=list(issues),
            error_id=error_id,
        )

    @staticmethod
    async def _emit(on_progress: Optional[ProgressCallback], event: Dict[str, Any]):
        if on_progress is None:
            return
        try:
            outcome = on_progress(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning("Progress callback failed", event_type=event.get("type"), error=str(e))
