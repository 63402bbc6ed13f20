"""Tests for end-to-end lesson generation with a scripted model."""

import time

import pytest

from linguaspark.config import settings
from linguaspark.core.exceptions import ContentValidationError, QuotaExceededError, SectionDependencyError
from linguaspark.core.progressive_generator import ProgressiveGenerator, parse_level
from linguaspark.core.section_graph import LESSON_SECTIONS
from linguaspark.core.shared_context import CEFRLevel, fallback_title

from tests.conftest import FakeLLM


@pytest.mark.anyio
async def test_full_lesson_from_scripted_model(source_text):
    lesson = await ProgressiveGenerator(FakeLLM()).generate_lesson(source_text, "discussion", "b1", "english")

    assert lesson.title == "Green Rooftops in the City"
    assert lesson.student_level == "B1"
    assert list(lesson.sections) == list(LESSON_SECTIONS)
    assert lesson.quality["overall_score"] == 100
    assert lesson.quality["fallback_count"] == 0
    assert lesson.quality["total_tokens"] > 0

    payload = lesson.to_dict()
    assert payload["lessonType"] == "discussion"
    assert payload["studentLevel"] == "B1"


@pytest.mark.anyio
async def test_progress_events_in_order(source_text):
    events = []
    await ProgressiveGenerator(FakeLLM()).generate_lesson(
        source_text, "discussion", "B1", "english", on_progress=events.append
    )

    types = [event["type"] for event in events]
    assert types == ["context_ready"] + ["section_complete"] * len(LESSON_SECTIONS) + ["lesson_complete"]
    assert events[0]["title"] == "Green Rooftops in the City"
    completes = events[1:-1]
    assert [event["section"] for event in completes] == list(LESSON_SECTIONS)
    assert [event["completed"] for event in completes] == list(range(1, len(LESSON_SECTIONS) + 1))
    assert all(event["total"] == len(LESSON_SECTIONS) for event in completes)
    assert events[-1]["lesson"]["title"] == "Green Rooftops in the City"


@pytest.mark.anyio
async def test_async_progress_callback_is_awaited(source_text):
    seen = []

    async def on_progress(event):
        seen.append(event["type"])

    await ProgressiveGenerator(FakeLLM()).generate_lesson(source_text, "discussion", "B1", "english", on_progress)
    assert seen[-1] == "lesson_complete"


@pytest.mark.anyio
async def test_failing_progress_callback_does_not_stop_generation(source_text):
    def on_progress(event):
        raise RuntimeError("client gone")

    lesson = await ProgressiveGenerator(FakeLLM()).generate_lesson(
        source_text, "discussion", "B1", "english", on_progress
    )
    assert len(lesson.sections) == len(LESSON_SECTIONS)


@pytest.mark.anyio
async def test_invalid_level_is_rejected(source_text):
    llm = FakeLLM()
    with pytest.raises(ContentValidationError) as exc:
        await ProgressiveGenerator(llm).generate_lesson(source_text, "discussion", "D4", "english")
    assert "D4" in exc.value.message
    assert llm.calls == []


@pytest.mark.anyio
async def test_short_text_is_rejected_before_any_model_call():
    llm = FakeLLM()
    with pytest.raises(ContentValidationError) as exc:
        await ProgressiveGenerator(llm).generate_lesson("Too short. Really.", "discussion", "B1", "english")
    assert exc.value.details["word_count"] == 3
    assert llm.calls == []


@pytest.mark.anyio
async def test_missing_fields_are_listed(source_text):
    with pytest.raises(ContentValidationError) as exc:
        await ProgressiveGenerator(FakeLLM()).generate_lesson(source_text, "", "B1", "  ")
    assert "lessonType" in exc.value.message
    assert "targetLanguage" in exc.value.message


@pytest.mark.anyio
async def test_provider_error_in_one_section_degrades_only_that_section(source_text):
    llm = FakeLLM({"warmup": QuotaExceededError("quota exceeded")})
    lesson = await ProgressiveGenerator(llm).generate_lesson(source_text, "discussion", "B1", "english")

    by_section = {s["section"]: s for s in lesson.quality["sections"]}
    assert by_section["warmup"]["strategy"] == "fallback"
    assert by_section["warmup"]["error_id"].startswith("ERR_")
    assert by_section["vocabulary"]["strategy"] == "full"
    assert lesson.quality["fallback_count"] == 1
    assert lesson.quality["overall_score"] == round((40 + 100 * 9) / 10)


@pytest.mark.anyio
async def test_unexpected_generator_error_becomes_fallback(source_text):
    llm = FakeLLM({"discussion": RuntimeError("provider SDK bug")})
    lesson = await ProgressiveGenerator(llm).generate_lesson(source_text, "discussion", "B1", "english")

    by_section = {s["section"]: s for s in lesson.quality["sections"]}
    assert by_section["discussion"]["strategy"] == "fallback"
    assert by_section["discussion"]["error_id"]
    assert len(lesson.sections["discussion"]) == 6


@pytest.mark.anyio
async def test_expired_deadline_falls_back_without_model_calls(source_text, monkeypatch):
    monkeypatch.setattr(settings, "generation_deadline_seconds", 0)
    llm = FakeLLM()
    lesson = await ProgressiveGenerator(llm).generate_lesson(source_text, "discussion", "A2", "english")

    assert lesson.quality["fallback_count"] == len(LESSON_SECTIONS)
    assert all(s["attempts"] == 0 for s in lesson.quality["sections"])
    assert lesson.title == fallback_title(source_text, "discussion", CEFRLevel.A2)
    assert llm.calls == []


@pytest.mark.anyio
async def test_slow_context_reply_is_bounded_by_deadline(source_text, monkeypatch):
    monkeypatch.setattr(settings, "generation_deadline_seconds", 0.3)
    llm = FakeLLM(delays={"context": 5})
    events = []

    started = time.monotonic()
    lesson = await ProgressiveGenerator(llm).generate_lesson(
        source_text, "discussion", "B1", "english", on_progress=events.append
    )

    assert time.monotonic() - started < 2
    assert lesson.title == fallback_title(source_text, "discussion", CEFRLevel.B1)
    assert events[0]["type"] == "context_ready"
    assert list(lesson.sections) == list(LESSON_SECTIONS)
    assert lesson.quality["fallback_count"] == len(LESSON_SECTIONS)
    assert all(s["attempts"] == 0 for s in lesson.quality["sections"])
    assert [kind for kind, _ in llm.calls] == ["context"]


@pytest.mark.anyio
async def test_slow_section_times_out_into_fallback(source_text, monkeypatch):
    monkeypatch.setattr(settings, "generation_deadline_seconds", 0.5)
    llm = FakeLLM(delays={"grammar": 5})

    started = time.monotonic()
    lesson = await ProgressiveGenerator(llm).generate_lesson(source_text, "discussion", "B1", "english")

    assert time.monotonic() - started < 2
    assert list(lesson.sections) == list(LESSON_SECTIONS)
    assert lesson.title == "Green Rooftops in the City"
    by_section = {s["section"]: s for s in lesson.quality["sections"]}
    assert by_section["warmup"]["strategy"] == "full"
    assert by_section["grammar"]["strategy"] == "fallback"
    assert by_section["grammar"]["error_id"].startswith("ERR_")
    assert lesson.sections["grammar"]
    for name in ("pronunciation", "wrapup"):
        assert by_section[name]["strategy"] == "fallback"
        assert by_section[name]["attempts"] == 0


@pytest.mark.anyio
async def test_missing_dependency_is_a_configuration_error(source_text):
    class BrokenGraph:
        def execution_order(self):
            return ["reading"]

        def dependencies_of(self, name):
            return frozenset({"vocabulary"})

    generator = ProgressiveGenerator(FakeLLM(), graph=BrokenGraph())
    with pytest.raises(SectionDependencyError) as exc:
        await generator.generate_lesson(source_text, "discussion", "B1", "english")
    assert exc.value.details["missing"] == ["vocabulary"]


def test_parse_level_accepts_any_case():
    assert parse_level(" c1 ") == CEFRLevel.C1
