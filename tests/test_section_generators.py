"""Tests for individual section generators and the shared section policy."""

import pytest

from linguaspark.core.exceptions import QuotaExceededError
from linguaspark.core.sections.base import STRICT_SUFFIX
from linguaspark.core.sections.dialogue import (
    DialogueFillGapGenerator,
    DialoguePracticeGenerator,
    parse_dialogue,
    validate_turns,
)
from linguaspark.core.sections.grammar import GrammarGenerator
from linguaspark.core.sections.policy import GenerationStrategy, ValidationResult, run_section_policy
from linguaspark.core.sections.pronunciation import PronunciationGenerator, parse_twister_response, parse_word_response
from linguaspark.core.sections.questions import (
    WARMUP_INSTRUCTION,
    ComprehensionGenerator,
    DiscussionGenerator,
    WarmupGenerator,
    WrapupGenerator,
)
from linguaspark.core.sections.vocabulary import READING_INSTRUCTION, ReadingGenerator, VocabularyGenerator
from linguaspark.core.shared_context import CEFRLevel, SharedContext

from tests.conftest import GRAMMAR_REPLY, FakeLLM, VOCABULARY


@pytest.fixture
def context(source_text):
    return SharedContext(
        lesson_title="Green Rooftops in the City",
        key_vocabulary=tuple(VOCABULARY),
        main_themes=("urban gardens", "community life"),
        content_summary="City neighbours grow food on rooftops.",
        difficulty_level=CEFRLevel.B1,
        target_language="english",
        lesson_type="discussion",
        source_text=source_text,
    )


ALL_GENERATORS = [
    WarmupGenerator,
    VocabularyGenerator,
    ReadingGenerator,
    ComprehensionGenerator,
    DiscussionGenerator,
    GrammarGenerator,
    PronunciationGenerator,
    DialoguePracticeGenerator,
    DialogueFillGapGenerator,
    WrapupGenerator,
]


@pytest.mark.anyio
@pytest.mark.parametrize("generator_cls", ALL_GENERATORS)
async def test_scripted_reply_validates_on_first_attempt(generator_cls, context):
    result = await generator_cls(FakeLLM()).run(context, {})
    assert result.generation_strategy == GenerationStrategy.FULL, result.issues
    assert result.attempts == 1
    assert result.tokens_used > 0


@pytest.mark.parametrize("generator_cls", ALL_GENERATORS)
def test_fallback_satisfies_validation(generator_cls, context):
    generator = generator_cls(FakeLLM())
    assert generator.validate(generator.fallback(context, {}), context).valid


@pytest.mark.parametrize("level", list(CEFRLevel))
def test_fallbacks_valid_at_every_level(level, context):
    from dataclasses import replace
    leveled = replace(context, difficulty_level=level)
    for generator_cls in ALL_GENERATORS:
        generator = generator_cls(FakeLLM())
        assert generator.validate(generator.fallback(leveled, {}), leveled).valid, generator.name


@pytest.mark.anyio
async def test_warmup_rejects_text_specific_questions(context):
    reply = "What happened in the text?\nDid Maria win in 2019?\nWhat did the article say about gardens?"
    llm = FakeLLM({"warmup": [reply, reply]})
    result = await WarmupGenerator(llm).run(context, {})

    assert result.generation_strategy == GenerationStrategy.FALLBACK
    assert result.content[0] == WARMUP_INSTRUCTION
    assert len(result.content) == 4
    assert STRICT_SUFFIX in llm.calls_for("warmup")[1]


@pytest.mark.anyio
async def test_second_attempt_success_is_repair(context):
    llm = FakeLLM({"grammar": ["this is not json", GRAMMAR_REPLY]})
    result = await GrammarGenerator(llm).run(context, {})

    assert result.generation_strategy == GenerationStrategy.REPAIR
    assert result.attempts == 2
    assert any("malformed output" in issue for issue in result.issues)


@pytest.mark.anyio
async def test_provider_error_is_classified_and_falls_back(context):
    llm = FakeLLM({"discussion": QuotaExceededError("quota exceeded")})
    result = await DiscussionGenerator(llm).run(context, {})

    assert result.used_fallback
    assert result.error_id.startswith("ERR_")
    assert len(llm.calls_for("discussion")) == 2


@pytest.mark.anyio
async def test_policy_propagates_unexpected_errors():
    async def attempt(number):
        raise RuntimeError("bug")

    with pytest.raises(RuntimeError):
        await run_section_policy("x", attempt, lambda c: ValidationResult(True), lambda: "fallback")


@pytest.mark.anyio
async def test_vocabulary_entries_trimmed_to_level_example_count(context):
    result = await VocabularyGenerator(FakeLLM()).run(context, {})
    entries = result.content[1:]
    assert result.content[0]["word"] == "INSTRUCTION"
    assert len(entries) == len(VOCABULARY)
    assert all(len(entry["examples"]) == 4 for entry in entries)
    assert entries[0]["word"] == "Garden"


@pytest.mark.anyio
async def test_reading_uses_generated_vocabulary(context):
    vocabulary = await VocabularyGenerator(FakeLLM()).run(context, {})
    llm = FakeLLM()
    result = await ReadingGenerator(llm).run(context, {"vocabulary": vocabulary})

    assert result.content.startswith(READING_INSTRUCTION)
    assert "garden, community, climate, neighbour, rooftop" in llm.calls_for("reading")[0]


def test_short_reading_fallback_is_padded(context):
    from dataclasses import replace
    short = replace(context, source_text="Gardens are nice.")
    generator = ReadingGenerator(FakeLLM())
    content = generator.fallback(short, {})
    assert generator.validate(content, short).valid


@pytest.mark.anyio
async def test_pronunciation_makes_one_call_per_selected_word(context):
    llm = FakeLLM()
    result = await PronunciationGenerator(llm).run(context, {})

    assert len(result.content["words"]) == 5
    assert len(llm.calls_for("pronunciation")) == 5
    assert len(llm.calls_for("twisters")) == 1
    assert len(result.content["tongueTwisters"]) == 2


def test_parse_word_response():
    entry = parse_word_response(
        "WORD: thought\nIPA: /θɔːt/\nDIFFICULT_SOUNDS: /θ/, /ɔː/\nTIP_1: Tongue out.\nPRACTICE: I thought so.",
        "fallback",
    )
    assert entry == {
        "word": "thought",
        "ipa": "/θɔːt/",
        "difficultSounds": ["/θ/", "/ɔː/"],
        "tips": ["Tongue out."],
        "practiceSentence": "I thought so.",
    }


def test_parse_twister_response_ignores_empty_items():
    twisters = parse_twister_response("TWISTER_1: She sells shells\nSOUNDS_1: sh, s\nTWISTER_2:  \n")
    assert twisters == [{"text": "She sells shells", "targetSounds": ["sh", "s"], "difficulty": "moderate"}]


def test_parse_dialogue_strips_numbering_and_markdown():
    turns, extras = parse_dialogue("1. **Student**: Hello there\n2) Tutor: Hi!\nANSWERS: a, b")
    assert turns == [{"character": "Student", "line": "Hello there"}, {"character": "Tutor", "line": "Hi!"}]
    assert extras == ["ANSWERS: a, b"]


def test_validate_turns_requires_student_first():
    turns = [{"character": "Tutor", "line": "Hi"}] + [{"character": "Student", "line": "Hi"}] * 11
    issues = validate_turns(turns)
    assert issues == ["turn 1 should be spoken by Student"]


@pytest.mark.anyio
async def test_fill_gap_marks_gaps_and_answers(context):
    result = await DialogueFillGapGenerator(FakeLLM()).run(context, {})
    gaps = [turn for turn in result.content["dialogue"] if turn.get("isGap")]
    assert len(gaps) == 3
    assert result.content["answers"] == ["grow", "neighbour", "tomatoes"]


@pytest.mark.anyio
async def test_fill_gap_answer_mismatch_fails_validation(context):
    from tests.conftest import FILL_GAP_REPLY
    reply = FILL_GAP_REPLY.replace("ANSWERS: grow, neighbour, tomatoes", "ANSWERS: grow")
    result = await DialogueFillGapGenerator(FakeLLM({"dialogueFillGap": reply})).run(context, {})
    assert result.used_fallback
    assert any("3 gaps but 1 answers" in issue for issue in result.issues)


@pytest.mark.anyio
async def test_fill_gap_without_gaps_retries_then_falls_back(context):
    from tests.conftest import DIALOGUE_LINES
    reply = "\n".join(f"{who}: {line}" for who, line in DIALOGUE_LINES) + "\nANSWERS: grow"
    llm = FakeLLM({"dialogueFillGap": reply})
    result = await DialogueFillGapGenerator(llm).run(context, {})

    assert result.attempts == 2
    assert len(llm.calls_for("dialogueFillGap")) == 2
    assert result.generation_strategy == GenerationStrategy.FALLBACK
    assert any("no gaps" in issue for issue in result.issues)
    gaps = sum(1 for turn in result.content["dialogue"] if turn.get("isGap"))
    assert gaps >= 1
    assert len(result.content["answers"]) == gaps


@pytest.mark.anyio
async def test_practice_defaults_follow_ups_when_missing(context):
    from tests.conftest import DIALOGUE_LINES
    reply = "\n".join(f"{who}: {line}" for who, line in DIALOGUE_LINES)
    result = await DialoguePracticeGenerator(FakeLLM({"dialoguePractice": reply})).run(context, {})
    assert result.generation_strategy == GenerationStrategy.FULL
    assert len(result.content["followUpQuestions"]) == 3
