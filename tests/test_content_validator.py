"""Tests for source text validation and the informational quality score."""

from linguaspark.core.content_validator import (
    check_content_quality,
    get_sentences,
    quality_suggestions,
    sanitize_content,
    validate_content,
)


def test_valid_content_passes(source_text):
    result = validate_content(source_text)
    assert result.valid
    assert result.errors == []
    assert result.word_count >= 50


def test_empty_content_is_rejected():
    result = validate_content("   \n\t ")
    assert not result.valid
    assert result.errors == ["No content provided"]
    assert result.word_count == 0


def test_short_content_reports_word_count():
    result = validate_content("Only a few words here. Not enough at all. Really short.")
    assert not result.valid
    assert result.word_count == 11
    assert "minimum 50" in result.errors[0]


def test_unstructured_content_is_rejected():
    text = " ".join(["word"] * 60)
    result = validate_content(text)
    assert not result.valid
    assert "lacks structure" in result.errors[0]
    assert result.word_count == 60


def test_sanitize_strips_symbols_and_collapses_whitespace():
    assert sanitize_content("Hello   <b>world</b>\n\ntest§!") == "Hello bworldb test!"


def test_sentences_keep_terminal_punctuation():
    assert get_sentences("One. Two! Three") == ["One.", "Two!", "Three"]


def test_quality_score_for_good_text(source_text):
    quality = check_content_quality(source_text)
    assert 0 <= quality.score <= 100
    assert quality.factors["has_complete_thoughts"] is True
    assert quality.factors["sentence_count"] == 6


def test_quality_suggestions_for_poor_text():
    quality = check_content_quality("go go go go go go go go")
    suggestions = quality_suggestions(quality)
    assert "Select longer content with more detailed information" in suggestions
    assert "Select content with more diverse vocabulary and topics" in suggestions
