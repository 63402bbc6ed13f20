"""Tests for pronunciation difficulty scoring and word selection."""

from linguaspark.core.word_difficulty import rank_words, score_word, select_challenging_words


def test_score_counts_length_and_patterns():
    scored = score_word("through")
    # 7 letters + th 5 + gh 4 + hr 4 + ough 5 + ou 3 + "thr" cluster 3
    assert scored.score == 31
    assert "/θ/ or /ð/" in scored.challenging_sounds
    assert "/ɔː/ or /ʌf/" in scored.challenging_sounds


def test_silent_letters_add_fixed_bonus():
    assert "silent k" in score_word("knee").challenging_sounds
    assert "silent b" in score_word("climb").challenging_sounds
    assert score_word("knit").score > score_word("nit").score


def test_length_score_is_capped():
    assert score_word("a" * 30).score == 12


def test_rank_words_dedups_case_insensitively_and_skips_empty():
    ranked = rank_words(["Thought", "thought", "", "  ", "cat"])
    assert [item.word for item in ranked] == ["Thought", "cat"]


def test_rank_words_is_stable_for_equal_scores():
    ranked = rank_words(["bat", "cat", "hat"])
    assert [item.word for item in ranked] == ["bat", "cat", "hat"]


def test_select_returns_requested_count_when_enough_words():
    words = ["through", "community", "garden", "climate", "rooftop", "harvest", "volunteer"]
    selected = select_challenging_words(words, 5)
    assert len(selected) == 5
    assert len({item.word for item in selected}) == 5


def test_select_prefers_new_sounds_after_guaranteed_slots():
    words = ["thither", "thatch", "thimble", "bob", "knob"]
    selected = [item.word for item in select_challenging_words(words, 4)]
    # thimble adds no new sound, so knob (silent k) is taken first and thimble only fills
    assert selected == ["thatch", "thither", "knob", "thimble"]


def test_select_handles_short_and_empty_input():
    assert select_challenging_words([], 5) == []
    assert len(select_challenging_words(["one", "two"], 5)) == 2
    assert select_challenging_words(["one"], 0) == []


def test_select_keeps_every_word_from_a_short_list():
    selected = select_challenging_words(["cat", "dog", "knight", "through", "strength"], 5)

    assert [(item.word, item.score) for item in selected[:2]] == [("through", 31), ("strength", 26)]
    assert {item.word for item in selected} == {"cat", "dog", "knight", "through", "strength"}
    knight = next(item for item in selected if item.word == "knight")
    assert {"silent k", "/g/ or /f/"} <= knight.challenging_sounds


def test_select_covers_more_sounds_than_top_scores():
    words = ["thatch", "thither", "thimble", "lather", "tithe", "mouse", "shoe"]

    top_by_score = rank_words(words)[:5]
    selected = select_challenging_words(words, 5)

    def sounds(items):
        return set().union(*(item.challenging_sounds for item in items))

    assert [item.word for item in top_by_score] == ["thatch", "thither", "thimble", "lather", "tithe"]
    assert [item.word for item in selected] == ["thatch", "thither", "thimble", "mouse", "shoe"]
    assert len(sounds(selected)) > len(sounds(top_by_score))
