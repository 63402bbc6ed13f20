"""
Pronunciation difficulty scoring for vocabulary words
"""
import math
import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Tuple

# (pattern, label, weight); weight is multiplied by the number of matches
CONSONANT_PATTERNS: Tuple[Tuple[str, str, int], ...] = (
    (r"th", "/θ/ or /ð/", 5),
    (r"ch", "/tʃ/", 4),
    (r"sh", "/ʃ/", 4),
    (r"ph", "/f/", 3),
    (r"gh", "/g/ or /f/", 4),
    (r"ng", "/ŋ/", 3),
    (r"wh", "/w/ or /hw/", 3),
    (r"[^aeiou]r", "/r/", 4),
)

VOWEL_PATTERNS: Tuple[Tuple[str, str, int], ...] = (
    (r"ough|augh", "/ɔː/ or /ʌf/", 5),
    (r"eau", "/oʊ/", 4),
    (r"ou", "/aʊ/ or /uː/", 3),
    (r"oo", "/uː/ or /ʊ/", 3),
    (r"ea", "/iː/ or /e/", 3),
    (r"au|aw", "/ɔː/", 3),
    (r"oi|oy", "/ɔɪ/", 3),
)

# Fixed bonus, not multiplied
SILENT_PATTERNS: Tuple[Tuple[str, str, int], ...] = (
    (r"^kn", "silent k", 5),
    (r"^gn", "silent g", 5),
    (r"^wr", "silent w", 5),
    (r"mb$", "silent b", 4),
    (r"lm$", "silent l", 4),
    (r"lk$", "silent l", 4),
)

CLUSTER_PATTERN = (r"[^aeiou]{3,}", "consonant cluster", 3)

MAX_LENGTH_SCORE = 12


@dataclass(frozen=True)
class ScoredWord:
    word: str
    score: int
    challenging_sounds: FrozenSet[str]


def score_word(word: str) -> ScoredWord:
    """Score one word by articulatory difficulty and collect the sounds that make it hard."""
    lower = word.lower()
    score = min(len(word), MAX_LENGTH_SCORE)
    sounds = set()

    for pattern, label, weight in CONSONANT_PATTERNS + VOWEL_PATTERNS + (CLUSTER_PATTERN,):
        hits = len(re.findall(pattern, lower))
        if hits:
            score += weight * hits
            sounds.add(label)

    for pattern, label, weight in SILENT_PATTERNS:
        if re.search(pattern, lower):
            score += weight
            sounds.add(label)

    return ScoredWord(word=word, score=score, challenging_sounds=frozenset(sounds))


def rank_words(words: Iterable[str]) -> List[ScoredWord]:
    """Unique non-empty words, scored and stably sorted by descending score."""
    seen = set()
    scored = []
    for word in words:
        cleaned = (word or "").strip()
        if not cleaned or cleaned.lower() in seen:
            continue
        seen.add(cleaned.lower())
        scored.append(score_word(cleaned))
    return sorted(scored, key=lambda item: item.score, reverse=True)


def select_challenging_words(words: Iterable[str], count: int = 5) -> List[ScoredWord]:
    """
    Pick up to `count` words favouring coverage of distinct difficult sounds.

    The first pass takes a word when it brings a sound not yet covered, or
    unconditionally until half the slots are filled. The second pass fills the
    remaining slots by score.
    """
    ranked = rank_words(words)
    if count <= 0:
        return []

    guaranteed = math.ceil(count / 2)
    selected: List[ScoredWord] = []
    covered = set()

    for item in ranked:
        if len(selected) >= count:
            break
        if item.challenging_sounds - covered or len(selected) < guaranteed:
            selected.append(item)
            covered |= item.challenging_sounds

    if len(selected) < count:
        chosen = {item.word for item in selected}
        for item in ranked:
            if len(selected) >= count:
                break
            if item.word not in chosen:
                selected.append(item)
                chosen.add(item.word)

    return selected
