"""
Shared lesson context: built once per request from a single model call,
then handed read-only to every section generator.
"""
import re
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import structlog

from linguaspark.core.exceptions import AIProviderError
from linguaspark.core.llm import LLMProvider, UsageMeter, coerce_to_json
from linguaspark.core.logging import log_execution_time

logger = structlog.get_logger(__name__)


class CEFRLevel(str, Enum):
    A1 = "A1"
    A2 = "A2"
    B1 = "B1"
    B2 = "B2"
    C1 = "C1"


LESSON_TYPE_NAMES = {
    "discussion": "Discussion",
    "grammar": "Grammar Focus",
    "travel": "Travel & Tourism",
    "business": "Business English",
    "pronunciation": "Pronunciation Practice",
}

TOPIC_TITLES = (
    ("ryder cup", "Ryder Cup Golf"),
    ("golf", "Golf Competition"),
    ("competition", "Sports Competition"),
    ("travel", "Travel & Tourism"),
    ("business", "Business Communication"),
    ("technology", "Technology Today"),
    ("environment", "Environmental Issues"),
    ("health", "Health & Wellness"),
    ("education", "Education System"),
    ("culture", "Cultural Exchange"),
    ("food", "Food & Cuisine"),
    ("sports", "Sports & Recreation"),
    ("music", "Music & Arts"),
    ("history", "Historical Events"),
    ("science", "Science & Discovery"),
)

THEME_KEYWORDS = (
    ("sports", ("sport", "game", "team")),
    ("business", ("business", "company", "work")),
    ("travel", ("travel", "country", "culture")),
    ("technology", ("technology", "computer", "internet")),
    ("health", ("health", "medical", "doctor")),
)

DEFAULT_THEMES = ("general topic", "communication", "daily life")
GENERIC_VOCABULARY = ("communication", "important", "different", "example", "information", "situation")

STOPWORDS = frozenset("""
    about above after again against also among another because been before being below between both
    could does doing down during each even every from further have having here hers herself himself
    into itself just like many more most much must myself never only other ours ourselves over same
    should some such than that their theirs them themselves then there these they this those through
    under until very were what when where which while will with would your yours yourself yourselves
    said says year years also well back still make made know take time people first last good
""".split())

SOURCE_EXCERPT_CHARS = 1000
SUMMARY_MAX_CHARS = 300
TITLE_MIN_CHARS, TITLE_MAX_CHARS = 4, 80
THEMES_MIN, THEMES_MAX = 2, 5
VOCAB_MIN, VOCAB_MAX = 6, 12


@dataclass(frozen=True)
class SharedContext:
    lesson_title: str
    key_vocabulary: Tuple[str, ...]
    main_themes: Tuple[str, ...]
    content_summary: str
    difficulty_level: CEFRLevel
    target_language: str
    lesson_type: str
    source_text: str
    built_from: str = "model"

    @property
    def main_theme(self) -> str:
        return self.main_themes[0] if self.main_themes else "this topic"


def lesson_type_name(lesson_type: str) -> str:
    return LESSON_TYPE_NAMES.get(lesson_type, "English")


# Deterministic fallbacks

def fallback_title(source_text: str, lesson_type: str, level: CEFRLevel) -> str:
    text = source_text.lower()
    for keyword, topic in TOPIC_TITLES:
        if keyword in text:
            return f"{topic} Discussion"

    for noun in re.findall(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b", source_text):
        if noun.lower() in STOPWORDS or noun.lower() in ("the", "a", "an", "it", "he", "she", "we", "i"):
            continue
        if len(noun) < 20:
            return f"{noun} Discussion"
        break

    return f"{lesson_type_name(lesson_type)} - {level.value} Level"


def fallback_vocabulary(source_text: str) -> List[str]:
    """Most frequent non-stopword tokens of 4-12 letters; ties keep first occurrence."""
    tokens = [t for t in re.findall(r"\b[a-z]{4,12}\b", source_text.lower()) if t not in STOPWORDS]
    counts = Counter(tokens)
    first_seen = {}
    for index, token in enumerate(tokens):
        first_seen.setdefault(token, index)
    ranked = sorted(counts, key=lambda t: (-counts[t], first_seen[t]))[:10]

    if len(ranked) < 4:
        ranked += [w for w in GENERIC_VOCABULARY if w not in ranked]
    return ranked[:VOCAB_MAX]


def fallback_themes(source_text: str) -> List[str]:
    text = source_text.lower()
    themes = [theme for theme, keywords in THEME_KEYWORDS if any(k in text for k in keywords)]
    if not themes:
        return list(DEFAULT_THEMES)
    for default in DEFAULT_THEMES:
        if len(themes) >= THEMES_MIN:
            break
        themes.append(default)
    return themes


def fallback_summary(source_text: str) -> str:
    sentences = re.findall(r"[^.!?]+[.!?]+", source_text)
    summary = " ".join(s.strip() for s in sentences[:2]) or source_text.strip()
    return _truncate(summary, SUMMARY_MAX_CHARS)


def fallback_context(
    source_text: str,
    lesson_type: str,
    student_level: CEFRLevel,
    target_language: str
) -> SharedContext:
    """Context built from the source text alone, without a model call."""
    return SharedContext(
        lesson_title=fallback_title(source_text, lesson_type, student_level),
        key_vocabulary=tuple(fallback_vocabulary(source_text)),
        main_themes=tuple(fallback_themes(source_text)),
        content_summary=fallback_summary(source_text),
        difficulty_level=student_level,
        target_language=target_language,
        lesson_type=lesson_type,
        source_text=source_text[:SOURCE_EXCERPT_CHARS],
        built_from="fallback",
    )


def _truncate(text: str, limit: int) -> str:
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) <= limit:
        return text
    return text[:limit - 3].rstrip() + "..."


# Field validation of the model reply

def _valid_title(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    title = value.strip().strip("\"'").strip()
    title = re.sub(r"^title:?\s*", "", title, flags=re.IGNORECASE)
    if not TITLE_MIN_CHARS <= len(title) <= TITLE_MAX_CHARS or "lesson" in title.lower():
        return None
    return title


def _valid_themes(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    themes = []
    for item in value:
        if isinstance(item, str) and 3 < len(item.strip()) < 50 and item.strip().lower() not in themes:
            themes.append(item.strip().lower())
    themes = themes[:THEMES_MAX]
    return themes if len(themes) >= THEMES_MIN else None


def _valid_vocabulary(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    words: List[str] = []
    for item in value:
        if not isinstance(item, str):
            continue
        word = item.strip().lower()
        if 3 <= len(word) <= 20 and word not in words:
            words.append(word)
    words = words[:VOCAB_MAX]
    return words if len(words) >= VOCAB_MIN else None


def _valid_summary(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return _truncate(value, SUMMARY_MAX_CHARS)


def build_context_prompt(source_text: str, lesson_type: str, level: CEFRLevel) -> str:
    return f"""Analyze this text for a {level.value} level {lesson_type} English lesson.

TEXT:
{source_text[:SOURCE_EXCERPT_CHARS]}

Return ONLY a JSON object with these keys:
{{
  "title": "a specific lesson title of 3-8 words, without the word 'lesson'",
  "themes": ["3-5 main themes, lowercase"],
  "vocabulary": ["8-12 key vocabulary words from the text suitable for {level.value} students"],
  "summary": "2-3 sentence summary for {level.value} students"
}}"""


@log_execution_time
async def build_shared_context(
    llm: LLMProvider,
    source_text: str,
    lesson_type: str,
    student_level: CEFRLevel,
    target_language: str,
    usage: Optional[UsageMeter] = None
) -> SharedContext:
    """One model call for title, themes, vocabulary and summary; any bad field falls back."""
    data: Dict[str, Any] = {}
    try:
        raw = await llm.prompt(build_context_prompt(source_text, lesson_type, student_level), usage=usage)
        parsed = coerce_to_json(raw)
        if isinstance(parsed, dict):
            data = parsed
        else:
            logger.warning("Shared context reply was not a JSON object", reply_type=type(parsed).__name__)
    except (AIProviderError, ValueError) as e:
        logger.warning("Shared context generation failed, using extraction fallback",
                       error=str(e), error_type=type(e).__name__)

    title = _valid_title(data.get("title"))
    themes = _valid_themes(data.get("themes"))
    vocabulary = _valid_vocabulary(data.get("vocabulary"))
    summary = _valid_summary(data.get("summary"))

    fallback_fields = [name for name, value in
                       (("title", title), ("themes", themes), ("vocabulary", vocabulary), ("summary", summary))
                       if value is None]
    if fallback_fields:
        logger.info("Shared context fields replaced by fallback", fields=fallback_fields)

    context = SharedContext(
        lesson_title=title or fallback_title(source_text, lesson_type, student_level),
        key_vocabulary=tuple(vocabulary or fallback_vocabulary(source_text)),
        main_themes=tuple(themes or fallback_themes(source_text)),
        content_summary=summary or fallback_summary(source_text),
        difficulty_level=student_level,
        target_language=target_language,
        lesson_type=lesson_type,
        source_text=source_text[:SOURCE_EXCERPT_CHARS],
        built_from="fallback" if len(fallback_fields) == 4 else "model",
    )
    logger.info("Shared context built",
                title=context.lesson_title,
                vocabulary=len(context.key_vocabulary),
                themes=len(context.main_themes),
                built_from=context.built_from)
    return context
