"""
Source text validation before lesson generation
"""
import re
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any

MINIMUM_WORD_COUNT = 50
MINIMUM_SENTENCE_COUNT = 3


@dataclass
class ContentValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    word_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class QualityScore:
    score: int
    factors: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def sanitize_content(text: str) -> str:
    """Collapse whitespace and drop everything but word characters and basic punctuation."""
    collapsed = re.sub(r"\s+", " ", text or "")
    return re.sub(r"[^\w\s.,!?;:'\"()-]", "", collapsed).strip()


def get_words(text: str) -> List[str]:
    return [w for w in text.split() if re.search(r"\w", w)]


def get_sentences(text: str) -> List[str]:
    """Sentences keep their terminating punctuation so completeness can be checked."""
    parts = re.findall(r"[^.!?]+[.!?]*", text)
    return [p.strip() for p in parts if re.search(r"\w", p)]


def get_minimum_word_count() -> int:
    return MINIMUM_WORD_COUNT


def validate_content(text: str) -> ContentValidationResult:
    """Hard gates only: non-empty, enough words, enough sentences."""
    clean = sanitize_content(text)
    if not clean:
        return ContentValidationResult(
            valid=False,
            errors=["No content provided"],
            suggestions=["Please select or paste some text content to generate a lesson from"],
        )

    words = get_words(clean)
    word_count = len(words)
    if word_count < MINIMUM_WORD_COUNT:
        return ContentValidationResult(
            valid=False,
            errors=[f"Content too short ({word_count} words, minimum {MINIMUM_WORD_COUNT} required)"],
            suggestions=[
                "Select more text from the webpage",
                "Choose a longer article or passage",
                "Combine multiple paragraphs for better lesson content",
            ],
            word_count=word_count,
        )

    sentence_count = len(get_sentences(clean))
    if sentence_count < MINIMUM_SENTENCE_COUNT:
        return ContentValidationResult(
            valid=False,
            errors=[
                f"Content lacks structure ({sentence_count} sentences, "
                f"minimum {MINIMUM_SENTENCE_COUNT} required)"
            ],
            suggestions=[
                "Select content with complete sentences",
                "Choose text with proper punctuation",
                "Avoid selecting only titles or bullet points",
            ],
            word_count=word_count,
        )

    return ContentValidationResult(valid=True, word_count=word_count)


def check_content_quality(text: str) -> QualityScore:
    """Informational 0-100 score; never used to reject content."""
    clean = sanitize_content(text)
    words = get_words(clean)
    sentences = get_sentences(clean)

    word_count = len(words)
    sentence_count = len(sentences)
    average = word_count / sentence_count if sentence_count else 0.0
    variety = len({w.lower() for w in words}) / word_count if word_count else 0.0
    complete = sum(1 for s in sentences if s[-1] in ".!?")
    complete_ratio = complete / sentence_count if sentence_count else 0.0

    score = 0.0
    if word_count >= MINIMUM_WORD_COUNT:
        score += min(30.0, (word_count / 200) * 30)

    if 8 <= average <= 25:
        score += 25
    elif average >= 5:
        score += 15

    if variety > 0.4:
        score += 25
    elif variety > 0.25:
        score += 15

    if complete_ratio > 0.7:
        score += 20
    elif complete_ratio > 0.5:
        score += 10

    return QualityScore(
        score=int(round(score)),
        factors={
            "word_count": word_count,
            "sentence_count": sentence_count,
            "average_words_per_sentence": round(average, 1),
            "has_varied_vocabulary": variety > 0.4,
            "has_complete_thoughts": complete_ratio > 0.7,
        },
    )


def quality_suggestions(quality: QualityScore) -> List[str]:
    factors = quality.factors
    suggestions = []
    if factors["word_count"] < 100:
        suggestions.append("Select longer content with more detailed information")
    if factors["average_words_per_sentence"] < 8:
        suggestions.append("Choose content with more complex, complete sentences")
    if not factors["has_varied_vocabulary"]:
        suggestions.append("Select content with more diverse vocabulary and topics")
    if not factors["has_complete_thoughts"]:
        suggestions.append("Choose well-structured text with proper punctuation")
    return suggestions
