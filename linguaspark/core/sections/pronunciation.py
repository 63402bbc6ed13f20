"""
Pronunciation section: scorer-selected words with IPA plus tongue twisters
"""
import re
from typing import Any, Dict, List

from linguaspark.core.llm import UsageMeter
from linguaspark.core.sections.base import Previous, SectionGenerator, vocabulary_words
from linguaspark.core.sections.policy import ValidationResult
from linguaspark.core.shared_context import SharedContext
from linguaspark.core.word_difficulty import select_challenging_words

PRONUNCIATION_INSTRUCTION = (
    "Practice pronunciation with your tutor. Focus on the difficult sounds and try the tongue twisters:"
)

WORD_COUNT = 5
MIN_TONGUE_TWISTERS = 2


def parse_word_response(response: str, word: str) -> Dict[str, Any]:
    """Parse the WORD / IPA / DIFFICULT_SOUNDS / TIP_n / PRACTICE block."""
    result: Dict[str, Any] = {"word": word, "ipa": "", "difficultSounds": [], "tips": [], "practiceSentence": ""}
    for line in (l.strip() for l in response.split("\n")):
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key, value = key.strip().upper(), value.strip()
        if key == "WORD" and value:
            result["word"] = value
        elif key == "IPA":
            result["ipa"] = value
        elif key == "DIFFICULT_SOUNDS":
            result["difficultSounds"] = [s.strip() for s in value.split(",") if s.strip()]
        elif key.startswith("TIP_") and value:
            result["tips"].append(value)
        elif key == "PRACTICE":
            result["practiceSentence"] = value
    return result


def parse_twister_response(response: str) -> List[Dict[str, Any]]:
    twisters: Dict[int, Dict[str, Any]] = {}
    current = None
    for line in (l.strip() for l in response.split("\n")):
        match = re.match(r"^TWISTER_(\d+):(.+)", line)
        if match:
            current = {"text": match.group(2).strip(), "targetSounds": [], "difficulty": "moderate"}
            twisters[int(match.group(1))] = current
            continue
        match = re.match(r"^SOUNDS_(\d+):(.+)", line)
        if match and current is not None:
            current["targetSounds"] = [s.strip() for s in match.group(2).split(",") if s.strip()]
            continue
        match = re.match(r"^DIFFICULTY_(\d+):(.+)", line)
        if match and current is not None:
            current["difficulty"] = match.group(2).strip()
    return [twisters[i] for i in sorted(twisters) if twisters[i]["text"]]


class PronunciationGenerator(SectionGenerator):
    name = "pronunciation"
    temperature = 0.6

    def candidate_words(self, context: SharedContext, previous: Previous) -> List[str]:
        words = vocabulary_words(context, previous, limit=12)
        words += [w for w in context.key_vocabulary if w not in words]
        return words

    def build_word_prompt(self, word: str, context: SharedContext) -> str:
        related = ", ".join([w for w in context.key_vocabulary if w.lower() != word.lower()][:3])
        return f"""Create pronunciation practice for the word "{word}" for {context.difficulty_level.value} level students.

CONTEXT: {context.content_summary[:200]}
TOPIC: {context.main_theme}
RELATED VOCABULARY: {related}

Provide the following information in this exact format:

WORD: {word}
IPA: [accurate IPA transcription between slashes]
DIFFICULT_SOUNDS: [2-3 challenging IPA sounds, comma separated]
TIP_1: [mouth/tongue position tip for the first difficult sound]
TIP_2: [mouth/tongue position tip for the second difficult sound]
PRACTICE: [a sentence using "{word}" that relates to {context.main_theme}]"""

    def build_twister_prompt(self, context: SharedContext, words: List[str]) -> str:
        themes = " and ".join(context.main_themes[:2])
        return f"""Create {MIN_TONGUE_TWISTERS} tongue twisters for {context.difficulty_level.value} level students about "{themes}".

Requirements:
- Try to use words: {", ".join(words)}
- Focus on challenging sounds (th, r, l, s, sh, ch)
- 6-12 words each

Provide in this exact format:

TWISTER_1: [first tongue twister text]
SOUNDS_1: [target sounds separated by commas]
DIFFICULTY_1: moderate

TWISTER_2: [second tongue twister text]
SOUNDS_2: [target sounds separated by commas]
DIFFICULTY_2: moderate"""

    async def generate(self, context: SharedContext, previous: Previous, strict: bool, usage: UsageMeter) -> Any:
        selected = select_challenging_words(self.candidate_words(context, previous), WORD_COUNT)
        words = []
        for scored in selected:
            response = await self.ask(self.build_word_prompt(scored.word, context), strict, usage)
            entry = parse_word_response(response, scored.word)
            if not entry["difficultSounds"]:
                entry["difficultSounds"] = sorted(scored.challenging_sounds)
            words.append(entry)

        twister_words = [s.word for s in selected]
        twisters = parse_twister_response(
            await self.ask(self.build_twister_prompt(context, twister_words), strict, usage)
        )
        return {
            "instruction": PRONUNCIATION_INSTRUCTION,
            "words": words,
            "tongueTwisters": twisters,
        }

    def validate(self, content: Any, context: SharedContext) -> ValidationResult:
        if not isinstance(content, dict):
            return ValidationResult(False, ["content is not an object"])

        # Single-word shape used by the static fallback
        if "words" not in content:
            ok = bool(content.get("word")) and str(content.get("ipa", "")).startswith("/") and bool(content.get("practice"))
            return ValidationResult(ok, [] if ok else ["single-word entry needs word, ipa and practice"])

        issues = []
        words = content.get("words") or []
        if not words or len(words) > WORD_COUNT:
            issues.append(f"expected 1-{WORD_COUNT} words, got {len(words)}")
        for entry in words:
            if not entry.get("ipa"):
                issues.append(f"'{entry.get('word')}' is missing IPA")
            if not entry.get("practiceSentence"):
                issues.append(f"'{entry.get('word')}' is missing a practice sentence")
        twisters = content.get("tongueTwisters") or []
        if len(twisters) < MIN_TONGUE_TWISTERS:
            issues.append(f"need at least {MIN_TONGUE_TWISTERS} tongue twisters, got {len(twisters)}")
        return ValidationResult(not issues, issues)

    def fallback(self, context: SharedContext, previous: Previous) -> Any:
        return {
            "word": "communication",
            "ipa": "/kəˌmjuːnɪˈkeɪʃən/",
            "practice": "Practice saying: communication in a sentence.",
        }
