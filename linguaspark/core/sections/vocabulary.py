"""
Vocabulary and reading sections
"""
import re
from typing import Any, Dict, List

from linguaspark.core.llm import UsageMeter, coerce_to_json
from linguaspark.core.sections.base import Previous, SectionGenerator, mentions, vocabulary_words
from linguaspark.core.sections.policy import ValidationResult
from linguaspark.core.shared_context import CEFRLevel, SharedContext

VOCABULARY_INSTRUCTION = "Study the following words with your tutor before reading the text:"
READING_INSTRUCTION = "Read the following text carefully. Your tutor will help you with any difficult words or concepts:"

EXAMPLES_PER_LEVEL = {
    CEFRLevel.A1: 5,
    CEFRLevel.A2: 5,
    CEFRLevel.B1: 4,
    CEFRLevel.B2: 3,
    CEFRLevel.C1: 2,
}

EXAMPLE_GUIDELINES = {
    CEFRLevel.A1: "5-8 words, present tense, basic vocabulary",
    CEFRLevel.A2: "8-12 words, simple past/future, common words",
    CEFRLevel.B1: "10-15 words, varied tenses, compound sentences",
    CEFRLevel.B2: "12-18 words, complex structures, relative clauses",
    CEFRLevel.C1: "15-20 words, sophisticated grammar, nuanced expressions",
}

MAX_VOCABULARY_WORDS = 8
MIN_READING_WORDS = 80


def instruction_entry() -> Dict[str, Any]:
    return {"word": "INSTRUCTION", "meaning": VOCABULARY_INSTRUCTION, "examples": []}


def vocabulary_entries(content: Any) -> List[Dict[str, Any]]:
    return [item for item in content if isinstance(item, dict) and item.get("word") != "INSTRUCTION"]


class VocabularyGenerator(SectionGenerator):
    """Definitions and level-sized example sets for the key vocabulary."""

    name = "vocabulary"
    max_tokens = 2500

    def build_prompt(self, context: SharedContext, words: List[str]) -> str:
        level = context.difficulty_level
        count = EXAMPLES_PER_LEVEL[level]
        themes = ", ".join(context.main_themes[:2])
        return f"""Create vocabulary entries for {level.value} level students.

WORDS: {", ".join(words)}
CONTEXT: {context.content_summary[:150]}
TOPIC: {themes}

For EACH word give a simple definition and exactly {count} example sentences that:
- use the word itself
- relate to the topic ({themes})
- match {level.value} level: {EXAMPLE_GUIDELINES[level]}

Return ONLY a JSON array:
[{{"word": "...", "meaning": "...", "examples": ["...", "..."]}}]"""

    async def generate(self, context: SharedContext, previous: Previous, strict: bool, usage: UsageMeter) -> Any:
        words = list(context.key_vocabulary[:MAX_VOCABULARY_WORDS])
        parsed = coerce_to_json(await self.ask(self.build_prompt(context, words), strict, usage))
        if isinstance(parsed, dict):
            parsed = parsed.get("vocabulary", [])
        if not isinstance(parsed, list):
            raise ValueError("vocabulary reply is not a list")

        count = EXAMPLES_PER_LEVEL[context.difficulty_level]
        entries = [instruction_entry()]
        for item in parsed:
            if not isinstance(item, dict) or not isinstance(item.get("word"), str):
                continue
            examples = [e.strip() for e in item.get("examples") or [] if isinstance(e, str) and e.strip()]
            entries.append({
                "word": item["word"].strip().capitalize(),
                "meaning": str(item.get("meaning") or "").strip()[:150],
                "examples": examples[:count],
            })
        return entries

    def validate(self, content: Any, context: SharedContext) -> ValidationResult:
        if not isinstance(content, list):
            return ValidationResult(False, ["content is not a list"])
        entries = vocabulary_entries(content)
        required = min(5, len(context.key_vocabulary))
        issues = []
        if len(entries) < required:
            issues.append(f"expected at least {required} entries, got {len(entries)}")
        for entry in entries:
            word = entry.get("word") or ""
            if not word or not entry.get("meaning"):
                issues.append(f"entry '{word}' is missing word or meaning")
                continue
            usable = [e for e in entry.get("examples") or [] if mentions(word, e)]
            if len(usable) < 2:
                issues.append(f"'{word}' needs at least 2 examples using the word")
        return ValidationResult(not issues, issues)

    def fallback(self, context: SharedContext, previous: Previous) -> Any:
        count = EXAMPLES_PER_LEVEL[context.difficulty_level]
        theme = context.main_theme
        templates = [
            "The word \"{w}\" appears in our text about {t}.",
            "Can you use \"{w}\" in a sentence of your own?",
            "We often hear \"{w}\" when people talk about {t}.",
            "Try to remember \"{w}\" for the next lesson.",
            "My tutor explained \"{w}\" with a simple example.",
        ]
        entries = [instruction_entry()]
        for word in context.key_vocabulary[:MAX_VOCABULARY_WORDS]:
            entries.append({
                "word": word.capitalize(),
                "meaning": f"A key word from this lesson about {theme}. Discuss its meaning with your tutor.",
                "examples": [tpl.format(w=word, t=theme) for tpl in templates[:count]],
            })
        return entries


class ReadingGenerator(SectionGenerator):
    """Level-adapted rewrite of the source text using the lesson vocabulary."""

    name = "reading"
    max_tokens = 2000

    def build_prompt(self, context: SharedContext, words: List[str]) -> str:
        return f"""Rewrite this text for {context.difficulty_level.value} level students.
Use these vocabulary words: {", ".join(words)}
Keep it 200-400 words. Return only the rewritten text:

{context.source_text}"""

    async def generate(self, context: SharedContext, previous: Previous, strict: bool, usage: UsageMeter) -> Any:
        words = vocabulary_words(context, previous)
        passage = (await self.ask(self.build_prompt(context, words), strict, usage)).strip()
        return f"{READING_INSTRUCTION}\n\n{passage}"

    def validate(self, content: Any, context: SharedContext) -> ValidationResult:
        if not isinstance(content, str) or not content.startswith(READING_INSTRUCTION):
            return ValidationResult(False, ["reading is missing its instruction"])
        passage = content[len(READING_INSTRUCTION):]
        word_count = len(re.findall(r"\b\w+\b", passage))
        if word_count < MIN_READING_WORDS:
            return ValidationResult(False, [f"passage has {word_count} words, minimum {MIN_READING_WORDS}"])
        return ValidationResult(True)

    def fallback(self, context: SharedContext, previous: Previous) -> Any:
        passage = context.source_text.strip()
        if len(re.findall(r"\b\w+\b", passage)) < MIN_READING_WORDS:
            words = ", ".join(vocabulary_words(context, previous))
            passage += (
                f"\n\nThis text is about {context.main_theme}. {context.content_summary} "
                f"While you read, look for these important words: {words}. "
                "Think about what each word means and how the writer uses it. "
                "After reading, tell your tutor which ideas were new for you, which parts were easy "
                "to understand and which parts you would like to read again together. "
                "Remember that reading in a new language takes time, so it is perfectly fine to read "
                "slowly, to stop and ask questions, and to use the vocabulary list whenever you need help."
            )
        return f"{READING_INSTRUCTION}\n\n{passage}"
