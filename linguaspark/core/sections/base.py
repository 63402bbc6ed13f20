"""
Base class and shared parsing helpers for lesson section generators
"""
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from linguaspark.config import settings
from linguaspark.core.llm import LLMProvider, UsageMeter
from linguaspark.core.sections.policy import SectionResult, ValidationResult, run_section_policy
from linguaspark.core.shared_context import SharedContext

Previous = Mapping[str, SectionResult]

STRICT_SUFFIX = (
    "\n\nIMPORTANT: Your previous answer did not follow the required format. "
    "Follow every requirement above EXACTLY and return nothing except the requested output."
)

SPECIFIC_REFERENCE = re.compile(
    r"\b(the (text|article|story|passage|reading)|in the text|according to)\b"
    r"|\b(19|20)\d{2}\b"
    r"|\b(January|February|March|April|May|June|July|August|September|October|November|December)\b",
    re.IGNORECASE,
)


def parse_lines(response: str) -> List[str]:
    """Non-empty lines with list numbering and bullets removed."""
    lines = []
    for line in (response or "").split("\n"):
        cleaned = re.sub(r"^\s*(?:\d+[.)]|[-*•])\s*", "", line).strip()
        if cleaned:
            lines.append(cleaned)
    return lines


def parse_questions(response: str, minimum_length: int = 10) -> List[str]:
    return [q.strip("\"' ") for q in parse_lines(response)
            if q.rstrip("\"' ").endswith("?") and len(q) > minimum_length]


def mentions(word: str, text: str) -> bool:
    """Word appears in text, allowing a simple inflected ending."""
    word, text = word.lower(), text.lower()
    if word in text:
        return True
    return len(word) >= 5 and word[:-1] in text


def vocabulary_words(context: SharedContext, previous: Previous, limit: int = 5) -> List[str]:
    """Words from the generated vocabulary section, else the context vocabulary."""
    result = previous.get("vocabulary")
    if result is not None and isinstance(result.content, list):
        words = [item.get("word", "") for item in result.content
                 if isinstance(item, dict) and item.get("word") and item.get("word") != "INSTRUCTION"]
        if words:
            return [w.lower() for w in words[:limit]]
    return list(context.key_vocabulary[:limit])


def validate_question_list(
    content: Any,
    instruction: str,
    count: int,
    minimum_length: int = 10
) -> ValidationResult:
    """Shape: [instruction, q1..qN], every question ending with '?'."""
    if not isinstance(content, list) or not content:
        return ValidationResult(False, ["content is not a list"])
    issues = []
    if content[0] != instruction:
        issues.append("missing instruction line")
    questions = content[1:]
    if len(questions) != count:
        issues.append(f"expected {count} questions, got {len(questions)}")
    for index, question in enumerate(questions, start=1):
        if not isinstance(question, str) or not question.strip().endswith("?"):
            issues.append(f"question {index} does not end with '?'")
        elif len(question.strip()) < minimum_length:
            issues.append(f"question {index} is too short")
    return ValidationResult(not issues, issues)


class SectionGenerator(ABC):
    """One lesson section: prompt the model, check the shape, supply static content when needed."""

    name: str = ""
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    def __init__(self, llm: LLMProvider):
        self.llm = llm

    @abstractmethod
    async def generate(self, context: SharedContext, previous: Previous, strict: bool, usage: UsageMeter) -> Any:
        """Produce section content from the model. May raise AIProviderError or ValueError."""

    @abstractmethod
    def validate(self, content: Any, context: SharedContext) -> ValidationResult:
        """Check the structural minimum for this section."""

    @abstractmethod
    def fallback(self, context: SharedContext, previous: Previous) -> Any:
        """Static content that always passes validate()."""

    async def ask(self, prompt: str, strict: bool, usage: UsageMeter, max_tokens: Optional[int] = None) -> str:
        if strict:
            prompt += STRICT_SUFFIX
        return await self.llm.prompt(
            prompt,
            temperature=self.temperature,
            max_tokens=max_tokens or self.max_tokens,
            usage=usage,
        )

    async def run(
        self,
        context: SharedContext,
        previous: Previous,
        usage: Optional[UsageMeter] = None,
        max_attempts: Optional[int] = None
    ) -> SectionResult:
        usage = usage if usage is not None else UsageMeter()

        async def attempt(number: int):
            return await self.generate(context, previous, number > 1, usage)

        result = await run_section_policy(
            self.name,
            attempt,
            lambda content: self.validate(content, context),
            lambda: self.fallback(context, previous),
            max_attempts=max_attempts or settings.section_max_attempts,
        )
        result.tokens_used = usage.tokens
        return result


def registry(generators: List[SectionGenerator]) -> Dict[str, SectionGenerator]:
    return {generator.name: generator for generator in generators}
