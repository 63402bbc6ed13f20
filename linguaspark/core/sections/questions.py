"""
Question-list sections: warm-up, comprehension, discussion and wrap-up
"""
import re
from typing import Any, List

from linguaspark.core.llm import UsageMeter
from linguaspark.core.sections.base import (
    SPECIFIC_REFERENCE,
    Previous,
    SectionGenerator,
    parse_questions,
    validate_question_list,
)
from linguaspark.core.sections.policy import ValidationResult
from linguaspark.core.shared_context import CEFRLevel, SharedContext

WARMUP_INSTRUCTION = "Have the following conversations or discussions with your tutor before reading the text:"
COMPREHENSION_INSTRUCTION = "After reading the text, answer these comprehension questions:"
DISCUSSION_INSTRUCTION = "Discuss these questions with your tutor to explore the topic in depth:"
WRAPUP_INSTRUCTION = "Reflect on your learning by discussing these wrap-up questions:"

WARMUP_LEVEL_NOTES = {
    CEFRLevel.A1: "Use very simple present tense questions with basic vocabulary. Questions should be about personal experiences and familiar situations.",
    CEFRLevel.A2: "Use simple questions with present and past tenses. Focus on personal experiences and everyday situations.",
    CEFRLevel.B1: "Use varied question structures with different tenses. Include questions about opinions and experiences.",
    CEFRLevel.B2: "Use complex question structures. Include hypothetical and analytical questions about experiences.",
    CEFRLevel.C1: "Use sophisticated question structures. Include abstract and evaluative questions that encourage critical thinking.",
}

DISCUSSION_LEVEL_NOTES = {
    CEFRLevel.A1: "Simple yes/no and wh- questions about familiar topics, 4-10 words each.",
    CEFRLevel.A2: "Opinion and experience questions with simple hypotheticals, 5-12 words each.",
    CEFRLevel.B1: "Opinion with justification, comparisons, advantages and disadvantages, 6-15 words each.",
    CEFRLevel.B2: "Analytical, evaluative and hypothetical questions, 8-18 words each.",
    CEFRLevel.C1: "Evaluative, critical and abstract questions with complex syntax, 10-20 words each.",
}

# Words allowed to be capitalised mid-question without counting as a named reference
_ALLOWED_CAPITALS = {"I", "I'm", "I've", "I'd", "English"}


def _names_in(question: str) -> List[str]:
    words = re.findall(r"[A-Za-z][\w']*", question)
    return [w for w in words[1:] if w[0].isupper() and w not in _ALLOWED_CAPITALS]


class WarmupGenerator(SectionGenerator):
    """Three questions that activate prior knowledge without assuming the reading."""

    name = "warmup"
    temperature = 0.8

    def build_prompt(self, context: SharedContext) -> str:
        level = context.difficulty_level
        return f"""Create 3 warm-up questions for {level.value} level students about the general topic of "{context.main_theme}".

CRITICAL REQUIREMENTS:
1. DO NOT reference specific events, people, names, dates, or outcomes from any text
2. DO NOT assume students have read or know anything about specific content
3. FOCUS on students' personal experiences, opinions, and general knowledge
4. Questions should activate prior knowledge about the TOPIC, not test knowledge of specific content
5. {WARMUP_LEVEL_NOTES[level]}

Return ONLY 3 questions, one per line, with no numbering or extra text:"""

    async def generate(self, context: SharedContext, previous: Previous, strict: bool, usage: UsageMeter) -> Any:
        response = await self.ask(self.build_prompt(context), strict, usage)
        return [WARMUP_INSTRUCTION] + parse_questions(response)[:3]

    def validate(self, content: Any, context: SharedContext) -> ValidationResult:
        result = validate_question_list(content, WARMUP_INSTRUCTION, 3)
        if not result.valid:
            return result
        issues = []
        for index, question in enumerate(content[1:], start=1):
            if SPECIFIC_REFERENCE.search(question):
                issues.append(f"question {index} refers to specific content")
            elif _names_in(question):
                issues.append(f"question {index} mentions a specific name")
        return ValidationResult(not issues, issues)

    def fallback(self, context: SharedContext, previous: Previous) -> Any:
        return [
            WARMUP_INSTRUCTION,
            "What do you already know about this topic?",
            "Have you had similar experiences?",
            "What would you like to learn more about?",
        ]


class ComprehensionGenerator(SectionGenerator):
    name = "comprehension"

    def build_prompt(self, context: SharedContext, previous: Previous) -> str:
        reading = previous.get("reading")
        passage = reading.content if reading is not None and isinstance(reading.content, str) else context.content_summary
        return f"""Create 5 {context.difficulty_level.value} comprehension questions about this content:
{passage[:1500]}
Return only questions, one per line:"""

    async def generate(self, context: SharedContext, previous: Previous, strict: bool, usage: UsageMeter) -> Any:
        response = await self.ask(self.build_prompt(context, previous), strict, usage)
        return [COMPREHENSION_INSTRUCTION] + parse_questions(response)[:5]

    def validate(self, content: Any, context: SharedContext) -> ValidationResult:
        return validate_question_list(content, COMPREHENSION_INSTRUCTION, 5)

    def fallback(self, context: SharedContext, previous: Previous) -> Any:
        return [
            COMPREHENSION_INSTRUCTION,
            "What is the main idea of this text?",
            "What supporting details can you identify?",
            "Which part of the text did you find most interesting?",
            "What new information did you learn from the text?",
            "How does the text connect to your own experience?",
        ]


class DiscussionGenerator(SectionGenerator):
    name = "discussion"
    temperature = 0.8

    def build_prompt(self, context: SharedContext) -> str:
        level = context.difficulty_level
        themes = " and ".join(context.main_themes[:2])
        vocabulary = ", ".join(context.key_vocabulary[:5])
        return f"""Create exactly 5 discussion questions for {level.value} level students about {themes}.

SOURCE CONTEXT: {context.content_summary}
RELATED VOCABULARY: {vocabulary}

LEVEL-SPECIFIC REQUIREMENTS FOR {level.value}:
{DISCUSSION_LEVEL_NOTES[level]}

CRITICAL REQUIREMENTS:
1. Generate EXACTLY 5 questions - no more, no less
2. Each question should explore a DIFFERENT aspect of the topic
3. Questions should encourage extended responses
4. Progress from personal connection to evaluation of broader significance

Return ONLY 5 questions, one per line, with no numbering, bullets, or extra text:"""

    async def generate(self, context: SharedContext, previous: Previous, strict: bool, usage: UsageMeter) -> Any:
        response = await self.ask(self.build_prompt(context), strict, usage)
        return [DISCUSSION_INSTRUCTION] + parse_questions(response)[:5]

    def validate(self, content: Any, context: SharedContext) -> ValidationResult:
        result = validate_question_list(content, DISCUSSION_INSTRUCTION, 5)
        if result.valid and len({q.strip().lower() for q in content[1:]}) != 5:
            return ValidationResult(False, ["discussion questions are not distinct"])
        return result

    def fallback(self, context: SharedContext, previous: Previous) -> Any:
        theme = context.main_theme
        return [
            DISCUSSION_INSTRUCTION,
            f"What is your opinion on {theme}?",
            f"How does {theme} affect people in your country?",
            "How would you handle a similar situation?",
            f"What are the advantages and disadvantages of {theme}?",
            f"How do you think {theme} will change in the future?",
        ]


class WrapupGenerator(SectionGenerator):
    name = "wrapup"

    def build_prompt(self, context: SharedContext) -> str:
        return f"""Create 3 {context.difficulty_level.value} wrap-up questions about this lesson:
{context.content_summary}
Return only questions, one per line:"""

    async def generate(self, context: SharedContext, previous: Previous, strict: bool, usage: UsageMeter) -> Any:
        response = await self.ask(self.build_prompt(context), strict, usage)
        return [WRAPUP_INSTRUCTION] + parse_questions(response)[:3]

    def validate(self, content: Any, context: SharedContext) -> ValidationResult:
        return validate_question_list(content, WRAPUP_INSTRUCTION, 3)

    def fallback(self, context: SharedContext, previous: Previous) -> Any:
        return [
            WRAPUP_INSTRUCTION,
            "What new vocabulary did you learn?",
            "Which concepts need more practice?",
            "How will you use this knowledge?",
        ]
