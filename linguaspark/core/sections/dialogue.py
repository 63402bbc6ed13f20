"""
Dialogue sections: guided conversation practice and fill-in-the-gap
"""
import re
from typing import Any, Dict, List, Tuple

from linguaspark.core.llm import UsageMeter
from linguaspark.core.sections.base import Previous, SectionGenerator, parse_questions, vocabulary_words
from linguaspark.core.sections.policy import ValidationResult
from linguaspark.core.shared_context import CEFRLevel, SharedContext

PRACTICE_INSTRUCTION = "Practice this conversation with your tutor:"
FILL_GAP_INSTRUCTION = "Fill in the gaps in this conversation:"

GAP = "_____"
MIN_TURNS = 12
PROMPT_TURNS = 14
SPEAKERS = ("Student", "Tutor")

LEVEL_LANGUAGE = {
    CEFRLevel.A1: "Only simple present and past tenses, very common words, sentences of 5-8 words.",
    CEFRLevel.A2: "Present, past, continuous and simple future, familiar words, sentences of 8-12 words.",
    CEFRLevel.B1: "Varied tenses including present perfect, phrasal verbs, opinion phrases, 10-15 words.",
    CEFRLevel.B2: "Relative clauses, conditionals, passive voice, collocations, 12-18 words.",
    CEFRLevel.C1: "Inversion, cleft sentences, hedging and idiomatic language, 15-20 words.",
}

DEFAULT_FOLLOW_UPS = [
    "What did you learn from this conversation?",
    "How would you continue this discussion?",
    "What questions would you ask next?",
]

_LINE = re.compile(r"^\**(student|tutor)\**\s*:\s*(.+)$", re.IGNORECASE)


def parse_dialogue(response: str) -> Tuple[List[Dict[str, Any]], List[str]]:
    """Return (turns, trailing labelled lines) from a 'Speaker: text' transcript."""
    turns, extras = [], []
    for raw in (response or "").split("\n"):
        line = re.sub(r"^\s*\d+[.)]\s*", "", raw).strip()
        match = _LINE.match(line)
        if match:
            turns.append({"character": match.group(1).capitalize(), "line": match.group(2).strip()})
        elif line:
            extras.append(line)
    return turns, extras


def validate_turns(turns: Any) -> List[str]:
    if not isinstance(turns, list):
        return ["dialogue is not a list"]
    issues = []
    if len(turns) < MIN_TURNS:
        issues.append(f"dialogue has {len(turns)} turns, minimum {MIN_TURNS}")
    for index, turn in enumerate(turns):
        expected = SPEAKERS[index % 2]
        if not isinstance(turn, dict) or turn.get("character") != expected:
            issues.append(f"turn {index + 1} should be spoken by {expected}")
            break
        if not str(turn.get("line") or "").strip():
            issues.append(f"turn {index + 1} is empty")
            break
    return issues


def _dialogue_prompt(context: SharedContext, words: List[str], extra: str) -> str:
    level = context.difficulty_level
    return f"""Create a natural conversation between a Student and a Tutor about "{context.main_theme}" for {level.value} level students.

CONTEXT: {context.content_summary}
TOPIC THEMES: {", ".join(context.main_themes)}

CRITICAL REQUIREMENTS:
1. Create EXACTLY {PROMPT_TURNS} dialogue lines alternating between Student and Tutor
2. Start with Student speaking first
3. Naturally use 3-4 of these lesson words: {", ".join(words)}
4. Language for {level.value}: {LEVEL_LANGUAGE[level]}
{extra}
FORMAT: one line per turn, exactly "Student: ..." or "Tutor: ...", no numbering or commentary."""


class DialoguePracticeGenerator(SectionGenerator):
    name = "dialoguePractice"
    temperature = 0.8
    max_tokens = 2000

    def build_prompt(self, context: SharedContext, previous: Previous) -> str:
        extra = (
            "5. After the dialogue add 3 follow-up discussion questions, each on its own line "
            "starting with \"FOLLOW_UP:\"\n"
        )
        return _dialogue_prompt(context, vocabulary_words(context, previous), extra)

    async def generate(self, context: SharedContext, previous: Previous, strict: bool, usage: UsageMeter) -> Any:
        turns, extras = parse_dialogue(await self.ask(self.build_prompt(context, previous), strict, usage))
        follow_ups = parse_questions("\n".join(
            re.sub(r"^FOLLOW_UP:\s*", "", line, flags=re.IGNORECASE) for line in extras
        ))[:3]
        return {
            "instruction": PRACTICE_INSTRUCTION,
            "dialogue": turns,
            "followUpQuestions": follow_ups if len(follow_ups) == 3 else list(DEFAULT_FOLLOW_UPS),
        }

    def validate(self, content: Any, context: SharedContext) -> ValidationResult:
        if not isinstance(content, dict):
            return ValidationResult(False, ["content is not an object"])
        issues = validate_turns(content.get("dialogue"))
        if len(content.get("followUpQuestions") or []) < 3:
            issues.append("need 3 follow-up questions")
        return ValidationResult(not issues, issues)

    def fallback(self, context: SharedContext, previous: Previous) -> Any:
        theme = context.main_theme
        words = vocabulary_words(context, previous, limit=3) or ["topic"]
        lines = [
            f"Hello! Today I read something about {theme}.",
            "Great! What was it about?",
            f"It was about {theme}. I learned some new words.",
            "Which new words did you learn?",
            f"I learned the word \"{words[0]}\".",
            "Good. Can you use it in a sentence?",
            "I will try. Can you help me?",
            "Of course. Take your time.",
            f"I think {theme} is important for many people.",
            "Why do you think so?",
            "Because it is part of our daily life.",
            "That is a good answer. Well done!",
        ]
        return {
            "instruction": PRACTICE_INSTRUCTION,
            "dialogue": [{"character": SPEAKERS[i % 2], "line": line} for i, line in enumerate(lines)],
            "followUpQuestions": list(DEFAULT_FOLLOW_UPS),
        }


class DialogueFillGapGenerator(SectionGenerator):
    name = "dialogueFillGap"
    temperature = 0.7
    max_tokens = 2000

    def build_prompt(self, context: SharedContext, previous: Previous) -> str:
        extra = (
            f"5. This is a fill-in-the-gap exercise: replace ONE important word with {GAP} in 3-5 of the lines\n"
            "6. After the dialogue add one line \"ANSWERS: word1, word2, ...\" listing the missing "
            "words in order\n"
        )
        return _dialogue_prompt(context, vocabulary_words(context, previous), extra)

    async def generate(self, context: SharedContext, previous: Previous, strict: bool, usage: UsageMeter) -> Any:
        turns, extras = parse_dialogue(await self.ask(self.build_prompt(context, previous), strict, usage))
        for turn in turns:
            if GAP in turn["line"]:
                turn["isGap"] = True
        answers: List[str] = []
        for line in extras:
            match = re.match(r"^ANSWERS?\s*:\s*(.+)$", line, re.IGNORECASE)
            if match:
                answers = [a.strip() for a in match.group(1).split(",") if a.strip()]
        return {"instruction": FILL_GAP_INSTRUCTION, "dialogue": turns, "answers": answers}

    def validate(self, content: Any, context: SharedContext) -> ValidationResult:
        if not isinstance(content, dict):
            return ValidationResult(False, ["content is not an object"])
        turns = content.get("dialogue")
        issues = validate_turns(turns)
        if not issues:
            gaps = sum(1 for turn in turns if turn.get("isGap"))
            answers = content.get("answers") or []
            if gaps == 0:
                issues.append("dialogue has no gaps")
            elif len(answers) != gaps:
                issues.append(f"{gaps} gaps but {len(answers)} answers")
        return ValidationResult(not issues, issues)

    def fallback(self, context: SharedContext, previous: Previous) -> Any:
        theme = context.main_theme
        lines = [
            (f"Hello! I want to {GAP} about {theme}.", "learn"),
            ("That sounds interesting. What do you know already?", None),
            ("Not much. I read a short text about it.", None),
            (f"What did you {GAP} most interesting?", "find"),
            ("I liked the new words in the text.", None),
            ("Good. Can you tell me one of them?", None),
            ("Yes, I can. I wrote them in my notebook.", None),
            (f"Great. Let's {GAP} them together.", "practice"),
            ("Thank you. That will help me a lot.", None),
            ("You are welcome. Read the first word.", None),
            ("Okay. I am ready to start now.", None),
            ("Perfect. Let's begin the lesson.", None),
        ]
        dialogue, answers = [], []
        for index, (line, answer) in enumerate(lines):
            turn: Dict[str, Any] = {"character": SPEAKERS[index % 2], "line": line}
            if answer:
                turn["isGap"] = True
                answers.append(answer)
            dialogue.append(turn)
        return {"instruction": FILL_GAP_INSTRUCTION, "dialogue": dialogue, "answers": answers}
