"""
Grammar focus section
"""
from typing import Any, Dict, List

from linguaspark.core.llm import UsageMeter, coerce_to_json
from linguaspark.core.sections.base import Previous, SectionGenerator
from linguaspark.core.sections.policy import ValidationResult
from linguaspark.core.shared_context import CEFRLevel, SharedContext

LEVEL_GRAMMAR_POINTS = {
    CEFRLevel.A1: "present simple, articles, basic prepositions",
    CEFRLevel.A2: "past simple, comparatives, modal verbs",
    CEFRLevel.B1: "present perfect, conditionals, passive voice",
    CEFRLevel.B2: "relative clauses, advanced conditionals, reported speech",
    CEFRLevel.C1: "subjunctive, cleft sentences, inversion",
}

MIN_EXAMPLES = 3
MIN_EXERCISES = 3


def _strings(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    return [v.strip() for v in values if isinstance(v, str) and v.strip()]


class GrammarGenerator(SectionGenerator):
    name = "grammar"
    temperature = 0.5
    max_tokens = 3000

    def build_prompt(self, context: SharedContext) -> str:
        level = context.difficulty_level
        return f"""Identify ONE grammar point from this text for {level.value} level.

Text: {context.source_text[:200]}

Suggested: {LEVEL_GRAMMAR_POINTS[level]}

Return CONCISE JSON (brief explanations, 3 examples, 3 exercises):
{{
  "grammarPoint": "Name",
  "explanation": {{
    "form": "How to form (1 sentence)",
    "usage": "When to use (1 sentence)",
    "levelNotes": "Level note (1 sentence)"
  }},
  "examples": ["example 1", "example 2", "example 3"],
  "exercises": [
    {{"prompt": "Exercise 1 with _____", "answer": "Answer 1"}},
    {{"prompt": "Exercise 2 with _____", "answer": "Answer 2"}},
    {{"prompt": "Exercise 3 with _____", "answer": "Answer 3"}}
  ]
}}"""

    async def generate(self, context: SharedContext, previous: Previous, strict: bool, usage: UsageMeter) -> Any:
        data = coerce_to_json(await self.ask(self.build_prompt(context), strict, usage))
        if not isinstance(data, dict):
            raise ValueError("grammar reply is not a JSON object")

        explanation = data.get("explanation") if isinstance(data.get("explanation"), dict) else {}
        exercises, answers = [], []
        for item in data.get("exercises") or data.get("exercise") or []:
            if isinstance(item, dict) and isinstance(item.get("prompt"), str):
                exercises.append(item["prompt"].strip())
                answers.append(str(item.get("answer") or "").strip())
            elif isinstance(item, str) and item.strip():
                exercises.append(item.strip())

        content: Dict[str, Any] = {
            "focus": str(data.get("grammarPoint") or data.get("focus") or "").strip(),
            "explanation": {
                "form": str(explanation.get("form") or "").strip(),
                "usage": str(explanation.get("usage") or "").strip(),
                "levelNotes": str(explanation.get("levelNotes") or "").strip(),
            },
            "examples": _strings(data.get("examples")),
            "exercise": exercises,
        }
        if any(answers):
            content["answers"] = answers
        return content

    def validate(self, content: Any, context: SharedContext) -> ValidationResult:
        if not isinstance(content, dict):
            return ValidationResult(False, ["content is not an object"])
        issues = []
        if not content.get("focus"):
            issues.append("missing grammar focus")
        explanation = content.get("explanation") or {}
        if not explanation.get("form") or not explanation.get("usage"):
            issues.append("explanation needs form and usage")
        if len(_strings(content.get("examples"))) < MIN_EXAMPLES:
            issues.append(f"need at least {MIN_EXAMPLES} examples")
        if len(_strings(content.get("exercise"))) < MIN_EXERCISES:
            issues.append(f"need at least {MIN_EXERCISES} exercises")
        return ValidationResult(not issues, issues)

    def fallback(self, context: SharedContext, previous: Previous) -> Any:
        return {
            "focus": "Present Perfect Tense",
            "explanation": {
                "form": "Subject + have/has + past participle (I have learned, she has finished).",
                "usage": "Use it for past actions connected to the present or for experiences without a specific time.",
                "levelNotes": "Compare it with the past simple, which needs a finished time.",
            },
            "examples": [
                "I have learned many new things.",
                "She has improved her skills.",
                "We have discussed this topic.",
            ],
            "exercise": [
                "I _____ (learn) a lot today.",
                "They _____ (complete) the project.",
                "She _____ (improve) significantly.",
            ],
            "answers": ["have learned", "have completed", "has improved"],
        }
