"""
Markdown export of a lesson
"""
from typing import Any, Dict, Iterable, List, Optional

SECTION_TITLES = {
    "warmup": "Warm-up Questions",
    "vocabulary": "Key Vocabulary",
    "reading": "Reading Passage",
    "comprehension": "Reading Comprehension",
    "discussion": "Discussion Questions",
    "grammar": "Grammar Focus",
    "pronunciation": "Pronunciation Practice",
    "dialoguePractice": "Dialogue Practice",
    "dialogueFillGap": "Dialogue Fill-in-the-Gap",
    "wrapup": "Lesson Wrap-up",
}


def _question_list(lines: List[str], content: Any):
    if isinstance(content, str):
        lines.append(content.strip())
        lines.append("")
        return
    items = [str(item) for item in content or []]
    if items and not items[0].rstrip().endswith("?"):
        lines.append(f"_{items[0]}_")
        lines.append("")
        items = items[1:]
    for i, item in enumerate(items, 1):
        lines.append(f"{i}. {item}")
    lines.append("")


def _vocabulary(lines: List[str], content: Any):
    for entry in content or []:
        if not isinstance(entry, dict):
            continue
        if entry.get("word") == "INSTRUCTION":
            lines.append(f"_{entry.get('meaning', '')}_")
            lines.append("")
            continue
        lines.append(f"### {entry.get('word', '')}")
        lines.append("")
        if entry.get("meaning"):
            lines.append(f"**Meaning:** {entry['meaning']}")
            lines.append("")
        for example in entry.get("examples") or []:
            lines.append(f"- {example}")
        lines.append("")


def _grammar(lines: List[str], content: Any):
    if not isinstance(content, dict):
        return
    lines.append(f"**Focus:** {content.get('focus', '')}")
    lines.append("")
    explanation = content.get("explanation")
    if isinstance(explanation, dict):
        for key, label in (("form", "Form"), ("usage", "Usage"), ("levelNotes", "Level notes")):
            if explanation.get(key):
                lines.append(f"- **{label}:** {explanation[key]}")
        lines.append("")
    elif explanation:
        lines.append(str(explanation))
        lines.append("")

    if content.get("examples"):
        lines.append("### Examples")
        lines.append("")
        lines.extend(f"- {example}" for example in content["examples"])
        lines.append("")
    if content.get("exercise"):
        lines.append("### Exercises")
        lines.append("")
        lines.extend(f"{i}. {item}" for i, item in enumerate(content["exercise"], 1))
        lines.append("")
    _answers(lines, content.get("answers"))


def _pronunciation(lines: List[str], content: Any):
    if not isinstance(content, dict):
        return
    if "words" not in content:
        lines.append(f"**{content.get('word', '')}** {content.get('ipa', '')}")
        lines.append("")
        if content.get("practice"):
            lines.append(content["practice"])
            lines.append("")
        return

    if content.get("instruction"):
        lines.append(f"_{content['instruction']}_")
        lines.append("")
    for entry in content.get("words") or []:
        lines.append(f"### {entry.get('word', '')} {entry.get('ipa', '')}".rstrip())
        lines.append("")
        if entry.get("difficultSounds"):
            lines.append(f"**Difficult sounds:** {', '.join(entry['difficultSounds'])}")
        lines.extend(f"- {tip}" for tip in entry.get("tips") or [])
        if entry.get("practiceSentence"):
            lines.append(f"**Practice:** {entry['practiceSentence']}")
        lines.append("")
    twisters = content.get("tongueTwisters") or []
    if twisters:
        lines.append("### Tongue Twisters")
        lines.append("")
        for twister in twisters:
            sounds = ", ".join(twister.get("targetSounds") or [])
            lines.append(f"- {twister.get('text', '')}" + (f" ({sounds})" if sounds else ""))
        lines.append("")


def _dialogue(lines: List[str], content: Any):
    if not isinstance(content, dict):
        return
    if content.get("instruction"):
        lines.append(f"_{content['instruction']}_")
        lines.append("")
    for turn in content.get("dialogue") or []:
        lines.append(f"**{turn.get('character', '')}:** {turn.get('line', '')}")
        lines.append("")
    follow_ups = content.get("followUpQuestions") or []
    if follow_ups:
        lines.append("### Follow-up Questions")
        lines.append("")
        lines.extend(f"{i}. {q}" for i, q in enumerate(follow_ups, 1))
        lines.append("")
    _answers(lines, content.get("answers"))


def _answers(lines: List[str], answers: Optional[Iterable[str]]):
    answers = [a for a in answers or [] if a]
    if answers:
        lines.append("**Answers:** " + ", ".join(f"{i}. {a}" for i, a in enumerate(answers, 1)))
        lines.append("")


RENDERERS = {
    "warmup": _question_list,
    "vocabulary": _vocabulary,
    "reading": _question_list,
    "comprehension": _question_list,
    "discussion": _question_list,
    "grammar": _grammar,
    "pronunciation": _pronunciation,
    "dialoguePractice": _dialogue,
    "dialogueFillGap": _dialogue,
    "wrapup": _question_list,
}


def render_lesson_markdown(
    lesson: Dict[str, Any],
    title: Optional[str] = None,
    enabled_sections: Optional[Iterable[str]] = None
) -> str:
    """Render every present section of a lesson to Markdown, in lesson order."""
    sections = lesson.get("sections") or {}
    enabled = set(enabled_sections) if enabled_sections is not None else set(SECTION_TITLES)

    output_lines = [f"# {title or lesson.get('title') or 'Lesson'}", ""]
    meta = [
        ("Lesson type", lesson.get("lessonType")),
        ("Level", lesson.get("studentLevel")),
        ("Target language", lesson.get("targetLanguage")),
    ]
    for label, value in meta:
        if value:
            output_lines.append(f"- **{label}**: {value}")
    output_lines.append("")
    output_lines.append("---")
    output_lines.append("")

    for name, section_title in SECTION_TITLES.items():
        content = sections.get(name)
        if name not in enabled or not content:
            continue
        output_lines.append(f"## {section_title}")
        output_lines.append("")
        RENDERERS[name](output_lines, content)

    return "\n".join(output_lines).rstrip() + "\n"
