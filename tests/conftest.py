"""Shared fixtures: a scripted LLM, a mocked database session and an HTTP client."""

import asyncio
import json
import re
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from linguaspark.core.llm import LLMProvider
from linguaspark.core.security import CurrentUser

SOURCE_TEXT = (
    "Across many cities, neighbours are turning empty rooftops into small gardens. "
    "They grow tomatoes, herbs and beans together and share the harvest with local families. "
    "Volunteers say the work builds a stronger community and teaches children where food comes from. "
    "Experts believe rooftop gardens can also cool buildings during hot summers and help the climate. "
    "Some projects now sell vegetables at weekend markets to pay for seeds and tools. "
    "Organisers hope that every district will soon have at least one shared green space."
)

VOCABULARY = ["garden", "community", "climate", "neighbour", "rooftop", "harvest", "volunteer", "sustainable"]

CONTEXT_REPLY = json.dumps({
    "title": "Green Rooftops in the City",
    "themes": ["urban gardens", "community life", "climate"],
    "vocabulary": VOCABULARY,
    "summary": "City neighbours grow food on rooftops. The gardens bring people together and help the climate.",
})

WARMUP_REPLY = """Do you like spending time in green places near your home?
How often do you eat food that was grown close to you?
What do you enjoy doing with your neighbours?"""

VOCABULARY_REPLY = json.dumps([
    {
        "word": word,
        "meaning": f"Meaning of {word}.",
        "examples": [
            f"We talked about the {word} in class today.",
            f"My friend knows a lot about the {word}.",
            f"Everyone agreed that the {word} was important.",
            f"I wrote the word {word} in my notebook.",
        ],
    }
    for word in VOCABULARY
])

READING_REPLY = " ".join([
    "In many big cities, people are changing empty rooftops into green gardens.",
    "Neighbours meet after work and plant tomatoes, herbs and beans in wooden boxes.",
    "When the harvest is ready, they share the vegetables with families who live nearby.",
    "Many volunteers say that working together makes the community stronger and friendlier.",
    "Children visit the gardens with their teachers and learn where their food comes from.",
    "Experts explain that plants on a rooftop can keep a building cooler in summer.",
    "This is good for the climate because people use less energy for air conditioning.",
    "Some groups sell extra vegetables at small markets and buy new seeds with the money.",
    "The organisers hope every part of the city will have a sustainable green space soon.",
])

COMPREHENSION_REPLY = """What do people grow on the rooftops?
Who receives the vegetables after the harvest?
Why do volunteers enjoy working in the gardens?
How can rooftop plants help a building in summer?
What do some groups do with extra vegetables?"""

DISCUSSION_REPLY = """Would you like to grow your own vegetables at home?
How could your neighbourhood use empty spaces in a better way?
What are the benefits of working together with your neighbours?
Do you think cities should pay for more green spaces?
How might rooftop gardens change cities in the future?"""

GRAMMAR_REPLY = json.dumps({
    "grammarPoint": "Present Simple for Habits",
    "explanation": {
        "form": "Subject + base verb (add -s for he, she, it).",
        "usage": "Use it for habits and general truths.",
        "levelNotes": "Watch the third person -s.",
    },
    "examples": [
        "Neighbours grow vegetables on the roof.",
        "She waters the plants every morning.",
        "They share the harvest with families.",
    ],
    "exercises": [
        {"prompt": "He _____ (plant) beans every spring.", "answer": "plants"},
        {"prompt": "We _____ (meet) after work.", "answer": "meet"},
        {"prompt": "The garden _____ (help) the climate.", "answer": "helps"},
    ],
})

TWISTER_REPLY = """TWISTER_1: Three thin thistles thrive on the roof
SOUNDS_1: th, r
DIFFICULTY_1: moderate

TWISTER_2: Sharing shiny shallots should show real charity
SOUNDS_2: sh, ch
DIFFICULTY_2: moderate"""

DIALOGUE_LINES = [
    ("Student", "Hi! I read about rooftop gardens this week."),
    ("Tutor", "That sounds interesting. What did you learn?"),
    ("Student", "People grow vegetables on the roofs of their buildings."),
    ("Tutor", "Why do you think they do that?"),
    ("Student", "I think they want fresh food and a stronger community."),
    ("Tutor", "Good point. Do you have a garden at home?"),
    ("Student", "No, but my neighbour has a small one."),
    ("Tutor", "What does your neighbour grow there?"),
    ("Student", "She grows herbs and some tomatoes every summer."),
    ("Tutor", "Do you help her with the harvest?"),
    ("Student", "Sometimes I do, and she gives me some tomatoes."),
    ("Tutor", "That is a lovely way to share food."),
    ("Student", "Yes, and it is good for the climate too."),
    ("Tutor", "Exactly. Well done, your explanation was very clear."),
]

PRACTICE_REPLY = "\n".join(f"{who}: {line}" for who, line in DIALOGUE_LINES) + """
FOLLOW_UP: Would you like to join a community garden?
FOLLOW_UP: What would you grow on a rooftop?
FOLLOW_UP: How can gardens help people in your city?"""

FILL_GAP_LINES = list(DIALOGUE_LINES)
FILL_GAP_LINES[2] = ("Student", "People _____ vegetables on the roofs of their buildings.")
FILL_GAP_LINES[6] = ("Student", "No, but my _____ has a small one.")
FILL_GAP_LINES[10] = ("Student", "Sometimes I do, and she gives me some _____.")
FILL_GAP_REPLY = "\n".join(f"{who}: {line}" for who, line in FILL_GAP_LINES) + "\nANSWERS: grow, neighbour, tomatoes"

WRAPUP_REPLY = """Which new words from today will you use this week?
What was the most surprising idea in this lesson?
How would you explain rooftop gardens to a friend?"""


def pronunciation_reply(prompt: str) -> str:
    word = re.search(r'for the word "([^"]+)"', prompt).group(1)
    return f"""WORD: {word}
IPA: /{word.lower()}/
DIFFICULT_SOUNDS: /r/, /θ/
TIP_1: Curl the tongue back slightly for /r/.
TIP_2: Put the tongue between the teeth for /θ/.
PRACTICE: Our {word} helps the whole street."""


DEFAULT_REPLIES = {
    "context": CONTEXT_REPLY,
    "warmup": WARMUP_REPLY,
    "vocabulary": VOCABULARY_REPLY,
    "reading": READING_REPLY,
    "comprehension": COMPREHENSION_REPLY,
    "discussion": DISCUSSION_REPLY,
    "grammar": GRAMMAR_REPLY,
    "pronunciation": pronunciation_reply,
    "twisters": TWISTER_REPLY,
    "dialogueFillGap": FILL_GAP_REPLY,
    "dialoguePractice": PRACTICE_REPLY,
    "wrapup": WRAPUP_REPLY,
}

# Checked in order; the fill-gap prompt also carries the shared dialogue wording
PROMPT_MARKERS = (
    ("context", "Analyze this text for a"),
    ("warmup", "Create 3 warm-up questions"),
    ("vocabulary", "Create vocabulary entries"),
    ("reading", "Rewrite this text for"),
    ("comprehension", "comprehension questions"),
    ("discussion", "Create exactly 5 discussion questions"),
    ("grammar", "Identify ONE grammar point"),
    ("pronunciation", "Create pronunciation practice for the word"),
    ("twisters", "tongue twisters"),
    ("dialogueFillGap", "fill-in-the-gap exercise"),
    ("dialoguePractice", "Create a natural conversation between a Student and a Tutor"),
    ("wrapup", "wrap-up questions"),
)


def route_prompt(prompt: str) -> str:
    for key, marker in PROMPT_MARKERS:
        if marker in prompt:
            return key
    raise AssertionError(f"Unrouted prompt: {prompt[:80]}")


class FakeLLM(LLMProvider):
    """
    Scripted provider. `replies` overrides DEFAULT_REPLIES per prompt kind; a value
    may be a string, a callable taking the prompt, an exception instance to raise,
    or a list consumed one item per call. `delays` holds seconds to wait before
    answering a prompt kind.
    """

    model_name = "fake-model"

    def __init__(self, replies: Optional[Dict[str, Any]] = None, tokens_per_call: int = 10,
                 delays: Optional[Dict[str, float]] = None):
        self.replies = dict(DEFAULT_REPLIES)
        self.replies.update(replies or {})
        self.tokens_per_call = tokens_per_call
        self.delays = delays or {}
        self.calls: List[Tuple[str, str]] = []

    def calls_for(self, kind: str) -> List[str]:
        return [prompt for key, prompt in self.calls if key == kind]

    async def _complete(self, prompt_text, temperature, max_tokens):
        kind = route_prompt(prompt_text)
        self.calls.append((kind, prompt_text))
        if kind in self.delays:
            await asyncio.sleep(self.delays[kind])
        reply = self.replies[kind]
        if isinstance(reply, list):
            reply = reply.pop(0) if len(reply) > 1 else reply[0]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(prompt_text)
        return reply, self.tokens_per_call


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def source_text():
    return SOURCE_TEXT


@pytest.fixture
def current_user():
    return CurrentUser(id="3f1c2a6e-8a44-4c55-9d61-0b7d3c1e2f90", email="tutor@example.com", token="test-token")


@pytest.fixture
def mock_db_session():
    session = MagicMock()
    session.get = AsyncMock(return_value=None)
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.refresh = AsyncMock()
    session.scalar = AsyncMock(return_value=0)
    result = MagicMock()
    result.rowcount = 1
    result.scalars.return_value.all.return_value = []
    result.all.return_value = []
    session.execute = AsyncMock(return_value=result)
    return session


@pytest.fixture
async def async_client(mock_db_session, current_user):
    from linguaspark.core.security import get_current_user
    from linguaspark.db import get_session
    from linguaspark.main import app
    from linguaspark.routes.lesson_routes import get_session_factory

    async def _get_session():
        yield mock_db_session

    @asynccontextmanager
    async def _session_factory():
        yield mock_db_session

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.dependency_overrides[get_session_factory] = lambda: _session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
