"""Tests for the public lesson library and admin routes."""

import uuid
from datetime import datetime, timezone

import pytest

from linguaspark.core.lesson_store import clamp_limit, validate_public_lesson_content
from linguaspark.models import PublicLesson, Tutor


VALID_LESSON = {
    "title": "Green Rooftops in the City",
    "warmup": ["Talk with your tutor:", "Do you grow any plants at home?"],
    "vocabulary": [{"word": "harvest", "meaning": "the crop gathered", "examples": ["The harvest was good."]}],
    "wrapup": {"summary": "We talked about city gardens."},
    "metadata": {"cefr_level": "B1", "lesson_type": "discussion", "source_title": "City Farming Weekly"},
}

VALID_METADATA = {"category": "culture", "tags": ["gardens", "cities"], "estimated_duration_minutes": 45}


@pytest.fixture
def as_admin(mock_db_session, current_user):
    mock_db_session.get.return_value = Tutor(id=uuid.UUID(current_user.id), email=current_user.email, is_admin=True)


def public_lesson(**overrides):
    fields = dict(
        id=uuid.uuid4(),
        creator_id=uuid.uuid4(),
        title="Green Rooftops in the City",
        content=VALID_LESSON,
        category="culture",
        cefr_level="B1",
        lesson_type="discussion",
        tags=["gardens"],
        created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return PublicLesson(**fields)


def test_clamp_limit():
    assert clamp_limit(None) == 20
    assert clamp_limit(0) == 1
    assert clamp_limit(500) == 100
    assert clamp_limit(35) == 35


def test_content_validation_lists_every_problem():
    errors = validate_public_lesson_content({"title": " ", "metadata": {"cefr_level": "B1"}})
    assert errors == [
        "Lesson title is required",
        "Warmup section with at least one question is required",
        "Wrapup section with summary is required",
        "At least one main content section (vocabulary, grammar, reading, discussion, or pronunciation) is required",
        "Lesson type is required in metadata",
    ]
    assert validate_public_lesson_content(VALID_LESSON) == []


@pytest.mark.anyio
async def test_list_is_open_and_uncached(async_client):
    response = await async_client.get("/api/public-lessons")

    assert response.status_code == 200
    assert response.json() == {"success": True, "lessons": [], "nextCursor": None}
    assert "no-store" in response.headers["cache-control"]


@pytest.mark.anyio
async def test_full_page_returns_next_cursor(async_client, mock_db_session):
    mock_db_session.execute.return_value.scalars.return_value.all.return_value = [public_lesson()]

    response = await async_client.get("/api/public-lessons", params={"limit": 1, "category": "culture"})

    data = response.json()
    assert len(data["lessons"]) == 1
    assert data["nextCursor"] == "2024-05-01T12:00:00+00:00"


@pytest.mark.anyio
@pytest.mark.parametrize("params", [{"category": "cooking"}, {"cefr_level": "C2"}, {"lesson_type": "poetry"}])
async def test_list_rejects_unknown_filters(async_client, params):
    response = await async_client.get("/api/public-lessons", params=params)
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_list_rejects_malformed_cursor(async_client):
    response = await async_client.get("/api/public-lessons", params={"cursor": "yesterday"})
    assert response.status_code == 400


@pytest.mark.anyio
async def test_get_missing_public_lesson(async_client):
    response = await async_client.get(f"/api/public-lessons/{uuid.uuid4()}")
    assert response.status_code == 404


@pytest.mark.anyio
async def test_create_requires_admin(async_client, mock_db_session, current_user):
    mock_db_session.get.return_value = Tutor(id=uuid.UUID(current_user.id), email=current_user.email, is_admin=False)

    response = await async_client.post("/api/public-lessons", json={"lesson": VALID_LESSON, "metadata": VALID_METADATA})

    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"
    mock_db_session.commit.assert_not_awaited()


@pytest.mark.anyio
async def test_create_as_admin(async_client, as_admin, mock_db_session, current_user):
    response = await async_client.post("/api/public-lessons", json={"lesson": VALID_LESSON, "metadata": VALID_METADATA})

    assert response.status_code == 200
    assert uuid.UUID(response.json()["id"])
    created = mock_db_session.add.call_args.args[0]
    assert created.category == "culture"
    assert created.cefr_level == "B1"
    assert created.source_title == "City Farming Weekly"
    assert str(created.creator_id) == current_user.id


@pytest.mark.anyio
async def test_create_rejects_incomplete_lesson(async_client, as_admin):
    lesson = dict(VALID_LESSON, warmup=[])
    response = await async_client.post("/api/public-lessons", json={"lesson": lesson, "metadata": VALID_METADATA})

    assert response.status_code == 400
    assert response.json()["details"]["suggestions"] == ["Warmup section with at least one question is required"]


@pytest.mark.anyio
async def test_create_rejects_unknown_category(async_client, as_admin):
    metadata = dict(VALID_METADATA, category="cooking")
    response = await async_client.post("/api/public-lessons", json={"lesson": VALID_LESSON, "metadata": metadata})
    assert response.status_code == 400


@pytest.mark.anyio
async def test_delete_as_admin(async_client, as_admin, mock_db_session):
    response = await async_client.delete(f"/api/public-lessons/{uuid.uuid4()}")
    assert response.json() == {"success": True}
    mock_db_session.commit.assert_awaited()


@pytest.mark.anyio
async def test_check_status(async_client, as_admin, current_user):
    response = await async_client.get("/api/admin/check-status")
    assert response.json() == {"isAdmin": True, "userId": current_user.id}


@pytest.mark.anyio
async def test_check_status_for_unknown_tutor(async_client, current_user):
    response = await async_client.get("/api/admin/check-status")
    assert response.json() == {"isAdmin": False, "userId": current_user.id}


@pytest.mark.anyio
async def test_stats_as_admin(async_client, as_admin):
    response = await async_client.get("/api/admin/stats")

    stats = response.json()["stats"]
    assert stats["total_lessons"] == 0
    assert stats["lessons_by_category"] == {}
    assert stats["recent_lessons"] == []
    assert stats["my_lessons_count"] == 0
