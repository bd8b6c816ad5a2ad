import pytest
from sqlalchemy import select

from app.models.forum_model import ForumThread
from app.services import forums as forum_service
from app.services.errors import InvalidRequest, NotFound


@pytest.mark.asyncio
async def test_create_forum_is_listed(db):
    created = await forum_service.create_forum(
        db, name="  Science Fair  ", description="Projects", category="students", sort_order=3
    )

    assert created.name == "Science Fair"
    assert created.is_active is True
    assert [f.id for f in await forum_service.list_forums(db)] == [created.id]


@pytest.mark.asyncio
async def test_create_forum_needs_a_name(db):
    with pytest.raises(InvalidRequest):
        await forum_service.create_forum(db, name="   ")


@pytest.mark.asyncio
async def test_update_forum_changes_only_given_fields(db, factory):
    forum = await factory.forum("Math", sort_order=2)

    updated = await forum_service.update_forum(
        db, forum_id=forum.id, changes={"description": "Numbers", "name": None}
    )

    assert updated.name == "Math"
    assert updated.description == "Numbers"
    assert updated.category == "general"
    assert updated.sort_order == 2


@pytest.mark.asyncio
async def test_update_forum_rejects_blank_name_and_missing_forum(db, factory):
    forum = await factory.forum()

    with pytest.raises(InvalidRequest):
        await forum_service.update_forum(db, forum_id=forum.id, changes={"name": " "})
    with pytest.raises(NotFound):
        await forum_service.update_forum(db, forum_id=forum.id + 1, changes={"name": "x"})


@pytest.mark.asyncio
async def test_deactivate_forum_hides_it_until_reopened(db, factory):
    forum = await factory.forum("Old News")
    thread = await factory.thread(forum)

    await forum_service.deactivate_forum(db, forum_id=forum.id)

    assert await forum_service.list_forums(db) == []
    with pytest.raises(NotFound):
        await forum_service.get_forum(db, forum_id=forum.id)
    # soft delete keeps the forum's threads
    kept = (await db.execute(select(ForumThread.id).where(ForumThread.forum_id == forum.id))).scalars().all()
    assert kept == [thread.id]

    reopened = await forum_service.update_forum(db, forum_id=forum.id, changes={"is_active": True})
    assert reopened.is_active is True
    assert (await forum_service.get_forum(db, forum_id=forum.id)).name == "Old News"


@pytest.mark.asyncio
async def test_deactivate_missing_forum_is_not_found(db):
    with pytest.raises(NotFound):
        await forum_service.deactivate_forum(db, forum_id=99999999999999999999)


@pytest.mark.asyncio
async def test_get_forum_with_out_of_range_id_is_not_found(db):
    with pytest.raises(NotFound):
        await forum_service.get_forum(db, forum_id=-1)
