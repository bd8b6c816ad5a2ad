import pytest
from sqlalchemy import Update, select
from sqlalchemy.exc import OperationalError

from app.models.forum_model import ForumThread
from app.services import threads as thread_service
from app.services.errors import InvalidRequest, NotFound, StorageFailure
from app.utils.pagination import resolve_page_params
from tests.factories import BASE_TIME, at


async def _list(db, forum_id=None, **raw):
    return await thread_service.list_threads(db, forum_id=forum_id, params=resolve_page_params(**raw))


async def _view_count(db, thread_id):
    return (await db.execute(select(ForumThread.view_count).where(ForumThread.id == thread_id))).scalar_one()


@pytest.mark.asyncio
async def test_thread_without_posts_reports_zero_and_own_creation_time(db, factory):
    forum = await factory.forum()
    thread = await factory.thread(forum, created_at=at(5))

    page = await _list(db)

    [item] = page.threads
    assert item.id == thread.id
    assert item.post_count == 0
    assert item.reaction_count == 0
    assert item.last_activity == at(5)


@pytest.mark.asyncio
async def test_metrics_aggregate_posts_and_reactions_without_double_counting(db, factory):
    forum = await factory.forum()
    thread = await factory.thread(forum, created_at=at(0))
    first = await factory.post(thread, at(1))
    reply = await factory.post(thread, at(7), parent=first)
    await factory.post(thread, at(3))
    await factory.reactions(first, "like", 2)
    await factory.reaction(reply, "someone", "helpful")

    [item] = (await _list(db)).threads

    assert item.post_count == 3
    assert item.reaction_count == 3
    assert item.last_activity == at(7)


@pytest.mark.asyncio
async def test_last_activity_never_precedes_thread_creation(db, factory):
    forum = await factory.forum()
    # imported post that predates its thread
    thread = await factory.thread(forum, created_at=at(10))
    await factory.post(thread, at(2))

    [item] = (await _list(db)).threads

    assert item.post_count == 1
    assert item.last_activity == at(10)


@pytest.mark.asyncio
async def test_author_name_uses_user_row_or_placeholder(db, factory):
    forum = await factory.forum()
    await factory.user("known", name="Ada Lovelace")
    await factory.user("blank", name="  ")
    await factory.thread(forum, user_id="known", created_at=at(3))
    await factory.thread(forum, user_id="ghost", created_at=at(2))
    await factory.thread(forum, user_id="blank", created_at=at(1))

    names = [t.author_name for t in (await _list(db, sort="newest")).threads]

    assert names == ["Ada Lovelace", "User ghost", "User blank"]


@pytest.mark.asyncio
async def test_sort_orders(db, factory):
    forum = await factory.forum()
    a = await factory.thread(forum, title="a", created_at=at(0), view_count=5)
    b = await factory.thread(forum, title="b", created_at=at(1), view_count=50)
    c = await factory.thread(forum, title="c", created_at=at(2), view_count=1)
    # a is the most recently active, b the most reacted
    await factory.post(a, at(30))
    b_post = await factory.post(b, at(4))
    await factory.reactions(b_post, "like", 3)

    async def ids(sort):
        return [t.id for t in (await _list(db, sort=sort)).threads]

    assert await ids("newest") == [c.id, b.id, a.id]
    assert await ids("oldest") == [a.id, b.id, c.id]
    assert await ids("active") == [a.id, b.id, c.id]
    assert await ids("popular") == [b.id, a.id, c.id]
    # a and c tie on zero reactions; newer id first
    assert await ids("engaging") == [b.id, c.id, a.id]


@pytest.mark.asyncio
async def test_unknown_sort_matches_active(db, factory):
    forum = await factory.forum()
    for minute in (3, 1, 2):
        t = await factory.thread(forum, created_at=at(minute))
        await factory.post(t, at(10 - minute))

    bogus = await _list(db, sort="bogus")
    active = await _list(db, sort="active")

    assert [t.id for t in bogus.threads] == [t.id for t in active.threads]


@pytest.mark.asyncio
async def test_ties_are_broken_deterministically(db, factory):
    forum = await factory.forum()
    created = [await factory.thread(forum, created_at=BASE_TIME) for _ in range(4)]

    first = await _list(db, sort="engaging")
    second = await _list(db, sort="engaging")

    assert [t.id for t in first.threads] == [t.id for t in second.threads]
    assert [t.id for t in first.threads] == sorted((t.id for t in created), reverse=True)
    assert first.total == second.total == 4


@pytest.mark.asyncio
async def test_pages_partition_the_listing_and_total_ignores_the_page(db, factory):
    forum = await factory.forum()
    for minute in range(5):
        await factory.thread(forum, created_at=at(minute))

    full = await _list(db, sort="newest")
    page1 = await _list(db, sort="newest", limit="2")
    page2 = await _list(db, sort="newest", limit="2", offset="2")
    page3 = await _list(db, sort="newest", limit="2", offset="4")

    assert [p.total for p in (page1, page2, page3)] == [5, 5, 5]
    stitched = [t.id for p in (page1, page2, page3) for t in p.threads]
    assert stitched == [t.id for t in full.threads]
    assert (page2.limit, page2.offset) == (2, 2)


@pytest.mark.asyncio
async def test_forum_filter_scopes_rows_and_total(db, factory):
    math = await factory.forum("Math")
    art = await factory.forum("Art")
    await factory.thread(math, created_at=at(1))
    await factory.thread(math, created_at=at(2))
    await factory.thread(art, created_at=at(3))

    page = await _list(db, forum_id=math.id, limit="1")

    assert page.total == 2
    assert len(page.threads) == 1
    assert page.threads[0].forum_id == math.id
    assert (await _list(db)).total == 3


@pytest.mark.asyncio
async def test_listing_includes_tags_in_insertion_order(db, factory):
    forum = await factory.forum()
    await factory.thread(forum, tags=["python", "algebra", "exam"])

    [item] = (await _list(db)).threads

    assert item.tags == ["python", "algebra", "exam"]


@pytest.mark.asyncio
async def test_get_thread_returns_detail_and_counts_the_view(db, factory):
    forum = await factory.forum("Homework Help")
    await factory.user("user_1", name="Grace")
    thread = await factory.thread(forum, view_count=7, tags=["b", "a"])
    await factory.post(thread, at(1))

    detail = await thread_service.get_thread(db, thread_id=thread.id)

    assert detail.forum_name == "Homework Help"
    assert detail.author_name == "Grace"
    assert detail.tags == ["b", "a"]
    assert detail.post_count == 1
    # value as read, before this view
    assert detail.view_count == 7
    assert await _view_count(db, thread.id) == 8


@pytest.mark.asyncio
async def test_get_thread_twice_increments_by_two(db, factory):
    forum = await factory.forum()
    thread = await factory.thread(forum, view_count=3)
    other = await factory.thread(forum, view_count=0)

    await thread_service.get_thread(db, thread_id=thread.id)
    await thread_service.get_thread(db, thread_id=other.id)
    await thread_service.get_thread(db, thread_id=thread.id)

    assert await _view_count(db, thread.id) == 5
    assert await _view_count(db, other.id) == 1


@pytest.mark.asyncio
async def test_get_thread_does_not_touch_updated_at(db, factory):
    forum = await factory.forum()
    thread = await factory.thread(forum, created_at=at(0))

    await thread_service.get_thread(db, thread_id=thread.id)

    updated = (await db.execute(select(ForumThread.updated_at).where(ForumThread.id == thread.id))).scalar_one()
    assert updated == at(0)


@pytest.mark.asyncio
async def test_get_missing_thread_is_not_found(db, factory):
    await factory.forum()
    with pytest.raises(NotFound) as exc:
        await thread_service.get_thread(db, thread_id=404)
    assert str(exc.value) == "Thread not found"


@pytest.mark.asyncio
async def test_failed_view_increment_does_not_fail_the_read(db, factory, monkeypatch):
    forum = await factory.forum()
    thread = await factory.thread(forum, view_count=2, tags=["kept"])
    thread_id = thread.id

    real_execute = db.execute

    async def execute(stmt, *args, **kwargs):
        if isinstance(stmt, Update):
            raise OperationalError("UPDATE threads", {}, Exception("database is locked"))
        return await real_execute(stmt, *args, **kwargs)

    monkeypatch.setattr(db, "execute", execute)
    detail = await thread_service.get_thread(db, thread_id=thread_id)
    monkeypatch.undo()

    # the rollback expired every loaded object, so only plain ids are used from here
    assert detail.id == thread_id
    assert detail.tags == ["kept"]
    assert await _view_count(db, thread_id) == 2


@pytest.mark.asyncio
async def test_storage_error_surfaces_as_storage_failure(db, monkeypatch):
    async def execute(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(db, "execute", execute)

    with pytest.raises(StorageFailure) as exc:
        await thread_service.list_threads(db, forum_id=1, params=resolve_page_params())
    assert exc.value.operation == "fetch threads"


@pytest.mark.asyncio
async def test_create_thread_normalizes_tags(db, factory):
    forum = await factory.forum()

    detail = await thread_service.create_thread(
        db,
        forum_id=forum.id,
        user_id="author",
        title="  Fractions help  ",
        content="How do I add 1/3 and 1/4?",
        tags=["Math", " math ", "", "Fractions"],
    )

    assert detail.title == "Fractions help"
    assert detail.tags == ["math", "fractions"]
    assert detail.post_count == 0
    assert detail.author_name == "User author"
    assert detail.view_count == 0


@pytest.mark.asyncio
async def test_create_thread_requires_an_active_forum(db, factory):
    closed = await factory.forum("Closed", is_active=False)

    with pytest.raises(NotFound):
        await thread_service.create_thread(db, forum_id=closed.id, user_id="u", title="Hello")
    forum = await factory.forum()
    with pytest.raises(InvalidRequest):
        await thread_service.create_thread(db, forum_id=forum.id, user_id="u", title="  a  ")


def test_normalize_tags_caps_the_count():
    tags = thread_service.normalize_tags([f"t{i}" for i in range(15)])
    assert tags == [f"t{i}" for i in range(10)]


@pytest.mark.asyncio
async def test_out_of_range_ids_do_not_reach_the_database(db, factory):
    forum = await factory.forum()
    await factory.thread(forum)
    huge = 99999999999999999999

    with pytest.raises(NotFound):
        await thread_service.get_thread(db, thread_id=huge)
    with pytest.raises(NotFound):
        await thread_service.create_thread(db, forum_id=huge, user_id="u", title="Hello")
    page = await _list(db, forum_id=huge)
    assert (page.threads, page.total) == ([], 0)
