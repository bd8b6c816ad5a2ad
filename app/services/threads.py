"""Thread listing with live per-thread metrics, and single-thread fetches.

Metrics are aggregated in two grouped subqueries (posts, reactions) that are
outer-joined onto the thread rows, so joining posts never multiplies the
reaction count and vice versa.
"""
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.forum_model import Forum, ForumThread, ForumPost, PostReaction, ThreadTag
from app.models.user_model import User
from app.schemas.forum_schemas import ForumThreadOut, ForumThreadDetailOut, ThreadPageOut
from app.services.authors import author_name_expr
from app.services.errors import MAX_ROW_ID, InvalidRequest, NotFound, ensure_row_id, storage_operation
from app.utils.pagination import PageParams

logger = logging.getLogger(__name__)

MAX_TAGS = 10


def _post_stats():
    return (
        select(
            ForumPost.thread_id.label("thread_id"),
            func.count(ForumPost.id).label("post_count"),
            func.max(ForumPost.created_at).label("last_post_at"),
        )
        .group_by(ForumPost.thread_id)
        .subquery("post_stats")
    )


def _reaction_stats():
    return (
        select(
            ForumPost.thread_id.label("thread_id"),
            func.count(PostReaction.id).label("reaction_count"),
        )
        .join(PostReaction, PostReaction.post_id == ForumPost.id)
        .group_by(ForumPost.thread_id)
        .subquery("reaction_stats")
    )


def _thread_metrics_select():
    ps = _post_stats()
    rs = _reaction_stats()

    post_count = func.coalesce(ps.c.post_count, 0).label("post_count")
    reaction_count = func.coalesce(rs.c.reaction_count, 0).label("reaction_count")
    # later of the thread's own creation and its newest post
    last_activity = case(
        (
            and_(ps.c.last_post_at.is_not(None), ps.c.last_post_at > ForumThread.created_at),
            ps.c.last_post_at,
        ),
        else_=ForumThread.created_at,
    ).label("last_activity")
    author_name = author_name_expr(ForumThread.user_id).label("author_name")

    stmt = (
        select(ForumThread, post_count, last_activity, reaction_count, author_name)
        .outerjoin(ps, ps.c.thread_id == ForumThread.id)
        .outerjoin(rs, rs.c.thread_id == ForumThread.id)
        .outerjoin(User, User.id == ForumThread.user_id)
    )
    sort_keys = {
        "created_at": ForumThread.created_at,
        "last_activity": last_activity,
        "view_count": ForumThread.view_count,
        "reaction_count": reaction_count,
    }
    return stmt, sort_keys


def _thread_to_out(row, tags: List[str]) -> dict:
    t = row[0]
    return dict(
        id=t.id,
        forum_id=t.forum_id,
        user_id=t.user_id,
        author_name=row.author_name,
        title=t.title,
        content=t.content,
        view_count=t.view_count or 0,
        is_pinned=bool(t.is_pinned),
        is_locked=bool(t.is_locked),
        created_at=t.created_at,
        updated_at=t.updated_at,
        post_count=int(row.post_count or 0),
        last_activity=row.last_activity,
        reaction_count=int(row.reaction_count or 0),
        tags=tags,
    )


async def _load_tags(db: AsyncSession, thread_ids: Sequence[int]) -> Dict[int, List[str]]:
    tags: Dict[int, List[str]] = {tid: [] for tid in thread_ids}
    if not tags:
        return tags
    rows = await db.execute(
        select(ThreadTag.thread_id, ThreadTag.tag_name)
        .where(ThreadTag.thread_id.in_(list(tags)))
        .order_by(ThreadTag.thread_id, ThreadTag.id)
    )
    for thread_id, tag_name in rows.all():
        tags[thread_id].append(tag_name)
    return tags


@storage_operation("fetch threads")
async def list_threads(
    db: AsyncSession,
    *,
    forum_id: Optional[int] = None,
    params: PageParams,
) -> ThreadPageOut:
    if forum_id is not None and not 0 < forum_id <= MAX_ROW_ID:
        # no forum can have this id
        return ThreadPageOut(threads=[], total=0, limit=params.limit, offset=params.offset)

    stmt, sort_keys = _thread_metrics_select()
    filters = []
    if forum_id is not None:
        filters.append(ForumThread.forum_id == forum_id)
    if filters:
        stmt = stmt.where(*filters)

    key = sort_keys[params.sort.key]
    stmt = stmt.order_by(
        key.desc() if params.sort.descending else key.asc(),
        ForumThread.id.desc(),
    ).offset(params.offset).limit(params.limit)

    rows = (await db.execute(stmt)).all()

    total_stmt = select(func.count(ForumThread.id))
    if filters:
        total_stmt = total_stmt.where(*filters)
    total = int((await db.execute(total_stmt)).scalar_one() or 0)

    tags = await _load_tags(db, [row[0].id for row in rows])
    threads = [ForumThreadOut(**_thread_to_out(row, tags[row[0].id])) for row in rows]

    return ThreadPageOut(threads=threads, total=total, limit=params.limit, offset=params.offset)


async def _thread_detail_row(db: AsyncSession, thread_id: int):
    ensure_row_id("Thread", thread_id)
    stmt, _ = _thread_metrics_select()
    stmt = stmt.add_columns(Forum.name.label("forum_name")).join(
        Forum, Forum.id == ForumThread.forum_id
    ).where(ForumThread.id == thread_id)
    row = (await db.execute(stmt)).first()
    if row is None:
        raise NotFound("Thread", thread_id)
    return row


async def _bump_view_count(db: AsyncSession, thread_id: int) -> bool:
    stmt = (
        update(ForumThread)
        .where(ForumThread.id == thread_id)
        .values(
            view_count=ForumThread.view_count + 1,
            # keep the onupdate hook from touching updated_at
            updated_at=ForumThread.updated_at,
        )
        .execution_options(synchronize_session=False)
    )
    try:
        await db.execute(stmt)
        await db.commit()
        return True
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning("view count increment failed for thread %s: %s", thread_id, e)
        return False


@storage_operation("fetch thread")
async def get_thread(db: AsyncSession, *, thread_id: int) -> ForumThreadDetailOut:
    """Fetch one thread and count the view.

    The returned ``view_count`` is the value read before this view. The
    increment is committed on its own, so a failure loading the rest of the
    thread does not undo it, and a failed increment does not fail the read.
    """
    row = await _thread_detail_row(db, thread_id)
    data = _thread_to_out(row, [])
    data["forum_name"] = row.forum_name

    await _bump_view_count(db, thread_id)

    data["tags"] = (await _load_tags(db, [thread_id]))[thread_id]
    return ForumThreadDetailOut(**data)


def normalize_tags(raw: Sequence[str]) -> List[str]:
    seen: List[str] = []
    for tag in raw:
        name = (tag or "").strip().lower()
        if name and name not in seen:
            seen.append(name[:50])
    return seen[:MAX_TAGS]


@storage_operation("create thread")
async def create_thread(
    db: AsyncSession,
    *,
    forum_id: int,
    user_id: str,
    title: str,
    content: Optional[str] = None,
    tags: Sequence[str] = (),
) -> ForumThreadDetailOut:
    forum = await db.get(Forum, ensure_row_id("Forum", forum_id))
    if not forum or not forum.is_active:
        raise NotFound("Forum", forum_id)

    title = title.strip()
    if len(title) < 3:
        raise InvalidRequest("Title must be at least 3 characters")

    thread = ForumThread(forum_id=forum_id, user_id=user_id, title=title, content=content)
    db.add(thread)
    await db.flush()  # get thread.id

    for name in normalize_tags(tags):
        db.add(ThreadTag(thread_id=thread.id, tag_name=name))

    await db.commit()
    logger.info("thread %s created in forum %s by %s", thread.id, forum_id, user_id)

    row = await _thread_detail_row(db, thread.id)
    data = _thread_to_out(row, (await _load_tags(db, [thread.id]))[thread.id])
    data["forum_name"] = row.forum_name
    return ForumThreadDetailOut(**data)
