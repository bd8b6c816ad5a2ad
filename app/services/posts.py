"""Posts of a thread as one flat, reply-aware sequence.

Ordering of the flat listing is (ancestor time, is-reply, own time, id),
where ancestor time is the parent's ``created_at`` for a reply and the
post's own ``created_at`` otherwise. A reply therefore always sorts right
after its parent (and the parent's earlier replies), never at its own
timestamp. Pagination slices that sequence as-is, so a page boundary may
fall between a parent and its replies.
"""
import logging
from typing import Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.models.forum_model import ForumThread, ForumPost, PostAttachment, PostReaction
from app.models.user_model import User
from app.schemas.forum_schemas import (
    AttachmentOut, ForumPostOut, ForumPostDetailOut, ForumReplyOut, PostPageOut, ReactionToggleOut
)
from app.services.authors import author_name_expr, avatar_url_expr
from app.services.errors import InvalidRequest, NotFound, ensure_row_id, storage_operation
from app.services.reactions import reaction_summaries, reaction_summary

logger = logging.getLogger(__name__)


def _post_select():
    return (
        select(
            ForumPost,
            author_name_expr(ForumPost.user_id).label("author_name"),
            avatar_url_expr().label("avatar_url"),
        )
        .outerjoin(User, User.id == ForumPost.user_id)
    )


def _post_to_out(row) -> dict:
    p = row[0]
    return dict(
        id=p.id,
        thread_id=p.thread_id,
        parent_id=p.parent_id,
        user_id=p.user_id,
        author_name=row.author_name,
        avatar_url=row.avatar_url,
        content=p.content,
        is_solution=bool(p.is_solution),
        created_at=p.created_at,
        updated_at=p.updated_at,
    )


def thread_order_by(post, parent):
    """Sort key tuple for the flat listing; ``parent`` is the outer-joined alias."""
    ancestor_time = func.coalesce(parent.created_at, post.created_at)
    is_reply = case((post.parent_id.is_(None), 0), else_=1)
    return (ancestor_time.asc(), is_reply.asc(), post.created_at.asc(), post.id.asc())


async def _require_thread(db: AsyncSession, thread_id: int) -> ForumThread:
    thread = await db.get(ForumThread, ensure_row_id("Thread", thread_id))
    if not thread:
        raise NotFound("Thread", thread_id)
    return thread


async def _post_row(db: AsyncSession, post_id: int):
    ensure_row_id("Post", post_id)
    row = (await db.execute(_post_select().where(ForumPost.id == post_id))).first()
    if row is None:
        raise NotFound("Post", post_id)
    return row


@storage_operation("fetch posts")
async def list_thread_posts(
    db: AsyncSession,
    *,
    thread_id: int,
    include_replies: bool = True,
    limit: int,
    offset: int,
) -> PostPageOut:
    await _require_thread(db, thread_id)

    filters = [ForumPost.thread_id == thread_id]
    if not include_replies:
        filters.append(ForumPost.parent_id.is_(None))

    parent = aliased(ForumPost, name="parent")
    stmt = (
        _post_select()
        .outerjoin(parent, parent.id == ForumPost.parent_id)
        .where(*filters)
        .order_by(*thread_order_by(ForumPost, parent))
        .offset(offset)
        .limit(limit)
    )
    rows = (await db.execute(stmt)).all()

    reactions = await reaction_summaries(db, [row[0].id for row in rows])
    posts = [
        ForumPostOut(**_post_to_out(row), reactions=reactions[row[0].id])
        for row in rows
    ]

    total = int(
        (await db.execute(select(func.count(ForumPost.id)).where(*filters))).scalar_one() or 0
    )
    return PostPageOut(posts=posts, total=total, limit=limit, offset=offset)


@storage_operation("fetch post")
async def get_post(db: AsyncSession, *, post_id: int) -> ForumPostDetailOut:
    """One post with its direct replies, attachments and reactions. No view is counted."""
    row = await _post_row(db, post_id)

    replies = (
        await db.execute(
            _post_select()
            .where(ForumPost.parent_id == post_id)
            .order_by(ForumPost.created_at.asc(), ForumPost.id.asc())
        )
    ).all()

    attachments = (
        await db.execute(
            select(PostAttachment)
            .where(PostAttachment.post_id == post_id)
            .order_by(PostAttachment.id.asc())
        )
    ).scalars().all()

    return ForumPostDetailOut(
        **_post_to_out(row),
        reactions=await reaction_summary(db, post_id),
        replies=[ForumReplyOut(**_post_to_out(r)) for r in replies],
        attachments=[
            AttachmentOut(
                id=a.id,
                post_id=a.post_id,
                file_url=a.file_url,
                file_name=a.file_name,
                mime_type=a.mime_type,
                size_bytes=a.size_bytes,
                created_at=a.created_at,
            )
            for a in attachments
        ],
    )


@storage_operation("create post")
async def create_post(
    db: AsyncSession,
    *,
    thread_id: int,
    user_id: str,
    content: str,
    parent_id: Optional[int] = None,
) -> ForumPostOut:
    thread = await _require_thread(db, thread_id)
    if thread.is_locked:
        raise InvalidRequest("Thread is locked", status_code=423)

    content = content.strip()
    if not content:
        raise InvalidRequest("Post content is required")

    if parent_id is not None:
        parent = await db.get(ForumPost, ensure_row_id("Parent post", parent_id))
        if not parent:
            raise NotFound("Parent post", parent_id)
        if parent.thread_id != thread_id:
            raise InvalidRequest("Parent post is from another thread")
        # replies are one level deep: answer a reply under its top-level post
        if parent.parent_id is not None:
            parent_id = parent.parent_id

    post = ForumPost(thread_id=thread_id, user_id=user_id, content=content, parent_id=parent_id)
    db.add(post)
    await db.commit()
    logger.info("post %s created in thread %s by %s", post.id, thread_id, user_id)

    return ForumPostOut(**_post_to_out(await _post_row(db, post.id)), reactions=[])


@storage_operation("edit post")
async def update_post(
    db: AsyncSession,
    *,
    post_id: int,
    user_id: str,
    content: str,
) -> ForumPostOut:
    """Replace the content of the caller's own post; ``updated_at`` moves to now."""
    post = await db.get(ForumPost, ensure_row_id("Post", post_id))
    if not post:
        raise NotFound("Post", post_id)
    thread = await db.get(ForumThread, post.thread_id)
    if thread.is_locked:
        raise InvalidRequest("Thread is locked", status_code=423)
    if post.user_id != user_id:
        raise InvalidRequest("Only the post owner may edit this post", status_code=403)

    content = content.strip()
    if not content:
        raise InvalidRequest("Post content is required")

    post.content = content
    post.updated_at = func.now()
    await db.commit()
    logger.info("post %s edited by %s", post_id, user_id)

    return ForumPostOut(
        **_post_to_out(await _post_row(db, post_id)),
        reactions=await reaction_summary(db, post_id),
    )


@storage_operation("update post")
async def mark_solution(
    db: AsyncSession,
    *,
    post_id: int,
    user_id: str,
    is_solution: bool = True,
) -> ForumPostOut:
    post = await db.get(ForumPost, ensure_row_id("Post", post_id))
    if not post:
        raise NotFound("Post", post_id)
    thread = await db.get(ForumThread, post.thread_id)
    if thread.user_id != user_id:
        raise InvalidRequest("Only the thread owner may mark a solution", status_code=403)

    if is_solution:
        await db.execute(
            update(ForumPost)
            .where(ForumPost.thread_id == post.thread_id, ForumPost.id != post_id)
            .values(is_solution=False)
            .execution_options(synchronize_session=False)
        )
    post.is_solution = is_solution
    await db.commit()

    return ForumPostOut(
        **_post_to_out(await _post_row(db, post_id)),
        reactions=await reaction_summary(db, post_id),
    )


@storage_operation("process reaction")
async def toggle_reaction(
    db: AsyncSession,
    *,
    post_id: int,
    user_id: str,
    reaction_type: str,
) -> ReactionToggleOut:
    """Add, switch or remove the caller's single reaction on a post."""
    reaction_type = reaction_type.strip().lower()
    if not reaction_type:
        raise InvalidRequest("Reaction type is required")

    post = await db.get(ForumPost, ensure_row_id("Post", post_id))
    if not post:
        raise NotFound("Post", post_id)

    existing = (
        await db.execute(
            select(PostReaction)
            .where(PostReaction.post_id == post_id, PostReaction.user_id == user_id)
            .limit(1)
        )
    ).scalars().first()

    if existing is None:
        db.add(PostReaction(post_id=post_id, user_id=user_id, reaction_type=reaction_type))
        action = "added"
    elif existing.reaction_type == reaction_type:
        await db.delete(existing)
        action = "removed"
    else:
        existing.reaction_type = reaction_type
        action = "changed"
    await db.commit()
    logger.info("reaction %s %s on post %s by %s", reaction_type, action, post_id, user_id)

    return ReactionToggleOut(
        action=action,
        post_id=post_id,
        user_id=user_id,
        reaction_type=reaction_type,
        reactions=await reaction_summary(db, post_id),
    )
