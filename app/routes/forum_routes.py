from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app import config
from app.database import get_async_session
from app.deps.admin import require_admin
from app.limiter import limiter
from app.schemas.forum_schemas import (
    ForumOut, ForumThreadDetailOut, ThreadPageOut, ForumPostOut, ForumPostDetailOut, PostPageOut,
    CreateForumIn, UpdateForumIn, CreateThreadIn, CreatePostIn, UpdatePostIn, SolutionIn, ReactionIn,
    ReactionToggleOut
)
from app.services import forums as forum_service
from app.services import posts as post_service
from app.services import threads as thread_service
from app.utils.pagination import coerce_limit, coerce_offset, parse_include_replies, resolve_page_params
from app.utils.token_utils import get_current_user_id

router = APIRouter(prefix="/forum", tags=["forum"])


# ------------------------------
# Forums
# ------------------------------
@router.get("/forums", response_model=List[ForumOut])
async def list_forums(db: AsyncSession = Depends(get_async_session)):
    return await forum_service.list_forums(db)


@router.get("/forums/{forum_id}", response_model=ForumOut)
async def get_forum(forum_id: int, db: AsyncSession = Depends(get_async_session)):
    return await forum_service.get_forum(db, forum_id=forum_id)


@router.get("/forums/{forum_id}/threads", response_model=ThreadPageOut)
async def list_forum_threads(
    forum_id: int,
    sort: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    db: AsyncSession = Depends(get_async_session),
):
    """Threads of one forum. Paging and sort work as in ``GET /forum/threads``."""
    params = resolve_page_params(limit=limit, offset=offset, sort=sort)
    return await thread_service.list_threads(db, forum_id=forum_id, params=params)


@router.post("/forums", response_model=ForumOut, status_code=status.HTTP_201_CREATED)
async def create_forum(
    payload: CreateForumIn,
    admin_id: str = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    return await forum_service.create_forum(
        db,
        name=payload.name,
        description=payload.description,
        category=payload.category,
        sort_order=payload.sort_order,
    )


@router.patch("/forums/{forum_id}", response_model=ForumOut)
async def update_forum(
    forum_id: int,
    payload: UpdateForumIn,
    admin_id: str = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    return await forum_service.update_forum(
        db, forum_id=forum_id, changes=payload.model_dump(exclude_unset=True)
    )


@router.delete("/forums/{forum_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_forum(
    forum_id: int,
    admin_id: str = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    # soft delete; threads are kept
    await forum_service.deactivate_forum(db, forum_id=forum_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ------------------------------
# Threads
# ------------------------------
@router.get("/threads", response_model=ThreadPageOut)
async def list_threads(
    forum_id: Optional[int] = None,
    sort: Optional[str] = None,
    # raw strings: bad pagination input falls back to defaults instead of 422
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    db: AsyncSession = Depends(get_async_session),
):
    """Thread listing with metrics.

    ``limit`` defaults to FORUM_DEFAULT_PAGE_SIZE (20) and is clamped to
    FORUM_MAX_PAGE_SIZE (100); ``offset`` defaults to 0. Values that are not
    non-negative integers, or too large for the database, fall back to those
    defaults. Unknown ``sort`` names mean ``active``.
    """
    params = resolve_page_params(limit=limit, offset=offset, sort=sort)
    return await thread_service.list_threads(db, forum_id=forum_id, params=params)


@router.post("/threads", response_model=ForumThreadDetailOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.FORUM_THREAD_RATE)
async def create_thread(
    request: Request,
    payload: CreateThreadIn,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
):
    return await thread_service.create_thread(
        db,
        forum_id=payload.forum_id,
        user_id=user_id,
        title=payload.title,
        content=payload.content,
        tags=payload.tags,
    )


@router.get("/threads/{thread_id}", response_model=ForumThreadDetailOut)
async def get_thread(thread_id: int, db: AsyncSession = Depends(get_async_session)):
    return await thread_service.get_thread(db, thread_id=thread_id)


@router.get("/threads/{thread_id}/posts", response_model=PostPageOut)
async def list_thread_posts(
    thread_id: int,
    include_replies: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    db: AsyncSession = Depends(get_async_session),
):
    """Flat, reply-aware post listing.

    ``limit`` is clamped to FORUM_MAX_PAGE_SIZE (100) like the thread listing;
    ``include_replies=false`` (or 0/no/off) keeps top-level posts only.
    """
    return await post_service.list_thread_posts(
        db,
        thread_id=thread_id,
        include_replies=parse_include_replies(include_replies),
        limit=coerce_limit(limit),
        offset=coerce_offset(offset),
    )


@router.post("/threads/{thread_id}/posts", response_model=ForumPostOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.FORUM_POST_RATE)
async def create_post(
    request: Request,
    thread_id: int,
    payload: CreatePostIn,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
):
    return await post_service.create_post(
        db,
        thread_id=thread_id,
        user_id=user_id,
        content=payload.content,
        parent_id=payload.parent_id,
    )


# ------------------------------
# Posts
# ------------------------------
@router.get("/posts/{post_id}", response_model=ForumPostDetailOut)
async def get_post(post_id: int, db: AsyncSession = Depends(get_async_session)):
    return await post_service.get_post(db, post_id=post_id)


@router.patch("/posts/{post_id}", response_model=ForumPostOut)
@limiter.limit(config.FORUM_POST_RATE)
async def update_post(
    request: Request,
    post_id: int,
    payload: UpdatePostIn,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
):
    return await post_service.update_post(
        db, post_id=post_id, user_id=user_id, content=payload.content
    )


@router.patch("/posts/{post_id}/solution", response_model=ForumPostOut)
async def mark_solution(
    post_id: int,
    body: SolutionIn,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
):
    return await post_service.mark_solution(
        db, post_id=post_id, user_id=user_id, is_solution=body.is_solution
    )


@router.post("/posts/{post_id}/reactions", response_model=ReactionToggleOut)
@limiter.limit(config.FORUM_REACTION_RATE)
async def toggle_reaction(
    request: Request,
    post_id: int,
    body: ReactionIn,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
):
    return await post_service.toggle_reaction(
        db, post_id=post_id, user_id=user_id, reaction_type=body.reaction_type
    )
