import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.forum_model import Forum
from app.schemas.forum_schemas import ForumOut
from app.services.errors import InvalidRequest, NotFound, ensure_row_id, storage_operation

logger = logging.getLogger(__name__)

# columns an admin may change; the first three may not be cleared
_REQUIRED_FIELDS = ("name", "sort_order", "is_active")
_EDITABLE_FIELDS = _REQUIRED_FIELDS + ("description", "category")


def _forum_to_out(f: Forum) -> ForumOut:
    return ForumOut(
        id=f.id,
        name=f.name,
        description=f.description,
        category=f.category,
        sort_order=f.sort_order or 0,
        is_active=bool(f.is_active),
        created_at=f.created_at,
    )


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise InvalidRequest("Forum name is required")
    return name


@storage_operation("fetch forums")
async def list_forums(db: AsyncSession) -> List[ForumOut]:
    rows = (
        await db.execute(
            select(Forum)
            .where(Forum.is_active.is_(True))
            .order_by(Forum.sort_order.asc(), Forum.name.asc(), Forum.id.asc())
        )
    ).scalars().all()
    return [_forum_to_out(f) for f in rows]


@storage_operation("fetch forum")
async def get_forum(db: AsyncSession, *, forum_id: int) -> ForumOut:
    forum = await db.get(Forum, ensure_row_id("Forum", forum_id))
    if not forum or not forum.is_active:
        raise NotFound("Forum", forum_id)
    return _forum_to_out(forum)


# ------------------------------
# Admin
# ------------------------------
@storage_operation("create forum")
async def create_forum(
    db: AsyncSession,
    *,
    name: str,
    description: Optional[str] = None,
    category: Optional[str] = None,
    sort_order: int = 0,
) -> ForumOut:
    forum = Forum(
        name=_clean_name(name),
        description=description,
        category=category,
        sort_order=sort_order,
        is_active=True,
    )
    db.add(forum)
    await db.commit()
    await db.refresh(forum)
    logger.info("forum %s (%s) created", forum.id, forum.name)
    return _forum_to_out(forum)


@storage_operation("update forum")
async def update_forum(db: AsyncSession, *, forum_id: int, changes: Dict[str, Any]) -> ForumOut:
    """Apply a partial update. Keys missing from ``changes`` keep their value.

    Inactive forums can be updated too, which is how one is reopened.
    """
    forum = await db.get(Forum, ensure_row_id("Forum", forum_id))
    if not forum:
        raise NotFound("Forum", forum_id)

    for field, value in changes.items():
        if field not in _EDITABLE_FIELDS:
            continue
        if value is None and field in _REQUIRED_FIELDS:
            continue
        if field == "name":
            value = _clean_name(value)
        setattr(forum, field, value)

    await db.commit()
    await db.refresh(forum)
    logger.info("forum %s updated: %s", forum_id, sorted(changes))
    return _forum_to_out(forum)


@storage_operation("delete forum")
async def deactivate_forum(db: AsyncSession, *, forum_id: int) -> None:
    """Soft delete: the forum and its threads stay, but it leaves the public listings."""
    forum = await db.get(Forum, ensure_row_id("Forum", forum_id))
    if not forum:
        raise NotFound("Forum", forum_id)
    forum.is_active = False
    await db.commit()
    logger.info("forum %s deactivated", forum_id)
