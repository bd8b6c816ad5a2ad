"""Per-post reaction summaries, computed live from ``post_reactions``."""
from typing import Dict, List, Sequence

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.forum_model import PostReaction
from app.schemas.forum_schemas import ReactionCountOut
from app.services.errors import storage_operation


@storage_operation("fetch reactions")
async def reaction_summaries(
    db: AsyncSession, post_ids: Sequence[int]
) -> Dict[int, List[ReactionCountOut]]:
    """Map every requested post id to its ``{type, count}`` list in one query.

    Posts without reactions map to an empty list. Types with no rows never
    appear, so no entry ever has a zero count.
    """
    summaries: Dict[int, List[ReactionCountOut]] = {pid: [] for pid in post_ids}
    if not summaries:
        return summaries

    total = func.count(PostReaction.id).label("total")
    stmt = (
        select(PostReaction.post_id, PostReaction.reaction_type, total)
        .where(PostReaction.post_id.in_(list(summaries)))
        .group_by(PostReaction.post_id, PostReaction.reaction_type)
        .order_by(PostReaction.post_id, total.desc(), PostReaction.reaction_type)
    )
    for row in (await db.execute(stmt)).all():
        summaries[row.post_id].append(
            ReactionCountOut(type=row.reaction_type, count=int(row.total))
        )
    return summaries


async def reaction_summary(db: AsyncSession, post_id: int) -> List[ReactionCountOut]:
    return (await reaction_summaries(db, [post_id]))[post_id]
