import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import AsyncSessionLocal, Base, engine
from app.models.forum_model import Forum
from app.models import user_model  # noqa: F401

logger = logging.getLogger(__name__)

DEFAULT_FORUMS = [
    ("Announcements", "News from the platform team", "general"),
    ("General Discussion", "Anything education related", "general"),
    ("Homework Help", "Ask and answer questions about assignments", "students"),
    ("Study Groups", "Find classmates and plan sessions", "students"),
    ("Teachers' Lounge", "Lesson ideas, resources and classroom tips", "teachers"),
]


async def create_forums(db: AsyncSession) -> int:
    """Insert the default forums into an empty table. Returns how many were added."""
    existing = (await db.execute(select(Forum.id).limit(1))).first()
    if existing:
        logger.info("forums already exist, nothing to do")
        return 0

    db.add_all([
        Forum(name=name, description=description, category=category, sort_order=i)
        for i, (name, description, category) in enumerate(DEFAULT_FORUMS)
    ])
    await db.commit()
    logger.info("created %d forums", len(DEFAULT_FORUMS))
    return len(DEFAULT_FORUMS)


async def main():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as db:
        try:
            await create_forums(db)
        except Exception:
            await db.rollback()
            logger.exception("creating forums failed")
            raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
