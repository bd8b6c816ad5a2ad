from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    func,
    UniqueConstraint, Boolean,
text
)
from sqlalchemy.orm import relationship
from app.database import Base


class Forum(Base):
    __tablename__ = "forums"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    sort_order = Column(Integer, nullable=False, server_default="0")
    is_active = Column(Boolean, nullable=False, server_default=text("true"))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    threads = relationship("ForumThread", back_populates="forum")


class ForumThread(Base):
    __tablename__ = "threads"

    id = Column(Integer, primary_key=True, index=True)
    forum_id = Column(
        Integer,
        ForeignKey("forums.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # opaque identity-provider id; users are an external table, so no FK
    user_id = Column(String(128), nullable=False, index=True)

    title = Column(String(200), nullable=False, index=True)
    content = Column(Text, nullable=True)

    # only ever bumped with a single UPDATE ... SET view_count = view_count + 1
    view_count = Column(Integer, nullable=False, server_default="0")
    is_pinned = Column(Boolean, nullable=False, server_default=text("false"))
    is_locked = Column(Boolean, nullable=False, server_default=text("false"))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # relationships
    forum = relationship("Forum", back_populates="threads")
    posts = relationship(
        "ForumPost",
        back_populates="thread",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    tags = relationship(
        "ThreadTag",
        back_populates="thread",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ThreadTag.id",
    )


class ThreadTag(Base):
    __tablename__ = "thread_tags"
    __table_args__ = (
        UniqueConstraint("thread_id", "tag_name", name="uq_thread_tag"),
    )

    id = Column(Integer, primary_key=True, index=True)
    thread_id = Column(
        Integer,
        ForeignKey("threads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag_name = Column(String(50), nullable=False)

    thread = relationship("ForumThread", back_populates="tags")


class ForumPost(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)

    thread_id = Column(
        Integer,
        ForeignKey("threads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(String(128), nullable=False, index=True)

    # null => top-level; replies always point at a top-level post
    parent_id = Column(
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    content = Column(Text, nullable=False)
    is_solution = Column(Boolean, nullable=False, server_default=text("false"))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # relationships
    thread = relationship("ForumThread", back_populates="posts")
    parent = relationship("ForumPost", remote_side=[id], backref="replies")
    reactions = relationship(
        "PostReaction",
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    attachments = relationship(
        "PostAttachment",
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class PostReaction(Base):
    __tablename__ = "post_reactions"
    __table_args__ = (
        # one reaction per user per post; switching type updates the row
        UniqueConstraint("post_id", "user_id", name="uq_post_reaction_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(String(128), nullable=False, index=True)
    reaction_type = Column(String(32), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    post = relationship("ForumPost", back_populates="reactions")


class PostAttachment(Base):
    __tablename__ = "post_attachments"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    file_url = Column(Text, nullable=False)
    file_name = Column(String(255), nullable=True)
    mime_type = Column(String(64), nullable=True)
    size_bytes = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    post = relationship("ForumPost", back_populates="attachments")
