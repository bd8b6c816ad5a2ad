from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Literal, Optional


class ReactionCountOut(BaseModel):
    type: str
    count: int


class AttachmentOut(BaseModel):
    id: int
    post_id: int
    file_url: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    created_at: datetime


class ForumOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True
    created_at: datetime


class ForumThreadOut(BaseModel):
    id: int
    forum_id: int
    user_id: str
    author_name: str
    title: str
    content: Optional[str] = None
    view_count: int = 0
    is_pinned: bool = False
    is_locked: bool = False
    created_at: datetime
    updated_at: datetime
    post_count: int = 0
    last_activity: datetime
    reaction_count: int = 0
    tags: List[str] = []


class ForumThreadDetailOut(ForumThreadOut):
    forum_name: str


class ThreadPageOut(BaseModel):
    threads: List[ForumThreadOut]
    total: int
    limit: int
    offset: int


class ForumReplyOut(BaseModel):
    id: int
    thread_id: int
    parent_id: Optional[int] = None
    user_id: str
    author_name: str
    avatar_url: str
    content: str
    is_solution: bool = False
    created_at: datetime
    updated_at: datetime


class ForumPostOut(ForumReplyOut):
    reactions: List[ReactionCountOut] = []


class ForumPostDetailOut(ForumPostOut):
    replies: List[ForumReplyOut] = []
    attachments: List[AttachmentOut] = []


class PostPageOut(BaseModel):
    posts: List[ForumPostOut]
    total: int
    limit: int
    offset: int


class CreateForumIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    sort_order: int = 0


class UpdateForumIn(BaseModel):
    # omitted fields keep their stored value
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class CreateThreadIn(BaseModel):
    forum_id: int
    title: str = Field(min_length=3, max_length=200)
    content: Optional[str] = None
    tags: List[str] = Field(default_factory=list, max_length=10)


class CreatePostIn(BaseModel):
    content: str = Field(min_length=1)
    parent_id: Optional[int] = None


class UpdatePostIn(BaseModel):
    content: str = Field(min_length=1)


class SolutionIn(BaseModel):
    is_solution: bool = True


class ReactionIn(BaseModel):
    reaction_type: str = Field(min_length=1, max_length=32)


class ReactionToggleOut(BaseModel):
    action: Literal["added", "removed", "changed"]
    post_id: int
    user_id: str
    reaction_type: str
    reactions: List[ReactionCountOut] = []
