"""Pydantic schemas for posts and comments."""
from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class PostCreate(BaseModel):
    """Request body for creating a post."""
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=10000)


class CommentCreate(BaseModel):
    """Request body for commenting on a post."""
    post_id: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1, max_length=2000)


class Post(BaseModel):
    id: str
    title: str
    body: str
    author_id: str
    author_login: str
    created_at: datetime


class Comment(BaseModel):
    id: str
    post_id: str
    body: str
    author_id: str
    author_login: str
    created_at: datetime


class PostThread(BaseModel):
    """A post together with its comments, oldest first."""
    post: Post
    comments: List[Comment] = Field(default_factory=list)
