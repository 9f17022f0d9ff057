"""PostService: DuckDB-backed posts and comments."""
import logging
import uuid
from datetime import datetime, timezone
from typing import List

import duckdb

from archive.exceptions import PostNotFound

from .schemas import Comment, Post, PostThread

logger = logging.getLogger(__name__)

_CREATE_POSTS = """
CREATE TABLE IF NOT EXISTS posts (
    id           VARCHAR PRIMARY KEY,
    seq          BIGINT DEFAULT nextval('posts_seq'),
    title        VARCHAR NOT NULL,
    body         VARCHAR NOT NULL,
    author_id    VARCHAR NOT NULL,
    author_login VARCHAR NOT NULL,
    created_at   TIMESTAMP NOT NULL
)
"""

_CREATE_COMMENTS = """
CREATE TABLE IF NOT EXISTS comments (
    id           VARCHAR PRIMARY KEY,
    seq          BIGINT DEFAULT nextval('comments_seq'),
    post_id      VARCHAR NOT NULL,
    body         VARCHAR NOT NULL,
    author_id    VARCHAR NOT NULL,
    author_login VARCHAR NOT NULL,
    created_at   TIMESTAMP NOT NULL
)
"""

_SEQUENCES = (
    "CREATE SEQUENCE IF NOT EXISTS posts_seq START 1",
    "CREATE SEQUENCE IF NOT EXISTS comments_seq START 1",
)

_INDEX = "CREATE INDEX IF NOT EXISTS idx_comments_post ON comments(post_id)"

_POST_COLUMNS = ["id", "title", "body", "author_id", "author_login", "created_at"]
_COMMENT_COLUMNS = ["id", "post_id", "body", "author_id", "author_login", "created_at"]


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PostService:
    """Posts and comments in their own DuckDB database.

    The connection is opened on construction and lives until ``close()``.
    Writes are synchronous; DuckDB is embedded and fast enough for this.
    """

    def __init__(self, db_path: str = "archive_documents.duckdb") -> None:
        self._db_path = db_path
        self._conn = duckdb.connect(self._db_path)
        for statement in _SEQUENCES:
            self._conn.execute(statement)
        self._conn.execute(_CREATE_POSTS)
        self._conn.execute(_CREATE_COMMENTS)
        self._conn.execute(_INDEX)
        logger.info("[PostService] Initialized with db=%s", self._db_path)

    def close(self) -> None:
        self._conn.close()
        logger.info("[PostService] Closed")

    # -----------------------------------------------------------------------
    # Posts
    # -----------------------------------------------------------------------

    def create_post(self, title: str, body: str, author_id: str, author_login: str) -> Post:
        post = Post(
            id=str(uuid.uuid4()),
            title=title,
            body=body,
            author_id=author_id,
            author_login=author_login,
            created_at=_now(),
        )
        self._conn.execute(
            f"INSERT INTO posts ({', '.join(_POST_COLUMNS)}) VALUES (?, ?, ?, ?, ?, ?)",
            [post.id, post.title, post.body, post.author_id, post.author_login, post.created_at],
        )
        return post

    def list_posts(self) -> List[Post]:
        rows = self._conn.execute(
            f"SELECT {', '.join(_POST_COLUMNS)} FROM posts ORDER BY seq"
        ).fetchall()
        return [Post(**dict(zip(_POST_COLUMNS, row))) for row in rows]

    def get_post(self, post_id: str) -> Post:
        """Raises PostNotFound if there is no post with *post_id*."""
        row = self._conn.execute(
            f"SELECT {', '.join(_POST_COLUMNS)} FROM posts WHERE id = ?", [post_id]
        ).fetchone()
        if row is None:
            raise PostNotFound()
        return Post(**dict(zip(_POST_COLUMNS, row)))

    def get_thread(self, post_id: str) -> PostThread:
        """A post with all of its comments, oldest comment first."""
        post = self.get_post(post_id)
        return PostThread(post=post, comments=self.list_comments(post_id))

    # -----------------------------------------------------------------------
    # Comments
    # -----------------------------------------------------------------------

    def add_comment(self, post_id: str, body: str, author_id: str, author_login: str) -> Comment:
        """Comment on an existing post.

        Raises:
            PostNotFound: If the post does not exist.
        """
        self.get_post(post_id)
        comment = Comment(
            id=str(uuid.uuid4()),
            post_id=post_id,
            body=body,
            author_id=author_id,
            author_login=author_login,
            created_at=_now(),
        )
        self._conn.execute(
            f"INSERT INTO comments ({', '.join(_COMMENT_COLUMNS)}) VALUES (?, ?, ?, ?, ?, ?)",
            [comment.id, comment.post_id, comment.body, comment.author_id, comment.author_login, comment.created_at],
        )
        return comment

    def list_comments(self, post_id: str) -> List[Comment]:
        rows = self._conn.execute(
            f"SELECT {', '.join(_COMMENT_COLUMNS)} FROM comments WHERE post_id = ? ORDER BY seq",
            [post_id],
        ).fetchall()
        return [Comment(**dict(zip(_COMMENT_COLUMNS, row))) for row in rows]
