# store.py
"""
PostStore: the persistence boundary for posts.

Every query that reads or mutates a post on behalf of a user is scoped by
both post id and author id. Driver failures surface as ``StoreError``.
"""

import contextlib
import logging
import sqlite3

from .db import execute_db, query_db
from .errors import StoreError
from .undo import PostSnapshot

logger = logging.getLogger("edumedia.store")


@contextlib.contextmanager
def store_call(message):
    try:
        yield
    except sqlite3.Error as e:
        raise StoreError(message, error=str(e)) from e


class PostStore:
    def fetch(self, post_id):
        with store_call("Failed to fetch post"):
            return query_db("SELECT * FROM posts WHERE id = ?", (post_id,), one=True)

    def fetch_owned(self, post_id, actor_id):
        with store_call("Failed to fetch post"):
            return query_db(
                "SELECT * FROM posts WHERE id = ? AND author_id = ?", (post_id, actor_id), one=True
            )

    def create(self, actor_id, content):
        with store_call("Failed to create post"):
            post_id, _ = execute_db("INSERT INTO posts (author_id, content) VALUES (?, ?)", (actor_id, content))
            return query_db("SELECT * FROM posts WHERE id = ?", (post_id,), one=True)

    def update_content(self, post_id, actor_id, content):
        with store_call("Failed to update post"):
            _, rowcount = execute_db(
                "UPDATE posts SET content = ? WHERE id = ? AND author_id = ?", (content, post_id, actor_id)
            )
            if rowcount == 0:
                raise StoreError("Failed to update post", error="no matching post row")
            return self.fetch_owned(post_id, actor_id)

    def delete_cascade(self, post_id, actor_id):
        """Removes likes and comments (best effort), then the post itself."""
        try:
            execute_db("DELETE FROM likes WHERE post_id = ?", (post_id,))
        except sqlite3.Error:
            logger.exception("Error deleting likes for post %s", post_id)
        try:
            execute_db("DELETE FROM comments WHERE post_id = ?", (post_id,))
        except sqlite3.Error:
            logger.exception("Error deleting comments for post %s", post_id)
        with store_call("Failed to delete post"):
            execute_db("DELETE FROM posts WHERE id = ? AND author_id = ?", (post_id, actor_id))

    def insert_with_id(self, snapshot: PostSnapshot):
        """Re-inserts a deleted post under its original id."""
        with store_call("Failed to restore post"):
            execute_db(
                "INSERT INTO posts (id, author_id, content, likes, created_at) VALUES (?, ?, ?, ?, ?)",
                (snapshot.id, snapshot.owner_id, snapshot.content, snapshot.like_count, snapshot.created_at),
            )
            return self.fetch_owned(snapshot.id, snapshot.owner_id)

    def count_likes(self, post_id):
        with store_call("Failed to count likes"):
            return query_db("SELECT COUNT(*) AS c FROM likes WHERE post_id = ?", (post_id,), one=True)["c"]

    def count_comments(self, post_id):
        with store_call("Failed to count comments"):
            return query_db("SELECT COUNT(*) AS c FROM comments WHERE post_id = ?", (post_id,), one=True)["c"]

    def liked_by(self, post_id):
        with store_call("Failed to fetch likes"):
            rows = query_db("SELECT user_id FROM likes WHERE post_id = ?", (post_id,))
        return [r["user_id"] for r in rows]

    def list_by_author(self, actor_id):
        with store_call("Failed to fetch posts"):
            return query_db(
                "SELECT p.*, u.name AS author_name, u.email AS author_email, u.initials AS author_initials "
                "FROM posts p JOIN users u ON p.author_id = u.id "
                "WHERE p.author_id = ? ORDER BY p.created_at DESC, p.id DESC",
                (actor_id,),
            )

    def list_all(self):
        with store_call("Failed to fetch posts"):
            return query_db(
                "SELECT p.*, u.name AS author_name, u.email AS author_email, u.initials AS author_initials "
                "FROM posts p JOIN users u ON p.author_id = u.id "
                "ORDER BY p.created_at DESC, p.id DESC"
            )
