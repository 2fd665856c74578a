# posts.py
"""
Posts, likes and the undoable edit/delete operations.

Edits and deletes record a compensating action on the caller's undo stack
*before* touching the database. ``POST /posts/undo`` pops the newest action
and applies it; if applying fails the action goes back on the stack exactly
as it was, so the same undo can simply be retried.

Known gaps, kept on purpose:
 - a store failure after the push leaves a stale action on the stack;
 - two concurrent edits by the same user may interleave between the push
   and the database round-trip, since only the stack itself is locked.
"""

import logging
from dataclasses import dataclass

from flask import Blueprint, current_app, g, jsonify

from .auth import jwt_required
from .comments import comments_for_post
from .db import execute_all, query_db
from .errors import (
    EmptyUndoStack,
    NotFoundError,
    NotFoundOrForbidden,
    StoreError,
    UnknownActionTag,
    ValidationError,
)
from .helpers import json_body, parse_id, text_field
from .store import PostStore, store_call
from .undo import (
    DeleteCompensation,
    EditCompensation,
    PostSnapshot,
    UndoStack,
    UndoStatusReporter,
    utcnow_iso,
)

logger = logging.getLogger("edumedia.posts")

bp = Blueprint("posts", __name__, url_prefix="/posts")

UNDO_EDIT = "UNDO_EDIT"
UNDO_DELETE = "UNDO_DELETE"

# posts.likes mirrors the likes table; it is what a delete snapshots
SYNC_LIKE_COUNTER = "UPDATE posts SET likes = (SELECT COUNT(*) FROM likes WHERE post_id = ?) WHERE id = ?"


@dataclass
class UndoResult:
    action: str
    post: object
    likes_count: int
    comments_count: int
    remaining_undos: int


class UndoableOperationHandler:
    """Edit, delete and undo for posts owned by the acting user."""

    def __init__(self, stack: UndoStack, store: PostStore, clock=utcnow_iso):
        self.stack = stack
        self.store = store
        self.clock = clock

    def _fetch_owned(self, post_id, actor_id, verb):
        post = self.store.fetch_owned(post_id, actor_id)
        if post is None:
            raise NotFoundOrForbidden(f"Post not found or you do not have permission to {verb} it")
        return post

    def edit(self, actor_id, post_id, content):
        content = (content or "").strip()
        if not content:
            raise ValidationError("Post content cannot be empty")
        original = self._fetch_owned(post_id, actor_id, "edit")
        self.stack.push(actor_id, EditCompensation(
            post_id=original["id"],
            original_content=original["content"],
            new_content=content,
            recorded_at=self.clock(),
        ))
        return self.store.update_content(post_id, actor_id, content)

    def delete(self, actor_id, post_id):
        post = self._fetch_owned(post_id, actor_id, "delete")
        self.stack.push(actor_id, DeleteCompensation(post=PostSnapshot.from_row(post), recorded_at=self.clock()))
        self.store.delete_cascade(post_id, actor_id)
        return post["id"]

    def undo(self, actor_id) -> UndoResult:
        action = self.stack.pop(actor_id)
        if action is None:
            raise EmptyUndoStack()

        if isinstance(action, EditCompensation):
            label, failure = UNDO_EDIT, "Failed to undo edit"
            apply = lambda: self.store.update_content(action.post_id, actor_id, action.original_content)
        elif isinstance(action, DeleteCompensation):
            label, failure = UNDO_DELETE, "Failed to undo delete"
            apply = lambda: self.store.insert_with_id(action.post)
        else:
            logger.error("Discarding undo entry of unknown type %r for user %s", action, actor_id)
            raise UnknownActionTag()

        try:
            restored = apply()
        except StoreError as e:
            self.stack.push(actor_id, action)
            logger.warning("%s for user %s, action restored to stack: %s", failure, actor_id, e.error)
            raise StoreError(failure, error=e.error) from e
        except Exception:
            self.stack.push(actor_id, action)
            raise

        return UndoResult(
            action=label,
            post=restored,
            likes_count=self.store.count_likes(restored["id"]),
            comments_count=self.store.count_comments(restored["id"]),
            remaining_undos=self.stack.size(actor_id),
        )


def undo_handler() -> UndoableOperationHandler:
    return current_app.extensions["edumedia"]["undo_handler"]


def status_reporter() -> UndoStatusReporter:
    return current_app.extensions["edumedia"]["undo_status"]


def post_store() -> PostStore:
    return current_app.extensions["edumedia"]["post_store"]


def post_row_to_dict(row):
    return {
        "id": row["id"],
        "author_id": row["author_id"],
        "content": row["content"],
        "likes": row["likes"],
        "created_at": row["created_at"],
    }


def post_with_counts(row, with_comments=False):
    store = post_store()
    post = {
        "post_id": row["id"],
        "content": row["content"],
        "timestamp": row["created_at"],
        "likes_count": store.count_likes(row["id"]),
        "liked_by": store.liked_by(row["id"]),
        "author": {"name": row["author_name"], "email": row["author_email"], "initials": row["author_initials"]},
        "author_name": row["author_name"] or "Unknown",
    }
    comments = comments_for_post(row["id"])
    post["comments_count"] = len(comments)
    if with_comments:
        post["comments"] = comments
    return post


# -----------------------
# Routes
# -----------------------
@bp.route("/create", methods=["POST"])
@jwt_required
def create_post():
    content = text_field(json_body(), "content").strip()
    if not content:
        raise ValidationError("Post content cannot be empty")
    row = post_store().create(g.current_user["id"], content)
    return jsonify({"success": True, "message": "Post created successfully", "data": {"post": post_row_to_dict(row)}}), 201


@bp.route("/feed", methods=["GET"])
@jwt_required
def feed():
    posts = [post_with_counts(r) for r in post_store().list_all()]
    return jsonify({"success": True, "data": {"posts": posts, "total": len(posts)}})


@bp.route("/my-posts", methods=["GET"])
@jwt_required
def my_posts():
    posts = [post_with_counts(r, with_comments=True) for r in post_store().list_by_author(g.current_user["id"])]
    return jsonify({
        "success": True,
        "message": f"Found {len(posts)} posts",
        "data": {"posts": posts, "total": len(posts)},
    })


@bp.route("/edit", methods=["PUT"])
@jwt_required
def edit_post():
    data = json_body()
    post_id = parse_id(data.get("post_id"), "Post ID")
    content = text_field(data, "content")
    if not content:
        raise ValidationError("Post ID and content are required")
    updated = undo_handler().edit(g.current_user["id"], post_id, content)
    return jsonify({
        "success": True,
        "message": "Post updated successfully",
        "data": {"post": post_row_to_dict(updated), "undo_available": True},
    })


@bp.route("/delete", methods=["DELETE"])
@jwt_required
def delete_post():
    post_id = parse_id(json_body().get("post_id"), "Post ID")
    deleted_id = undo_handler().delete(g.current_user["id"], post_id)
    return jsonify({
        "success": True,
        "message": "Post deleted successfully",
        "data": {"deleted_post_id": deleted_id, "undo_available": True},
    })


@bp.route("/undo", methods=["POST"])
@jwt_required
def undo():
    result = undo_handler().undo(g.current_user["id"])
    noun = "Edit" if result.action == UNDO_EDIT else "Delete"
    return jsonify({
        "success": True,
        "message": f"{noun} undone successfully",
        "data": {
            "action": result.action,
            "post": {
                "post_id": result.post["id"],
                "content": result.post["content"],
                "timestamp": result.post["created_at"],
                "likes_count": result.likes_count,
                "comments_count": result.comments_count,
            },
            "remaining_undos": result.remaining_undos,
        },
    })


@bp.route("/undo-status", methods=["GET"])
@jwt_required
def undo_status():
    return jsonify({"success": True, "data": status_reporter().status(g.current_user["id"])})


@bp.route("/like", methods=["POST"])
@jwt_required
def like_post():
    user_id = g.current_user["id"]
    post_id = parse_id(json_body().get("post_id"), "Post ID")
    store = post_store()
    if store.fetch(post_id) is None:
        raise NotFoundError("Post not found")
    if query_db("SELECT id FROM likes WHERE post_id = ? AND user_id = ?", (post_id, user_id), one=True):
        raise ValidationError("Post already liked")

    with store_call("Failed to like post"):
        (like_id, _), _ = execute_all([
            ("INSERT INTO likes (post_id, user_id) VALUES (?, ?)", (post_id, user_id)),
            (SYNC_LIKE_COUNTER, (post_id, post_id)),
        ])
    return jsonify({
        "success": True,
        "message": "Post liked successfully",
        "data": {"like_id": like_id, "post_id": post_id, "likes_count": store.count_likes(post_id)},
    })


@bp.route("/unlike", methods=["DELETE"])
@jwt_required
def unlike_post():
    post_id = parse_id(json_body().get("post_id"), "Post ID")
    with store_call("Failed to unlike post"):
        execute_all([
            ("DELETE FROM likes WHERE post_id = ? AND user_id = ?", (post_id, g.current_user["id"])),
            (SYNC_LIKE_COUNTER, (post_id, post_id)),
        ])
    return jsonify({
        "success": True,
        "message": "Post unliked successfully",
        "data": {"post_id": post_id, "likes_count": post_store().count_likes(post_id)},
    })
