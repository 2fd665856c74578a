# comments.py
"""
Comments on posts. Only a comment's author may edit or delete it.
"""

import logging

from flask import Blueprint, current_app, g, jsonify

from .auth import jwt_required
from .db import execute_db, query_db
from .errors import ForbiddenError, NotFoundError, ValidationError
from .helpers import MAX_ID, json_body, parse_id, text_field
from .store import store_call

logger = logging.getLogger("edumedia.comments")

bp = Blueprint("comments", __name__, url_prefix="/comments")

COMMENT_SELECT = (
    "SELECT c.id, c.post_id, c.author_id, c.text, c.created_at, u.name AS author_name, u.initials AS author_initials "
    "FROM comments c LEFT JOIN users u ON c.author_id = u.id "
)


def comment_to_dict(row):
    return {
        "id": row["id"],
        "post_id": row["post_id"],
        "author_id": row["author_id"],
        "text": row["text"],
        "created_at": row["created_at"],
        "author": row["author_name"] or "Unknown",
        "author_initials": row["author_initials"],
    }


def get_comment(comment_id):
    return query_db(COMMENT_SELECT + "WHERE c.id = ?", (comment_id,), one=True)


def comments_for_post(post_id):
    rows = query_db(COMMENT_SELECT + "WHERE c.post_id = ? ORDER BY c.created_at ASC, c.id ASC", (post_id,))
    return [comment_to_dict(r) for r in rows]


def count_comments(post_id):
    return current_app.extensions["edumedia"]["post_store"].count_comments(post_id)


def owned_comment(comment_id, verb):
    comment = get_comment(comment_id)
    if not comment:
        raise NotFoundError("Comment not found")
    if comment["author_id"] != g.current_user["id"]:
        raise ForbiddenError(f"You can only {verb} your own comments")
    return comment


@bp.route("/add", methods=["POST"])
@jwt_required
def add_comment():
    data = json_body()
    post_id = parse_id(data.get("post_id"), "Post ID")
    text = text_field(data, "text").strip()
    if not text:
        raise ValidationError("Post ID and comment text are required")
    if not query_db("SELECT 1 FROM posts WHERE id = ?", (post_id,), one=True):
        raise NotFoundError("Post not found")

    with store_call("Failed to add comment"):
        comment_id, _ = execute_db(
            "INSERT INTO comments (post_id, author_id, text) VALUES (?, ?, ?)", (post_id, g.current_user["id"], text)
        )
    return jsonify({
        "success": True,
        "message": "Comment added successfully",
        "data": {"comment": comment_to_dict(get_comment(comment_id)), "comments_count": count_comments(post_id)},
    }), 201


@bp.route(f"/<int(max={MAX_ID}):comment_id>", methods=["PUT"])
@jwt_required
def edit_comment(comment_id):
    text = text_field(json_body(), "text").strip()
    if not text:
        raise ValidationError("Comment text cannot be empty")
    comment = owned_comment(comment_id, "edit")

    with store_call("Failed to edit comment"):
        execute_db("UPDATE comments SET text = ? WHERE id = ?", (text, comment_id))
    return jsonify({
        "success": True,
        "message": "Comment updated successfully",
        "data": {"comment": comment_to_dict(get_comment(comment_id)), "old_text": comment["text"]},
    })


@bp.route(f"/<int(max={MAX_ID}):comment_id>", methods=["DELETE"])
@jwt_required
def delete_comment(comment_id):
    comment = owned_comment(comment_id, "delete")

    with store_call("Failed to delete comment"):
        execute_db("DELETE FROM comments WHERE id = ?", (comment_id,))
    return jsonify({
        "success": True,
        "message": "Comment deleted successfully",
        "data": {"deleted_comment": comment_to_dict(comment), "comments_count": count_comments(comment["post_id"])},
    })
