# friends.py
"""
Friend requests and friendships.

A request and the friendship it becomes share one row in ``friends``:
``requester_id`` sent it, ``addressee_id`` received it, and ``is_accepted``
flips when the addressee accepts. Both parties read the same row.
"""

import logging

from flask import Blueprint, g, jsonify

from .auth import jwt_required
from .db import execute_db, query_db
from .errors import ForbiddenError, NotFoundError, ValidationError
from .helpers import MAX_ID, json_body, parse_id, text_field
from .store import store_call

logger = logging.getLogger("edumedia.friends")

bp = Blueprint("friends", __name__)


def relation_between(a, b):
    return query_db(
        "SELECT * FROM friends WHERE (requester_id = ? AND addressee_id = ?) OR (requester_id = ? AND addressee_id = ?)",
        (a, b, b, a),
        one=True,
    )


@bp.route("/friend-request/send", methods=["POST"])
@jwt_required
def send_request():
    me = g.current_user
    email = text_field(json_body(), "friendEmail").strip().lower()
    if not email:
        raise ValidationError("Email is required")
    if email == me["email"].lower():
        raise ValidationError("You cannot send a friend request to yourself")

    receiver = query_db("SELECT id, name, email, initials FROM users WHERE lower(email) = ?", (email,), one=True)
    if not receiver:
        raise NotFoundError("User not found. Please check the email and try again.")

    existing = relation_between(me["id"], receiver["id"])
    if existing:
        if existing["is_accepted"]:
            raise ValidationError("You are already friends with this user")
        raise ValidationError("A friend request already exists between you and this user")

    with store_call("Failed to send friend request"):
        request_id, _ = execute_db(
            "INSERT INTO friends (requester_id, addressee_id) VALUES (?, ?)", (me["id"], receiver["id"])
        )
    logger.info("Friend request %s: %s -> %s", request_id, me["id"], receiver["id"])
    return jsonify({
        "success": True,
        "message": f"Friend request sent to {receiver['name']}",
        "data": {
            "request": {
                "id": request_id,
                "sender_id": me["id"],
                "receiver_id": receiver["id"],
                "receiver_name": receiver["name"],
                "receiver_email": receiver["email"],
                "isAccepted": False,
            }
        },
    }), 201


@bp.route("/friend-request/pending", methods=["GET"])
@jwt_required
def pending_requests():
    rows = query_db(
        "SELECT f.id, f.requester_id, f.added_at, u.name, u.email, u.initials "
        "FROM friends f JOIN users u ON f.requester_id = u.id "
        "WHERE f.addressee_id = ? AND f.is_accepted = 0 ORDER BY f.added_at DESC, f.id DESC",
        (g.current_user["id"],),
    )
    requests = [
        {
            "id": r["id"],
            "sender_id": r["requester_id"],
            "sender_name": r["name"],
            "sender_email": r["email"],
            "sender_initials": r["initials"],
            "received_at": r["added_at"],
        }
        for r in rows
    ]
    return jsonify({"success": True, "data": {"requests": requests, "count": len(requests)}})


@bp.route("/friend-request/accept", methods=["POST"])
@jwt_required
def accept_request():
    request_id = parse_id(json_body().get("request_id"), "Request ID")
    row = query_db(
        "SELECT f.*, u.name, u.email, u.initials FROM friends f JOIN users u ON f.requester_id = u.id "
        "WHERE f.id = ? AND f.addressee_id = ?",
        (request_id, g.current_user["id"]),
        one=True,
    )
    if not row:
        raise NotFoundError("Friend request not found")
    if row["is_accepted"]:
        raise ValidationError("This request has already been accepted")

    with store_call("Failed to accept friend request"):
        execute_db(
            "UPDATE friends SET is_accepted = 1, accepted_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id = ?",
            (request_id,),
        )
    return jsonify({
        "success": True,
        "message": f"You are now friends with {row['name']}",
        "data": {
            "friendship": {
                "id": row["id"],
                "friend_id": row["requester_id"],
                "friend_name": row["name"],
                "friend_email": row["email"],
                "friend_initials": row["initials"],
            }
        },
    })


@bp.route(f"/friend-request/reject/<int(max={MAX_ID}):request_id>", methods=["DELETE"])
@jwt_required
def reject_request(request_id):
    row = query_db(
        "SELECT id FROM friends WHERE id = ? AND addressee_id = ? AND is_accepted = 0",
        (request_id, g.current_user["id"]),
        one=True,
    )
    if not row:
        raise NotFoundError("Friend request not found")
    with store_call("Failed to reject friend request"):
        execute_db("DELETE FROM friends WHERE id = ?", (request_id,))
    return jsonify({"success": True, "message": "Friend request rejected successfully"})


@bp.route("/friends", methods=["GET"])
@jwt_required
def list_friends():
    me = g.current_user["id"]
    rows = query_db(
        "SELECT f.id, f.accepted_at, u.id AS friend_id, u.name, u.email, u.initials "
        "FROM friends f JOIN users u "
        "ON u.id = CASE WHEN f.requester_id = ? THEN f.addressee_id ELSE f.requester_id END "
        "WHERE f.is_accepted = 1 AND (f.requester_id = ? OR f.addressee_id = ?) ORDER BY u.name",
        (me, me, me),
    )
    friends = [
        {
            "id": r["id"],
            "friend_id": r["friend_id"],
            "friend_name": r["name"],
            "friend_email": r["email"],
            "friend_initials": r["initials"],
            "accepted_at": r["accepted_at"],
        }
        for r in rows
    ]
    return jsonify({"success": True, "data": {"friends": friends, "count": len(friends)}})


@bp.route(f"/friends/remove/<int(max={MAX_ID}):friendship_id>", methods=["DELETE"])
@jwt_required
def remove_friend(friendship_id):
    me = g.current_user["id"]
    row = query_db("SELECT * FROM friends WHERE id = ? AND is_accepted = 1", (friendship_id,), one=True)
    if not row:
        raise NotFoundError("Friendship not found")
    if me not in (row["requester_id"], row["addressee_id"]):
        raise ForbiddenError("Not authorized to remove this friendship")
    with store_call("Failed to remove friendship"):
        execute_db("DELETE FROM friends WHERE id = ?", (friendship_id,))
    return jsonify({"success": True, "message": "Friendship removed successfully"})
