# auth.py
"""
Accounts and session identity.

Passwords are hashed with werkzeug; sessions are stateless JWTs whose ``sub``
claim carries the user id. ``jwt_required`` resolves the bearer token to a
user and stores it on ``g.current_user`` before the view runs.
"""

import datetime
import functools
import logging
import re
from typing import Optional

import jwt  # PyJWT
from flask import Blueprint, current_app, g, jsonify, request
from werkzeug.security import check_password_hash, generate_password_hash

from .db import execute_db, query_db
from .helpers import json_body, text_field
from .errors import (
    AuthenticationError,
    ConflictError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger("edumedia.auth")

bp = Blueprint("auth", __name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# -----------------------
# JWT helpers
# -----------------------
def create_token(user_id: int, email: str) -> str:
    now = datetime.datetime.now(datetime.timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + datetime.timedelta(seconds=current_app.config["JWT_EXP_SECONDS"]),
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm=current_app.config["JWT_ALGORITHM"])


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(
            token,
            current_app.config["SECRET_KEY"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
        )
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def resolve_actor(req) -> int:
    """Maps a request to the id of the user it acts for, or raises."""
    auth = req.headers.get("Authorization", "")
    token = auth.split(" ", 1)[1].strip() if auth.startswith("Bearer ") else ""
    if not token:
        raise AuthenticationError("Access token required")
    payload = decode_token(token)
    if not payload:
        raise InvalidTokenError("Invalid or expired token")
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise InvalidTokenError("Invalid or expired token")


def jwt_required(f):
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        user = get_user_by_id(resolve_actor(request))
        if not user:
            raise InvalidTokenError("User not found")
        g.current_user = user
        return f(*args, **kwargs)
    return wrapper


# -----------------------
# Utility helpers
# -----------------------
def user_to_dict(row):
    if row is None:
        return None
    return {
        "id": row["id"],
        "name": row["name"],
        "email": row["email"],
        "bio": row["bio"],
        "initials": row["initials"],
        "created_at": row["created_at"],
    }


def get_user_by_id(user_id: int):
    r = query_db("SELECT * FROM users WHERE id = ?", (user_id,), one=True)
    return user_to_dict(r)


def get_user_by_email(email: str):
    r = query_db("SELECT * FROM users WHERE email = ?", (email.strip().lower(),), one=True)
    return user_to_dict(r)


def get_initials(name: str) -> str:
    return "".join(word[0] for word in name.split()).upper()[:2]


def validate_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


# -----------------------
# Routes
# -----------------------
@bp.route("/auth/signup", methods=["POST"])
def signup():
    data = json_body()
    name = text_field(data, "name").strip()
    email = text_field(data, "email").strip().lower()
    password = text_field(data, "password")
    bio = text_field(data, "bio").strip()

    if not name or not email or not password:
        raise ValidationError("Name, email, and password are required")
    if not validate_email(email):
        raise ValidationError("Invalid email format")
    min_length = current_app.config["PASSWORD_MIN_LENGTH"]
    if len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters long")
    if get_user_by_email(email):
        raise ConflictError("An account with this email already exists")

    user_id, _ = execute_db(
        "INSERT INTO users (name, email, bio, initials, password_hash) VALUES (?, ?, ?, ?, ?)",
        (name, email, bio, get_initials(name), generate_password_hash(password)),
    )
    user = get_user_by_id(user_id)
    logger.info("Created account %s", user_id)
    return jsonify({
        "success": True,
        "message": "Account created successfully",
        "data": {"user": user, "token": create_token(user_id, email)},
    }), 201


@bp.route("/auth/login", methods=["POST"])
def login():
    data = json_body()
    email = text_field(data, "email").strip().lower()
    password = text_field(data, "password")
    if not email or not password:
        raise ValidationError("Email and password are required")

    row = query_db("SELECT * FROM users WHERE email = ?", (email,), one=True)
    if not row or not check_password_hash(row["password_hash"], password):
        raise AuthenticationError("Invalid email or password")

    return jsonify({
        "success": True,
        "message": "Login successful",
        "data": {"user": user_to_dict(row), "token": create_token(row["id"], row["email"])},
    })


@bp.route("/auth/verify", methods=["GET"])
@jwt_required
def verify():
    return jsonify({"success": True, "message": "Token is valid", "data": {"user": g.current_user}})


@bp.route("/auth/change-password", methods=["POST"])
@jwt_required
def change_password():
    data = json_body()
    current_password = text_field(data, "currentPassword")
    new_password = text_field(data, "newPassword")
    if not current_password or not new_password:
        raise ValidationError("Current password and new password are required")
    min_length = current_app.config["PASSWORD_MIN_LENGTH"]
    if len(new_password) < min_length:
        raise ValidationError(f"New password must be at least {min_length} characters long")

    row = query_db("SELECT id, password_hash FROM users WHERE id = ?", (g.current_user["id"],), one=True)
    if not row:
        raise NotFoundError("User not found")
    if not check_password_hash(row["password_hash"], current_password):
        raise AuthenticationError("Current password is incorrect")

    execute_db("UPDATE users SET password_hash = ? WHERE id = ?", (generate_password_hash(new_password), row["id"]))
    return jsonify({"success": True, "message": "Password changed successfully"})


@bp.route("/user/profile", methods=["GET"])
@jwt_required
def profile():
    return jsonify({"success": True, "data": {"user": g.current_user}})
