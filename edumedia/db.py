# db.py
"""
Database helpers

One sqlite3 connection per application context, kept on ``flask.g`` and
closed on teardown. Timestamps are stored as ISO-8601 UTC text so rows can
be snapshotted and re-inserted verbatim.
"""

import logging
import sqlite3

from flask import current_app, g

logger = logging.getLogger("edumedia.db")

SCHEMA = """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT UNIQUE NOT NULL,
    bio TEXT DEFAULT '',
    initials TEXT DEFAULT '',
    password_hash TEXT NOT NULL,
    created_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);

CREATE TABLE IF NOT EXISTS posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    author_id INTEGER NOT NULL,
    content TEXT NOT NULL,
    likes INTEGER DEFAULT 0,
    created_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    FOREIGN KEY(author_id) REFERENCES users(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS likes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    post_id INTEGER NOT NULL,
    created_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(user_id, post_id),
    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
    FOREIGN KEY(post_id) REFERENCES posts(id)
);

CREATE TABLE IF NOT EXISTS comments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    author_id INTEGER NOT NULL,
    post_id INTEGER NOT NULL,
    text TEXT NOT NULL,
    created_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    FOREIGN KEY(author_id) REFERENCES users(id) ON DELETE CASCADE,
    FOREIGN KEY(post_id) REFERENCES posts(id)
);

CREATE TABLE IF NOT EXISTS friends (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    requester_id INTEGER NOT NULL,
    addressee_id INTEGER NOT NULL,
    is_accepted INTEGER NOT NULL DEFAULT 0,
    added_at TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    accepted_at TEXT,
    UNIQUE(requester_id, addressee_id),
    FOREIGN KEY(requester_id) REFERENCES users(id) ON DELETE CASCADE,
    FOREIGN KEY(addressee_id) REFERENCES users(id) ON DELETE CASCADE
);
"""


def get_db():
    """
    Returns a sqlite3.Connection. We use check_same_thread=False to allow
    threaded WSGI servers (sqlite still has concurrency limits).
    """
    if "db" not in g:
        conn = sqlite3.connect(current_app.config["DATABASE"], check_same_thread=False)
        conn.row_factory = sqlite3.Row
        cur = conn.cursor()
        cur.execute("PRAGMA journal_mode=WAL;")
        cur.execute("PRAGMA synchronous=NORMAL;")
        cur.execute("PRAGMA foreign_keys=ON;")
        cur.close()
        g.db = conn
    return g.db


def close_db(exc=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def query_db(query, args=(), one=False):
    cur = get_db().execute(query, args)
    rv = cur.fetchall()
    cur.close()
    return (rv[0] if rv else None) if one else rv


def execute_db(query, args=()):
    """Runs one statement and commits. Returns ``(lastrowid, rowcount)``."""
    conn = get_db()
    try:
        cur = conn.execute(query, args)
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise
    lastrowid, rowcount = cur.lastrowid, cur.rowcount
    cur.close()
    return lastrowid, rowcount


def execute_all(statements):
    """Runs ``(query, args)`` pairs in one transaction. Returns the cursors' ``(lastrowid, rowcount)``."""
    conn = get_db()
    results = []
    try:
        for query, args in statements:
            cur = conn.execute(query, args)
            results.append((cur.lastrowid, cur.rowcount))
            cur.close()
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise
    return results


def init_db():
    db = get_db()
    cur = db.cursor()
    cur.executescript(SCHEMA)
    db.commit()
    cur.close()


def init_app(app):
    app.teardown_appcontext(close_db)
    with app.app_context():
        init_db()
        logger.info("Database initialized/ready at %s", app.config["DATABASE"])
