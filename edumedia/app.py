# app.py
"""
EduMedia: Flask backend for posts, likes, comments, friends and undo

Key production notes:
 - Configure via environment variables (see edumedia/config.py).
 - Serve with a WSGI server, ONE worker process (threads are fine). Undo
   history lives in process memory, so several workers would each keep
   their own:
     gunicorn -w 1 --threads 8 -b 0.0.0.0:3000 "edumedia.app:create_app()"
"""

import datetime
import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS

from . import auth, comments, config, db, friends, posts
from .errors import register_error_handlers
from .posts import UndoableOperationHandler
from .store import PostStore
from .undo import UndoStack, UndoStatusReporter

logger = logging.getLogger("edumedia")


def create_app(overrides=None):
    app = Flask(__name__, static_folder=None)
    app.config.from_mapping(config.defaults())
    if overrides:
        app.config.update(overrides)

    # CORS
    CORS(app, resources={r"/*": {"origins": app.config["CORS_ORIGINS"]}})

    # Logging
    logging.basicConfig(level=app.config["LOG_LEVEL"])

    # Undo history is created here, once, and shared by every request.
    stack = UndoStack(limit=app.config["UNDO_LIMIT"])
    store = PostStore()
    app.extensions["edumedia"] = {
        "undo_stack": stack,
        "post_store": store,
        "undo_handler": UndoableOperationHandler(stack, store),
        "undo_status": UndoStatusReporter(stack),
    }

    for blueprint in (auth.bp, posts.bp, comments.bp, friends.bp):
        app.register_blueprint(blueprint, url_prefix="/api" + (blueprint.url_prefix or ""))

    app.add_url_rule("/health", "health", health)
    app.after_request(set_security_headers)
    register_error_handlers(app)

    db.init_app(app)
    logger.info("Undo history limit: %d actions per user", stack.limit)
    return app


def health():
    return jsonify({
        "success": True,
        "message": "EduMedia server is running",
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    })


# -----------------------
# Security headers
# -----------------------
def set_security_headers(response):
    # Basic security headers; tune for your deployment
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "no-referrer-when-downgrade")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=()")
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
    return response


# -----------------------
# Run server (for dev only). For production use a WSGI server.
# -----------------------
if __name__ == "__main__":
    create_app().run(
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 3000)),
        debug=os.environ.get("FLASK_DEBUG", "0") == "1",
    )
