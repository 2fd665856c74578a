# helpers.py
"""Request parsing shared by the blueprints."""

from flask import request

from .errors import ValidationError

# largest value a SQLite INTEGER column can hold
MAX_ID = 2 ** 63 - 1


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def text_field(data: dict, key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def parse_id(value, label: str) -> int:
    """Accepts an int or a string of ASCII digits in SQLite's INTEGER range."""
    if isinstance(value, bool):
        raise ValidationError(f"{label} is required")
    if isinstance(value, str):
        text = value.strip()
        if not (text.isascii() and text.isdigit()):
            raise ValidationError(f"{label} is required")
        try:
            value = int(text)
        except ValueError:
            raise ValidationError(f"{label} is required")
    if not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{label} is required")
    if value > MAX_ID:
        raise ValidationError(f"{label} is out of range")
    return value
