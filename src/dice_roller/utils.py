"""Shared helpers for saved roll payloads."""
from __future__ import annotations

import json
from typing import Any


def load_payload(value: Any) -> dict | None:
    """Decode a stored roll payload.

    Accepts JSON text or an already-decoded mapping. Anything that is not an
    object carrying a string ``type`` (the roller kind) yields None.
    """
    if isinstance(value, (str, bytes)):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return None
    if not isinstance(value, dict) or not isinstance(value.get("type"), str):
        return None
    return value


def format_position(path: str, line: int, index: int) -> str:
    """``path:line:index`` with the line shown 1-based, as editors number it."""
    return f"{path}:{line + 1}:{index}"
