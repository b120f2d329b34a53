"""Response schemas and minification for MCP tool responses.

Minifies session snapshots before they are returned to the agent. The
move log is compacted to a numbered move string (1.e2e4 e7e5 2.g1f3 ...)
and empty fields are dropped.
"""

from __future__ import annotations

import os


# ---------------------------------------------------------------------------
# Minification functions
# ---------------------------------------------------------------------------


def minify_session(snapshot: dict) -> dict:
    """Minify a session snapshot for MCP response.

    Keeps the fields a board surface needs, compacts move_log into a
    numbered string, and omits advice when there is none.

    Args:
        snapshot: Full snapshot dict (as produced by Session.snapshot).

    Returns:
        Minified dict with reduced token footprint.
    """
    result = {}

    for key in (
        "session_id", "mode", "state", "fen", "turn", "termination",
        "status", "pending_request",
    ):
        if key in snapshot:
            result[key] = snapshot[key]

    if snapshot.get("in_check"):
        result["in_check"] = True

    advice = snapshot.get("advice")
    if advice:
        result["advice"] = advice

    move_log = snapshot.get("move_log", [])
    if isinstance(move_log, list):
        result["move_log"] = _moves_to_numbered_string(move_log)
    else:
        result["move_log"] = move_log

    return result


def minify_drop(result: str, snapshot: dict) -> dict:
    """Minify a drop response: the arbiter's verdict plus the session.

    Args:
        result: 'accepted' or 'snapback'.
        snapshot: Session snapshot after the drop.

    Returns:
        Minified session dict with a 'result' key.
    """
    response = {"result": result}
    response.update(minify_session(snapshot))
    return response


# ---------------------------------------------------------------------------
# Helper: move list to numbered string
# ---------------------------------------------------------------------------


def _moves_to_numbered_string(moves: list[str]) -> str:
    """Convert a list of moves to a numbered move string.

    E.g., ['e2e4', 'e7e5', 'g1f3'] -> '1.e2e4 e7e5 2.g1f3'

    Args:
        moves: List of move strings.

    Returns:
        Numbered move string.
    """
    if not moves:
        return ""

    parts = []
    for i, move in enumerate(moves):
        if i % 2 == 0:
            parts.append(f"{i // 2 + 1}.{move}")
        else:
            parts.append(move)

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Validation schemas (dict-based)
# ---------------------------------------------------------------------------

SESSION_SCHEMA = {
    "session_id": str,
    "mode": str,
    "state": str,
    "fen": str,
    "turn": str,
    "termination": str,
    "status": str,
    "pending_request": bool,
    "move_log": str,
}

DROP_SCHEMA = {
    **SESSION_SCHEMA,
    "result": str,
}

DRAG_SCHEMA = {
    "allowed": bool,
    "status": str,
}

ERROR_SCHEMA = {
    "error": str,
}


# Keys whose values come from a fixed vocabulary
ALLOWED_VALUES = {
    "result": ("accepted", "snapback"),
    "turn": ("white", "black"),
    "termination": ("none", "checkmate", "draw"),
}

_VALIDATE_ENV = "CHESS_SESSIONS_VALIDATE"


def validate_response(response: dict, schema: dict) -> list[str]:
    """Check a tool response against a key -> type schema.

    Does nothing unless CHESS_SESSIONS_VALIDATE=1. Keys listed in
    ALLOWED_VALUES must also hold one of their permitted values.

    Args:
        response: Tool response to check.
        schema: Dict mapping required keys to their expected type.

    Returns:
        Problems found, one string each (empty = valid).
    """
    if os.environ.get(_VALIDATE_ENV) != "1":
        return []
    if not isinstance(response, dict):
        return [f"Response is not a dict: {type(response).__name__}"]

    problems = []
    for key, expected in schema.items():
        problem = _check_key(response, key, expected)
        if problem:
            problems.append(problem)
    return problems


def _check_key(response: dict, key: str, expected: type) -> str | None:
    if key not in response:
        return f"Missing key: {key}"
    value = response[key]
    if not isinstance(value, expected):
        return f"Key '{key}': expected {expected.__name__}, got {type(value).__name__}"
    allowed = ALLOWED_VALUES.get(key)
    if allowed is not None and value not in allowed:
        return f"Key '{key}': {value!r} is not one of {', '.join(allowed)}"
    return None
