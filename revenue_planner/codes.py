# revenue_planner/codes.py
"""
Project codes: "PRJ" + zero-padded sequence number ("PRJ001", "PRJ002", ...).
"""

from __future__ import annotations

from typing import Optional

CODE_PREFIX = "PRJ"


def format_project_code(number: int) -> str:
    return f"{CODE_PREFIX}{number:03d}"


def parse_project_code(code: str) -> int:
    """
    Return the sequence number of a code ("PRJ007" -> 7).

    Raises:
        ValueError: code does not start with PRJ or has no number.
    """
    if not code or not code.startswith(CODE_PREFIX):
        raise ValueError(f"Not a project code: {code!r}")
    return int(code[len(CODE_PREFIX):])


def next_project_code(last_code: Optional[str]) -> str:
    """
    Code following the last issued one; "PRJ001" when nothing was issued yet.
    """
    if not last_code:
        return format_project_code(1)
    return format_project_code(parse_project_code(last_code) + 1)
