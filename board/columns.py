"""
columns.py - Column derivation for the board.
A column is never stored: it is recomputed from the flat task collection
every time it is needed.
"""

import enum
from datetime import datetime


class BoardColumn(str, enum.Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


# HIGH sorts first
PRIORITY_RANK = {"HIGH": 0, "MEDIUM": 1, "LOW": 2}


def _due_key(task: dict):
    due = task.get("due_date")
    if not due:
        return (1, datetime.max)
    if isinstance(due, str):
        due = datetime.fromisoformat(due.replace("Z", "+00:00"))
    # compare naive; the API always sends UTC
    return (0, due.replace(tzinfo=None))


def card_sort_key(task: dict):
    """Priority rank, then due date ascending with undated tasks last."""
    return (PRIORITY_RANK.get(task.get("priority"), len(PRIORITY_RANK)), _due_key(task))


def column_tasks(tasks: list[dict], column) -> list[dict]:
    status = BoardColumn(column).value
    return sorted((t for t in tasks if t.get("status") == status), key=card_sort_key)


def group_columns(tasks: list[dict]) -> dict[str, list[dict]]:
    """{status: [task, ...]} for every column, empty columns included."""
    return {col.value: column_tasks(tasks, col) for col in BoardColumn}
