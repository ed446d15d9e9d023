"""
errors.py - Error kinds shared by the store, the services and the HTTP layer.
Each kind carries the HTTP status it surfaces as; the mapping to a response
happens once, in main.py.
"""


class BoardError(Exception):
    """Base class for every error the task board raises on purpose."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BoardError):
    """A required field is missing, blank or out of range. Raised before any mutation."""

    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class NotFoundError(BoardError):
    status_code = 404

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity.capitalize()} not found")
        self.entity = entity
        self.entity_id = entity_id


class ReferentialIntegrityError(BoardError):
    """A link points at a missing category, or a referenced category is being deleted."""

    status_code = 400


class StoreError(BoardError):
    """The store failed underneath us (unreachable, deadlock, constraint we did not expect)."""

    status_code = 500
