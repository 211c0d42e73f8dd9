from __future__ import annotations


class QuestlogError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(QuestlogError):
    code = "NOT_FOUND"
    status_code = 404


class ValidationError(QuestlogError):
    code = "VALIDATION_ERROR"
    status_code = 400


class ConflictError(QuestlogError):
    code = "CONFLICT"
    status_code = 409


class InvariantViolation(QuestlogError):
    """State that valid inputs can never produce (unknown cadence and the like)."""
