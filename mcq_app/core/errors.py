"""Exception types raised by the practice core."""

from __future__ import annotations


class McqError(Exception):
    """Base class for all application errors."""


class ContentNotFound(McqError):
    """Raised when a requested course or week does not exist."""


class InvalidQuizFormat(McqError):
    """Raised when a quiz document is malformed.

    ``violations`` lists one human-readable reason per problem found.
    """

    def __init__(self, violations: list[str]) -> None:
        self.violations = list(violations)
        super().__init__("; ".join(self.violations) or "Invalid quiz format.")


class EmptyQuizFormat(InvalidQuizFormat):
    """Raised when a quiz document contains no questions."""

    def __init__(self, message: str = "Quiz must contain at least one question.") -> None:
        super().__init__([message])


class QuizAlreadyExists(McqError):
    """Raised when saving would overwrite an existing quiz without permission."""


class HistoryPersistenceFailure(McqError):
    """Raised when outcome history cannot be read or written."""


class SessionStateError(McqError):
    """Raised when a session operation is not valid in the current state."""


class SessionNotFound(McqError):
    """Raised when a session id is unknown or has been discarded."""


class AccessDenied(McqError):
    """Raised when an admin operation is attempted without a valid token."""
