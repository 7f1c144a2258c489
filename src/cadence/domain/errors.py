"""Exception taxonomy for the progress engine."""

from typing import Any


class CadenceError(Exception):
    """Base exception for the engine."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidGrade(CadenceError, ValueError):
    """Grade outside the 0-5 scale. Rejected before any state is read."""

    def __init__(self, grade: Any):
        super().__init__(f"Grade must be an integer between 0 and 5, got {grade!r}", {"grade": grade})
        self.grade = grade


class CardNotFound(CadenceError, LookupError):
    """The card id does not reference a known card."""

    def __init__(self, card_id: int):
        super().__init__(f"Card {card_id} not found", {"card_id": card_id})
        self.card_id = card_id


class StoreUnavailable(CadenceError):
    """
    Transient persistence failure.

    Safe to retry: re-applying the same grade with the same `now` against the
    same prior state yields the same record.
    """


class SessionCompleted(CadenceError):
    """A review was recorded into a session that has already ended."""
