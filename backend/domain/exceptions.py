"""
Custom exception classes for the garden application.

Store-level errors are plain exceptions that the service layer translates into
typed command outcomes. HTTP-facing errors subclass HTTPException so routers
can raise them directly.
"""

from typing import Optional

from fastapi import HTTPException, status

from domain.value_objects.enums import CommandOutcome, EntityKind

OUTCOME_STATUS_CODES = {
    CommandOutcome.FIELD_OCCUPIED: status.HTTP_409_CONFLICT,
    CommandOutcome.INVALID_FIELD_KIND: status.HTTP_422_UNPROCESSABLE_ENTITY,
    CommandOutcome.INSUFFICIENT_INVENTORY: status.HTTP_409_CONFLICT,
    CommandOutcome.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    CommandOutcome.ALREADY_TRANSITIONED: status.HTTP_410_GONE,
}

OUTCOME_MESSAGES = {
    CommandOutcome.FIELD_OCCUPIED: "Field is already occupied",
    CommandOutcome.INVALID_FIELD_KIND: "Operation not allowed on this field",
    CommandOutcome.INSUFFICIENT_INVENTORY: "Not enough items in inventory",
    CommandOutcome.NOT_FOUND: "Nothing to collect on this field",
    CommandOutcome.ALREADY_TRANSITIONED: "Already collected or expired",
}


class FieldOccupiedError(Exception):
    """Raised by the store when creating an entity on a field that already holds one."""

    def __init__(self, user_id: str, field_index: int, occupant: Optional[EntityKind] = None):
        self.user_id = user_id
        self.field_index = field_index
        self.occupant = occupant
        detail = f" by {occupant}" if occupant else ""
        super().__init__(f"Field {field_index} of user {user_id} is occupied{detail}")


class CommandRejectedError(HTTPException):
    """Raised by routers when a garden command returns a non-OK outcome."""

    def __init__(self, outcome: CommandOutcome, message: Optional[str] = None):
        self.outcome = outcome
        super().__init__(
            status_code=OUTCOME_STATUS_CODES.get(outcome, status.HTTP_400_BAD_REQUEST),
            detail={"outcome": outcome.value, "message": message or OUTCOME_MESSAGES.get(outcome, str(outcome))},
        )


class ConfigurationError(ValueError):
    """Raised when there's an error in configuration parsing or validation."""

    def __init__(self, message: str):
        super().__init__(f"Configuration error: {message}")
