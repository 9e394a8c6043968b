# src/domain/state_machine.py

from enum import Enum
from typing import Dict, Set

from src.domain.exceptions import InvalidStateTransitionError, ValidationError


class BookingStatus(str, Enum):
    PENDING = "pending"
    COMPLETE = "complete"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, raw: "str | BookingStatus") -> "BookingStatus":
        if isinstance(raw, BookingStatus):
            return raw
        try:
            return cls(raw.strip().lower())
        except ValueError:
            raise ValidationError(f"Invalid booking status: {raw}") from None


class BookingTransition(str, Enum):
    CREATE = "create"
    CONFIRM = "confirm"
    CANCEL = "cancel"


class BookingStateMachine:
    """
    Central lifecycle controller for booking transitions.
    Defines the legal state transitions.

    A booking is created PENDING. CONFIRM moves it to COMPLETE,
    CANCEL to CANCELLED. Both are terminal.
    """

    INITIAL_STATUS = BookingStatus.PENDING

    _ALLOWED_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
        BookingStatus.PENDING: {
            BookingStatus.COMPLETE,
            BookingStatus.CANCELLED,
        },
        BookingStatus.COMPLETE: set(),
        BookingStatus.CANCELLED: set(),
    }

    _TARGETS: Dict[BookingTransition, BookingStatus] = {
        BookingTransition.CONFIRM: BookingStatus.COMPLETE,
        BookingTransition.CANCEL: BookingStatus.CANCELLED,
    }

    @classmethod
    def can_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
        message: str | None = None,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
                message=message,
            )

    @classmethod
    def target_of(cls, transition: BookingTransition) -> BookingStatus:
        if transition is BookingTransition.CREATE:
            return cls.INITIAL_STATUS
        return cls._TARGETS[transition]

    @classmethod
    def apply(
        cls,
        from_status: BookingStatus,
        transition: BookingTransition,
        message: str | None = None,
    ) -> BookingStatus:
        """
        Returns the status reached by a named transition,
        raising InvalidStateTransitionError when it is not legal from here.
        """
        if transition is BookingTransition.CREATE:
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=cls.INITIAL_STATUS.value,
                message=message or "Booking already exists",
            )
        to_status = cls.target_of(transition)
        cls.validate_transition(from_status, to_status, message=message)
        return to_status

    @staticmethod
    def _ensure_valid_status(status: BookingStatus) -> None:
        if not isinstance(status, BookingStatus):
            raise TypeError(
                f"Expected BookingStatus, got {type(status)}"
            )
