"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import Iterable


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


class PayEventStatus(str, Enum):
    """Pay event (single leg) status values."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - pending → processing
    - processing → complete
    - processing → failed

    A run leaves processing exactly once; complete and failed are terminal.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.PENDING: [PayrollRunStatus.PROCESSING],
        PayrollRunStatus.PROCESSING: [PayrollRunStatus.COMPLETE, PayrollRunStatus.FAILED],
        PayrollRunStatus.COMPLETE: [],  # Terminal state
        PayrollRunStatus.FAILED: [],  # Terminal state
    }

    TERMINAL = {PayrollRunStatus.COMPLETE, PayrollRunStatus.FAILED}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            reason = "run already finished" if cls.is_terminal(from_status) else None
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        """Check if no further transitions are possible."""
        return status in cls.TERMINAL

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def rollup(cls, leg_statuses: Iterable[str]) -> PayrollRunStatus:
        """Terminal run status from its leg outcomes.

        A run is complete when at least one leg completed. It fails only when
        every leg failed, or when there were no legs at all.
        """
        if any(status == PayEventStatus.COMPLETE for status in leg_statuses):
            return PayrollRunStatus.COMPLETE
        return PayrollRunStatus.FAILED
