"""Error taxonomy for payroll runs.

Each error carries an ErrorKind so callers can apply a different policy per
kind: validation errors abort before a run exists, provider errors fall back
to the default fee, execution errors are recorded on the leg and the run
continues.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Category of a payroll error."""

    VALIDATION = "validation"
    PROVIDER = "provider"
    EXECUTION = "execution"


class RelayPayrollError(Exception):
    """Base class for all relay payroll errors."""

    kind: ErrorKind = ErrorKind.EXECUTION


class PayrollValidationError(RelayPayrollError):
    """Raised when run inputs are invalid. No state has been persisted."""

    kind = ErrorKind.VALIDATION


class AllocationValidationError(PayrollValidationError):
    """Raised when an allocation set does not satisfy the sum invariant."""

    def __init__(self, message: str, employee_id: object | None = None):
        self.employee_id = employee_id
        if employee_id is not None:
            message = f"Employee {employee_id}: {message}"
        super().__init__(message)


class QuoteProviderError(RelayPayrollError):
    """Raised by quote providers on transport, status or payload failures."""

    kind = ErrorKind.PROVIDER

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class LegExecutionError(RelayPayrollError):
    """Raised when a single transfer leg cannot be completed."""

    kind = ErrorKind.EXECUTION
