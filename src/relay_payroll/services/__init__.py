"""Relay payroll services."""

from relay_payroll.services.allocations import AllocationValidation, validate_allocations
from relay_payroll.services.leg_executor import (
    AllocationLeg,
    LegExecutor,
    SimulatedLegExecutor,
    TransferResult,
)
from relay_payroll.services.payroll_run import LegResult, PayrollRunResult, PayrollRunService
from relay_payroll.services.payroll_store import (
    AllocationInput,
    PayrollPersistence,
    PayrollStats,
    PayrollStore,
)
from relay_payroll.services.quote_resolver import (
    LegRoute,
    QuoteResolver,
    QuoteSource,
    ResolvedQuote,
)
from relay_payroll.services.splitter import split_amount
from relay_payroll.services.state_machine import (
    InvalidTransitionError,
    PayEventStatus,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

__all__ = [
    "AllocationInput",
    "AllocationLeg",
    "AllocationValidation",
    "InvalidTransitionError",
    "LegExecutor",
    "LegResult",
    "LegRoute",
    "PayEventStatus",
    "PayrollPersistence",
    "PayrollRunResult",
    "PayrollRunService",
    "PayrollRunStateMachine",
    "PayrollRunStatus",
    "PayrollStats",
    "PayrollStore",
    "QuoteResolver",
    "QuoteSource",
    "ResolvedQuote",
    "SimulatedLegExecutor",
    "TransferResult",
    "split_amount",
    "validate_allocations",
]
