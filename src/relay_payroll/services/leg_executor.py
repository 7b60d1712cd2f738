"""Execution of a single allocation leg.

The shipped executor simulates submission: it hands out a random
transaction hash instead of signing and broadcasting the quote's steps.
Executors never raise; a leg that cannot be completed comes back as a
failed TransferResult.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from relay_payroll.errors import ErrorKind, LegExecutionError
from relay_payroll.services.identifiers import IdGenerator, random_tx_hash
from relay_payroll.services.quote_resolver import ResolvedQuote
from relay_payroll.services.state_machine import PayEventStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationLeg:
    """One (employee, destination asset, destination chain) share of a run."""

    employee_id: UUID
    employee_name: str
    allocation_id: str
    token_symbol: str
    token_address: str
    chain_id: int
    chain_name: str
    percentage: Decimal
    amount: Decimal
    recipient_wallet: str


@dataclass(frozen=True)
class TransferResult:
    """Outcome of executing one leg."""

    status: PayEventStatus
    transfer_id: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    simulated: bool = True

    @property
    def succeeded(self) -> bool:
        """Whether the transfer completed."""
        return self.status == PayEventStatus.COMPLETE

    @classmethod
    def failed(cls, error: str, simulated: bool = True) -> TransferResult:
        """Failed result with an execution error."""
        return cls(
            status=PayEventStatus.FAILED,
            error=error,
            error_kind=ErrorKind.EXECUTION,
            simulated=simulated,
        )


class LegExecutor(Protocol):
    """Protocol for leg executors.

    Implementations perform at most one attempt and report failures in the
    returned TransferResult instead of raising.
    """

    async def execute(self, quote: ResolvedQuote, leg: AllocationLeg) -> TransferResult:
        """Execute the transfer described by ``quote`` for ``leg``."""
        ...


class SimulatedLegExecutor:
    """Simulated executor for the prototype settlement flow.

    In production, this would:
    - Sign each step of the quote with the company wallet
    - Broadcast the transactions to the origin chain
    - Poll the provider's status endpoint until the fill lands
    """

    def __init__(
        self,
        transfer_id_generator: IdGenerator = random_tx_hash,
        latency_seconds: float = 0.0,
        failure_rate: float = 0.0,
        rng: random.Random | None = None,
    ):
        """Initialize simulated executor.

        Args:
            transfer_id_generator: Produces the transfer id of completed legs.
            latency_seconds: Upper bound of the simulated network delay.
            failure_rate: Probability in [0, 1] that a leg fails.
            rng: Random source for latency and failures.
        """
        if not 0 <= failure_rate <= 1:
            raise ValueError("failure_rate must be between 0 and 1")
        self.transfer_id_generator = transfer_id_generator
        self.latency_seconds = latency_seconds
        self.failure_rate = failure_rate
        self.rng = rng or random.Random()

    async def execute(self, quote: ResolvedQuote, leg: AllocationLeg) -> TransferResult:
        """Simulate submission of the leg's transfer."""
        try:
            return await self._submit(quote, leg)
        except LegExecutionError as exc:
            logger.warning(
                "Leg %s for employee %s failed: %s", leg.allocation_id, leg.employee_id, exc
            )
            return TransferResult.failed(str(exc))
        except Exception as exc:
            logger.exception("Unexpected error executing leg %s", leg.allocation_id)
            return TransferResult.failed(f"{type(exc).__name__}: {exc}")

    async def _submit(self, quote: ResolvedQuote, leg: AllocationLeg) -> TransferResult:
        logger.debug(
            "Simulating execution of quote %s (%d steps) for %s %s on %s",
            quote.quote_id,
            len(quote.steps),
            leg.amount,
            leg.token_symbol,
            leg.chain_name,
        )
        if self.latency_seconds > 0:
            await asyncio.sleep(self.rng.uniform(0, self.latency_seconds))

        if leg.amount <= 0:
            raise LegExecutionError(f"Nothing to transfer for amount {leg.amount}")
        if self.failure_rate and self.rng.random() < self.failure_rate:
            raise LegExecutionError("Simulated transfer failure")

        return TransferResult(
            status=PayEventStatus.COMPLETE,
            transfer_id=self.transfer_id_generator(),
        )
