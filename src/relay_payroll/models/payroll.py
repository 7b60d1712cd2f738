"""Payroll run and pay event models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from relay_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from relay_payroll.models.company import Company, Employee


class PayrollRun(Base, TimestampMixin):
    """One distribution of a total amount across a company's employees."""

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    company_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("company.company_id", ondelete="RESTRICT"),
        nullable=False,
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String, nullable=False, default="USDC")
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    executed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'complete', 'failed')",
            name="payroll_run_status_check",
        ),
    )

    # Relationships
    company: Mapped[Company] = relationship(back_populates="payroll_runs")
    pay_events: Mapped[list[PayEvent]] = relationship(
        back_populates="payroll_run",
        order_by="PayEvent.created_at",
    )


class PayEvent(Base, TimestampMixin):
    """Audit record of a single allocation leg within a payroll run.

    Append-only: a failed leg stays failed, a retry would be a new event.
    """

    __tablename__ = "pay_event"

    pay_event_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    payroll_run_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_run.payroll_run_id", ondelete="RESTRICT"),
        nullable=False,
    )
    amount_usdc: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    to_token: Mapped[str] = mapped_column(String, nullable=False)
    to_chain: Mapped[str] = mapped_column(String, nullable=False)
    to_chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    to_address: Mapped[str] = mapped_column(String, nullable=False)
    relay_quote_id: Mapped[str | None] = mapped_column(String, nullable=True)
    relay_tx_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    relay_fee_bps: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    relay_fee_usd: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )
    quote_source: Mapped[str | None] = mapped_column(String, nullable=True)
    simulated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'complete', 'failed')",
            name="pay_event_status_check",
        ),
        CheckConstraint(
            "quote_source IS NULL OR quote_source IN ('provider', 'same_asset', 'fallback')",
            name="pay_event_quote_source_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="pay_events")
    payroll_run: Mapped[PayrollRun] = relationship(back_populates="pay_events")
