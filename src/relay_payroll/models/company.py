"""Company, employee and token allocation models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from relay_payroll.models.base import Base, TimestampMixin, utcnow

if TYPE_CHECKING:
    from relay_payroll.models.payroll import PayEvent, PayrollRun


class Company(Base, TimestampMixin):
    """Paying organization with a funding wallet on its home chain."""

    __tablename__ = "company"

    company_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    wallet_address: Mapped[str] = mapped_column(String, nullable=False)
    chain: Mapped[str] = mapped_column(String, nullable=False, default="ethereum")
    balance: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )

    # Relationships
    employees: Mapped[list[Employee]] = relationship(
        back_populates="company",
        order_by="Employee.created_at",
    )
    payroll_runs: Mapped[list[PayrollRun]] = relationship(back_populates="company")


class Employee(Base, TimestampMixin):
    """Payroll recipient."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    company_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("company.company_id", ondelete="RESTRICT"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False)
    # None means the employee has not set a receiving wallet yet
    wallet_address: Mapped[str | None] = mapped_column(String, nullable=True)

    # Relationships
    company: Mapped[Company] = relationship(back_populates="employees")
    allocations: Mapped[list[TokenAllocation]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="TokenAllocation.updated_at",
    )
    pay_events: Mapped[list[PayEvent]] = relationship(back_populates="employee")


class TokenAllocation(Base):
    """One destination asset/chain and its share of an employee's pay.

    The allocations of an employee are replaced as a whole set, never edited
    one row at a time, so the 100% sum holds after every write.
    """

    __tablename__ = "token_allocation"

    token_allocation_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    token_symbol: Mapped[str] = mapped_column(String, nullable=False)
    token_address: Mapped[str] = mapped_column(String, nullable=False)
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    chain_name: Mapped[str] = mapped_column(String, nullable=False)
    percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "percentage >= 0 AND percentage <= 100",
            name="token_allocation_percentage_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="allocations")
