"""SQLAlchemy ORM models for relay payroll."""

from relay_payroll.models.base import Base, TimestampMixin
from relay_payroll.models.company import Company, Employee, TokenAllocation
from relay_payroll.models.payroll import PayEvent, PayrollRun

__all__ = [
    "Base",
    "TimestampMixin",
    "Company",
    "Employee",
    "TokenAllocation",
    "PayrollRun",
    "PayEvent",
]
