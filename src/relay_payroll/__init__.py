"""Relay payroll.

Splits a company payout across employees and settles each employee's share
into the tokens and chains they chose, pricing cross-chain legs with Relay.
"""

__version__ = "0.1.0"
