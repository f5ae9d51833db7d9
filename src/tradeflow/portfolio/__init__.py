"""Balance ledger module."""

from .ledger import BalanceLedger

__all__ = ["BalanceLedger"]
