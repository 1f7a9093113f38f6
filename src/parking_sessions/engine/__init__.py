"""Transaction engine module."""

from .transactions import TransactionEngine, compute_charge

__all__ = ["TransactionEngine", "compute_charge"]
