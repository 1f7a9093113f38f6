"""State management module."""

from .models import (
    ParkingLot,
    ParkingSession,
    ParkingTransaction,
    ScanEvent,
    TransactionKind,
    TransactionStatus,
    Vehicle,
)
from .session_tracker import SessionTracker

__all__ = [
    "ParkingLot",
    "ParkingSession",
    "ParkingTransaction",
    "ScanEvent",
    "SessionTracker",
    "TransactionKind",
    "TransactionStatus",
    "Vehicle",
]
