"""Data models for vehicles, lots, sessions and transactions."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ErrorKind


class TransactionStatus(str, Enum):
    """Outcome of processing one scan."""

    SUCCESS = "Success"
    FAILED = "Failed"


class TransactionKind(str, Enum):
    """Whether a scan opened or closed a session."""

    ENTRY = "entry"
    EXIT = "exit"


class Vehicle(BaseModel):
    """A registered vehicle."""

    vehicle_id: str
    vehicle_number: str


class ParkingLot(BaseModel):
    """A parking lot and its rate policy."""

    lot_id: str
    name: str = ""
    rate_per_hour: Decimal = Decimal("0")
    currency: str = "INR"
    currency_decimals: int = 2


class ParkingSession(BaseModel):
    """Interval a vehicle occupies a lot, from entry scan to exit scan."""

    session_id: str = Field(default_factory=lambda: uuid4().hex)
    vehicle_id: str
    vehicle_number: str
    lot_id: str
    entry_timestamp: datetime
    exit_timestamp: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.exit_timestamp is None


class ParkingTransaction(BaseModel):
    """Recorded outcome of one processed scan."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str = Field(default_factory=lambda: uuid4().hex)
    vehicle_number: str
    vehicle_id: Optional[str] = None
    lot_id: str
    status: TransactionStatus
    kind: Optional[TransactionKind] = None
    charge_amount: Decimal = Decimal("0")
    currency: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[ErrorKind] = None
    timestamp: datetime
    session_id: Optional[str] = None
    entry_timestamp: Optional[datetime] = None
    exit_timestamp: Optional[datetime] = None


class ScanEvent(BaseModel):
    """A decoded-from-camera payload plus the lot it was scanned at."""

    raw_payload: str
    lot_id: str
    timestamp: datetime
