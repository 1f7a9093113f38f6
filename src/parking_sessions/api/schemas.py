"""API request and response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from ..errors import ErrorKind
from ..state.models import TransactionKind, TransactionStatus


class ScanRequest(BaseModel):
    """A QR payload scanned at a lot."""

    raw_payload: str
    lot_id: str


class ManualEntryRequest(BaseModel):
    """An operator-typed plate at a lot."""

    vehicle_number: str
    lot_id: str


class PayloadRequest(BaseModel):
    """Vehicle identity to encode as QR payload text."""

    vehicle_number: str
    vehicle_id: str


class PayloadResponse(BaseModel):
    payload: str


class TransactionResponse(BaseModel):
    """Response schema for one processed scan."""

    transaction_id: str
    vehicle_number: str
    vehicle_id: Optional[str] = None
    lot_id: str
    status: TransactionStatus
    kind: Optional[TransactionKind] = None
    charge_amount: Decimal
    currency: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[ErrorKind] = None
    timestamp: datetime
    entry_timestamp: Optional[datetime] = None
    exit_timestamp: Optional[datetime] = None


class TransactionsResponse(BaseModel):
    transactions: list[TransactionResponse]


class LotResponse(BaseModel):
    """Response schema for a parking lot."""

    id: str
    name: str
    rate_per_hour: Decimal
    currency: str
    open_sessions: int


class LotsResponse(BaseModel):
    lots: list[LotResponse]


class SessionResponse(BaseModel):
    """Response schema for an open session."""

    session_id: str
    vehicle_id: str
    vehicle_number: str
    lot_id: str
    entry_timestamp: datetime


class SessionsResponse(BaseModel):
    lot_id: str
    sessions: list[SessionResponse]


class VehicleRequest(BaseModel):
    id: str
    vehicle_number: str


class VehicleResponse(BaseModel):
    id: str
    vehicle_number: str


class VehiclesResponse(BaseModel):
    vehicles: list[VehicleResponse]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    lots: int
    open_sessions: int
    uptime_seconds: float
