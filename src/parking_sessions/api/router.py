"""FastAPI route definitions."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Response

from ..codec.payload import encode
from ..engine.transactions import TransactionEngine
from ..errors import InvalidInput, Unavailable
from ..metrics import get_metrics
from ..state.models import ParkingLot, ParkingTransaction, ScanEvent, Vehicle
from ..state.store import VehicleRepository
from .schemas import (
    HealthResponse,
    LotResponse,
    LotsResponse,
    ManualEntryRequest,
    PayloadRequest,
    PayloadResponse,
    ScanRequest,
    SessionResponse,
    SessionsResponse,
    TransactionResponse,
    TransactionsResponse,
    VehicleRequest,
    VehicleResponse,
    VehiclesResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Dependencies injected at startup
_engine: Optional[TransactionEngine] = None
_vehicles: Optional[VehicleRepository] = None
_start_time: datetime = datetime.now(timezone.utc)


def init_router(engine: TransactionEngine, vehicles: VehicleRepository) -> None:
    """
    Initialize router with dependencies.

    Args:
        engine: TransactionEngine processing scans
        vehicles: Vehicle registry for manual entry
    """
    global _engine, _vehicles, _start_time

    _engine = engine
    _vehicles = vehicles
    _start_time = datetime.now(timezone.utc)

    logger.info("API router initialized")


def _require_engine() -> TransactionEngine:
    if _engine is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return _engine


def _to_response(transaction: ParkingTransaction) -> TransactionResponse:
    return TransactionResponse(**transaction.model_dump(exclude={"session_id"}))


def _lot_response(engine: TransactionEngine, lot: ParkingLot) -> LotResponse:
    return LotResponse(
        id=lot.lot_id,
        name=lot.name,
        rate_per_hour=lot.rate_per_hour,
        currency=lot.currency,
        open_sessions=engine.tracker.open_count(lot.lot_id),
    )


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns basic health information about the service.
    """
    uptime = (datetime.now(timezone.utc) - _start_time).total_seconds()

    if _engine is None:
        return HealthResponse(status="starting", lots=0, open_sessions=0, uptime_seconds=uptime)

    return HealthResponse(
        status="healthy",
        lots=len(_engine.lots.get_all()),
        open_sessions=_engine.tracker.open_count(),
        uptime_seconds=uptime,
    )


@router.post("/scans", response_model=TransactionResponse)
def process_scan(request: ScanRequest) -> TransactionResponse:
    """
    Process a scanned QR payload at a lot.

    Always answers with a transaction; failures carry a reason instead of
    an error status.
    """
    engine = _require_engine()

    event = ScanEvent(
        raw_payload=request.raw_payload,
        lot_id=request.lot_id,
        timestamp=datetime.now(timezone.utc),
    )
    try:
        transaction = engine.process_raw_scan(event)
    except Unavailable as e:
        logger.error(f"Storage unavailable while processing scan: {e}")
        raise HTTPException(status_code=503, detail=f"Storage unavailable: {e}")

    return _to_response(transaction)


@router.post("/entries", response_model=TransactionResponse)
def process_manual_entry(request: ManualEntryRequest) -> TransactionResponse:
    """
    Process an operator-typed vehicle number at a lot.

    Used when the code cannot be scanned; the plate must belong to a
    registered vehicle.
    """
    engine = _require_engine()

    try:
        transaction = engine.process_vehicle_number(
            request.vehicle_number,
            request.lot_id,
            datetime.now(timezone.utc),
        )
    except Unavailable as e:
        logger.error(f"Storage unavailable while processing entry: {e}")
        raise HTTPException(status_code=503, detail=f"Storage unavailable: {e}")

    return _to_response(transaction)


@router.post("/payloads", response_model=PayloadResponse)
def create_payload(request: PayloadRequest) -> PayloadResponse:
    """Build the QR payload text a driver's app displays for a vehicle."""
    try:
        payload = encode(request.vehicle_number.upper(), request.vehicle_id)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=e.reason)

    return PayloadResponse(payload=payload)


@router.get("/lots", response_model=LotsResponse)
def list_lots() -> LotsResponse:
    """List configured parking lots."""
    engine = _require_engine()
    return LotsResponse(lots=[_lot_response(engine, lot) for lot in engine.lots.get_all()])


@router.get("/lots/{lot_id}", response_model=LotResponse)
def get_lot(lot_id: str) -> LotResponse:
    """
    Get a specific parking lot.

    Args:
        lot_id: The ID of the parking lot to query
    """
    engine = _require_engine()

    lot = engine.lots.get(lot_id)
    if lot is None:
        raise HTTPException(status_code=404, detail=f"Lot '{lot_id}' not found")

    return _lot_response(engine, lot)


@router.get("/lots/{lot_id}/sessions", response_model=SessionsResponse)
def list_open_sessions(lot_id: str) -> SessionsResponse:
    """List vehicles currently inside a lot."""
    engine = _require_engine()

    if engine.lots.get(lot_id) is None:
        raise HTTPException(status_code=404, detail=f"Lot '{lot_id}' not found")

    sessions = sorted(engine.tracker.open_sessions(lot_id), key=lambda s: s.entry_timestamp)
    return SessionsResponse(
        lot_id=lot_id,
        sessions=[
            SessionResponse(
                session_id=s.session_id,
                vehicle_id=s.vehicle_id,
                vehicle_number=s.vehicle_number,
                lot_id=s.lot_id,
                entry_timestamp=s.entry_timestamp,
            )
            for s in sessions
        ],
    )


@router.get("/transactions", response_model=TransactionsResponse)
def list_transactions(
    lot_id: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=1000),
) -> TransactionsResponse:
    """Recent transactions, newest first."""
    engine = _require_engine()

    try:
        transactions = engine.transactions.recent(lot_id=lot_id, limit=limit)
    except Unavailable as e:
        logger.error(f"Storage unavailable while listing transactions: {e}")
        raise HTTPException(status_code=503, detail=f"Storage unavailable: {e}")

    return TransactionsResponse(transactions=[_to_response(t) for t in transactions])


@router.get("/vehicles", response_model=VehiclesResponse)
def list_vehicles() -> VehiclesResponse:
    """List registered vehicles."""
    if _vehicles is None:
        raise HTTPException(status_code=503, detail="Service not initialized")

    return VehiclesResponse(
        vehicles=[
            VehicleResponse(id=v.vehicle_id, vehicle_number=v.vehicle_number)
            for v in _vehicles.get_all()
        ]
    )


@router.post("/vehicles", response_model=VehicleResponse, status_code=201)
def register_vehicle(request: VehicleRequest) -> VehicleResponse:
    """Register a vehicle so its plate can be entered manually."""
    if _vehicles is None:
        raise HTTPException(status_code=503, detail="Service not initialized")

    vehicle_number = request.vehicle_number.strip().upper()
    try:
        # Registered identities must also be encodable as QR payloads
        encode(vehicle_number, request.id)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=e.reason)

    vehicle = _vehicles.add(Vehicle(vehicle_id=request.id, vehicle_number=vehicle_number))
    return VehicleResponse(id=vehicle.vehicle_id, vehicle_number=vehicle.vehicle_number)


@router.get("/metrics")
def prometheus_metrics() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format including:
    - parking_scans_processed_total: Counter of scans by lot, kind and status
    - parking_scan_failures_total: Counter of failed scans by error kind
    - parking_charges_collected_total: Sum of exit charges by lot and currency
    - parking_session_duration_seconds: Histogram of closed session durations
    - parking_sessions_open: Gauge of vehicles currently inside each lot
    """
    return Response(
        content=get_metrics(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
