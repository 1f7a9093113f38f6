"""Scan processing: entry/exit decision, charging and transaction recording."""

import logging
import threading
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ..codec.payload import VehiclePayload, decode
from ..errors import DuplicateScan, ParkingError, UnknownLot, UnknownVehicle
from ..metrics import record_exit, record_failure, record_scan
from ..state.models import (
    ParkingLot,
    ParkingSession,
    ParkingTransaction,
    ScanEvent,
    TransactionKind,
    TransactionStatus,
)
from ..state.session_tracker import SessionTracker
from ..state.store import LotRepository, TransactionLog, VehicleRepository

logger = logging.getLogger(__name__)

_MICROS_PER_HOUR = Decimal(3600 * 1_000_000)

# (vehicle_number, vehicle_id, lot_id) of a processed scan
ScanKey = tuple[str, str, str]


def compute_charge(lot: ParkingLot, entry_timestamp: datetime, exit_timestamp: datetime) -> Decimal:
    """
    Compute the charge for a stay.

    The hourly rate is applied pro rata to the exact elapsed time and the
    result is rounded half up to the lot's smallest currency unit. A
    negative elapsed time (exit before entry) is charged as zero.

    Args:
        lot: Lot whose rate policy applies
        entry_timestamp: Session start
        exit_timestamp: Session end

    Returns:
        Charge quantized to ``lot.currency_decimals`` places
    """
    elapsed = exit_timestamp - entry_timestamp
    micros = (elapsed.days * 86400 + elapsed.seconds) * 1_000_000 + elapsed.microseconds
    micros = max(micros, 0)

    amount = lot.rate_per_hour * Decimal(micros) / _MICROS_PER_HOUR
    unit = Decimal(1).scaleb(-lot.currency_decimals)
    return amount.quantize(unit, rounding=ROUND_HALF_UP)


class TransactionEngine:
    """
    Turns scans into parking transactions.

    Every call returns a transaction: recoverable failures (bad payload,
    unknown lot or vehicle, duplicate scan, session state conflicts) come
    back as ``Failed`` results with a reason. Only ``Unavailable`` from a
    store propagates.
    """

    def __init__(
        self,
        tracker: SessionTracker,
        lots: LotRepository,
        transactions: TransactionLog,
        vehicles: Optional[VehicleRepository] = None,
        duplicate_window_seconds: float = 0.0,
    ):
        """
        Initialize the engine.

        Args:
            tracker: Owner of open sessions
            lots: Lot lookup
            transactions: Log receiving every produced transaction
            vehicles: Vehicle registry used for manual plate entry
            duplicate_window_seconds: Repeat scans of one vehicle at the same
                lot within this window are rejected; 0 disables
        """
        self.tracker = tracker
        self.lots = lots
        self.transactions = transactions
        self.vehicles = vehicles
        self.duplicate_window_seconds = duplicate_window_seconds
        self._last_scans: dict[ScanKey, datetime] = {}
        self._scans_lock = threading.Lock()

    def process_raw_scan(self, event: ScanEvent) -> ParkingTransaction:
        """Decode a raw scan and process it."""
        try:
            payload = decode(event.raw_payload)
        except ParkingError as e:
            return self._fail(e, vehicle_number="", lot_id=event.lot_id, now=event.timestamp)

        payload = VehiclePayload(
            vehicle_number=payload.vehicle_number.upper(),
            vehicle_id=payload.vehicle_id,
        )
        return self._process(payload, event.lot_id, event.timestamp, check_duplicate=True)

    def process_scan(self, payload: VehiclePayload, lot_id: str, now: datetime) -> ParkingTransaction:
        """
        Process a decoded scan at a lot.

        No open session for the vehicle means entry (charge 0), an open
        session means exit (charged by ``compute_charge``).
        """
        return self._process(payload, lot_id, now)

    def process_vehicle_number(self, vehicle_number: str, lot_id: str, now: datetime) -> ParkingTransaction:
        """Process an operator-typed plate by resolving it to a registered vehicle."""
        vehicle_number = vehicle_number.strip().upper()
        vehicle = self.vehicles.find_by_number(vehicle_number) if self.vehicles else None
        if vehicle is None:
            error = UnknownVehicle(f"No registered vehicle with number {vehicle_number!r}")
            return self._fail(error, vehicle_number=vehicle_number, lot_id=lot_id, now=now)

        payload = VehiclePayload(vehicle_number=vehicle_number, vehicle_id=vehicle.vehicle_id)
        return self._process(payload, lot_id, now)

    def _process(
        self,
        payload: VehiclePayload,
        lot_id: str,
        now: datetime,
        check_duplicate: bool = False,
    ) -> ParkingTransaction:
        lot = self.lots.get(lot_id)
        if lot is None:
            error = UnknownLot(f"Parking lot {lot_id!r} not found")
            return self._fail(error, payload.vehicle_number, lot_id, now, vehicle_id=payload.vehicle_id)

        scan_key = (payload.vehicle_number, payload.vehicle_id, lot_id)
        try:
            with self.tracker.lock(payload.vehicle_id, lot_id):
                if check_duplicate:
                    self._check_duplicate(scan_key, now)

                session = self.tracker.find_open_session(payload.vehicle_id, lot_id)
                if session is None:
                    transaction = self._enter(payload, lot, now)
                else:
                    transaction = self._exit(payload, lot, session, now)

                if check_duplicate:
                    self._remember_scan(scan_key, now)
        except ParkingError as e:
            return self._fail(e, payload.vehicle_number, lot_id, now, vehicle_id=payload.vehicle_id, lot=lot)

        logger.info(
            f"{transaction.kind.value.capitalize()} for {transaction.vehicle_number} at {lot_id}: "
            f"charge {transaction.charge_amount} {lot.currency}"
        )
        self._count(transaction)
        return transaction

    def _enter(self, payload: VehiclePayload, lot: ParkingLot, now: datetime) -> ParkingTransaction:
        session = self.tracker.open_session(payload.vehicle_id, payload.vehicle_number, lot.lot_id, now)
        transaction = ParkingTransaction(
            vehicle_number=payload.vehicle_number,
            vehicle_id=payload.vehicle_id,
            lot_id=lot.lot_id,
            status=TransactionStatus.SUCCESS,
            kind=TransactionKind.ENTRY,
            charge_amount=compute_charge(lot, now, now),
            currency=lot.currency,
            timestamp=now,
            session_id=session.session_id,
            entry_timestamp=session.entry_timestamp,
        )

        # The session only stands if its entry is on record
        try:
            self.transactions.append(transaction)
        except Exception:
            self.tracker.discard_session(session)
            raise

        return transaction

    def _exit(
        self,
        payload: VehiclePayload,
        lot: ParkingLot,
        session: ParkingSession,
        now: datetime,
    ) -> ParkingTransaction:
        closed = self.tracker.close_session(session, now)
        charge = compute_charge(lot, closed.entry_timestamp, now)
        transaction = ParkingTransaction(
            vehicle_number=payload.vehicle_number,
            vehicle_id=payload.vehicle_id,
            lot_id=lot.lot_id,
            status=TransactionStatus.SUCCESS,
            kind=TransactionKind.EXIT,
            charge_amount=charge,
            currency=lot.currency,
            timestamp=now,
            session_id=closed.session_id,
            entry_timestamp=closed.entry_timestamp,
            exit_timestamp=closed.exit_timestamp,
        )

        try:
            self.transactions.append(transaction)
        except Exception:
            self.tracker.reopen_session(closed)
            raise

        record_exit(
            lot.lot_id,
            lot.currency,
            charge,
            max((now - closed.entry_timestamp).total_seconds(), 0.0),
        )
        return transaction

    def _check_duplicate(self, scan_key: ScanKey, now: datetime) -> None:
        if self.duplicate_window_seconds <= 0:
            return

        with self._scans_lock:
            last = self._last_scans.get(scan_key)
        if last is None:
            return

        since = (now - last).total_seconds()
        if 0 <= since < self.duplicate_window_seconds:
            raise DuplicateScan(
                f"Same code scanned at lot {scan_key[2]} {since:.1f}s ago; "
                f"ignored within {self.duplicate_window_seconds:g}s"
            )

    def _remember_scan(self, scan_key: ScanKey, now: datetime) -> None:
        if self.duplicate_window_seconds <= 0:
            return

        with self._scans_lock:
            expired = [
                key for key, last in self._last_scans.items()
                if (now - last).total_seconds() >= self.duplicate_window_seconds
            ]
            for key in expired:
                del self._last_scans[key]
            self._last_scans[scan_key] = now

    def tracked_scan_count(self) -> int:
        """Number of recent scans held for duplicate detection."""
        with self._scans_lock:
            return len(self._last_scans)

    def _fail(
        self,
        error: ParkingError,
        vehicle_number: str,
        lot_id: str,
        now: datetime,
        vehicle_id: Optional[str] = None,
        lot: Optional[ParkingLot] = None,
    ) -> ParkingTransaction:
        logger.warning(f"Scan failed at {lot_id} ({error.kind.value}): {error.reason}")
        transaction = ParkingTransaction(
            vehicle_number=vehicle_number,
            vehicle_id=vehicle_id,
            lot_id=lot_id,
            status=TransactionStatus.FAILED,
            currency=lot.currency if lot else None,
            reason=error.reason,
            error=error.kind,
            timestamp=now,
        )
        self.transactions.append(transaction)
        self._count(transaction)
        return transaction

    def _count(self, transaction: ParkingTransaction) -> None:
        kind = transaction.kind.value if transaction.kind else "none"
        record_scan(transaction.lot_id, kind, transaction.status.value)
        if transaction.error is not None:
            record_failure(transaction.lot_id, transaction.error.value)
