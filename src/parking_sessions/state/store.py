"""
Storage collaborators for lots, vehicles, closed sessions and transactions.

The core only talks to the abstract interfaces below. The in-memory
implementations back the service by default and are used in tests; a
durable backend implements the same interfaces and raises ``Unavailable``
when its storage cannot be reached.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from .models import ParkingLot, ParkingSession, ParkingTransaction, Vehicle

logger = logging.getLogger(__name__)


class LotRepository(ABC):
    """Read access to parking lots."""

    @abstractmethod
    def get(self, lot_id: str) -> Optional[ParkingLot]:
        """Get a lot by ID, or None if it does not exist"""

    @abstractmethod
    def get_all(self) -> list[ParkingLot]:
        """Get all lots"""


class VehicleRepository(ABC):
    """Registered vehicles, looked up by plate for manual entry."""

    @abstractmethod
    def add(self, vehicle: Vehicle) -> Vehicle:
        """Register or replace a vehicle"""

    @abstractmethod
    def get(self, vehicle_id: str) -> Optional[Vehicle]:
        """Get a vehicle by ID"""

    @abstractmethod
    def find_by_number(self, vehicle_number: str) -> Optional[Vehicle]:
        """Find a vehicle by its uppercased plate"""

    @abstractmethod
    def get_all(self) -> list[Vehicle]:
        """Get all vehicles"""


class SessionArchive(ABC):
    """Closed sessions."""

    @abstractmethod
    def add(self, session: ParkingSession) -> ParkingSession:
        """Archive a closed session"""

    @abstractmethod
    def get(self, session_id: str) -> Optional[ParkingSession]:
        """Get an archived session by ID"""

    @abstractmethod
    def remove(self, session_id: str) -> bool:
        """Remove an archived session, returning whether it existed"""

    @abstractmethod
    def count(self) -> int:
        """Count archived sessions"""


class TransactionLog(ABC):
    """Append-only record of processed scans."""

    @abstractmethod
    def append(self, transaction: ParkingTransaction) -> ParkingTransaction:
        """Record a transaction"""

    @abstractmethod
    def recent(self, lot_id: Optional[str] = None, limit: int = 100) -> list[ParkingTransaction]:
        """Most recent transactions first, optionally for one lot"""

    @abstractmethod
    def count(self) -> int:
        """Count recorded transactions"""


class InMemoryLotRepository(LotRepository):
    def __init__(self, lots: Iterable[ParkingLot] = ()):
        self._lots: dict[str, ParkingLot] = {lot.lot_id: lot for lot in lots}

    def get(self, lot_id: str) -> Optional[ParkingLot]:
        return self._lots.get(lot_id)

    def get_all(self) -> list[ParkingLot]:
        return list(self._lots.values())


class InMemoryVehicleRepository(VehicleRepository):
    def __init__(self, vehicles: Iterable[Vehicle] = ()):
        self._lock = threading.Lock()
        self._vehicles: dict[str, Vehicle] = {}
        for vehicle in vehicles:
            self.add(vehicle)

    def add(self, vehicle: Vehicle) -> Vehicle:
        with self._lock:
            self._vehicles[vehicle.vehicle_id] = vehicle
        logger.debug(f"Registered vehicle {vehicle.vehicle_number} ({vehicle.vehicle_id})")
        return vehicle

    def get(self, vehicle_id: str) -> Optional[Vehicle]:
        return self._vehicles.get(vehicle_id)

    def find_by_number(self, vehicle_number: str) -> Optional[Vehicle]:
        with self._lock:
            for vehicle in self._vehicles.values():
                if vehicle.vehicle_number.upper() == vehicle_number:
                    return vehicle
        return None

    def get_all(self) -> list[Vehicle]:
        with self._lock:
            return list(self._vehicles.values())


class InMemorySessionArchive(SessionArchive):
    def __init__(self):
        self._sessions: dict[str, ParkingSession] = {}

    def add(self, session: ParkingSession) -> ParkingSession:
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[ParkingSession]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def count(self) -> int:
        return len(self._sessions)


class InMemoryTransactionLog(TransactionLog):
    def __init__(self):
        self._lock = threading.Lock()
        self._transactions: list[ParkingTransaction] = []

    def append(self, transaction: ParkingTransaction) -> ParkingTransaction:
        with self._lock:
            self._transactions.append(transaction)
        return transaction

    def recent(self, lot_id: Optional[str] = None, limit: int = 100) -> list[ParkingTransaction]:
        with self._lock:
            items = [
                t for t in reversed(self._transactions)
                if lot_id is None or t.lot_id == lot_id
            ]
        return items[:limit]

    def count(self) -> int:
        return len(self._transactions)
