"""Open parking session tracking per (vehicle, lot) pair."""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from ..errors import AlreadyClosed, AlreadyOpen
from ..metrics import update_open_sessions
from .models import ParkingSession
from .store import SessionArchive

logger = logging.getLogger(__name__)

PairKey = tuple[str, str]


class _PairLock:
    """Reentrant lock plus the number of threads holding or waiting on it."""

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class SessionTracker:
    """
    Owns the set of open parking sessions.

    Each (vehicle_id, lot_id) pair moves through NoSession -> Open -> Closed.
    At most one session per pair is open at any time; a closed session is
    handed to the archive and the pair returns to NoSession, so the next
    entry scan may open a new one.

    Callers that read and then act on a pair's state (lookup followed by
    open or close) must hold ``lock()`` for that pair across both steps.
    Scans for different pairs never contend. A pair's lock only exists
    while some thread holds or waits for it.
    """

    def __init__(self, archive: SessionArchive):
        """
        Initialize the tracker.

        Args:
            archive: Store that receives sessions once they are closed
        """
        self._archive = archive
        self._open: dict[PairKey, ParkingSession] = {}
        self._lot_counts: dict[str, int] = {}
        self._open_guard = threading.Lock()
        self._locks: dict[PairKey, _PairLock] = {}
        self._locks_guard = threading.Lock()

    def _acquire_pair(self, key: PairKey) -> _PairLock:
        with self._locks_guard:
            pair_lock = self._locks.get(key)
            if pair_lock is None:
                pair_lock = _PairLock()
                self._locks[key] = pair_lock
            pair_lock.users += 1
            return pair_lock

    def _release_pair(self, key: PairKey, pair_lock: _PairLock) -> None:
        with self._locks_guard:
            pair_lock.users -= 1
            if pair_lock.users == 0:
                del self._locks[key]

    @contextmanager
    def lock(self, vehicle_key: str, lot_id: str) -> Iterator[None]:
        """Hold mutual exclusion on one (vehicle, lot) pair."""
        key = (vehicle_key, lot_id)
        pair_lock = self._acquire_pair(key)
        try:
            with pair_lock.lock:
                logger.debug(f"Acquired lock for {vehicle_key} at {lot_id}")
                yield
        finally:
            self._release_pair(key, pair_lock)

    def lock_count(self) -> int:
        """Number of pair locks currently held or awaited."""
        with self._locks_guard:
            return len(self._locks)

    def _put_open(self, session: ParkingSession) -> None:
        with self._open_guard:
            self._open[(session.vehicle_id, session.lot_id)] = session
            count = self._lot_counts.get(session.lot_id, 0) + 1
            self._lot_counts[session.lot_id] = count
            update_open_sessions(session.lot_id, count)

    def _pop_open(self, key: PairKey) -> None:
        with self._open_guard:
            session = self._open.pop(key)
            count = self._lot_counts[session.lot_id] - 1
            if count:
                self._lot_counts[session.lot_id] = count
            else:
                del self._lot_counts[session.lot_id]
            update_open_sessions(session.lot_id, count)

    def find_open_session(self, vehicle_key: str, lot_id: str) -> Optional[ParkingSession]:
        """Get the open session for a pair, if any."""
        return self._open.get((vehicle_key, lot_id))

    def open_session(
        self,
        vehicle_key: str,
        vehicle_number: str,
        lot_id: str,
        timestamp: datetime,
    ) -> ParkingSession:
        """
        Open a session for a vehicle entering a lot.

        Raises:
            AlreadyOpen: If the pair already has an open session
        """
        with self.lock(vehicle_key, lot_id):
            existing = self._open.get((vehicle_key, lot_id))
            if existing is not None:
                raise AlreadyOpen(
                    f"Vehicle {existing.vehicle_number} already has an open session at "
                    f"lot {lot_id} since {existing.entry_timestamp.isoformat()}"
                )

            session = ParkingSession(
                vehicle_id=vehicle_key,
                vehicle_number=vehicle_number,
                lot_id=lot_id,
                entry_timestamp=timestamp,
            )
            self._put_open(session)

        logger.info(f"Opened session {session.session_id} for {vehicle_number} at {lot_id}")
        return session

    def close_session(self, session: ParkingSession, timestamp: datetime) -> ParkingSession:
        """
        Close an open session and archive it.

        Raises:
            AlreadyClosed: If the session was closed before, including when
                ``session`` is a stale copy of one this tracker already closed
        """
        key = (session.vehicle_id, session.lot_id)
        with self.lock(*key):
            current = self._open.get(key)
            if (
                session.exit_timestamp is not None
                or current is None
                or current.session_id != session.session_id
            ):
                raise AlreadyClosed(
                    f"Session {session.session_id} for {session.vehicle_number} "
                    f"at lot {session.lot_id} is already closed"
                )

            closed = current.model_copy(update={"exit_timestamp": timestamp})
            # Archive first so a storage failure leaves the session open
            self._archive.add(closed)
            self._pop_open(key)
            current.exit_timestamp = timestamp
            if session is not current:
                session.exit_timestamp = timestamp

        logger.info(f"Closed session {closed.session_id} for {closed.vehicle_number} at {closed.lot_id}")
        return closed

    def discard_session(self, session: ParkingSession) -> None:
        """Undo ``open_session`` for a session whose entry could not be recorded."""
        key = (session.vehicle_id, session.lot_id)
        with self.lock(*key):
            current = self._open.get(key)
            if current is None or current.session_id != session.session_id:
                return
            self._pop_open(key)

        logger.warning(f"Discarded unrecorded session {session.session_id} for {session.vehicle_number}")

    def reopen_session(self, closed: ParkingSession) -> ParkingSession:
        """
        Undo ``close_session`` for a session whose exit could not be recorded.

        Raises:
            AlreadyOpen: If the pair has opened another session meanwhile
        """
        key = (closed.vehicle_id, closed.lot_id)
        with self.lock(*key):
            if key in self._open:
                raise AlreadyOpen(f"Lot {closed.lot_id} already has an open session for {closed.vehicle_number}")

            self._archive.remove(closed.session_id)
            session = closed.model_copy(update={"exit_timestamp": None})
            self._put_open(session)

        logger.warning(f"Reopened unrecorded exit of session {session.session_id} for {session.vehicle_number}")
        return session

    def open_sessions(self, lot_id: Optional[str] = None) -> list[ParkingSession]:
        """List open sessions, optionally restricted to one lot."""
        with self._open_guard:
            sessions = list(self._open.values())
        return [s for s in sessions if lot_id is None or s.lot_id == lot_id]

    def open_count(self, lot_id: Optional[str] = None) -> int:
        """Count open sessions, optionally restricted to one lot."""
        with self._open_guard:
            if lot_id is None:
                return len(self._open)
            return self._lot_counts.get(lot_id, 0)
