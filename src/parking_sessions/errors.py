"""Error taxonomy for scan processing."""

from enum import Enum


class ErrorKind(str, Enum):
    """Recoverable failure kinds reported on a failed transaction."""

    MALFORMED_PAYLOAD = "MalformedPayload"
    INVALID_INPUT = "InvalidInput"
    UNKNOWN_LOT = "UnknownLot"
    UNKNOWN_VEHICLE = "UnknownVehicle"
    DUPLICATE_SCAN = "DuplicateScan"
    ALREADY_OPEN = "AlreadyOpen"
    ALREADY_CLOSED = "AlreadyClosed"


class ParkingError(Exception):
    """Base class for failures the transaction engine turns into results."""

    kind: ErrorKind

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class MalformedPayload(ParkingError):
    kind = ErrorKind.MALFORMED_PAYLOAD


class InvalidInput(ParkingError):
    kind = ErrorKind.INVALID_INPUT


class UnknownLot(ParkingError):
    kind = ErrorKind.UNKNOWN_LOT


class UnknownVehicle(ParkingError):
    kind = ErrorKind.UNKNOWN_VEHICLE


class DuplicateScan(ParkingError):
    kind = ErrorKind.DUPLICATE_SCAN


class AlreadyOpen(ParkingError):
    kind = ErrorKind.ALREADY_OPEN


class AlreadyClosed(ParkingError):
    kind = ErrorKind.ALREADY_CLOSED


class Unavailable(Exception):
    """
    Raised by a store when its backing storage cannot be reached.

    Not a ParkingError: the engine lets it propagate unchanged.
    """
