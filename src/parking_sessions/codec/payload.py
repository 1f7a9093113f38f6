"""QR payload text contract: ``<vehicle_number>|<vehicle_id>``."""

from pydantic import BaseModel

from ..errors import InvalidInput, MalformedPayload

SEPARATOR = "|"


class VehiclePayload(BaseModel):
    """Vehicle identity carried by a parking QR code."""

    vehicle_number: str
    vehicle_id: str


def encode(vehicle_number: str, vehicle_id: str) -> str:
    """
    Build the QR payload text for a vehicle.

    Args:
        vehicle_number: Plate string as registered
        vehicle_id: Vehicle identifier

    Returns:
        Payload string ``"<vehicle_number>|<vehicle_id>"``

    Raises:
        InvalidInput: If a field is empty or contains the separator
    """
    for name, value in (("vehicle_number", vehicle_number), ("vehicle_id", vehicle_id)):
        if not value:
            raise InvalidInput(f"{name} must not be empty")
        if SEPARATOR in value:
            raise InvalidInput(f"{name} must not contain '{SEPARATOR}': {value!r}")

    return f"{vehicle_number}{SEPARATOR}{vehicle_id}"


def decode(raw: str) -> VehiclePayload:
    """
    Parse a scanned payload string.

    No trimming or case normalization is applied here.

    Raises:
        MalformedPayload: Unless the text splits into exactly two non-empty parts
    """
    parts = raw.split(SEPARATOR)
    if len(parts) != 2 or not all(parts):
        raise MalformedPayload(f"Expected '<vehicle_number>{SEPARATOR}<vehicle_id>', got {raw!r}")

    return VehiclePayload(vehicle_number=parts[0], vehicle_id=parts[1])
