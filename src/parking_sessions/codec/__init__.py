"""QR payload codec module."""

from .payload import SEPARATOR, VehiclePayload, decode, encode

__all__ = ["SEPARATOR", "VehiclePayload", "decode", "encode"]
