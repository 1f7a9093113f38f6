"""QR-scan driven parking session service."""

__version__ = "1.0.0"
