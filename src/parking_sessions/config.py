"""Configuration models and loading utilities."""

import os
from decimal import Decimal
from pathlib import Path

import yaml
from pydantic import BaseModel, field_validator

from .state.models import ParkingLot, Vehicle


def _resolve_env_var(v):
    """Resolve environment variable references like ${VAR_NAME}."""
    if isinstance(v, str) and v.startswith("${") and v.endswith("}"):
        env_var = v[2:-1]
        return os.environ.get(env_var, "")
    return v


class LotConfig(BaseModel):
    """Parking lot definition."""

    id: str
    name: str = ""
    rate_per_hour: Decimal = Decimal("0")  # Charged pro rata per second
    currency: str = "INR"
    currency_decimals: int = 2  # Smallest currency unit for rounding

    @field_validator("rate_per_hour")
    @classmethod
    def check_rate(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("rate_per_hour must not be negative")
        return v

    @field_validator("currency_decimals")
    @classmethod
    def check_decimals(cls, v: int) -> int:
        if not 0 <= v <= 6:
            raise ValueError("currency_decimals must be between 0 and 6")
        return v

    def to_lot(self) -> ParkingLot:
        return ParkingLot(
            lot_id=self.id,
            name=self.name or self.id,
            rate_per_hour=self.rate_per_hour,
            currency=self.currency,
            currency_decimals=self.currency_decimals,
        )


class VehicleConfig(BaseModel):
    """Pre-registered vehicle for manual plate entry."""

    id: str
    vehicle_number: str

    @field_validator("vehicle_number")
    @classmethod
    def uppercase_number(cls, v: str) -> str:
        return v.strip().upper()

    def to_vehicle(self) -> Vehicle:
        return Vehicle(vehicle_id=self.id, vehicle_number=self.vehicle_number)


class ScanningConfig(BaseModel):
    """Scan processing configuration."""

    duplicate_window_seconds: float = 5.0  # Repeats of one code inside this window are rejected


class APIConfig(BaseModel):
    """API server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("host", mode="before")
    @classmethod
    def resolve_host(cls, v: str) -> str:
        return _resolve_env_var(v)


class AppConfig(BaseModel):
    """Main application configuration."""

    lots: list[LotConfig] = []
    vehicles: list[VehicleConfig] = []
    scanning: ScanningConfig = ScanningConfig()
    api: APIConfig = APIConfig()


def load_config(path: str | Path) -> AppConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: Path to the configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    return AppConfig(**data)


def get_config_path() -> Path:
    """Get the default configuration file path."""
    env_config = os.environ.get("PARKING_SESSIONS_CONFIG")
    if env_config:
        return Path(env_config)

    # Check for config in current directory first
    local_config = Path("config/config.yaml")
    if local_config.exists():
        return local_config

    # Check for config in parent directory (for Docker)
    parent_config = Path("/app/config/config.yaml")
    if parent_config.exists():
        return parent_config

    return local_config  # Return default even if doesn't exist
