"""Main application entry point."""

import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from .api.router import init_router, router
from .config import AppConfig, get_config_path, load_config
from .engine.transactions import TransactionEngine
from .metrics import update_open_sessions
from .state.session_tracker import SessionTracker
from .state.store import (
    InMemoryLotRepository,
    InMemorySessionArchive,
    InMemoryTransactionLog,
    InMemoryVehicleRepository,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_engine(config: AppConfig) -> tuple[TransactionEngine, InMemoryVehicleRepository]:
    """
    Wire the transaction engine and its stores from configuration.

    Returns:
        The engine and the vehicle registry it resolves manual entries with
    """
    lots = InMemoryLotRepository(lot.to_lot() for lot in config.lots)
    vehicles = InMemoryVehicleRepository(v.to_vehicle() for v in config.vehicles)
    tracker = SessionTracker(InMemorySessionArchive())

    engine = TransactionEngine(
        tracker=tracker,
        lots=lots,
        transactions=InMemoryTransactionLog(),
        vehicles=vehicles,
        duplicate_window_seconds=config.scanning.duplicate_window_seconds,
    )

    for lot in lots.get_all():
        update_open_sessions(lot.lot_id, 0)

    return engine, vehicles


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Parking Sessions service...")

    # Load configuration
    config_path = get_config_path()
    if not config_path.exists():
        logger.error(f"Configuration file not found: {config_path}")
        logger.error("Please create config/config.yaml from the example")
        sys.exit(1)

    config = load_config(config_path)
    logger.info(f"Loaded configuration from {config_path}")

    if not config.lots:
        logger.warning("No parking lots defined - every scan will fail with UnknownLot")

    engine, vehicles = build_engine(config)
    init_router(engine, vehicles)

    logger.info(
        f"Parking Sessions ready on http://{config.api.host}:{config.api.port} "
        f"({len(config.lots)} lot(s), {len(config.vehicles)} registered vehicle(s))"
    )

    yield  # Application runs here

    logger.info(f"Shutting down with {engine.tracker.open_count()} open session(s)")


# Create FastAPI app
app = FastAPI(
    title="Parking Sessions",
    description="API for QR-scan driven parking entry, exit and charging",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router, prefix="/api/v1")


def main():
    """Run the application."""
    # Load config just to get API settings
    config_path = get_config_path()
    if config_path.exists():
        cfg = load_config(config_path)
        host = cfg.api.host
        port = cfg.api.port
    else:
        host = "0.0.0.0"
        port = 8000

    uvicorn.run(
        "parking_sessions.main:app",
        host=host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    main()
