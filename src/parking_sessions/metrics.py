"""Prometheus metrics for parking session processing."""

from decimal import Decimal

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

# Processed scans by outcome
SCANS_PROCESSED = Counter(
    "parking_scans_processed_total",
    "Total number of scans processed",
    ["lot_id", "kind", "status"],
    registry=REGISTRY,
)

# Failed scans by error kind
SCAN_FAILURES = Counter(
    "parking_scan_failures_total",
    "Number of scans that produced a failed transaction",
    ["lot_id", "error"],
    registry=REGISTRY,
)

# Charges collected on exit
CHARGES_COLLECTED = Counter(
    "parking_charges_collected_total",
    "Sum of charges computed on exit scans",
    ["lot_id", "currency"],
    registry=REGISTRY,
)

# Parking duration histogram (in seconds)
SESSION_DURATION = Histogram(
    "parking_session_duration_seconds",
    "Duration of closed parking sessions",
    ["lot_id"],
    buckets=(300, 900, 1800, 3600, 7200, 14400, 28800, 86400, 259200),
    registry=REGISTRY,
)

# Currently open sessions
OPEN_SESSIONS = Gauge(
    "parking_sessions_open",
    "Number of vehicles currently inside a lot",
    ["lot_id"],
    registry=REGISTRY,
)


def record_scan(lot_id: str, kind: str, status: str) -> None:
    """Record a processed scan."""
    SCANS_PROCESSED.labels(lot_id=lot_id, kind=kind, status=status).inc()


def record_failure(lot_id: str, error: str) -> None:
    """Record a failed scan."""
    SCAN_FAILURES.labels(lot_id=lot_id, error=error).inc()


def record_exit(lot_id: str, currency: str, charge: Decimal, duration_seconds: float) -> None:
    """Record the charge and duration of a closed session."""
    CHARGES_COLLECTED.labels(lot_id=lot_id, currency=currency).inc(float(charge))
    SESSION_DURATION.labels(lot_id=lot_id).observe(duration_seconds)


def update_open_sessions(lot_id: str, count: int) -> None:
    """Update open session gauge for a lot."""
    OPEN_SESSIONS.labels(lot_id=lot_id).set(count)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)
