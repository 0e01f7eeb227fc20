"""Internal constants shared across the library."""

DEFAULT_SERVER_URI = "wss://stream.aisstream.io/v0/stream"

# Whole-globe box; disables geographic filtering on the server side.
WHOLE_GLOBE_BOUNDING_BOX: tuple[tuple[tuple[float, float], tuple[float, float]], ...] = (
    ((-90.0, -180.0), (90.0, 180.0)),
)

POSITION_REPORT_TYPE = "PositionReport"
PROTOCOL_NAME = "AIS"

# ------------------------------------------------------------------
# Connection lifecycle defaults
# ------------------------------------------------------------------

CONNECT_TIMEOUT_S = 30.0
RECONNECT_DELAY_S = 10.0
MAX_RETRY_ATTEMPTS = 3
HEARTBEAT_S = 30.0

# ------------------------------------------------------------------
# Sync / dispatch defaults
# ------------------------------------------------------------------

SYNC_INTERVAL_S = 5 * 60.0
DISPATCH_WORKERS = 10
DISPATCH_QUEUE_SIZE = 1000
SHUTDOWN_GRACE_S = 5.0
