"""Internal constants shared across the library."""

DEFAULT_PORT = 23
OUTLET_COUNT = 8
DEFAULT_NAME = "Panamax M4315"

MANUFACTURER = "Panamax"
MODEL = "M4315"
SERIAL_NUMBER = "123-456-789"

# ------------------------------------------------------------------
# Wire protocol
# ------------------------------------------------------------------

LINE_TERMINATOR = "\r\n"
STATUS_REQUEST = f"?OUTLETSTAT{LINE_TERMINATOR}"
ENCODING = "utf-8"

# ------------------------------------------------------------------
# Timing (seconds)
# ------------------------------------------------------------------

RECONNECT_DELAY = 5.0
RECONNECT_MAX_DELAY = 300.0
CONNECT_TIMEOUT = 10.0
# Wait after a command write before polling, then after the poll before
# the next queued command is sent.
SETTLE_DELAY = 0.5
POLL_SETTLE_DELAY = 0.5

READ_CHUNK_SIZE = 1024
