from __future__ import annotations

ADDR_DATA = "/mtu/data"
ADDR_SIZE = "/mtu/size"
ADDR_SUCCESS = "/mtu/success"
ADDR_FAILED = "/mtu/failed"
ADDR_STOP = "/mtu/stop"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_DATA_PORT = 9000
DEFAULT_FEEDBACK_PORT = 9001

DEFAULT_INITIAL_SIZE = 1
DEFAULT_INITIAL_STEP = 10_000
STEP_DIVISOR = 10

DEFAULT_TICK_HZ = 10.0
DEFAULT_POLL_INTERVAL_S = 0.1
DEFAULT_TIMEOUT_MS = 100  # socket read timeout, bounds listener shutdown latency

MAX_DATAGRAM = 65535
