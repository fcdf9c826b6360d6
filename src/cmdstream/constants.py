from __future__ import annotations

LINE_TERMINATOR = b"\n"
DEFAULT_RESPONSE = b"ok\n"

DEFAULT_WINDOW = 4  # 1 disables pipelining
DEFAULT_PORT = "/dev/ttyACM0"
DEFAULT_BAUDRATE = 115200
DEFAULT_TCP_PORT = 23

DEFAULT_SETTLE_MS = 2000  # receiver boots after DTR toggles on open
DEFAULT_GRACE_MS = 1000
DEFAULT_READ_TIMEOUT_S = 0.1
DEFAULT_JOIN_TIMEOUT_S = 2.0

DEFAULT_DEVICE_BUFFER = 128
