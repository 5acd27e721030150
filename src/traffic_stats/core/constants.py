from __future__ import annotations

BITS_PER_BYTE = 8
BITS_PER_KILOBIT = 1000

# 1 Gbps expressed in kbps; anything above is treated as a counter anomaly.
MAX_REASONABLE_KBPS = 1_000_000

DEFAULT_INTERVAL_SECONDS = 1.0

# Primary Wi-Fi and primary cellular data interface.
DEFAULT_INTERFACES: tuple[str, ...] = ("en0", "pdp_ip0")

PAYLOAD_UPLOAD_KEY = "uploadSpeed"
PAYLOAD_DOWNLOAD_KEY = "downloadSpeed"

OVERRIDES_ENV_VAR = "TRAFFIC_STATS_OVERRIDES"
