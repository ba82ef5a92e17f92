"""Project-wide constants."""

import ipaddress
import sys

APP_NAME = "singularity"
VERSION = "0.9.0"

USER_AGENT = f"{APP_NAME}/{VERSION} Python/{sys.version.split()[0]}"

# Timeouts are in milliseconds
HTTP_CONNECT_TIMEOUT = 30_000
HTTP_READ_TIMEOUT = 10_000

MAX_RETRIES = 3
RETRY_BACKOFF = 0.5
RETRY_STATUS_CODES = [429, 500, 502, 503, 504]

# How many domains may wait in the channel before readers block
CHANNEL_CAPACITY = 1024

# Consecutive stream errors after which a source is given up on
MAX_STREAM_ERRORS = 3

DEFAULT_BLACKHOLE_ADDRESS_V4 = ipaddress.IPv4Address("0.0.0.0")
DEFAULT_BLACKHOLE_ADDRESS_V6 = ipaddress.IPv6Address("::")
DEFAULT_DEDUPLICATE = False
DEFAULT_OUTPUT_METRIC = True
DEFAULT_METRIC_NAME = "blocked-queries"

DEFAULT_CONFIG_FILE = "singularity.json"
