"""Configuration defaults."""

import os

# Control server defaults
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3001
REQUEST_TIMEOUT = 10  # seconds to wait for a client to finish sending
MAX_REQUEST_SIZE = 1024 * 1024

# Printer defaults
DEFAULT_PRINTER_PORT = 9100
PRINT_TIMEOUT = 5.0  # seconds, print/drawer/test deliveries
COPY_DELAY = 0.5  # seconds between the two receipt copies
RECEIPT_COPIES = 2
DEFAULT_LAYOUT = "wide"
DEFAULT_BUSINESS_NAME = "Vysion Horeca"

# Discovery defaults
SCAN_PORT = 9100
SCAN_BATCH_SIZE = 20
SCAN_PROBE_TIMEOUT = 1.0
SCAN_HOST_COUNT = 254
SCAN_INTERFACES = ("en0", "en1", "eth0", "wlan0")

# Persisted printer settings
SETTINGS_ENV = "VYSION_PRINT_SETTINGS"
DEFAULT_SETTINGS_FILE = os.path.join(os.path.expanduser("~"), ".vysion_print.json")


def settings_path() -> str:
    """Settings file location, overridable through the environment."""
    return os.environ.get(SETTINGS_ENV) or DEFAULT_SETTINGS_FILE
