"""
Application constants and magic number definitions.

This module centralizes all hardcoded values for better maintainability.
"""

import re
from enum import IntEnum


# =============================================================================
# LibreLinkUp API
# =============================================================================

# Base URL used until the service redirects the account to a region
DEFAULT_BASE_URL = "https://api.libreview.io"

# Region specific base URL, e.g. https://api-de.libreview.io
REGION_BASE_URL_TEMPLATE = "https://api-{region}.libreview.io"

# A region must form a single DNS label in the host above
REGION_PATTERN = re.compile(r"[a-z0-9-]+", re.ASCII)

# Client identification expected by the service
API_PRODUCT = "llu.android"
API_VERSION = "4.16.0"

LOGIN_ENDPOINT = "llu/auth/login"
CONNECTIONS_ENDPOINT = "llu/connections"
GRAPH_ENDPOINT_TEMPLATE = "llu/connections/{connection_id}/graph"

# Automatic retries after a region redirect
MAX_REDIRECTS = 1

# Timestamp format used by the service, e.g. "9/7/2025 6:01:03 PM".
# Matched literally so parsing does not depend on the process locale.
TIMESTAMP_PATTERN = re.compile(
    r"(\d{1,2})/(\d{1,2})/(\d{4}) (\d{1,2}):(\d{2}):(\d{2}) (AM|PM)",
    re.ASCII,
)


class GlucoseUnits(IntEnum):
    """Unit a glucose value is reported in."""
    MMOL_PER_L = 0
    MG_PER_DL = 1


class TrendArrow(IntEnum):
    """Rate-of-change direction reported with the current reading."""
    NONE = 0
    DOWN = 1
    DOWN_RIGHT = 2
    RIGHT = 3
    UP_RIGHT = 4
    UP = 5


# =============================================================================
# Metric Names
# =============================================================================

METRIC_NAMESPACE = "glucose"
METRIC_SUBSYSTEM = "librelink"

GLUCOSE_LEVEL_METRIC = f"{METRIC_NAMESPACE}_{METRIC_SUBSYSTEM}_level_mmoll"
GLUCOSE_TREND_METRIC = f"{METRIC_NAMESPACE}_{METRIC_SUBSYSTEM}_trend"
GLUCOSE_HISTORIC_METRIC = f"{METRIC_NAMESPACE}_{METRIC_SUBSYSTEM}_historic_level"

METRIC_LABELS = ("patient_id", "patient_name")


# =============================================================================
# Server Defaults
# =============================================================================

DEFAULT_BIND = ":5656"
DEFAULT_HOST = "0.0.0.0"

# Default HTTP timeout in seconds
DEFAULT_HTTP_TIMEOUT = 10

# Default time budget for a single scrape in seconds
DEFAULT_SCRAPE_TIMEOUT = 25


# =============================================================================
# Logging Constants
# =============================================================================

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMATS = ("console", "json")

SENSITIVE_KEYS = frozenset({
    "password",
    "token",
    "authorization",
    "account-id",
    "access_token",
    "secret",
})

REDACTED = "***REDACTED***"
