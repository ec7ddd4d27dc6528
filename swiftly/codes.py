"""
Swiftly: Response Code Taxonomy
================================

What:  The fixed table of response codes, their default messages and the
       HTTP status each one maps to.
How:   `Code` names every reserved code. `CodeRegistry` is a value object
       seeded with the reserved table and extended only through
       `register()`, which accepts caller codes >= 100.
Who:   Used by the envelope factory, the dispatcher and the response builder.

Code Bands:
    0        success
    1        generic failure
    10-19    API layer (not found, method, internal, timeout, rate limit)
    20-29    parameter validation
    30-39    authentication / authorization
    40-49    files
    50-59    storage
    60-69    cache
    70-79    network
    80-89    server
    90-99    configuration
    100+     caller-registered
"""

import logging
from enum import IntEnum
from typing import Dict, Iterator, NamedTuple, Optional

logger = logging.getLogger(__name__)

UNKNOWN_MESSAGE = "Unknown error"
UNKNOWN_STATUS = 500


class Code(IntEnum):
    SUCCESS = 0
    FAIL = 1

    # API layer (10-19)
    API_NOT_FOUND = 10
    API_METHOD_NOT_ALLOWED = 11
    API_INTERNAL_ERROR = 12
    API_TIMEOUT = 13
    API_RATE_LIMITED = 14

    # Parameter validation (20-29)
    INVALID_PARAMS = 20
    MISSING_REQUIRED_PARAMS = 21
    INVALID_PARAM_TYPE = 22
    PARAM_OUT_OF_RANGE = 23
    INVALID_PARAM_FORMAT = 24

    # Auth (30-39)
    UNAUTHORIZED = 30
    TOKEN_EXPIRED = 31
    TOKEN_INVALID = 32
    PERMISSION_DENIED = 33
    LOGIN_REQUIRED = 34

    # Files (40-49)
    FILE_NOT_FOUND = 40
    FILE_READ_ERROR = 41
    FILE_WRITE_ERROR = 42
    FILE_UPLOAD_ERROR = 43
    FILE_SIZE_EXCEEDED = 44
    FILE_TYPE_NOT_ALLOWED = 45

    # Storage (50-59)
    DATABASE_ERROR = 50
    DATABASE_CONNECTION_ERROR = 51
    DATABASE_QUERY_ERROR = 52
    DATABASE_TRANSACTION_ERROR = 53

    # Cache (60-69)
    CACHE_ERROR = 60
    CACHE_CONNECTION_ERROR = 61
    CACHE_SET_ERROR = 62
    CACHE_GET_ERROR = 63

    # Network (70-79)
    NETWORK_ERROR = 70
    REQUEST_TIMEOUT = 71
    CONNECTION_REFUSED = 72

    # Server (80-89)
    SERVER_ERROR = 80
    SERVICE_UNAVAILABLE = 81
    MAINTENANCE_MODE = 82

    # Configuration (90-99)
    CONFIG_ERROR = 90
    INVALID_CONFIG = 91
    MISSING_CONFIG = 92

    USER_DEFINED_START = 100


class CodeEntry(NamedTuple):
    message: str
    status: int


RESERVED_CODES: Dict[int, CodeEntry] = {
    Code.SUCCESS: CodeEntry("Operation successful", 200),
    Code.FAIL: CodeEntry("Operation failed", 400),
    Code.API_NOT_FOUND: CodeEntry("API not found", 404),
    Code.API_METHOD_NOT_ALLOWED: CodeEntry("Request method not allowed", 405),
    Code.API_INTERNAL_ERROR: CodeEntry("Internal API error", 500),
    Code.API_TIMEOUT: CodeEntry("API request timed out", 504),
    Code.API_RATE_LIMITED: CodeEntry("Request rate limit exceeded", 429),
    Code.INVALID_PARAMS: CodeEntry("Parameter validation failed", 400),
    Code.MISSING_REQUIRED_PARAMS: CodeEntry("Missing required parameters", 400),
    Code.INVALID_PARAM_TYPE: CodeEntry("Invalid parameter type", 400),
    Code.PARAM_OUT_OF_RANGE: CodeEntry("Parameter value out of range", 400),
    Code.INVALID_PARAM_FORMAT: CodeEntry("Invalid parameter format", 400),
    Code.UNAUTHORIZED: CodeEntry("Unauthorized access", 401),
    Code.TOKEN_EXPIRED: CodeEntry("Token has expired", 401),
    Code.TOKEN_INVALID: CodeEntry("Token is invalid", 401),
    Code.PERMISSION_DENIED: CodeEntry("Permission denied", 403),
    Code.LOGIN_REQUIRED: CodeEntry("Login required", 401),
    Code.FILE_NOT_FOUND: CodeEntry("File not found", 404),
    Code.FILE_READ_ERROR: CodeEntry("Failed to read file", 500),
    Code.FILE_WRITE_ERROR: CodeEntry("Failed to write file", 500),
    Code.FILE_UPLOAD_ERROR: CodeEntry("File upload failed", 500),
    Code.FILE_SIZE_EXCEEDED: CodeEntry("File size limit exceeded", 413),
    Code.FILE_TYPE_NOT_ALLOWED: CodeEntry("File type not allowed", 415),
    Code.DATABASE_ERROR: CodeEntry("Database operation failed", 500),
    Code.DATABASE_CONNECTION_ERROR: CodeEntry("Database connection failed", 500),
    Code.DATABASE_QUERY_ERROR: CodeEntry("Database query failed", 500),
    Code.DATABASE_TRANSACTION_ERROR: CodeEntry("Database transaction failed", 500),
    Code.CACHE_ERROR: CodeEntry("Cache operation failed", 500),
    Code.CACHE_CONNECTION_ERROR: CodeEntry("Cache connection failed", 500),
    Code.CACHE_SET_ERROR: CodeEntry("Failed to write cache entry", 500),
    Code.CACHE_GET_ERROR: CodeEntry("Failed to read cache entry", 500),
    Code.NETWORK_ERROR: CodeEntry("Network error", 502),
    Code.REQUEST_TIMEOUT: CodeEntry("Request timed out", 504),
    Code.CONNECTION_REFUSED: CodeEntry("Connection refused", 502),
    Code.SERVER_ERROR: CodeEntry("Internal server error", 500),
    Code.SERVICE_UNAVAILABLE: CodeEntry("Service temporarily unavailable", 503),
    Code.MAINTENANCE_MODE: CodeEntry("System under maintenance", 503),
    Code.CONFIG_ERROR: CodeEntry("Configuration error", 500),
    Code.INVALID_CONFIG: CodeEntry("Invalid configuration format", 500),
    Code.MISSING_CONFIG: CodeEntry("Missing required configuration", 500),
}


def is_success(code: int) -> bool:
    return code == Code.SUCCESS


def is_internal_error(code: int) -> bool:
    """Codes 10-99 are reserved for the kernel's own error kinds."""
    return 10 <= code <= 99


def is_user_defined(code: int) -> bool:
    return code >= Code.USER_DEFINED_START


class CodeRegistry:
    """
    Lookup table from response code to default message and HTTP status.

    Lifecycle:
        1. `CodeRegistry.seeded()` at startup (reserved table)
        2. `register()` for each application code >= 100
        3. Read-only during request handling

    Policy for collisions:
        - code < 100          → ConfigurationError (reserved band)
        - existing custom code → overwritten, with a warning
    """

    def __init__(self, entries: Optional[Dict[int, CodeEntry]] = None):
        self._entries: Dict[int, CodeEntry] = dict(entries or {})

    @classmethod
    def seeded(cls) -> "CodeRegistry":
        return cls(RESERVED_CODES)

    def register(self, code: int, message: str, status: int = 400) -> None:
        from swiftly.exceptions import ConfigurationError

        if not isinstance(code, int) or isinstance(code, bool):
            raise ConfigurationError(f"Response code must be an integer, got {code!r}")
        if code < Code.USER_DEFINED_START:
            logger.error("Refusing to register reserved code %d (%s)", code, message)
            raise ConfigurationError(
                f"Custom response codes must be >= {int(Code.USER_DEFINED_START)}, got {code}",
                context={"code": code},
            )
        if not 100 <= status <= 599:
            raise ConfigurationError(f"Invalid HTTP status {status} for code {code}")
        if code in self._entries:
            logger.warning("Response code %d already registered; overwriting", code)
        self._entries[code] = CodeEntry(message, status)

    def message(self, code: int) -> str:
        entry = self._entries.get(code)
        return entry.message if entry else UNKNOWN_MESSAGE

    def status(self, code: int) -> int:
        entry = self._entries.get(code)
        return entry.status if entry else UNKNOWN_STATUS

    def copy(self) -> "CodeRegistry":
        return CodeRegistry(self._entries)

    def __contains__(self, code: object) -> bool:
        return code in self._entries

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


# Registry used when callers do not pass one explicitly
default_registry = CodeRegistry.seeded()
