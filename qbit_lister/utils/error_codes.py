from enum import StrEnum


class ErrorCode(StrEnum):
    GENERIC = "GENERIC"
    CONFIG_INVALID = "CONFIG_INVALID"
    CONNECTION = "CONNECTION"
    FORBIDDEN = "FORBIDDEN"
    LOGIN_FAILED = "LOGIN_FAILED"
    QUERY_FAILED = "QUERY_FAILED"
    CANCELLED = "CANCELLED"
