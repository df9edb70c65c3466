from typing import Any

from qbit_lister.utils.error_codes import ErrorCode


class QBitListerError(Exception):
    """
    Base structured exception with an error code and contextual metadata.
    """

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode = ErrorCode.GENERIC,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}
        self.__cause__ = cause

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.context:
            return f"{base} | context={self.context}"
        return base


class ConfigError(QBitListerError):
    def __init__(self, message: str, **ctx: Any):
        super().__init__(message, code=ErrorCode.CONFIG_INVALID, context=ctx)


class LoginError(QBitListerError):
    """Authentication against the WebUI failed (bad credentials, ban, or network)."""


class TorrentQueryError(QBitListerError):
    def __init__(self, message: str, *, cause: Exception | None = None, **ctx: Any):
        super().__init__(
            message, code=ErrorCode.QUERY_FAILED, context=ctx, cause=cause
        )


class RequestCancelledError(QBitListerError):
    def __init__(self, reason: str):
        super().__init__(
            f"request cancelled: {reason}",
            code=ErrorCode.CANCELLED,
            context={"reason": reason},
        )
