from __future__ import annotations


class FilecoinUtilsError(Exception):
    """Base class for every error raised by filecoin_utils."""


class InvalidAddress(FilecoinUtilsError, ValueError):
    pass


class ActorNotFound(FilecoinUtilsError):
    def __init__(self, address: str, message: str | None = None) -> None:
        super().__init__(message or f"actor not found: {address}")
        self.address = address


class ActorStateDecodeError(FilecoinUtilsError):
    pass


class DivisionByZero(FilecoinUtilsError, ZeroDivisionError):
    pass


class QueryFailure(FilecoinUtilsError):
    pass


class RpcError(QueryFailure):
    def __init__(self, message: str, *, status_code: int | None = None, retry_after_s: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after_s = retry_after_s
