"""
Convenience factory methods for common Result failures.

One factory per ErrorCode, so call sites read as the failure they report:

    # Instead of:
    Result.failure(ErrorCode.CHAIN_POLICY_ERROR, "client/server certificates must be ...")

    # Write:
    ResultFailures.chain_policy_error("client/server certificates must be ...")
"""

from __future__ import annotations

from typing import TypeVar

from railway.failure import ErrorCode
from railway.result import Result

T = TypeVar("T")


class ResultFailures:
    """Factory methods for the certlib failure kinds, plus exception mapping."""

    @staticmethod
    def validation_error(message: str) -> Result:
        """Malformed or incomplete request."""
        return Result.failure(ErrorCode.VALIDATION_ERROR, message)

    @staticmethod
    def io_error(message: str, exception: BaseException | None = None) -> Result:
        """Filesystem failure: missing path, directory, unreadable file."""
        return Result.failure(ErrorCode.IO_ERROR, message, exception)

    @staticmethod
    def decode_error(message: str, exception: BaseException | None = None) -> Result:
        """PEM armor missing or DER payload unparseable."""
        return Result.failure(ErrorCode.DECODE_ERROR, message, exception)

    @staticmethod
    def invalid_key_type(message: str) -> Result:
        """Unsupported key block type or non-RSA key."""
        return Result.failure(ErrorCode.INVALID_KEY_TYPE, message)

    @staticmethod
    def not_yet_valid(message: str = "certificate is not yet valid") -> Result:
        return Result.failure(ErrorCode.NOT_YET_VALID, message)

    @staticmethod
    def expired(message: str = "certificate has expired") -> Result:
        return Result.failure(ErrorCode.EXPIRED, message)

    @staticmethod
    def chain_policy_error(message: str) -> Result:
        """Chain policy violated before any path building was attempted."""
        return Result.failure(ErrorCode.CHAIN_POLICY_ERROR, message)

    @staticmethod
    def chain_error(message: str, exception: BaseException | None = None) -> Result:
        """Path building failed or produced no chain."""
        return Result.failure(ErrorCode.CHAIN_ERROR, message, exception)

    @staticmethod
    def technical_error(message: str, exception: BaseException | None = None) -> Result:
        """Unexpected backend failure (signing, key generation, ssl)."""
        return Result.failure(ErrorCode.TECHNICAL_ERROR, message, exception)

    @staticmethod
    def from_exception(message: str, exception: BaseException) -> Result:
        """
        Auto-map a Python exception to the appropriate ErrorCode.

        Mapping:
          - OSError (FileNotFoundError, IsADirectoryError, PermissionError, ...) → IO_ERROR
          - ValueError, TypeError → DECODE_ERROR
          - Everything else → UNKNOWN_ERROR
        """
        code = _map_exception_to_code(exception)
        return Result.failure(code, message, exception)

    @staticmethod
    def from_exception_auto(exception: BaseException) -> Result:
        """Map exception using its own message."""
        code = _map_exception_to_code(exception)
        return Result.failure(code, str(exception), exception)


def _map_exception_to_code(exception: BaseException) -> ErrorCode:
    """Map a Python exception type to the most appropriate ErrorCode."""
    match exception:
        case OSError():
            return ErrorCode.IO_ERROR
        case ValueError() | TypeError():
            return ErrorCode.DECODE_ERROR
        case _:
            return ErrorCode.UNKNOWN_ERROR
