"""
Failure description — structured error information for the failure track.

ErrorCode is the certlib error taxonomy: one member per kind of failure a
caller may need to tell apart (bad input, filesystem, PEM/DER decoding,
key type, temporal validity, chain policy, chain building).

Enum + frozen dataclass gives __eq__, __hash__ and __repr__ for free, and
Enum members are singleton-comparable with `is`.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum, unique
from typing import Optional


@unique
class ErrorCode(Enum):
    """
    Structured error codes for the failure track.

    Grouped by where the failure is detected:
    - Input: VALIDATION
    - Loading: IO, DECODE, INVALID_KEY_TYPE
    - Verification: NOT_YET_VALID, EXPIRED, CHAIN_POLICY, CHAIN
    - Backend: TECHNICAL, UNKNOWN
    """

    # --- Input ---
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Malformed or incomplete request, detected before any cryptographic work."""

    # --- Loading ---
    IO_ERROR = "IO_ERROR"
    """Missing path, directory path, unreadable or oversized file."""

    DECODE_ERROR = "DECODE_ERROR"
    """No PEM block found, or DER payload that does not parse."""

    INVALID_KEY_TYPE = "INVALID_KEY_TYPE"
    """Unsupported PEM block type, or a parsed key that is not RSA."""

    # --- Verification ---
    NOT_YET_VALID = "NOT_YET_VALID"
    """The verification instant is before the certificate's notBefore."""

    EXPIRED = "EXPIRED"
    """The verification instant is after the certificate's notAfter."""

    CHAIN_POLICY_ERROR = "CHAIN_POLICY_ERROR"
    """Policy violation detected before path building (e.g. no intermediate)."""

    CHAIN_ERROR = "CHAIN_ERROR"
    """Path building failed or produced no chain."""

    # --- Backend ---
    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Unexpected failure inside the crypto or TLS backend."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unclassified failure."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "CommonName is required")
    >>> desc.code
    <ErrorCode.VALIDATION_ERROR: 'VALIDATION_ERROR'>
    >>> desc.wrap("invalid subject").message
    'invalid subject: CommonName is required'
    """

    code: ErrorCode
    message: str
    exception: Optional[BaseException] = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @staticmethod
    def create(
        code: ErrorCode,
        message: str,
        exception: Optional[BaseException] = None,
    ) -> FailureDescription:
        return FailureDescription(code=code, message=message, exception=exception)

    def wrap(self, context: str) -> FailureDescription:
        """
        Prefix the message with operation context, keeping code and exception.

        Successive wraps build a causal chain readable left to right:
        "unable to load server TLS config: failed to load server certificate: ..."
        """
        return replace(self, message=f"{context}: {self.message}")

    def full_stack_trace(self) -> str:
        """Full stack trace string including the message and exception chain."""
        if self.exception is None:
            return self.message
        tb = "".join(traceback.format_exception(type(self.exception), self.exception, self.exception.__traceback__))
        return f"{self.message}\n{tb}"
