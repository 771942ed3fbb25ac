"""
Railway-Oriented Programming (ROP) Result type for certlib.

Explicit, composable error handling — no exceptions across the public API.

    from railway import Result, ErrorCode

    def check_duration(days: int) -> Result[int]:
        if days <= 0:
            return Result.failure(ErrorCode.VALIDATION_ERROR, "duration is required")
        return Result.success(days)

    result = (
        Result.success(365)
        .flat_map(check_duration)
        .with_context("unable to create certificate")
    )
"""

from railway.result import Result, Success, Failure
from railway.failure import ErrorCode, FailureDescription
from railway.result_failures import ResultFailures
from railway.assertions import ResultAssertions

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ResultFailures",
    "ResultAssertions",
]

__version__ = "1.1.0"
