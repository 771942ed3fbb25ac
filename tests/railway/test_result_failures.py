"""Tests for ResultFailures convenience factories."""

import pytest

from railway import ErrorCode
from railway.result_failures import ResultFailures


class TestConvenienceFactories:
    def test_validation_error(self):
        result = ResultFailures.validation_error("CommonName is required")
        assert result.is_failure()
        assert result.error().code == ErrorCode.VALIDATION_ERROR
        assert result.error().message == "CommonName is required"

    def test_io_error_keeps_exception(self):
        ex = FileNotFoundError("key.pem")
        result = ResultFailures.io_error("path does not exist: key.pem", ex)
        assert result.error().code == ErrorCode.IO_ERROR
        assert result.error().exception is ex

    def test_decode_error(self):
        result = ResultFailures.decode_error("no PEM data found")
        assert result.error().code == ErrorCode.DECODE_ERROR

    def test_invalid_key_type(self):
        result = ResultFailures.invalid_key_type("unsupported key type EC PRIVATE KEY")
        assert result.error().code == ErrorCode.INVALID_KEY_TYPE

    def test_temporal_defaults(self):
        assert ResultFailures.not_yet_valid().error().message == "certificate is not yet valid"
        assert ResultFailures.expired().error().message == "certificate has expired"
        assert ResultFailures.expired().error().code == ErrorCode.EXPIRED

    def test_chain_errors(self):
        assert ResultFailures.chain_policy_error("x").error().code == ErrorCode.CHAIN_POLICY_ERROR
        assert ResultFailures.chain_error("y").error().code == ErrorCode.CHAIN_ERROR

    def test_technical_error(self):
        result = ResultFailures.technical_error("unable to generate key")
        assert result.error().code == ErrorCode.TECHNICAL_ERROR


class TestExceptionMapping:
    @pytest.mark.parametrize(
        ("exception", "code"),
        [
            (FileNotFoundError("x"), ErrorCode.IO_ERROR),
            (IsADirectoryError("x"), ErrorCode.IO_ERROR),
            (PermissionError("x"), ErrorCode.IO_ERROR),
            (ValueError("x"), ErrorCode.DECODE_ERROR),
            (TypeError("x"), ErrorCode.DECODE_ERROR),
            (RuntimeError("x"), ErrorCode.UNKNOWN_ERROR),
        ],
    )
    def test_from_exception(self, exception, code):
        result = ResultFailures.from_exception("context", exception)
        assert result.error().code == code
        assert result.error().exception is exception

    def test_from_exception_auto(self):
        result = ResultFailures.from_exception_auto(ValueError("invalid DER"))
        assert result.error().code == ErrorCode.DECODE_ERROR
        assert result.error().message == "invalid DER"
