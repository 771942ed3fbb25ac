"""
Tests for the Result monad.

Tests cover:
  - Success/Failure creation and introspection
  - map, flat_map, ensure, with_context transformations
  - Side effects (peek, peek_failure)
  - Recovery (recover, get_or_else, get_or_else_get)
  - Static factories (from_computation, from_optional, combine, all_of)
  - Pattern matching (match/case)
  - Equality and repr
"""

from __future__ import annotations

import pytest

from railway import ErrorCode, Failure, FailureDescription, Result, Success


# ═══════════════════════════════════════════════════════════════
# 1. Creation & Introspection
# ═══════════════════════════════════════════════════════════════


class TestSuccessCreation:
    def test_success_wraps_value(self):
        result = Result.success(2048)
        assert result.is_success()
        assert not result.is_failure()
        assert result.value() == 2048

    def test_success_with_bytes(self):
        result = Result.success(b"-----BEGIN CERTIFICATE-----")
        assert result.value().startswith(b"-----BEGIN")

    def test_success_rejects_none(self):
        with pytest.raises(TypeError, match="must not be None"):
            Success(None)

    def test_success_is_truthy(self):
        assert Result.success(1)
        assert bool(Result.success("x"))


class TestFailureCreation:
    def test_failure_with_code_and_message(self):
        result = Result.failure(ErrorCode.VALIDATION_ERROR, "CommonName is required")
        assert result.is_failure()
        assert not result.is_success()
        assert result.error().code == ErrorCode.VALIDATION_ERROR
        assert result.error().message == "CommonName is required"

    def test_failure_with_exception(self):
        ex = FileNotFoundError("cert.pem")
        result = Result.failure(ErrorCode.IO_ERROR, "unable to read cert.pem", ex)
        assert result.error().exception is ex

    def test_failure_from_description(self):
        desc = FailureDescription(ErrorCode.EXPIRED, "certificate has expired")
        result = Result.failure_from(desc)
        assert result.error() == desc

    def test_failure_rejects_none(self):
        with pytest.raises(TypeError, match="must not be None"):
            Failure(None)

    def test_failure_is_falsy(self):
        assert not Result.failure(ErrorCode.VALIDATION_ERROR, "bad")


class TestValueExtraction:
    def test_value_on_failure_raises(self):
        result = Result.failure(ErrorCode.DECODE_ERROR, "no PEM data found")
        with pytest.raises(ValueError, match="Cannot get value from a Failure"):
            result.value()

    def test_error_on_success_raises(self):
        with pytest.raises(ValueError, match="Cannot get error from a Success"):
            Result.success(42).error()


# ═══════════════════════════════════════════════════════════════
# 2. Transformations
# ═══════════════════════════════════════════════════════════════


class TestMap:
    def test_map_transforms_success_value(self):
        assert Result.success(2048).map(lambda bits: bits // 8).value() == 256

    def test_map_short_circuits_on_failure(self):
        result = Result.failure(ErrorCode.VALIDATION_ERROR, "bad").map(lambda x: x * 2)
        assert result.error().code == ErrorCode.VALIDATION_ERROR

    def test_map_chain(self):
        result = Result.success(3).map(lambda x: x + 1).map(lambda x: x * 2).map(str)
        assert result.value() == "8"


class TestMapFailure:
    def test_map_failure_transforms_error(self):
        result = Result.failure(ErrorCode.CHAIN_ERROR, "original").map_failure(
            lambda e: FailureDescription(e.code, f"Wrapped: {e.message}")
        )
        assert result.error().message == "Wrapped: original"

    def test_map_failure_passes_through_success(self):
        result = Result.success(42).map_failure(lambda e: FailureDescription(e.code, "should not run"))
        assert result.value() == 42


class TestWithContext:
    def test_prefixes_message_and_keeps_code(self):
        ex = ValueError("bad DER")
        result = Result.failure(ErrorCode.DECODE_ERROR, "failed to parse certificate", ex).with_context(
            "failed to load server certificate"
        )
        assert result.error().message == "failed to load server certificate: failed to parse certificate"
        assert result.error().code == ErrorCode.DECODE_ERROR
        assert result.error().exception is ex

    def test_nested_context_reads_outermost_first(self):
        result = (
            Result.failure(ErrorCode.IO_ERROR, "path does not exist")
            .with_context("failed to load client key")
            .with_context("unable to load TLS config")
        )
        assert result.error().message == (
            "unable to load TLS config: failed to load client key: path does not exist"
        )

    def test_success_unchanged(self):
        assert Result.success(1).with_context("ignored") == Result.success(1)


class TestFlatMap:
    def test_flat_map_chains_success(self):
        def check_size(bits: int) -> Result[int]:
            if bits >= 2048:
                return Result.success(bits)
            return Result.failure(ErrorCode.VALIDATION_ERROR, "key too small")

        assert Result.success(4096).flat_map(check_size).value() == 4096
        assert Result.success(1024).flat_map(check_size).is_failure()

    def test_flat_map_short_circuits_on_first_failure(self):
        calls: list[str] = []

        def validate(x: int) -> Result[int]:
            calls.append("validate")
            return Result.failure(ErrorCode.VALIDATION_ERROR, "fail at validate")

        def keygen(x: int) -> Result[int]:
            calls.append("keygen")
            return Result.success(x + 1)

        result = Result.success(1).flat_map(validate).flat_map(keygen)
        assert result.is_failure()
        assert calls == ["validate"]


class TestEnsure:
    def test_ensure_passes_when_predicate_true(self):
        result = Result.success([["leaf", "root"]]).ensure(
            lambda chains: len(chains) > 0, ErrorCode.CHAIN_ERROR, "no certificate chain found"
        )
        assert result.is_success()

    def test_ensure_fails_when_predicate_false(self):
        result = Result.success([]).ensure(
            lambda chains: len(chains) > 0, ErrorCode.CHAIN_ERROR, "no certificate chain found"
        )
        assert result.error().code == ErrorCode.CHAIN_ERROR
        assert result.error().message == "no certificate chain found"

    def test_ensure_with_failure_description(self):
        error = FailureDescription(ErrorCode.CHAIN_POLICY_ERROR, "intermediate required")
        result = Result.success(0).ensure(lambda n: n > 0, error)
        assert result.error().code == ErrorCode.CHAIN_POLICY_ERROR

    def test_ensure_short_circuits_on_existing_failure(self):
        result = Result.failure(ErrorCode.EXPIRED, "certificate has expired").ensure(
            lambda x: True, ErrorCode.VALIDATION_ERROR, "never reached"
        )
        assert result.error().code == ErrorCode.EXPIRED


# ═══════════════════════════════════════════════════════════════
# 3. Either / Pattern Matching
# ═══════════════════════════════════════════════════════════════


class TestEither:
    def test_either_on_success(self):
        msg = Result.success("localhost").either(
            on_success=lambda name: f"valid for {name}",
            on_failure=lambda err: f"Error: {err.message}",
        )
        assert msg == "valid for localhost"

    def test_either_on_failure(self):
        msg = Result.failure(ErrorCode.EXPIRED, "certificate has expired").either(
            on_success=lambda v: f"Got: {v}",
            on_failure=lambda err: f"Error: {err.message}",
        )
        assert msg == "Error: certificate has expired"


class TestPatternMatching:
    def test_match_success(self):
        match Result.success(42):
            case Success(v):
                assert v == 42
            case Failure(_):
                pytest.fail("Should be Success")

    def test_match_failure(self):
        match Result.failure(ErrorCode.NOT_YET_VALID, "certificate is not yet valid"):
            case Success(_):
                pytest.fail("Should be Failure")
            case Failure(err):
                assert err.code == ErrorCode.NOT_YET_VALID


# ═══════════════════════════════════════════════════════════════
# 4. Side Effects
# ═══════════════════════════════════════════════════════════════


class TestPeek:
    def test_peek_executes_on_success(self):
        captured: list[int] = []
        result = Result.success(42).peek(captured.append)
        assert captured == [42]
        assert result.value() == 42

    def test_peek_skips_on_failure(self):
        captured: list[int] = []
        Result.failure(ErrorCode.IO_ERROR, "nope").peek(captured.append)
        assert captured == []

    def test_peek_failure_executes_on_failure(self):
        captured: list[str] = []
        Result.failure(ErrorCode.IO_ERROR, "gone").peek_failure(lambda err: captured.append(err.message))
        assert captured == ["gone"]

    def test_peek_failure_skips_on_success(self):
        captured: list[str] = []
        Result.success(42).peek_failure(lambda err: captured.append(err.message))
        assert captured == []


# ═══════════════════════════════════════════════════════════════
# 5. Recovery
# ═══════════════════════════════════════════════════════════════


class TestRecovery:
    def test_recover_from_failure(self):
        result = Result.failure(ErrorCode.IO_ERROR, "missing").recover(lambda err: "default")
        assert result.value() == "default"

    def test_recover_passes_through_success(self):
        assert Result.success(42).recover(lambda err: 0).value() == 42

    def test_get_or_else(self):
        assert Result.failure(ErrorCode.IO_ERROR, "x").get_or_else("fallback") == "fallback"
        assert Result.success("actual").get_or_else("fallback") == "actual"

    def test_get_or_else_get(self):
        value = Result.failure(ErrorCode.DECODE_ERROR, "x").get_or_else_get(
            lambda err: f"recovered from {err.code.value}"
        )
        assert value == "recovered from DECODE_ERROR"


# ═══════════════════════════════════════════════════════════════
# 6. Static Factories
# ═══════════════════════════════════════════════════════════════


class TestFromComputation:
    def test_success_when_no_exception(self):
        result = Result.from_computation(lambda: 42, ErrorCode.TECHNICAL_ERROR, "signing failed")
        assert result.value() == 42

    def test_failure_message_names_the_cause(self):
        """
        GIVEN a computation that raises
        WHEN wrapped with from_computation
        THEN the failure message is "<message>: <exception text>" and the exception is kept.
        """

        def parse() -> bytes:
            raise ValueError("invalid DER")

        result = Result.from_computation(parse, ErrorCode.DECODE_ERROR, "failed to parse certificate")

        assert result.error().code == ErrorCode.DECODE_ERROR
        assert result.error().message == "failed to parse certificate: invalid DER"
        assert isinstance(result.error().exception, ValueError)


class TestFromOptional:
    def test_success_when_value_present(self):
        assert Result.from_optional("cert", "no certificate provided").value() == "cert"

    def test_failure_when_none(self):
        result = Result.from_optional(None, "no certificate provided")
        assert result.error().code == ErrorCode.VALIDATION_ERROR
        assert result.error().message == "no certificate provided"

    def test_custom_error_code(self):
        result = Result.from_optional(None, "issuer missing", ErrorCode.CHAIN_POLICY_ERROR)
        assert result.error().code == ErrorCode.CHAIN_POLICY_ERROR


class TestCombine:
    def test_combine_two_successes(self):
        result = Result.combine(Result.success("cert"), Result.success("key"), lambda c, k: f"{c}+{k}")
        assert result.value() == "cert+key"

    def test_combine_first_failure_wins(self):
        result = Result.combine(
            Result.failure(ErrorCode.IO_ERROR, "bad cert"),
            Result.failure(ErrorCode.IO_ERROR, "bad key"),
            lambda c, k: (c, k),
        )
        assert result.error().message == "bad cert"

    def test_combine_second_fails(self):
        result = Result.combine(
            Result.success("cert"),
            Result.failure(ErrorCode.DECODE_ERROR, "bad key"),
            lambda c, k: (c, k),
        )
        assert result.error().message == "bad key"

    def test_combine_three(self):
        result = Result.combine3(
            Result.success("a"), Result.success("b"), Result.success("c"), lambda a, b, c: f"{a}-{b}-{c}"
        )
        assert result.value() == "a-b-c"


class TestAllOf:
    def test_all_successes(self):
        assert Result.all_of([Result.success(i) for i in range(3)]).value() == [0, 1, 2]

    def test_first_failure_wins(self):
        combined = Result.all_of(
            [
                Result.success(1),
                Result.failure(ErrorCode.DECODE_ERROR, "second fails"),
                Result.success(3),
            ]
        )
        assert combined.error().message == "second fails"

    def test_empty_list(self):
        assert Result.all_of([]).value() == []


# ═══════════════════════════════════════════════════════════════
# 7. Equality & Repr
# ═══════════════════════════════════════════════════════════════


class TestEqualityAndRepr:
    def test_success_equality(self):
        assert Result.success(42) == Result.success(42)
        assert Result.success(42) != Result.success(99)

    def test_failure_equality_ignores_timestamp(self):
        a = Result.failure(ErrorCode.EXPIRED, "x")
        b = Result.failure(ErrorCode.EXPIRED, "x")
        c = Result.failure(ErrorCode.EXPIRED, "y")
        assert a == b
        assert a != c

    def test_success_not_equal_to_failure(self):
        assert Result.success(42) != Result.failure(ErrorCode.EXPIRED, "x")

    def test_repr(self):
        assert "Success(42)" in repr(Result.success(42))
        r = repr(Result.failure(ErrorCode.CHAIN_ERROR, "gone"))
        assert "CHAIN_ERROR" in r
        assert "gone" in r
