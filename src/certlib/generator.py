"""
Certificate generator — builds and signs X.509 certificates for the four variants.

Single entry point, generate_certificate(type, args), with all PKI policy
centralised so that key usage and SAN rules cannot drift between callers.

Pipeline (every validation step runs before any key material is generated):

  validate_subject
    → validate_server_identity (SERVER only)
      → template (serial, validity window, usage profile, SAN)
        → key size  → issuer presence
          → RSA key generation
            → sign with issuer key (root: self) → re-parse DER
              → CertKey

Each stage returns Result[T]; failures short-circuit with context
("invalid subject: ...", "unable to create certificate: ...").
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from railway import ErrorCode, FailureDescription
from railway.result import Result
from railway.result_failures import ResultFailures

from certlib.domain.models import CertificateArgs, CertificateType, CertKey, Subject
from certlib.domain.policy import (
    DEFAULT_KEY_SIZE,
    MIN_KEY_SIZE,
    UsageProfile,
    parse_ip_address,
    resolve_key_size,
    usage_profile,
    validate_server_identity,
    validate_subject,
)

log = structlog.get_logger()

PUBLIC_EXPONENT = 65537

__all__ = [
    "DEFAULT_KEY_SIZE",
    "MIN_KEY_SIZE",
    "PUBLIC_EXPONENT",
    "generate_certificate",
    "generate_certificate_async",
    "generate_basic_ca",
    "generate_basic_intermediate_ca",
    "generate_basic_server_cert",
    "generate_basic_client_cert",
    "hash_public_key",
]


@dataclass(frozen=True, slots=True)
class _Template:
    """Everything about the certificate that does not depend on the new key."""

    serial: int
    subject: x509.Name
    not_before: datetime
    not_after: datetime
    profile: UsageProfile
    san: x509.SubjectAlternativeName | None
    extensions: tuple[x509.Extension, ...]


@dataclass(frozen=True, slots=True)
class _Signer:
    """Who signs: a caller-supplied issuer, or None for a self-signed root."""

    issuer: CertKey | None


@dataclass(frozen=True, slots=True)
class _Request:
    cert_type: CertificateType
    template: _Template
    key_size: int
    signer: _Signer


# ─────────────────────── Validation & template ───────────────────────


def _validate_identity(cert_type: CertificateType, args: CertificateArgs) -> Result[CertificateArgs]:
    if cert_type is not CertificateType.SERVER:
        return Result.success(args)
    return validate_server_identity(args).with_context("invalid server identity")


def _resolve_serial(serial: int | None) -> Result[int]:
    if serial is None:
        return Result.success(time.time_ns() // 1_000_000)
    if serial <= 0:
        return ResultFailures.validation_error("serial number must be positive")
    return Result.success(serial)


def _resolve_not_before(not_before: datetime | None) -> datetime:
    if not_before is None:
        return datetime.now(UTC)
    if not_before.tzinfo is None:
        return not_before.replace(tzinfo=UTC)
    return not_before


def _resolve_validity(args: CertificateArgs) -> Result[tuple[datetime, datetime]]:
    if args.duration is None or args.duration <= timedelta(0):
        return ResultFailures.validation_error("duration is required")
    not_before = _resolve_not_before(args.not_before)
    return Result.from_computation(
        lambda: (not_before, not_before + args.duration),
        ErrorCode.VALIDATION_ERROR,
        "invalid validity window",
    )


def _san_entries(args: CertificateArgs) -> Result[tuple[x509.GeneralName, ...]]:
    """SAN general names from DNS names, IPs and emails, in that order. May be empty."""
    ips = Result.all_of([parse_ip_address(ip) for ip in args.ip_addresses])
    return ips.flat_map(
        lambda addresses: Result.from_computation(
            lambda: (
                *(x509.DNSName(name) for name in args.dns_names),
                *(x509.IPAddress(ip) for ip in addresses),
                *(x509.RFC822Name(email) for email in args.email_addresses),
            ),
            ErrorCode.VALIDATION_ERROR,
            "invalid subject alternative name",
        )
    )


def _build_template(cert_type: CertificateType, args: CertificateArgs) -> Result[_Template]:
    return Result.combine3(
        _resolve_serial(args.serial),
        _resolve_validity(args),
        _san_entries(args),
        lambda serial, validity, names: _Template(
            serial=serial,
            subject=args.subject.to_x509_name(),
            not_before=validity[0],
            not_after=validity[1],
            profile=usage_profile(cert_type),
            san=x509.SubjectAlternativeName(list(names)) if names else None,
            extensions=tuple(args.extensions),
        ),
    )


def _resolve_signer(cert_type: CertificateType, issuer: CertKey | None) -> Result[_Signer]:
    """Root CAs sign themselves; every other type needs a complete caller-supplied issuer."""
    if cert_type is CertificateType.ROOT_CA:
        return Result.success(_Signer(issuer=None))
    if issuer is None or issuer.cert is None:
        return ResultFailures.validation_error("issuer certificate is required")
    if issuer.key is None:
        return ResultFailures.validation_error("issuer key is required")
    return Result.success(_Signer(issuer=issuer))


def _prepare(cert_type: CertificateType, args: CertificateArgs) -> Result[_Request]:
    return (
        validate_subject(args.subject, cert_type)
        .with_context("invalid subject")
        .flat_map(lambda _: _validate_identity(cert_type, args))
        .flat_map(
            lambda _: Result.combine3(
                _build_template(cert_type, args),
                resolve_key_size(args.key_size).with_context("unable to generate key"),
                _resolve_signer(cert_type, args.issuer),
                lambda template, key_size, signer: _Request(cert_type, template, key_size, signer),
            )
        )
    )


# ─────────────────────── Key generation & signing ───────────────────────


def _generate_key(key_size: int) -> Result[rsa.RSAPrivateKey]:
    return Result.from_computation(
        lambda: rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_size),
        ErrorCode.TECHNICAL_ERROR,
        "unable to generate key",
    )


def _authority_key_identifier(issuer: CertKey) -> x509.AuthorityKeyIdentifier:
    try:
        ski = issuer.cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)
        return x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ski.value)
    except x509.ExtensionNotFound:
        return x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer.key.public_key())


def _extensions(
    template: _Template,
    key: rsa.RSAPrivateKey,
    issuer: CertKey | None,
) -> list[tuple[x509.ExtensionType, bool]]:
    """Generated extensions, with caller-supplied ones replacing any of the same OID."""
    profile = template.profile
    aki = (
        x509.AuthorityKeyIdentifier.from_issuer_public_key(key.public_key())
        if issuer is None
        else _authority_key_identifier(issuer)
    )
    generated: list[tuple[x509.ExtensionType, bool]] = [
        (x509.BasicConstraints(ca=profile.is_ca, path_length=None), True),
        (profile.key_usage, True),
        (x509.SubjectKeyIdentifier.from_public_key(key.public_key()), False),
        (aki, False),
    ]
    if profile.extended_key_usage:
        generated.append((x509.ExtendedKeyUsage(list(profile.extended_key_usage)), False))
    if template.san is not None:
        generated.append((template.san, False))

    overridden = {ext.oid for ext in template.extensions}
    result = [(value, critical) for value, critical in generated if value.oid not in overridden]
    result.extend((ext.value, ext.critical) for ext in template.extensions)
    return result


def _build_certificate(request: _Request, key: rsa.RSAPrivateKey) -> bytes:
    template = request.template
    issuer = request.signer.issuer
    issuer_name = template.subject if issuer is None else issuer.cert.subject
    signing_key = key if issuer is None else issuer.key

    builder = (
        x509.CertificateBuilder()
        .serial_number(template.serial)
        .subject_name(template.subject)
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .not_valid_before(template.not_before)
        .not_valid_after(template.not_after)
    )
    for value, critical in _extensions(template, key, issuer):
        builder = builder.add_extension(value, critical=critical)

    return builder.sign(signing_key, hashes.SHA256()).public_bytes(Encoding.DER)


def _sign(request: _Request, key: rsa.RSAPrivateKey) -> Result[CertKey]:
    return (
        Result.from_computation(
            lambda: _build_certificate(request, key),
            ErrorCode.TECHNICAL_ERROR,
            "unable to create certificate",
        )
        .flat_map(
            lambda der: Result.from_computation(
                lambda: x509.load_der_x509_certificate(der),
                ErrorCode.DECODE_ERROR,
                "unable to parse certificate",
            )
        )
        .map(lambda cert: CertKey(cert=cert, key=key))
    )


def _issue(request: _Request) -> Result[CertKey]:
    return _generate_key(request.key_size).flat_map(lambda key: _sign(request, key))


# ─────────────────────── Public API ───────────────────────


def _log_generated(cert_type: CertificateType, cert_key: CertKey) -> None:
    cert = cert_key.cert
    log.info(
        "certificate.generated",
        type=cert_type.value,
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        serial=hex(cert.serial_number),
        not_after=cert.not_valid_after_utc.isoformat(),
    )


def _log_failed(cert_type: CertificateType, error: FailureDescription) -> None:
    log.warning(
        "certificate.generation_failed",
        type=cert_type.value,
        code=error.code.value,
        error=error.message,
    )


def generate_certificate(cert_type: CertificateType, args: CertificateArgs) -> Result[CertKey]:
    """
    Generate a certificate and its RSA private key.

    Root CAs are self-signed; intermediate CA, server and client
    certificates are signed by `args.issuer`. Returns the new CertKey, or a
    failure (VALIDATION_ERROR for bad requests, TECHNICAL_ERROR for backend
    failures) with no partial state.
    """
    return (
        _prepare(cert_type, args)
        .flat_map(_issue)
        .peek(lambda cert_key: _log_generated(cert_type, cert_key))
        .peek_failure(lambda error: _log_failed(cert_type, error))
    )


async def generate_certificate_async(
    cert_type: CertificateType,
    args: CertificateArgs,
) -> Result[CertKey]:
    """
    Run generate_certificate in a worker thread.

    RSA key generation is CPU-bound and cannot be interrupted; cancelling the
    awaiting task abandons the result but not the computation.
    """
    return await asyncio.to_thread(generate_certificate, cert_type, args)


# ─────────────────────── Helpers ───────────────────────


def generate_basic_ca(
    common_name: str,
    organization: str,
    country: str,
    duration: timedelta,
) -> Result[CertKey]:
    """Create a self-signed root CA with basic settings."""
    return generate_certificate(
        CertificateType.ROOT_CA,
        CertificateArgs(
            subject=Subject(common_name=common_name, organization=(organization,), country=(country,)),
            duration=duration,
        ),
    )


def generate_basic_intermediate_ca(
    common_name: str,
    organization: str,
    country: str,
    issuer: CertKey,
    duration: timedelta,
) -> Result[CertKey]:
    """Create an intermediate CA signed by `issuer`."""
    return generate_certificate(
        CertificateType.INTERMEDIATE_CA,
        CertificateArgs(
            subject=Subject(common_name=common_name, organization=(organization,), country=(country,)),
            issuer=issuer,
            duration=duration,
        ),
    )


def generate_basic_server_cert(
    common_name: str,
    dns_names: Sequence[str],
    issuer: CertKey,
    duration: timedelta,
) -> Result[CertKey]:
    """Create a server certificate for `dns_names` signed by `issuer`."""
    return generate_certificate(
        CertificateType.SERVER,
        CertificateArgs(
            subject=Subject(common_name=common_name),
            dns_names=tuple(dns_names),
            issuer=issuer,
            duration=duration,
        ),
    )


def generate_basic_client_cert(
    common_name: str,
    issuer: CertKey,
    duration: timedelta,
) -> Result[CertKey]:
    """Create a client certificate signed by `issuer`."""
    return generate_certificate(
        CertificateType.CLIENT,
        CertificateArgs(
            subject=Subject(common_name=common_name),
            issuer=issuer,
            duration=duration,
        ),
    )


def hash_public_key(key: rsa.RSAPublicKey) -> Result[bytes]:
    """SHA-1 digest of the key's SubjectPublicKeyInfo DER encoding."""

    def digest() -> bytes:
        spki = key.public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)
        h = hashes.Hash(hashes.SHA1())
        h.update(spki)
        return h.finalize()

    return Result.from_computation(digest, ErrorCode.TECHNICAL_ERROR, "unable to hash key")
