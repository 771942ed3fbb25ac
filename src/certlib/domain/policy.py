"""
Issuance policy — the per-variant rules of the certificate engine.

Pure functions, no I/O, no key material. Every rule that differs between
root CA, intermediate CA, server and client certificates lives here so that
the generator and the verifier cannot drift apart:

  validate_subject           → CommonName always; O and C for CAs; 2-letter C
  validate_server_identity   → at least one SAN; each DNS name / IP valid
  usage_profile              → KeyUsage bits, EKU list, CA flag
  required_extended_key_usage→ EKU the verifier demands of a leaf
  resolve_key_size           → default 2048, floor 2048
"""

from __future__ import annotations

from dataclasses import dataclass
from ipaddress import ip_address

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, ObjectIdentifier
from railway import ErrorCode
from railway.result import Result
from railway.result_failures import ResultFailures

from certlib.domain.models import CertificateArgs, CertificateType, IPAddress, Subject

MIN_KEY_SIZE = 2048
DEFAULT_KEY_SIZE = 2048
MAX_DNS_NAME_LENGTH = 255


@dataclass(frozen=True, slots=True)
class UsageProfile:
    """Key usage bitmask, extended key usages and CA flag for one certificate variant."""

    key_usage: x509.KeyUsage
    extended_key_usage: tuple[ObjectIdentifier, ...]
    is_ca: bool


def _key_usage(
    *,
    digital_signature: bool = False,
    key_encipherment: bool = False,
    key_cert_sign: bool = False,
    crl_sign: bool = False,
) -> x509.KeyUsage:
    return x509.KeyUsage(
        digital_signature=digital_signature,
        content_commitment=False,
        key_encipherment=key_encipherment,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=key_cert_sign,
        crl_sign=crl_sign,
        encipher_only=False,
        decipher_only=False,
    )


_CA_PROFILE = UsageProfile(
    key_usage=_key_usage(digital_signature=True, key_cert_sign=True, crl_sign=True),
    extended_key_usage=(),
    is_ca=True,
)

_PROFILES: dict[CertificateType, UsageProfile] = {
    CertificateType.ROOT_CA: _CA_PROFILE,
    CertificateType.INTERMEDIATE_CA: _CA_PROFILE,
    CertificateType.SERVER: UsageProfile(
        key_usage=_key_usage(digital_signature=True, key_encipherment=True),
        extended_key_usage=(ExtendedKeyUsageOID.SERVER_AUTH,),
        is_ca=False,
    ),
    CertificateType.CLIENT: UsageProfile(
        key_usage=_key_usage(digital_signature=True, key_encipherment=True),
        extended_key_usage=(ExtendedKeyUsageOID.CLIENT_AUTH,),
        is_ca=False,
    ),
}


def usage_profile(cert_type: CertificateType) -> UsageProfile:
    return _PROFILES[cert_type]


def required_extended_key_usage(cert_type: CertificateType) -> ObjectIdentifier | None:
    """EKU a certificate of this type must allow when verified; None for CA types."""
    match cert_type:
        case CertificateType.SERVER:
            return ExtendedKeyUsageOID.SERVER_AUTH
        case CertificateType.CLIENT:
            return ExtendedKeyUsageOID.CLIENT_AUTH
        case _:
            return None


# ─────────────────────── Subject ───────────────────────


def validate_subject(subject: Subject, cert_type: CertificateType) -> Result[Subject]:
    """
    Check the subject fields required for the given certificate type.

    CommonName is always required. CA certificates also need Organization
    and Country. Any country given, for any type, must be an ISO 3166-1
    alpha-2 code.
    """
    if not subject.common_name:
        return ResultFailures.validation_error("CommonName is required")

    if cert_type.is_ca:
        if not subject.organization:
            return ResultFailures.validation_error("Organization is required for CA certificates")
        if not subject.country:
            return ResultFailures.validation_error("Country is required for CA certificates")

    for country in subject.country:
        if len(country) != 2:
            return ResultFailures.validation_error(
                "Country code must be exactly 2 characters (ISO 3166-1 alpha-2)"
            )

    return Result.success(subject)


# ─────────────────────── Server identity ───────────────────────


def parse_ip_address(value: IPAddress | str | None) -> Result[IPAddress]:
    """Normalise an IP SAN entry. Strings are parsed; None is rejected."""
    if value is None:
        return ResultFailures.validation_error("missing IP address is not allowed")
    if isinstance(value, str):
        return Result.from_computation(
            lambda: ip_address(value),
            ErrorCode.VALIDATION_ERROR,
            f"invalid IP address: {value!r}",
        )
    return Result.success(value)


def _validate_dns_name(name: str) -> Result[str]:
    if not name:
        return ResultFailures.validation_error("empty DNS name is not allowed")
    if len(name) > MAX_DNS_NAME_LENGTH:
        return ResultFailures.validation_error(
            f"DNS name exceeds maximum length of {MAX_DNS_NAME_LENGTH} characters"
        )
    return Result.success(name)


def _validate_ip(value: IPAddress | str | None) -> Result[IPAddress]:
    return parse_ip_address(value).ensure(
        lambda ip: not ip.is_unspecified,
        ErrorCode.VALIDATION_ERROR,
        "unspecified IP address is not allowed",
    )


def validate_server_identity(args: CertificateArgs) -> Result[CertificateArgs]:
    """
    Check the SAN fields of a server certificate request.

    At least one DNS name or IP address is required; each DNS name must be
    non-empty and at most 255 characters; each IP must be present and not
    the unspecified address (0.0.0.0 or ::).
    """
    if not args.dns_names and not args.ip_addresses:
        return ResultFailures.validation_error(
            "at least one DNS name or IP address is required for server certificates"
        )

    checks = [_validate_dns_name(name) for name in args.dns_names]
    checks += [_validate_ip(ip) for ip in args.ip_addresses]
    return Result.all_of(checks).map(lambda _: args)


# ─────────────────────── Key size ───────────────────────


def resolve_key_size(key_size: int) -> Result[int]:
    """Zero selects DEFAULT_KEY_SIZE; anything below MIN_KEY_SIZE is rejected."""
    if key_size == 0:
        return Result.success(DEFAULT_KEY_SIZE)
    if key_size < MIN_KEY_SIZE:
        return ResultFailures.validation_error(f"key size must be at least {MIN_KEY_SIZE} bits")
    return Result.success(key_size)
