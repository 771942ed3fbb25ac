"""
Certificate verifier — validity window, hostname and chain of trust.

    verify_certificate(args)
      → certificate present
        → NotBefore <= now <= NotAfter            (NOT_YET_VALID / EXPIRED)
          → no unhandled critical extension       (CHAIN_ERROR)
            → leaf types need an intermediate     (CHAIN_POLICY_ERROR)
              → hostname against SAN              (CHAIN_ERROR)
                → ChainBuilder: leaf → … → root   (CHAIN_ERROR)
                  → Success(list of chains, leaf first)

Only certificates supplied in `roots` are trust anchors; the system trust
store is never consulted. Signature checks use cryptography's
verify_directly_issued_by. Everything else about the path is checked here:
CA flag, keyCertSign, path length, name constraints, critical extensions,
validity of each issuer and extended key usage.
"""

from __future__ import annotations

from datetime import UTC, datetime
from ipaddress import ip_address
from typing import TypeAlias, TypeVar

import structlog
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import ExtendedKeyUsageOID, ExtensionOID, ObjectIdentifier
from railway import ErrorCode, FailureDescription
from railway.result import Result
from railway.result_failures import ResultFailures

from certlib.domain.models import CertificateType, VerifyCertificateArgs
from certlib.domain.policy import required_extended_key_usage
from certlib.domain.pool import CertPool

log = structlog.get_logger()

MAX_CHAIN_DEPTH = 10

Chain: TypeAlias = list[x509.Certificate]

__all__ = [
    "HANDLED_CRITICAL_EXTENSIONS",
    "MAX_CHAIN_DEPTH",
    "ChainBuilder",
    "permits_names",
    "unhandled_critical_extension",
    "verify_certificate",
    "verify_hostname",
]


E = TypeVar("E", bound=x509.ExtensionType)


def _extension(cert: x509.Certificate, ext_type: type[E]) -> E | None:
    try:
        return cert.extensions.get_extension_for_class(ext_type).value
    except x509.ExtensionNotFound:
        return None


def _resolve_now(current_time: datetime | None) -> datetime:
    if current_time is None:
        return datetime.now(UTC)
    if current_time.tzinfo is None:
        return current_time.replace(tzinfo=UTC)
    return current_time


# ─────────────────────── Validity window ───────────────────────


def check_validity(cert: x509.Certificate, now: datetime) -> Result[x509.Certificate]:
    """NotBefore <= now <= NotAfter. Both bounds are inclusive."""
    if now < cert.not_valid_before_utc:
        return ResultFailures.not_yet_valid()
    if now > cert.not_valid_after_utc:
        return ResultFailures.expired()
    return Result.success(cert)


# ─────────────────────── Hostname ───────────────────────


def _normalise(name: str) -> str:
    return name.lower().rstrip(".")


def _match_dns(pattern: str, host: str) -> bool:
    pattern, host = _normalise(pattern), _normalise(host)
    if not pattern or not host:
        return False
    if pattern == host:
        return True
    if not pattern.startswith("*."):
        return False
    # Wildcard covers exactly one non-empty left-most label.
    label, _, rest = host.partition(".")
    return bool(label) and rest == pattern[2:]


def _parse_ip(name: str):
    try:
        return ip_address(name.removeprefix("[").removesuffix("]"))
    except ValueError:
        return None


def verify_hostname(cert: x509.Certificate, name: str) -> Result[x509.Certificate]:
    """
    Check that `cert` is valid for `name`.

    IP literals are compared with the SAN IP addresses; anything else with
    the SAN DNS names. The legacy CommonName is never used.
    """
    san = _extension(cert, x509.SubjectAlternativeName)
    dns_names = san.get_values_for_type(x509.DNSName) if san else []
    ip_sans = san.get_values_for_type(x509.IPAddress) if san else []

    ip = _parse_ip(name)
    if ip is not None:
        if ip in ip_sans:
            return Result.success(cert)
        valid_for = [str(candidate) for candidate in ip_sans]
    else:
        if any(_match_dns(pattern, name) for pattern in dns_names):
            return Result.success(cert)
        valid_for = list(dns_names)

    if not valid_for:
        return ResultFailures.chain_error(
            f"certificate is not valid for any names, but wanted to match {name}"
        )
    return ResultFailures.chain_error(f"certificate is valid for {', '.join(valid_for)}, not {name}")


# ─────────────────────── Extension processing ───────────────────────

# Critical extensions this verifier understands; any other critical
# extension makes the certificate unusable.
HANDLED_CRITICAL_EXTENSIONS = frozenset(
    {
        ExtensionOID.BASIC_CONSTRAINTS,
        ExtensionOID.KEY_USAGE,
        ExtensionOID.EXTENDED_KEY_USAGE,
        ExtensionOID.SUBJECT_ALTERNATIVE_NAME,
        ExtensionOID.NAME_CONSTRAINTS,
        ExtensionOID.SUBJECT_KEY_IDENTIFIER,
        ExtensionOID.AUTHORITY_KEY_IDENTIFIER,
    }
)


def unhandled_critical_extension(cert: x509.Certificate) -> ObjectIdentifier | None:
    """The first critical extension the verifier does not process, if any."""
    for extension in cert.extensions:
        if extension.critical and extension.oid not in HANDLED_CRITICAL_EXTENSIONS:
            return extension.oid
    return None


def _check_critical_extensions(cert: x509.Certificate) -> Result[x509.Certificate]:
    oid = unhandled_critical_extension(cert)
    if oid is not None:
        return ResultFailures.chain_error(
            f"unable to verify certificate: unhandled critical extension {oid.dotted_string}"
        )
    return Result.success(cert)


def _dns_in_subtree(name: str, base: str) -> bool:
    name, base = _normalise(name), _normalise(base)
    if not base:
        return True
    if base.startswith("."):
        return name.endswith(base)
    return name == base or name.endswith("." + base)


def _email_in_subtree(email: str, base: str) -> bool:
    email, base = email.lower(), base.lower()
    if "@" in base:
        return email == base
    domain = email.rpartition("@")[2]
    if base.startswith("."):
        return domain.endswith(base)
    return domain == base


def _in_subtree(name: x509.GeneralName, subtree: x509.GeneralName) -> bool:
    match name, subtree:
        case x509.DNSName(), x509.DNSName():
            return _dns_in_subtree(name.value, subtree.value)
        case x509.IPAddress(), x509.IPAddress():
            return name.value in subtree.value
        case x509.RFC822Name(), x509.RFC822Name():
            return _email_in_subtree(name.value, subtree.value)
    return False


def _constrained_names(cert: x509.Certificate) -> list[x509.GeneralName]:
    san = _extension(cert, x509.SubjectAlternativeName)
    if san is None:
        return []
    return [name for name in san if isinstance(name, (x509.DNSName, x509.IPAddress, x509.RFC822Name))]


def permits_names(constraints: x509.NameConstraints, cert: x509.Certificate) -> bool:
    """
    Check the SAN entries of `cert` against a CA's name constraints.

    A name inside any excluded subtree is rejected. When permitted subtrees
    of the name's type exist, the name must fall inside one of them.
    """
    excluded = constraints.excluded_subtrees or []
    permitted = constraints.permitted_subtrees or []
    for name in _constrained_names(cert):
        if any(_in_subtree(name, subtree) for subtree in excluded):
            return False
        same_type = [subtree for subtree in permitted if type(subtree) is type(name)]
        if same_type and not any(_in_subtree(name, subtree) for subtree in same_type):
            return False
    return True


# ─────────────────────── Path building ───────────────────────


def _allows_usage(cert: x509.Certificate, usage: ObjectIdentifier | None) -> bool:
    if usage is None:
        return True
    eku = _extension(cert, x509.ExtendedKeyUsage)
    if eku is None:
        return True
    return usage in eku or ExtendedKeyUsageOID.ANY_EXTENDED_KEY_USAGE in eku


class ChainBuilder:
    """
    Depth-first search for every path from a leaf to a trusted root.

    Roots end a chain; intermediates are only ever stepping stones. A
    candidate issuer is accepted when it is currently valid and is a CA
    allowed to sign certificates. Its path length and name constraints must
    hold for the chain below it, it must carry no unhandled critical
    extension, and its key must verify the child's signature.
    """

    def __init__(
        self,
        roots: CertPool,
        intermediates: CertPool,
        now: datetime,
        max_depth: int = MAX_CHAIN_DEPTH,
    ) -> None:
        self._roots = roots
        self._intermediates = intermediates
        self._now = now
        self._max_depth = max_depth

    def build(self, leaf: x509.Certificate) -> list[Chain]:
        """All chains from `leaf` to a root, leaf first. Empty when none exist."""
        if unhandled_critical_extension(leaf) is not None:
            return []
        if leaf in self._roots:
            return [[leaf]]
        chains: list[Chain] = []
        self._extend([leaf], chains)
        return chains

    def _extend(self, chain: Chain, chains: list[Chain]) -> None:
        current = chain[-1]
        for candidate in self._roots.find_issuers(current):
            if self._can_issue(candidate, current, chain):
                chains.append([*chain, candidate])

        if len(chain) >= self._max_depth:
            return

        seen = {cert.public_bytes(Encoding.DER) for cert in chain}
        for candidate in self._intermediates.find_issuers(current):
            if candidate.public_bytes(Encoding.DER) in seen:
                continue
            if self._can_issue(candidate, current, chain):
                self._extend([*chain, candidate], chains)

    def _can_issue(self, issuer: x509.Certificate, child: x509.Certificate, chain: Chain) -> bool:
        if not (issuer.not_valid_before_utc <= self._now <= issuer.not_valid_after_utc):
            return False

        constraints = _extension(issuer, x509.BasicConstraints)
        if constraints is None or not constraints.ca:
            return False
        # CA certificates already below this issuer, leaf excluded.
        if constraints.path_length is not None and len(chain) - 1 > constraints.path_length:
            return False

        key_usage = _extension(issuer, x509.KeyUsage)
        if key_usage is not None and not key_usage.key_cert_sign:
            return False

        if unhandled_critical_extension(issuer) is not None:
            return False

        name_constraints = _extension(issuer, x509.NameConstraints)
        if name_constraints is not None and not all(permits_names(name_constraints, cert) for cert in chain):
            return False

        try:
            child.verify_directly_issued_by(issuer)
        except (ValueError, TypeError, InvalidSignature):
            return False
        return True


def _select_chains(chains: list[Chain], usage: ObjectIdentifier | None) -> Result[list[Chain]]:
    if not chains:
        return ResultFailures.chain_error(
            "unable to verify certificate: certificate signed by unknown authority"
        )
    allowed = [chain for chain in chains if all(_allows_usage(cert, usage) for cert in chain)]
    if not allowed:
        return ResultFailures.chain_error(
            "unable to verify certificate: certificate specifies an incompatible key usage"
        )
    return Result.success(allowed)


# ─────────────────────── Public API ───────────────────────


def _check_intermediates(args: VerifyCertificateArgs, intermediates: CertPool) -> Result[CertPool]:
    if args.type.is_leaf and not len(intermediates):
        return ResultFailures.chain_policy_error(
            "client/server certificates must be signed by an intermediate CA"
        )
    return Result.success(intermediates)


def _check_hostname(cert: x509.Certificate, dns_name: str) -> Result[x509.Certificate]:
    if not dns_name:
        return Result.success(cert)
    return verify_hostname(cert, dns_name).with_context("unable to verify certificate")


def _verify(cert: x509.Certificate, args: VerifyCertificateArgs) -> Result[list[Chain]]:
    now = _resolve_now(args.current_time)
    roots = CertPool(args.roots)
    intermediates = CertPool(args.intermediates)
    usage = required_extended_key_usage(args.type)

    return (
        check_validity(cert, now)
        .flat_map(_check_critical_extensions)
        .flat_map(lambda _: _check_intermediates(args, intermediates))
        .flat_map(lambda _: _check_hostname(cert, args.dns_name))
        .map(lambda leaf: ChainBuilder(roots, intermediates, now).build(leaf))
        .flat_map(lambda chains: _select_chains(chains, usage))
        .ensure(lambda chains: len(chains) > 0, ErrorCode.CHAIN_ERROR, "no certificate chain found")
    )


def _log_verified(cert_type: CertificateType, cert: x509.Certificate, chains: list[Chain]) -> None:
    log.info(
        "certificate.verified",
        type=cert_type.value,
        subject=cert.subject.rfc4514_string(),
        chains=len(chains),
        chain_length=len(chains[0]),
    )


def _log_failed(cert_type: CertificateType, cert: x509.Certificate | None, error: FailureDescription) -> None:
    log.warning(
        "certificate.verification_failed",
        type=cert_type.value,
        subject=cert.subject.rfc4514_string() if cert is not None else None,
        code=error.code.value,
        error=error.message,
    )


def verify_certificate(args: VerifyCertificateArgs) -> Result[list[Chain]]:
    """
    Verify a certificate against the supplied roots and intermediates.

    Returns the verified chains, each running from `args.cert` to a root.
    Client and server certificates must chain through at least one
    intermediate; a CA certificate that is itself in `roots` verifies as a
    one-element chain.
    """
    return (
        Result.from_optional(args.cert, "no certificate provided")
        .flat_map(lambda cert: _verify(cert, args))
        .peek(lambda chains: _log_verified(args.type, args.cert, chains))
        .peek_failure(lambda error: _log_failed(args.type, args.cert, error))
    )
