"""
Domain models — immutable requests and results of the certificate engine.

These are value objects with no behavior beyond small conversions.
They describe what to issue (CertificateArgs), what to check
(VerifyCertificateArgs), what was produced (CertKey, PkiBundle) and what
the TLS builder needs (the *TLSConfig* request objects).

Issuance and verification requests are plain frozen dataclasses: validation
is explicit, in certlib.domain.policy, and never driven by field metadata.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, unique
from ipaddress import IPv4Address, IPv6Address
from pathlib import Path
from typing import TypeAlias

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID

IPAddress: TypeAlias = IPv4Address | IPv6Address


@unique
class CertificateType(Enum):
    """The four certificate variants. Drives key usage, EKU, CA flag and subject rules."""

    ROOT_CA = "root_ca"
    INTERMEDIATE_CA = "intermediate_ca"
    SERVER = "server"
    CLIENT = "client"

    @property
    def is_ca(self) -> bool:
        return self in (CertificateType.ROOT_CA, CertificateType.INTERMEDIATE_CA)

    @property
    def is_leaf(self) -> bool:
        return not self.is_ca


@dataclass(frozen=True, slots=True)
class Subject:
    """
    Distinguished name of a certificate subject.

    Multi-valued attributes are tuples, in the order they are written to the
    certificate. Empty attributes are omitted from the encoded name.
    """

    common_name: str = ""
    organization: tuple[str, ...] = ()
    organizational_unit: tuple[str, ...] = ()
    country: tuple[str, ...] = ()
    province: tuple[str, ...] = ()
    locality: tuple[str, ...] = ()
    street_address: tuple[str, ...] = ()
    postal_code: tuple[str, ...] = ()
    serial_number: str = ""

    def to_x509_name(self) -> x509.Name:
        """Build the x509.Name (RFC 4514 order: C, ST, L, STREET, POSTALCODE, O, OU, CN, SERIALNUMBER)."""
        attributes: list[x509.NameAttribute] = []
        for oid, values in (
            (NameOID.COUNTRY_NAME, self.country),
            (NameOID.STATE_OR_PROVINCE_NAME, self.province),
            (NameOID.LOCALITY_NAME, self.locality),
            (NameOID.STREET_ADDRESS, self.street_address),
            (NameOID.POSTAL_CODE, self.postal_code),
            (NameOID.ORGANIZATION_NAME, self.organization),
            (NameOID.ORGANIZATIONAL_UNIT_NAME, self.organizational_unit),
        ):
            attributes.extend(x509.NameAttribute(oid, value) for value in values)
        if self.common_name:
            attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, self.common_name))
        if self.serial_number:
            attributes.append(x509.NameAttribute(NameOID.SERIAL_NUMBER, self.serial_number))
        return x509.Name(attributes)


@dataclass(frozen=True, slots=True)
class TLSCertificate:
    """
    Transport-layer certificate record: DER chain (leaf first) plus private key.

    This is what a TLS stack presents to its peer.
    """

    certificate: tuple[bytes, ...] = field(repr=False)
    private_key: rsa.RSAPrivateKey = field(repr=False)
    leaf: x509.Certificate | None = None


@dataclass(frozen=True, slots=True)
class CertKey:
    """
    An X.509 certificate paired with its RSA private key.

    Created together by the generator; the certificate's public key is the
    public half of `key`.
    """

    cert: x509.Certificate
    key: rsa.RSAPrivateKey = field(repr=False)

    def tls_certificate(self) -> TLSCertificate:
        return TLSCertificate(
            certificate=(self.cert.public_bytes(Encoding.DER),),
            private_key=self.key,
            leaf=self.cert,
        )

    def public_key(self) -> rsa.RSAPublicKey:
        return self.key.public_key()


@dataclass(frozen=True, slots=True)
class CertificateArgs:
    """
    Issuance request for generate_certificate().

    `duration` has no default: a request without one is rejected.
    `issuer` is required for every type except ROOT_CA, which signs itself.
    `key_size=0` selects the default RSA size (2048 bits).
    """

    subject: Subject
    duration: timedelta | None = None
    serial: int | None = None
    extensions: tuple[x509.Extension, ...] = ()
    issuer: CertKey | None = None
    not_before: datetime | None = None
    email_addresses: tuple[str, ...] = ()
    dns_names: tuple[str, ...] = ()
    ip_addresses: tuple[IPAddress | str | None, ...] = ()
    key_size: int = 0


@dataclass(frozen=True, slots=True)
class VerifyCertificateArgs:
    """
    Verification request for verify_certificate().

    Only certificates supplied in `roots` are trusted; `intermediates` may be
    used to build the path but never terminate it.
    """

    type: CertificateType
    cert: x509.Certificate | None
    dns_name: str = ""
    intermediates: tuple[x509.Certificate, ...] = ()
    roots: tuple[x509.Certificate, ...] = ()
    current_time: datetime | None = None


@dataclass(frozen=True, slots=True)
class ClientTLSConfigBytes:
    """Client TLS material as PEM bytes. Every field is required."""

    cert: bytes = field(repr=False)
    key: bytes = field(repr=False)
    ca: bytes = field(repr=False)
    server_name: str


@dataclass(frozen=True, slots=True)
class ClientTLSConfigFiles:
    """Client TLS material as PEM file paths. Every field is required."""

    cert_file: str | Path
    key_file: str | Path
    ca_file: str | Path
    server_name: str


@dataclass(frozen=True, slots=True)
class ServerTLSConfigBytes:
    """Server TLS material as PEM bytes; `ca` verifies client certificates."""

    cert: bytes = field(repr=False)
    key: bytes = field(repr=False)
    ca: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class ServerTLSConfigFiles:
    """Server TLS material as PEM file paths; `ca_file` verifies client certificates."""

    cert_file: str | Path
    key_file: str | Path
    ca_file: str | Path


@dataclass(frozen=True, slots=True)
class PkiBundle:
    """A complete development hierarchy: root → intermediate → server and client leaves."""

    root: CertKey
    intermediate: CertKey
    server: CertKey
    client: CertKey

    @property
    def ca_chain(self) -> tuple[x509.Certificate, ...]:
        """Intermediate then root, the order peers expect in a CA bundle."""
        return (self.intermediate.cert, self.root.cert)
