"""
TLS config builder — turns PEM material into client and server TLS configurations.

Adapter layer — wraps the standard library ssl module:
  - TLSConfig is an immutable description (certificates, trust pools,
    client-auth policy, minimum version, server name)
  - TLSConfig.ssl_context() materialises it as an ssl.SSLContext

Client configs trust exactly the supplied CA bundle and pin the server
name. Server configs always require and verify a client certificate
(mutual TLS). Both enforce TLS 1.2 or later.

Every builder validates its input and returns Result[TLSConfig]; a
partially populated config is never returned.
"""

from __future__ import annotations

import os
import ssl
import tempfile
from dataclasses import dataclass, field
from enum import Enum, unique
from pathlib import Path, PurePath
from typing import TypeVar

import structlog
from cryptography.hazmat.primitives import serialization
from railway import ErrorCode
from railway.result import Result
from railway.result_failures import ResultFailures

from certlib.adapters.pem_codec import (
    decode_certificates_from_pem,
    decode_private_key_from_pem,
    read_pem_file,
)
from certlib.domain.models import (
    CertKey,
    ClientTLSConfigBytes,
    ClientTLSConfigFiles,
    ServerTLSConfigBytes,
    ServerTLSConfigFiles,
    TLSCertificate,
)
from certlib.domain.pool import CertPool

log = structlog.get_logger()

MIN_TLS_VERSION = ssl.TLSVersion.TLSv1_2


@unique
class TLSRole(Enum):
    CLIENT = "client"
    SERVER = "server"


@unique
class ClientAuth(Enum):
    """Server-side policy for client certificates."""

    NONE = "none"
    REQUIRE_AND_VERIFY = "require_and_verify"


@dataclass(frozen=True, slots=True)
class TLSConfig:
    """
    Immutable TLS configuration for one side of a connection.

    `root_cas` verifies the peer when acting as a client; `client_cas`
    verifies client certificates when acting as a server.
    """

    role: TLSRole
    certificates: tuple[TLSCertificate, ...] = field(repr=False)
    root_cas: CertPool = field(default_factory=CertPool)
    client_cas: CertPool = field(default_factory=CertPool)
    client_auth: ClientAuth = ClientAuth.NONE
    min_version: ssl.TLSVersion = MIN_TLS_VERSION
    server_name: str = ""

    def ssl_context(self) -> Result[ssl.SSLContext]:
        """Build an ssl.SSLContext from this configuration."""
        return Result.from_computation(
            self._build_context,
            ErrorCode.TECHNICAL_ERROR,
            "unable to build SSL context",
        )

    def _build_context(self) -> ssl.SSLContext:
        if self.role is TLSRole.CLIENT:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            context.check_hostname = True
            context.verify_mode = ssl.CERT_REQUIRED
            if len(self.root_cas):
                context.load_verify_locations(cadata=_pool_to_pem(self.root_cas))
            else:
                context.load_default_certs(ssl.Purpose.SERVER_AUTH)
        else:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
            if self.client_auth is ClientAuth.REQUIRE_AND_VERIFY:
                context.verify_mode = ssl.CERT_REQUIRED
                context.load_verify_locations(cadata=_pool_to_pem(self.client_cas))

        context.minimum_version = self.min_version
        for certificate in self.certificates:
            _load_cert_chain(context, certificate)
        return context


def _pool_to_pem(pool: CertPool) -> str:
    return "".join(
        cert.public_bytes(serialization.Encoding.PEM).decode("ascii") for cert in pool
    )


def _load_cert_chain(context: ssl.SSLContext, certificate: TLSCertificate) -> None:
    """ssl only loads key pairs from files: stage them in a private temporary directory."""
    chain = "".join(ssl.DER_cert_to_PEM_cert(der) for der in certificate.certificate)
    key = certificate.private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    with tempfile.TemporaryDirectory(prefix="certlib-") as tmp:
        cert_path = Path(tmp) / "cert.pem"
        key_path = Path(tmp) / "key.pem"
        cert_path.write_text(chain, encoding="ascii")
        fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "wb") as fh:
            fh.write(key)
        context.load_cert_chain(certfile=cert_path, keyfile=key_path)


# ─────────────────────── Key pairs & pools ───────────────────────


def _spki(public_key) -> bytes:
    return public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def load_x509_key_pair(cert_pem: bytes, key_pem: bytes) -> Result[TLSCertificate]:
    """
    Parse a PEM certificate chain and its private key into a TLSCertificate.

    Every CERTIFICATE block in `cert_pem` becomes part of the chain, leaf
    first. The private key must belong to the leaf.
    """

    def pair(certs: list, key) -> Result[TLSCertificate]:
        leaf = certs[0]
        if _spki(leaf.public_key()) != _spki(key.public_key()):
            return ResultFailures.validation_error("private key does not match public key")
        return Result.success(
            TLSCertificate(
                certificate=tuple(cert.public_bytes(serialization.Encoding.DER) for cert in certs),
                private_key=key,
                leaf=leaf,
            )
        )

    return decode_certificates_from_pem(cert_pem).flat_map(
        lambda certs: decode_private_key_from_pem(key_pem).flat_map(lambda key: pair(certs, key))
    )


def _load_ca_pool(ca_pem: bytes) -> Result[CertPool]:
    return (
        decode_certificates_from_pem(ca_pem)
        .map(CertPool)
        .with_context("failed to add client CA's certificate")
    )


def _is_empty(value: object) -> bool:
    # Path("") normalises to Path("."), which is truthy.
    if isinstance(value, PurePath):
        return value == PurePath()
    return not value


T = TypeVar("T")


def _require_fields(request: T, *names: str) -> Result[T]:
    for name in names:
        if _is_empty(getattr(request, name)):
            return ResultFailures.validation_error(f"invalid input: {name} is required")
    return Result.success(request)


# ─────────────────────── Client ───────────────────────


def _client_config(server_name: str, cert: bytes, key: bytes, ca: bytes) -> Result[TLSConfig]:
    return (
        load_x509_key_pair(cert, key)
        .with_context("failed to load client certificate")
        .flat_map(
            lambda certificate: _load_ca_pool(ca).map(
                lambda roots: TLSConfig(
                    role=TLSRole.CLIENT,
                    certificates=(certificate,),
                    root_cas=roots,
                    server_name=server_name,
                )
            )
        )
        .peek(
            lambda config: log.info(
                "tls.client_config_built",
                server_name=config.server_name,
                roots=len(config.root_cas),
            )
        )
    )


def create_client_tls_config(request: ClientTLSConfigBytes) -> Result[TLSConfig]:
    """Client TLS configuration from PEM bytes: TLS >= 1.2, pinned server name, CA bundle as roots."""
    return _require_fields(request, "cert", "key", "ca", "server_name").flat_map(
        lambda r: _client_config(r.server_name, r.cert, r.key, r.ca)
    )


def load_client_tls_config(request: ClientTLSConfigFiles) -> Result[TLSConfig]:
    """Same as create_client_tls_config, reading the PEM material from files."""

    def load(r: ClientTLSConfigFiles) -> Result[TLSConfig]:
        return Result.combine3(
            read_pem_file(r.cert_file).with_context("failed to load client certificate"),
            read_pem_file(r.key_file).with_context("failed to load client key"),
            read_pem_file(r.ca_file).with_context("failed to load client CA certificate"),
            lambda cert, key, ca: ClientTLSConfigBytes(cert=cert, key=key, ca=ca, server_name=r.server_name),
        ).flat_map(create_client_tls_config)

    return _require_fields(request, "cert_file", "key_file", "ca_file", "server_name").flat_map(load)


# ─────────────────────── Server ───────────────────────


def _server_config(cert: bytes, key: bytes, ca: bytes) -> Result[TLSConfig]:
    return (
        load_x509_key_pair(cert, key)
        .with_context("failed to load server certificate")
        .flat_map(
            lambda certificate: _load_ca_pool(ca).map(
                lambda client_cas: TLSConfig(
                    role=TLSRole.SERVER,
                    certificates=(certificate,),
                    client_cas=client_cas,
                    client_auth=ClientAuth.REQUIRE_AND_VERIFY,
                )
            )
        )
        .peek(lambda config: log.info("tls.server_config_built", client_cas=len(config.client_cas)))
    )


def create_server_tls_config(request: ServerTLSConfigBytes) -> Result[TLSConfig]:
    """Server TLS configuration from PEM bytes. Clients must present a certificate signed by `ca`."""
    return _require_fields(request, "cert", "key", "ca").flat_map(
        lambda r: _server_config(r.cert, r.key, r.ca)
    )


def load_server_tls_config(request: ServerTLSConfigFiles) -> Result[TLSConfig]:
    def load(r: ServerTLSConfigFiles) -> Result[TLSConfig]:
        return Result.combine3(
            read_pem_file(r.cert_file).with_context("failed to load server certificate"),
            read_pem_file(r.key_file).with_context("failed to load server private key"),
            read_pem_file(r.ca_file).with_context("failed to load client CA certificate"),
            lambda cert, key, ca: ServerTLSConfigBytes(cert=cert, key=key, ca=ca),
        ).flat_map(create_server_tls_config)

    return _require_fields(request, "cert_file", "key_file", "ca_file").flat_map(load)


# ─────────────────────── Basic helper ───────────────────────


def create_tls_config(
    cert_key: CertKey,
    roots: CertPool,
    role: TLSRole = TLSRole.CLIENT,
) -> TLSConfig:
    """A minimal config presenting `cert_key` and trusting `roots`."""
    return TLSConfig(
        role=role,
        certificates=(cert_key.tls_certificate(),),
        root_cas=roots,
    )
