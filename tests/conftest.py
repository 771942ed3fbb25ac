"""
Shared test fixtures and helpers for the certlib test suite.

RSA key generation is the slowest thing the suite does, so one complete
hierarchy (root → intermediate → server/client) is issued per session and
shared. Tests that need a hierarchy of their own (foreign roots, expired
intermediates, path length constraints) issue it locally.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from cryptography import x509
from railway import ResultAssertions

from certlib.adapters.pem_codec import encode_certificate_to_pem, encode_private_key_to_pem
from certlib.domain.models import (
    CertificateArgs,
    CertificateType,
    CertKey,
    PkiBundle,
    Subject,
)
from certlib.generator import generate_certificate

CA_VALIDITY = timedelta(days=3650)
LEAF_VALIDITY = timedelta(days=365)


def issue_root(common_name: str = "Test Root CA", duration: timedelta = CA_VALIDITY) -> CertKey:
    return ResultAssertions.assert_success(
        generate_certificate(
            CertificateType.ROOT_CA,
            CertificateArgs(
                subject=Subject(common_name=common_name, organization=("certlib",), country=("US",)),
                duration=duration,
            ),
        )
    )


def issue_intermediate(
    issuer: CertKey,
    common_name: str = "Test Intermediate CA",
    duration: timedelta = CA_VALIDITY,
    extensions: tuple[x509.Extension, ...] = (),
) -> CertKey:
    return ResultAssertions.assert_success(
        generate_certificate(
            CertificateType.INTERMEDIATE_CA,
            CertificateArgs(
                subject=Subject(common_name=common_name, organization=("certlib",), country=("US",)),
                issuer=issuer,
                duration=duration,
                extensions=extensions,
            ),
        )
    )


def issue_server(
    issuer: CertKey,
    dns_names: tuple[str, ...] = ("localhost",),
    ip_addresses: tuple[str, ...] = ("127.0.0.1",),
    duration: timedelta = LEAF_VALIDITY,
    extensions: tuple[x509.Extension, ...] = (),
) -> CertKey:
    return ResultAssertions.assert_success(
        generate_certificate(
            CertificateType.SERVER,
            CertificateArgs(
                subject=Subject(common_name="Test Server"),
                dns_names=dns_names,
                ip_addresses=ip_addresses,
                issuer=issuer,
                duration=duration,
                extensions=extensions,
            ),
        )
    )


def issue_client(issuer: CertKey, duration: timedelta = LEAF_VALIDITY) -> CertKey:
    return ResultAssertions.assert_success(
        generate_certificate(
            CertificateType.CLIENT,
            CertificateArgs(
                subject=Subject(common_name="Test Client"),
                issuer=issuer,
                duration=duration,
            ),
        )
    )


def cert_pem(*certs: x509.Certificate) -> bytes:
    """Concatenated PEM encoding of `certs`, in order."""
    return b"".join(ResultAssertions.assert_success(encode_certificate_to_pem(c)) for c in certs)


def key_pem(cert_key: CertKey) -> bytes:
    return ResultAssertions.assert_success(encode_private_key_to_pem(cert_key.key))


@pytest.fixture(scope="session")
def root_ca() -> CertKey:
    return issue_root()


@pytest.fixture(scope="session")
def intermediate_ca(root_ca: CertKey) -> CertKey:
    return issue_intermediate(root_ca)


@pytest.fixture(scope="session")
def server_cert(intermediate_ca: CertKey) -> CertKey:
    return issue_server(intermediate_ca)


@pytest.fixture(scope="session")
def client_cert(intermediate_ca: CertKey) -> CertKey:
    return issue_client(intermediate_ca)


@pytest.fixture(scope="session")
def pki(root_ca: CertKey, intermediate_ca: CertKey, server_cert: CertKey, client_cert: CertKey) -> PkiBundle:
    return PkiBundle(root=root_ca, intermediate=intermediate_ca, server=server_cert, client=client_cert)


@pytest.fixture(scope="session")
def foreign_root_ca() -> CertKey:
    """A root CA unrelated to the shared hierarchy."""
    return issue_root(common_name="Foreign Root CA")
