"""
Certificate pool — an ordered, de-duplicated set of trusted or candidate certificates.

The verifier keeps one pool of roots (trust anchors) and one of
intermediates (path candidates). Membership is by DER encoding, so the same
certificate added twice occupies a single slot.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding


def _subject_key_id(cert: x509.Certificate) -> bytes | None:
    try:
        return cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value.digest
    except x509.ExtensionNotFound:
        return None


def _authority_key_id(cert: x509.Certificate) -> bytes | None:
    try:
        return cert.extensions.get_extension_for_class(x509.AuthorityKeyIdentifier).value.key_identifier
    except x509.ExtensionNotFound:
        return None


class CertPool:
    """A set of certificates indexed for issuer lookup."""

    def __init__(self, certs: Iterable[x509.Certificate] = ()) -> None:
        self._certs: list[x509.Certificate] = []
        self._seen: set[bytes] = set()
        self.extend(certs)

    def add(self, cert: x509.Certificate) -> bool:
        """Add a certificate. Returns False if it was already present."""
        der = cert.public_bytes(Encoding.DER)
        if der in self._seen:
            return False
        self._seen.add(der)
        self._certs.append(cert)
        return True

    def extend(self, certs: Iterable[x509.Certificate]) -> None:
        for cert in certs:
            self.add(cert)

    def find_issuers(self, cert: x509.Certificate) -> list[x509.Certificate]:
        """
        Return the pool members that may have issued `cert`.

        A candidate's subject must equal the certificate's issuer name. When
        both the candidate's SKI and the certificate's AKI are present they
        must match too. Signatures are not checked here.
        """
        aki = _authority_key_id(cert)
        candidates = []
        for candidate in self._certs:
            if candidate.subject != cert.issuer:
                continue
            ski = _subject_key_id(candidate)
            if aki is not None and ski is not None and aki != ski:
                continue
            candidates.append(candidate)
        return candidates

    def subjects(self) -> list[x509.Name]:
        return [cert.subject for cert in self._certs]

    def __contains__(self, cert: object) -> bool:
        if not isinstance(cert, x509.Certificate):
            return False
        return cert.public_bytes(Encoding.DER) in self._seen

    def __iter__(self) -> Iterator[x509.Certificate]:
        return iter(self._certs)

    def __len__(self) -> int:
        return len(self._certs)

    def __repr__(self) -> str:
        return f"CertPool({len(self._certs)} certificates)"


def create_cert_pool(*certs: x509.Certificate) -> CertPool:
    """Create a new certificate pool from the given certificates."""
    return CertPool(certs)
