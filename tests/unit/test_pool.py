"""
Unit tests for CertPool — de-duplication and issuer lookup.
"""

from __future__ import annotations

from certlib.domain.models import CertKey
from certlib.domain.pool import CertPool, create_cert_pool
from tests.conftest import issue_root, issue_server


class TestCertPoolMembership:
    """Verify add / contains / len / iteration."""

    def test_empty_pool(self) -> None:
        """
        GIVEN a new pool
        WHEN inspected
        THEN it is empty.
        """
        pool = CertPool()
        assert len(pool) == 0
        assert list(pool) == []

    def test_add_deduplicates_by_der(self, root_ca: CertKey) -> None:
        """
        GIVEN a pool containing a certificate
        WHEN the same certificate is added again
        THEN add returns False and the pool still holds one entry.
        """
        pool = CertPool()
        assert pool.add(root_ca.cert) is True
        assert pool.add(root_ca.cert) is False
        assert len(pool) == 1

    def test_preserves_insertion_order(self, root_ca: CertKey, intermediate_ca: CertKey) -> None:
        """
        GIVEN two certificates added in order
        WHEN the pool is iterated
        THEN they come back in the same order.
        """
        pool = create_cert_pool(intermediate_ca.cert, root_ca.cert)
        assert list(pool) == [intermediate_ca.cert, root_ca.cert]
        assert pool.subjects() == [intermediate_ca.cert.subject, root_ca.cert.subject]

    def test_contains(self, root_ca: CertKey, intermediate_ca: CertKey) -> None:
        """
        GIVEN a pool with only the root
        WHEN membership is tested
        THEN the root is in it and the intermediate and non-certificates are not.
        """
        pool = create_cert_pool(root_ca.cert)
        assert root_ca.cert in pool
        assert intermediate_ca.cert not in pool
        assert "not a certificate" not in pool


class TestFindIssuers:
    """Verify issuer candidate lookup by name and key identifier."""

    def test_finds_issuer_by_subject(self, root_ca: CertKey, intermediate_ca: CertKey) -> None:
        """
        GIVEN a pool with the root CA
        WHEN find_issuers is called for the intermediate
        THEN the root is returned.
        """
        pool = create_cert_pool(root_ca.cert)
        assert pool.find_issuers(intermediate_ca.cert) == [root_ca.cert]

    def test_ignores_unrelated_subjects(self, root_ca: CertKey, server_cert: CertKey) -> None:
        """
        GIVEN a pool with only the root CA
        WHEN find_issuers is called for a server certificate issued by the intermediate
        THEN nothing is returned.
        """
        pool = create_cert_pool(root_ca.cert)
        assert pool.find_issuers(server_cert.cert) == []

    def test_key_identifier_disambiguates_same_subject(self) -> None:
        """
        GIVEN two CAs with the same subject but different keys
        WHEN find_issuers is called for a certificate issued by the first
        THEN only the first CA is returned.
        """
        first = issue_root(common_name="Twin CA")
        second = issue_root(common_name="Twin CA")
        leaf = issue_server(first)

        pool = create_cert_pool(second.cert, first.cert)

        assert pool.find_issuers(leaf.cert) == [first.cert]
