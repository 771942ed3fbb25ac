"""
Bootstrap — issue, verify and persist a complete development PKI.

The bootstrap connects stages via flat_map, forming a railway:

  issue root CA
    → issue intermediate CA (issuer = root)
      → issue server certificate (issuer = intermediate)
        → issue client certificate (issuer = intermediate)
          → verify server and client chains
            → write PEM files

Each stage returns Result[T]. Failures short-circuit automatically
through the ROP railway — no try/except needed.
"""

from __future__ import annotations

from pathlib import Path

import structlog
from railway.result import Result

from certlib.adapters.pem_codec import (
    CERT_FILE_MODE,
    encode_certificate_to_pem,
    write_cert_key,
    write_pem_file,
)
from certlib.config import BootstrapSettings
from certlib.domain.models import (
    CertificateArgs,
    CertificateType,
    CertKey,
    PkiBundle,
    Subject,
    VerifyCertificateArgs,
)
from certlib.generator import generate_certificate
from certlib.verifier import verify_certificate

log = structlog.get_logger()

# File names shared with other certlib tooling.
PKI_FILES: dict[str, tuple[str, str]] = {
    "root": ("root_ca_cert.pem", "root_ca_key.pem"),
    "intermediate": ("int_ca_cert.pem", "int_ca_key.pem"),
    "server": ("server_cert.pem", "server_key.pem"),
    "client": ("client_cert.pem", "client_key.pem"),
}
CA_BUNDLE_FILE = "ca_bundle.pem"


def _ca_subject(settings: BootstrapSettings, common_name: str) -> Subject:
    return Subject(
        common_name=common_name,
        organization=(settings.organization,),
        country=(settings.country,),
    )


def _issue_root(settings: BootstrapSettings) -> Result[CertKey]:
    return generate_certificate(
        CertificateType.ROOT_CA,
        CertificateArgs(
            subject=_ca_subject(settings, settings.root_common_name),
            duration=settings.ca_validity,
            key_size=settings.key_size,
        ),
    )


def _issue_intermediate(settings: BootstrapSettings, root: CertKey) -> Result[CertKey]:
    return generate_certificate(
        CertificateType.INTERMEDIATE_CA,
        CertificateArgs(
            subject=_ca_subject(settings, settings.intermediate_common_name),
            issuer=root,
            duration=settings.ca_validity,
            key_size=settings.key_size,
        ),
    )


def _issue_server(settings: BootstrapSettings, intermediate: CertKey) -> Result[CertKey]:
    return generate_certificate(
        CertificateType.SERVER,
        CertificateArgs(
            subject=Subject(common_name=settings.server_common_name, organization=(settings.organization,)),
            dns_names=tuple(settings.server_dns_names),
            ip_addresses=tuple(settings.server_ip_addresses),
            issuer=intermediate,
            duration=settings.leaf_validity,
            key_size=settings.key_size,
        ),
    )


def _issue_client(settings: BootstrapSettings, intermediate: CertKey) -> Result[CertKey]:
    return generate_certificate(
        CertificateType.CLIENT,
        CertificateArgs(
            subject=Subject(common_name=settings.client_common_name, organization=(settings.organization,)),
            issuer=intermediate,
            duration=settings.leaf_validity,
            key_size=settings.key_size,
        ),
    )


def issue_pki(settings: BootstrapSettings) -> Result[PkiBundle]:
    """
    Issue root → intermediate → server and client certificates.

    Returns the four CertKeys as a PkiBundle, or the failure of the first
    issuance that failed. Nothing after a failed issuance is generated.
    """
    return _issue_root(settings).flat_map(
        lambda root: _issue_intermediate(settings, root).flat_map(
            lambda intermediate: _issue_server(settings, intermediate).flat_map(
                lambda server: _issue_client(settings, intermediate).map(
                    lambda client: PkiBundle(
                        root=root,
                        intermediate=intermediate,
                        server=server,
                        client=client,
                    )
                )
            )
        )
    )


def verify_pki(bundle: PkiBundle, dns_name: str = "") -> Result[PkiBundle]:
    """Verify both leaves through the intermediate to the root."""
    roots = (bundle.root.cert,)
    intermediates = (bundle.intermediate.cert,)
    server = verify_certificate(
        VerifyCertificateArgs(
            type=CertificateType.SERVER,
            cert=bundle.server.cert,
            dns_name=dns_name,
            intermediates=intermediates,
            roots=roots,
        )
    )
    client = server.flat_map(
        lambda _: verify_certificate(
            VerifyCertificateArgs(
                type=CertificateType.CLIENT,
                cert=bundle.client.cert,
                intermediates=intermediates,
                roots=roots,
            )
        )
    )
    return client.map(lambda _: bundle)


def _write_ca_bundle(bundle: PkiBundle, output_dir: Path) -> Result[Path]:
    return (
        Result.all_of([encode_certificate_to_pem(cert) for cert in bundle.ca_chain])
        .map(b"".join)
        .flat_map(lambda data: write_pem_file(output_dir / CA_BUNDLE_FILE, data, CERT_FILE_MODE))
    )


def write_pki(bundle: PkiBundle, output_dir: Path) -> Result[dict[str, Path]]:
    """
    Write every certificate (0644) and key (0600) under `output_dir`.

    Returns a mapping of logical name (root_cert, root_key, ..., ca_bundle)
    to the written path. Stops at the first file that cannot be written.
    """
    pairs = {
        "root": bundle.root,
        "intermediate": bundle.intermediate,
        "server": bundle.server,
        "client": bundle.client,
    }
    written: dict[str, Path] = {}
    for name, cert_key in pairs.items():
        cert_file, key_file = PKI_FILES[name]
        result = write_cert_key(cert_key, output_dir / cert_file, output_dir / key_file)
        if result.is_failure():
            return Result.failure_from(result.error())
        written[f"{name}_cert"], written[f"{name}_key"] = result.value()

    return _write_ca_bundle(bundle, output_dir).map(lambda path: {**written, "ca_bundle": path})


def _verification_name(settings: BootstrapSettings) -> str:
    if settings.server_dns_names:
        return settings.server_dns_names[0]
    if settings.server_ip_addresses:
        return settings.server_ip_addresses[0]
    return ""


def run_bootstrap(settings: BootstrapSettings) -> Result[dict[str, Path]]:
    """
    Execute the full bootstrap: issue, verify, write.

    Returns Result[dict[str, Path]] with the written files on success,
    or Result.failure with the error from the first failing stage.
    """
    return (
        issue_pki(settings)
        .flat_map(lambda bundle: verify_pki(bundle, _verification_name(settings)))
        .flat_map(lambda bundle: write_pki(bundle, settings.output_dir))
        .peek(lambda files: log.info("bootstrap.complete", output_dir=str(settings.output_dir), files=len(files)))
        .peek_failure(lambda error: log.error("bootstrap.failed", code=error.code.value, error=error.message))
    )
