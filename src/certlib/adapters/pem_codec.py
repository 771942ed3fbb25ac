"""
PEM codec adapter — certificates and RSA keys to and from PEM armor.

Adapter layer — pure transforms over bytes, plus file-path variants:
  - cryptography (PyCA): DER/PEM serialisation and key/certificate parsing
  - asn1crypto.pem: armor parsing, so decoding can dispatch on block type

Block types:
  CERTIFICATE       X.509 certificate
  PRIVATE KEY       PKCS#8 private key (canonical)
  RSA PRIVATE KEY   PKCS#1 private key (legacy)
  PUBLIC KEY        SubjectPublicKeyInfo
  RSA PUBLIC KEY    PKCS#1 public key (legacy)

All exceptions are caught at this adapter boundary and returned as
Result failures (DECODE_ERROR, INVALID_KEY_TYPE, IO_ERROR).
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog
from asn1crypto import pem
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from railway import ErrorCode
from railway.result import Result
from railway.result_failures import ResultFailures

from certlib.domain.models import CertKey

log = structlog.get_logger()

CERTIFICATE_PEM_TYPE = "CERTIFICATE"
PUBLIC_KEY_PEM_TYPE = "PUBLIC KEY"
PRIVATE_KEY_PEM_TYPE = "PRIVATE KEY"
RSA_PRIVATE_KEY_PEM_TYPE = "RSA PRIVATE KEY"
RSA_PUBLIC_KEY_PEM_TYPE = "RSA PUBLIC KEY"

DEFAULT_MAX_PEM_SIZE = 1024 * 1024
CERT_FILE_MODE = 0o644
KEY_FILE_MODE = 0o600


# ─────────────────────── Encoding ───────────────────────


def encode_certificate_to_pem(cert: x509.Certificate) -> Result[bytes]:
    return Result.from_computation(
        lambda: cert.public_bytes(serialization.Encoding.PEM),
        ErrorCode.TECHNICAL_ERROR,
        "unable to marshal certificate",
    )


def encode_private_key_to_pem(key: rsa.RSAPrivateKey) -> Result[bytes]:
    """Encode an RSA private key as a PKCS#8 `PRIVATE KEY` block."""
    return Result.from_computation(
        lambda: key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ),
        ErrorCode.TECHNICAL_ERROR,
        "unable to marshal private key",
    )


def encode_rsa_private_key_to_pem(key: rsa.RSAPrivateKey) -> Result[bytes]:
    """Encode an RSA private key as a PKCS#1 `RSA PRIVATE KEY` block."""
    return Result.from_computation(
        lambda: key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        ),
        ErrorCode.TECHNICAL_ERROR,
        "unable to marshal RSA private key",
    )


def encode_public_key_to_pem(key: rsa.RSAPublicKey) -> Result[bytes]:
    """Encode an RSA public key as an SPKI `PUBLIC KEY` block."""
    return Result.from_computation(
        lambda: key.public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        ),
        ErrorCode.TECHNICAL_ERROR,
        "unable to marshal public key",
    )


def encode_rsa_public_key_to_pem(key: rsa.RSAPublicKey) -> Result[bytes]:
    """Encode an RSA public key as a PKCS#1 `RSA PUBLIC KEY` block."""
    return Result.from_computation(
        lambda: key.public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.PKCS1,
        ),
        ErrorCode.TECHNICAL_ERROR,
        "unable to marshal RSA public key",
    )


# ─────────────────────── Decoding ───────────────────────


def _as_bytes(data: bytes | str) -> bytes:
    return data.encode("ascii") if isinstance(data, str) else data


def _first_block(data: bytes | str, what: str) -> Result[tuple[str, bytes]]:
    """Return (block type, DER payload) of the first PEM block in `data`."""
    try:
        block_type, _headers, der = pem.unarmor(_as_bytes(data))
    except (ValueError, TypeError, UnicodeEncodeError) as e:
        return ResultFailures.decode_error(f"failed to parse PEM block containing the {what}", e)
    return Result.success((block_type, der))


def decode_certificate_from_pem(data: bytes | str) -> Result[x509.Certificate]:
    """Parse the first PEM block of `data` as a DER X.509 certificate."""
    return _first_block(data, "certificate").flat_map(
        lambda block: Result.from_computation(
            lambda: x509.load_der_x509_certificate(block[1]),
            ErrorCode.DECODE_ERROR,
            "failed to parse certificate",
        )
    )


def decode_certificates_from_pem(data: bytes | str) -> Result[list[x509.Certificate]]:
    """
    Parse every CERTIFICATE block of a bundle, skipping anything unusable.

    Non-certificate blocks and blocks whose DER does not parse are ignored;
    the call fails only when no certificate at all could be read.
    """
    certs: list[x509.Certificate] = []
    try:
        blocks = list(pem.unarmor(_as_bytes(data), multiple=True))
    except (ValueError, TypeError, UnicodeEncodeError) as e:
        return ResultFailures.decode_error("failed to parse PEM blocks containing certificates", e)

    for block_type, _headers, der in blocks:
        if block_type != CERTIFICATE_PEM_TYPE:
            continue
        try:
            certs.append(x509.load_der_x509_certificate(der))
        except ValueError as e:
            log.warning("pem.certificate_skipped", error=str(e))

    if not certs:
        return ResultFailures.decode_error("no certificate found in PEM data")
    return Result.success(certs)


def _load_rsa_private_key(block_type: str, der: bytes) -> Result[rsa.RSAPrivateKey]:
    armored = pem.armor(block_type, der)
    parsed = Result.from_computation(
        lambda: serialization.load_pem_private_key(armored, password=None),
        ErrorCode.DECODE_ERROR,
        "failed to parse key",
    )
    return parsed.flat_map(
        lambda key: Result.success(key)
        if isinstance(key, rsa.RSAPrivateKey)
        else ResultFailures.invalid_key_type("invalid private key")
    )


def decode_private_key_from_pem(data: bytes | str) -> Result[rsa.RSAPrivateKey]:
    """
    Parse an RSA private key, dispatching on the PEM block type.

    `RSA PRIVATE KEY` is read as PKCS#1, `PRIVATE KEY` as PKCS#8 (which must
    hold an RSA key). Any other block type fails with INVALID_KEY_TYPE.
    """

    def dispatch(block: tuple[str, bytes]) -> Result[rsa.RSAPrivateKey]:
        block_type, der = block
        if block_type in (RSA_PRIVATE_KEY_PEM_TYPE, PRIVATE_KEY_PEM_TYPE):
            return _load_rsa_private_key(block_type, der)
        return ResultFailures.invalid_key_type("invalid key type")

    return _first_block(data, "key").flat_map(dispatch)


def decode_public_key_from_pem(data: bytes | str) -> Result[rsa.RSAPublicKey]:
    """Parse an RSA public key from a `PUBLIC KEY` (SPKI) or `RSA PUBLIC KEY` (PKCS#1) block."""

    def dispatch(block: tuple[str, bytes]) -> Result[rsa.RSAPublicKey]:
        block_type, der = block
        if block_type not in (PUBLIC_KEY_PEM_TYPE, RSA_PUBLIC_KEY_PEM_TYPE):
            return ResultFailures.invalid_key_type("invalid key type")
        armored = pem.armor(block_type, der)
        return Result.from_computation(
            lambda: serialization.load_pem_public_key(armored),
            ErrorCode.DECODE_ERROR,
            "failed to parse public key",
        ).flat_map(
            lambda key: Result.success(key)
            if isinstance(key, rsa.RSAPublicKey)
            else ResultFailures.invalid_key_type("invalid public key")
        )

    return _first_block(data, "key").flat_map(dispatch)


# ─────────────────────── Files ───────────────────────


def validate_path(path: str | Path) -> Result[Path]:
    """
    Check that `path` names an existing regular file before it is opened.

    The path is normalised and made absolute; directories and special files
    are rejected.
    """
    if not str(path):
        return ResultFailures.io_error("path is required")

    resolved = Path(os.path.abspath(os.path.normpath(path)))
    try:
        resolved.stat()
    except FileNotFoundError as e:
        return ResultFailures.io_error(f"path does not exist: {resolved}", e)
    except OSError as e:
        return ResultFailures.io_error(f"unable to access path: {resolved}", e)

    if resolved.is_dir():
        return ResultFailures.io_error(f"path is a directory: {resolved}")
    if not resolved.is_file():
        return ResultFailures.io_error(f"path is not a regular file: {resolved}")
    return Result.success(resolved)


def _read_limited(path: Path, max_size: int) -> bytes:
    with path.open("rb") as fh:
        data = fh.read(max_size + 1)
    if len(data) > max_size:
        raise OSError(f"file exceeds maximum size of {max_size} bytes")
    return data


def read_pem_file(path: str | Path, max_size: int = DEFAULT_MAX_PEM_SIZE) -> Result[bytes]:
    """Validate `path`, then read at most `max_size` bytes from it."""

    def read(resolved: Path) -> Result[bytes]:
        return Result.from_computation(
            lambda: _read_limited(resolved, max_size),
            ErrorCode.IO_ERROR,
            f"unable to read {resolved}",
        ).peek(lambda data: log.debug("pem.file_loaded", path=str(resolved), size=len(data)))

    return validate_path(path).flat_map(read)


def decode_certificate_from_file(path: str | Path) -> Result[x509.Certificate]:
    return read_pem_file(path).flat_map(decode_certificate_from_pem)


def decode_private_key_from_file(path: str | Path) -> Result[rsa.RSAPrivateKey]:
    return read_pem_file(path).flat_map(decode_private_key_from_pem)


def write_pem_file(path: str | Path, data: bytes, mode: int = CERT_FILE_MODE) -> Result[Path]:
    """
    Write PEM bytes to `path` with the given permission bits, creating parents.

    The file is created with `mode` and an existing file is narrowed to
    `mode` before any byte is written.
    """

    def write() -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as fh:
            os.fchmod(fh.fileno(), mode)
            fh.write(data)
        return target

    return Result.from_computation(write, ErrorCode.IO_ERROR, f"unable to write {path}").peek(
        lambda target: log.debug("pem.file_written", path=str(target), mode=oct(mode))
    )


def write_cert_key(
    cert_key: CertKey,
    cert_path: str | Path,
    key_path: str | Path,
) -> Result[tuple[Path, Path]]:
    """Persist a certificate (0644) and its PKCS#8 private key (0600)."""
    cert_written = encode_certificate_to_pem(cert_key.cert).flat_map(
        lambda data: write_pem_file(cert_path, data, CERT_FILE_MODE)
    )
    return cert_written.flat_map(
        lambda cert_file: encode_private_key_to_pem(cert_key.key)
        .flat_map(lambda data: write_pem_file(key_path, data, KEY_FILE_MODE))
        .map(lambda key_file: (cert_file, key_file))
    )
