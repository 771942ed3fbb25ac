"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app)
  - Fall back to .env file
  - Validate types and constraints at startup

Only the process entry point (certlib.main) reads settings. Library
operations never consult configuration or environment variables; they are
given explicit request objects, which AppSettings knows how to build.

Architecture: Only AppSettings is a BaseSettings instance. Sub-settings are plain
BaseModel classes populated by AppSettings via env_nested_delimiter="__", so the env
var CERTLIB_BOOTSTRAP__OUTPUT_DIR maps to bootstrap.output_dir,
CERTLIB_SERVER_TLS__CERT_FILE maps to server_tls.cert_file, etc.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from certlib.domain.models import ClientTLSConfigFiles, ServerTLSConfigFiles
from certlib.domain.policy import DEFAULT_KEY_SIZE, MIN_KEY_SIZE

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"


class BootstrapSettings(BaseModel):
    """
    Development PKI issued by certlib-bootstrap.

    One root CA, one intermediate CA signed by the root, and a server and a
    client certificate signed by the intermediate.
    """

    output_dir: Path = Field(default=Path("./pki"), description="Directory the PEM files are written to")
    organization: str = Field(default="certlib", min_length=1)
    country: str = Field(default="US", description="ISO 3166-1 alpha-2 country code")

    root_common_name: str = Field(default="certlib Root CA", min_length=1)
    intermediate_common_name: str = Field(default="certlib Intermediate CA", min_length=1)
    server_common_name: str = Field(default="localhost", min_length=1)
    client_common_name: str = Field(default="certlib client", min_length=1)

    server_dns_names: list[str] = Field(default_factory=lambda: ["localhost"])
    server_ip_addresses: list[str] = Field(default_factory=lambda: ["127.0.0.1"])

    ca_validity_days: int = Field(default=3650, ge=1)
    leaf_validity_days: int = Field(default=365, ge=1)
    key_size: int = Field(default=DEFAULT_KEY_SIZE, ge=MIN_KEY_SIZE)

    @field_validator("country")
    @classmethod
    def validate_country(cls, value: str) -> str:
        """Reject anything that is not a two-letter code."""
        value = value.strip().upper()
        if len(value) != 2 or not value.isalpha():
            raise ValueError(f"Country must be a 2-letter ISO 3166-1 code, got {value!r}")
        return value

    @property
    def ca_validity(self) -> timedelta:
        return timedelta(days=self.ca_validity_days)

    @property
    def leaf_validity(self) -> timedelta:
        return timedelta(days=self.leaf_validity_days)


class TLSFilesSettings(BaseModel):
    """PEM file locations for one side of a TLS connection."""

    cert_file: Path
    key_file: Path
    ca_file: Path
    server_name: str = Field(default="", description="Expected server name (client side only)")

    @field_validator("cert_file", "key_file", "ca_file", mode="before")
    @classmethod
    def reject_empty_path(cls, value: object) -> object:
        """Path("") silently becomes the current directory."""
        if isinstance(value, str) and not value.strip():
            raise ValueError("path must not be empty")
        return value


class AppSettings(BaseSettings):
    """
    Root application settings — aggregates all sub-settings.

    Load order (highest priority first):
      1. Environment variables (CERTLIB_ prefix)
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="CERTLIB_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    bootstrap: BootstrapSettings = Field(default_factory=lambda: BootstrapSettings())
    server_tls: TLSFilesSettings | None = None
    client_tls: TLSFilesSettings | None = None

    log_level: str = Field(default="INFO")

    def server_tls_files(self) -> ServerTLSConfigFiles | None:
        if self.server_tls is None:
            return None
        return ServerTLSConfigFiles(
            cert_file=self.server_tls.cert_file,
            key_file=self.server_tls.key_file,
            ca_file=self.server_tls.ca_file,
        )

    def client_tls_files(self) -> ClientTLSConfigFiles | None:
        if self.client_tls is None:
            return None
        return ClientTLSConfigFiles(
            cert_file=self.client_tls.cert_file,
            key_file=self.client_tls.key_file,
            ca_file=self.client_tls.ca_file,
            server_name=self.client_tls.server_name,
        )
