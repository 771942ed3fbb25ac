"""
Acceptance test fixtures — a bootstrapped PKI on disk and an in-memory TLS transport.

The transport pumps bytes between two ssl.SSLObject instances through
MemoryBIOs, so handshakes run without sockets or threads.
"""

from __future__ import annotations

import ssl
from pathlib import Path

import pytest
from railway.assertions import ResultAssertions

from certlib.bootstrap import run_bootstrap
from certlib.config import BootstrapSettings

MAX_ROUND_TRIPS = 10


@pytest.fixture(scope="session")
def pki_dir(tmp_path_factory: pytest.TempPathFactory) -> dict[str, Path]:
    """Run the bootstrap once and return the written file map."""
    output_dir = tmp_path_factory.mktemp("pki")
    return ResultAssertions.assert_success(run_bootstrap(BootstrapSettings(output_dir=output_dir)))


class MemoryTransport:
    """A client and a server SSLObject wired back to back."""

    def __init__(self, server_context: ssl.SSLContext, client_context: ssl.SSLContext, server_hostname: str) -> None:
        self._client_in, self._client_out = ssl.MemoryBIO(), ssl.MemoryBIO()
        self._server_in, self._server_out = ssl.MemoryBIO(), ssl.MemoryBIO()
        self.client = client_context.wrap_bio(self._client_in, self._client_out, server_hostname=server_hostname)
        self.server = server_context.wrap_bio(self._server_in, self._server_out, server_side=True)

    def _pump(self) -> None:
        self._server_in.write(self._client_out.read())
        self._client_in.write(self._server_out.read())

    def handshake(self) -> None:
        """Drive both sides until the handshake completes; ssl.SSLError propagates."""
        client_done = server_done = False
        for _ in range(MAX_ROUND_TRIPS):
            if not client_done:
                try:
                    self.client.do_handshake()
                    client_done = True
                except ssl.SSLWantReadError:
                    pass
            self._pump()
            if not server_done:
                try:
                    self.server.do_handshake()
                    server_done = True
                except ssl.SSLWantReadError:
                    pass
            self._pump()
            if client_done and server_done:
                return
        raise AssertionError("TLS handshake did not complete")

    def send_to_server(self, data: bytes) -> bytes:
        self.client.write(data)
        self._pump()
        return self.server.read(len(data))
