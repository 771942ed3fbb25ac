"""
certlib — a small certificate authority engine.

Issues RSA-keyed X.509 certificates for a root CA, intermediate CAs and
server/client leaves, verifies them against caller-supplied trust anchors,
encodes them to and from PEM, and builds mutual-TLS configurations.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
