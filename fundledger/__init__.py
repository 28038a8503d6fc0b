"""fundledger - monthly fund accounting and client reporting."""

__version__ = "0.1.0"
