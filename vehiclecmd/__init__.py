"""Fleet API accounts, HTTPS vehicle connections, session caching and P-256 Schnorr signatures."""

__version__ = "0.1.0"

__all__ = ["account", "cache", "connector", "inet", "log", "schnorr"]