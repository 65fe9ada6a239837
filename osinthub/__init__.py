"""OSINT Hub — authenticated, quota-gated gateway to an OSINT lookup API."""

__version__ = "1.0.0"
