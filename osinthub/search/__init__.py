"""Quota-gated search endpoint and the shared upstream HTTP client factory."""
