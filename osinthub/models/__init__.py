"""OSINT Hub models package.

  - responses.py — builders for every error/quota response body and the
                   X-RateLimit-* headers
  - schemas.py   — pydantic request bodies for the auth and search endpoints
"""
