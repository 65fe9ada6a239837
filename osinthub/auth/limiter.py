"""Per-client-IP rate limit for the login endpoints.

Uses slowapi (Starlette-compatible rate limiting) to slow down credential
guessing on POST /api/auth/login and POST /api/auth/nft-auth. This is separate
from the per-identity search quota in osinthub/ratelimit, which only applies to
already-authenticated requests.

The Limiter instance is shared between:
  - osinthub/auth/router.py  (route decorators)
  - osinthub/main.py         (app.state.limiter + SlowAPIMiddleware registration)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from osinthub.constants import AUTH_RATE_LIMIT

limiter = Limiter(key_func=get_remote_address)

LOGIN_RATE_LIMIT = AUTH_RATE_LIMIT
