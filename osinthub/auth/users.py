"""Static credential users provisioned from environment variables.

Variables:
  OSINT_USER_1, OSINT_USER_2, ...   login:password:email[:role[:status]]
                                    Read in order until the first missing index.
                                    role defaults to "user", status to "active".
  OSINT_JAGUAR_PASSWORD             adds the admin user "jaguar".
  OSINT_ADMIN_PASSWORD              adds a default admin "admin", but only when
                                    no other users were loaded.

Passwords are bcrypt-hashed as soon as they are read; plaintext is never kept
on the User object and never logged.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import bcrypt

from osinthub.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Constants ────────────────────────────────────────────────────────────────

_USER_ENV_PREFIX: str = "OSINT_USER_"
_JAGUAR_PASSWORD_ENV: str = "OSINT_JAGUAR_PASSWORD"
_ADMIN_PASSWORD_ENV: str = "OSINT_ADMIN_PASSWORD"

#: bcrypt cost factor for hashing provisioned passwords
_BCRYPT_ROUNDS: int = 12

_PROVISIONED_AT: str = "2024-01-01T00:00:00Z"

VALID_ROLES: frozenset[str] = frozenset({"admin", "user"})
VALID_STATUSES: frozenset[str] = frozenset({"active", "blocked"})


# ─── Model ────────────────────────────────────────────────────────────────────


@dataclass
class User:
    id: str
    login: str
    email: str
    password_hash: bytes
    role: str = "user"
    status: str = "active"
    created_at: str = _PROVISIONED_AT

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_public_dict(self) -> dict[str, Any]:
        """Client/admin view. The password is always masked."""
        return {
            "id": self.id,
            "login": self.login,
            "email": self.email,
            "password": "***",
            "role": self.role,
            "status": self.status,
            "createdAt": self.created_at,
        }


def hash_password(password: str, rounds: int = _BCRYPT_ROUNDS) -> bytes:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))


def verify_password(password: str, password_hash: bytes) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash)


# ─── Parsing ──────────────────────────────────────────────────────────────────


def _parse_user_entry(index: int, raw: str, rounds: int) -> Optional[User]:
    """Parse one ``login:password:email[:role[:status]]`` value.

    Returns None (and logs) when a required field is missing. Unknown roles
    and statuses fall back to the defaults.
    """
    fields = [part.strip() for part in raw.split(":")]
    login, password, email = (fields + ["", "", ""])[:3]
    role = fields[3] if len(fields) > 3 and fields[3] else "user"
    status = fields[4] if len(fields) > 4 and fields[4] else "active"

    if not (login and password and email):
        logger.warning(
            "Skipping incomplete user entry",
            variable=f"{_USER_ENV_PREFIX}{index}",
        )
        return None

    if role not in VALID_ROLES:
        logger.warning("Unknown role, defaulting to 'user'", login=login, role=role)
        role = "user"
    if status not in VALID_STATUSES:
        logger.warning("Unknown status, defaulting to 'active'", login=login, status=status)
        status = "active"

    return User(
        id=str(index),
        login=login,
        email=email,
        password_hash=hash_password(password, rounds),
        role=role,
        status=status,
    )


def load_users_from_env(
    environ: Optional[Mapping[str, str]] = None,
    rounds: int = _BCRYPT_ROUNDS,
) -> list[User]:
    """Build the user list from environment variables (see module docstring)."""
    env = os.environ if environ is None else environ
    users: list[User] = []

    index = 1
    while True:
        raw = env.get(f"{_USER_ENV_PREFIX}{index}")
        if not raw:
            break
        user = _parse_user_entry(index, raw, rounds)
        if user is not None:
            users.append(user)
        index += 1

    jaguar_password = env.get(_JAGUAR_PASSWORD_ENV)
    if jaguar_password:
        users.append(
            User(
                id="jaguar",
                login="jaguar",
                email="jaguar@osinthub.local",
                password_hash=hash_password(jaguar_password, rounds),
                role="admin",
            )
        )

    admin_password = env.get(_ADMIN_PASSWORD_ENV)
    if not users and admin_password:
        logger.warning("No users found in environment variables. Creating default admin.")
        users.append(
            User(
                id="1",
                login="admin",
                email="admin@osinthub.local",
                password_hash=hash_password(admin_password, rounds),
                role="admin",
            )
        )

    return users


# ─── Store ────────────────────────────────────────────────────────────────────


class UserStore:
    """In-memory, read-only set of provisioned users."""

    def __init__(self, users: list[User]) -> None:
        self._users = list(users)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "UserStore":
        store = cls(load_users_from_env(environ))
        logger.info(
            "Loaded users",
            users=[
                {"login": u.login, "role": u.role, "status": u.status} for u in store._users
            ],
        )
        return store

    def find_user(self, login: str, password: str) -> Optional[User]:
        """Return the active user with matching login and password, else None."""
        for user in self._users:
            if user.login != login or not user.is_active:
                continue
            if verify_password(password, user.password_hash):
                return user
        return None

    def list_active_users(self) -> list[dict[str, Any]]:
        return [user.to_public_dict() for user in self._users if user.is_active]

    def __len__(self) -> int:
        return len(self._users)
