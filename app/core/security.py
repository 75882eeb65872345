"""Bearer tokens for staff and customers.

Tokens are issued by the store's auth service; this backend only verifies
them. ``create_access_token`` exists for local tooling and tests.
"""

from datetime import datetime, timedelta, timezone

import jwt

from app.core.config import settings

ROLES = ("customer", "manager", "admin")


def create_access_token(user_id: str, role: str = "customer") -> str:
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.jwt_access_token_expire_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Verified claims of an access token. Raises jwt.PyJWTError if invalid or expired."""
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["sub", "exp"]},
    )
