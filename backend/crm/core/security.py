"""
Demo sign-in and signed access tokens.

There is no real credential store: a fixed table of demo users shares one
configured password. A successful login hands out an HS256 JWT carrying
the username, role and (for Customer logins) the bound customer id, so
any worker process can verify it without shared state.

SECURITY:
- Tokens are signed with settings.SECRET_KEY and expire after
  ACCESS_TOKEN_EXPIRE_MINUTES
- Logout revokes the token's jti until the token would have expired anyway
"""
import secrets
import threading
import time
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import jwt

from crm.core.config import settings
from crm.core.permissions import Role, parse_role

logger = logging.getLogger(__name__)


DEMO_USERS: Dict[str, Role] = {
    "admin": Role.ADMIN,
    "salesman": Role.SALES,
    "tech": Role.TECHNICIAN,
    "manager": Role.MANAGER,
    "customer": Role.CUSTOMER,
}


@dataclass
class SessionUser:
    username: str
    role: Role
    customer_id: Optional[str] = None
    token_id: Optional[str] = field(default=None, repr=False)
    expires_at: float = field(default=0.0, repr=False)


def verify_demo_credentials(username: str, password: str) -> Optional[Role]:
    """Return the demo user's role, or None for unknown user / wrong password."""
    role = DEMO_USERS.get(username)
    if role is None:
        return None
    if not secrets.compare_digest(password.encode(), settings.DEMO_PASSWORD.encode()):
        return None
    return role


def create_access_token(
    subject: str,
    role: Role,
    customer_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Signed JWT: sub, role, customer_id, jti, iat, exp."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {
        "sub": subject,
        "role": role.value,
        "customer_id": customer_id,
        "jti": secrets.token_hex(16),
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[SessionUser]:
    """
    Verify signature, expiry and claims. Returns None for any bad token.

    Tokens naming an unknown role or a revoked jti are rejected too.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"require": ["sub", "role", "exp", "jti"]},
        )
    except jwt.PyJWTError as e:
        logger.info(f"Rejected access token: {type(e).__name__}")
        return None

    role = parse_role(payload.get("role"))
    if role is None:
        return None
    if revoked_tokens.is_revoked(payload["jti"]):
        return None

    return SessionUser(
        username=payload["sub"],
        role=role,
        customer_id=payload.get("customer_id"),
        token_id=payload["jti"],
        expires_at=float(payload["exp"]),
    )


class RevokedTokens:
    """jti -> expiry of logged-out tokens. Entries drop once the token has expired."""

    def __init__(self):
        self._revoked: Dict[str, float] = {}
        self._lock = threading.Lock()

    def revoke(self, token_id: str, expires_at: float) -> None:
        now = time.time()
        with self._lock:
            for jti in [j for j, exp in self._revoked.items() if exp <= now]:
                del self._revoked[jti]
            self._revoked[token_id] = expires_at

    def is_revoked(self, token_id: str) -> bool:
        with self._lock:
            return token_id in self._revoked


# Per process; a restart or another worker only forgets logouts, never accepts forged tokens
revoked_tokens = RevokedTokens()
