"""FastAPI dependencies: DB session, current session user, access checks.

The bearer token is read from:
1. Authorization header (for API clients)
2. httpOnly cookie (for the dashboard)
"""
from typing import Callable, Generator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from crm.core.audit import AuditLog
from crm.core.config import settings
from crm.core.exceptions import BusinessError, PermissionDenied
from crm.core.permissions import DEFAULT_POLICY, AccessPolicy, Action, Resource
from crm.core.security import SessionUser, decode_access_token
from crm.db.session import SessionLocal
from crm.services.order_service import OrderService

security = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_access_policy() -> AccessPolicy:
    """The process-wide permission tables. Override in tests to inject others."""
    return DEFAULT_POLICY


def get_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Header takes precedence over cookie."""
    token = None

    if credentials:
        token = credentials.credentials
    elif settings.SESSION_COOKIE_NAME in request.cookies:
        token = request.cookies[settings.SESSION_COOKIE_NAME]

    if not token:
        raise BusinessError.unauthorized("No session token")
    return token


def get_current_user(token: str = Depends(get_session_token)) -> SessionUser:
    """Decode the access token; bad, expired or revoked tokens are 401."""
    user = decode_access_token(token)
    if user is None:
        raise BusinessError.unauthorized("Invalid or expired token")
    return user


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)


def ensure_allowed(
    policy: AccessPolicy,
    user: SessionUser,
    action: Action,
    resource: Resource,
    resource_id: Optional[str] = None,
) -> None:
    """Raise PermissionDenied (and audit it) unless the policy allows the call."""
    if policy.allows(user.role, action, resource):
        return
    reason = f"{user.role.value} may not {action.value} {resource.value}"
    AuditLog.log_access_denied(action.value, resource.value, user.username, user.role.value, reason, resource_id)
    raise PermissionDenied(user.role.value, action.value, resource.value, reason)


def require(action: Action, resource: Resource) -> Callable[..., SessionUser]:
    """
    Dependency factory: authenticate, then check ``action`` on ``resource``.

    Usage:
        current_user: SessionUser = Depends(require(Action.WRITE, Resource.SALES))
    """

    def dependency(
        user: SessionUser = Depends(get_current_user),
        policy: AccessPolicy = Depends(get_access_policy),
    ) -> SessionUser:
        ensure_allowed(policy, user, action, resource)
        return user

    return dependency
