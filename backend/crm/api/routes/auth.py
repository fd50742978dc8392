"""Auth: demo sign-in, sign-out and the caller's navigation permissions.

There is no real credential store: the demo users of core.security share
one configured password. The signed access token goes back in the body
and in an httpOnly cookie for the dashboard.
"""
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from crm.api.deps import get_access_policy, get_current_user, get_db
from crm.core.audit import AuditLog
from crm.core.config import settings
from crm.core.exceptions import BusinessError
from crm.core.permissions import AccessPolicy, Role
from crm.core.security import SessionUser, create_access_token, revoked_tokens, verify_demo_credentials
from crm.models.customer import Customer
from crm.schemas.auth import LoginRequest, LoginResponse, MeResponse, SessionUserResponse

router = APIRouter()


def _user_response(user: SessionUser) -> SessionUserResponse:
    return SessionUserResponse(username=user.username, role=user.role.value, customer_id=user.customer_id)


@router.post("/login", response_model=LoginResponse)
def login(data: LoginRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Check demo credentials and open a session.

    A Customer login is bound to the oldest customer record so own-data
    filtering has something to filter on.
    """
    client_ip = request.client.host if request.client else "unknown"
    role = verify_demo_credentials(data.username, data.password)
    if role is None:
        AuditLog.log_authentication("failed_login", data.username, client_ip, False, reason="Invalid credentials")
        raise BusinessError.unauthorized(f"Invalid credentials for {data.username}")

    customer_id = None
    if role is Role.CUSTOMER:
        first = db.query(Customer).order_by(Customer.created_at.asc(), Customer.id.asc()).first()
        customer_id = first.id if first else None

    token = create_access_token(subject=data.username, role=role, customer_id=customer_id)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        secure=settings.SECURE_COOKIES,
        httponly=True,
        samesite="strict",
    )
    AuditLog.log_authentication("login", data.username, client_ip, True)

    user = SessionUser(username=data.username, role=role, customer_id=customer_id)
    return LoginResponse(user=_user_response(user), access_token=token)


@router.post("/logout")
def logout(
    response: Response,
    request: Request,
    current_user: SessionUser = Depends(get_current_user),
):
    revoked_tokens.revoke(current_user.token_id, current_user.expires_at)
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        secure=settings.SECURE_COOKIES,
        httponly=True,
        samesite="strict",
    )
    client_ip = request.client.host if request.client else "unknown"
    AuditLog.log_authentication("logout", current_user.username, client_ip, True)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=MeResponse)
def me(
    current_user: SessionUser = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    """Current user plus everything the dashboard needs to gate its navigation."""
    return MeResponse(
        user=_user_response(current_user),
        landing_path=policy.landing_path(current_user.role),
        permissions=policy.permissions_for(current_user.role),
        routes=policy.route_visibility(current_user.role),
    )
