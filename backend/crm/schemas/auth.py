from typing import Dict, Optional

from crm.schemas.base import APIModel


class LoginRequest(APIModel):
    username: str
    password: str


class SessionUserResponse(APIModel):
    username: str
    role: str
    customer_id: Optional[str] = None


class LoginResponse(APIModel):
    user: SessionUserResponse
    access_token: str
    token_type: str = "bearer"


class MeResponse(APIModel):
    user: SessionUserResponse
    landing_path: Optional[str] = None
    permissions: Dict[str, Dict[str, bool]]
    routes: Dict[str, bool]
