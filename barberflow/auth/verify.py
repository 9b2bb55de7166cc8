"""
verify.py
---------
Purpose:
    JWT verification for booking clients (HS256, shared secret).

Notes:
    - `sub` is the caller's party id (user id, or store id for store accounts).
    - `role` is one of store / freebarber / customer.
    - Provides `auth_dependency` for protected routes and `Caller` for
      handlers that need the negotiation role.
"""

from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from barberflow.config import settings
from barberflow.features.negotiation.domain.models import Role

_security = HTTPBearer()


@dataclass(frozen=True)
class Caller:
    party_id: str
    role: Role


def verify_jwt(token: str) -> dict:
    try:
        options = {"verify_exp": True, "verify_aud": settings.JWT_AUDIENCE is not None}
        decoded = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
        return decoded
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def auth_dependency(credentials: HTTPAuthorizationCredentials = Depends(_security)) -> dict:
    token = credentials.credentials
    return verify_jwt(token)


def current_caller(claims: dict = Depends(auth_dependency)) -> Caller:
    """Resolve the negotiation identity from verified claims."""
    party_id = claims.get("sub")
    try:
        role = Role(str(claims.get("role", "")).lower())
    except ValueError:
        role = None

    if not party_id or role is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token is missing a party id or role",
        )
    return Caller(party_id=str(party_id), role=role)
