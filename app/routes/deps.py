"""
Shared route dependencies: bearer-session authentication and role checks.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from app.services.auth_service import get_auth_service
from typing import Dict, Optional

bearer_scheme = HTTPBearer(auto_error=False)


def get_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Optional[str]:
    return credentials.credentials if credentials else None


def get_optional_user(token: Optional[str] = Depends(get_token)) -> Optional[Dict]:
    return get_auth_service().get_current_user(token)


def get_current_user(user: Optional[Dict] = Depends(get_optional_user)) -> Dict:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_role(*roles: str):
    """Dependency factory: the current user must hold one of the given roles."""

    def checker(user: Dict = Depends(get_current_user)) -> Dict:
        if user.get("role") not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(roles)}",
            )
        return user

    return checker


def ensure_tourist_access(user: Dict, tourist_id: str) -> None:
    """Tourists may only act on their own digital ID; staff may act on any."""
    if user.get("role") == "tourist" and user.get("digital_id") != tourist_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Tourists can only access their own records",
        )


require_staff = require_role("authority", "admin")
require_admin = require_role("admin")
