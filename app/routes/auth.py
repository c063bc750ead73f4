"""
Authentication endpoints - email/password accounts with bearer sessions.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from app.core.settings import settings
from app.models.user import (
    LoginRequest,
    RegisterRequest,
    TouristRegisterRequest,
    CreateAuthorityRequest,
    EmailRequest,
    TokenRequest,
    ResetPasswordRequest,
    AuthResponse,
    AuthUser,
)
from app.routes.deps import get_current_user, get_token, require_admin
from app.services.auth_service import get_auth_service, EMAIL_NOT_VERIFIED
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _debug_token(token: Optional[str]) -> Optional[str]:
    # Tokens go out by email in production; DEBUG echoes them for local testing
    return token if settings.DEBUG else None


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest):
    """
    Register a tourist or admin account.

    The account must verify its email before it can log in.
    """
    try:
        result = get_auth_service().register(
            request.email,
            request.password,
            request.name,
            request.phone,
            request.role.value if request.role else None,
        )
        return AuthResponse(
            success=True,
            message="Registration successful. Please verify your email.",
            user=AuthUser(**result["user"]),
            verification_token=_debug_token(result["verification_token"]),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Registration failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Registration failed: {str(e)}"
        )


@router.post("/register/tourist", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_tourist(request: TouristRegisterRequest):
    """
    Register a tourist and issue their digital tourist ID.
    """
    try:
        result = get_auth_service().register_tourist(request.model_dump())
        return AuthResponse(
            success=True,
            message="Registration successful. Please verify your email.",
            user=AuthUser(**result["user"]),
            verification_token=_debug_token(result["verification_token"]),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Tourist registration failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Tourist registration failed: {str(e)}"
        )


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest):
    """
    Log in with email and password.

    Returns a bearer token and the dashboard URL for the user's role.
    Unverified accounts get 403 with detail EMAIL_NOT_VERIFIED.
    """
    try:
        result = get_auth_service().login(request.email, request.password)
        return AuthResponse(
            success=True,
            message="Login successful",
            user=AuthUser(**result["user"]),
            token=result["token"],
            redirect_url=result["redirect_url"],
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PermissionError as e:
        code = status.HTTP_403_FORBIDDEN if str(e) == EMAIL_NOT_VERIFIED else status.HTTP_401_UNAUTHORIZED
        raise HTTPException(status_code=code, detail=str(e))
    except Exception as e:
        logger.error(f"Login failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Login failed: {str(e)}"
        )


@router.post("/logout")
async def logout(token: Optional[str] = Depends(get_token)):
    get_auth_service().logout(token)
    return {"success": True, "message": "Logged out"}


@router.get("/me", response_model=AuthUser)
async def me(user: Dict = Depends(get_current_user)):
    return user


@router.post("/verify-email", response_model=AuthResponse)
async def verify_email(request: TokenRequest):
    try:
        user = get_auth_service().verify_email(request.token)
        return AuthResponse(success=True, message="Email verified", user=AuthUser(**user))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Email verification failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Email verification failed: {str(e)}"
        )


@router.post("/resend-verification", response_model=AuthResponse)
async def resend_verification(request: EmailRequest):
    """Always succeeds so the endpoint does not reveal which emails exist."""
    try:
        token = get_auth_service().resend_verification(request.email)
        return AuthResponse(
            success=True,
            message="If the account exists and is unverified, a new link has been sent",
            verification_token=_debug_token(token),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/email-verified")
async def email_verified(email: str):
    return {"email": email, "is_verified": get_auth_service().is_email_verified(email)}


@router.post("/forgot-password", response_model=AuthResponse)
async def forgot_password(request: EmailRequest):
    try:
        token = get_auth_service().forgot_password(request.email)
        return AuthResponse(
            success=True,
            message="If the account exists, a reset link has been sent",
            verification_token=_debug_token(token),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/reset-password", response_model=AuthResponse)
async def reset_password(request: ResetPasswordRequest):
    try:
        get_auth_service().reset_password(request.token, request.new_password)
        return AuthResponse(success=True, message="Password has been reset")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Password reset failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Password reset failed: {str(e)}"
        )


@router.post("/authorities", response_model=AuthUser, status_code=status.HTTP_201_CREATED)
async def create_authority(request: CreateAuthorityRequest, admin: Dict = Depends(require_admin)):
    """
    Admin-only: create a pre-verified authority account.
    """
    try:
        user = get_auth_service().create_authority(request.model_dump())
        logger.info(f"Authority {user['id']} created by admin {admin['id']}")
        return user
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create authority: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create authority: {str(e)}"
        )


@router.get("/verify-digital-id/{digital_id}")
async def verify_digital_id(digital_id: str):
    return {"digital_id": digital_id, "valid": get_auth_service().verify_digital_id(digital_id)}


@router.post("/mock-login/{role}", response_model=AuthResponse)
async def mock_login(role: str):
    """
    DEBUG-only login as a fixed user for the given role.
    """
    try:
        result = get_auth_service().mock_login(role)
        return AuthResponse(
            success=True,
            message=f"Logged in as mock {role}",
            user=AuthUser(**result["user"]),
            token=result["token"],
            redirect_url=result["redirect_url"],
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
