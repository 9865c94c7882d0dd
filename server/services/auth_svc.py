from typing import Optional
import os
import logging
from firebase_admin import auth as firebase_auth
from fastapi import HTTPException, WebSocket, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

logger = logging.getLogger(__name__)

# Security scheme for Bearer token
security_scheme = HTTPBearer()

ADMIN_EMAILS = {
    email.strip().lower()
    for email in os.getenv("ADMIN_EMAILS", "").split(",")
    if email.strip()
}


# ============================================================================
# Authentication User Model
# ============================================================================

class AuthenticatedUser:
    """Represents an authenticated Firebase user"""
    def __init__(
        self,
        uid: str,
        email: Optional[str],
        provider: str,
        name: Optional[str] = None,
        is_admin: bool = False,
    ):
        self.uid = uid
        self.email = email
        self.provider = provider
        self.name = name
        self.is_admin = is_admin


def _is_admin(decoded: dict) -> bool:
    if decoded.get("admin") is True:
        return True
    email = (decoded.get("email") or "").lower()
    return bool(email) and email in ADMIN_EMAILS


# ============================================================================
# Security Dependencies
# ============================================================================

def authenticate_token(token: Optional[str]) -> AuthenticatedUser:
    """
    Verify a Firebase ID token and return the authenticated user.
    Raises 401 if the token is missing, invalid, expired, or revoked.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        decoded = firebase_auth.verify_id_token(token, check_revoked=True)
    except firebase_auth.ExpiredIdTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except firebase_auth.RevokedIdTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except firebase_auth.InvalidIdTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except Exception as e:
        logger.warning(f"Token verification error: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return AuthenticatedUser(
        uid=decoded.get("uid"),
        email=decoded.get("email"),
        provider=decoded.get("firebase", {}).get("sign_in_provider", ""),
        name=decoded.get("name"),
        is_admin=_is_admin(decoded),
    )


async def verify_firebase_user(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme)
) -> AuthenticatedUser:
    return authenticate_token(credentials.credentials if credentials else None)


async def authenticate_websocket(websocket: WebSocket, token: Optional[str]) -> Optional[AuthenticatedUser]:
    """
    Verify the `token` query parameter of a WebSocket handshake.
    Closes the socket with 1008 and returns None when verification fails.
    """
    try:
        return authenticate_token(token)
    except HTTPException as e:
        logger.warning(f"WebSocket rejected: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None


async def require_admin(
    current_user: AuthenticatedUser = Depends(verify_firebase_user)
) -> AuthenticatedUser:
    """Admin gate: custom claim `admin: true` or an email listed in ADMIN_EMAILS."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


def require_user_ownership(current_user: AuthenticatedUser, target_uid: str) -> None:
    """
    Verify that the authenticated user can only access their own data.
    Raises 403 if user tries to access another user's data.
    """
    if current_user.uid != target_uid:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only access your own data"
        )
