"""
JWT Session Management Module
==============================

Establishes the application session once a callback succeeds. The canonical
user is turned into a claim set, signed as an HS256 session JWT and stored
in an HttpOnly cookie. Clients that cannot use cookies may send the same
token as a Bearer header.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Header, HTTPException, Request, status
from fastapi.responses import Response
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from socialauth.models import CanonicalUserInfo

logger = logging.getLogger(__name__)


JWT_ALGORITHM = "HS256"


# =============================================================================
# Exceptions
# =============================================================================

class JWTSessionError(Exception):
    """Base exception for JWT session errors"""
    pass


# =============================================================================
# Session Manager
# =============================================================================

class SessionManager:
    """
    Creates, verifies and stores session JWTs.

    Args:
        secret: HMAC signing secret
        issuer: Value of the ``iss`` claim
        expiry: Session lifetime
        cookie_name: Name of the session cookie
        cookie_secure: Only send the cookie over HTTPS
    """

    def __init__(
        self,
        secret: str,
        issuer: str = "socialauth",
        expiry: timedelta = timedelta(days=30),
        cookie_name: str = "socialauth_session",
        cookie_secure: bool = False,
    ):
        if not secret:
            raise JWTSessionError("Session secret not configured")
        self._secret = secret
        self.issuer = issuer
        self.expiry = expiry
        self.cookie_name = cookie_name
        self.cookie_secure = cookie_secure

    @classmethod
    def from_settings(cls, settings) -> "SessionManager":
        secret = settings.SESSION_JWT_SECRET
        if not secret:
            logger.warning("SESSION_JWT_SECRET not configured; using an ephemeral session key")
            secret = secrets.token_urlsafe(48)
        return cls(
            secret=secret,
            issuer=settings.JWT_ISSUER,
            expiry=timedelta(days=settings.SESSION_EXPIRY_DAYS),
            cookie_name=settings.SESSION_COOKIE_NAME,
            cookie_secure=settings.SESSION_COOKIE_SECURE,
        )

    # -------------------------------------------------------------------------
    # Token Creation
    # -------------------------------------------------------------------------

    def create_session_jwt(self, user: CanonicalUserInfo) -> str:
        """
        Create a session JWT for a signed-in user.

        Args:
            user: Canonical user from a successful callback

        Returns:
            Encoded JWT string

        Raises:
            JWTSessionError: If JWT creation fails
        """
        if not user.id:
            raise JWTSessionError("Missing required claim: 'sub' (subject/user ID)")

        payload: Dict[str, Any] = user.to_claims()
        now = datetime.now(timezone.utc)
        payload.update({
            "iat": now,
            "exp": now + self.expiry,
            "iss": self.issuer,
        })

        try:
            token = jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)
        except Exception as e:
            logger.error(f"Failed to create session JWT: {e}", exc_info=True)
            raise JWTSessionError(f"Failed to create session JWT: {str(e)}") from e

        logger.debug(
            "Created session JWT",
            extra={"user_id": user.id, "provider": user.provider},
        )
        return token

    # -------------------------------------------------------------------------
    # Token Verification
    # -------------------------------------------------------------------------

    def verify_session_jwt(self, token: str) -> Dict[str, Any]:
        """
        Verify and decode a session JWT.

        Returns:
            Dictionary containing the decoded claims

        Raises:
            HTTPException: 401 for a missing, invalid or expired token
        """
        if not token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="No authentication token provided",
                headers={"WWW-Authenticate": "Bearer"},
            )

        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub", "iss"]},
            )
        except ExpiredSignatureError:
            logger.warning("Session JWT expired")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session has expired",
                headers={"WWW-Authenticate": "Bearer"},
            )
        except InvalidTokenError as e:
            logger.warning(f"Invalid session JWT: {e}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid session",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return decoded

    # -------------------------------------------------------------------------
    # Cookies
    # -------------------------------------------------------------------------

    def sign_in(self, response: Response, user: CanonicalUserInfo) -> str:
        """Attach a fresh session cookie for ``user`` to the response."""
        token = self.create_session_jwt(user)
        response.set_cookie(
            key=self.cookie_name,
            value=token,
            max_age=int(self.expiry.total_seconds()),
            httponly=True,
            secure=self.cookie_secure,
            samesite="lax",
        )
        return token

    def sign_out(self, response: Response) -> None:
        response.delete_cookie(
            key=self.cookie_name,
            httponly=True,
            secure=self.cookie_secure,
            samesite="lax",
        )


# =============================================================================
# Helper Functions
# =============================================================================

def extract_token_from_header(authorization: Optional[str]) -> str:
    """
    Extract Bearer token from Authorization header.

    Raises:
        HTTPException: If header is missing or malformed
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()

    if len(parts) != 2 or parts[0].lower() != 'bearer':
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format. Expected: 'Bearer <token>'",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return parts[1]


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


# =============================================================================
# FastAPI Dependencies
# =============================================================================

async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Dict[str, Any]:
    """
    FastAPI dependency returning the signed-in user's claims.

    The session cookie is checked first, then the Authorization header.

    Usage in routes:
        @app.get("/protected")
        async def protected_route(user: dict = Depends(get_current_user)):
            return {"user_email": user.get("email")}
    """
    manager = get_session_manager(request)
    token = request.cookies.get(manager.cookie_name)
    if not token:
        token = extract_token_from_header(authorization)
    return manager.verify_session_jwt(token)


__all__ = [
    "SessionManager",
    "JWTSessionError",
    "extract_token_from_header",
    "get_session_manager",
    "get_current_user",
]
