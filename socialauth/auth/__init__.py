"""
Authentication Package

HTTP integration of the OAuth flow engine for FastAPI applications.

Modules:
- routes: Public authentication endpoints (/oauth/login, /oauth/callback, etc.)
- session: Session JWT creation, verification and cookie handling

The authentication flow:
1. Browser hits /oauth/login/{provider}
2. User authenticates with the identity provider
3. Provider redirects to /oauth/callback/{provider} with code and state
4. State is validated, the code exchanged and the profile normalized
5. A session cookie carrying the user's claims is set
"""

from .routes import auth_router

__all__ = [
    "auth_router",
]
