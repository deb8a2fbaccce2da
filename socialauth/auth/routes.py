"""
Authentication routes for OAuth login and callback handling.

This module exposes the OAuth flow engine over HTTP:

- GET /oauth/login/{provider}     redirect to the provider
- GET /oauth/callback/{provider}  complete the login, set the session cookie
- GET /oauth/logout               clear the session cookie
- GET /oauth/providers            configured providers and their login URLs
- GET /oauth/me                   claims of the signed-in user
"""

import html
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from socialauth.auth.session import JWTSessionError, SessionManager, get_current_user, get_session_manager
from socialauth.oauth.errors import (
    InitiationFailure,
    InvalidState,
    MissingCode,
    OAuthFailure,
    UnconfiguredProvider,
)
from socialauth.oauth.flow import FLOW_FAILED_MARKER, OAuthFlow, is_safe_redirect

logger = logging.getLogger(__name__)


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(
    prefix="/oauth",
    tags=["authentication"],
)


def get_oauth_flow(request: Request) -> OAuthFlow:
    return request.app.state.oauth_flow


def _login_path(request: Request) -> str:
    return request.app.state.settings.LOGIN_PATH.rstrip("/")


# =============================================================================
# Login Endpoint
# =============================================================================

@auth_router.get("/login/{provider}")
async def login(
    provider: str,
    request: Request,
    redirect_uri: Optional[str] = Query(None, description="Where to go after login"),
    flow: OAuthFlow = Depends(get_oauth_flow),
):
    """
    Initiate the OAuth flow by redirecting to the provider.

    Returns:
        302 redirect to the provider's authorization endpoint, or a 400
        error page if the provider is not configured
    """
    try:
        authorization_url = flow.initiate(provider, redirect_uri)
    except UnconfiguredProvider as e:
        return _render_error_page(
            title="Unknown Provider",
            message=e.message,
            retry_url=None,
        )
    except InitiationFailure as e:
        return _render_error_page(
            title="Login Unavailable",
            message=e.message,
            retry_url=f"{_login_path(request)}/{provider}",
        )

    return RedirectResponse(url=authorization_url, status_code=status.HTTP_302_FOUND)


# =============================================================================
# Callback Endpoint
# =============================================================================

@auth_router.get("/callback/{provider}")
async def callback(
    provider: str,
    request: Request,
    code: Optional[str] = Query(None, description="Authorization code from the provider"),
    state: Optional[str] = Query(None, description="State parameter for CSRF protection"),
    error: Optional[str] = Query(None, description="Error code if authentication failed"),
    flow: OAuthFlow = Depends(get_oauth_flow),
    sessions: SessionManager = Depends(get_session_manager),
):
    """
    Handle the provider's redirect back to this application.

    Returns:
        302 redirect to the post-login destination with the session cookie
        set; 302 to the default destination with an ``error`` marker when
        the provider or a server-side step failed; 400 error page for a
        missing code or invalid state
    """
    retry_url = f"{_login_path(request)}/{provider}"

    try:
        result = await flow.callback(provider, code=code, state=state, error=error)
    except MissingCode as e:
        return _render_error_page(title="Invalid Request", message=e.message, retry_url=retry_url)
    except InvalidState as e:
        return _render_error_page(title="Security Error", message=e.message, retry_url=retry_url)
    except OAuthFailure as e:
        return RedirectResponse(url=e.redirect_uri, status_code=status.HTTP_302_FOUND)

    response = RedirectResponse(url=result.redirect_uri, status_code=status.HTTP_302_FOUND)
    try:
        sessions.sign_in(response, result.user)
    except JWTSessionError:
        logger.error("Failed to establish session", extra={"provider": provider}, exc_info=True)
        return RedirectResponse(
            url=flow.error_redirect(FLOW_FAILED_MARKER),
            status_code=status.HTTP_302_FOUND,
        )

    return response


# =============================================================================
# Session Endpoints
# =============================================================================

@auth_router.get("/logout")
async def logout(
    redirect_uri: Optional[str] = Query(None),
    flow: OAuthFlow = Depends(get_oauth_flow),
    sessions: SessionManager = Depends(get_session_manager),
):
    """Clear the session cookie and redirect."""
    target = redirect_uri if redirect_uri and is_safe_redirect(redirect_uri, flow.base_url) else None
    response = RedirectResponse(url=target or flow.default_redirect_uri, status_code=status.HTTP_302_FOUND)
    sessions.sign_out(response)
    return response


@auth_router.get("/providers")
async def providers(request: Request, flow: OAuthFlow = Depends(get_oauth_flow)) -> Dict[str, Any]:
    """List configured providers with their login URLs."""
    settings = request.app.state.settings
    login_path = _login_path(request)
    return {
        "providers": [
            {"name": key, "login_url": f"{login_path}/{key}"}
            for key in flow.registry.list_configured()
        ],
        "logout_url": settings.LOGOUT_PATH,
    }


@auth_router.get("/me")
async def me(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Return the signed-in user's session claims."""
    return user


# =============================================================================
# HTML Response Templates
# =============================================================================

def _render_error_page(
    title: str,
    message: str,
    retry_url: Optional[str] = None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
) -> HTMLResponse:
    """
    Render error page for authentication failures.

    Args:
        title: Error title
        message: Error message (no internals)
        retry_url: Login URL for the retry button, if any
        status_code: HTTP status code
    """
    retry_button = (
        f'<a href="{html.escape(retry_url, quote=True)}" class="button">Try Again</a>'
        if retry_url else ""
    )

    html_content = f"""
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>{html.escape(title)}</title>
        <style>
            body {{
                font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif;
                display: flex;
                align-items: center;
                justify-content: center;
                min-height: 100vh;
                margin: 0;
                background: #f3f4f6;
            }}
            .container {{
                background: white;
                border-radius: 12px;
                padding: 40px;
                max-width: 500px;
                text-align: center;
            }}
            .button {{
                display: inline-block;
                background: #667eea;
                color: white;
                padding: 14px 32px;
                border-radius: 8px;
                text-decoration: none;
            }}
        </style>
    </head>
    <body>
        <div class="container">
            <h1>{html.escape(title)}</h1>
            <p class="message">{html.escape(message)}</p>
            {retry_button}
        </div>
    </body>
    </html>
    """

    return HTMLResponse(content=html_content, status_code=status_code)
