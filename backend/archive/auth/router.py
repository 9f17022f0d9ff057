"""Auth router for session login.

Endpoints:
    POST /api/auth/login   - Verify credentials and start a session
    GET  /api/auth/logout  - Clear the session and go back to /
    POST /api/auth/logout  - Same, for forms
"""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field

from .gate import SESSION_USER_ID, SESSION_USER_LOGIN
from .service import CredentialService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    """Request body for logging in."""
    login: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


def _credentials(request: Request) -> CredentialService:
    return CredentialService(request.app.state.config.secrets.users)


@router.post("/login")
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Verify credentials and store ``userId`` / ``userLogin`` in the session.

    Returns:
        ``{"ok": true, "login": ...}`` on success, 401 with an error otherwise.
    """
    user = _credentials(request).authenticate(body.login, body.password)
    if user is None:
        return JSONResponse(
            {"ok": False, "error": "Invalid login or password"},
            status_code=401,
        )

    request.session[SESSION_USER_ID] = user.user_id
    request.session[SESSION_USER_LOGIN] = user.login
    logger.info("[auth] %s logged in", user.login)
    return JSONResponse({"ok": True, "login": user.login})


@router.api_route("/logout", methods=["GET", "POST"])
async def logout(request: Request) -> RedirectResponse:
    """Drop the session and redirect to the landing page."""
    login = request.session.get(SESSION_USER_LOGIN)
    request.session.clear()
    if login:
        logger.info("[auth] %s logged out", login)
    return RedirectResponse("/", status_code=303)
