"""Access gate for file routes.

A request is authorized when its session carries both ``userId`` and
``userLogin`` with non-empty values. The decision is made fresh for every
request and nothing is cached.
"""
from enum import Enum
from typing import Any, Mapping

from fastapi import Request

from archive.exceptions import SessionRequired

SESSION_USER_ID = "userId"
SESSION_USER_LOGIN = "userLogin"


class Authorization(str, Enum):
    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"


def evaluate(session: Mapping[str, Any]) -> Authorization:
    """Decide whether *session* may use the file routes. No side effects."""
    if session.get(SESSION_USER_ID) and session.get(SESSION_USER_LOGIN):
        return Authorization.AUTHORIZED
    return Authorization.UNAUTHORIZED


async def require_session(request: Request) -> None:
    """FastAPI dependency guarding a route.

    Raises:
        SessionRequired: When the gate says UNAUTHORIZED. The application
            answers it with a redirect to ``/``.
    """
    if evaluate(request.session) is Authorization.UNAUTHORIZED:
        raise SessionRequired()
