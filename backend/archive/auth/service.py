"""Credential verification against the users listed in archive.secrets.yaml.

Passwords are never stored; each configured user carries a bcrypt hash of
their password (``pwd_context.hash(...)``).
"""
import logging
from typing import Dict, Optional

from passlib.context import CryptContext
from pydantic import BaseModel

from archive.config import UserCredentials

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthenticatedUser(BaseModel):
    """What a successful login puts into the session."""
    user_id: str
    login: str


def hash_password(password: str) -> str:
    """Hash a password for the ``password_hash`` entry in the secrets file."""
    return pwd_context.hash(password)


class CredentialService:
    """Checks login/password pairs against a fixed user table.

    Args:
        users: Mapping of login -> credentials, usually ``config.secrets.users``.
    """

    def __init__(self, users: Dict[str, UserCredentials]) -> None:
        self._users = users

    def authenticate(self, login: str, password: str) -> Optional[AuthenticatedUser]:
        """Return the user on a match, None otherwise."""
        login = login.strip()
        credentials = self._users.get(login)
        if credentials is None:
            logger.info("Login rejected: unknown user %s", login)
            return None

        try:
            verified = pwd_context.verify(password, credentials.password_hash)
        except ValueError:
            # Not a hash passlib recognises; treat like a wrong password.
            logger.warning("Login rejected: unusable password hash configured for %s", login)
            return None
        if not verified:
            logger.info("Login rejected: wrong password for %s", login)
            return None

        return AuthenticatedUser(user_id=credentials.id, login=login)
