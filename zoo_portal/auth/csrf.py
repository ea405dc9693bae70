"""
Session-scoped CSRF token guard.

One opaque token is issued per session and stored under ``csrfToken`` in the
session storage collaborator. Every guarded submission must echo it back. The
token lives for the whole session and is not rotated after use.

Storage backends:
- :class:`InMemorySessionStorage` for tests and non-HTTP callers
- :class:`FlaskSessionStorage` wrapping ``flask.session`` for the form API
"""

import hmac
import secrets
from typing import Callable, Dict, Optional, Protocol

import structlog
from flask import session

from zoo_portal.monitoring.logging import log_security_event
from zoo_portal.utils.exceptions import CSRFMismatchError

logger = structlog.get_logger(__name__)

CSRF_SESSION_KEY = 'csrfToken'


class SessionStorage(Protocol):
    """Key/value storage scoped to one client session."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemorySessionStorage:
    """Dictionary-backed session storage."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FlaskSessionStorage:
    """Session storage backed by the signed Flask session cookie."""

    def get(self, key: str) -> Optional[str]:
        return session.get(key)

    def set(self, key: str, value: str) -> None:
        session[key] = value

    def delete(self, key: str) -> None:
        session.pop(key, None)


def _generate_token() -> str:
    return secrets.token_urlsafe(32)


class CSRFGuard:
    """
    Issues and checks the per-session submission token.

    Args:
        storage: Session storage collaborator
        token_factory: Callable producing a fresh opaque token
        key: Storage key holding the token
    """

    def __init__(
        self,
        storage: SessionStorage,
        token_factory: Callable[[], str] = _generate_token,
        key: str = CSRF_SESSION_KEY
    ) -> None:
        self.storage = storage
        self.token_factory = token_factory
        self.key = key

    def issue(self) -> str:
        """
        Return the session token, generating and storing one only if absent.

        Repeated calls within a session return the same token.
        """
        token = self.storage.get(self.key)
        if token:
            return token

        token = self.token_factory()
        self.storage.set(self.key, token)
        logger.info("CSRF token issued", storage_key=self.key)
        return token

    def validate(self, submitted: Optional[str]) -> bool:
        """Return ``True`` only when ``submitted`` exactly matches the stored token."""
        stored = self.storage.get(self.key)
        if not stored or not submitted:
            return False
        return hmac.compare_digest(stored.encode('utf-8'), str(submitted).encode('utf-8'))

    def require(self, submitted: Optional[str]) -> None:
        """
        Raise :class:`CSRFMismatchError` unless ``submitted`` validates.

        Has no side effects on success or failure.
        """
        if self.validate(submitted):
            return

        log_security_event(
            'csrf_mismatch',
            token_present=bool(submitted),
            session_token_present=self.storage.get(self.key) is not None
        )
        raise CSRFMismatchError()

    def invalidate(self) -> None:
        """Drop the stored token so the next :meth:`issue` generates a new one."""
        self.storage.delete(self.key)
        logger.info("CSRF token invalidated", storage_key=self.key)


__all__ = [
    'CSRF_SESSION_KEY',
    'SessionStorage',
    'InMemorySessionStorage',
    'FlaskSessionStorage',
    'CSRFGuard',
]
