"""Session cookie storage for an authenticated Confluence client."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

SESSION_COOKIE_MARKER = "JSESSIONID"


@dataclass(frozen=True)
class SessionToken:
    """Session cookie handed out by the server."""

    name: str
    value: str

    @property
    def cookie_header(self) -> str:
        """Value for a ``Cookie`` request header."""
        return f"{self.name}={self.value}"


class SessionStore:
    """Holds at most one session token for a single client.

    The token is set by a successful bootstrap and cleared whenever a request
    comes back unauthorized. Requests read it when they are built, so a
    request already in flight keeps whatever token it was built with.
    """

    def __init__(self) -> None:
        self._token: Optional[SessionToken] = None

    @property
    def token(self) -> Optional[SessionToken]:
        return self._token

    def set(self, token: SessionToken) -> None:
        self._token = token
        logger.debug("Stored session cookie %s", token.name)

    def clear(self) -> None:
        if self._token is not None:
            logger.debug("Cleared session cookie %s", self._token.name)
        self._token = None

    def capture(self, response: httpx.Response) -> Optional[SessionToken]:
        """Store the first session cookie found in a response, if any."""
        for cookie in response.cookies.jar:
            if SESSION_COOKIE_MARKER in cookie.name and cookie.value is not None:
                token = SessionToken(cookie.name, cookie.value)
                self.set(token)
                return token
        logger.debug("No session cookie in response from %s", response.request.url)
        return None
