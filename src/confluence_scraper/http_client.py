"""Confluence REST client: request building, gated fetches and session handling."""

from __future__ import annotations

import base64
import logging
import ssl
from typing import Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel

from . import config as cfg
from .gate import ConcurrencyGate
from .models import SpaceResponse
from .session import SessionStore, SessionToken

logger = logging.getLogger(__name__)

SPACE_PATH = "/rest/api/space"
MAX_REDIRECTS = 10

ModelT = TypeVar("ModelT", bound=BaseModel)


class APIError(Exception):
    """Non-success HTTP outcome returned by the Confluence API."""

    def __init__(
        self, url: str, status_code: int, title: str, description: str = ""
    ):
        """Create an API error.

        Args:
            url: Requested URL.
            status_code: HTTP status code of the response.
            title: Status line, e.g. ``"401 Unauthorized"``.
            description: Optional detail text.
        """
        self.url = url
        self.status_code = status_code
        self.title = title
        self.description = description
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.description:
            return f"[{self.url}] {self.title}: {self.description}"
        return f"[{self.url}] {self.title}"


def basic_auth_header(username: str, password: str) -> str:
    """Encode credentials for an HTTP basic ``Authorization`` header."""
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode(
        "utf-8"
    )
    return f"Basic {token}"


def build_get_request(
    url: str,
    username: str,
    password: str,
    session_token: Optional[SessionToken],
    timeout: Optional[float] = None,
) -> httpx.Request:
    """Build a GET request for the Confluence API.

    Args:
        url: Absolute request URL.
        username: Basic auth username; ignored unless password is also set.
        password: Basic auth password; ignored unless username is also set.
        session_token: Session cookie to attach, if any.
        timeout: Per-request timeout in seconds; None disables it.

    Returns:
        httpx.Request: Request ready to be sent.

    Raises:
        httpx.InvalidURL: If the URL is not an absolute http(s) URL.
    """
    parsed = httpx.URL(url)
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise httpx.InvalidURL(f"Invalid request URL {url!r}")
    headers: Dict[str, str] = {"Accept": "application/json"}
    if username and password:
        headers["Authorization"] = basic_auth_header(username, password)
    if session_token is not None:
        headers["Cookie"] = session_token.cookie_header
    return httpx.Request(
        "GET",
        parsed,
        headers=headers,
        extensions={"timeout": httpx.Timeout(timeout).as_dict()},
    )


def _status_line(response: httpx.Response) -> str:
    return f"{response.status_code} {response.reason_phrase}".strip()


def build_ssl_context(tls: cfg.TlsConfig) -> ssl.SSLContext:
    """Create the SSL context used for a target's connections."""
    context = ssl.create_default_context(cafile=tls.caFile)
    if tls.certFile:
        context.load_cert_chain(tls.certFile, tls.keyFile)
    if tls.insecureSkipVerify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def build_http_client(target: cfg.TargetConfig) -> httpx.AsyncClient:
    """Create the shared transport for one target.

    Raises:
        ValueError: If the TLS settings cannot be loaded.
    """
    try:
        context = build_ssl_context(target.tls)
    except (OSError, ssl.SSLError) as exc:
        raise ValueError(
            f"error parse confluence config[{target.url}]: {exc}"
        ) from exc
    limits = httpx.Limits(max_keepalive_connections=target.max_connections)
    return httpx.AsyncClient(
        verify=context, timeout=target.timeout_seconds, limits=limits
    )


class ConfluenceClient:
    """Gated, session-aware client for one Confluence instance.

    The session token and the concurrency gate belong to this instance
    alone. All requests, including the bootstrap, pass through the gate.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        username: str = "",
        password: str = "",
        max_connections: int = cfg.DEFAULT_MAX_CONNECTIONS,
        timeout: Optional[float] = None,
    ):
        """Create a client.

        Args:
            http_client: Transport shared by all requests of this client.
            base_url: Confluence root URL.
            username: Basic auth username.
            password: Basic auth password.
            max_connections: Gate capacity; non-positive means the default.
            timeout: Per-request timeout in seconds.
        """
        if max_connections <= 0:
            max_connections = cfg.DEFAULT_MAX_CONNECTIONS
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.username = username
        self._password = password
        self.timeout = timeout
        self.session = SessionStore()
        self.gate = ConcurrencyGate(max_connections)

    async def initialize(self) -> None:
        """Obtain a session cookie and validate access with a warm-up fetch.

        A missing session cookie is not an error. Errors from the warm-up
        fetch propagate; nothing is retried.
        """
        request = build_get_request(
            self.base_url, self.username, self._password, None, timeout=self.timeout
        )
        async with self.gate.slot():
            logger.debug("HTTP GET %s (session bootstrap)", request.url)
            response = await self._send(request, None)
        self.session.capture(response)
        await self.do_get(SPACE_PATH, SpaceResponse)
        logger.info("Initialized Confluence client for %s", self.base_url)

    async def _send(
        self, request: httpx.Request, session_token: Optional[SessionToken]
    ) -> httpx.Response:
        """Send ``request``, following redirects with headers rebuilt per hop.

        The transport's cookie jar is never consulted, so only the session
        token passed in is sent. Credentials and the token are forwarded only
        while the redirect stays on the original host.
        """
        origin = request.url.host
        for _ in range(MAX_REDIRECTS + 1):
            response = await self.http_client.send(request, follow_redirects=False)
            if not response.is_redirect:
                return response
            location = request.url.join(response.headers["Location"])
            same_host = location.host == origin
            logger.debug("HTTP GET %s (redirected from %s)", location, request.url)
            request = build_get_request(
                str(location),
                self.username if same_host else "",
                self._password if same_host else "",
                session_token if same_host else None,
                timeout=self.timeout,
            )
        raise httpx.TooManyRedirects(
            f"Exceeded {MAX_REDIRECTS} redirects", request=request
        )

    async def do_get(self, path: str, model: Type[ModelT]) -> ModelT:
        """GET ``path`` and decode the JSON body into ``model``.

        Raises:
            APIError: On 401 (after clearing the session), any non-2xx
                status, or 204.
            httpx.TransportError: Connection or timeout failures, unchanged.
            httpx.TooManyRedirects: More than ``MAX_REDIRECTS`` hops.
            json.JSONDecodeError: Malformed response body.
            pydantic.ValidationError: Body does not fit ``model``.
        """
        url = self.base_url + path
        token = self.session.token
        request = build_get_request(
            url, self.username, self._password, token, timeout=self.timeout
        )
        async with self.gate.slot():
            logger.debug("HTTP GET %s", url)
            response = await self._send(request, token)
            status = response.status_code
            if status == httpx.codes.UNAUTHORIZED:
                self.session.clear()
                raise APIError(url, status, _status_line(response))
            if status < 200 or status >= 300:
                raise APIError(url, status, _status_line(response))
            if status == httpx.codes.NO_CONTENT:
                raise APIError(url, status, _status_line(response))
            payload = response.json()
            return model.model_validate(payload)

    async def get_all_spaces(self) -> SpaceResponse:
        """Fetch the space collection."""
        return await self.do_get(SPACE_PATH, SpaceResponse)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.http_client.aclose()
