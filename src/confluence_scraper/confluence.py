"""Confluence input: lazily built client and per-space record mapping."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx

from . import config as cfg
from .accumulator import Accumulator
from .http_client import ConfluenceClient, build_http_client
from .models import Space

logger = logging.getLogger(__name__)

MEASUREMENT_SPACE = "confluence_space"


class ConfluenceInput:
    """Gathers space data for one configured Confluence target."""

    def __init__(self, target: cfg.TargetConfig):
        """Create an input for a target.

        Args:
            target: Target configuration.
        """
        self.target = target
        self.client: Optional[ConfluenceClient] = None
        self._init_lock = asyncio.Lock()

    async def gather(self, acc: Accumulator) -> None:
        """Run one gather cycle, building and initializing the client first if needed.

        Raises:
            Exception: Any transport or initialization failure on first use.
        """
        async with self._init_lock:
            if self.client is None:
                http_client = build_http_client(self.target)
                await self.initialize(http_client)
        await self.gather_spaces_data(acc)

    async def initialize(self, http_client: httpx.AsyncClient) -> None:
        """Construct the client on top of ``http_client`` and initialize it.

        The client is kept only if initialization succeeds; otherwise the
        transport is closed and the next cycle starts over.
        """
        client = ConfluenceClient(
            http_client,
            self.target.url,
            self.target.username,
            self.target.password,
            max_connections=self.target.max_connections,
            timeout=self.target.timeout_seconds,
        )
        try:
            await client.initialize()
        except BaseException:
            await client.close()
            raise
        self.client = client

    def gather_space_data(self, space: Space, acc: Accumulator) -> None:
        """Report one space as a ``confluence_space`` record.

        Raises:
            ValueError: If the space has no name.
        """
        if space.name == "":
            raise ValueError("error empty space name")
        parsed = urlparse(self.target.url)
        tags = {
            "source": parsed.hostname or "",
            "port": str(parsed.port) if parsed.port is not None else "",
        }
        fields: Dict[str, Any] = {
            "id": space.id,
            "key": space.key,
            "name": space.name,
            "type": space.type,
            "webui": space.links.webui,
            "self": space.links.self_,
        }
        acc.report_fields(MEASUREMENT_SPACE, fields, tags)

    async def gather_spaces_data(self, acc: Accumulator) -> None:
        """Fetch all spaces and report each; failures are reported, not raised."""
        if self.client is None:
            raise RuntimeError("client not initialized")
        try:
            response = await self.client.get_all_spaces()
        except Exception as exc:
            logger.warning("Fetching spaces from %s failed: %s", self.target.url, exc)
            acc.report_error(exc)
            return
        logger.debug(
            "Fetched %s spaces from %s", len(response.results), self.target.url
        )
        for space in response.results:
            try:
                self.gather_space_data(space, acc)
            except ValueError as exc:
                acc.report_error(exc)

    async def close(self) -> None:
        """Close the client's transport, if one was created."""
        if self.client is not None:
            await self.client.close()
            self.client = None
