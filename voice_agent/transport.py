"""
Completion transport over aiohttp.

Two kinds of request go out:
- the streamed turn request (`stream: true`), read back line by line
- short non-streaming transform requests used by condense/rewrite/expand

Both share one pooled ClientSession. Cancelling the task that iterates a
stream closes its response, which aborts the underlying connection.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, AsyncIterator, Dict, Optional

import aiohttp

from logging_setup import get_logger, Component

from .config import EngineConfig
from .errors import TransportError

logger = get_logger(Component.TRANSPORT)


class CompletionTransport:
    """POSTs completion payloads to the messages endpoint."""

    def __init__(self, config: EngineConfig, *, pool_size: int = 4):
        self._config = config
        self._pool_size = pool_size
        self._http_session: Optional[aiohttp.ClientSession] = None

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._config.api_key or "",
            "anthropic-version": self._config.api_version,
        }

    def _get_or_create_session(self) -> aiohttp.ClientSession:
        """Shared HTTP session; TCP connections are reused between turns."""
        if self._http_session is None or self._http_session.closed:
            connector = aiohttp.TCPConnector(
                limit=self._pool_size,
                limit_per_host=self._pool_size,
                ttl_dns_cache=300,
            )
            timeout = aiohttp.ClientTimeout(
                total=self._config.total_timeout,
                connect=self._config.connect_timeout,
            )
            self._http_session = aiohttp.ClientSession(connector=connector, timeout=timeout)
            logger.debug(
                "Transport connection pool created",
                pool_size=self._pool_size,
                connect_timeout_ms=int(self._config.connect_timeout * 1000),
            )
        return self._http_session

    async def stream_lines(self, payload: Dict[str, Any]) -> AsyncIterator[str]:
        """
        POST a streaming request and yield decoded response lines.

        Raises TransportError for non-200 responses and network failures.
        """
        session = self._get_or_create_session()
        t_start = time.perf_counter()
        try:
            async with session.post(self._config.api_url, json=payload, headers=self._headers()) as response:
                if response.status != 200:
                    body = await response.text()
                    logger.error(
                        "Completion stream rejected",
                        status_code=response.status,
                        error_text=body[:500],
                    )
                    raise TransportError(f"API error: {response.status}", status=response.status)

                logger.debug(
                    "Completion stream opened",
                    latency_ms=int((time.perf_counter() - t_start) * 1000),
                )
                async for raw in response.content:
                    yield raw.decode("utf-8", errors="replace")
        except aiohttp.ClientError as e:
            logger.warning("Completion stream failed", error=str(e), error_type=type(e).__name__)
            raise TransportError(f"Network error: {e}") from e
        except asyncio.TimeoutError as e:
            logger.warning("Completion stream timed out")
            raise TransportError("Network error: request timed out") from e

    async def complete(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a non-streaming request and return the decoded JSON body."""
        session = self._get_or_create_session()
        t_start = time.perf_counter()
        try:
            async with session.post(self._config.api_url, json=payload, headers=self._headers()) as response:
                if response.status != 200:
                    body = await response.text()
                    logger.warning(
                        "Completion request rejected",
                        status_code=response.status,
                        error_text=body[:500],
                    )
                    raise TransportError(f"API error: {response.status}", status=response.status)
                data = await response.json()
        except aiohttp.ClientError as e:
            raise TransportError(f"Network error: {e}") from e
        except asyncio.TimeoutError as e:
            raise TransportError("Network error: request timed out") from e

        logger.debug(
            "Completion request finished",
            latency_ms=int((time.perf_counter() - t_start) * 1000),
        )
        return data

    async def aclose(self) -> None:
        """Close the pooled HTTP session. Safe to call multiple times."""
        if self._http_session is not None:
            try:
                await self._http_session.close()
            finally:
                self._http_session = None
