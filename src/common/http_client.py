"""Shared async HTTP helpers used by registry clients.

Encapsulates session construction and DEBUG request/response traces so the
registry modules only deal with status codes.
"""
from __future__ import annotations

import logging

import aiohttp

from common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from constants import Constants

logger = logging.getLogger(__name__)


def create_session(limit: int = Constants.DEFAULT_CONCURRENCY) -> aiohttp.ClientSession:
    """Create a client session whose connection pool matches ``limit``."""
    connector = aiohttp.TCPConnector(limit=max(1, limit))
    return aiohttp.ClientSession(
        connector=connector,
        headers={"User-Agent": Constants.USER_AGENT},
    )


async def head_status(
    session: aiohttp.ClientSession,
    url: str,
    *,
    context: str,
    timeout: float = Constants.PROBE_TIMEOUT_SEC,
) -> int:
    """Issue a HEAD request and return its status code.

    Network errors and timeouts propagate as ``aiohttp.ClientError`` or
    ``asyncio.TimeoutError``; callers decide how to classify them.
    """
    safe_target = safe_url(url)
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action="HEAD",
                    target=safe_target,
                    context=context,
                ),
            )
        async with session.head(
            url,
            timeout=aiohttp.ClientTimeout(total=timeout),
            allow_redirects=True,
        ) as response:
            status = response.status
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="HEAD",
                    status_code=status,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                    context=context,
                ),
            )
    return status
