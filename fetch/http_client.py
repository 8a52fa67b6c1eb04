import httpx
import logging
from typing import Dict, Optional

# Default timeout configuration (in seconds)
DEFAULT_TIMEOUT = 10.0
DEFAULT_CONNECT_TIMEOUT = 5.0


async def fetch_text(
    url: str,
    timeout: Optional[float] = None,
    connect_timeout: Optional[float] = None,
    headers: Optional[Dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """
    Download a text document (e.g. a ruleset published by a web server).

    Args:
        url: The URL to fetch
        timeout: Total request timeout in seconds (default: 10s)
        connect_timeout: Connection timeout in seconds (default: 5s)
        headers: Optional dictionary of HTTP headers
        transport: Optional httpx transport, used by tests to stub the server

    Returns:
        The response body decoded as text

    Raises:
        httpx.HTTPStatusError: the server answered with a non-2xx status
        httpx.RequestError: the request could not be completed
    """
    logger = logging.getLogger(__name__)
    logger.debug(f"HTTP GET {url} (timeout: {timeout or DEFAULT_TIMEOUT}s)")

    timeout_config = httpx.Timeout(
        timeout=timeout or DEFAULT_TIMEOUT,
        connect=connect_timeout or DEFAULT_CONNECT_TIMEOUT
    )

    try:
        async with httpx.AsyncClient(timeout=timeout_config, follow_redirects=True, transport=transport) as client:
            response = await client.get(url, headers=headers)
            response.raise_for_status()
            logger.debug(f"HTTP {response.status_code} {url} ({len(response.text)} bytes)")
            return response.text
    except httpx.HTTPStatusError as e:
        logger.warning(f"HTTP {e.response.status_code} for {url}")
        raise
    except httpx.TimeoutException as e:
        logger.warning(f"HTTP timeout for {url}: {e}")
        raise
    except httpx.RequestError as e:
        logger.warning(f"HTTP request error for {url}: {e}")
        raise
