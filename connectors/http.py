"""Shared HTTP plumbing for source connectors.

Handles JSON requests with timeouts, retries with exponential backoff, and
maps HTTP failures to a small exception hierarchy.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import aiohttp

logger = logging.getLogger(__name__)


class SourceApiError(Exception):
    """Base exception for external source API errors."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class SourceAuthenticationError(SourceApiError):
    """Authentication failed (401/403 or rejected credentials)."""
    pass


class SourceNotFoundError(SourceApiError):
    """Resource not found (404)."""
    pass


class SourceRateLimitError(SourceApiError):
    """Rate limit exceeded (429)."""
    def __init__(self, message: str, retry_after: int = 60):
        super().__init__(message, 429)
        self.retry_after = retry_after


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 60.0  # seconds
    exponential_base: float = 2.0
    retry_on_status: Tuple[int, ...] = (429, 500, 502, 503, 504)

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for retry attempt (exponential backoff)."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        return min(delay, self.max_delay)


async def request_json(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    retry_config: RetryConfig,
    timeout_seconds: int = 30,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, str]] = None,
    json_body: Optional[Any] = None,
) -> Any:
    """Make a JSON request with automatic retries.

    Raises:
        SourceAuthenticationError: 401/403
        SourceNotFoundError: 404
        SourceRateLimitError: 429 after all retries
        SourceApiError: Any other failure, including unparseable bodies
    """
    last_error: Optional[Exception] = None
    timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    for attempt in range(retry_config.max_retries + 1):
        try:
            async with session.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json_body,
                timeout=timeout,
            ) as response:
                response_text = await response.text()

                if response.status < 400:
                    if response.status == 204 or not response_text:
                        return None
                    try:
                        return json.loads(response_text)
                    except json.JSONDecodeError:
                        raise SourceApiError(
                            f"Response from {url} is not valid JSON",
                            response.status,
                            response_text[:500],
                        )

                if response.status in (401, 403):
                    raise SourceAuthenticationError(
                        f"Authentication failed: {response_text}",
                        response.status,
                        response_text,
                    )

                if response.status == 404:
                    raise SourceNotFoundError(
                        f"Resource not found: {url}",
                        response.status,
                        response_text,
                    )

                if response.status == 429:
                    retry_after = int(response.headers.get("Retry-After", 60))
                    if attempt < retry_config.max_retries:
                        delay = min(retry_after, retry_config.max_delay)
                        logger.warning(f"Rate limited, waiting {delay}s...")
                        await asyncio.sleep(delay)
                        continue
                    raise SourceRateLimitError("Rate limit exceeded", retry_after)

                if response.status in retry_config.retry_on_status:
                    if attempt < retry_config.max_retries:
                        delay = retry_config.get_delay(attempt)
                        logger.warning(
                            f"Request failed with {response.status}, "
                            f"retrying in {delay:.1f}s (attempt {attempt + 1}/{retry_config.max_retries})"
                        )
                        await asyncio.sleep(delay)
                        continue

                raise SourceApiError(
                    f"API error {response.status}: {response_text}",
                    response.status,
                    response_text,
                )

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            last_error = e
            if attempt < retry_config.max_retries:
                delay = retry_config.get_delay(attempt)
                logger.warning(
                    f"Request failed with {type(e).__name__}: {e}, "
                    f"retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
                continue
            raise SourceApiError(
                f"Request failed after {retry_config.max_retries} retries: {type(e).__name__}: {e}"
            ) from e

    raise SourceApiError(f"Request failed: {last_error}")
