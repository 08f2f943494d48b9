"""HTTP helpers shared by the cloud providers."""

import asyncio
import json
from collections.abc import Mapping
from typing import Any

import aiohttp

from qadash.results_store.errors import StorageError


async def send_request(
    method: str,
    url: str,
    *,
    error_cls: type[StorageError],
    action: str,
    timeout: float,
    expected: tuple[int, ...] = (200,),
    token: str | None = None,
    headers: Mapping[str, str] | None = None,
    **kwargs: Any,
) -> tuple[int, bytes]:
    """Send one request and return its status and body.

    Args:
        method: HTTP method
        url: Request URL
        error_cls: Error raised on failure
        action: Short description used in error messages
        timeout: Total request timeout in seconds
        expected: Statuses treated as success
        token: Bearer token, if any
        headers: Extra request headers
        **kwargs: Passed through to aiohttp (params, json, data)

    Returns:
        Tuple of (status, body)

    Raises:
        StorageError: Instance of error_cls for unexpected statuses, network
            errors and timeouts

    """
    request_headers = dict(headers or {})
    if token is not None:
        request_headers["Authorization"] = f"Bearer {token}"

    try:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=timeout)
        ) as session:
            async with session.request(
                method, url, headers=request_headers, **kwargs
            ) as response:
                body = await response.read()
                if response.status not in expected:
                    text = body.decode(errors="replace")
                    raise error_cls(f"Failed to {action}: {response.status} {text}")
                return response.status, body
    except asyncio.TimeoutError as e:
        raise error_cls(f"Failed to {action}: timed out after {timeout}s") from e
    except aiohttp.ClientError as e:
        raise error_cls(f"Failed to {action}: {e}") from e


def decode_json(
    body: bytes, *, error_cls: type[StorageError], action: str
) -> Mapping[str, Any]:
    """Decode a JSON object response body."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise error_cls(f"Failed to {action}: invalid JSON response") from e

    if not isinstance(data, dict):
        raise error_cls(f"Failed to {action}: unexpected response shape")
    return data
