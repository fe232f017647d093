from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from flavor_monk.utils.redaction import redact_secrets

logger = logging.getLogger("flavor_monk.http")


class ExternalAPIError(Exception):
    pass


async def post_json(
    url: str,
    payload: dict[str, Any],
    *,
    headers: dict[str, str] | None = None,
    timeout: float = 30.0,
    attempts: int = 3,
) -> dict[str, Any]:
    """POST a JSON body and return the decoded response, retrying transient failures.

    Server errors and transport failures are retried; client errors raise
    ``httpx.HTTPStatusError`` immediately.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential_jitter(initial=1, max=8),
        retry=retry_if_exception_type((httpx.TransportError, ExternalAPIError)),
        reraise=True,
    ):
        with attempt:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(url, json=payload, headers=headers)
            if response.status_code >= 500:
                logger.warning("Server error %s from %s", response.status_code, redact_secrets(url))
                raise ExternalAPIError(f"Server error {response.status_code}")
            if response.status_code >= 400:
                raise httpx.HTTPStatusError(
                    f"Client error {response.status_code} from {redact_secrets(url)}",
                    request=response.request,
                    response=response,
                )
            return response.json()
    raise ExternalAPIError("Unreachable")
