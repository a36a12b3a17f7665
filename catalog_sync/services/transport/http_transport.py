"""
HTTP(S) feed download for API-based suppliers.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from catalog_sync.core.enums import TransportErrorKind
from catalog_sync.core.exceptions import TransportError
from .base import FeedTransport

logger = logging.getLogger(__name__)


class HttpFeedTransport(FeedTransport):
    def __init__(self, timeout: float = 120.0, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self._client = client

    def _build_request(self, capability, credentials: Dict[str, Any], feed_spec):
        base_url = credentials.get("base_url") or capability.base_url or ""
        url = f"{base_url.rstrip('/')}/{feed_spec.path.lstrip('/')}"

        headers = {"Accept": "*/*"}
        headers.update(credentials.get("headers") or {})
        params = dict(feed_spec.params)
        params.update(credentials.get("params") or {})

        auth = None
        token = credentials.get(capability.auth_header) if capability.auth_header else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        elif credentials.get("username") and credentials.get("password"):
            auth = (credentials["username"], credentials["password"])

        return url, headers, params, auth

    async def fetch_feed(self, capability, credentials: Dict[str, Any], feed_spec) -> bytes:
        url, headers, params, auth = self._build_request(capability, credentials, feed_spec)
        logger.debug(f"Fetching {capability.slug} {feed_spec.feed_type.value} feed from {url}")

        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers, params=params, auth=auth)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    response = await client.get(url, headers=headers, params=params, auth=auth)
        except httpx.TimeoutException as e:
            raise TransportError(f"Timed out fetching {url}: {str(e)}", TransportErrorKind.TIMEOUT.value) from e
        except httpx.RequestError as e:
            raise TransportError(f"Network error fetching {url}: {str(e)}", TransportErrorKind.TIMEOUT.value) from e

        status = response.status_code
        if status in (401, 403):
            raise TransportError(f"{capability.slug} rejected credentials ({status})", TransportErrorKind.AUTH.value)
        if status == 404:
            raise TransportError(f"Feed not found at {url}", TransportErrorKind.NOT_FOUND.value)
        if status >= 500 or status == 429:
            raise TransportError(f"{capability.slug} returned {status}", TransportErrorKind.TIMEOUT.value)
        if status >= 400:
            raise TransportError(f"{capability.slug} returned {status}: {response.text[:200]}",
                                 TransportErrorKind.NOT_FOUND.value)

        logger.info(f"Downloaded {len(response.content)} bytes from {capability.slug}")
        return response.content
