from abc import ABC, abstractmethod
from typing import Any, Dict


class FeedTransport(ABC):
    """Fetches the raw bytes of one supplier feed."""

    @abstractmethod
    async def fetch_feed(self, capability, credentials: Dict[str, Any], feed_spec) -> bytes:
        """
        Download a feed.

        Raises:
            TransportError: kind 'timeout' (retryable), 'auth' or 'not_found'
        """
        pass
