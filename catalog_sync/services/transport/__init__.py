from catalog_sync.core.config import get_settings
from catalog_sync.core.enums import TransportKind
from .base import FeedTransport
from .http_transport import HttpFeedTransport
from .ftp_transport import FtpFeedTransport


class SupplierTransport(FeedTransport):
    """Routes each fetch to the FTP or HTTP transport declared by the supplier."""

    def __init__(self, http: FeedTransport, ftp: FeedTransport):
        self.transports = {TransportKind.HTTP: http, TransportKind.FTP: ftp}

    async def fetch_feed(self, capability, credentials, feed_spec) -> bytes:
        return await self.transports[capability.transport].fetch_feed(capability, credentials, feed_spec)


def default_transport() -> SupplierTransport:
    settings = get_settings()
    return SupplierTransport(
        http=HttpFeedTransport(timeout=settings.SYNC_HTTP_TIMEOUT_SECONDS),
        ftp=FtpFeedTransport(timeout=settings.SYNC_FTP_TIMEOUT_SECONDS),
    )


__all__ = ["FeedTransport", "HttpFeedTransport", "FtpFeedTransport", "SupplierTransport", "default_transport"]
