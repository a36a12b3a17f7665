"""
FTP feed download.

ftplib is blocking, so each download runs in a worker thread.
"""

import asyncio
import ftplib
import io
import logging
import posixpath
import socket
from typing import Any, Dict

from catalog_sync.core.enums import TransportErrorKind
from catalog_sync.core.exceptions import TransportError
from .base import FeedTransport

logger = logging.getLogger(__name__)


class FtpFeedTransport(FeedTransport):
    def __init__(self, timeout: float = 120.0, ftp_factory=ftplib.FTP):
        self.timeout = timeout
        self.ftp_factory = ftp_factory

    def _download(self, credentials: Dict[str, Any], remote_path: str) -> bytes:
        host = credentials.get("host") or credentials.get("ftp_server")
        if not host:
            raise TransportError("FTP host is not configured", TransportErrorKind.AUTH.value)

        buffer = io.BytesIO()
        ftp = self.ftp_factory()
        try:
            ftp.connect(host, int(credentials.get("port") or 21), timeout=self.timeout)
            ftp.login(credentials.get("username", ""), credentials.get("password", ""))
            ftp.set_pasv(True)
            ftp.retrbinary(f"RETR {remote_path}", buffer.write)
        finally:
            self._disconnect(ftp)
        return buffer.getvalue()

    @staticmethod
    def _disconnect(ftp):
        # QUIT needs a live control connection; a failed connect leaves none
        if getattr(ftp, "sock", None) is None:
            ftp.close()
            return
        try:
            ftp.quit()
        except (ftplib.Error, OSError, EOFError):
            ftp.close()

    async def fetch_feed(self, capability, credentials: Dict[str, Any], feed_spec) -> bytes:
        base_path = credentials.get("base_path") or "/"
        remote_path = posixpath.join(base_path, feed_spec.path.lstrip("/"))
        logger.debug(f"Fetching {capability.slug} {feed_spec.feed_type.value} feed from ftp:{remote_path}")

        try:
            content = await asyncio.to_thread(self._download, credentials, remote_path)
        except ftplib.error_perm as e:
            code = str(e)[:3]
            if code == "530":
                raise TransportError(f"FTP login rejected for {capability.slug}", TransportErrorKind.AUTH.value) from e
            if code == "550":
                raise TransportError(f"FTP file not found: {remote_path}", TransportErrorKind.NOT_FOUND.value) from e
            raise TransportError(f"FTP error for {capability.slug}: {e}", TransportErrorKind.NOT_FOUND.value) from e
        except (ftplib.error_temp, socket.timeout, OSError, EOFError) as e:
            raise TransportError(f"FTP transfer failed for {capability.slug}: {e}",
                                 TransportErrorKind.TIMEOUT.value) from e

        logger.info(f"Downloaded {len(content)} bytes from {capability.slug} over FTP")
        return content
