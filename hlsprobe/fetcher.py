"""
Playlist fetcher for hlsprobe.

Downloads playlist bodies over HTTP(S) with caching disabled, so every live
refresh sees the origin's current window. All transport problems are
reported as FetchError subclasses; there are no retries at this layer.
"""

import logging
from typing import Dict, Optional

import requests

from .errors import FetchTimeout, HTTPStatusError, NotAPlaylistError, TransportError
from .models import TrackerConfig
from .utils import is_hls_playlist, short_url

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Cache-Control": "max-age=0, no-cache",
    "Pragma": "no-cache",
    "Accept": "application/vnd.apple.mpegurl, application/x-mpegurl, */*",
}


class PlaylistFetcher:
    """
    Fetch HLS playlists with a shared requests.Session.

    Example:
        >>> fetcher = PlaylistFetcher(timeout=5)
        >>> body = fetcher.fetch("https://example.com/live/index.m3u8")  # doctest: +SKIP
    """

    def __init__(
        self,
        timeout: float = 10.0,
        verify_ssl: bool = True,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            timeout: Request timeout in seconds (default: 10)
            verify_ssl: Whether to verify SSL certificates (default: True)
            headers: Extra request headers, merged over the no-cache defaults
            session: Optional pre-configured requests.Session
        """
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.session = session or requests.Session()
        self.headers = dict(DEFAULT_HEADERS)
        if headers:
            self.headers.update(headers)
        self.last_status: Optional[int] = None

    @classmethod
    def from_config(cls, config: TrackerConfig) -> "PlaylistFetcher":
        return cls(timeout=config.fetch_timeout, verify_ssl=config.verify_ssl, headers=config.headers)

    def fetch(self, url: str) -> str:
        """
        Fetch a playlist body.

        Args:
            url: Absolute playlist URL

        Returns:
            Playlist text

        Raises:
            FetchTimeout: The request did not complete within the timeout
            HTTPStatusError: The server answered with a non-2xx status
            NotAPlaylistError: The body does not start with #EXTM3U
            TransportError: Any other network failure
        """
        logger.debug(f"Fetching playlist {short_url(url)}")
        try:
            response = self.session.get(url, headers=self.headers, timeout=self.timeout, verify=self.verify_ssl)
        except requests.exceptions.Timeout as e:
            self.last_status = None
            raise FetchTimeout(f"Timed out after {self.timeout}s", url=url) from e
        except requests.exceptions.RequestException as e:
            self.last_status = None
            raise TransportError(f"Request failed: {str(e)}", url=url) from e

        self.last_status = response.status_code
        if not 200 <= response.status_code < 300:
            raise HTTPStatusError(response.status_code, url=url, reason=response.reason or "")

        response.encoding = response.encoding or "utf-8"
        body = response.text
        if not is_hls_playlist(body):
            raise NotAPlaylistError("Response is not an HLS playlist (missing #EXTM3U)", url=url)

        logger.debug(f"Fetched {len(body)} chars from {short_url(url)} (HTTP {response.status_code})")
        return body

    def close(self) -> None:
        self.session.close()
