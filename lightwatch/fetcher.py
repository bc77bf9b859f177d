import logging
from typing import Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from lightwatch.exceptions import HttpStatusError, TransportError

log = logging.getLogger(__name__)


class FeedClient:
    """
    HTTP client for the sensor feed.

    Wraps a requests.Session whose adapters have retries switched off: a
    failed poll is retried by the next scheduled tick, never inside the
    client. Connect and read timeouts are passed separately to requests so
    each phase is bounded on its own.

    fetch() returns the raw body bytes on HTTP 200 and raises
      - HttpStatusError for any other status
      - TransportError for connection, DNS and timeout failures
    The response is closed on every path.
    """

    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self._session = session or requests.Session()
        self._configure_retry()

    def fetch(self, url: str, connect_timeout: float, read_timeout: float) -> bytes:
        _validate_url(url)
        if connect_timeout <= 0 or read_timeout <= 0:
            raise ValueError(
                f"Timeouts must be positive (connect={connect_timeout}, read={read_timeout})"
            )

        log.debug("GET %s timeout=(%.1fs, %.1fs)", url, connect_timeout, read_timeout)
        try:
            with self._session.get(url, timeout=(connect_timeout, read_timeout)) as response:
                log.debug("HTTP response code: %d", response.status_code)
                if response.status_code != requests.codes.ok:
                    raise HttpStatusError(response.status_code)
                return response.content
        except requests.exceptions.RequestException as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------

    def _configure_retry(self) -> None:
        retry = Retry(total=0, raise_on_status=False)
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)


def _validate_url(url: str) -> None:
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Feed URL must be an absolute http(s) URL: {url!r}")
