"""Connector for score files published on the web.

Blocks may name a score by absolute ``http``/``https`` URL, for example
one of the sample files in the Verovio or MEI repositories.  The
connector issues one GET per call through a shared
:class:`requests.Session`; there is no caching and no retry.
"""

from __future__ import annotations

import logging
from urllib.parse import urlparse

import requests

from ..errors import FetchError
from .base import BaseConnector

logger = logging.getLogger(__name__)


def is_url(path: str) -> bool:
    """Return ``True`` if ``path`` is an absolute http(s) URL."""
    parsed = urlparse(path.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class HttpConnector(BaseConnector):
    """Fetch score data over HTTP.

    :param timeout: Seconds before a request is abandoned.
    :param user_agent: Value of the ``User-Agent`` header.
    """

    def __init__(self, timeout: float = 30, user_agent: str = "scoreflow/0.1") -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self.session = requests.Session()

    def can_fetch(self, path: str) -> bool:
        return is_url(path)

    def fetch(self, path: str) -> bytes:
        """Send a GET request and return the response body.

        :raises FetchError: on transport errors or a non-success status.
        """
        url = path.strip()
        try:
            resp = self.session.get(
                url,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise FetchError(f"Network request for {url} failed: {exc}") from exc
        if not resp.ok:
            raise FetchError(
                f"Network response was not ok: {resp.status_code} {resp.reason} for {url}"
            )
        logger.debug("Fetched %d bytes from %s", len(resp.content), url)
        return resp.content
