"""Connector registry for scoreflow.

Connectors are pluggable score sources.  :class:`DataFetcher` routes a
block path to the first connector that accepts it: absolute
``http``/``https`` URLs go to :class:`HttpConnector`, everything else to
:class:`VaultConnector`.

Configuration example (config_default_settings.json)::

    {
        "storage": {"vault_dir": "~/Documents/scores"},
        "http": {"timeout": 30, "user_agent": "scoreflow/0.1"}
    }
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..errors import FetchError
from .base import BaseConnector
from .http import HttpConnector, is_url
from .vault import VaultConnector, is_desktop

logger = logging.getLogger(__name__)

__all__ = [
    "BaseConnector",
    "HttpConnector",
    "VaultConnector",
    "DataFetcher",
    "get_default_fetcher",
    "is_url",
    "is_desktop",
]


class DataFetcher(BaseConnector):
    """Dispatch ``fetch`` calls to the connector responsible for a path."""

    def __init__(self, http: HttpConnector, vault: VaultConnector) -> None:
        self.http = http
        self.vault = vault
        self.connectors: List[BaseConnector] = [http, vault]

    def fetch(self, path: str) -> bytes:
        path = path.strip()
        for connector in self.connectors:
            if connector.can_fetch(path):
                return connector.fetch(path)
        raise FetchError(f"No connector can load {path}")


def get_default_fetcher(
    storage: Optional[Dict[str, Any]] = None,
    http: Optional[Dict[str, Any]] = None,
) -> DataFetcher:
    """Build a :class:`DataFetcher` from the ``storage`` and ``http`` config sections."""
    storage = storage or {}
    http = http or {}
    vault = VaultConnector(storage.get("vault_dir", "."))
    web = HttpConnector(
        timeout=http.get("timeout", 30),
        user_agent=http.get("user_agent", "scoreflow/0.1"),
    )
    logger.info("Using vault %s", vault.vault_dir)
    return DataFetcher(web, vault)
