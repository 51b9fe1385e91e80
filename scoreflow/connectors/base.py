"""Base interface for connectors.

Connectors encapsulate the logic for retrieving raw score data.
Subclasses must implement :meth:`BaseConnector.fetch`, which returns
the bytes of the file named by ``path`` or raises
:class:`~scoreflow.errors.FetchError`.
"""

from __future__ import annotations


class BaseConnector:
    """Abstract base class for all connectors."""

    def fetch(self, path: str) -> bytes:
        """Return the raw bytes stored under ``path``.

        A single attempt is made; implementations do not retry.
        """
        raise NotImplementedError

    def can_fetch(self, path: str) -> bool:
        """Return ``True`` if this connector is responsible for ``path``."""
        return True
