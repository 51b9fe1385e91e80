"""Connector for score files stored in the local vault.

The vault is the directory that relative block paths are resolved
against; for the document viewer that is the configured
``storage.vault_dir``.  Besides reading files, the connector can hand a
file to the operating system's default application ("open
externally").  That only exists on desktop platforms; elsewhere it
raises :class:`~scoreflow.errors.UnsupportedPlatformError`, which the
controller shows as a notice.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Optional, Union

from ..errors import FetchError, UnsupportedPlatformError
from .base import BaseConnector

logger = logging.getLogger(__name__)

#: ``sys.platform`` values without a desktop shell to open files with.
MOBILE_PLATFORMS = ("android", "ios", "emscripten", "wasi")


def is_desktop(platform: Optional[str] = None) -> bool:
    platform = platform or sys.platform
    return not platform.startswith(MOBILE_PLATFORMS)


class VaultConnector(BaseConnector):
    """Read score files below a root directory.

    :param vault_dir: Root directory; relative paths are resolved here.
    """

    def __init__(self, vault_dir: Union[str, os.PathLike] = ".") -> None:
        self.vault_dir = Path(vault_dir).expanduser().resolve()

    def resolve(self, path: str) -> Path:
        """Return the absolute path of a vault file.

        :raises FetchError: if the path leaves the vault or is not a file.
        """
        candidate = (self.vault_dir / path.strip()).resolve()
        try:
            candidate.relative_to(self.vault_dir)
        except ValueError:
            raise FetchError(f"Path is outside the vault: {path}") from None
        if not candidate.is_file():
            raise FetchError(f"File not found or not a valid file: {path}")
        return candidate

    def fetch(self, path: str) -> bytes:
        resolved = self.resolve(path)
        try:
            data = resolved.read_bytes()
        except OSError as exc:
            raise FetchError(f"Could not read {path}: {exc}") from exc
        logger.debug("Read %d bytes from %s", len(data), resolved)
        return data

    def full_path(self, path: str) -> str:
        return str(self.resolve(path))

    def open_externally(self, path: str, platform: Optional[str] = None) -> None:
        """Open a vault file with the system's default application.

        :raises UnsupportedPlatformError: on non-desktop platforms.
        :raises FetchError: if the file does not exist.
        """
        platform = platform or sys.platform
        if not is_desktop(platform):
            raise UnsupportedPlatformError("Opening files externally is not supported on mobile.")
        target = self.full_path(path)
        logger.info("Opening %s externally", target)
        if platform == "win32":
            os.startfile(target)  # type: ignore[attr-defined]
        elif platform == "darwin":
            subprocess.Popen(["open", target])
        else:
            subprocess.Popen(["xdg-open", target])
