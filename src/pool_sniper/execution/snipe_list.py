"""
Snipe list - an allow-list of base mints.

When snipe-list mode is on, only pools whose base mint appears in the list
are bought. The list is a plain text file with one mint per line; it is
re-read periodically so it can be edited while the bot runs.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import FrozenSet, Union

logger = logging.getLogger(__name__)

DEFAULT_SNIPE_LIST_PATH = "snipe-list.txt"


class SnipeListCache:
    """
    In-memory copy of the snipe list file.

    Usage:
        snipe_list = SnipeListCache("snipe-list.txt")
        snipe_list.refresh()

        if snipe_list.is_in_list(mint):
            ...
    """

    def __init__(self, path: Union[str, Path] = DEFAULT_SNIPE_LIST_PATH) -> None:
        self._path = Path(path)
        self._mints: FrozenSet[str] = frozenset()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def mints(self) -> FrozenSet[str]:
        return self._mints

    def refresh(self) -> int:
        """
        Reload the list from disk.

        A missing or unreadable file keeps the previous contents.

        Returns:
            Number of mints in the list after the reload
        """
        try:
            text = self._path.read_text()
        except OSError as e:
            logger.warning(f"Could not read snipe list {self._path}: {e}")
            return len(self._mints)

        mints = frozenset(line.strip() for line in text.splitlines() if line.strip())
        if mints != self._mints:
            logger.info(f"Snipe list updated: {len(mints)} mints")
        self._mints = mints
        return len(mints)

    def is_in_list(self, mint: str) -> bool:
        return mint in self._mints

    def __len__(self) -> int:
        return len(self._mints)
