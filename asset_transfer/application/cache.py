"""
In-process memo of transferred assets.

One ``TransferCache`` lives for a whole migration run and is shared by every
engine and page worker, so that all references to the same asset converge on
a single copy and a single target URL.
"""

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Dict, List, Optional, Tuple

from .domain import AssetReference
from .exceptions import CacheError


def _key(source_asset_url: str, target_folder_url: str) -> Tuple[str, str]:
    """Case-insensitive (folder, source) cache key."""
    return target_folder_url.casefold(), source_asset_url.casefold()


class TransferCache:
    """Grow-only store of AssetReference entries with per-key reservations."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._entries: List[AssetReference] = []
        self._lock = asyncio.Lock()
        self._key_locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @contextlib.asynccontextmanager
    async def reserve(
        self, source_asset_url: str, target_folder_url: str
    ) -> AsyncIterator[None]:
        """
        Holds exclusive access to one (source, folder) key.

        Lookup, transfer and record for the same key must happen inside one
        reservation; other keys are not blocked.
        """
        async with self._lock:
            key_lock = self._key_locks.setdefault(
                _key(source_asset_url, target_folder_url), asyncio.Lock()
            )
        async with key_lock:
            yield

    async def lookup(
        self, source_asset_url: str, target_folder_url: str
    ) -> AssetReference:
        """
        Finds the entry for a source asset in a target folder.

        Returns:
            The recorded entry, or a fresh reference with an empty
            transferred URL when none exists.

        Raises:
            CacheError: If more than one entry matches.
        """
        key = _key(source_asset_url, target_folder_url)
        async with self._lock:
            matches = [
                entry for entry in self._entries
                if _key(entry.source_asset_url, entry.target_folder_url) == key
            ]

        if len(matches) > 1:
            raise CacheError(
                f"{len(matches)} cache entries for {source_asset_url} "
                f"in {target_folder_url}"
            )

        if matches:
            return matches[0]

        return AssetReference(
            source_asset_url=source_asset_url,
            target_folder_url=target_folder_url,
        )

    async def find_transferred(self, transferred_url: str) -> Optional[AssetReference]:
        """Returns the entry whose copy lives at ``transferred_url``, if any."""
        wanted = transferred_url.casefold()
        async with self._lock:
            for entry in self._entries:
                if entry.target_transferred_url.casefold() == wanted:
                    return entry
        return None

    async def record(self, entry: AssetReference) -> bool:
        """
        Adds a transferred entry unless its key or its transferred URL is
        already known.

        Returns:
            True when the entry was added.
        """
        key = _key(entry.source_asset_url, entry.target_folder_url)
        transferred = entry.target_transferred_url.casefold()

        async with self._lock:
            for existing in self._entries:
                if _key(existing.source_asset_url, existing.target_folder_url) == key:
                    return False
                if existing.target_transferred_url.casefold() == transferred:
                    self.logger.warning(
                        f"{entry.source_asset_url} and "
                        f"{existing.source_asset_url} were both copied to "
                        f"{existing.target_transferred_url}; keeping the first."
                    )
                    return False
            self._entries.append(entry)

        return True
