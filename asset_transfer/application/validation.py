"""Eligibility rules deciding whether a referenced asset may be transferred."""

import asyncio
import logging
import posixpath
from typing import Iterable, Optional, Tuple
from urllib.parse import urlsplit

from .domain import SiteClient


def get_extension(url: str) -> str:
    """Returns the lowercase file extension of a URL, without the dot."""
    path = urlsplit(url).path
    _, extension = posixpath.splitext(path)
    return extension.replace(".", "").lower()


def _normalize_path(path: str) -> str:
    return path.rstrip("/").lower()


class LocationValidator:
    """
    Checks a source asset URL against the extension policy and the site
    collection boundaries of the source and target.

    The rules run in order and stop at the first failure:

    1. blocked extensions are rejected,
    2. extensions outside the allow list are rejected,
    3. the asset must live inside the source site collection,
    4. source and target must be different site collections, unless
       ``allow_same_site_collection`` is set. An asset inside the target's
       own site collection is already reachable from the migrated page.
    """

    def __init__(
        self,
        source: SiteClient,
        target: SiteClient,
        blocked_extensions: Iterable[str],
        allowed_extensions: Iterable[str],
        allow_same_site_collection: bool = False,
    ):
        """Initializes the validator with both site bindings and the policy."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.source = source
        self.target = target
        self.blocked_extensions = {e.lower().lstrip(".") for e in blocked_extensions}
        self.allowed_extensions = {e.lower().lstrip(".") for e in allowed_extensions}
        self.allow_same_site_collection = allow_same_site_collection
        self._site_roots: Optional[Tuple[str, str]] = None
        self._site_roots_lock = asyncio.Lock()

    async def _get_site_roots(self) -> Tuple[str, str]:
        """Fetches both site collection root paths once per run."""
        async with self._site_roots_lock:
            if self._site_roots is None:
                source_site = await self.source.get_site_info()
                target_site = await self.target.get_site_info()
                self._site_roots = (
                    source_site.server_relative_url,
                    target_site.server_relative_url,
                )
        return self._site_roots

    async def is_eligible(self, source_url: str) -> bool:
        """
        Decides whether ``source_url`` may be transferred.

        Args:
            source_url: Root-relative URL of the referenced asset.

        Returns:
            True when every rule passes.

        Raises:
            InfrastructureError: If the site collection URLs cannot be fetched.
        """

        extension = get_extension(source_url)

        if extension in self.blocked_extensions:
            self.logger.debug(f"{source_url} has a blocked extension.")
            return False

        if extension not in self.allowed_extensions:
            self.logger.debug(f"{source_url} has no allowed extension.")
            return False

        source_root, target_root = await self._get_site_roots()

        if _normalize_path(source_root) not in source_url.lower():
            self.logger.debug(
                f"{source_url} is outside of source site collection {source_root}."
            )
            return False

        if (
            not self.allow_same_site_collection
            and _normalize_path(source_root) == _normalize_path(target_root)
        ):
            self.logger.debug(
                f"Source and target share site collection {source_root}."
            )
            return False

        return True
