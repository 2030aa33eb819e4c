"""Provisioning of the target folder that receives a page's assets."""

import asyncio
import logging
import posixpath
import re
from typing import Dict, Optional

from .domain import SiteClient
from .exceptions import InvalidPageNameError

PAGE_ASSETS_FOLDER = "SitePages"

# Characters SharePoint refuses in folder names.
_ILLEGAL_FOLDER_CHARS = re.compile(r'[~"#%&*:<>?/\\{|}]')


def to_folder_friendly_name(page_identifier: str) -> str:
    """
    Derives a folder name from a page identifier.

    The extension is dropped, spaces and illegal characters become hyphens,
    e.g. ``"My Great Page.aspx"`` -> ``"My-Great-Page"``.

    Raises:
        InvalidPageNameError: If nothing usable is left.
    """
    file_name = posixpath.basename(page_identifier.replace("\\", "/"))
    stem, _ = posixpath.splitext(file_name)
    friendly_name = _ILLEGAL_FOLDER_CHARS.sub("-", stem.replace(" ", "-"))
    friendly_name = friendly_name.strip(". \t")

    if not friendly_name:
        raise InvalidPageNameError(
            f"Page identifier {page_identifier!r} yields no folder name."
        )

    return friendly_name


class DestinationResolver:
    """Ensures SiteAssets/SitePages/<page> exists in the target web."""

    def __init__(self, target: SiteClient):
        """Initializes the resolver for the target web."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.target = target
        self._pages_folder: Optional[str] = None
        self._page_folders: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def _ensure_pages_folder(self) -> str:
        """Ensures SiteAssets/SitePages once; callers hold the lock."""
        if self._pages_folder is None:
            library_root = await self.target.ensure_site_assets_library()
            self._pages_folder = await self.target.ensure_folder(
                library_root, PAGE_ASSETS_FOLDER
            )
        return self._pages_folder

    async def ensure_destination(self, page_identifier: str) -> str:
        """
        Guarantee the asset folder for a page exists in the target web.

        Repeated calls for the same page return the same folder without
        creating anything new.

        Args:
            page_identifier: The page file name, e.g. ``"Home.aspx"``.

        Returns:
            The root-relative URL of the page's asset folder.

        Raises:
            InvalidPageNameError: If no folder name can be derived.
            InfrastructureError: If provisioning fails.
        """

        folder_name = to_folder_friendly_name(page_identifier)
        key = folder_name.lower()

        async with self._lock:
            if key not in self._page_folders:
                pages_folder = await self._ensure_pages_folder()
                page_folder = await self.target.ensure_folder(pages_folder, folder_name)
                self.logger.info(f"Asset folder for {page_identifier}: {page_folder}")
                self._page_folders[key] = page_folder

        return self._page_folders[key]
