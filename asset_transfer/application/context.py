"""Resolution of the web (sub-site) that hosts a given asset."""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlsplit

from .domain import BoundContext
from .exceptions import ContextResolutionError, InfrastructureError


def find_hosting_web(source_url: str, web_urls: Sequence[str]) -> Optional[str]:
    """
    Picks the web whose root-relative path is contained in ``source_url``.

    Candidates are tried longest first so a nested sub-site wins over its
    parent. Returns the absolute URL of the match, or None.
    """
    lowered = source_url.lower()
    for web_url in sorted(web_urls, key=len, reverse=True):
        relative_path = urlsplit(web_url).path
        if relative_path.lower() in lowered:
            return web_url
    return None


class SiteContextResolver:
    """Rebinds a source context to the sub-site that actually hosts an asset."""

    def __init__(self):
        """Initializes the resolver with an empty web enumeration cache."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self._web_urls: Dict[str, List[str]] = {}
        self._lock = asyncio.Lock()

    async def _get_web_urls(self, context: BoundContext) -> List[str]:
        """Enumerates every web of the site collection, once per collection."""
        site = await context.client.get_site_info()
        key = site.url.lower()
        async with self._lock:
            if key not in self._web_urls:
                self.logger.info(f"Enumerating sub-sites of {site.url}...")
                self._web_urls[key] = await context.client.get_all_web_urls(site.url)
                self.logger.info(
                    f"Found {len(self._web_urls[key])} webs in {site.url}."
                )
        return self._web_urls[key]

    async def resolve(self, context: BoundContext, source_url: str) -> BoundContext:
        """
        Returns a context bound to the web hosting ``source_url``.

        The given context is returned unchanged when no more specific web
        matches or when the match is the web it is already bound to.

        Raises:
            ContextResolutionError: If the sub-sites cannot be enumerated.
        """

        try:
            web_urls = await self._get_web_urls(context)
        except InfrastructureError as e:
            raise ContextResolutionError(
                f"Cannot resolve the web hosting {source_url}: {e}"
            ) from e

        match = find_hosting_web(source_url, web_urls)

        if match and match.rstrip("/").lower() != context.web_url.rstrip("/").lower():
            self.logger.info(f"Asset {source_url} is hosted by {match}.")
            return BoundContext(web_url=match, client=context.client.bind(match))

        return context
