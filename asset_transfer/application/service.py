"""
The core application service and page runner, containing pure business logic.

This module defines the asset transfer engine (AssetTransferService), which
moves one referenced asset to the target web, and the runner
(PageAssetMigrator) that transfers every asset referenced by a page.
"""

import asyncio
import dataclasses
import logging
import posixpath
from typing import Dict, List, Optional
from urllib.parse import urlsplit

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt
from tqdm.asyncio import tqdm_asyncio
from tqdm.contrib.logging import logging_redirect_tqdm

from .cache import TransferCache
from .context import SiteContextResolver
from .destination import DestinationResolver
from .domain import AssetReference, BoundContext, SiteClient, Uploader
from .exceptions import (
    CacheError,
    ConfigurationError,
    ContextResolutionError,
    InfrastructureError,
    InvalidPageNameError,
)
from .validation import LocationValidator

logger = logging.getLogger(__name__)


class AssetTransferService:
    """Transfers referenced assets from the source web to the target web."""

    def __init__(
        self,
        source: Optional[SiteClient],
        target: Optional[SiteClient],
        cache: TransferCache,
        validator: LocationValidator,
        context_resolver: SiteContextResolver,
        destination_resolver: DestinationResolver,
        uploader: Uploader,
    ):
        """
        Initializes the engine with its collaborators.

        Raises:
            ConfigurationError: If the source or target binding is missing.
        """
        self.logger = logging.getLogger(self.__class__.__name__)

        if source is None or target is None:
            raise ConfigurationError(
                "Asset transfer requires both a source and a target site."
            )

        self.source = BoundContext.of(source)
        self.target = target
        self.cache = cache
        self.validator = validator
        self.context_resolver = context_resolver
        self.destination_resolver = destination_resolver
        self.uploader = uploader

    def _fallback(self, source_asset_url: str, reason: str) -> str:
        """Logs why an asset stays where it is and returns its original URL."""
        self.logger.warning(
            f"Asset {source_asset_url!r} not transferred ({reason}); "
            f"keeping the original URL."
        )
        return source_asset_url

    async def _is_eligible(self, source_asset_url: str) -> bool:
        """Runs the validator; a failed site lookup counts as not eligible."""
        try:
            return await self.validator.is_eligible(source_asset_url)
        except InfrastructureError as e:
            self.logger.error(f"Cannot validate {source_asset_url}: {e}")
            return False

    async def _lookup(self, source_asset_url: str, folder: str) -> AssetReference:
        """Reads the cache, treating an inconsistent cache as a miss."""
        try:
            return await self.cache.lookup(source_asset_url, folder)
        except CacheError as e:
            self.logger.error(f"{e}; transferring again.")
            return AssetReference(
                source_asset_url=source_asset_url, target_folder_url=folder
            )

    async def _resolve_context(self, source_asset_url: str) -> BoundContext:
        """Finds the web hosting the asset, or keeps the source binding."""
        try:
            return await self.context_resolver.resolve(self.source, source_asset_url)
        except ContextResolutionError as e:
            self.logger.error(f"{e}; using {self.source.web_url}.")
            return self.source

    async def _warn_on_name_collision(self, source_asset_url: str, folder: str):
        """
        Warns when another source file was already copied under the same
        name into ``folder``; the upload about to start overwrites it.
        """
        file_name = posixpath.basename(urlsplit(source_asset_url).path)
        existing = await self.cache.find_transferred(f"{folder.rstrip('/')}/{file_name}")
        if existing is not None:
            self.logger.warning(
                f"{source_asset_url} overwrites {existing.target_transferred_url}, "
                f"the copy of {existing.source_asset_url}; references to the "
                f"earlier asset now point at different content."
            )

    async def transfer_asset(self, source_asset_url: str, page_identifier: str) -> str:
        """
        Copies one referenced asset next to the migrated page.

        Safe to call once per reference: repeated references to the same
        asset on the same page are served from the cache and return the URL
        of the single copy.

        Args:
            source_asset_url: Root-relative URL of the asset in the source web.
            page_identifier: File name of the page referencing the asset.

        Returns:
            The root-relative URL of the copy, or ``source_asset_url``
            unchanged when the asset is not eligible.

        Raises:
            UploadError: If the copy fails.
            InfrastructureError: If the destination folder cannot be created.
        """

        if not source_asset_url or not page_identifier:
            return self._fallback(source_asset_url, "empty input")

        if not await self._is_eligible(source_asset_url):
            return self._fallback(source_asset_url, "not eligible")

        try:
            folder = await self.destination_resolver.ensure_destination(
                page_identifier
            )
        except InvalidPageNameError as e:
            return self._fallback(source_asset_url, str(e))

        async with self.cache.reserve(source_asset_url, folder):
            reference = await self._lookup(source_asset_url, folder)

            if reference.is_transferred:
                self.logger.info(
                    f"Asset {source_asset_url} already transferred to "
                    f"{reference.target_transferred_url}"
                )
                return reference.target_transferred_url

            await self._warn_on_name_collision(source_asset_url, folder)
            context = await self._resolve_context(source_asset_url)
            new_url = await self.uploader.upload(
                context.client, source_asset_url, folder
            )
            reference = dataclasses.replace(reference, target_transferred_url=new_url)
            await self.cache.record(reference)

        self.logger.info(f"Asset transferred to {new_url}")
        return new_url


class PageAssetMigrator:
    """Transfers every asset referenced by a page with bounded concurrency."""

    def __init__(
        self,
        transfer_service: AssetTransferService,
        concurrent_transfers: int,
        max_attempts: int,
    ):
        """Initializes the runner around a transfer engine."""
        self.transfer_service = transfer_service
        self.concurrent_transfers = concurrent_transfers
        self.max_attempts = max_attempts

    async def _transfer_with_retry(
        self, source_asset_url: str, page_identifier: str
    ) -> str:
        """Re-attempts a whole asset after an infrastructure failure."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_exception_type(InfrastructureError),
            reraise=True,
        ):
            with attempt:
                return await self.transfer_service.transfer_asset(
                    source_asset_url, page_identifier
                )

    async def _transfer_with_semaphore(
        self,
        source_asset_url: str,
        page_identifier: str,
        semaphore: asyncio.Semaphore,
    ) -> str:
        """Wrapper to acquire a semaphore and keep the page working on failure."""
        async with semaphore:
            try:
                return await self._transfer_with_retry(
                    source_asset_url, page_identifier
                )
            except InfrastructureError as e:
                logger.error(
                    f"Giving up on {source_asset_url} after "
                    f"{self.max_attempts} attempts: {e}"
                )
                return source_asset_url

    async def run(
        self, page_identifier: str, asset_urls: List[str]
    ) -> Dict[str, str]:
        """
        Transfers the assets of one page.

        Returns:
            A mapping of each referenced URL to the URL the page should use.
        """

        logger.info(
            f"Transferring {len(asset_urls)} asset references of {page_identifier}"
        )

        if not asset_urls:
            return {}

        semaphore = asyncio.Semaphore(self.concurrent_transfers)
        tasks = [
            asyncio.create_task(
                self._transfer_with_semaphore(url, page_identifier, semaphore)
            )
            for url in asset_urls
        ]

        with logging_redirect_tqdm():
            results = await tqdm_asyncio.gather(
                *tasks, desc=page_identifier, unit="asset"
            )

        mapping = dict(zip(asset_urls, results))
        transferred = sum(1 for url, new in mapping.items() if url != new)
        logger.info(
            f"Transferred {transferred} of {len(mapping)} distinct assets "
            f"for {page_identifier}."
        )
        return mapping
