"""
Dependency Injection container for the asset_transfer component.

This container uses the `dependency-injector` library to wire together all
the components of the application, such as services and infrastructure adapters,
based on the application's configuration.
"""

from dependency_injector import containers, providers
import httpx

from ..application.cache import TransferCache
from ..application.context import SiteContextResolver
from ..application.destination import DestinationResolver
from ..application.domain import SiteClient, Uploader
from ..application.service import AssetTransferService, PageAssetMigrator
from ..application.validation import LocationValidator
from ..settings import settings

from .api_client import HttpSiteClient
from .uploader import ChunkedUploader, megabytes_to_bytes


class Container(containers.DeclarativeContainer):
    """DI container for wiring the application components."""

    cli_args = providers.Configuration()

    config = providers.Object(settings)

    http_client = providers.Singleton(httpx.AsyncClient, follow_redirects=True)

    source_client: providers.Factory[SiteClient] = providers.Factory(
        HttpSiteClient,
        client=http_client,
        token=config().source.token,
        web_url=config().source.site_url,
        timeout=config().transfer.timeout,
    )

    target_client: providers.Factory[SiteClient] = providers.Factory(
        HttpSiteClient,
        client=http_client,
        token=config().target.token,
        web_url=config().target.site_url,
        timeout=config().transfer.timeout,
    )

    transfer_cache = providers.Singleton(TransferCache)

    validator = providers.Factory(
        LocationValidator,
        source=source_client,
        target=target_client,
        blocked_extensions=config().transfer.blocked_extensions,
        allowed_extensions=config().transfer.allowed_extensions,
        allow_same_site_collection=cli_args.allow_same_site_collection,
    )

    context_resolver = providers.Factory(SiteContextResolver)

    destination_resolver = providers.Factory(
        DestinationResolver,
        target=target_client,
    )

    uploader: providers.Factory[Uploader] = providers.Factory(
        ChunkedUploader,
        target=target_client,
        block_size=megabytes_to_bytes(config().transfer.chunk_size_mb),
    )

    transfer_service = providers.Factory(
        AssetTransferService,
        source=source_client,
        target=target_client,
        cache=transfer_cache,
        validator=validator,
        context_resolver=context_resolver,
        destination_resolver=destination_resolver,
        uploader=uploader,
    )

    page_migrator = providers.Factory(
        PageAssetMigrator,
        transfer_service=transfer_service,
        concurrent_transfers=config().transfer.concurrent_transfers,
        max_attempts=config().transfer.max_attempts,
    )
