import pytest
from dependency_injector import providers

from asset_transfer.application.exceptions import ConfigurationError
from asset_transfer.application.service import PageAssetMigrator
from asset_transfer.infrastructure.containers import Container
from asset_transfer.settings import settings

from conftest import FakeSiteClient


def test_settings_defaults():
    assert settings.transfer.chunk_size_mb == 3
    assert "aspx" in settings.transfer.blocked_extensions
    assert "png" in settings.transfer.allowed_extensions
    assert settings.transfer.allow_same_site_collection is False


def test_missing_tokens_fail_at_construction():
    container = Container()

    with pytest.raises(ConfigurationError):
        container.transfer_service()


def test_container_wires_page_migrator(source, target):
    container = Container()
    container.cli_args.from_dict({"allow_same_site_collection": True})
    container.source_client.override(providers.Object(source))
    container.target_client.override(providers.Object(target))

    migrator = container.page_migrator()
    service = migrator.transfer_service

    assert isinstance(migrator, PageAssetMigrator)
    assert migrator.concurrent_transfers == settings.transfer.concurrent_transfers
    assert service.uploader.block_size == 3 * 1024 * 1024
    assert service.validator.allow_same_site_collection is True
    assert service.cache is container.transfer_service().cache
    assert isinstance(service.source.client, FakeSiteClient)
