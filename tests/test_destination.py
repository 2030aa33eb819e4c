import asyncio

import pytest

from asset_transfer.application.destination import (
    DestinationResolver,
    to_folder_friendly_name,
)
from asset_transfer.application.exceptions import InvalidPageNameError


@pytest.mark.parametrize(
    "page, expected",
    [
        ("My Great Page.aspx", "My-Great-Page"),
        ("Home.aspx", "Home"),
        ("/sites/source/SitePages/News Item.aspx", "News-Item"),
        ("Q1 Results: Draft?.aspx", "Q1-Results--Draft-"),
        ("release.notes.aspx", "release.notes"),
        ("NoExtension", "NoExtension"),
    ],
)
def test_to_folder_friendly_name(page, expected):
    assert to_folder_friendly_name(page) == expected


@pytest.mark.parametrize("page", ["", "...", "/sites/source/SitePages/"])
def test_to_folder_friendly_name_rejects_empty_result(page):
    with pytest.raises(InvalidPageNameError):
        to_folder_friendly_name(page)


@pytest.mark.asyncio
async def test_ensure_destination_builds_page_folder(target, store):
    resolver = DestinationResolver(target)

    folder = await resolver.ensure_destination("My Great Page.aspx")

    assert folder == "/sites/target/SiteAssets/SitePages/My-Great-Page"
    assert folder in store.folders
    assert store.calls_named("ensure_folder") == [
        ("ensure_folder", "/sites/target/SiteAssets", "SitePages"),
        ("ensure_folder", "/sites/target/SiteAssets/SitePages", "My-Great-Page"),
    ]


@pytest.mark.asyncio
async def test_ensure_destination_is_idempotent(target, store):
    resolver = DestinationResolver(target)

    first = await resolver.ensure_destination("Home.aspx")
    second = await resolver.ensure_destination("Home.aspx")
    other = await resolver.ensure_destination("About.aspx")

    assert first == second
    assert other.endswith("/About")
    assert len(store.calls_named("ensure_site_assets_library")) == 1
    assert len(store.calls_named("ensure_folder")) == 3


@pytest.mark.asyncio
async def test_concurrent_calls_provision_folders_once(target, store):
    resolver = DestinationResolver(target)

    folders = await asyncio.gather(
        *(resolver.ensure_destination("Home.aspx") for _ in range(4))
    )

    assert set(folders) == {"/sites/target/SiteAssets/SitePages/Home"}
    assert len(store.calls_named("ensure_site_assets_library")) == 1
    assert len(store.calls_named("ensure_folder")) == 2
