import asyncio

import pytest

from asset_transfer.application.exceptions import APIError
from asset_transfer.application.validation import LocationValidator, get_extension

from conftest import HOST, SOURCE_SITE, FakeSiteClient


def _validator(source, target, **options) -> LocationValidator:
    return LocationValidator(
        source,
        target,
        blocked_extensions=options.pop("blocked", ["aspx", "html"]),
        allowed_extensions=options.pop("allowed", ["png", "jpg", "pdf"]),
        **options,
    )


@pytest.mark.parametrize(
    "url, expected",
    [
        ("/sites/source/SiteAssets/logo.PNG", "png"),
        ("/sites/source/SiteAssets/report.final.pdf", "pdf"),
        ("/sites/source/SiteAssets/image.jpg?width=200#top", "jpg"),
        ("/sites/source/SiteAssets/README", ""),
        ("/sites/source/SiteAssets/odd.", ""),
    ],
)
def test_get_extension(url, expected):
    assert get_extension(url) == expected


@pytest.mark.asyncio
async def test_allowed_asset_inside_source_site_is_eligible(source, target):
    validator = _validator(source, target)

    assert await validator.is_eligible("/sites/source/SiteAssets/logo.png")


@pytest.mark.asyncio
async def test_blocked_extension_wins_over_allow_list(source, target, store):
    validator = _validator(source, target, blocked=["png"], allowed=["png"])

    assert not await validator.is_eligible("/sites/source/SiteAssets/logo.png")
    assert store.calls == []


@pytest.mark.asyncio
async def test_extension_outside_allow_list_is_rejected(source, target, store):
    validator = _validator(source, target)

    assert not await validator.is_eligible("/sites/source/SiteAssets/setup.exe")
    assert not await validator.is_eligible("/sites/source/SitePages/Home.aspx")
    assert store.calls == []


@pytest.mark.asyncio
async def test_asset_outside_source_site_collection_is_rejected(source, target):
    validator = _validator(source, target)

    assert not await validator.is_eligible("/sites/other/SiteAssets/logo.png")


@pytest.mark.asyncio
async def test_containment_ignores_case(source, target):
    validator = _validator(source, target)

    assert await validator.is_eligible("/SITES/Source/SiteAssets/Logo.Png")


@pytest.mark.asyncio
async def test_same_site_collection_is_rejected(source, store):
    same_site_target = FakeSiteClient(store, SOURCE_SITE, HOST + SOURCE_SITE + "/news")
    validator = _validator(source, same_site_target)

    assert not await validator.is_eligible("/sites/source/SiteAssets/logo.png")


@pytest.mark.asyncio
async def test_same_site_collection_allowed_when_configured(source, store):
    same_site_target = FakeSiteClient(store, SOURCE_SITE, HOST + SOURCE_SITE + "/news")
    validator = _validator(source, same_site_target, allow_same_site_collection=True)

    assert await validator.is_eligible("/sites/source/SiteAssets/logo.png")


@pytest.mark.asyncio
async def test_site_roots_are_fetched_once(source, target, store):
    validator = _validator(source, target)

    await validator.is_eligible("/sites/source/SiteAssets/a.png")
    await validator.is_eligible("/sites/source/SiteAssets/b.png")

    assert len(store.calls_named("get_site_info")) == 2


@pytest.mark.asyncio
async def test_concurrent_checks_fetch_site_roots_once(source, target, store):
    validator = _validator(source, target)
    urls = [f"/sites/source/SiteAssets/{name}.png" for name in "abcd"]

    results = await asyncio.gather(*(validator.is_eligible(url) for url in urls))

    assert results == [True] * 4
    assert len(store.calls_named("get_site_info")) == 2


@pytest.mark.asyncio
async def test_lookup_failure_propagates(source, target, store):
    store.fail_on = "get_site_info"
    validator = _validator(source, target)

    with pytest.raises(APIError):
        await validator.is_eligible("/sites/source/SiteAssets/a.png")
