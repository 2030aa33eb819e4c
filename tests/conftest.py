import asyncio
import contextlib
import posixpath
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import pytest

from asset_transfer.application.cache import TransferCache
from asset_transfer.application.context import SiteContextResolver
from asset_transfer.application.destination import DestinationResolver
from asset_transfer.application.domain import RemoteFile, SiteClient, SiteInfo
from asset_transfer.application.exceptions import APIError
from asset_transfer.application.service import AssetTransferService
from asset_transfer.application.validation import LocationValidator
from asset_transfer.infrastructure.uploader import ChunkedUploader

HOST = "https://contoso.sharepoint.com"
SOURCE_SITE = "/sites/source"
TARGET_SITE = "/sites/target"
BLOCK_SIZE = 8


class FakeStore:
    """In-memory content store shared by every FakeSiteClient of one tenant."""

    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.folders: set = set()
        self.webs: Dict[str, List[str]] = {}
        self.sessions: Dict[str, Tuple[str, bytearray]] = {}
        self.calls: List[Tuple[str, ...]] = []
        self.fail_on: Optional[str] = None
        self.chunk_size = 3

    def record(self, *call: str):
        self.calls.append(call)
        if self.fail_on == call[0]:
            raise APIError(f"{call[0]} failed")

    def calls_named(self, name: str) -> List[Tuple[str, ...]]:
        return [call for call in self.calls if call[0] == name]


class FakeSiteClient(SiteClient):
    def __init__(self, store: FakeStore, site_path: str, web_url: str):
        self.store = store
        self.site_path = site_path
        self._web_url = web_url
        self.stream_closed = True

    @property
    def web_url(self) -> str:
        return self._web_url

    def bind(self, web_url: str) -> "FakeSiteClient":
        return FakeSiteClient(self.store, self.site_path, web_url)

    async def get_site_info(self) -> SiteInfo:
        self.store.record("get_site_info", self._web_url)
        await asyncio.sleep(0)
        return SiteInfo(url=HOST + self.site_path, server_relative_url=self.site_path)

    async def get_all_web_urls(self, root_web_url: str) -> List[str]:
        self.store.record("get_all_web_urls", root_web_url)
        await asyncio.sleep(0)
        return [root_web_url] + self.store.webs.get(root_web_url, [])

    async def ensure_site_assets_library(self) -> str:
        self.store.record("ensure_site_assets_library")
        await asyncio.sleep(0)
        folder = f"{urlsplit(self._web_url).path}/SiteAssets"
        self.store.folders.add(folder)
        return folder

    async def ensure_folder(self, parent_folder_url: str, name: str) -> str:
        self.store.record("ensure_folder", parent_folder_url, name)
        await asyncio.sleep(0)
        folder = f"{parent_folder_url}/{name}"
        self.store.folders.add(folder)
        return folder

    async def get_file_info(self, file_url: str) -> RemoteFile:
        self.store.record("get_file_info", file_url)
        return RemoteFile(
            name=posixpath.basename(file_url),
            length=len(self.store.files[file_url]),
            server_relative_url=file_url,
        )

    @contextlib.asynccontextmanager
    async def open_file_stream(self, file_url: str):
        self.store.record("open_file_stream", file_url)
        content = self.store.files[file_url]
        size = self.store.chunk_size

        async def chunks():
            for start in range(0, len(content), size):
                yield content[start:start + size]

        self.stream_closed = False
        try:
            yield chunks()
        finally:
            self.stream_closed = True

    async def add_file(self, folder_url, name, content, overwrite=True) -> str:
        self.store.record("add_file", folder_url, name)
        file_url = f"{folder_url}/{name}"
        self.store.files[file_url] = bytes(content)
        return file_url

    async def start_upload(self, file_url, upload_id, data) -> int:
        self.store.record("start_upload", file_url)
        self.store.sessions[upload_id] = (file_url, bytearray(data))
        return len(data)

    async def continue_upload(self, file_url, upload_id, offset, data) -> int:
        self.store.record("continue_upload", file_url, str(offset))
        _, buffer = self.store.sessions[upload_id]
        assert offset == len(buffer)
        buffer.extend(data)
        return len(buffer)

    async def finish_upload(self, file_url, upload_id, offset, data) -> str:
        self.store.record("finish_upload", file_url, str(offset))
        _, buffer = self.store.sessions.pop(upload_id)
        assert offset == len(buffer)
        buffer.extend(data)
        self.store.files[file_url] = bytes(buffer)
        return file_url


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def source(store: FakeStore) -> FakeSiteClient:
    return FakeSiteClient(store, SOURCE_SITE, HOST + SOURCE_SITE)


@pytest.fixture
def target(store: FakeStore) -> FakeSiteClient:
    return FakeSiteClient(store, TARGET_SITE, HOST + TARGET_SITE)


@pytest.fixture
def cache() -> TransferCache:
    return TransferCache()


@pytest.fixture
def make_service(source, target, cache):
    def factory(**validator_options) -> AssetTransferService:
        validator = LocationValidator(
            source,
            target,
            blocked_extensions=validator_options.pop("blocked", ["aspx", "html"]),
            allowed_extensions=validator_options.pop("allowed", ["png", "pdf"]),
            **validator_options,
        )
        return AssetTransferService(
            source=source,
            target=target,
            cache=cache,
            validator=validator,
            context_resolver=SiteContextResolver(),
            destination_resolver=DestinationResolver(target),
            uploader=ChunkedUploader(target, BLOCK_SIZE, show_progress=False),
        )

    return factory
