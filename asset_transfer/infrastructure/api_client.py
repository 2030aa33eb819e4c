"""HTTP implementation of the SiteClient port for the SharePoint REST API."""

import contextlib
from typing import AsyncIterator, List, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from ..application.domain import RemoteFile, SiteClient, SiteInfo
from ..application.exceptions import APIError

from .api_models import (
    FileProperties,
    FolderProperties,
    ListProperties,
    SiteProperties,
    UploadProgress,
    WebCollection,
)
from .base_client import BaseClient

_ModelT = TypeVar("_ModelT", bound=BaseModel)


def _literal(value: str) -> str:
    """Formats a string as a URL-safe OData string literal."""
    return "'" + quote(value.replace("'", "''"), safe="/") + "'"


def _is_not_found(error: APIError) -> bool:
    """Tells whether an APIError was caused by an HTTP 404."""
    cause = error.__cause__
    return (
        isinstance(cause, httpx.HTTPStatusError)
        and cause.response.status_code == 404
    )


class HttpSiteClient(BaseClient, SiteClient):
    """A content store client bound to one SharePoint web."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str,
        web_url: str,
        timeout: float,
    ):
        """Initializes the client adapter."""
        super().__init__(client, token, timeout)
        self._web_url = web_url.rstrip("/")

    @property
    def web_url(self) -> str:
        """Absolute URL of the web this client is bound to."""
        return self._web_url

    @property
    def api_url(self) -> str:
        """Root of the REST endpoints of the bound web."""
        return f"{self._web_url}/_api"

    def bind(self, web_url: str) -> "HttpSiteClient":
        """Returns a client sharing the connection pool, bound to another web."""
        return HttpSiteClient(self.client, self.token, web_url, self.timeout)

    def _parse(self, model: Type[_ModelT], response: httpx.Response) -> _ModelT:
        """Validates a JSON response against a pydantic model."""
        try:
            return model.model_validate(response.json())
        except (ValidationError, ValueError) as e:
            raise APIError(
                f"Unexpected response from {response.request.url}: {e}"
            ) from e

    def _file_endpoint(self, file_url: str) -> str:
        """Builds the REST path addressing a file by its root-relative URL."""
        return f"{self.api_url}/web/GetFileByServerRelativeUrl({_literal(file_url)})"

    def _folder_endpoint(self, folder_url: str) -> str:
        """Builds the REST path addressing a folder by its root-relative URL."""
        return (
            f"{self.api_url}/web/GetFolderByServerRelativeUrl({_literal(folder_url)})"
        )

    async def get_site_info(self) -> SiteInfo:
        """Fetches the URLs of the site collection hosting the bound web."""
        response = await self._request(
            "GET",
            f"{self.api_url}/site",
            params={"$select": "Url,ServerRelativeUrl"},
        )
        site = self._parse(SiteProperties, response)
        return SiteInfo(url=site.url, server_relative_url=site.server_relative_url)

    async def _get_child_web_urls(self, web_url: str) -> List[str]:
        """Lists the direct sub-webs of one web."""
        response = await self._request(
            "GET",
            f"{web_url.rstrip('/')}/_api/web/webs",
            params={"$select": "Url"},
        )
        return [web.url for web in self._parse(WebCollection, response).value]

    async def get_all_web_urls(self, root_web_url: str) -> List[str]:
        """Walks the web hierarchy breadth first, one request per web."""
        web_urls = [root_web_url]
        pending = [root_web_url]
        while pending:
            children = await self._get_child_web_urls(pending.pop(0))
            web_urls.extend(children)
            pending.extend(children)
        return web_urls

    async def ensure_site_assets_library(self) -> str:
        """
        Provisions the site assets library the way the SharePoint UI does and
        returns the root-relative URL of its root folder.
        """
        response = await self._request(
            "POST", f"{self.api_url}/web/lists/EnsureSiteAssetsLibrary()"
        )
        library = self._parse(ListProperties, response)
        self.logger.debug(f"Site assets library {library.title} ({library.id})")

        response = await self._request(
            "GET",
            f"{self.api_url}/web/lists(guid'{library.id}')/RootFolder",
            params={"$select": "ServerRelativeUrl"},
        )
        return self._parse(FolderProperties, response).server_relative_url

    async def _get_existing_folder(self, folder_url: str) -> Optional[str]:
        """Returns the folder URL when it exists, None when it does not."""
        try:
            response = await self._request(
                "GET",
                self._folder_endpoint(folder_url),
                params={"$select": "Exists,ServerRelativeUrl"},
            )
        except APIError as e:
            if _is_not_found(e):
                return None
            raise
        folder = self._parse(FolderProperties, response)
        return folder.server_relative_url if folder.exists else None

    async def ensure_folder(self, parent_folder_url: str, name: str) -> str:
        """
        Guarantee a folder exists below ``parent_folder_url``.

        Returns:
            The root-relative URL of the existing or newly created folder.

        Raises:
            APIError: If the lookup or the creation fails.
        """
        folder_url = f"{parent_folder_url.rstrip('/')}/{name}"

        existing = await self._get_existing_folder(folder_url)
        if existing:
            return existing

        self.logger.info(f"Creating folder {folder_url}...")
        response = await self._request(
            "POST", f"{self.api_url}/web/folders/add({_literal(folder_url)})"
        )
        return self._parse(FolderProperties, response).server_relative_url

    async def get_file_info(self, file_url: str) -> RemoteFile:
        """Fetches the name, byte length and URL of a file."""
        response = await self._request(
            "GET",
            self._file_endpoint(file_url),
            params={"$select": "Name,Length,ServerRelativeUrl"},
        )
        remote_file = self._parse(FileProperties, response)
        return RemoteFile(
            name=remote_file.name,
            length=remote_file.length,
            server_relative_url=remote_file.server_relative_url,
        )

    async def _iter_bytes(self, response: httpx.Response) -> AsyncIterator[bytes]:
        """Produce the body of a streamed response, translating read errors."""
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            raise APIError(f"Reading {response.request.url} failed: {e}") from e

    @contextlib.asynccontextmanager
    async def open_file_stream(self, file_url: str) -> AsyncIterator[AsyncIterator[bytes]]:
        """
        Opens the binary content of a file.

        The response is closed when the block exits, on every exit path.
        """
        url = f"{self._file_endpoint(file_url)}/$value"
        try:
            async with self.client.stream(
                "GET", url, headers=self.headers, timeout=self.timeout
            ) as response:
                response.raise_for_status()
                yield self._iter_bytes(response)
        except httpx.HTTPError as e:
            raise APIError(f"GET {url} failed: {e}") from e

    async def add_file(
        self,
        folder_url: str,
        name: str,
        content: bytes,
        overwrite: bool = True,
    ) -> str:
        """Uploads a whole file in one request; overwriting makes it retry-safe."""
        response = await self._request(
            "POST",
            f"{self._folder_endpoint(folder_url)}/Files/add("
            f"url={_literal(name)},overwrite={str(overwrite).lower()})",
            content=content,
        )
        return self._parse(FileProperties, response).server_relative_url

    async def start_upload(self, file_url: str, upload_id: str, data: bytes) -> int:
        """Opens a sliced upload session with its first slice; never retried."""
        response = await self._request(
            "POST",
            f"{self._file_endpoint(file_url)}/StartUpload(uploadId=guid'{upload_id}')",
            content=data,
            retry=False,
        )
        return self._parse(UploadProgress, response).value

    async def continue_upload(
        self, file_url: str, upload_id: str, offset: int, data: bytes
    ) -> int:
        """Appends one slice at ``offset``; returns the acknowledged offset."""
        response = await self._request(
            "POST",
            f"{self._file_endpoint(file_url)}/ContinueUpload("
            f"uploadId=guid'{upload_id}',fileOffset={offset})",
            content=data,
            retry=False,
        )
        return self._parse(UploadProgress, response).value

    async def finish_upload(
        self, file_url: str, upload_id: str, offset: int, data: bytes
    ) -> str:
        """Sends the last slice and commits the file; returns its URL."""
        response = await self._request(
            "POST",
            f"{self._file_endpoint(file_url)}/FinishUpload("
            f"uploadId=guid'{upload_id}',fileOffset={offset})",
            content=data,
            retry=False,
        )
        return self._parse(FileProperties, response).server_relative_url
