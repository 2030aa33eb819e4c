"""
This module defines the core domain models for the application.

These classes represent the pure, technology-agnostic entities and data
structures that the asset transfer logic operates on, together with the ports
through which it talks to the content store.
"""

import dataclasses
import enum

from abc import ABC, abstractmethod
from typing import AsyncContextManager, AsyncIterator, List


# --- Domain Models ---

@dataclasses.dataclass(frozen=True)
class AssetReference:
    """
    One transfer unit: a source asset copied into a target folder.

    The transferred URL stays empty until the first successful copy and is
    never reassigned afterwards; a copy is expressed with
    ``dataclasses.replace``.
    """

    source_asset_url: str
    target_folder_url: str
    target_transferred_url: str = ""

    @property
    def is_transferred(self) -> bool:
        return bool(self.target_transferred_url)


@dataclasses.dataclass(frozen=True)
class SiteInfo:
    """Absolute and root-relative URL of a site collection or web."""

    url: str
    server_relative_url: str


@dataclasses.dataclass(frozen=True)
class RemoteFile:
    """Metadata of a file stored in the content store."""

    name: str
    length: int
    server_relative_url: str


class UploadPhase(str, enum.Enum):
    """Progress of a sliced upload session."""

    NOT_STARTED = "NotStarted"
    FIRST_SLICE_SENT = "FirstSliceSent"
    CONTINUING = "Continuing"
    FINISHED = "Finished"


@dataclasses.dataclass(frozen=True)
class UploadSessionState:
    """
    Transient state of one sliced upload.

    Each slice submission produces a new state; nothing is shared between
    calls except the value passed along.
    """

    upload_id: str
    block_size: int
    offset: int = 0
    phase: UploadPhase = UploadPhase.NOT_STARTED
    file_url: str = ""


# --- Ports (Interfaces) ---

class SiteClient(ABC):
    """A port for a content store client bound to a single web."""

    @property
    @abstractmethod
    def web_url(self) -> str:
        """Absolute URL of the web this client is bound to."""
        pass

    @abstractmethod
    def bind(self, web_url: str) -> "SiteClient":
        """Returns a new client of the same kind bound to another web."""
        pass

    @abstractmethod
    async def get_site_info(self) -> SiteInfo:
        """Fetches the URLs of the site collection hosting the bound web."""
        pass

    @abstractmethod
    async def get_all_web_urls(self, root_web_url: str) -> List[str]:
        """Lists the root web and every nested sub-web below it."""
        pass

    @abstractmethod
    async def ensure_site_assets_library(self) -> str:
        """
        Creates the standard site assets library if it does not exist.
        Returns the root-relative URL of its root folder.
        """
        pass

    @abstractmethod
    async def ensure_folder(self, parent_folder_url: str, name: str) -> str:
        """Creates a folder if absent and returns its root-relative URL."""
        pass

    @abstractmethod
    async def get_file_info(self, file_url: str) -> RemoteFile:
        """Fetches the metadata of a file."""
        pass

    @abstractmethod
    def open_file_stream(
        self, file_url: str
    ) -> AsyncContextManager[AsyncIterator[bytes]]:
        """Opens the content of a file as an async stream of byte chunks."""
        pass

    @abstractmethod
    async def add_file(
        self,
        folder_url: str,
        name: str,
        content: bytes,
        overwrite: bool = True,
    ) -> str:
        """Creates a file in one request and returns its root-relative URL."""
        pass

    @abstractmethod
    async def start_upload(
        self, file_url: str, upload_id: str, data: bytes
    ) -> int:
        """Starts a sliced upload; returns the acknowledged byte offset."""
        pass

    @abstractmethod
    async def continue_upload(
        self, file_url: str, upload_id: str, offset: int, data: bytes
    ) -> int:
        """Appends a slice at ``offset``; returns the new byte offset."""
        pass

    @abstractmethod
    async def finish_upload(
        self, file_url: str, upload_id: str, offset: int, data: bytes
    ) -> str:
        """Sends the last slice, commits the file and returns its URL."""
        pass


@dataclasses.dataclass(frozen=True)
class BoundContext:
    """A content store client together with the web it points at."""

    web_url: str
    client: SiteClient

    @classmethod
    def of(cls, client: SiteClient) -> "BoundContext":
        return cls(web_url=client.web_url, client=client)


class Uploader(ABC):
    """A port for copying one file into a destination folder."""

    @abstractmethod
    async def upload(
        self, source: SiteClient, source_file_url: str, destination_folder: str
    ) -> str:
        """Copies a file and returns the root-relative URL of the copy."""
        pass
