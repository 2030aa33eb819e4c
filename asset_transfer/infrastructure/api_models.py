"""
Pydantic models for validating responses from the SharePoint REST API.

The client requests ``odata=nometadata`` JSON, so every object arrives with
its PascalCase property names at the top level and collections under
``value``. These models serve as a strict contract for that data, ensuring
that any deviation from this structure is caught at the infrastructure layer
before being passed to the application core.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class SharePointModel(BaseModel):
    """Base model ignoring the many properties the API adds by default."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SiteProperties(SharePointModel):
    """Represents the ``Url`` and ``ServerRelativeUrl`` of a site or web."""

    url: str = Field(alias="Url")
    server_relative_url: str = Field(alias="ServerRelativeUrl")


class WebUrl(SharePointModel):
    """Represents one entry of a web collection."""

    url: str = Field(alias="Url")


class WebCollection(SharePointModel):
    """Represents the ``value`` array returned by ``/_api/web/webs``."""

    value: List[WebUrl]


class ListProperties(SharePointModel):
    """Represents a list returned by ``EnsureSiteAssetsLibrary``."""

    id: str = Field(alias="Id")
    title: str = Field(alias="Title")


class FolderProperties(SharePointModel):
    """Represents a folder; ``Exists`` is only selected when checking for one."""

    exists: bool = Field(default=True, alias="Exists")
    server_relative_url: str = Field(alias="ServerRelativeUrl")


class FileProperties(SharePointModel):
    """
    Represents a file. ``Length`` is an Edm.Int64 and arrives as a string,
    which pydantic coerces.
    """

    name: str = Field(alias="Name")
    length: int = Field(default=0, alias="Length")
    server_relative_url: str = Field(alias="ServerRelativeUrl")


class UploadProgress(SharePointModel):
    """Represents the byte offset returned by StartUpload/ContinueUpload."""

    value: int
