"""
Initializes the Dynaconf settings object for the asset_transfer component.
This module is the single source of truth for all configuration.
"""

from pathlib import Path
from dynaconf import Dynaconf, Validator

PROJECT_ROOT = Path(__file__).parent.parent

DEFAULT_BLOCKED_EXTENSIONS = [
    "aspx", "ascx", "asmx", "ashx", "master", "html", "htm", "js", "css",
]

DEFAULT_ALLOWED_EXTENSIONS = [
    "gif", "jpg", "jpeg", "png", "bmp", "tif", "tiff", "svg", "webp",
    "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "txt", "csv",
    "mp3", "mp4", "mov", "zip",
]

settings = Dynaconf(
    root_path=PROJECT_ROOT,
    settings_files=["config/settings.toml"],
    secrets=["config/.secrets.toml"],
    envvar_prefix="ASSET_TRANSFER",
    validators=[
        Validator("logging.level", default="INFO"),
        Validator("source.site_url", default=""),
        Validator("source.token", default=""),
        Validator("target.site_url", default=""),
        Validator("target.token", default=""),
        Validator("transfer.timeout", default=60),
        Validator("transfer.chunk_size_mb", default=3, gt=0),
        Validator("transfer.blocked_extensions", default=DEFAULT_BLOCKED_EXTENSIONS),
        Validator("transfer.allowed_extensions", default=DEFAULT_ALLOWED_EXTENSIONS),
        Validator("transfer.allow_same_site_collection", default=False),
        Validator("transfer.concurrent_transfers", default=4, gte=1),
        Validator("transfer.max_attempts", default=2, gte=1),
    ],
)
