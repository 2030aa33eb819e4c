"""
Entry point for the asset_transfer component.
"""

import argparse
import asyncio
import json
import logging
import sys

from .application.exceptions import AssetTransferError
from .infrastructure.containers import Container
from .settings import settings

logger = logging.getLogger(__name__)


def setup_logging(level: str):
    """Applies basic logging configuration."""
    logging.basicConfig(level=level)


async def run_application(args: argparse.Namespace):
    """Wires and runs the application using the DI container."""

    container = Container()
    container.cli_args.from_dict(vars(args))
    setup_logging(level=container.config().logging.level)

    try:
        page_migrator = container.page_migrator()
        mapping = await page_migrator.run(args.page, args.assets)
    except AssetTransferError as e:
        logger.error(f"An application error occurred: {e}")
        sys.exit(1)
    finally:
        await container.http_client().aclose()

    print(json.dumps(mapping, indent=2))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Page Asset Transfer Component")

    parser.add_argument(
        "--page",
        required=True,
        help="File name of the page referencing the assets, e.g. Home.aspx",
    )

    parser.add_argument(
        "--assets",
        required=True,
        nargs="+",
        help="Root-relative URLs of the assets referenced by the page.",
    )

    parser.add_argument(
        "--allow-same-site-collection",
        action="store_true",
        default=settings.transfer.allow_same_site_collection,
        help="Copy assets even when source and target share a site collection."
    )

    cli_args = parser.parse_args()

    asyncio.run(run_application(cli_args))
