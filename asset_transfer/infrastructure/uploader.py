"""Sliced implementation of the Uploader port."""

import contextlib
import dataclasses
import logging
import uuid
from typing import AsyncGenerator, AsyncIterator

from tqdm import tqdm

from ..application.domain import (
    RemoteFile,
    SiteClient,
    UploadPhase,
    UploadSessionState,
    Uploader,
)
from ..application.exceptions import (
    ConfigurationError,
    InfrastructureError,
    UploadError,
)

_MEGABYTE = 1024 * 1024


def megabytes_to_bytes(size_mb: float) -> int:
    """Converts a slice size in megabytes to bytes."""
    return int(size_mb * _MEGABYTE)


async def _read_blocks(
    stream: AsyncIterator[bytes], block_size: int
) -> AsyncGenerator[bytes, None]:
    """Re-slice an arbitrary chunk stream into blocks of ``block_size``."""
    buffer = bytearray()
    async for chunk in stream:
        buffer.extend(chunk)
        while len(buffer) >= block_size:
            yield bytes(buffer[:block_size])
            del buffer[:block_size]
    if buffer:
        yield bytes(buffer)


class ChunkedUploader(Uploader):
    """
    Copies a file from a source web into a target folder.

    Files up to ``block_size`` bytes are sent in one request. Larger files go
    through a sliced upload session whose slices are submitted strictly in
    order, each at the offset acknowledged for the previous one.
    """

    def __init__(self, target: SiteClient, block_size: int, show_progress: bool = True):
        """Initializes the uploader adapter."""
        if block_size <= 0:
            raise ConfigurationError(f"Block size must be positive, got {block_size}.")
        self.logger = logging.getLogger(self.__class__.__name__)
        self.target = target
        self.block_size = block_size
        self.show_progress = show_progress

    async def _upload_single_shot(
        self, source: SiteClient, remote_file: RemoteFile, destination_folder: str
    ) -> str:
        """Send the whole file in one create request."""
        async with source.open_file_stream(remote_file.server_relative_url) as stream:
            content = b"".join([chunk async for chunk in stream])

        if len(content) != remote_file.length:
            raise UploadError(
                f"Size mismatch for {remote_file.name}: "
                f"{len(content)} != {remote_file.length}"
            )

        return await self.target.add_file(
            destination_folder, remote_file.name, content, overwrite=True
        )

    async def _send_slice(
        self,
        state: UploadSessionState,
        destination_folder: str,
        remote_file: RemoteFile,
        block: bytes,
        is_last: bool,
    ) -> UploadSessionState:
        """Submit one block and return the next session state."""

        if state.phase is UploadPhase.NOT_STARTED:
            file_url = await self.target.add_file(
                destination_folder, remote_file.name, b"", overwrite=True
            )
            offset = await self.target.start_upload(file_url, state.upload_id, block)
            return dataclasses.replace(
                state,
                file_url=file_url,
                offset=offset,
                phase=UploadPhase.FIRST_SLICE_SENT,
            )

        if is_last:
            file_url = await self.target.finish_upload(
                state.file_url, state.upload_id, state.offset, block
            )
            return dataclasses.replace(
                state,
                file_url=file_url,
                offset=state.offset + len(block),
                phase=UploadPhase.FINISHED,
            )

        offset = await self.target.continue_upload(
            state.file_url, state.upload_id, state.offset, block
        )
        return dataclasses.replace(state, offset=offset, phase=UploadPhase.CONTINUING)

    async def _upload_sliced(
        self, source: SiteClient, remote_file: RemoteFile, destination_folder: str
    ) -> str:
        """Drive the upload session state machine over the source stream."""
        state = UploadSessionState(
            upload_id=str(uuid.uuid4()), block_size=self.block_size
        )
        bytes_read = 0

        async with source.open_file_stream(remote_file.server_relative_url) as stream:
            blocks = _read_blocks(stream, self.block_size)
            async with contextlib.aclosing(blocks):
                with tqdm(
                    total=remote_file.length,
                    unit="B",
                    unit_scale=True,
                    desc=remote_file.name,
                    disable=not self.show_progress,
                ) as progress_bar:
                    async for block in blocks:
                        bytes_read += len(block)
                        if bytes_read > remote_file.length:
                            raise UploadError(
                                f"{remote_file.name} is larger than the "
                                f"advertised {remote_file.length} bytes."
                            )

                        state = await self._send_slice(
                            state,
                            destination_folder,
                            remote_file,
                            block,
                            is_last=bytes_read == remote_file.length,
                        )
                        progress_bar.update(len(block))
                        self.logger.debug(
                            f"{remote_file.name}: {state.phase.value} at offset "
                            f"{state.offset}/{remote_file.length}"
                        )

        if state.phase is not UploadPhase.FINISHED:
            raise UploadError(
                f"Stream of {remote_file.name} ended after {bytes_read} of "
                f"{remote_file.length} bytes."
            )

        return state.file_url

    async def upload(
        self, source: SiteClient, source_file_url: str, destination_folder: str
    ) -> str:
        """
        Copy a file from the source web into the destination folder.

        This is the public method that fulfills the Uploader port contract.
        A failure halfway through a sliced upload leaves the partially
        written target file in place; nothing is rolled back.

        Args:
            source: Client bound to the web hosting the file.
            source_file_url: Root-relative URL of the file to copy.
            destination_folder: Root-relative URL of the target folder.

        Returns:
            The root-relative URL of the committed copy.

        Raises:
            UploadError: If reading or writing the file fails.
        """

        try:
            remote_file = await source.get_file_info(source_file_url)

            if remote_file.length <= self.block_size:
                self.logger.info(f"Uploading {remote_file.name} in one request...")
                final_url = await self._upload_single_shot(
                    source, remote_file, destination_folder
                )
            else:
                self.logger.info(
                    f"Uploading {remote_file.name} ({remote_file.length} bytes) "
                    f"in slices of {self.block_size} bytes..."
                )
                final_url = await self._upload_sliced(
                    source, remote_file, destination_folder
                )
        except UploadError:
            raise
        except InfrastructureError as e:
            raise UploadError(f"Failed to copy {source_file_url}: {e}") from e

        self.logger.info(f"Finished uploading {final_url}")
        return final_url
