"""
Bundle a populated collection database and its media into an .apkg buffer.

Archive layout, in order::

    collection.anki2    the SQLite database
    0, 1, 2, ...        raw audio, named by media index (no extension)
    media               JSON manifest {"0": "0.mp3", ...}
"""

import io
import json
import logging
import os
import stat
import threading
import zipfile
import zlib
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from apkg_encoder.errors import (
    ArchiveError,
    ArchiveTimeoutError,
    InvalidDatabaseFileError,
)
from apkg_encoder.media import MediaMapping

logger = logging.getLogger(__name__)

ARCHIVE_TIMEOUT_SECONDS = 30.0
COMPRESS_LEVEL = 9
DATABASE_ENTRY = "collection.anki2"
MANIFEST_ENTRY = "media"


class _Cancelled(Exception):
    pass


class PackageBuilder:
    """
    Write the .apkg zip archive for one build.

    :param timeout: Seconds allowed for writing the archive.
    :param compress_level: zlib level for deflate (0-9).
    """

    def __init__(
        self,
        timeout: float = ARCHIVE_TIMEOUT_SECONDS,
        compress_level: int = COMPRESS_LEVEL,
    ) -> None:
        self.timeout = timeout
        self.compress_level = compress_level

    def validate_database_file(self, db_path: str) -> int:
        """
        Check that ``db_path`` is a non-empty regular file.

        :returns: File size in bytes.
        :raises InvalidDatabaseFileError: If missing, not a file, or empty.
        """
        try:
            st = os.stat(db_path)
        except OSError as e:
            raise InvalidDatabaseFileError(
                f"Database file does not exist: {db_path}"
            ) from e
        if not stat.S_ISREG(st.st_mode) or st.st_size == 0:
            raise InvalidDatabaseFileError(
                f"Database file is invalid: {db_path} (size: {st.st_size})"
            )
        return st.st_size

    def build(self, db_path: str, media: MediaMapping) -> bytes:
        """
        Create the archive in memory.

        :param db_path: Path to the populated ``collection.anki2``.
        :param media: Media mapping used when the notes were written.
        :returns: The .apkg file contents.
        :raises InvalidDatabaseFileError: Before any archiving if the database
            file is unusable.
        :raises ArchiveTimeoutError: If writing takes longer than ``timeout``.
        :raises ArchiveError: If the zip writer fails.
        """
        size = self.validate_database_file(db_path)
        logger.debug("Database file validated: %s (%d bytes)", db_path, size)

        cancel = threading.Event()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="apkg-archive")
        try:
            future = executor.submit(self._write_archive, db_path, media, cancel)
            try:
                return future.result(timeout=self.timeout)
            except FutureTimeoutError:
                cancel.set()
                raise ArchiveTimeoutError(
                    f"Archive creation timed out after {self.timeout:g} seconds"
                ) from None
            except (zipfile.BadZipFile, zlib.error, OSError, ValueError) as e:
                raise ArchiveError(f"Failed to create archive: {e}") from e
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _write_archive(
        self, db_path: str, media: MediaMapping, cancel: threading.Event
    ) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(
            buffer, "w", zipfile.ZIP_DEFLATED, compresslevel=self.compress_level
        ) as zf:
            zf.write(db_path, DATABASE_ENTRY)

            written = 0
            for media_file in media.files():
                if cancel.is_set():
                    raise _Cancelled()
                if not media_file.data:
                    continue
                zf.writestr(str(media_file.index), media_file.data)
                written += 1

            zf.writestr(MANIFEST_ENTRY, json.dumps(media.manifest()))

        logger.debug("Archived database and %d media files", written)
        return buffer.getvalue()
