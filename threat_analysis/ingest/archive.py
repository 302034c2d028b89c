"""
Archive Resolver

Decides whether an upload is a zip archive, a gzip stream or plain text
and returns the text payload to parse.

Policy for .gz uploads: the bytes are first opened as a zip container
(some exports are zips with a .gz name), then decompressed as a real
gzip stream if they carry the gzip magic number, and finally decoded as
raw text. Only an empty final text is an error on that path.
"""

import gzip
import io
import logging
import zipfile
import zlib
from typing import List, Optional

from ..errors import CorruptArchiveError, EmptyArchiveError, EmptyPayloadError, ValidationError
from .validation import MAX_FILE_SIZE, file_extension, format_file_size

logger = logging.getLogger(__name__)

GZIP_MAGIC = b'\x1f\x8b'
TEXT_SUFFIXES = ('.log', '.txt')

# Unreadable container or entry (corrupt, encrypted, unsupported method)
ZIP_ERRORS = (zipfile.BadZipFile, zlib.error, RuntimeError, NotImplementedError, EOFError)


def decode_text(data: bytes) -> str:
    """Decode bytes as UTF-8, replacing undecodable bytes and dropping a BOM."""
    return data.decode('utf-8-sig', errors='replace')


class ArchiveResolver:
    """Turns uploaded bytes into the text payload to parse."""

    def resolve(self, file_bytes: bytes, file_name: str, size_bytes: Optional[int] = None) -> str:
        """
        Extract the text payload.

        Args:
            file_bytes: Raw uploaded bytes
            file_name: Declared file name (extension already validated)
            size_bytes: Declared size; uploads over MAX_FILE_SIZE are refused
                before anything is decompressed

        Returns:
            Non-empty decoded text

        Raises:
            EmptyArchiveError: zip holds no file entries
            EmptyPayloadError: decoded text is empty or whitespace
            CorruptArchiveError: a .zip upload that is not a zip
            ValidationError: declared size over the limit
        """
        if size_bytes is not None and size_bytes > MAX_FILE_SIZE:
            raise ValidationError(
                f"File size {format_file_size(size_bytes)} exceeds "
                f"{format_file_size(MAX_FILE_SIZE)} limit"
            )

        extension = file_extension(file_name)

        if extension == '.zip':
            try:
                text = self._read_zip(file_bytes)
            except ZIP_ERRORS as e:
                raise CorruptArchiveError(f"{file_name} is not a valid zip archive: {e}") from e
        elif extension == '.gz':
            text = self._read_gz(file_bytes, file_name)
        else:
            text = decode_text(file_bytes)

        if not text.strip():
            raise EmptyPayloadError(f"{file_name} contains no log text")

        return text

    def _read_zip(self, file_bytes: bytes) -> str:
        with zipfile.ZipFile(io.BytesIO(file_bytes)) as archive:
            entries = [info for info in archive.infolist() if not info.is_dir()]
            if not entries:
                raise EmptyArchiveError("Archive contains no files")

            entry = self.select_entry(entries)
            logger.debug("Extracting %s (%d bytes) from archive", entry.filename, entry.file_size)
            return decode_text(archive.read(entry))

    @staticmethod
    def select_entry(entries: List[zipfile.ZipInfo]) -> zipfile.ZipInfo:
        """First .log/.txt entry, else the first entry."""
        for info in entries:
            if info.filename.lower().endswith(TEXT_SUFFIXES):
                return info
        return entries[0]

    def _read_gz(self, file_bytes: bytes, file_name: str) -> str:
        try:
            return self._read_zip(file_bytes)
        except ZIP_ERRORS + (EmptyArchiveError,):
            logger.debug("%s is not a zip container", file_name)

        if file_bytes.startswith(GZIP_MAGIC):
            try:
                return decode_text(gzip.decompress(file_bytes))
            except (OSError, EOFError, zlib.error) as e:
                logger.warning("Could not decompress %s (%s), reading as text", file_name, e)

        return decode_text(file_bytes)
