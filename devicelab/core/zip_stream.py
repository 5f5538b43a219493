"""Iterate the files of a zip archive, unwrapping archives nested inside it.

Entries are opened lazily; nothing is read until the caller asks for an
entry's content. Nested archives are spooled to a temporary file that stays in
memory only while it is small.
"""

import shutil
import tempfile
import zipfile
from dataclasses import dataclass
from typing import IO, Iterator

# Nested archives larger than this are spooled to disk
SPOOL_MAX_SIZE = 16 * 1024 * 1024


@dataclass
class ZipEntry:
    """A file inside an archive. Only usable while the iteration is ongoing."""

    name: str
    size: int
    _archive: zipfile.ZipFile
    _info: zipfile.ZipInfo

    def open(self) -> IO[bytes]:
        return self._archive.open(self._info)

    def read(self) -> bytes:
        with self.open() as stream:
            return stream.read()


def iter_zip_entries(fileobj: IO[bytes], unwrap_nested: bool = True) -> Iterator[ZipEntry]:
    """
    Yield the file entries of the archive in ``fileobj``.

    Args:
        fileobj: Seekable binary file containing a zip archive
        unwrap_nested: When set, ``.zip`` entries are not yielded; their own
            entries are yielded in their place, recursively

    Yields:
        One ZipEntry per file, in archive order
    """
    with zipfile.ZipFile(fileobj) as archive:
        yield from _iter_archive(archive, unwrap_nested)


def _iter_archive(archive: zipfile.ZipFile, unwrap_nested: bool) -> Iterator[ZipEntry]:
    for info in archive.infolist():
        if info.is_dir():
            continue
        if unwrap_nested and info.filename.lower().endswith(".zip"):
            with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE) as spooled:
                with archive.open(info) as nested:
                    shutil.copyfileobj(nested, spooled)
                spooled.seek(0)
                yield from iter_zip_entries(spooled, unwrap_nested=True)
            continue
        yield ZipEntry(name=info.filename, size=info.file_size, _archive=archive, _info=info)
