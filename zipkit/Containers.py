#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# ZipKit - ZIP archive assembly and extraction
# Copyright (C) 2025-2026 ZipKit contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Archive container codecs.

The orchestration in ZipWriter/ZipReader only ever talks to the
ContainerWriter/ContainerReader protocols. The concrete ZIP byte format
(local headers, central directory, CRC, DEFLATE) is delegated to the
standard zipfile module.
"""

import os
import re
import stat
import datetime
import tempfile
import zipfile
import zlib

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import BinaryIO, Callable, Optional, Protocol, Union

from zipkit.Exceptions import BackendError
from zipkit.Kernel import getLogger
from zipkit.Settings import DEFAULT_COMPRESSION, ZIP_BUF_SIZE

logger = getLogger(__name__)

COMPRESSIONS = {
    'store': zipfile.ZIP_STORED,
    'deflate': zipfile.ZIP_DEFLATED,
}

# DOS date range is 1980-2107
DOS_EPOCH = (1980, 1, 1, 0, 0, 0)
DOS_MAX = (2107, 12, 31, 23, 59, 58)

_DRIVE_LETTER = re.compile(r'^[A-Za-z]:')


def toDosDateTime(timestamp: Optional[float]) -> tuple:
    """
    Convert a Unix timestamp to a ZipInfo date_time tuple, clamped to the DOS range.

    Args:
        timestamp: Unix timestamp (seconds since epoch) or None

    Returns:
        tuple: (year, month, day, hour, minute, second)
    """
    if timestamp is None or timestamp <= 0:
        return DOS_EPOCH

    try:
        dt = datetime.datetime.fromtimestamp(timestamp)
    except (ValueError, OSError, OverflowError):
        return DOS_EPOCH

    if dt.year < 1980:
        return DOS_EPOCH
    if dt.year > 2107:
        return DOS_MAX

    return (dt.year, dt.month, dt.day, dt.hour, dt.minute, dt.second)


def fromDosDateTime(dateTime: tuple) -> Optional[float]:
    try:
        return datetime.datetime(*dateTime).timestamp()
    except (ValueError, OverflowError):
        return None


def isUnsafePath(name: str) -> bool:
    """
    Tell whether an entry name would resolve outside the extraction root.

    Backslashes are treated as separators so that Windows-style traversal
    ("..\\evil") is caught on every platform.
    """
    normalized = name.replace("\\", "/")
    if not normalized.strip("/"):
        return True

    if normalized.startswith("/") or _DRIVE_LETTER.match(normalized):
        return True

    return any(part == ".." for part in PurePosixPath(normalized).parts)


@dataclass
class ContainerEntry:
    """One entry as declared by the container"""
    path: str # Relative, "/" separated, no trailing separator
    isDirectory: bool
    isUnsafe: bool
    lastModified: Optional[float]
    size: int


class ContainerWriter(Protocol):
    """Write side of the container codec. Every method raises on failure."""

    def openEntry(self, path: str, isDirectory: bool, lastModified: Optional[float], size: int = None) -> None:
        ...

    def writeEntryBytes(self, data: bytes) -> None:
        ...

    def closeEntry(self) -> None:
        ...

    def closeContainer(self) -> None:
        ... # Finalizes the container

    def abort(self) -> None:
        ... # Best-effort close after a failure, never raises


class ContainerReader(Protocol):
    """Read side of the container codec."""

    def hasMoreEntries(self) -> bool:
        ...

    def currentEntry(self) -> ContainerEntry:
        ...

    def extractEntry(self, sink: Callable[[bytes], bool], sizeLimit: int) -> bool:
        ... # False if the entry holds more than sizeLimit bytes or the sink refused data

    def advanceEntry(self) -> None:
        ...

    def close(self) -> None:
        ...


class ZipContainerWriter:
    """
    ContainerWriter producing a ZIP file.

    When created for a path, the archive is written to a temporary file next
    to the destination and only renamed into place by closeContainer().
    """

    def __init__(self, fileObj: BinaryIO, compression: str = DEFAULT_COMPRESSION,
                 tempPath: str = None, destPath: str = None):
        if compression not in COMPRESSIONS:
            raise ValueError(f"Invalid compression: {compression}")

        self._fileObj = fileObj
        self._tempPath = tempPath
        self._destPath = destPath
        self._compressType = COMPRESSIONS[compression]
        self._zip = zipfile.ZipFile(fileObj, 'w', compression=self._compressType, allowZip64=True)
        self._stream = None
        self._entryName = None

    @classmethod
    def create(cls, destPath: str, compression: str = DEFAULT_COMPRESSION) -> 'ZipContainerWriter':
        """
        Create a ZIP container for the file at destPath.

        Raises:
            OSError: If the destination directory is not writable
        """
        if compression not in COMPRESSIONS:
            raise ValueError(f"Invalid compression: {compression}")

        destPath = os.path.abspath(destPath)
        fd, tempPath = tempfile.mkstemp(
            prefix=f".{os.path.basename(destPath)}.", suffix=".tmp", dir=os.path.dirname(destPath)
        )
        try:
            # mkstemp creates 0600 files, the archive gets the usual umask based mode
            umask = os.umask(0)
            os.umask(umask)
            os.chmod(tempPath, 0o666 & ~umask)
            fileObj = os.fdopen(fd, 'wb')
        except OSError:
            os.close(fd)
            os.remove(tempPath)
            raise

        return cls(fileObj, compression=compression, tempPath=tempPath, destPath=destPath)

    @classmethod
    def createWithFd(cls, fd: int, compression: str = DEFAULT_COMPRESSION) -> 'ZipContainerWriter':
        """Create a ZIP container writing to an already open descriptor, which stays open afterwards."""
        return cls(open(fd, 'wb', closefd=False), compression=compression)

    def openEntry(self, path: str, isDirectory: bool, lastModified: Optional[float], size: int = None) -> None:
        if self._stream is not None:
            raise BackendError(f"Entry '{self._entryName}' is still open", path)

        zinfo = zipfile.ZipInfo(path + "/" if isDirectory else path, date_time=toDosDateTime(lastModified))
        self._entryName = zinfo.filename

        if isDirectory:
            zinfo.external_attr = (0o40755 << 16) | 0x10 # MS-DOS directory flag
            self._zip.writestr(zinfo, b'')
            return

        zinfo.external_attr = 0o644 << 16
        zinfo.compress_type = self._compressType
        zinfo.file_size = size or 0
        forceZip64 = size is None or size * 1.05 > zipfile.ZIP64_LIMIT
        self._stream = self._zip.open(zinfo, 'w', force_zip64=forceZip64)

    def writeEntryBytes(self, data: bytes) -> None:
        if self._stream is None:
            raise BackendError("No file entry is open", self._entryName)
        self._stream.write(data)

    def closeEntry(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return # Directory entries are complete once opened

        try:
            stream.close()
        except RuntimeError as e: # zipfile refuses data beyond the announced size
            raise BackendError(f"Cannot close entry '{self._entryName}': {e}", self._entryName) from e

    def closeContainer(self) -> None:
        if self._stream is not None:
            raise BackendError(f"Entry '{self._entryName}' is still open", self._entryName)

        self._zip.close()
        self._fileObj.close()

        if self._tempPath:
            os.replace(self._tempPath, self._destPath)
            logger.debug(f"Archive committed to {self._destPath}")
            self._tempPath = None

    def abort(self) -> None:
        if self._stream is not None:
            try:
                self._stream.close()
            except (OSError, RuntimeError, ValueError) as e:
                logger.debug(f"Error closing entry '{self._entryName}' during abort: {e}")
            self._stream = None

        try:
            self._zip.close()
        except (OSError, RuntimeError, ValueError) as e:
            logger.debug(f"Error closing archive during abort: {e}")

        try:
            self._fileObj.close()
        except OSError as e:
            logger.debug(f"Error closing archive file during abort: {e}")

        if self._tempPath:
            try:
                os.remove(self._tempPath)
            except OSError as e:
                logger.warning(f"Cannot remove temporary archive {self._tempPath}: {e}")
            self._tempPath = None


class ZipContainerReader:
    """ContainerReader over a ZIP file, entries in central directory order."""

    def __init__(self, source: Union[str, os.PathLike, int, BinaryIO]):
        """
        Open a ZIP container.

        Args:
            source: Path, open descriptor (left open on close) or binary file object

        Raises:
            OSError: If the source cannot be opened
            BackendError: If the source is not a valid ZIP file
        """
        self._ownedFile = None
        if isinstance(source, int):
            source = self._ownedFile = open(source, 'rb', closefd=False)

        try:
            self._zip = zipfile.ZipFile(source, 'r')
        except zipfile.BadZipFile as e:
            self._closeOwnedFile()
            raise BackendError(f"Not a valid ZIP file: {e}") from e

        self._infos = self._zip.infolist()
        self._index = 0

    def _closeOwnedFile(self):
        if self._ownedFile:
            self._ownedFile.close()
            self._ownedFile = None

    @staticmethod
    def _isSymlink(info: zipfile.ZipInfo) -> bool:
        # Unix-like archivers keep the POSIX mode in the top 16 bits
        return stat.S_ISLNK(info.external_attr >> 16)

    def hasMoreEntries(self) -> bool:
        return self._index < len(self._infos)

    def currentEntry(self) -> ContainerEntry:
        info = self._infos[self._index]
        name = info.filename.replace("\\", "/")
        return ContainerEntry(
            path=name.strip("/") if not isUnsafePath(name) else name,
            isDirectory=name.endswith("/"),
            isUnsafe=isUnsafePath(name) or self._isSymlink(info),
            lastModified=fromDosDateTime(info.date_time),
            size=info.file_size,
        )

    def extractEntry(self, sink: Callable[[bytes], bool], sizeLimit: int) -> bool:
        """
        Stream the decompressed bytes of the current entry into sink.

        Returns:
            False if sink refused a chunk or the entry is larger than sizeLimit

        Raises:
            BackendError: If the entry data is corrupt
        """
        info = self._infos[self._index]
        if info.flag_bits & 0x1:
            raise BackendError(f"Entry '{info.filename}' is encrypted", info.filename)

        remaining = sizeLimit

        try:
            with self._zip.open(info, 'r') as stream:
                while True:
                    chunk = stream.read(min(ZIP_BUF_SIZE, remaining + 1))
                    if not chunk:
                        return True

                    if len(chunk) > remaining:
                        if remaining and not sink(chunk[:remaining]):
                            return False
                        logger.warning(f"Entry '{info.filename}' exceeds the size limit of {sizeLimit} bytes")
                        return False

                    if not sink(chunk):
                        return False
                    remaining -= len(chunk)

        except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError) as e:
            raise BackendError(f"Cannot decompress '{info.filename}': {e}", info.filename) from e

    def advanceEntry(self) -> None:
        if self._index < len(self._infos):
            self._index += 1

    def close(self) -> None:
        self._zip.close()
        self._closeOwnedFile()
