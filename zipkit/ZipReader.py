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

import os

from typing import BinaryIO, Optional, Protocol, Union

from zipkit.Containers import ContainerEntry, ContainerReader, ZipContainerReader
from zipkit.Exceptions import BackendError
from zipkit.Kernel import getLogger
from zipkit.Settings import NO_SIZE_LIMIT

logger = getLogger(__name__)


class WriterDelegate(Protocol):
    """Receives the bytes of one extracted entry"""

    def prepareOutput(self) -> bool:
        ...

    def writeBytes(self, data: bytes) -> bool:
        ...

    def setTimeModified(self, timestamp: float) -> None:
        ...


class FilePathWriterDelegate:
    """Writes an entry to a file path, creating its parent directories."""

    def __init__(self, outputPath: str):
        self.outputPath = outputPath
        self._file = None

    def prepareOutput(self) -> bool:
        try:
            os.makedirs(os.path.dirname(self.outputPath) or ".", exist_ok=True)
            self._file = open(self.outputPath, 'wb')
            return True
        except OSError as e:
            logger.error(f"Cannot create '{self.outputPath}': {e}")
            return False

    def writeBytes(self, data: bytes) -> bool:
        try:
            self._file.write(data)
            return True
        except OSError as e:
            logger.error(f"Cannot write '{self.outputPath}': {e}")
            return False

    def setTimeModified(self, timestamp: float) -> None:
        # Closing first so buffered data does not bump the time again
        self.close()
        try:
            os.utime(self.outputPath, (timestamp, timestamp))
        except OSError as e:
            logger.warning(f"Cannot set modification time of '{self.outputPath}': {e}")

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self):
        return self

    def __exit__(self, excType, excVal, excTb):
        self.close()


class FileWriterDelegate:
    """Writes an entry into an already open binary file object, which is left open."""

    def __init__(self, fileObj: BinaryIO):
        self.fileObj = fileObj
        self.fileLength = 0

    def prepareOutput(self) -> bool:
        return True

    def writeBytes(self, data: bytes) -> bool:
        try:
            self.fileObj.write(data)
        except OSError as e:
            logger.error(f"Cannot write extracted data: {e}")
            return False
        self.fileLength += len(data)
        return True

    def setTimeModified(self, timestamp: float) -> None:
        pass


class ZipReader:
    """
    Iterates the entries of an archive in storage order.

    Typical use:

        reader = ZipReader.open(path)
        while reader.hasMore():
            if not reader.openCurrentEntry():
                break
            ...
            if not reader.advanceToNextEntry():
                break
    """

    def __init__(self, container: ContainerReader):
        self._container = container
        self._current: Optional[ContainerEntry] = None

    @classmethod
    def open(cls, source: Union[str, os.PathLike, int, BinaryIO]) -> Optional['ZipReader']:
        """
        Open an archive from a path, a descriptor or a binary file object.

        Returns:
            ZipReader, or None if the archive cannot be opened
        """
        try:
            return cls(ZipContainerReader(source))
        except (OSError, BackendError) as e:
            logger.error(f"Cannot open archive '{source}': {e}")
            return None

    @property
    def currentEntry(self) -> Optional[ContainerEntry]:
        """Entry loaded by the last openCurrentEntry() call"""
        return self._current

    def hasMore(self) -> bool:
        return self._container.hasMoreEntries()

    def openCurrentEntry(self) -> bool:
        if not self.hasMore():
            return False

        self._current = self._container.currentEntry()
        return True

    def extractCurrentEntry(self, delegate: WriterDelegate, sizeLimit: int = NO_SIZE_LIMIT) -> bool:
        """
        Extract the current file entry into delegate.

        Args:
            delegate: Receives the decompressed bytes
            sizeLimit: Fail instead of extracting more than this many bytes

        Returns:
            True if the whole entry was written
        """
        entry = self._current
        if entry is None or entry.isDirectory:
            logger.error("No file entry is open")
            return False

        if not delegate.prepareOutput():
            return False

        try:
            if not self._container.extractEntry(delegate.writeBytes, sizeLimit):
                logger.error(f"Cannot extract '{entry.path}'")
                return False
        except BackendError as e:
            logger.error(f"Cannot extract '{entry.path}': {e}")
            return False

        if entry.lastModified is not None:
            delegate.setTimeModified(entry.lastModified)
        return True

    def advanceToNextEntry(self) -> bool:
        if not self.hasMore():
            return False

        self._container.advanceEntry()
        self._current = None
        return True

    def close(self) -> None:
        self._container.close()

    def __enter__(self):
        return self

    def __exit__(self, excType, excVal, excTb):
        self.close()
