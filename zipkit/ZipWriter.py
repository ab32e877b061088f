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
Batched archive writer.

Paths are queued and resolved against the file accessor in batches of
MAX_PENDING_ENTRIES, so a backend with expensive calls pays one
openFilesForReading() round-trip per batch while at most one batch of file
handles is open at any time.
"""

import os

from typing import BinaryIO, Callable, List, Optional, Sequence

from zipkit.Containers import ContainerWriter, ZipContainerWriter, isUnsafePath
from zipkit.Exceptions import BackendError, ConfigurationError, ZipCancelledError, ZipError
from zipkit.FileSystems import FileAccessor
from zipkit.Kernel import getLogger
from zipkit.Progress import ProgressCallback, ProgressReporter, ZipProgress
from zipkit.Settings import DEFAULT_COMPRESSION, DEFAULT_PROGRESS_PERIOD, MAX_PENDING_ENTRIES, ZIP_BUF_SIZE

logger = getLogger(__name__)


class ZipWriter:

    def __init__(self, container: ContainerWriter, accessor: FileAccessor):
        self._container = container
        self._accessor = accessor
        self._pending: List[str] = []
        self._reporter = ProgressReporter()
        self._shouldContinue: Optional[Callable[[], bool]] = None
        self._closed = False

    @classmethod
    def create(cls, destPath: str, accessor: FileAccessor,
               compression: str = DEFAULT_COMPRESSION) -> Optional['ZipWriter']:
        """
        Create a writer producing the archive at destPath.

        Returns:
            ZipWriter, or None if the archive cannot be created
        """
        try:
            container = ZipContainerWriter.create(destPath, compression=compression)
        except (OSError, ValueError) as e:
            logger.error(f"Cannot create archive '{destPath}': {e}")
            return None
        return cls(container, accessor)

    @classmethod
    def createWithFd(cls, fd: int, accessor: FileAccessor,
                     compression: str = DEFAULT_COMPRESSION) -> Optional['ZipWriter']:
        """Create a writer producing the archive into an open descriptor, which is not closed afterwards."""
        try:
            container = ZipContainerWriter.createWithFd(fd, compression=compression)
        except (OSError, ValueError) as e:
            logger.error(f"Cannot create archive on descriptor {fd}: {e}")
            return None
        return cls(container, accessor)

    @property
    def progress(self) -> ZipProgress:
        return self._reporter.progress

    @property
    def pendingCount(self) -> int:
        return len(self._pending)

    def setProgressCallback(self, callback: Optional[ProgressCallback],
                            period: float = DEFAULT_PROGRESS_PERIOD) -> None:
        self._reporter.callback = callback
        self._reporter.period = period

    def setCancellationCallback(self, shouldContinue: Optional[Callable[[], bool]]) -> None:
        """shouldContinue() is polled before each batch and each entry, returning False cancels the operation."""
        self._shouldContinue = shouldContinue

    def addEntries(self, paths: Sequence[str]) -> bool:
        """
        Queue paths relative to the accessor root, writing full batches right away.

        Returns:
            False if any entry could not be written, the archive is then discarded
        """
        self._checkOpen()
        return self._run(self._queueEntries, paths)

    def writeEntries(self, paths: Sequence[str]) -> bool:
        """addEntries() followed by close()"""
        if not self.addEntries(paths):
            return False
        return self.close()

    def close(self) -> bool:
        """
        Write all remaining entries and finalize the archive.

        Returns:
            True if the archive is complete
        """
        self._checkOpen()
        if not self._run(self._flushEntriesIfNeeded, True):
            return False

        if not self._run(self._container.closeContainer):
            return False

        self._closed = True
        self._reporter.finish()
        logger.debug(f"Archive closed: {self._reporter.progress}")
        return True

    def _checkOpen(self):
        if self._closed:
            raise RuntimeError("ZipWriter is already closed")

    def _run(self, step, *args) -> bool:
        try:
            step(*args)
            return True
        except ZipCancelledError as e:
            logger.warning(f"Archive creation cancelled: {e}")
        except (ZipError, OSError) as e:
            logger.error(f"Archive creation failed: {e}")

        self._abort()
        return False

    def _abort(self):
        self._pending.clear()
        self._closed = True
        self._container.abort()

    def _queueEntries(self, paths: Sequence[str]) -> None:
        for path in paths:
            # Entries must stay below the accessor root
            if os.path.isabs(path) or isUnsafePath(path):
                raise ConfigurationError(f"Entry path '{path}' is not relative to the source root", path)

        self._pending.extend(paths)
        self._flushEntriesIfNeeded(False)

    def _checkCancelled(self):
        if self._shouldContinue is not None and not self._shouldContinue():
            raise ZipCancelledError("Cancelled by caller")

    def _flushEntriesIfNeeded(self, force: bool) -> None:
        while len(self._pending) >= MAX_PENDING_ENTRIES or (force and self._pending):
            self._checkCancelled()

            batch = self._pending[:MAX_PENDING_ENTRIES]
            del self._pending[:MAX_PENDING_ENTRIES]

            files = self._accessor.openFilesForReading(batch)
            try:
                if len(files) != len(batch):
                    raise BackendError(f"Accessor resolved {len(files)} of {len(batch)} paths")

                for path, fileObj in zip(batch, files):
                    self._checkCancelled()
                    if fileObj is not None:
                        self._addFileEntry(path, fileObj)
                    else:
                        self._addDirectoryEntry(path)
            finally:
                for fileObj in files:
                    if fileObj is not None:
                        fileObj.close()

    def _entryName(self, path: str) -> str:
        if self._accessor.sep != "/":
            return path.replace(self._accessor.sep, "/")
        return path

    def _fileStat(self, path: str, fileObj: BinaryIO):
        """(size, lastModified) of an open file, asking the accessor when there is no descriptor"""
        try:
            st = os.fstat(fileObj.fileno())
            return st.st_size, st.st_mtime
        except (OSError, AttributeError):
            info = self._accessor.getInfo(path)
            return info.size, info.lastModified

    def _addFileEntry(self, path: str, fileObj: BinaryIO) -> None:
        size, lastModified = self._fileStat(path, fileObj)
        self._container.openEntry(self._entryName(path), False, lastModified, size)

        while True:
            chunk = fileObj.read(ZIP_BUF_SIZE)
            if not chunk:
                break
            self._container.writeEntryBytes(chunk)
            self._reporter.report(bytes=len(chunk))

        self._container.closeEntry()
        self._reporter.report(files=1)

    def _addDirectoryEntry(self, path: str) -> None:
        lastModified = self._accessor.getLastModifiedTime(path)
        if lastModified is None:
            raise BackendError(f"Cannot get info of '{path}'", path)

        self._container.openEntry(self._entryName(path), True, lastModified)
        self._container.closeEntry()
        self._reporter.report(directories=1)

    def __del__(self):
        if getattr(self, '_pending', None):
            logger.error(f"ZipWriter destroyed with {len(self._pending)} pending entries")
        if not getattr(self, '_closed', True):
            self._abort()
