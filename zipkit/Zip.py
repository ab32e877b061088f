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
Archive level operations.

createArchive() and extractArchive() drive a whole zip or unzip operation,
returning True on success and False on any failure. What went wrong, and
for which path, is written to the log.
"""

import os

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from zipkit.Exceptions import BackendError, ConfigurationError, UnsafeEntryError, ZipCancelledError, ZipError
from zipkit.FileSystems import FileAccessor, LocalFileAccessor
from zipkit.Kernel import getLogger
from zipkit.Progress import ProgressCallback, ProgressReporter
from zipkit.Settings import DEFAULT_COMPRESSION, DEFAULT_PROGRESS_PERIOD
from zipkit.Traversal import collectEntries
from zipkit.ZipReader import FilePathWriterDelegate, WriterDelegate, ZipReader
from zipkit.ZipWriter import ZipWriter

logger = getLogger(__name__)

FilterCallback = Callable[[str], bool]
WriterFactory = Callable[[str], Optional[WriterDelegate]]
DirectoryCreator = Callable[[str], bool]


@dataclass
class ZipParams:
    srcDir: str

    # Exactly one destination must be given
    destFile: Optional[str] = None
    destFd: Optional[int] = None

    # Relative paths to store, the whole tree under srcDir when empty
    srcFiles: List[str] = field(default_factory=list)

    includeHiddenFiles: bool = False
    filterCallback: Optional[FilterCallback] = None # Receives absolute source paths

    progressCallback: Optional[ProgressCallback] = None
    progressPeriod: float = DEFAULT_PROGRESS_PERIOD

    shouldContinue: Optional[Callable[[], bool]] = None

    # Defaults to a LocalFileAccessor on srcDir
    fileAccessor: Optional[FileAccessor] = None

    compression: str = DEFAULT_COMPRESSION

    def validate(self):
        if self.destFile is not None and self.destFd is not None:
            raise ConfigurationError("Cannot write to both a file and a descriptor")
        if self.destFile is None and self.destFd is None:
            raise ConfigurationError("No destination given")


def createArchive(params: ZipParams) -> bool:
    try:
        params.validate()
    except ConfigurationError as e:
        logger.error(f"Invalid zip parameters: {e}")
        return False

    accessor = params.fileAccessor or LocalFileAccessor(params.srcDir)

    paths = list(params.srcFiles)
    if not paths:
        try:
            paths = collectEntries(accessor, params.includeHiddenFiles, params.filterCallback)
        except (ZipError, OSError) as e:
            logger.error(f"Cannot list '{params.srcDir}': {e}")
            return False

    if params.destFile is not None:
        writer = ZipWriter.create(params.destFile, accessor, compression=params.compression)
    else:
        writer = ZipWriter.createWithFd(params.destFd, accessor, compression=params.compression)

    if writer is None:
        return False

    writer.setProgressCallback(params.progressCallback, params.progressPeriod)
    writer.setCancellationCallback(params.shouldContinue)

    logger.debug(f"Zipping {len(paths)} entries from '{params.srcDir}'")
    return writer.writeEntries(paths)


def zipWithFilterCallback(srcDir: str, destFile: str, filterCallback: FilterCallback) -> bool:
    """Zip srcDir into destFile, hidden files included, keeping the paths filterCallback accepts."""
    return createArchive(
        ZipParams(srcDir=srcDir, destFile=destFile, includeHiddenFiles=True, filterCallback=filterCallback)
    )


def zipDirectory(srcDir: str, destFile: str, includeHiddenFiles: bool = False) -> bool:
    return createArchive(ZipParams(srcDir=srcDir, destFile=destFile, includeHiddenFiles=includeHiddenFiles))


def zipFiles(srcDir: str, srcRelativePaths: List[str], destFd: int) -> bool:
    """Zip the given paths of srcDir into an open descriptor. The descriptor stays open."""
    return createArchive(
        ZipParams(srcDir=srcDir, destFd=destFd, srcFiles=list(srcRelativePaths), includeHiddenFiles=True)
    )


def extractArchiveCustom(
    srcFile,
    writerFactory: WriterFactory,
    directoryCreator: DirectoryCreator,
    filterCallback: Optional[FilterCallback] = None,
    logSkippedFiles: bool = True,
    progressCallback: Optional[ProgressCallback] = None,
    progressPeriod: float = DEFAULT_PROGRESS_PERIOD,
    shouldContinue: Optional[Callable[[], bool]] = None,
) -> bool:
    """
    Extract an archive through caller supplied collaborators.

    Entries are processed in storage order. An entry whose path would
    escape the destination aborts the whole extraction before the filter
    or any collaborator sees it. Entries already extracted stay in place.

    Args:
        srcFile: Archive path, open descriptor or binary file object
        writerFactory: Returns the WriterDelegate for a file entry path, or None to fail
        directoryCreator: Creates a directory entry path, returns False to fail
        filterCallback: Receives relative entry paths, returns False to skip an entry
        logSkippedFiles: Log entries skipped by filterCallback
        progressCallback: Receives ZipProgress snapshots
        progressPeriod: Minimum seconds between two progress callbacks
        shouldContinue: Polled before each entry, returning False cancels the extraction

    Returns:
        True if every entry was processed
    """
    reader = ZipReader.open(srcFile)
    if reader is None:
        return False

    reporter = ProgressReporter(progressCallback, progressPeriod)

    try:
        with reader:
            while reader.hasMore():
                if shouldContinue is not None and not shouldContinue():
                    raise ZipCancelledError("Cancelled by caller")

                if not reader.openCurrentEntry():
                    raise BackendError("Cannot open the current archive entry")

                entry = reader.currentEntry
                if entry.isUnsafe:
                    raise UnsafeEntryError(f"Found unsafe entry '{entry.path}' in archive", entry.path)

                if filterCallback is None or filterCallback(entry.path):
                    if entry.isDirectory:
                        if not directoryCreator(entry.path):
                            raise BackendError(f"Cannot create directory '{entry.path}'", entry.path)
                        reporter.report(directories=1)
                    else:
                        _extractFileEntry(reader, writerFactory, entry.path)
                        reporter.report(bytes=entry.size, files=1)
                elif logSkippedFiles:
                    logger.warning(f"Skipped archive entry '{entry.path}'")

                if not reader.advanceToNextEntry():
                    raise BackendError(f"Cannot advance past archive entry '{entry.path}'", entry.path)

    except ZipCancelledError as e:
        logger.warning(f"Extraction cancelled: {e}")
        return False
    except ZipError as e:
        logger.error(f"Extraction failed: {e}")
        return False

    reporter.finish()
    return True


def _extractFileEntry(reader: ZipReader, writerFactory: WriterFactory, path: str) -> None:
    delegate = writerFactory(path)
    if delegate is None:
        raise BackendError(f"No writer for '{path}'", path)

    try:
        if not reader.extractCurrentEntry(delegate):
            raise BackendError(f"Failed to extract '{path}'", path)
    finally:
        if hasattr(delegate, 'close'):
            delegate.close()


def extractArchive(
    srcFile,
    destDir: str,
    filterCallback: Optional[FilterCallback] = None,
    logSkippedFiles: bool = True,
    **kwargs,
) -> bool:
    """
    Extract an archive under destDir.

    Extra keyword arguments (progressCallback, progressPeriod,
    shouldContinue) are passed to extractArchiveCustom().
    """
    destDir = os.path.abspath(destDir)

    def localPath(path):
        return os.path.join(destDir, path.replace("/", os.sep))

    def createDirectory(path):
        try:
            os.makedirs(localPath(path), exist_ok=True)
            return True
        except OSError as e:
            logger.error(f"Cannot create '{localPath(path)}': {e}")
            return False

    return extractArchiveCustom(
        srcFile,
        lambda path: FilePathWriterDelegate(localPath(path)),
        createDirectory,
        filterCallback=filterCallback,
        logSkippedFiles=logSkippedFiles,
        **kwargs,
    )


def unzip(srcFile, destDir: str) -> bool:
    return extractArchive(srcFile, destDir)
