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
"""Shared fixtures for the zipkit tests"""

import io
import os
import shutil
import tempfile
import unittest

from zipkit.FileSystems import Info


def makeTree(root, tree):
    """
    Create files and directories under root.

    Args:
        tree: Mapping of "/" separated relative paths to bytes (file) or None (directory)
    """
    for relativePath, content in tree.items():
        path = os.path.join(root, *relativePath.split("/"))
        if content is None:
            os.makedirs(path, exist_ok=True)
        else:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, 'wb') as f:
                f.write(content)


def readTree(root):
    """Inverse of makeTree: relative "/" separated paths mapped to bytes or None for directories"""
    tree = {}
    for dirPath, dirNames, fileNames in os.walk(root):
        relativeDir = os.path.relpath(dirPath, root).replace(os.sep, "/")
        prefix = "" if relativeDir == "." else relativeDir + "/"
        for name in dirNames:
            tree[prefix + name] = None
        for name in fileNames:
            with open(os.path.join(dirPath, name), 'rb') as f:
                tree[prefix + name] = f.read()
    return tree


class MemoryContainerWriter:
    """ContainerWriter recording entries in memory"""

    def __init__(self):
        self.entries = [] # [path, isDirectory, lastModified, data]
        self.closed = False
        self.aborted = False
        self._open = None

    def openEntry(self, path, isDirectory, lastModified, size=None):
        assert self._open is None, "entry already open"
        self._open = [path, isDirectory, lastModified, b'']
        self.entries.append(self._open)

    def writeEntryBytes(self, data):
        self._open[3] += data

    def closeEntry(self):
        self._open = None

    def closeContainer(self):
        self.closed = True

    def abort(self):
        self.aborted = True

    @property
    def paths(self):
        return [entry[0] for entry in self.entries]


class CountingFileAccessor:
    """Wraps an accessor and records every openFilesForReading() batch"""

    def __init__(self, accessor):
        self.accessor = accessor
        self.sep = accessor.sep
        self.batches = []

    def __getattr__(self, name):
        return getattr(self.accessor, name)

    def openFilesForReading(self, paths):
        self.batches.append(list(paths))
        return self.accessor.openFilesForReading(paths)


class MemoryFileAccessor:
    """FileAccessor over a dict of paths, files are served as BytesIO objects"""

    def __init__(self, files, directories=(), sep="/", lastModified=1600000000.0):
        self.files = dict(files)
        self.directories = set(directories)
        self.sep = sep
        self.lastModified = lastModified

    def joinPath(self, parent, name):
        return f"{parent}{self.sep}{name}" if parent else name

    def absPath(self, path):
        return self.sep + path

    def list(self, path):
        def isChild(candidate):
            head, _, tail = candidate.rpartition(self.sep)
            return head == path and tail

        return (
            sorted(p for p in self.files if isChild(p)),
            sorted(p for p in self.directories if isChild(p)),
        )

    def getInfo(self, path):
        if path in self.directories:
            return Info(isDirectory=True, lastModified=self.lastModified)
        if path in self.files:
            return Info(isDirectory=False, lastModified=self.lastModified, size=len(self.files[path]))
        raise FileNotFoundError(path)

    def openFilesForReading(self, paths):
        return [io.BytesIO(self.files[p]) if p in self.files else None for p in paths]

    def getLastModifiedTime(self, path):
        return self.lastModified if path in self.directories else None

    def directoryExists(self, path):
        return path in self.directories


class TempDirTestCase(unittest.TestCase):

    def setUp(self):
        self.tempDir = tempfile.mkdtemp(prefix="zipkit_test_")
        self.srcDir = os.path.join(self.tempDir, "src")
        self.outDir = os.path.join(self.tempDir, "out")
        os.makedirs(self.srcDir)

    def tearDown(self):
        shutil.rmtree(self.tempDir, ignore_errors=True)

    def archivePath(self, name="archive.zip"):
        return os.path.join(self.tempDir, name)
