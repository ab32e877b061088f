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

import io
import os
import datetime
import unittest
import zipfile

from zipkit.ZipReader import FilePathWriterDelegate, FileWriterDelegate, ZipReader

from ..ZipKitTestBase import TempDirTestCase


class ZipReaderTest(TempDirTestCase):

    def setUp(self):
        super().setUp()
        self.zipPath = self.archivePath()
        with zipfile.ZipFile(self.zipPath, 'w') as zf:
            zf.writestr("dir/", b"")
            zf.writestr(zipfile.ZipInfo("dir/a.txt", date_time=(2020, 1, 2, 3, 4, 6)), b"alpha")
            zf.writestr("b.bin", b"\x00" * 1000)

    def testIterateEntries(self):
        reader = ZipReader.open(self.zipPath)
        self.assertIsNotNone(reader)

        entries = []
        with reader:
            while reader.hasMore():
                self.assertTrue(reader.openCurrentEntry())
                entry = reader.currentEntry
                entries.append((entry.path, entry.isDirectory))
                self.assertTrue(reader.advanceToNextEntry())

            self.assertFalse(reader.openCurrentEntry())
            self.assertFalse(reader.advanceToNextEntry())

        self.assertEqual(entries, [("dir", True), ("dir/a.txt", False), ("b.bin", False)])

    def testExtractToFileObject(self):
        output = io.BytesIO()
        with ZipReader.open(self.zipPath) as reader:
            reader.advanceToNextEntry()
            reader.openCurrentEntry()
            delegate = FileWriterDelegate(output)
            self.assertTrue(reader.extractCurrentEntry(delegate))

        self.assertEqual(output.getvalue(), b"alpha")
        self.assertEqual(delegate.fileLength, 5)

    def testExtractRestoresModifiedTime(self):
        target = os.path.join(self.outDir, "nested", "a.txt")
        with ZipReader.open(self.zipPath) as reader:
            reader.advanceToNextEntry()
            reader.openCurrentEntry()
            with FilePathWriterDelegate(target) as delegate:
                self.assertTrue(reader.extractCurrentEntry(delegate))

        with open(target, 'rb') as f:
            self.assertEqual(f.read(), b"alpha")
        self.assertEqual(os.path.getmtime(target), datetime.datetime(2020, 1, 2, 3, 4, 6).timestamp())

    def testSizeLimitExceeded(self):
        output = io.BytesIO()
        with ZipReader.open(self.zipPath) as reader:
            reader.advanceToNextEntry()
            reader.advanceToNextEntry()
            reader.openCurrentEntry()
            self.assertFalse(reader.extractCurrentEntry(FileWriterDelegate(output), sizeLimit=100))
            self.assertTrue(reader.extractCurrentEntry(FileWriterDelegate(io.BytesIO()), sizeLimit=1000))

        self.assertLessEqual(len(output.getvalue()), 100)

    def testExtractDirectoryEntryFails(self):
        with ZipReader.open(self.zipPath) as reader:
            reader.openCurrentEntry()
            self.assertFalse(reader.extractCurrentEntry(FileWriterDelegate(io.BytesIO())))

    def testExtractWithoutOpenEntryFails(self):
        with ZipReader.open(self.zipPath) as reader:
            self.assertFalse(reader.extractCurrentEntry(FileWriterDelegate(io.BytesIO())))

    def testDelegateCannotPrepareOutput(self):
        # The parent of the target is a regular file
        blocker = os.path.join(self.tempDir, "blocker")
        with open(blocker, 'wb') as f:
            f.write(b"")

        with ZipReader.open(self.zipPath) as reader:
            reader.advanceToNextEntry()
            reader.openCurrentEntry()
            delegate = FilePathWriterDelegate(os.path.join(blocker, "a.txt"))
            self.assertFalse(reader.extractCurrentEntry(delegate))

    def testOpenFailures(self):
        self.assertIsNone(ZipReader.open(os.path.join(self.tempDir, "missing.zip")))

        junk = self.archivePath("junk.zip")
        with open(junk, 'wb') as f:
            f.write(b"not a zip")
        self.assertIsNone(ZipReader.open(junk))

    def testOpenFromDescriptor(self):
        fd = os.open(self.zipPath, os.O_RDONLY)
        try:
            with ZipReader.open(fd) as reader:
                self.assertTrue(reader.hasMore())
            os.fstat(fd) # Left open
        finally:
            os.close(fd)


if __name__ == '__main__':
    unittest.main()
