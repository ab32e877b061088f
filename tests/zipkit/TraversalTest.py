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
import unittest

from unittest import mock

from zipkit.FileSystems import LocalFileAccessor
from zipkit.Traversal import collectEntries, isHiddenFile

from ..ZipKitTestBase import TempDirTestCase, makeTree


def p(path):
    return path.replace("/", os.sep)


class IsHiddenFileTest(unittest.TestCase):

    def testHiddenByLastSegment(self):
        self.assertTrue(isHiddenFile(".git"))
        self.assertTrue(isHiddenFile("a/b/.env"))
        self.assertTrue(isHiddenFile("a\\.env"))
        self.assertTrue(isHiddenFile(".cache/"))

    def testVisiblePaths(self):
        self.assertFalse(isHiddenFile("a/b.txt"))
        self.assertFalse(isHiddenFile(".hidden/visible.txt"))
        self.assertFalse(isHiddenFile("file."))


class CollectEntriesTest(TempDirTestCase):

    def setUp(self):
        super().setUp()
        makeTree(self.srcDir, {
            "top.txt": b"top",
            "a/x.txt": b"x",
            "a/b/c.txt": b"c",
            "a/.hidden.txt": b"h",
            ".secret/inner.txt": b"s",
            "empty": None,
        })
        self.accessor = LocalFileAccessor(self.srcDir)

    def testBreadthFirstOrder(self):
        entries = collectEntries(self.accessor)

        self.assertEqual(entries, [p("top.txt"), p("a"), p("empty"), p("a/x.txt"), p("a/b"), p("a/b/c.txt")])

    def testHiddenFilesExcludedAtAnyDepth(self):
        entries = collectEntries(self.accessor, includeHiddenFiles=False)

        self.assertNotIn(p("a/.hidden.txt"), entries)
        self.assertNotIn(p(".secret"), entries)
        # Hidden directories are not descended into
        self.assertNotIn(p(".secret/inner.txt"), entries)

    def testHiddenFilesIncluded(self):
        entries = collectEntries(self.accessor, includeHiddenFiles=True)

        for path in ("a/.hidden.txt", ".secret", ".secret/inner.txt"):
            self.assertIn(p(path), entries)
        self.assertEqual(len(entries), len(set(entries)))

    def testFilterReceivesAbsolutePaths(self):
        seen = []

        def filterCallback(path):
            seen.append(path)
            return True

        collectEntries(self.accessor, filterCallback=filterCallback)

        self.assertIn(os.path.join(self.srcDir, p("a/b/c.txt")), seen)
        self.assertTrue(all(os.path.isabs(path) for path in seen))

    def testFilteredDirectoryIsPruned(self):
        entries = collectEntries(self.accessor, filterCallback=lambda path: os.path.basename(path) != "b")

        self.assertNotIn(p("a/b"), entries)
        self.assertNotIn(p("a/b/c.txt"), entries)
        self.assertIn(p("a/x.txt"), entries)

    def testEmptyTree(self):
        emptyDir = os.path.join(self.tempDir, "nothing")
        os.makedirs(emptyDir)

        self.assertEqual(collectEntries(LocalFileAccessor(emptyDir)), [])

    def testListingFailurePropagates(self):
        with mock.patch.object(self.accessor, 'list', side_effect=PermissionError("denied")):
            with self.assertRaises(PermissionError):
                collectEntries(self.accessor)


if __name__ == '__main__':
    unittest.main()
