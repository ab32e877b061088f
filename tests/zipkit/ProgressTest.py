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
import itertools
import unittest

from unittest import mock

from zipkit.Progress import ProgressBarCallback, ProgressReporter, ZipProgress


class ZipProgressTest(unittest.TestCase):

    def testStr(self):
        self.assertEqual(str(ZipProgress(1024, 3, 2)), "1024 bytes, 3 files, 2 dirs")


class ProgressReporterTest(unittest.TestCase):

    def testReportsAtMostOncePerPeriod(self):
        reports = []
        with mock.patch('zipkit.Progress.time.monotonic', return_value=100.0):
            reporter = ProgressReporter(reports.append, period=1.0)

        with mock.patch('zipkit.Progress.time.monotonic', side_effect=[100.5, 101.2, 101.4, 102.3]):
            reporter.report(bytes=10)
            reporter.report(bytes=10)
            reporter.report(files=1)
            reporter.report(directories=1)

        self.assertEqual(reports, [ZipProgress(20, 0, 0), ZipProgress(20, 1, 1)])

    def testFinishAlwaysReports(self):
        reports = []
        reporter = ProgressReporter(reports.append, period=3600)
        reporter.report(bytes=5, files=1)

        self.assertEqual(reports, [])
        final = reporter.finish()
        self.assertEqual(reports, [ZipProgress(5, 1, 0)])
        self.assertEqual(final, ZipProgress(5, 1, 0))

    def testSnapshotsAreCopies(self):
        reports = []
        with mock.patch('zipkit.Progress.time.monotonic', side_effect=itertools.count()):
            reporter = ProgressReporter(reports.append, period=0)
            reporter.report(bytes=1)
            reporter.report(bytes=1)

        self.assertEqual([r.bytes for r in reports], [1, 2])

    def testFullPeriodIsNotEnough(self):
        reports = []
        with mock.patch('zipkit.Progress.time.monotonic', return_value=100.0):
            reporter = ProgressReporter(reports.append, period=1.0)

        with mock.patch('zipkit.Progress.time.monotonic', side_effect=[101.0, 101.5]):
            reporter.report(bytes=1)
            reporter.report(bytes=1)

        self.assertEqual(reports, [ZipProgress(2, 0, 0)])

    def testWithoutCallback(self):
        reporter = ProgressReporter()
        reporter.report(bytes=7, files=1)
        self.assertEqual(reporter.finish(), ZipProgress(7, 1, 0))


class ProgressBarCallbackTest(unittest.TestCase):

    def testUpdatesBar(self):
        output = io.StringIO()
        with ProgressBarCallback(description="Zipping", file=output) as bar:
            bar(ZipProgress(100, 1, 0))
            bar(ZipProgress(250, 2, 1))
            self.assertEqual(bar.pbar.n, 250)
            # Counters never go backwards
            bar(ZipProgress(200, 2, 1))
            self.assertEqual(bar.pbar.n, 250)

        self.assertIsNone(bar.pbar)
        self.assertIn("Zipping", output.getvalue())


if __name__ == '__main__':
    unittest.main()
