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

import time

from dataclasses import dataclass, replace
from typing import Callable, Optional

from tqdm import tqdm

from zipkit.Kernel import getLogger
from zipkit.Settings import DEFAULT_PROGRESS_PERIOD
from zipkit.Utils import formatSize

logger = getLogger(__name__)


@dataclass
class ZipProgress:
    """Cumulative counters of one zip or unzip operation"""
    bytes: int = 0
    files: int = 0
    directories: int = 0

    def __str__(self):
        return f"{self.bytes} bytes, {self.files} files, {self.directories} dirs"


ProgressCallback = Callable[[ZipProgress], None]


class ProgressReporter:
    """
    Accumulates progress and forwards snapshots to a callback.

    The callback is invoked at most once per period from report(), and once
    more from finish() regardless of the period.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None, period: float = DEFAULT_PROGRESS_PERIOD):
        self.callback = callback
        self.period = period
        self.progress = ZipProgress()
        self.lastReportTime = time.monotonic()

    def report(self, bytes: int = 0, files: int = 0, directories: int = 0) -> None:
        self.progress.bytes += bytes
        self.progress.files += files
        self.progress.directories += directories

        if not self.callback:
            return

        now = time.monotonic()
        if now - self.lastReportTime > self.period:
            self.lastReportTime = now
            self.callback(replace(self.progress))

    def finish(self) -> ZipProgress:
        """Send the final snapshot. Returns it as well."""
        snapshot = replace(self.progress)
        if self.callback:
            self.callback(snapshot)
        self.lastReportTime = time.monotonic()
        return snapshot


class BitmathTqdm(tqdm):
    """tqdm with sizes and rates rendered by formatSize."""

    def __init__(self, *args, sizeFormatter=None, **kwargs):
        self.sizeFormatter = sizeFormatter or formatSize
        kwargs.setdefault('bar_format', '{desc}: {n_fmt} [{elapsed}, {rate_fmt}]{postfix}')
        super().__init__(*args, unit='B', unit_scale=False, **kwargs)

    def _formatSpeed(self, rateBytesPerSec):
        if rateBytesPerSec <= 0:
            return "0/sec"
        return f"{self.sizeFormatter(int(rateBytesPerSec))}/sec"

    @property
    def format_dict(self):
        d = super().format_dict

        d['rate_fmt'] = self._formatSpeed(d.get('rate', 0) or 0)
        d['n_fmt'] = self.sizeFormatter(d.get('n', 0))

        # Handle total being None for unknown sizes
        total = d.get('total')
        d['total_fmt'] = self.sizeFormatter(total) if total is not None else '?'

        return d

    def __bool__(self):
        # total=None without an iterable would make tqdm.__bool__ raise
        return hasattr(self, 'n')


class ProgressBarCallback:
    """
    Progress callback drawing a terminal progress bar.

    The total size of an archive is not known up front, so the bar shows the
    processed bytes, throughput, and the file/directory counts as postfix.
    """

    def __init__(self, description: str = "Progress", **kwargs):
        self.pbar = BitmathTqdm(total=None, desc=description, leave=True, **kwargs)

    def __call__(self, progress: ZipProgress) -> None:
        if self.pbar is None:
            return

        try:
            increment = progress.bytes - self.pbar.n
            if increment > 0:
                self.pbar.update(increment)
            self.pbar.set_postfix(files=progress.files, dirs=progress.directories)
        except (ValueError, AttributeError) as e:
            logger.debug(f"Progress bar error: {e}")

    def close(self) -> None:
        if self.pbar is None:
            return

        try:
            self.pbar.refresh()
            self.pbar.close()
        except (ValueError, AttributeError) as e:
            logger.debug(f"Exception during progress bar cleanup: {e}")
        finally:
            self.pbar = None

    def __enter__(self):
        return self

    def __exit__(self, excType, excVal, excTb):
        self.close()
