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

import collections

from typing import Callable, List, Optional

from zipkit.FileSystems import FileAccessor
from zipkit.Kernel import getLogger

logger = getLogger(__name__)


def isHiddenFile(path: str) -> bool:
    """A path is hidden when its last segment starts with a dot"""
    name = path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
    return name.startswith(".")


def collectEntries(
    accessor: FileAccessor,
    includeHiddenFiles: bool = False,
    filterCallback: Optional[Callable[[str], bool]] = None,
) -> List[str]:
    """
    Collect every file and directory reachable from the accessor root.

    Directories are walked breadth-first. A child is excluded when it is
    hidden (unless includeHiddenFiles is set) or when filterCallback returns
    False for its backend path; an excluded directory is not descended into.

    Args:
        accessor: Source tree backend
        includeHiddenFiles: Keep paths whose name starts with '.'
        filterCallback: Receives accessor.absPath(path), returns True to keep it

    Returns:
        Relative paths in discovery order, the root itself excluded

    Raises:
        OSError: If a directory cannot be listed
    """

    def isExcluded(path):
        if not includeHiddenFiles and isHiddenFile(path):
            return True
        return filterCallback is not None and not filterCallback(accessor.absPath(path))

    entries = []
    queue = collections.deque([""])

    while queue:
        current = queue.popleft()
        files, subdirs = accessor.list(current)

        for path in files:
            if not isExcluded(path):
                entries.append(path)

        for path in subdirs:
            if not isExcluded(path):
                entries.append(path)
                queue.append(path)

    logger.debug(f"Collected {len(entries)} entries")
    return entries
