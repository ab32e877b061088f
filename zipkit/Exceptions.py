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
Exceptions raised inside archive operations.

Public operations catch these at their boundary, log the detail and report
plain success/failure to the caller.
"""


class ZipError(RuntimeError):
    """Base class for archive operation failures"""

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path


class BackendError(ZipError):
    """A file accessor or container call failed (I/O error, permission, disk full)"""


class UnsafeEntryError(ZipError):
    """An archive entry would be materialized outside the destination root"""


class ZipCancelledError(ZipError):
    """The caller asked the operation to stop"""


class ConfigurationError(ZipError):
    """The operation was configured inconsistently (e.g. both a path and a descriptor destination)"""
