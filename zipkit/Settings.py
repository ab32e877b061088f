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

from zipkit.Kernel import PUBLIC_VERSION
from zipkit.Utils import ONE_KB, ONE_MB

APP_NAME = 'ZipKit'

# Size of the buffer used to stream file content into an archive entry.
ZIP_BUF_SIZE = int(os.getenv('ZIPKIT_BUF_SIZE', 8 * 1024))

# Number of pending entries that triggers writing them to the archive.
# Trades accessor round-trips against the number of file handles held open at once.
MAX_PENDING_ENTRIES = int(os.getenv('ZIPKIT_MAX_PENDING_ENTRIES', 50))

# Default period between two progress callbacks, in seconds
DEFAULT_PROGRESS_PERIOD = float(os.getenv('ZIPKIT_PROGRESS_PERIOD', 1.0))

# Extraction limit meaning "no practical limit"
NO_SIZE_LIMIT = 2**64 - 1

# "deflate" or "store"
DEFAULT_COMPRESSION = os.getenv('ZIPKIT_COMPRESSION', 'deflate')

# VFS server configuration
DEFAULT_VFS_HOST = '127.0.0.1'
DEFAULT_VFS_PORT = 0 # Random port
DEFAULT_AUTH_USER_NAME = 'zipkit'
VFS_TIMEOUT = float(os.getenv('ZIPKIT_VFS_TIMEOUT', 30.0))

# Transfer chunk sizes
VFS_CHUNK_SIZE = int(256 * ONE_KB) # Server side streaming chunk size
HTTP_READ_CHUNK = int(ONE_MB) # HTTP Range read chunk size

USER_AGENT = f'{APP_NAME}/{PUBLIC_VERSION}'
