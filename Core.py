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

import sys

from zipkit.CLI import runCLIMain
from zipkit.Kernel import getLogger
from zipkit.Utils import flushPrint, sendException

logger = getLogger(__name__)


def main(argv=None):
    """The main entry point"""
    try:
        return runCLIMain(argv)
    except KeyboardInterrupt:
        flushPrint('\nExiting on user request (Ctrl+C)...')
        return 0 # Return success code for clean exit
    except ConnectionError as e:
        sendException(logger, e, errorPrefix='Failed to connect VFS server')
        return 1
    except PermissionError as e:
        flushPrint(f'Permission denied: {e}')
        return 1
    except Exception as e:
        sendException(logger, e)
        return 1


if __name__ == '__main__':
    sys.exit(main() or 0)
