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
import sys
import json
import fnmatch
import logging
import logging.config
import argparse

from zipkit.FileSystems import HTTPFileAccessor
from zipkit.Kernel import PUBLIC_VERSION, configureGlobalLogLevel, getLogger, LOG_LEVEL_MAPPING
from zipkit.Progress import ProgressBarCallback
from zipkit.Settings import APP_NAME, DEFAULT_AUTH_USER_NAME, DEFAULT_COMPRESSION, DEFAULT_VFS_HOST, DEFAULT_VFS_PORT
from zipkit.Utils import flushPrint, formatSize, getEnv
from zipkit.VFS import VFSServer
from zipkit.Zip import ZipParams, createArchive, extractArchive
from zipkit.ZipReader import ZipReader

logger = getLogger(__name__)

# Progress bar refresh period in seconds
PROGRESS_BAR_PERIOD = 0.1


def configureLogging(logLevel):
    """Configure logging level for the application or load a logging config file

    Priority order:
    1. logLevel parameter (from --log-level CLI argument)
    2. ZIPKIT_LOGGING_LEVEL environment variable
    3. Default to None (no configuration change)

    Both can be a logging level name or a path to a logging configuration JSON file.
    """

    def suppressNoisyLogger():
        logging.getLogger('sentry_sdk').setLevel(logging.INFO)

    if logLevel is None:
        logLevel = getEnv('ZIPKIT_LOGGING_LEVEL', None)

    if logLevel is None:
        suppressNoisyLogger()
        return None

    if os.path.isfile(logLevel):
        try:
            with open(logLevel, 'r') as configFile:
                configDict = json.load(configFile)

            logging.config.dictConfig(configDict)
            logger.info(f"Logging configured from file: {logLevel}")
            suppressNoisyLogger()
            return logLevel

        except (json.JSONDecodeError, OSError, KeyError, ValueError) as e:
            flushPrint(f"Failed to load logging config from {logLevel}: {e}")
            flushPrint("Falling back to default logging level configuration")

    if logLevel.upper() in LOG_LEVEL_MAPPING:
        configureGlobalLogLevel(LOG_LEVEL_MAPPING[logLevel.upper()])
        logger.info(f"Logging level set to {logLevel}")
    else:
        logger.warning(f"Invalid logging level '{logLevel}', using WARNING as default")
        configureGlobalLogLevel(logging.WARNING)

    suppressNoisyLogger()

    return logLevel


def createExcludeFilter(patterns):
    """Filter callback rejecting paths whose full path or name matches one of the glob patterns"""
    if not patterns:
        return None

    def filterCallback(path):
        name = path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
        return not any(fnmatch.fnmatch(path, p) or fnmatch.fnmatch(name, p) for p in patterns)

    return filterCallback


def configureCLIParser():
    """Build the argument parser, every subcommand inherits the global options"""

    def validateLogLevel(logLevel):
        if os.path.exists(logLevel):
            return logLevel

        if logLevel.upper() not in LOG_LEVEL_MAPPING:
            raise argparse.ArgumentTypeError(
                f"Invalid log level '{logLevel}'. Valid levels are: {', '.join(LOG_LEVEL_MAPPING)}"
            )
        return logLevel.upper()

    def validatePort(portStr):
        try:
            port = int(portStr)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid port number: {portStr}")
        if not 0 <= port <= 65535:
            raise argparse.ArgumentTypeError(f"Port {port} is out of valid range (0-65535)")
        return port

    def makeGlobalsParent(**defaults):
        globalsParent = argparse.ArgumentParser(add_help=False)
        globalsParent.add_argument(
            "--version", action="store_true", help="Show version information", **defaults
        )
        globalsParent.add_argument(
            "--log-level",
            type=validateLogLevel,
            help="Set logging level (DEBUG, INFO, WARNING, ERROR) or path to logging config JSON file",
            metavar="LEVEL_OR_FILE",
            dest="logLevel",
            **defaults
        )
        return globalsParent

    globalsParent = makeGlobalsParent()
    # Subcommands only set the global options given after them
    subcommandParent = makeGlobalsParent(default=argparse.SUPPRESS)

    parser = argparse.ArgumentParser(
        prog="zipkit",
        description=f"{APP_NAME} builds and extracts ZIP archives.",
        parents=[globalsParent],
    )
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    zipParser = subparsers.add_parser('zip', help='Create an archive from a directory', parents=[subcommandParent])
    zipParser.add_argument("src", metavar="SOURCE", help="Source directory, or vfs://host:port of a VFS server")
    zipParser.add_argument("dest", metavar="ARCHIVE", help="Archive to create")
    zipParser.add_argument(
        "--include-hidden", action="store_true", dest="includeHidden", help="Include files whose name starts with '.'"
    )
    zipParser.add_argument(
        "--exclude", action="append", metavar="GLOB", default=[], help="Skip matching paths (repeatable)"
    )
    zipParser.add_argument(
        "--store", action="store_const", const="store", default=DEFAULT_COMPRESSION, dest="compression",
        help="Store entries without compression"
    )
    zipParser.add_argument("--progress", action="store_true", help="Show a progress bar")

    unzipParser = subparsers.add_parser('unzip', help='Extract an archive', parents=[subcommandParent])
    unzipParser.add_argument("src", metavar="ARCHIVE", help="Archive to extract")
    unzipParser.add_argument("dest", metavar="DIRECTORY", help="Destination directory")
    unzipParser.add_argument(
        "--exclude", action="append", metavar="GLOB", default=[], help="Skip matching entries (repeatable)"
    )
    unzipParser.add_argument("--progress", action="store_true", help="Show a progress bar")

    listParser = subparsers.add_parser(
        'list', help='List archive entries, exits with 1 if unsafe entries are found', parents=[subcommandParent]
    )
    listParser.add_argument("src", metavar="ARCHIVE", help="Archive to list")

    serveParser = subparsers.add_parser(
        'serve', help='Expose a directory to other processes through a VFS server', parents=[subcommandParent]
    )
    serveParser.add_argument("root", metavar="DIRECTORY", help="Directory to expose")
    serveParser.add_argument("--host", default=DEFAULT_VFS_HOST, help="Bind address (default: %(default)s)")
    serveParser.add_argument(
        "--port", type=validatePort, default=DEFAULT_VFS_PORT, help="Port to listen on (default: random)"
    )
    serveParser.add_argument(
        "--auth-user",
        help=f"Username for HTTP Basic Authentication (default: '{DEFAULT_AUTH_USER_NAME}')",
        metavar="USERNAME",
        default=DEFAULT_AUTH_USER_NAME,
        dest="authUser"
    )
    serveParser.add_argument(
        "--auth-password", help="Password for HTTP Basic Authentication", metavar="PASSWORD", dest="authPassword"
    )

    return parser


def processZip(args):
    accessor = None
    if args.src.startswith("vfs://"):
        accessor = HTTPFileAccessor(args.src)
    elif not os.path.isdir(args.src):
        flushPrint(f"Error: '{args.src}' is not a directory")
        return 1

    progressBar = ProgressBarCallback(description="Zipping") if args.progress else None
    try:
        params = ZipParams(
            srcDir=args.src,
            destFile=args.dest,
            includeHiddenFiles=args.includeHidden,
            filterCallback=createExcludeFilter(args.exclude),
            progressCallback=progressBar,
            progressPeriod=PROGRESS_BAR_PERIOD,
            fileAccessor=accessor,
            compression=args.compression,
        )
        ok = createArchive(params)
    finally:
        if progressBar:
            progressBar.close()
        if accessor:
            accessor.close()

    if not ok:
        flushPrint(f"Failed to create {args.dest}")
        return 1

    flushPrint(f"Created {args.dest}")
    return 0


def processUnzip(args):
    progressBar = ProgressBarCallback(description="Extracting") if args.progress else None
    try:
        ok = extractArchive(
            args.src,
            args.dest,
            filterCallback=createExcludeFilter(args.exclude),
            progressCallback=progressBar,
            progressPeriod=PROGRESS_BAR_PERIOD,
        )
    finally:
        if progressBar:
            progressBar.close()

    if not ok:
        flushPrint(f"Failed to extract {args.src}")
        return 1

    flushPrint(f"Extracted {args.src} to {args.dest}")
    return 0


def processList(args):
    reader = ZipReader.open(args.src)
    if reader is None:
        flushPrint(f"Cannot open {args.src}")
        return 1

    unsafeCount = 0
    with reader:
        while reader.openCurrentEntry():
            entry = reader.currentEntry
            kind = "dir " if entry.isDirectory else "file"
            line = f"{kind} {formatSize(entry.size):>10}  {entry.path}"
            if entry.isUnsafe:
                unsafeCount += 1
                line += "  [UNSAFE]"
            flushPrint(line)
            reader.advanceToNextEntry()

    if unsafeCount:
        flushPrint(f"{unsafeCount} unsafe entries, this archive cannot be extracted")
        return 1
    return 0


def processServe(args):
    try:
        server = VFSServer(
            args.root, host=args.host, port=args.port, authUser=args.authUser, authPassword=args.authPassword
        )
    except (ValueError, OSError) as e:
        flushPrint(f"Error: {e}")
        return 1

    flushPrint(f"Serving {server.rootPath} on vfs://{args.host}:{server.server_port} (Ctrl+C to stop)")
    try:
        server.start(blocking=True)
    finally:
        server.stop()
    return 0


COMMANDS = {
    'zip': processZip,
    'unzip': processUnzip,
    'list': processList,
    'serve': processServe,
}


def runCLIMain(argv=None):
    """Parse arguments and run one command. Returns the exit code."""
    parser = configureCLIParser()
    args = parser.parse_args(argv)

    configureLogging(args.logLevel)

    if args.version:
        flushPrint(f"{APP_NAME} v{PUBLIC_VERSION}")
        flushPrint(f"Python {sys.version.split()[0]}")
        return 0

    if not args.command:
        parser.print_help()
        return 1

    return COMMANDS[args.command](args)
