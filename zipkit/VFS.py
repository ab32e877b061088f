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
VFS (Virtual File System) over HTTP, the server half of HTTPFileAccessor.

Exposes one local directory to another process so that an archive can be
built without giving that process direct filesystem access:
- Path-based protocol, every path relative to the exposed root
- Paths resolving outside the root are refused
- Bulk /open so a whole batch is resolved in one round-trip
- HTTP Range support for file streaming
"""

import os
import json
import time
import base64
import threading

from http import HTTPStatus
from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler
from typing import Optional, Dict, Tuple
from urllib.parse import urlparse, parse_qs

from zipkit.Kernel import getLogger
from zipkit.Settings import DEFAULT_VFS_HOST, DEFAULT_VFS_PORT, VFS_CHUNK_SIZE
from zipkit.Utils import ONE_MB

logger = getLogger(__name__)

# Upper bound of a /open request body
MAX_OPEN_BODY = int(16 * ONE_MB)


class AuthMixin:
    """
    A mixin to handle Basic Authentication for BaseHTTPRequestHandler.
    Authentication is enabled when the server has an authPassword.
    """
    REALM = 'ZipKit VFS'

    def handleAuthentication(self):
        """
        Checks the 'Authorization' header and validates user credentials.

        Returns:
            bool: True if authentication is successful, False otherwise.
        """
        if not getattr(self.server, 'authPassword', None):
            return True

        authHeader = self.headers.get('Authorization')

        if not authHeader or not authHeader.startswith('Basic '):
            logger.warning("Authentication challenge sent: No or invalid auth header")
            self.sendAuthChallenge()
            return False

        try:
            credentials = base64.b64decode(authHeader.split(' ')[1]).decode('utf-8')
            username, password = credentials.split(':', 1)
        except (base64.binascii.Error, UnicodeDecodeError, ValueError) as e:
            logger.error(f"Error decoding credentials: {e}")
            self.sendAuthChallenge()
            return False

        if username == self.server.authUser and password == self.server.authPassword:
            return True

        logger.warning(f"Authentication failed: Invalid credentials for user '{username}'")
        self.sendAuthChallenge()
        return False

    def sendAuthChallenge(self):
        """Sends a 401 Unauthorized response, prompting for credentials."""
        data = json.dumps({"ok": False, "error": "authentication required"}).encode("utf-8")

        self.send_response(HTTPStatus.UNAUTHORIZED)
        self.send_header('WWW-Authenticate', f'Basic realm="{self.REALM}"')
        self.send_header('Content-Type', 'application/json; charset=utf-8')
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()

        self.wfile.write(data)
        # Any unread request body would corrupt the next request on this connection
        self.close_connection = True


class VFSServer(ThreadingHTTPServer):
    """
    HTTP server exposing a local directory via the vfs:// protocol.

    Binds to loopback (127.0.0.1) by default.

    Endpoints:
    - GET /meta: Root folder metadata
    - GET /list?path=<rel>: Directory contents
    - GET /stat?path=<rel>: File/directory metadata
    - POST /open {"paths": [...]}: Resolve a batch of paths for reading
    - GET /file?path=<rel>: Stream file with Range support
    """

    daemon_threads = True

    def __init__(
        self,
        rootPath: str,
        host: str = DEFAULT_VFS_HOST,
        port: int = DEFAULT_VFS_PORT,
        authUser: Optional[str] = None,
        authPassword: Optional[str] = None
    ):
        """
        Initialize VFS server.

        Args:
            rootPath: Root directory to expose
            host: Bind address (default: 127.0.0.1)
            port: Port number (default: 0 = random)
            authUser: Optional HTTP Basic Auth username
            authPassword: Optional HTTP Basic Auth password (enables auth if provided)

        Raises:
            ValueError: If rootPath is not a directory
        """
        if not os.path.isdir(rootPath):
            raise ValueError(f"Not a directory: {rootPath}")

        self.rootPath = os.path.realpath(rootPath)
        self.host = host
        self.authUser = authUser
        self.authPassword = authPassword
        self._thread = None
        self._running = False

        logger.debug(f"VFSServer initialized: root={self.rootPath}")

        super().__init__((host, port), self._createHandler())

    @property
    def rootName(self) -> str:
        """Get root folder display name"""
        return os.path.basename(self.rootPath.rstrip(os.sep)) or "folder"

    @property
    def clientUri(self) -> str:
        """Get client URI for connecting (vfs:// format)"""
        if not self._running:
            raise RuntimeError("Server not started")
        return f"vfs://{self.host}:{self.server_port}"

    def resolvePath(self, relativePath: str) -> Optional[str]:
        """
        Map a client path onto the exposed root.

        Returns:
            Absolute local path, or None if the path escapes the root
        """
        relativePath = (relativePath or "").replace("\\", "/").strip("/")
        candidate = os.path.realpath(os.path.join(self.rootPath, *relativePath.split("/")))

        if not self.isInsideRoot(candidate):
            logger.warning(f"Refused path outside VFS root: {relativePath!r}")
            return None
        return candidate

    def isInsideRoot(self, path: str) -> bool:
        """Tell whether path, with links resolved, lies under the exposed root"""
        candidate = os.path.realpath(path)
        return candidate == self.rootPath or candidate.startswith(self.rootPath + os.sep)

    def start(self, blocking: bool = False) -> None:
        """
        Start VFS server.

        Args:
            blocking: If True, blocks until server stops

        Raises:
            RuntimeError: If server already started
        """
        if self._running:
            raise RuntimeError("Server already started")

        self._running = True

        logger.info(f"VFSServer listening on {self.clientUri}")

        if blocking:
            self.serve_forever()
        else:
            self._thread = threading.Thread(target=self.serve_forever, daemon=True)
            self._thread.start()
            # Give server time to start
            time.sleep(0.1)

    def stop(self) -> None:
        """Stop VFS server"""
        if not self._running:
            return

        self._running = False

        self.shutdown()
        self.server_close()

        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None

        logger.debug("VFSServer stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, excType, excVal, excTb):
        self.stop()

    def _createHandler(self):
        """Create HTTP request handler class"""
        server = self

        class VfsHandler(AuthMixin, BaseHTTPRequestHandler):
            """HTTP request handler for VFS protocol"""

            protocol_version = "HTTP/1.1"

            def log_message(self, format, *args):
                """Override to use our logger"""
                logger.debug(f"VFS HTTP: {format % args}")

            @staticmethod
            def _describe(path: str) -> dict:
                st = os.stat(path)
                isDir = os.path.isdir(path)
                return {"isDir": isDir, "size": 0 if isDir else st.st_size, "mtime": st.st_mtime}

            def do_GET(self):
                if not self.handleAuthentication():
                    return

                try:
                    parsed = urlparse(self.path)
                    query = parse_qs(parsed.query)

                    if parsed.path == "/meta":
                        self._sendJson(200, {"ok": True, "folderName": server.rootName, "rootIsDir": True})
                    elif parsed.path == "/list":
                        self._handleList(query)
                    elif parsed.path == "/stat":
                        self._handleStat(query)
                    elif parsed.path == "/file":
                        self._handleFile(query)
                    else:
                        self._sendJson(404, {"ok": False, "error": "unknown endpoint"})

                except OSError as e:
                    logger.exception(f"Error handling request: {e}")
                    self._sendJson(500, {"ok": False, "error": str(e)})

            def do_POST(self):
                if not self.handleAuthentication():
                    return

                try:
                    if urlparse(self.path).path == "/open":
                        self._handleOpen()
                    else:
                        self._sendJson(404, {"ok": False, "error": "unknown endpoint"})

                except OSError as e:
                    logger.exception(f"Error handling request: {e}")
                    self._sendJson(500, {"ok": False, "error": str(e)})

            def _resolveQuery(self, query: Dict) -> Optional[str]:
                path = server.resolvePath(query.get("path", [""])[0])
                if path is None:
                    self._sendJson(403, {"ok": False, "error": "path outside root"})
                elif not os.path.exists(path):
                    self._sendJson(404, {"ok": False, "error": "not found"})
                    path = None
                return path

            def _handleList(self, query: Dict):
                dirPath = self._resolveQuery(query)
                if not dirPath:
                    return

                if not os.path.isdir(dirPath):
                    self._sendJson(400, {"ok": False, "error": "not a directory"})
                    return

                entries = []
                try:
                    for name in sorted(os.listdir(dirPath)):
                        entryPath = os.path.join(dirPath, name)
                        if not server.isInsideRoot(entryPath):
                            logger.debug(f"Skipping entry {name}: links outside the VFS root")
                            continue
                        if os.path.islink(entryPath) and os.path.isdir(entryPath):
                            # Same rule as LocalFileAccessor: never descend into linked directories
                            entries.append({"name": name, "isDir": False, "size": 0, "mtime": None})
                            continue
                        try:
                            entries.append({"name": name, **self._describe(entryPath)})
                        except OSError as e:
                            # File disappeared or permission denied
                            logger.debug(f"Skipping entry {name}: {e}")
                except OSError as e:
                    self._sendJson(500, {"ok": False, "error": f"list failed: {e}"})
                    return

                self._sendJson(200, {"ok": True, "entries": entries})

            def _handleStat(self, query: Dict):
                path = self._resolveQuery(query)
                if not path:
                    return

                try:
                    self._sendJson(200, {"ok": True, **self._describe(path)})
                except OSError as e:
                    self._sendJson(500, {"ok": False, "error": f"stat failed: {e}"})

            def _handleOpen(self):
                """Resolve each requested path: readable file, directory, or error"""
                length = int(self.headers.get("Content-Length") or 0)
                if length <= 0 or length > MAX_OPEN_BODY:
                    self._sendJson(400, {"ok": False, "error": "invalid body"})
                    return

                try:
                    paths = json.loads(self.rfile.read(length).decode("utf-8"))["paths"]
                except (ValueError, KeyError, TypeError) as e:
                    self._sendJson(400, {"ok": False, "error": f"invalid body: {e}"})
                    return

                results = []
                for relativePath in paths:
                    path = server.resolvePath(relativePath)
                    if path is None:
                        results.append({"ok": False, "error": "path outside root"})
                        continue

                    try:
                        info = self._describe(path)
                        if not info["isDir"] and not os.access(path, os.R_OK):
                            results.append({"ok": False, "error": "permission denied"})
                            continue
                        results.append({"ok": True, **info})
                    except OSError as e:
                        results.append({"ok": False, "error": str(e)})

                self._sendJson(200, {"ok": True, "entries": results})

            def _handleFile(self, query: Dict):
                path = self._resolveQuery(query)
                if not path:
                    return

                if not os.path.isfile(path):
                    self._sendJson(400, {"ok": False, "error": "not a file"})
                    return

                fileSize = os.path.getsize(path)

                rangeHeader = self.headers.get("Range")
                if not rangeHeader:
                    self._streamFile(path, 0, fileSize - 1, fileSize, partial=False)
                    return

                rangeMatch = self._parseRange(rangeHeader, fileSize)
                if not rangeMatch:
                    self.send_response(416, "Range Not Satisfiable")
                    self.send_header("Accept-Ranges", "bytes")
                    self.send_header("Content-Range", f"bytes */{fileSize}")
                    self.send_header("Content-Length", "0")
                    self.end_headers()
                    return

                start, end = rangeMatch
                self._streamFile(path, start, end, fileSize, partial=True)

            def _parseRange(self, rangeHeader: str, fileSize: int) -> Optional[Tuple[int, int]]:
                """Parse "bytes=start-end", suffix ranges are not supported"""
                if not rangeHeader.startswith("bytes="):
                    return None

                startStr, dash, endStr = rangeHeader[6:].strip().partition("-")
                if not dash or not startStr.strip():
                    return None

                try:
                    start = int(startStr)
                    end = int(endStr) if endStr.strip() else fileSize - 1
                except ValueError as e:
                    logger.debug(f"Invalid Range header '{rangeHeader}': {e}")
                    return None

                if start < 0 or start >= fileSize:
                    return None

                end = min(end, fileSize - 1)
                if end < start:
                    return None

                return (start, end)

            def _streamFile(self, path: str, start: int, end: int, fileSize: int, partial: bool):
                length = max(0, end - start + 1)

                with open(path, "rb") as f:
                    if start > 0:
                        f.seek(start)

                    if partial:
                        self.send_response(206, "Partial Content")
                        self.send_header("Content-Range", f"bytes {start}-{end}/{fileSize}")
                    else:
                        self.send_response(200, "OK")
                    self.send_header("Content-Type", "application/octet-stream")
                    self.send_header("Accept-Ranges", "bytes")
                    self.send_header("Content-Length", str(length))
                    self.end_headers()

                    remaining = length
                    while remaining > 0:
                        chunk = f.read(min(VFS_CHUNK_SIZE, remaining))
                        if not chunk:
                            break
                        self.wfile.write(chunk)
                        remaining -= len(chunk)

                if remaining > 0:
                    # Content-Length can no longer be honoured, drop the connection
                    logger.error(f"File {path} shrank while streaming, {remaining} bytes missing")
                    self.close_connection = True

            def _sendJson(self, code: int, obj: dict):
                data = json.dumps(obj).encode("utf-8")
                self.send_response(code)
                self.send_header("Content-Type", "application/json; charset=utf-8")
                self.send_header("Content-Length", str(len(data)))
                self.end_headers()
                self.wfile.write(data)

        return VfsHandler
