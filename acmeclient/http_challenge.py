"""
HTTP-01 challenge publication (caller side).

The client computes each `KeyAuthorizationFile`; making it reachable at
``/.well-known/acme-challenge/<filename>`` is done here, in one of two modes:

  1. Standalone — a minimal HTTP server on a configurable port (default 80)
     serving every file handed to it.  Binding port 80 needs root or
     CAP_NET_BIND_SERVICE.
  2. Webroot — the files are written below an existing web-server root so an
     already-running nginx/apache can serve them.
"""
from __future__ import annotations

import os
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Iterable, Optional

from acmeclient.models import KeyAuthorizationFile

CHALLENGE_PREFIX = "/.well-known/acme-challenge/"


# ─── Standalone mode ──────────────────────────────────────────────────────────


class _ChallengeHandler(BaseHTTPRequestHandler):
    """Serves only the published challenge files; 404 for everything else."""

    server: "_ChallengeServer"

    def do_GET(self) -> None:
        contents = None
        if self.path.startswith(CHALLENGE_PREFIX):
            contents = self.server.files.get(self.path[len(CHALLENGE_PREFIX):])
        if contents is None:
            self.send_response(404)
            self.end_headers()
            return
        body = contents.encode()
        self.send_response(200)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, fmt: str, *args: object) -> None:
        pass


class _ChallengeServer(HTTPServer):
    files: dict[str, str]


class StandaloneHttpChallenge:
    """
    Minimal HTTP server for ACME HTTP-01 challenges.

    Usage:
        with StandaloneHttpChallenge(port=80) as srv:
            srv.start(authorization.get_file() for authorization in authorizations)
            client.validate(authorizations)
    """

    def __init__(self, host: str = "0.0.0.0", port: int = 80) -> None:
        self.host = host
        self.port = port
        self._server: Optional[_ChallengeServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def server_port(self) -> int:
        if self._server is None:
            raise RuntimeError("Challenge server is not running")
        return self._server.server_address[1]

    def start(self, files: Iterable[KeyAuthorizationFile] = ()) -> None:
        """Start the HTTP server in a background thread."""
        if self._server is not None:
            raise RuntimeError("Challenge server is already running")

        self._server = _ChallengeServer((self.host, self.port), _ChallengeHandler)
        self._server.files = {}
        for f in files:
            self.publish(f)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def publish(self, file: KeyAuthorizationFile) -> None:
        if self._server is None:
            raise RuntimeError("Challenge server is not running")
        self._server.files[file.filename] = file.contents

    def stop(self) -> None:
        """Shut down the HTTP server."""
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    def __enter__(self) -> "StandaloneHttpChallenge":
        return self

    def __exit__(self, *_: object) -> None:
        self.stop()


# ─── Webroot mode ─────────────────────────────────────────────────────────────


def write_webroot_challenge(webroot_path: str, file: KeyAuthorizationFile) -> Path:
    """
    Write *file* below *webroot_path*, at
      <webroot_path>/.well-known/acme-challenge/<filename>

    Returns the Path of the written file.
    """
    challenge_dir = Path(webroot_path) / ".well-known" / "acme-challenge"
    challenge_dir.mkdir(parents=True, exist_ok=True)
    token_path = challenge_dir / file.filename
    token_path.write_text(file.contents, encoding="utf-8")
    return token_path


def remove_webroot_challenge(webroot_path: str, filename: str) -> None:
    """Remove a challenge file after verification."""
    token_path = Path(webroot_path) / ".well-known" / "acme-challenge" / filename
    try:
        os.remove(token_path)
    except FileNotFoundError:
        pass
