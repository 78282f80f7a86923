"""
Snapshot transports — where snapshots and change scripts come from and go to.

    RemoteSnapshotClient   GET a snapshot document from REMOTE_SNAPSHOT_URL
    RemoteWriteHandle      pre-authorized PUT of a file to REMOTE_WRITE_URL
    FileSink               write a file into EXPORT_DIR (the "download" target)

Every sink exposes ``write(filename, content) -> str`` and returns where the
file ended up. Transport failures surface as ``PersistenceError`` carrying
the underlying message; timeouts are left to ``requests``.

Testability: pass a stub ``session`` to the HTTP gateways instead of letting
them create a real ``requests.Session``.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Protocol

import requests

from prosync.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30


class Sink(Protocol):
    def write(self, filename: str, content: str) -> str: ...


class _HTTPGateway:
    def __init__(self, url: str, *, timeout: float = _DEFAULT_TIMEOUT,
                 session: requests.Session | None = None) -> None:
        if not url:
            raise ValueError("url is required")
        self.url = url
        self.timeout = timeout
        self._session: requests.Session | None = session

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _request(self, operation: str, method: str, url: str, **kwargs) -> requests.Response:
        t0 = time.perf_counter()
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as exc:
            logger.warning("%s timed out after %ss url=%s", operation, self.timeout, url)
            raise PersistenceError(operation, f"Request timed out after {self.timeout}s") from exc
        except requests.RequestException as exc:
            logger.warning("%s network error url=%s error=%s", operation, url, exc)
            raise PersistenceError(operation, str(exc)[:500]) from exc
        duration_ms = int((time.perf_counter() - t0) * 1000)
        if not resp.ok:
            logger.warning("%s failed status=%d url=%s", operation, resp.status_code, url)
            raise PersistenceError(operation, f"HTTP {resp.status_code}: {resp.text[:500]}")
        logger.info("%s ok status=%d", operation, resp.status_code,
                    extra={"operation": operation, "duration_ms": duration_ms})
        return resp


class RemoteSnapshotClient(_HTTPGateway):
    """Fetches the remote snapshot as text; parsing is the coordinator's job."""

    def fetch_text(self) -> str:
        return self._request("fetch remote snapshot", "GET", self.url,
                             headers={"Accept": "application/json"}).text


class RemoteWriteHandle(_HTTPGateway):
    """Write capability for a location the operator already authorized.

    Holding an instance is the authorization; there is no interactive grant.
    """

    def __init__(self, url: str, token: str | None = None, **kwargs) -> None:
        super().__init__(url, **kwargs)
        self.token = token

    def write(self, filename: str, content: str) -> str:
        target = f"{self.url.rstrip('/')}/{filename}"
        headers = {"Content-Type": "text/plain; charset=utf-8"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        self._request("write remote file", "PUT", target,
                      data=content.encode("utf-8"), headers=headers)
        return target


class FileSink:
    """Writes files into a local directory, creating it on first use."""

    def __init__(self, directory: str) -> None:
        self.directory = directory

    def write(self, filename: str, content: str) -> str:
        path = os.path.join(self.directory, os.path.basename(filename))
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(content)
        except OSError as exc:
            raise PersistenceError(f"write {filename}", str(exc)) from exc
        logger.info("Wrote %s (%d bytes)", path, len(content))
        return path
