"""HTTP client for the remote file store."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlparse

import httpx

from backend.exceptions import (
    AuthorizationError,
    PathError,
    PathErrorKind,
    StorageError,
    TransportError,
)
from backend.filesystem.file_info import FileInfo

if TYPE_CHECKING:
    from typing import BinaryIO

logger = logging.getLogger(__name__)

_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}
_DOWNLOAD_CHUNK_SIZE = 64 * 1024


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://example.com)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Use --allow-insecure-http only on trusted networks."
        )

    return normalized


def _error_detail(resp: httpx.Response) -> str:
    try:
        payload: Any = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(payload, dict):
        return str(payload.get("detail", ""))
    return str(payload)[:200]


def _raise_for_status(resp: httpx.Response, identity: str) -> None:
    """Translate an error response into the sync error taxonomy."""
    if resp.is_success:
        return

    detail = _error_detail(resp)
    code = resp.status_code
    if code == 401:
        raise AuthorizationError(f"Remote store rejected the credential for {identity}")
    if code == 404:
        raise PathError(identity, PathErrorKind.NOT_FOUND, "remote")
    if code in (400, 403, 422) and detail in set(PathErrorKind):
        raise PathError(identity, PathErrorKind(detail), "remote")
    if code == 400:
        raise PathError(identity, PathErrorKind.OUTSIDE_ROOT, "remote")
    raise StorageError(f"Remote store failed for {identity} ({code}): {detail}")


class RemoteStoreClient:
    """Client for the four remote store operations."""

    def __init__(
        self,
        server_url: str,
        token: str,
        timeout: float = 60.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.client = client or httpx.Client(
            base_url=self.server_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> RemoteStoreClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @staticmethod
    def _url(kind: str, identity: str) -> str:
        return f"/api/{kind}/{quote(identity.lstrip('/'), safe='/')}"

    def _request(self, method: str, url: str, identity: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        _raise_for_status(resp, identity)
        return resp

    def fetch_file_info(self, identity: str) -> FileInfo:
        """Fingerprint one remote file. A missing file has ``exists == False``."""
        resp = self._request("GET", self._url("info/file", identity), identity)
        try:
            return FileInfo.from_wire(resp.json())
        except ValueError as exc:
            raise StorageError(f"Malformed file info for {identity}: {exc}") from exc

    def fetch_dir_info(self, identity: str) -> list[FileInfo]:
        """Fingerprint a remote subtree, paths relative to ``identity``."""
        url = self._url("info/dir", identity) if identity else "/api/info/dir"
        resp = self._request("GET", url, identity)
        try:
            payload = resp.json()
            if not isinstance(payload, list):
                raise ValueError(f"expected a list, got {type(payload).__name__}")
            return [FileInfo.from_wire(item) for item in payload]
        except ValueError as exc:
            raise StorageError(f"Malformed directory info for {identity}: {exc}") from exc

    def fetch_content(self, identity: str, destination: BinaryIO) -> int:
        """Stream a remote file's raw bytes into ``destination``. Returns bytes written."""
        url = self._url("file", identity)
        written = 0
        try:
            with self.client.stream("GET", url) as resp:
                if not resp.is_success:
                    resp.read()
                    _raise_for_status(resp, identity)
                for chunk in resp.iter_bytes(_DOWNLOAD_CHUNK_SIZE):
                    destination.write(chunk)
                    written += len(chunk)
        except httpx.HTTPError as exc:
            raise TransportError(f"GET {url} failed: {exc}") from exc
        return written

    def store_content(self, identity: str, source: BinaryIO) -> FileInfo:
        """Create or overwrite a remote file from a binary stream."""
        filename = PurePosixPath(identity).name or "upload"
        resp = self._request(
            "PUT",
            self._url("file", identity),
            identity,
            files={"file": (filename, source, "application/octet-stream")},
        )
        try:
            return FileInfo.from_wire(resp.json())
        except ValueError as exc:
            raise StorageError(f"Malformed store response for {identity}: {exc}") from exc
