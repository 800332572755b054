# Copyright (c) 2023-2024 Datalayer, Inc.
#
# BSD 3-Clause License

"""
Async client for the Jupyter Contents API.

Used as the side channel that seeds fixture files into the server before a
suite runs and removes them afterwards. Every write either succeeds or raises
``TransferError``; reads of missing paths raise ``NotFoundError``.
"""

import base64
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import httpx

from jupyter_ui_harness import config
from jupyter_ui_harness.errors import NotFoundError, TransferError
from jupyter_ui_harness.models import ContentsEntry

logger = logging.getLogger(__name__)


class ContentsHelper:
    """Upload, inspect and delete files through ``/api/contents``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or config.JUPYTER_URL).rstrip("/")
        self.token = token if token is not None else config.JUPYTER_TOKEN
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ContentsHelper":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    def _client_or_new(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout, headers=self.headers, transport=self._transport
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def url(self, path: str = "") -> str:
        path = path.strip("/")
        if not path:
            return f"{self.base_url}/api/contents"
        return f"{self.base_url}/api/contents/{quote(path)}"

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        client = self._client_or_new()
        try:
            return await client.request(method, self.url(path), **kwargs)
        except httpx.RequestError as e:
            raise TransferError(f"Contents API unreachable at {self.base_url}: {e}", path=path)

    # Reading
    # =======

    async def get(self, path: str, content: bool = False) -> ContentsEntry:
        """Return the contents model at ``path``."""
        params = {"content": "1" if content else "0"}
        response = await self._request("GET", path, params=params)
        if response.status_code == 404:
            raise NotFoundError(f"No such file or directory: {path}", path=path)
        if response.status_code != 200:
            raise TransferError(
                f"Failed to read '{path}': HTTP {response.status_code}",
                path=path,
                status_code=response.status_code,
            )
        return ContentsEntry(**response.json())

    async def _exists(self, path: str, kind: str) -> bool:
        try:
            entry = await self.get(path)
        except NotFoundError:
            return False
        if kind == "directory":
            return entry.is_directory
        return not entry.is_directory

    async def file_exists(self, path: str) -> bool:
        return await self._exists(path, "file")

    async def directory_exists(self, path: str) -> bool:
        return await self._exists(path, "directory")

    async def list_directory(self, path: str = "") -> List[ContentsEntry]:
        entry = await self.get(path, content=True)
        if not entry.is_directory:
            raise NotFoundError(f"'{path}' is not a directory", path=path)
        return [ContentsEntry(**item) for item in entry.content or []]

    async def read_notebook(self, path: str) -> Dict[str, Any]:
        """Return the saved notebook JSON at ``path``."""
        response = await self._request("GET", path, params={"type": "notebook", "content": "1"})
        if response.status_code == 404:
            raise NotFoundError(f"Notebook not found: {path}", path=path)
        if response.status_code != 200:
            raise TransferError(
                f"Failed to read notebook '{path}': HTTP {response.status_code}",
                path=path,
                status_code=response.status_code,
            )
        return response.json().get("content") or {}

    # Writing
    # =======

    async def create_directory(self, path: str) -> None:
        response = await self._request("PUT", path, json={"type": "directory"})
        if response.status_code not in (200, 201):
            raise TransferError(
                f"Failed to create directory '{path}': HTTP {response.status_code}",
                path=path,
                status_code=response.status_code,
            )
        logger.debug(f"Created directory {path}")

    async def _ensure_parents(self, destination: str) -> None:
        parts = destination.strip("/").split("/")[:-1]
        current = ""
        for part in parts:
            current = f"{current}/{part}" if current else part
            if not await self.directory_exists(current):
                await self.create_directory(current)

    async def upload_content(self, content: Union[bytes, str], destination: str) -> ContentsEntry:
        """Write raw ``content`` to ``destination`` as a base64 file."""
        if isinstance(content, str):
            content = content.encode("utf-8")

        await self._ensure_parents(destination)

        payload = {
            "type": "file",
            "format": "base64",
            "content": base64.b64encode(content).decode("ascii"),
        }
        response = await self._request("PUT", destination, json=payload)
        if response.status_code not in (200, 201):
            try:
                error_msg = response.json().get("message", f"HTTP {response.status_code}")
            except ValueError:
                error_msg = f"HTTP {response.status_code}: {response.text}"
            raise TransferError(
                f"Failed to upload '{destination}': {error_msg}",
                path=destination,
                status_code=response.status_code,
            )
        return ContentsEntry(**response.json())

    async def upload_file(self, source: Union[str, Path], destination: str) -> ContentsEntry:
        """Copy a local file to ``destination`` on the server."""
        source = Path(source)
        try:
            content = source.read_bytes()
        except OSError as e:
            raise TransferError(f"Cannot read fixture '{source}': {e}", path=destination)

        entry = await self.upload_content(content, destination)
        logger.info(f"Uploaded {source.name} -> {destination} ({len(content)} bytes)")
        return entry

    async def upload_directory(self, source: Union[str, Path], destination: str) -> List[ContentsEntry]:
        """Recursively upload every file below ``source``."""
        source = Path(source)
        uploaded = []
        for file_path in sorted(p for p in source.rglob("*") if p.is_file()):
            relative = file_path.relative_to(source).as_posix()
            uploaded.append(await self.upload_file(file_path, f"{destination.rstrip('/')}/{relative}"))
        return uploaded

    async def rename(self, old_path: str, new_path: str) -> ContentsEntry:
        response = await self._request("PATCH", old_path, json={"path": new_path})
        if response.status_code == 404:
            raise NotFoundError(f"No such file or directory: {old_path}", path=old_path)
        if response.status_code != 200:
            raise TransferError(
                f"Failed to rename '{old_path}' to '{new_path}': HTTP {response.status_code}",
                path=old_path,
                status_code=response.status_code,
            )
        return ContentsEntry(**response.json())

    # Deleting
    # ========

    async def delete_file(self, path: str) -> bool:
        """Delete ``path``; returns False if it was already gone."""
        response = await self._request("DELETE", path)
        if response.status_code == 404:
            return False
        if response.status_code not in (200, 204):
            raise TransferError(
                f"Failed to delete '{path}': HTTP {response.status_code}",
                path=path,
                status_code=response.status_code,
            )
        logger.debug(f"Deleted {path}")
        return True

    async def delete_directory(self, path: str) -> bool:
        """Delete ``path`` and everything below it; False if it did not exist."""
        try:
            items = await self.list_directory(path)
        except NotFoundError:
            return False

        for item in items:
            if item.is_directory:
                await self.delete_directory(item.path)
            else:
                await self.delete_file(item.path)

        deleted = await self.delete_file(path)
        if deleted:
            logger.info(f"Deleted directory {path}")
        return deleted
