# datagate/block/transport/storage.py
"""
DataGate Block Transport: Storage Interface

Boundary to the blob storage collaborator (IPFS pinning service, local
disk, cloud drive). DataGate only needs upload and download; concrete
providers live outside this package.

Usage:
    storage = CallbackStorage(upload=my_upload, download=my_download)
    result = await storage.upload(envelope, "data.bin")
    blob = await storage.download(result.url)

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ...errors import DataGateError


@dataclass
class StorageUpload:
    url: str
    size: int
    content_id: Optional[str] = None


class StorageProvider(ABC):
    """Abstract blob storage."""

    @abstractmethod
    async def upload(self, data: bytes, filename: str) -> StorageUpload:
        """Store ``data`` and return where it lives."""
        pass

    @abstractmethod
    async def download(self, url: str) -> bytes:
        pass


UploadFn = Callable[[bytes, str], Awaitable[StorageUpload]]
DownloadFn = Callable[[str], Awaitable[bytes]]


class CallbackStorage(StorageProvider):
    """Storage provider built from two async callables."""

    def __init__(self, upload: UploadFn, download: Optional[DownloadFn] = None):
        self._upload = upload
        self._download = download

    async def upload(self, data: bytes, filename: str) -> StorageUpload:
        return await self._upload(data, filename)

    async def download(self, url: str) -> bytes:
        if self._download is None:
            raise DataGateError("Storage provider does not support download")
        return await self._download(url)
