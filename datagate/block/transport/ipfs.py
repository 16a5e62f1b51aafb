# datagate/block/transport/ipfs.py
"""
DataGate Block Transport: Content Fetcher

Retrieves content-addressed blobs (grant documents, encrypted files)
through an ordered list of IPFS HTTP gateways, falling through to the
next gateway on any failure.

Accepted Addresses:
    ipfs://<cid>
    https://<any-gateway>/ipfs/<cid>[/path]
    <cid>                       bare CIDv0 (Qm...) or CIDv1 (b...)
    http(s)://...               anything else is fetched directly

Usage:
    fetcher = ContentFetcher(transport, gateways=["https://my.gateway/ipfs/"])
    data = await fetcher.fetch("ipfs://bafy...")
    data = await fetcher.fetch(cid, gateways=["https://other/ipfs/"])

Updated: 2025-03-02
Version: 0.4.0
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

from ...errors import ContentFetchError, DataGateError, ValidationError
from .http import HTTPTransport

logger = logging.getLogger(__name__)

DEFAULT_IPFS_GATEWAYS = [
    "https://dweb.link/ipfs/",
    "https://ipfs.io/ipfs/",
    "https://gateway.pinata.cloud/ipfs/",
]

_CID_RE = re.compile(r"^(Qm[1-9A-HJ-NP-Za-km-z]{44}|b[a-z2-7]{20,})$")
_GATEWAY_PATH_RE = re.compile(r"^https?://[^/]+/ipfs/(.+)$")


def extract_cid(url: str) -> Optional[str]:
    """
    Return ``<cid>[/path]`` for IPFS-style addresses, or None.
    """
    url = url.strip()
    if url.startswith("ipfs://"):
        return url[len("ipfs://"):].lstrip("/") or None
    match = _GATEWAY_PATH_RE.match(url)
    if match:
        return match.group(1)
    if _CID_RE.match(url):
        return url
    return None


def _normalize_gateway(gateway: str) -> str:
    return gateway if gateway.endswith("/") else gateway + "/"


class ContentFetcher:
    """Gateway-fallback fetcher for content-addressed data."""

    def __init__(
        self,
        transport: HTTPTransport,
        gateways: Optional[Sequence[str]] = None,
    ):
        """
        Args:
            transport: HTTP transport
            gateways: Application-wide gateway list (defaults if None/empty)
        """
        self._transport = transport
        self._gateways = [_normalize_gateway(g) for g in (gateways or DEFAULT_IPFS_GATEWAYS)]

    @property
    def gateways(self) -> List[str]:
        return list(self._gateways)

    def candidate_urls(self, url: str, gateways: Optional[Sequence[str]] = None) -> List[str]:
        """
        Ordered URLs to try for ``url``.

        Call-supplied gateways replace the application list for this call.
        """
        cid = extract_cid(url)
        if cid is None:
            if url.startswith(("http://", "https://")):
                return [url]
            raise ValidationError(f"Unsupported content address: {url!r}", field="url")

        chosen = [_normalize_gateway(g) for g in gateways] if gateways else self._gateways
        return [gateway + cid for gateway in chosen]

    async def fetch(self, url: str, gateways: Optional[Sequence[str]] = None) -> bytes:
        """
        Fetch content, trying each gateway in order.

        Raises:
            ContentFetchError: Every candidate failed
        """
        failures: List[str] = []
        for candidate in self.candidate_urls(url, gateways):
            try:
                response = await self._transport.get(candidate)
            except DataGateError as e:
                failures.append(f"{candidate}: {e}")
                continue

            if response.ok:
                return response.content

            failures.append(f"{candidate}: HTTP {response.status_code}")
            logger.warning("Gateway %s returned HTTP %d", candidate, response.status_code)

        raise ContentFetchError(url, failures)
