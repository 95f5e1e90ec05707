"""
Decentralized storage client.

Pushes the mint metadata document to an IPFS-compatible pinning endpoint
and returns its content identifier plus a public gateway URL. The CID is
read from a `cid` or `Hash` field (both shapes are common), falling back to
a plain-text body.
"""

import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp

from echomint.config import MintConfig, settings
from echomint.errors import UploadFailure
from echomint.logger import get_logger
from echomint.minting.models import ContentRef

logger = get_logger(__name__)


class StorageClient:
    """IPFS-style metadata uploader."""

    def __init__(self, config: Optional[MintConfig] = None):
        self._config = config or settings.mint

    @property
    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._config.ipfs_api_key:
            headers["Authorization"] = f"Bearer {self._config.ipfs_api_key}"
        return headers

    async def upload(self, document: Dict[str, Any]) -> ContentRef:
        """
        Upload a JSON document.

        Raises:
            UploadFailure: Transport error, timeout, non-2xx or no CID
        """
        timeout = aiohttp.ClientTimeout(total=self._config.timeout_s)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self._config.ipfs_api_url,
                    headers=self._headers,
                    json=document,
                ) as response:
                    text = await response.text()
                    status = response.status
        except asyncio.TimeoutError:
            raise UploadFailure("Storage upload timed out")
        except aiohttp.ClientError as e:
            raise UploadFailure("Storage upload failed", detail=str(e))

        if not 200 <= status < 300:
            raise UploadFailure(f"Storage upload failed ({status})", detail=text[:200])

        cid = extract_cid(text)
        if not cid:
            raise UploadFailure("Storage response did not contain a CID")

        url = f"{self._config.ipfs_gateway_url.rstrip('/')}/{cid}"
        logger.info(f"Uploaded mint metadata: cid={cid}")
        return ContentRef(cid=cid, url=url)


def extract_cid(text: str) -> str:
    """Find the CID in a pinning service response body."""
    try:
        data = json.loads(text)
    except ValueError:
        return text.strip()
    if isinstance(data, dict):
        for key in ("cid", "Hash", "IpfsHash"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
        return ""
    if isinstance(data, str):
        return data.strip()
    return ""
