"""
Binary asset hosting interface (QR images).
"""

import base64
import uuid
from abc import ABC, abstractmethod

import httpx


class AssetStore(ABC):
    """
    Interface for hosting rendered images.

    Implementations:
    - HttpAssetStore: multipart upload to an external asset service
    - InlineAssetStore: no hosting, returns a data: URL
    """

    @abstractmethod
    async def upload_image(self, data: bytes, category: str) -> str:
        """
        Store a PNG image.

        Args:
            data: PNG bytes
            category: Logical folder, e.g. "qr-codes"

        Returns:
            Public URL of the stored image
        """
        pass


class HttpAssetStore(AssetStore):
    """
    Uploads to an asset service that answers {"url": "..."}.
    Any transport or HTTP error propagates; callers decide whether hosting
    is optional.
    """

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def upload_image(self, data: bytes, category: str) -> str:
        filename = f"qr_{uuid.uuid4().hex[:8]}.png"
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/upload",
                data={"category": category},
                files={"file": (filename, data, "image/png")},
            )
            response.raise_for_status()
            return response.json()["url"]


class InlineAssetStore(AssetStore):
    """Embeds the image in the URL itself; used when no store is configured."""

    async def upload_image(self, data: bytes, category: str) -> str:
        return "data:image/png;base64," + base64.b64encode(data).decode("ascii")
