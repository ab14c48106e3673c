"""Download identity-provider photos as base64 data URLs."""

import base64

import httpx
import structlog

from core.config import settings

logger = structlog.get_logger()


class HttpPhotoFetcher:
    """Fetch a remote image and encode it as a ``data:`` URL.

    Any transport or HTTP error yields ``None``; a missing photo is never a
    reason to fail a profile load.
    """

    def __init__(
        self,
        timeout: float = settings.photo_fetch_timeout,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def __call__(self, url: str) -> str | None:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("identity_photo_fetch_failed", url=url, error=str(exc))
            return None

        content_type = response.headers.get("content-type", "image/jpeg").split(";")[0]
        if not content_type.startswith("image/"):
            logger.warning("identity_photo_not_an_image", url=url, content_type=content_type)
            return None

        encoded = base64.b64encode(response.content).decode("ascii")
        return f"data:{content_type};base64,{encoded}"
