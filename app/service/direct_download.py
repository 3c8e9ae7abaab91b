"""
이미지 직접 링크는 yt-dlp를 거치지 않고 HTTP로 바로 받는다.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import httpx

from config import DIRECT_DOWNLOAD_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "image/bmp": "bmp",
}
DEFAULT_EXTENSION = "jpg"


class DirectDownloadError(Exception):
    pass


@dataclass
class DirectDownloadResult:
    path: Path
    file_size: int
    content_type: str

    def metadata(self, url: str) -> dict:
        return {
            "originalUrl": url,
            "contentType": self.content_type,
            "directImage": True,
            "downloadedAt": datetime.now(timezone.utc).isoformat(),
        }


def extension_for(content_type: str) -> str:
    for mime_type, extension in CONTENT_TYPE_EXTENSIONS.items():
        if mime_type in content_type:
            return extension
    return DEFAULT_EXTENSION


async def download_direct_image(
    url: str,
    token: str,
    output_dir: Path,
    client: Optional[httpx.AsyncClient] = None,
) -> DirectDownloadResult:
    logger.info(f"Starting direct image download: {url}")

    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(
            headers=BROWSER_HEADERS,
            timeout=httpx.Timeout(DIRECT_DOWNLOAD_TIMEOUT_SECONDS, connect=10.0),
            follow_redirects=True,
        )

    try:
        response = await client.get(url, headers=BROWSER_HEADERS)
        if response.status_code >= 400:
            raise DirectDownloadError(f"HTTP {response.status_code}: {response.reason_phrase}")
        content = response.content
    except httpx.HTTPError as e:
        raise DirectDownloadError(str(e)) from e
    finally:
        if own_client:
            await client.aclose()

    content_type = response.headers.get("content-type", "")
    path = Path(output_dir) / f"{token}_DirectImage-image.{extension_for(content_type)}"
    try:
        path.write_bytes(content)
    except OSError as e:
        raise DirectDownloadError(f"Could not save image: {e}") from e

    logger.info(f"Direct image saved: {path.name} ({len(content)} bytes)")
    return DirectDownloadResult(path=path, file_size=len(content), content_type=content_type)
