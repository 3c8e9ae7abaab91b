from datetime import datetime
from typing import Optional

from models.job import Download


def format_datetime_utc(dt: Optional[datetime]) -> Optional[str]:
    """
    datetime을 UTC ISO 문자열로 변환
    SQLite는 timezone 정보를 저장하지 않으므로 없으면 +00:00을 붙인다.
    """
    if not dt:
        return None

    iso_str = dt.isoformat()
    if dt.tzinfo is None:
        iso_str += '+00:00'
    return iso_str


def download_to_dict(download: Download) -> dict:
    return {
        "id": download.id,
        "url": download.url,
        "title": download.title,
        "platform": download.platform,
        "format": download.format,
        "quality": download.quality,
        "status": download.status,
        "filename": download.filename,
        "file_size": download.file_size,
        "download_url": download.download_url,
        "metadata": download.meta,
        "error_message": download.error_message,
        "created_at": format_datetime_utc(download.created_at),
    }
