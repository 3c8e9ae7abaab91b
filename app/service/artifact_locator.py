"""
yt-dlp가 만든 결과 파일 찾기

출력 디렉터리는 모든 작업이 공유하므로 파일명에 포함된 token으로 구분한다.
다음 순서로 찾는다.
  1. token으로 시작하는 파일 (info.json, .part 제외)
  2. 최근 5분 안에 수정된 파일 중 가장 최근 것 (임시/테스트 파일 제외)
  3. 이름 어딘가에 token이 들어간 파일
"""

import json
import logging
import time
from pathlib import Path
from typing import Optional

from config import RECENT_FILE_WINDOW_SECONDS
from models.job import MediaFormat

logger = logging.getLogger(__name__)

SIDECAR_SUFFIX = ".info.json"
PARTIAL_SUFFIX = ".part"
TEMP_SUFFIXES = (".tmp", ".ytdl")
IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".webp", ".gif")
PLACEHOLDER_PREFIXES = ("test.", ".")


def _is_sidecar_or_partial(name: str) -> bool:
    return name.endswith(SIDECAR_SUFFIX) or name.endswith(PARTIAL_SUFFIX)


def _is_placeholder(name: str) -> bool:
    return name.startswith(PLACEHOLDER_PREFIXES) or name.endswith(TEMP_SUFFIXES)


def _list_files(output_dir: Path) -> list[Path]:
    try:
        return sorted(p for p in Path(output_dir).iterdir() if p.is_file())
    except FileNotFoundError:
        return []


def _recent_files(files: list[Path], now: float, window: float) -> list[Path]:
    recent = []
    for path in files:
        name = path.name
        if _is_sidecar_or_partial(name) or _is_placeholder(name):
            continue
        try:
            mtime = path.stat().st_mtime
        except OSError as e:
            logger.debug(f"Error reading file stats for {name}: {e}")
            continue
        if now - mtime < window:
            recent.append((mtime, path))
    recent.sort(key=lambda item: item[0], reverse=True)
    return [path for _, path in recent]


def locate(
    output_dir: Path,
    token: str,
    now: Optional[float] = None,
    recent_window: float = RECENT_FILE_WINDOW_SECONDS,
    format: Optional[str] = None,
) -> Optional[Path]:
    files = _list_files(output_dir)
    logger.debug(f"Files in downloads directory: {', '.join(p.name for p in files)}")
    logger.debug(f"Looking for files starting with: {token}")

    prefixed = [p for p in files if p.name.startswith(token) and not _is_sidecar_or_partial(p.name)]
    if format == MediaFormat.IMAGE.value:
        # 이미지 요청이면 썸네일과 함께 받은 미디어 파일보다 이미지를 우선
        images = [p for p in prefixed if p.name.lower().endswith(IMAGE_SUFFIXES)]
        if images:
            return images[0]
    if prefixed:
        return prefixed[0]

    recent = _recent_files(files, now if now is not None else time.time(), recent_window)
    if recent:
        logger.info(f"No file starting with {token}, using most recent file: {recent[0].name}")
        return recent[0]

    for path in files:
        if token in path.name and not _is_sidecar_or_partial(path.name):
            logger.info(f"Found file containing {token}: {path.name}")
            return path

    return None


def read_sidecar(output_dir: Path, token: str) -> Optional[dict]:
    """
    token으로 시작하는 info.json을 읽는다. 없거나 읽을 수 없으면 None
    """
    for path in _list_files(output_dir):
        if path.name.startswith(token) and path.name.endswith(SIDECAR_SUFFIX):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning(f"Could not parse {path.name}: {e}")
                return None
            return data if isinstance(data, dict) else None
    return None
