import os
from pathlib import Path
from dotenv import load_dotenv

# .env 파일이 있으면 환경변수로 로드 (이미 설정된 값은 유지)
load_dotenv()


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DOWNLOAD_DIR = Path(os.getenv("DOWNLOAD_DIR", "downloads"))
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///jobs.db")
DB_ECHO = _env_bool("DB_ECHO")

# yt-dlp 인증용 쿠키 파일 (없으면 브라우저 쿠키 추출로 대체)
COOKIES_FILE = Path(os.getenv("COOKIES_FILE", "cookies.txt"))

# yt-dlp 실행 파일 후보 경로 - 순서대로 확인하고 없으면 PATH에서 찾음
_DEFAULT_YTDLP_PATHS = [
    "/usr/local/bin/yt-dlp",
    "/usr/bin/yt-dlp",
    str(Path.home() / ".local" / "bin" / "yt-dlp"),
]
YTDLP_PATHS = [
    p for p in os.getenv("YTDLP_PATHS", "").split(os.pathsep) if p
] or _DEFAULT_YTDLP_PATHS

# 인스타그램 요청 사이 최소 간격 (초)
RATE_LIMIT_DELAY_SECONDS = _env_float("RATE_LIMIT_DELAY_SECONDS", 60.0)
QUEUE_ITEM_DELAY_SECONDS = _env_float("QUEUE_ITEM_DELAY_SECONDS", 1.0)

# 0이면 타임아웃 없음
PROCESS_TIMEOUT_SECONDS = _env_float("PROCESS_TIMEOUT_SECONDS", 600.0)
MAX_CONCURRENT_DOWNLOADS = _env_int("MAX_CONCURRENT_DOWNLOADS", 4)

FS_SETTLE_DELAY_SECONDS = _env_float("FS_SETTLE_DELAY_SECONDS", 1.0)
RECENT_FILE_WINDOW_SECONDS = _env_float("RECENT_FILE_WINDOW_SECONDS", 300.0)
DIRECT_DOWNLOAD_TIMEOUT_SECONDS = _env_float("DIRECT_DOWNLOAD_TIMEOUT_SECONDS", 30.0)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
