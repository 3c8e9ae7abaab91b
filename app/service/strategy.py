"""
플랫폼별 yt-dlp 호출 전략

플랫폼마다 다른 것은 정책(User-Agent, 헤더, sleep 간격, 포맷 선택자, 쿠키 대체 방식)뿐이고
명령어를 조립하는 방식은 동일하다. 포맷(video/audio/image) 규칙은 플랫폼 규칙 위에 덧씌운다.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from config import COOKIES_FILE
from models.job import MediaFormat

logger = logging.getLogger(__name__)

DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
ANDROID_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 12; SM-G975F) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
)
IPHONE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1"
)

BROWSER_COOKIE_SOURCE = "chrome"

COMMON_ARGS = [
    "--no-playlist",
    "--write-info-json",
    "--no-warnings",
    "--ignore-errors",
    "--no-check-certificate",
    "--retries", "5",
    "--fragment-retries", "5",
    "--retry-sleep", "exp=1:30",
    "--geo-bypass",
]

# 탐지를 피하기 위해 최소한의 옵션만 사용
MINIMAL_ARGS = [
    "--no-playlist",
    "--write-info-json",
    "--quiet",
    "--no-warnings",
    "--retries", "1",
    "--socket-timeout", "60",
    "--no-check-certificate",
]

ACCEPT_HTML = "Accept:text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


@dataclass(frozen=True)
class PlatformPolicy:
    name: str
    user_agent: str = DESKTOP_USER_AGENT
    headers: tuple = ()
    min_sleep: int = 1
    max_sleep: int = 4
    extractor_args: Optional[str] = None
    # None이면 화질 제한을 쓸 수 있는 플랫폼, 값이 있으면 그 선택자만 사용
    video_selector: Optional[str] = None
    browser_cookie_fallback: bool = False
    minimal: bool = False
    # 큐를 통해 한 번에 하나씩, 간격을 두고 실행해야 하는 플랫폼
    serialized: bool = False


GENERIC_POLICY = PlatformPolicy(name="generic")

PLATFORM_POLICIES = {
    "YouTube": PlatformPolicy(
        name="YouTube",
        headers=(
            ACCEPT_HTML,
            "Accept-Language:en-us,en;q=0.5",
            "Accept-Encoding:gzip,deflate",
            "DNT:1",
            "Connection:keep-alive",
        ),
        min_sleep=1,
        max_sleep=5,
        extractor_args="youtube:player_client=web,mweb,android,ios;player_skip=webpage,configs",
        video_selector="best[ext=mp4]/best",
        browser_cookie_fallback=True,
    ),
    "Instagram": PlatformPolicy(
        name="Instagram",
        user_agent=IPHONE_USER_AGENT,
        headers=(ACCEPT_HTML, "Accept-Language:en-US,en;q=0.5"),
        min_sleep=30,
        max_sleep=60,
        video_selector="best[ext=mp4]/best",
        browser_cookie_fallback=True,
        minimal=True,
        serialized=True,
    ),
    "TikTok": PlatformPolicy(name="TikTok", user_agent=ANDROID_USER_AGENT, min_sleep=2, max_sleep=8),
    "Facebook": PlatformPolicy(
        name="Facebook", min_sleep=2, max_sleep=8, extractor_args="facebook:tab_reel=true"
    ),
    "Twitter": PlatformPolicy(name="Twitter", min_sleep=1, max_sleep=5),
    "Vimeo": PlatformPolicy(name="Vimeo", min_sleep=1, max_sleep=5, video_selector="best[ext=mp4]/best"),
}


@dataclass
class InvocationPlan:
    """yt-dlp 한 번 실행에 필요한 인자와 출력 경로 템플릿"""

    platform: str
    token: str
    output_template: str
    args: list[str] = field(default_factory=list)
    serialized: bool = False

    @property
    def command_line(self) -> str:
        return " ".join(self.args)


def get_policy(platform: str) -> PlatformPolicy:
    return PLATFORM_POLICIES.get(platform, GENERIC_POLICY)


def _platform_slug(platform: str) -> str:
    # 파일명에 들어가므로 공백/특수문자 제거
    return re.sub(r"[^A-Za-z0-9]+", "", platform) or "Unknown"


def _height_limit(quality: Optional[str]) -> Optional[str]:
    if not quality or quality == "best":
        return None
    digits = quality.lower().rstrip("p")
    return digits if digits.isdigit() else None


def _format_args(policy: PlatformPolicy, format: str, quality: Optional[str]) -> list[str]:
    if format == MediaFormat.AUDIO.value:
        return ["--extract-audio", "--audio-format", "mp3", "--audio-quality", "192K"]

    if format == MediaFormat.IMAGE.value:
        return ["--write-thumbnail", "--convert-thumbnails", "jpg", "-f", "best"]

    # video
    if policy.video_selector:
        return ["-f", policy.video_selector]
    height = _height_limit(quality)
    if height:
        return ["-f", f"best[height<={height}]/best"]
    return ["-f", "best"]


def select_strategy(
    url: str,
    platform: str,
    format: str,
    quality: Optional[str],
    token: str,
    output_dir: Path,
    cookies_file: Path = COOKIES_FILE,
) -> InvocationPlan:
    """
    URL과 플랫폼에 맞는 yt-dlp 인자 목록을 만든다.

    출력 파일명은 항상 token으로 시작하므로 실행 후 결과 파일을 찾을 수 있다.
    알 수 없는 플랫폼은 일반 정책으로 대체하며 예외를 던지지 않는다.
    """
    policy = get_policy(platform)
    output_template = str(Path(output_dir) / f"{token}_{_platform_slug(platform)}-%(title)s.%(ext)s")

    args = list(MINIMAL_ARGS if policy.minimal else COMMON_ARGS)
    args += ["-o", output_template]

    # 쿠키 파일은 계획을 세우는 시점에 존재할 때만 사용
    cookies_path = Path(cookies_file) if cookies_file else None
    if cookies_path is not None and cookies_path.is_file():
        args += ["--cookies", str(cookies_path)]
    elif policy.browser_cookie_fallback:
        args += ["--cookies-from-browser", BROWSER_COOKIE_SOURCE]

    args += ["--user-agent", policy.user_agent]
    if policy.extractor_args:
        args += ["--extractor-args", policy.extractor_args]
    for header in policy.headers:
        args += ["--add-header", header]
    args += ["--sleep-interval", str(policy.min_sleep), "--max-sleep-interval", str(policy.max_sleep)]

    args += _format_args(policy, format, quality)
    # "-"로 시작하는 URL이 옵션으로 해석되지 않도록
    args += ["--", url]

    logger.debug(f"Selected {policy.name} strategy for {platform} ({format}, quality={quality})")

    return InvocationPlan(
        platform=platform,
        token=token,
        output_template=output_template,
        args=args,
        serialized=policy.serialized,
    )
