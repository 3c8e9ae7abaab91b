"""
URL -> 플랫폼 판별과 URL 형태 검증

부작용 없는 순수 함수들만 둔다.
"""

import logging
import re
from typing import Optional
from urllib.parse import urlparse, parse_qs

logger = logging.getLogger(__name__)

UNKNOWN_PLATFORM = "Unknown"
DIRECT_IMAGE_PLATFORM = "Direct Image"

SUPPORTED_PLATFORMS = [
    {"name": "YouTube", "domain": "youtube.com", "description": "Videos, shorts, and audio from YouTube"},
    {"name": "Instagram", "domain": "instagram.com", "description": "Posts, reels, and stories from Instagram"},
    {"name": "TikTok", "domain": "tiktok.com", "description": "Videos and audio from TikTok"},
    {"name": "Twitter", "domain": "twitter.com", "description": "Videos and GIFs from Twitter/X"},
    {"name": "Facebook", "domain": "facebook.com", "description": "Videos and media from Facebook"},
    {"name": "Vimeo", "domain": "vimeo.com", "description": "High-quality videos from Vimeo"},
    {"name": "Twitch", "domain": "twitch.tv", "description": "Clips and VODs from Twitch"},
    {"name": "SoundCloud", "domain": "soundcloud.com", "description": "Audio tracks from SoundCloud"},
    {"name": "Reddit", "domain": "reddit.com", "description": "Videos and GIFs from Reddit"},
    {"name": "Dailymotion", "domain": "dailymotion.com", "description": "Videos from Dailymotion"},
]

# 도메인 -> 플랫폼 이름 (youtu.be, x.com 같은 별칭 포함)
PLATFORM_DOMAINS = {
    "youtube.com": "YouTube",
    "youtu.be": "YouTube",
    "instagram.com": "Instagram",
    "tiktok.com": "TikTok",
    "twitter.com": "Twitter",
    "x.com": "Twitter",
    "facebook.com": "Facebook",
    "fb.watch": "Facebook",
    "vimeo.com": "Vimeo",
    "twitch.tv": "Twitch",
    "dailymotion.com": "Dailymotion",
    "soundcloud.com": "SoundCloud",
    "reddit.com": "Reddit",
}

DIRECT_IMAGE_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif|webp|bmp|svg)(\?.*)?$", re.IGNORECASE)


def _host(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def _host_matches(host: str, domain: str) -> bool:
    # "dropbox.com"이 "x.com"으로 잡히지 않도록 정확히 일치하거나 서브도메인인 경우만
    return host == domain or host.endswith("." + domain)


def is_direct_media_url(url: str) -> bool:
    return bool(DIRECT_IMAGE_PATTERN.search(url or ""))


def detect_platform(url: str) -> str:
    try:
        host = _host(url)
    except ValueError:
        logger.warning(f"Failed to parse URL for platform detection: {url}")
        return UNKNOWN_PLATFORM

    for domain, platform in PLATFORM_DOMAINS.items():
        if _host_matches(host, domain):
            return platform

    if is_direct_media_url(url):
        return DIRECT_IMAGE_PLATFORM

    return UNKNOWN_PLATFORM


def validate_url(url: str) -> tuple[bool, Optional[str]]:
    """
    채널/프로필/홈페이지처럼 단일 미디어가 아닌 URL을 걸러냄

    Returns:
        (유효 여부, 오류 메시지)
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return False, "Invalid URL format"

    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False, "Invalid URL format"

    host = parsed.hostname.lower()
    path = (parsed.path or "/").lower()

    if _host_matches(host, "youtube.com"):
        if any(segment in path for segment in ("/channel/", "/@", "/user/", "/c/")):
            return False, "Please provide a direct video URL, not a channel or user profile URL"
        if "/playlist" in path and not parse_qs(parsed.query).get("v"):
            return False, "Please provide a direct video URL, not a playlist URL"

    if _host_matches(host, "instagram.com"):
        if path == "/" or "/explore/" in path:
            return False, "Please provide a direct post or reel URL, not the homepage or explore page"
        if re.match(r"^/[^/]+/?$", path) and "/p/" not in path and "/reel/" not in path:
            return False, "Please provide a direct post or reel URL, not a profile URL"

    if path == "/" and not is_direct_media_url(url):
        return False, "Please provide a direct link to media content, not the homepage"

    return True, None
