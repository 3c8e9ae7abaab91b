"""
yt-dlp 실행 결과(종료 코드 + 출력)를 실패 유형으로 분류

규칙은 (유형, 패턴들) 순서 있는 표로 두고 위에서부터 처음 일치하는 규칙을 사용한다.
--ignore-errors 때문에 yt-dlp가 0으로 종료하면서도 실패 메시지를 남기는 경우가 있어서
종료 코드보다 stderr 패턴을 먼저 확인한다.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

STDERR_MESSAGE_LIMIT = 500


class FailureCategory(str, Enum):
    RATE_LIMITED = "rate-limited"
    AUTH_REQUIRED = "authentication-required"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not-found"
    EXTRACTION_FAILED = "extraction-failed"
    TIMEOUT = "timeout"
    NONZERO_EXIT = "generic-nonzero-exit"
    # 아래는 프로세스 출력이 아닌 오케스트레이션 단계에서 발생
    TOOL_NOT_FOUND = "tool-not-found"
    SPAWN_FAILED = "spawn-failed"
    NO_ARTIFACT = "no-artifact"
    DIRECT_DOWNLOAD_FAILED = "direct-download-failed"
    INTERNAL_ERROR = "internal-error"


@dataclass(frozen=True)
class Success:
    pass


@dataclass(frozen=True)
class Failure:
    category: FailureCategory
    message: str
    matched_pattern: Optional[str] = None


Outcome = Union[Success, Failure]


@dataclass(frozen=True)
class ClassificationRule:
    category: FailureCategory
    patterns: tuple
    # 비어 있으면 모든 플랫폼에 적용
    platforms: tuple = ()

    def applies_to(self, platform: str) -> bool:
        return not self.platforms or platform in self.platforms


# 대소문자 구분, 순서 중요
CLASSIFICATION_RULES = (
    # 인스타그램은 로그인 요구도 요청 제한의 신호로 본다
    ClassificationRule(FailureCategory.RATE_LIMITED, ("login required",), platforms=("Instagram",)),
    ClassificationRule(
        FailureCategory.RATE_LIMITED,
        ("HTTP Error 429", "Too Many Requests", "rate limit", "rate-limit reached"),
    ),
    ClassificationRule(
        FailureCategory.AUTH_REQUIRED,
        (
            "Sign in to confirm",
            "Sign in to continue",
            "login_required",
            "login required",
            "Private video",
            "cookies-from-browser",
            "authentication",
            "This video is unavailable",
            "Video unavailable",
        ),
    ),
    ClassificationRule(FailureCategory.FORBIDDEN, ("HTTP Error 403", "Forbidden")),
    ClassificationRule(FailureCategory.NOT_FOUND, ("HTTP Error 404", "404: Not Found", "Not Found")),
    ClassificationRule(
        FailureCategory.EXTRACTION_FAILED,
        ("Unable to extract", "unable to extract", "General metadata extraction failed"),
    ),
)

MESSAGE_TEMPLATES = {
    FailureCategory.RATE_LIMITED: "Rate limited by {platform}. Please wait a few minutes before trying again.",
    FailureCategory.AUTH_REQUIRED: (
        "{platform} requires authentication. Please sign in to the platform in your browser "
        "and try again, or provide a cookies file for authentication."
    ),
    FailureCategory.FORBIDDEN: (
        "Access forbidden by {platform}. This content may be region-blocked, private, "
        "or require special permissions. Try using authentication cookies."
    ),
    FailureCategory.NOT_FOUND: (
        "Content not found. The video may have been deleted, made private, or the URL is incorrect."
    ),
    FailureCategory.EXTRACTION_FAILED: (
        "Unable to extract content from this URL. {platform} may have updated their protection "
        "or the content may be restricted."
    ),
    FailureCategory.TIMEOUT: "Download from {platform} timed out and was stopped. Please try again later.",
    FailureCategory.TOOL_NOT_FOUND: "Download tool (yt-dlp) is not installed or could not be found.",
    FailureCategory.SPAWN_FAILED: "Failed to start download process: {detail}",
    FailureCategory.NO_ARTIFACT: "Download completed but no file was found",
    FailureCategory.DIRECT_DOWNLOAD_FAILED: "Failed to download image: {detail}",
    FailureCategory.INTERNAL_ERROR: "Processing error: {detail}",
}

# 플랫폼별로 더 구체적인 안내가 필요한 경우
PLATFORM_MESSAGE_OVERRIDES = {
    ("Instagram", FailureCategory.RATE_LIMITED): (
        "Instagram rate limiting detected. The system waits 60 seconds between Instagram "
        "requests to avoid this. Try again in a few minutes."
    ),
    ("Instagram", FailureCategory.NONZERO_EXIT): (
        "Instagram download failed. Instagram frequently blocks automated downloads. "
        "Try again later or provide authentication cookies."
    ),
}


def failure_message(category: FailureCategory, platform: str, detail: str = "") -> str:
    override = PLATFORM_MESSAGE_OVERRIDES.get((platform, category))
    if override:
        return override
    template = MESSAGE_TEMPLATES.get(category)
    if template is None:
        return detail or f"Download from {platform} failed"
    return template.format(platform=platform, detail=detail)


def make_failure(category: FailureCategory, platform: str, detail: str = "") -> Failure:
    return Failure(category=category, message=failure_message(category, platform, detail))


def _truncate(text: str, limit: int = STDERR_MESSAGE_LIMIT) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _first_match(haystack: str, patterns: tuple) -> Optional[str]:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None


def classify(
    exit_code: int,
    stdout: str,
    stderr: str,
    platform: str = "Unknown",
    timed_out: bool = False,
) -> Outcome:
    if timed_out:
        return make_failure(FailureCategory.TIMEOUT, platform)

    stderr = stderr or ""
    for rule in CLASSIFICATION_RULES:
        if not rule.applies_to(platform):
            continue
        pattern = _first_match(stderr, rule.patterns)
        if pattern is not None:
            return Failure(
                category=rule.category,
                message=failure_message(rule.category, platform),
                matched_pattern=pattern,
            )

    if exit_code == 0:
        return Success()

    override = PLATFORM_MESSAGE_OVERRIDES.get((platform, FailureCategory.NONZERO_EXIT))
    message = override or _truncate(stderr) or f"Download failed with exit code {exit_code}"
    return Failure(category=FailureCategory.NONZERO_EXIT, message=message)
