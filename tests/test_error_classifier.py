from service.error_classifier import (
    STDERR_MESSAGE_LIMIT,
    Failure,
    FailureCategory,
    Success,
    classify,
    failure_message,
)


def test_rate_limit_with_zero_exit_is_failure():
    outcome = classify(0, "", "ERROR: [tiktok] 123: HTTP Error 429: Too Many Requests", "TikTok")

    assert isinstance(outcome, Failure)
    assert outcome.category == FailureCategory.RATE_LIMITED
    assert outcome.matched_pattern == "HTTP Error 429"
    assert "TikTok" in outcome.message


def test_empty_stderr_and_zero_exit_is_success():
    assert classify(0, "", "", "YouTube") == Success()


def test_auth_required():
    outcome = classify(1, "", "ERROR: Sign in to confirm you're not a bot", "YouTube")

    assert outcome.category == FailureCategory.AUTH_REQUIRED
    assert outcome.message.startswith("YouTube requires authentication")


def test_forbidden():
    outcome = classify(1, "", "ERROR: unable to download video data: HTTP Error 403: Forbidden", "Vimeo")
    assert outcome.category == FailureCategory.FORBIDDEN


def test_not_found():
    outcome = classify(1, "", "ERROR: HTTP Error 404: Not Found", "Reddit")
    assert outcome.category == FailureCategory.NOT_FOUND


def test_extraction_failed():
    outcome = classify(1, "", "ERROR: Unable to extract video url", "Facebook")
    assert outcome.category == FailureCategory.EXTRACTION_FAILED


def test_first_matching_category_wins():
    stderr = "HTTP Error 403: Forbidden\nHTTP Error 429: Too Many Requests"
    assert classify(1, "", stderr, "Twitter").category == FailureCategory.RATE_LIMITED


def test_patterns_are_case_sensitive():
    assert classify(0, "", "note: FORBIDDEN word in title", "Twitter") == Success()


def test_stdout_is_not_classified():
    assert classify(0, "HTTP Error 429", "", "TikTok") == Success()


def test_nonzero_exit_without_pattern_carries_stderr():
    outcome = classify(2, "", "ERROR: something odd happened\n", "Twitch")

    assert outcome.category == FailureCategory.NONZERO_EXIT
    assert outcome.message == "ERROR: something odd happened"


def test_nonzero_exit_message_is_truncated():
    outcome = classify(1, "", "x" * 2000, "Twitch")

    assert len(outcome.message) == STDERR_MESSAGE_LIMIT
    assert outcome.message.endswith("...")


def test_nonzero_exit_without_stderr_mentions_code():
    outcome = classify(7, "", "", "Twitch")
    assert outcome.message == "Download failed with exit code 7"


def test_timeout_takes_precedence():
    outcome = classify(-15, "", "", "Instagram", timed_out=True)
    assert outcome.category == FailureCategory.TIMEOUT


def test_instagram_has_specific_messages():
    assert "60 seconds" in classify(0, "", "HTTP Error 429", "Instagram").message
    assert classify(1, "", "weird", "Instagram").message.startswith("Instagram download failed")


def test_orchestration_messages_take_detail():
    message = failure_message(FailureCategory.SPAWN_FAILED, "YouTube", "Permission denied")
    assert message == "Failed to start download process: Permission denied"


def test_instagram_login_required_is_rate_limiting():
    outcome = classify(1, "", "ERROR: [Instagram] Cxyz: login required", "Instagram")

    assert outcome.category == FailureCategory.RATE_LIMITED
    assert "60 seconds" in outcome.message


def test_login_required_elsewhere_needs_authentication():
    outcome = classify(1, "", "ERROR: login required", "Facebook")
    assert outcome.category == FailureCategory.AUTH_REQUIRED
