import os

from service.artifact_locator import locate, read_sidecar

TOKEN = "abc123"
NOW = 2_000_000_000.0


def _touch(directory, name, age=1000.0, content=b"x"):
    path = directory / name
    path.write_bytes(content)
    os.utime(path, (NOW - age, NOW - age))
    return path


def test_token_file_beats_unrelated_recent_file(downloads_dir):
    _touch(downloads_dir, "abc123.info.json", age=1, content=b"{}")
    video = _touch(downloads_dir, "abc123_video.mp4", age=5)
    _touch(downloads_dir, "unrelated.mp4", age=1)

    assert locate(downloads_dir, TOKEN, now=NOW) == video


def test_token_prefixed_file_wins(downloads_dir):
    _touch(downloads_dir, f"{TOKEN}_YouTube-My Video.info.json", content=b"{}")
    video = _touch(downloads_dir, f"{TOKEN}_YouTube-My Video.mp4")
    _touch(downloads_dir, "zzz-other.mp4", age=1)

    assert locate(downloads_dir, TOKEN, now=NOW) == video


def test_partial_and_sidecar_files_are_not_artifacts(downloads_dir):
    _touch(downloads_dir, f"{TOKEN}_YouTube-My Video.mp4.part")
    _touch(downloads_dir, f"{TOKEN}_YouTube-My Video.info.json")

    assert locate(downloads_dir, TOKEN, now=NOW) is None


def test_falls_back_to_most_recent_file(downloads_dir):
    _touch(downloads_dir, "older.mp4", age=100)
    newest = _touch(downloads_dir, "newer.mp4", age=10)
    _touch(downloads_dir, "test.mp4", age=1)
    _touch(downloads_dir, ".hidden", age=1)
    _touch(downloads_dir, "clip.mp4.part", age=1)
    _touch(downloads_dir, "clip.ytdl", age=1)

    assert locate(downloads_dir, TOKEN, now=NOW) == newest


def test_old_files_are_outside_recent_window(downloads_dir):
    _touch(downloads_dir, "old.mp4", age=301)

    assert locate(downloads_dir, TOKEN, now=NOW) is None


def test_token_anywhere_in_name(downloads_dir):
    renamed = _touch(downloads_dir, f"renamed-{TOKEN}.mkv", age=1000)
    _touch(downloads_dir, f"renamed-{TOKEN}.info.json", age=1000)

    assert locate(downloads_dir, TOKEN, now=NOW) == renamed


def test_missing_directory_finds_nothing(tmp_path):
    assert locate(tmp_path / "nope", TOKEN, now=NOW) is None


def test_read_sidecar(downloads_dir):
    (downloads_dir / f"{TOKEN}_YouTube-My Video.info.json").write_text('{"title": "My Video"}')

    assert read_sidecar(downloads_dir, TOKEN) == {"title": "My Video"}


def test_read_sidecar_with_bad_json(downloads_dir):
    (downloads_dir / f"{TOKEN}_YouTube-My Video.info.json").write_text("{not json")

    assert read_sidecar(downloads_dir, TOKEN) is None


def test_read_sidecar_with_non_object_json(downloads_dir):
    (downloads_dir / f"{TOKEN}_YouTube-My Video.info.json").write_text("[1, 2]")

    assert read_sidecar(downloads_dir, TOKEN) is None


def test_read_sidecar_missing(downloads_dir):
    assert read_sidecar(downloads_dir, TOKEN) is None


def test_image_request_prefers_thumbnail_over_media(downloads_dir):
    video = _touch(downloads_dir, f"{TOKEN}_YouTube-clip.mp4")
    thumbnail = _touch(downloads_dir, f"{TOKEN}_YouTube-clip.webp")

    assert locate(downloads_dir, TOKEN, now=NOW, format="image") == thumbnail
    assert locate(downloads_dir, TOKEN, now=NOW, format="video") == video


def test_image_request_without_image_takes_any_prefixed_file(downloads_dir):
    video = _touch(downloads_dir, f"{TOKEN}_YouTube-clip.mp4")

    assert locate(downloads_dir, TOKEN, now=NOW, format="image") == video
