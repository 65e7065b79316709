from pathlib import Path

import pytest

from media_bot.utils import (
    extract_url, format_duration, is_tiktok, is_valid_file, is_youtube, remove_file, sanitize_filename,
    truncate_utf8,
)


class TestSanitizeFilename:
    def test_strips_illegal_characters(self):
        assert sanitize_filename('a/b\\c:d*e?f"g<h>i|j') == "abcdefghij"

    def test_keeps_unicode(self):
        assert sanitize_filename("مرحبا بالعالم") == "مرحبا بالعالم"

    def test_collapses_whitespace(self):
        assert sanitize_filename("  hello \n\t world  ") == "hello world"

    def test_truncates_to_cap(self):
        name = sanitize_filename("x" * 300, max_length=80)
        assert len(name) == 80

    @pytest.mark.parametrize("raw", ["", "   ", '/:*?"<>|', None])
    def test_never_empty(self, raw):
        assert sanitize_filename(raw) == "video"

    def test_custom_default(self):
        assert sanitize_filename("???", default="audio") == "audio"


def test_truncate_utf8_backs_off_to_character_boundary():
    assert truncate_utf8("abc", 10) == "abc"
    # "é" is two bytes; a cut through it drops the whole character
    assert truncate_utf8("aé", 2) == "a"
    assert truncate_utf8("ကခ", 5) == "က"
    assert truncate_utf8("abc", 0) == ""


@pytest.mark.parametrize("seconds,label", [
    (None, "N/A"),
    (0, "N/A"),
    (5, "0:05"),
    (125, "2:05"),
    (3725.4, "1:02:05"),
])
def test_format_duration(seconds, label):
    assert format_duration(seconds) == label


def test_extract_url():
    assert extract_url("look https://youtu.be/abc123, nice") == "https://youtu.be/abc123"
    assert extract_url("no links here") is None


@pytest.mark.parametrize("url,youtube,tiktok", [
    ("https://youtu.be/abc123", True, False),
    ("https://www.youtube.com/watch?v=abc123", True, False),
    ("https://m.youtube.com/shorts/abc123", True, False),
    ("https://www.tiktok.com/@user/video/123", False, True),
    ("https://vt.tiktok.com/ZS123/", False, True),
    ("https://notyoutube.com/watch?v=1", False, False),
    ("https://example.com/tiktok.com", False, False),
])
def test_platform_detection(url, youtube, tiktok):
    assert is_youtube(url) is youtube
    assert is_tiktok(url) is tiktok


def test_is_valid_file(tmp_path):
    small = tmp_path / "small.mp4"
    small.write_bytes(b"x" * 10)
    big = tmp_path / "big.mp4"
    big.write_bytes(b"x" * 2048)
    assert not is_valid_file(small, 1024)
    assert is_valid_file(big, 1024)
    assert not is_valid_file(tmp_path / "missing.mp4", 1024)


def test_remove_file_is_best_effort(tmp_path):
    target = tmp_path / "a.mp4"
    target.write_bytes(b"x")
    remove_file(target)
    assert not target.exists()
    remove_file(target)
    remove_file(None)
    remove_file(Path(tmp_path / "never-existed"))
