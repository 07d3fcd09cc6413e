"""
Tests for name sanitization and formatting helpers.
"""

from drive_backup.core.formatting import (
    format_duration,
    format_percent,
    format_size,
    join_posix,
    sanitize_filename,
)


class TestSanitizeFilename:
    """Tests for sanitize_filename() - Drive names as local path segments."""

    def test_colon_becomes_space_dash(self):
        assert sanitize_filename("Title: Subtitle") == "Title - Subtitle"

    def test_question_mark_and_asterisk_removed(self):
        assert sanitize_filename("What?") == "What"
        assert sanitize_filename("Best*Doc*Ever") == "BestDocEver"

    def test_slash_cannot_create_subdirectory(self):
        """Drive allows "/" in names; locally it would be a separator."""
        assert sanitize_filename("2023/2024 budget") == "2023-2024 budget"
        assert sanitize_filename("AC\\DC") == "AC-DC"

    def test_double_quote_becomes_single(self):
        assert sanitize_filename('Say "Hello"') == "Say 'Hello'"

    def test_trailing_dots_and_spaces_stripped(self):
        assert sanitize_filename("file...") == "file"
        assert sanitize_filename("file   ") == "file"

    def test_dot_names_cannot_escape(self):
        """"." and ".." would point at the current or parent directory."""
        assert sanitize_filename(".") == "_"
        assert sanitize_filename("..") == "_"

    def test_empty_name_gets_placeholder(self):
        assert sanitize_filename("") == "_"

    def test_windows_reserved_names_prefixed(self):
        assert sanitize_filename("CON") == "_CON"
        assert sanitize_filename("nul.txt") == "_nul.txt"
        assert sanitize_filename("LPT3") == "_LPT3"

    def test_control_characters_become_underscore(self):
        assert sanitize_filename("file\tname") == "file_name"
        assert sanitize_filename("file\x00name") == "file_name"
        assert sanitize_filename("file\x7fname") == "file_name"

    def test_normal_filename_unchanged(self):
        assert sanitize_filename("report.pdf") == "report.pdf"
        assert sanitize_filename("Notes - Week 1") == "Notes - Week 1"

    def test_decomposed_unicode_normalized(self):
        """NFD "é" (e + combining accent) becomes the single NFC code point."""
        assert sanitize_filename("Cafe\u0301") == "Caf\u00e9"

    def test_fullwidth_unicode_passes_through(self):
        assert sanitize_filename("Title：Subtitle") == "Title：Subtitle"

    def test_idempotent(self):
        for name in ['What?: "Yes" <No>', "a/b/c", "CON", "x...", "\x01"]:
            once = sanitize_filename(name)
            assert sanitize_filename(once) == once


class TestJoinPosix:

    def test_root_level(self):
        assert join_posix("", "file.txt") == "file.txt"

    def test_nested(self):
        assert join_posix("a/b", "file.txt") == "a/b/file.txt"


class TestFormatting:
    """Tests for human readable sizes, durations and percentages."""

    def test_format_size(self):
        assert format_size(0) == "0.0 B"
        assert format_size(1536) == "1.5 KB"
        assert format_size(1024 * 1024 * 50) == "50.0 MB"
        assert format_size(1024 ** 4) == "1.0 TB"

    def test_format_duration(self):
        assert format_duration(5.5) == "5.5s"
        assert format_duration(125) == "2m 5s"
        assert format_duration(3725) == "1h 2m"

    def test_format_percent(self):
        assert format_percent(0.0) == "0%"
        assert format_percent(0.5) == "50%"
        assert format_percent(1.0) == "100%"
