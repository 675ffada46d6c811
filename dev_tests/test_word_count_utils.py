"""
Tests for word_count_utils.py - word counting and tolerance helpers.
"""

import pytest

from word_count_utils import (
    build_word_count_instructions,
    calculate_word_count_range,
    count_words,
    is_within_tolerance,
    word_count_deviation,
)


class TestCountWords:
    """Tests for count_words()."""

    def test_empty_and_whitespace(self):
        assert count_words("") == 0
        assert count_words("   \n\t ") == 0

    def test_markdown_markers_are_not_words(self):
        """
        Given: Markdown heading, list and emphasis markers
        When: count_words is called
        Then: Only tokens carrying letters or digits count
        """
        text = "## Heading\n\nHello, world! - **bold** *"
        assert count_words(text) == 4

    def test_hyphenated_and_apostrophes_count_once(self):
        assert count_words("state-of-the-art homeowner's choice") == 3

    def test_numbers_count(self):
        assert count_words("Installed 24 panels in 2024.") == 5


class TestWordCountRange:
    """Tests for calculate_word_count_range()."""

    @pytest.mark.parametrize("target,tolerance,expected", [
        (500, 0.10, (450, 550)),
        (100, 0.15, (85, 115)),
        (101, 0.10, (91, 111)),
    ])
    def test_range_is_inclusive_and_integral(self, target, tolerance, expected):
        assert calculate_word_count_range(target, tolerance) == expected

    def test_non_positive_target(self):
        assert calculate_word_count_range(0, 0.1) == (0, 0)


class TestTolerance:
    """Tests for word_count_deviation() and is_within_tolerance()."""

    def test_deviation_is_signed(self):
        assert word_count_deviation(450, 500) == pytest.approx(-0.10)
        assert word_count_deviation(600, 500) == pytest.approx(0.20)

    def test_boundaries_are_inclusive(self):
        assert is_within_tolerance(550, 500, 0.10)
        assert is_within_tolerance(450, 500, 0.10)
        assert not is_within_tolerance(551, 500, 0.10)
        assert not is_within_tolerance(449, 500, 0.10)


class TestInstructions:
    def test_instructions_mention_target_and_range(self):
        text = build_word_count_instructions(500, 0.10)
        assert "Exactly 500 words" in text
        assert "450-550" in text
        assert "+/-10%" in text

    def test_no_instructions_without_target(self):
        assert build_word_count_instructions(0, 0.1) == ""
