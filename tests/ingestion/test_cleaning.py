from __future__ import annotations

import pytest

from usefulpayload.ingestion.cleaning import BOILERPLATE_LINE_CHARS, clean, remove_boilerplate_lines


def test_figure_caption_is_removed_and_following_sentence_kept() -> None:
    cleaned = clean("Figure 1 shows results. The model achieved 92% accuracy on the test set.")

    assert cleaned == "The model achieved 92% accuracy on the test set."


def test_chart_and_image_captions_are_case_insensitive() -> None:
    cleaned = clean("CHART 3 quarterly totals\nRevenue rose sharply.\nimage 12: the office")

    assert cleaned == "Revenue rose sharply."


def test_file_paths_and_bracketed_markup_are_removed() -> None:
    cleaned = clean("See /usr/local/share/report.txt for details. Value {placeholder} here <br> now.")

    assert "/usr/local" not in cleaned
    assert "{placeholder}" not in cleaned
    assert "<br>" not in cleaned
    assert cleaned == "See for details. Value here now."


def test_long_lines_without_periods_are_dropped() -> None:
    navigation = "Home About Products Services Careers Investors Contact Support Community Partners Blog"
    assert len(navigation) > BOILERPLATE_LINE_CHARS

    cleaned = clean(f"{navigation}\nThe actual article starts here.")

    assert cleaned == "The actual article starts here."


def test_boilerplate_cutoff_is_strictly_longer_than_threshold() -> None:
    exact = "a" * BOILERPLATE_LINE_CHARS

    assert remove_boilerplate_lines(exact) == exact
    assert remove_boilerplate_lines(exact + "a") == ""


def test_whitespace_runs_collapse_but_line_breaks_survive() -> None:
    cleaned = clean("  First   line.  \n\n\n   Second\t\tline.  ")

    assert cleaned == "First line.\nSecond line."


@pytest.mark.parametrize(
    "raw_text",
    [
        "",
        "Figure 2 Figure 3 overlapping captions. Real text follows.",
        "Paths /a/b and {x} and <y>\n\n\nmore text here.",
        "Nested <a{b}c> brackets / slash / here.",
    ],
)
def test_clean_is_idempotent(raw_text: str) -> None:
    once = clean(raw_text)

    assert clean(once) == once
