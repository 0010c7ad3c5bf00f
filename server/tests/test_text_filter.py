import pytest

from meter_reader.errors import InvalidFilterPattern
from meter_reader.models import FilterConfig, LineFilters
from meter_reader.ocr.text_filter import (
    REASON_EXCLUDED,
    REASON_KEYWORD,
    REASON_LENGTH,
    REASON_LETTERS,
    REASON_LINE_FILTER,
    REASON_NUMBERS,
    REASON_PATTERN,
    REASON_SYMBOLS,
    compile_pattern,
    filter_text,
    split_lines,
)

SAMPLE = "FR1 041.09 m3/Hr\r\n\nT1 1234 m3\n  contact: service@acme.com  \nCall +1 (555) 123-4567"


def test_default_config_keeps_every_line():
    result = filter_text(SAMPLE)
    assert result.matched_lines == split_lines(SAMPLE)
    assert result.rejected_lines == []
    assert result.total_lines == 4


def test_split_lines_handles_any_newline_and_trims():
    assert split_lines("a\r\nb\rc\n\n  d  ") == ["a", "b", "c", "d"]
    assert split_lines("") == []


def test_filtering_is_idempotent():
    config = FilterConfig(keywords={"fr1", "t1"})
    once = filter_text(SAMPLE, config)
    twice = filter_text(once.filtered_text, config)
    assert twice.matched_lines == once.matched_lines


def test_every_line_is_accounted_for():
    result = filter_text(SAMPLE, FilterConfig(keywords={"m3"}))
    assert result.match_count + len(result.rejected_lines) == len(split_lines(SAMPLE))


def test_keywords_are_case_insensitive_by_default():
    result = filter_text(SAMPLE, FilterConfig(keywords={"fr1"}))
    assert result.matched_lines == ["FR1 041.09 m3/Hr"]
    assert {r.reason for r in result.rejected_lines} == {REASON_KEYWORD}


def test_case_sensitive_keywords():
    result = filter_text(SAMPLE, FilterConfig(keywords={"fr1"}, case_sensitive=True))
    assert result.matched_lines == []


def test_exact_match_compares_whole_line():
    text = "FR1\nFR1 041.09"
    result = filter_text(text, FilterConfig(keywords={"fr1"}, exact_match=True))
    assert result.matched_lines == ["FR1"]


def test_exclude_keywords_win_over_keywords():
    result = filter_text("FR1 041.09 m3/Hr", FilterConfig(keywords={"fr1"}, exclude_keywords={"hr"}))
    assert result.matched_lines == []
    assert result.rejected_lines[0].reason == REASON_EXCLUDED


def test_length_is_checked_first():
    config = FilterConfig(min_length=5, keywords={"nothing"})
    result = filter_text("abc", config)
    assert result.rejected_lines[0].reason == REASON_LENGTH


def test_max_length():
    result = filter_text("short\nmuch longer line", FilterConfig(max_length=5))
    assert result.matched_lines == ["short"]


@pytest.mark.parametrize(
    "config, reason",
    [
        (FilterConfig(include_numbers=False), REASON_NUMBERS),
        (FilterConfig(include_letters=False), REASON_LETTERS),
        (FilterConfig(include_symbols=False), REASON_SYMBOLS),
    ],
)
def test_character_class_filters(config, reason):
    result = filter_text("FR1: 41.09", config)
    assert result.rejected_lines[0].reason == reason


def test_pattern_filter():
    result = filter_text(SAMPLE, FilterConfig(patterns=(r"\d+\.\d+",)))
    assert result.matched_lines == ["FR1 041.09 m3/Hr"]
    assert all(r.reason == REASON_PATTERN for r in result.rejected_lines)


def test_invalid_pattern_is_reported_and_matches_nothing():
    result = filter_text(SAMPLE, FilterConfig(patterns=("[unclosed",)))
    assert result.invalid_patterns == ["[unclosed"]
    assert result.matched_lines == []


def test_invalid_pattern_does_not_hide_valid_ones():
    result = filter_text(SAMPLE, FilterConfig(patterns=("[unclosed", "T1")))
    assert result.matched_lines == ["T1 1234 m3"]


def test_compile_pattern_raises():
    with pytest.raises(InvalidFilterPattern) as exc_info:
        compile_pattern("(")
    assert exc_info.value.pattern == "("


def test_categories_collected_from_matched_lines():
    result = filter_text(SAMPLE)
    assert result.categories["emails"] == ["service@acme.com"]
    assert result.categories["phones"] == ["+1 (555) 123-4567"]
    assert "041.09" in result.categories["numbers"]


def test_categories_skip_rejected_lines():
    result = filter_text(SAMPLE, FilterConfig(keywords={"fr1"}))
    assert result.categories["emails"] == []


def test_line_filters_are_any_of():
    config = FilterConfig(line_filters=LineFilters(contains_email=True, contains_phone=True))
    result = filter_text(SAMPLE, config)
    assert result.matched_lines == ["contact: service@acme.com", "Call +1 (555) 123-4567"]
    assert {r.reason for r in result.rejected_lines} == {REASON_LINE_FILTER}


def test_url_date_and_price_categories():
    text = "see www.example.com\npaid $12.50 on 03/04/2024"
    result = filter_text(text)
    assert result.categories["urls"] == ["www.example.com"]
    assert result.categories["dates"] == ["03/04/2024"]
    assert result.categories["prices"] == ["$12.50"]


def test_empty_text():
    result = filter_text("")
    assert result.total_lines == 0
    assert result.filtered_text == ""


def test_contact_line_categories():
    result = filter_text("Contact test@example.com or call (555) 123-4567")
    assert "test@example.com" in result.categories["emails"]
    assert result.categories["phones"]
