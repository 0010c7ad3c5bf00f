"""
Rule-based filtering of recognized text.
Splits text into lines, keeps the lines that pass every configured
predicate and collects categorized matches (emails, phones, ...) from them.
"""
import logging
import re
from typing import List, Optional, Pattern, Tuple

from meter_reader.errors import InvalidFilterPattern
from meter_reader.models.filters import FilterConfig, FilterResult, RejectedLine

logger = logging.getLogger(__name__)

# One table for both category extraction and line-content filters
CATEGORY_PATTERNS = {
    "emails": re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)*\.[a-z]{2,}", re.IGNORECASE),
    "phones": re.compile(r"\+?\d[\d\s\-()]{5,}\d"),
    "urls": re.compile(r"(?:https?://|www\.)[^\s]+", re.IGNORECASE),
    "dates": re.compile(r"\b\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}\b"),
    "prices": re.compile(r"[$€£]\s*\d+(?:[.,]\d+)?"),
    "numbers": re.compile(r"\b\d+(?:\.\d+)?\b"),
}

LINE_SPLIT = re.compile(r"[\r\n]+")
SYMBOL = re.compile(r"[^\w\s]|_")

REASON_LENGTH = "Length filter"
REASON_NUMBERS = "Contains numbers"
REASON_LETTERS = "Contains letters"
REASON_SYMBOLS = "Contains symbols"
REASON_EXCLUDED = "Excluded keyword"
REASON_KEYWORD = "Keyword filter"
REASON_PATTERN = "Pattern filter"
REASON_LINE_FILTER = "Line filter mismatch"


def split_lines(text: str) -> List[str]:
    """Split on any newline sequence, trim, drop empty lines."""
    return [line.strip() for line in LINE_SPLIT.split(text or "") if line.strip()]


def compile_pattern(pattern: str, case_sensitive: bool = False) -> Pattern:
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise InvalidFilterPattern(pattern, e) from e


def _compile_patterns(config: FilterConfig) -> Tuple[List[Pattern], List[str]]:
    compiled = []
    invalid = []
    for pattern in config.patterns:
        try:
            compiled.append(compile_pattern(pattern, config.case_sensitive))
        except InvalidFilterPattern as e:
            # A bad pattern never matches; the rest of the filter still runs
            logger.warning(str(e))
            invalid.append(pattern)
    return compiled, invalid


def _fold(value: str, case_sensitive: bool) -> str:
    return value if case_sensitive else value.casefold()


def _keyword_matches(line: str, keywords: List[str], exact: bool) -> bool:
    if exact:
        return any(line == k for k in keywords)
    return any(k in line for k in keywords)


def _check_line(
    line: str,
    config: FilterConfig,
    keywords: List[str],
    exclude_keywords: List[str],
    patterns: List[Pattern],
) -> Optional[str]:
    """Return the reason the line is rejected, or None if it passes."""
    if len(line) < config.min_length or (
        config.max_length is not None and len(line) > config.max_length
    ):
        return REASON_LENGTH

    if not config.include_numbers and re.search(r"\d", line):
        return REASON_NUMBERS
    if not config.include_letters and any(ch.isalpha() for ch in line):
        return REASON_LETTERS
    if not config.include_symbols and SYMBOL.search(line):
        return REASON_SYMBOLS

    folded = _fold(line, config.case_sensitive)
    if exclude_keywords and _keyword_matches(folded, exclude_keywords, config.exact_match):
        return REASON_EXCLUDED
    if keywords and not _keyword_matches(folded, keywords, config.exact_match):
        return REASON_KEYWORD

    # Every configured pattern invalid still counts as "patterns configured"
    if config.patterns and not any(p.search(line) for p in patterns):
        return REASON_PATTERN

    enabled = config.line_filters.enabled()
    if enabled and not any(CATEGORY_PATTERNS[name].search(line) for name in enabled):
        return REASON_LINE_FILTER

    return None


def filter_text(text: str, config: Optional[FilterConfig] = None) -> FilterResult:
    """
    Filter recognized text line by line.

    Args:
        text: Recognized text (any newline convention)
        config: Filter configuration (defaults keep every non-empty line)

    Returns:
        FilterResult with matched/rejected lines and categories of the matched lines
    """
    config = config or FilterConfig()
    keywords = [_fold(k, config.case_sensitive) for k in sorted(config.keywords)]
    exclude_keywords = [_fold(k, config.case_sensitive) for k in sorted(config.exclude_keywords)]
    patterns, invalid = _compile_patterns(config)

    result = FilterResult(all_text=text or "", invalid_patterns=invalid)
    for line in split_lines(text):
        reason = _check_line(line, config, keywords, exclude_keywords, patterns)
        if reason is None:
            result.matched_lines.append(line)
        else:
            result.rejected_lines.append(RejectedLine(line=line, reason=reason))

    for line in result.matched_lines:
        for name, pattern in CATEGORY_PATTERNS.items():
            result.categories[name].extend(m.group(0) for m in pattern.finditer(line))

    logger.info(
        f"Filtered text: {result.match_count} of {result.total_lines} lines matched"
        + (f", {len(invalid)} invalid pattern(s)" if invalid else "")
    )
    return result
