"""
Text filter configuration and result models.
FilterConfig is validated once when built; the filter engine never has to
re-check or default any field.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

CATEGORY_NAMES = ("emails", "phones", "urls", "dates", "prices", "numbers")

# Accept the camelCase keys used by browser clients as well as snake_case
_KEY_ALIASES = {
    "excludeKeywords": "exclude_keywords",
    "includeNumbers": "include_numbers",
    "includeLetters": "include_letters",
    "includeSymbols": "include_symbols",
    "minLength": "min_length",
    "maxLength": "max_length",
    "caseSensitive": "case_sensitive",
    "exactMatch": "exact_match",
    "lineFilters": "line_filters",
    "containsEmail": "contains_email",
    "containsPhone": "contains_phone",
    "containsUrl": "contains_url",
    "containsDate": "contains_date",
    "containsPrice": "contains_price",
}


def _normalize_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {_KEY_ALIASES.get(key, key): value for key, value in data.items()}


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _as_strings(name: str, value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    try:
        items = [str(v).strip() for v in value]
    except TypeError:
        raise ValueError(f"{name} must be a list of strings, got {value!r}")
    return [item for item in items if item]


@dataclass(frozen=True)
class LineFilters:
    """Line-content conditions; a line must satisfy at least one enabled condition."""

    contains_email: bool = False
    contains_phone: bool = False
    contains_url: bool = False
    contains_date: bool = False
    contains_price: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "LineFilters":
        if not data:
            return cls()
        values = _normalize_keys(data)
        unknown = set(values) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown line filter(s): {', '.join(sorted(unknown))}")
        return cls(**{name: _as_bool(name, value) for name, value in values.items()})

    def enabled(self) -> List[str]:
        """Names of enabled conditions, mapped to their category."""
        mapping = {
            "contains_email": "emails",
            "contains_phone": "phones",
            "contains_url": "urls",
            "contains_date": "dates",
            "contains_price": "prices",
        }
        return [category for name, category in mapping.items() if getattr(self, name)]


@dataclass(frozen=True)
class FilterConfig:
    keywords: FrozenSet[str] = frozenset()
    exclude_keywords: FrozenSet[str] = frozenset()
    patterns: Tuple[str, ...] = ()
    include_numbers: bool = True
    include_letters: bool = True
    include_symbols: bool = True
    min_length: int = 0
    max_length: Optional[int] = None  # None means unbounded
    case_sensitive: bool = False
    exact_match: bool = False
    line_filters: LineFilters = field(default_factory=LineFilters)

    def __post_init__(self):
        object.__setattr__(self, "keywords", frozenset(self.keywords))
        object.__setattr__(self, "exclude_keywords", frozenset(self.exclude_keywords))
        object.__setattr__(self, "patterns", tuple(self.patterns))
        if self.min_length < 0:
            raise ValueError(f"min_length must be >= 0, got {self.min_length}")
        if self.max_length is not None and self.max_length < self.min_length:
            raise ValueError(
                f"max_length ({self.max_length}) must be >= min_length ({self.min_length})"
            )

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "FilterConfig":
        """Build a config from external input; absent fields take their defaults."""
        if not data:
            return cls()
        values = _normalize_keys(data)
        unknown = set(values) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown filter option(s): {', '.join(sorted(unknown))}")

        kwargs: Dict[str, Any] = {}
        for name in ("keywords", "exclude_keywords"):
            if name in values:
                kwargs[name] = frozenset(_as_strings(name, values[name]))
        if "patterns" in values:
            kwargs["patterns"] = tuple(_as_strings("patterns", values["patterns"]))
        for name in ("include_numbers", "include_letters", "include_symbols",
                     "case_sensitive", "exact_match"):
            if name in values and values[name] is not None:
                kwargs[name] = _as_bool(name, values[name])
        if values.get("min_length") is not None:
            kwargs["min_length"] = int(values["min_length"])
        if values.get("max_length") is not None:
            kwargs["max_length"] = int(values["max_length"])
        if "line_filters" in values:
            kwargs["line_filters"] = LineFilters.from_dict(values["line_filters"])
        return cls(**kwargs)


@dataclass(frozen=True)
class RejectedLine:
    line: str
    reason: str


@dataclass
class FilterResult:
    all_text: str = ""
    matched_lines: List[str] = field(default_factory=list)
    rejected_lines: List[RejectedLine] = field(default_factory=list)
    categories: Dict[str, List[str]] = field(
        default_factory=lambda: {name: [] for name in CATEGORY_NAMES}
    )
    invalid_patterns: List[str] = field(default_factory=list)

    @property
    def total_lines(self) -> int:
        return len(self.matched_lines) + len(self.rejected_lines)

    @property
    def match_count(self) -> int:
        return len(self.matched_lines)

    @property
    def filtered_text(self) -> str:
        return "\n".join(self.matched_lines)

    def to_dict(self) -> dict:
        return {
            "all_text": self.all_text,
            "filtered_text": self.filtered_text,
            "matched_lines": list(self.matched_lines),
            "rejected_lines": [{"line": r.line, "reason": r.reason} for r in self.rejected_lines],
            "categories": {name: list(items) for name, items in self.categories.items()},
            "total_lines": self.total_lines,
            "match_count": self.match_count,
            "invalid_patterns": list(self.invalid_patterns),
        }
