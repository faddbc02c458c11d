"""
Field normalization for raw GWAS Catalog text.

Parses the free-text sample size, p-value, -log10(p) and publication date
columns into numeric values. Every parser returns None for input it cannot
interpret and never raises.
"""

import calendar
import math
import re
from datetime import date, datetime, timezone
from typing import Optional, List

from models.study_models import RawStudyRecord, NormalizedStudy
from backend.quality import compute_quality_flags, classify_confidence
from config import SAMPLE_SIZE_SIMILARITY, TWO_DIGIT_YEAR_PIVOT

_NUMBER_PATTERN = re.compile(r'\d[\d,]*')
_CLAUSE_SEPARATOR = re.compile(r'[;,]\s+')
_PLAIN_NUMBER = re.compile(r'^(\d+(\.\d*)?|\.\d+)(e[-+]?\d+)?$')
_TIMES_TEN = re.compile(r'([\d.]+)\s*x\s*10\s*\^?\s*([-+]?\d+)')
_INEQUALITY = re.compile(r'<=?\s*(.+)')

_NUMERIC_DATE = re.compile(r'^(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})$')
_DAY_MONTH_YEAR = re.compile(r'^(\d{1,2})(?:st|nd|rd|th)?\s+([A-Za-z]+)\.?,?\s+(\d{2,4})$')
_MONTH_DAY_YEAR = re.compile(r'^([A-Za-z]+)\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{2,4})$')

_MONTHS = {name.lower(): i for i, name in enumerate(calendar.month_name) if name}
_MONTHS.update({name.lower(): i for i, name in enumerate(calendar.month_abbr) if name})
_MONTHS['sept'] = 9


def _extract_numbers(text: str) -> List[int]:
    numbers = []
    for match in _NUMBER_PATTERN.findall(text):
        digits = match.replace(',', '')
        if digits and int(digits) > 0:
            numbers.append(int(digits))
    return numbers


def _combine_counts(numbers: List[int]) -> int:
    """Max when every count is within 20% of the largest, sum otherwise."""
    if len(numbers) == 1:
        return numbers[0]
    largest = max(numbers)
    if all(abs(n - largest) / largest < SAMPLE_SIZE_SIMILARITY for n in numbers):
        return largest
    return sum(numbers)


def parse_sample_size(text: Optional[str]) -> Optional[int]:
    """
    Parse a free-text sample size description.

    Comma- or semicolon-separated clauses ("10,000 cases, 12,000 controls")
    describe distinct sub-cohorts and are summed. Within one clause,
    numbers all within 20% of the largest restate the same cohort
    ("10,000 individuals (10,200 after QC)") and the largest is kept;
    otherwise they are summed. Thousands separators never count as clause
    separators because they are not followed by whitespace.

    Args:
        text: Sample size text, e.g. "1,234 European ancestry cases".

    Returns:
        Optional[int]: Total participants, or None when no number is present.
    """
    if not text:
        return None

    total = 0
    found = False
    for clause in _CLAUSE_SEPARATOR.split(text):
        numbers = _extract_numbers(clause)
        if numbers:
            total += _combine_counts(numbers)
            found = True

    return total if found else None


def _valid_p(value: float) -> Optional[float]:
    if not math.isfinite(value) or value <= 0 or value > 1:
        return None
    return value


def parse_p_value(raw: Optional[str]) -> Optional[float]:
    """
    Parse a p-value string.

    Accepts plain decimal or scientific notation ("5e-8", "0.05"),
    "N x 10^-M" notation (also with a multiplication sign or without the
    caret) and "< X" inequalities.

    Args:
        raw: P-value text.

    Returns:
        Optional[float]: Value in (0, 1], otherwise None.
    """
    if not raw:
        return None

    normalized = raw.strip().lower().replace('×', 'x').replace('−', '-')
    if not normalized:
        return None

    if _PLAIN_NUMBER.match(normalized):
        return _valid_p(float(normalized))

    times_ten = _TIMES_TEN.fullmatch(normalized)
    if times_ten:
        try:
            base = float(times_ten.group(1))
            exponent = int(times_ten.group(2))
            return _valid_p(base * 10.0 ** exponent)
        except (ValueError, OverflowError):
            return None

    inequality = _INEQUALITY.fullmatch(normalized)
    if inequality:
        return parse_p_value(inequality.group(1))

    return None


def parse_log_p_value(raw: Optional[str], p_value: Optional[float] = None) -> Optional[float]:
    """
    Parse a stored -log10(p) value, deriving it from the p-value when absent.

    Args:
        raw: -log10(p) text.
        p_value: Parsed p-value used as a fallback.

    Returns:
        Optional[float]: Non-negative -log10(p), or None.
    """
    if raw and raw.strip():
        try:
            value = float(raw.strip())
        except ValueError:
            value = None
        if value is not None and math.isfinite(value) and value >= 0:
            return value

    if p_value is not None and p_value > 0:
        # -log10(1) is -0.0
        return abs(-math.log10(p_value))

    return None


def _expand_year(year_text: str) -> Optional[int]:
    year = int(year_text)
    if len(year_text) == 2:
        return 2000 + year if year < TWO_DIGIT_YEAR_PIVOT else 1900 + year
    if len(year_text) == 3 and year < 100:
        return None
    return year if year >= 1 else None


def _build_date(year: Optional[int], month: Optional[int], day: int) -> Optional[date]:
    if year is None or month is None:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _to_timestamp(value: date) -> int:
    return calendar.timegm(value.timetuple()) * 1000


def _parse_iso(text: str) -> Optional[date]:
    try:
        parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        pass
    else:
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc)
        return parsed.date()

    for fmt in ('%Y/%m/%d', '%Y.%m.%d'):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_publication_date(text: Optional[str]) -> Optional[int]:
    """
    Parse a free-text publication date into epoch milliseconds at UTC midnight.

    Tried in order: ISO-style dates, D/M/Y or D-M-Y (day-first, then
    month-first), "D Month Y" and "Month D, Y". Two-digit years below 70
    are 20xx, the rest 19xx. Dates that do not exist (Feb 30, month 13)
    yield None.

    Args:
        text: Date text.

    Returns:
        Optional[int]: Epoch milliseconds, or None.
    """
    if not text or not text.strip():
        return None
    text = text.strip()

    parsed = _parse_iso(text)
    if parsed is not None:
        return _to_timestamp(parsed)

    numeric = _NUMERIC_DATE.match(text)
    if numeric:
        first, second = int(numeric.group(1)), int(numeric.group(2))
        year = _expand_year(numeric.group(3))
        parsed = _build_date(year, second, first) or _build_date(year, first, second)
        return _to_timestamp(parsed) if parsed else None

    day_month = _DAY_MONTH_YEAR.match(text)
    if day_month:
        parsed = _build_date(
            _expand_year(day_month.group(3)),
            _MONTHS.get(day_month.group(2).lower()),
            int(day_month.group(1))
        )
        return _to_timestamp(parsed) if parsed else None

    month_day = _MONTH_DAY_YEAR.match(text)
    if month_day:
        parsed = _build_date(
            _expand_year(month_day.group(3)),
            _MONTHS.get(month_day.group(1).lower()),
            int(month_day.group(2))
        )
        return _to_timestamp(parsed) if parsed else None

    return None


def normalize_study(raw: RawStudyRecord) -> NormalizedStudy:
    """
    Parse a raw catalog record and classify its quality.

    The discovery sample size is used when parseable, the replication
    sample size otherwise.

    Args:
        raw: Raw catalog record.

    Returns:
        NormalizedStudy: Immutable normalized record.
    """
    sample_size = parse_sample_size(raw.initial_sample_size)
    if sample_size is None:
        sample_size = parse_sample_size(raw.replication_sample_size)

    p_value = parse_p_value(raw.p_value)
    log_p_value = parse_log_p_value(raw.pvalue_mlog, p_value)
    flags = compute_quality_flags(sample_size, p_value, log_p_value)

    return NormalizedStudy(
        raw=raw,
        study_id=raw.identity,
        sample_size=sample_size,
        p_value=p_value,
        log_p_value=log_p_value,
        publication_timestamp=parse_publication_date(raw.date),
        quality_flags=tuple(flags),
        confidence_band=classify_confidence(sample_size, p_value, log_p_value, flags),
    )


def normalize_studies(rows: List[RawStudyRecord]) -> List[NormalizedStudy]:
    """Normalize a batch of raw records, preserving order."""
    return [normalize_study(row) for row in rows]


def format_number(value: Optional[float]) -> str:
    """
    Format a count for display ("1.2k", "3.4M", "—" when missing).
    """
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "—"
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}k"
    return f"{value:,}"


def format_p_value(value: Optional[float]) -> str:
    """
    Format a p-value for display.

    Exponential with two decimals below 1e-6, two significant digits otherwise.
    """
    if value is None:
        return "—"
    if value == 0:
        return "0"
    if value < 1e-6:
        return f"{value:.2e}"
    return f"{value:.2g}"
