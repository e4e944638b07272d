"""Composable correction grammar for noisy OCR field values.

Every corrector has the signature ``(value, history=None) -> Optional[str]``.
``None`` means the value cannot be validated and should be discarded; this is
expected for blurry or empty regions and is not an error.

Building blocks:

1. **History matching** (``correct_by_history``): snap to the closest
   previously confirmed value when it is within ``ceil(len/3)`` edits.
2. **Character-class filters** (``correct_alphabet``, ``correct_alphanumeric``):
   uppercase, keep letters (and digits) plus a whitelist, collapse whitespace.
3. **Enums** (``correct_enums``): fuzzy-match a controlled vocabulary, with
   optional exact post-match and space-insensitive comparison.
4. **Label tags** (``correct_starts_with``): strip a leading label word such
   as "PROVINSI" and return the rest.
5. **Dates** (``correct_date``, ``correct_numeric_date``): parse day, month and
   year, validate ranges and format canonically. Letter/digit confusions
   (``2O24``) are repaired with the confusion maps.
6. **Combinators** (``merge_correctors``, ``any_correctors``).

Example:
    >>> correct_date("15 FEB 2O24")
    '15 FEB 2024'
    >>> correct_enums(["BELUM KAWIN", "KAWIN"], exact=True, space_insensitive=True)("BELUM  KAWIN")
    'BELUM KAWIN'
"""

import logging
import math
import re
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union

import Levenshtein

logger = logging.getLogger(__name__)

History = Optional[Sequence[str]]
Corrector = Callable[[str, History], Optional[str]]

MONTHS = ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC")

MIN_YEAR = 1900
MAX_YEAR = 2200
MONTH_MAX_DISTANCE = 2

ASCII_UPPERCASE = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ")
ASCII_DIGITS = frozenset("0123456789")

DEFAULT_LETTER_TO_DIGIT: Dict[str, str] = {"O": "0", "I": "1", "L": "1", "S": "5", "B": "8", "Z": "2"}
DEFAULT_DIGIT_TO_LETTER: Dict[str, str] = {"0": "O", "1": "I", "5": "S", "8": "B"}

_DATE_PATTERN = re.compile(r"([0-9]{1,2})\s*([0-9A-Za-z]{2,4}?)\s*([0-9]{4})")
_NUMERIC_DATE_PATTERN = re.compile(r"([0-9]{2})[^a-zA-Z0-9]*([0-9]{2})[^a-zA-Z0-9]*([0-9]{4})")


def trim_whitespace(value: str) -> str:
    """Strip and collapse every whitespace run to a single space."""
    return " ".join(value.split())


def closest(value: str, candidates: Sequence[str]) -> str:
    """Candidate with the smallest edit distance to ``value`` (first one on ties)."""
    return min(candidates, key=lambda candidate: Levenshtein.distance(value, candidate))


def history_tolerance(candidate: str) -> int:
    """Edits tolerated when snapping to ``candidate``."""
    return math.ceil(len(candidate) / 3)


def correct_by_history(value: Optional[str], history: History = None) -> Optional[str]:
    """Snap a value to the closest confirmed value in its history.

    Args:
        value: Raw or partially corrected text.
        history: Previously confirmed values for the field.

    Returns:
        The closest history entry when it is within ``ceil(len(entry)/3)``
        edits, otherwise the whitespace-trimmed input; None for empty input.

    Example:
        >>> correct_by_history("JAKRTA", ["JAKARTA", "BANDUNG"])
        'JAKARTA'
    """
    if not value:
        return None
    text = trim_whitespace(value)
    if not text:
        return None
    if history:
        candidate = closest(text, history)
        if Levenshtein.distance(text, candidate) <= history_tolerance(candidate):
            return candidate
    return text


def _filter_characters(
    name: str,
    allowed: frozenset,
    with_history: bool,
    max_length: Optional[int],
    whitelist: str,
) -> Corrector:
    def corrector(text: str, history: History = None) -> Optional[str]:
        kept = "".join(c for c in text.upper() if c in allowed or c in whitelist)
        kept = trim_whitespace(kept)
        if max_length is not None:
            kept = kept[:max_length].strip()
        if not kept:
            return None
        return correct_by_history(kept, history) if with_history else kept

    corrector.__name__ = name
    return corrector


def correct_alphabet(
    with_history: bool = True, max_length: Optional[int] = None, whitelist: str = ""
) -> Corrector:
    """Keep uppercase ASCII letters plus ``whitelist``.

    Args:
        with_history: Snap the filtered value to the field history.
        max_length: Truncate to this many characters.
        whitelist: Extra characters to keep (e.g. ``" "`` or ``"-"``).

    Returns:
        Corrector returning None when nothing survives the filter.
    """
    return _filter_characters("correct_alphabet", ASCII_UPPERCASE, with_history, max_length, whitelist)


def correct_alphanumeric(
    with_history: bool = True, max_length: Optional[int] = None, whitelist: str = ""
) -> Corrector:
    """Keep uppercase ASCII letters, digits and ``whitelist``."""
    return _filter_characters(
        "correct_alphanumeric", ASCII_UPPERCASE | ASCII_DIGITS, with_history, max_length, whitelist
    )


def _remove_spaces(value: str) -> str:
    return "".join(value.split())


def correct_enums(
    possible_values: Sequence[str],
    exact: bool = False,
    history: bool = True,
    space_insensitive: bool = False,
) -> Corrector:
    """Fuzzy-match a controlled vocabulary.

    Candidates are the enum values (uppercased) plus the field history when
    ``history`` is True. With ``space_insensitive`` both sides are compared
    without spaces, and the matched candidate is returned in its original
    spaced form.

    Args:
        possible_values: Allowed values.
        exact: Return None unless the fuzzy match lands exactly on a candidate.
        history: Include the field history in the candidates.
        space_insensitive: Ignore spaces while matching.

    Returns:
        Corrector for the vocabulary.
    """
    originals = [value.upper() for value in possible_values]

    def normalize(value: str) -> str:
        value = trim_whitespace(value.upper())
        return _remove_spaces(value) if space_insensitive else value

    def corrector(text: str, field_history: History = None) -> Optional[str]:
        forms: Dict[str, str] = {}
        for original in originals:
            forms.setdefault(normalize(original), original)
        if history and field_history:
            for entry in field_history:
                forms.setdefault(normalize(entry), entry)

        candidates = list(forms)
        corrected = correct_by_history(normalize(text), candidates)
        if corrected is None:
            return None
        if corrected not in forms:
            if exact:
                logger.debug(f"Rejected '{text}': no exact enum match")
                return None
            return corrected
        return forms[corrected]

    return corrector


def correct_starts_with(expected_tags: Union[str, Sequence[str]]) -> Corrector:
    """Strip a leading label word and return what follows it.

    The first space-separated token must be within ``ceil(len(tag)/3)`` edits
    of one of the expected tags (case-insensitive).

    Example:
        >>> correct_starts_with("PROVINSI")("PROVlNSI JAWA BARAT")
        'JAWA BARAT'
    """
    tags = [expected_tags] if isinstance(expected_tags, str) else list(expected_tags)
    candidates = [tag.lower() for tag in tags]

    def corrector(text: str, history: History = None) -> Optional[str]:
        tokens = trim_whitespace(text).split(" ")
        tag = tokens[0].lower()
        candidate = closest(tag, candidates)
        if Levenshtein.distance(candidate, tag) > history_tolerance(candidate):
            return None
        rest = " ".join(tokens[1:])
        return rest or None

    return corrector


def correct_stray_character(value: str, history: History = None) -> Optional[str]:
    """Drop label residue in front of a value.

    When the text contains a colon, the longer side is kept. Leading tokens of
    one character (a misread colon or the tail of a label) are removed.

    Example:
        >>> correct_stray_character("Nama : BUDI SANTOSO")
        'BUDI SANTOSO'
        >>> correct_stray_character(": BUDI")
        'BUDI'
    """
    parts = value.strip().split(":", 2)
    if len(parts) > 1:
        value = (parts[0] if len(parts[0]) > len(parts[1]) else parts[1]).strip()
    tokens = value.split()
    while tokens and len(tokens[0]) <= 1:
        tokens.pop(0)
    return " ".join(tokens) if tokens else None


def merge_correctors(correctors: Sequence[Corrector]) -> Corrector:
    """Pipe the output of each corrector into the next; stop at the first None."""

    def corrector(text: str, history: History = None) -> Optional[str]:
        current: Optional[str] = text
        for step in correctors:
            current = step(current, history)
            if current is None:
                break
        return current

    return corrector


def any_correctors(correctors: Sequence[Corrector]) -> Corrector:
    """Try each corrector on the same input; return the first non-None result."""

    def corrector(text: str, history: History = None) -> Optional[str]:
        for step in correctors:
            corrected = step(text, history)
            if corrected is not None:
                return corrected
        return None

    return corrector


def map_characters(value: str, mapping: Mapping[str, str]) -> str:
    """Replace every character found in ``mapping``."""
    return "".join(mapping.get(c, c) for c in value)


def _format_date(day: int, month: Optional[str], year: int) -> Optional[str]:
    if month is None or not 1 <= day <= 31 or not MIN_YEAR <= year <= MAX_YEAR:
        return None
    return f"{day:02d} {month} {year}"


def _closest_month(token: str) -> Optional[str]:
    token = token.upper()
    month = closest(token, MONTHS)
    return month if Levenshtein.distance(token, month) <= MONTH_MAX_DISTANCE else None


def make_date_corrector(
    letter_to_digit: Optional[Mapping[str, str]] = None,
    digit_to_letter: Optional[Mapping[str, str]] = None,
) -> Corrector:
    """Build the ``DD MON YYYY`` date corrector with the given confusion maps.

    The value is first parsed as is. When that fails, or yields an invalid
    date, the day and year groups are re-read with letters mapped to digits
    and the month token with digits mapped to letters. An all-digit month
    token is never mapped, so numeric dates are rejected rather than read as
    the wrong month.

    Args:
        letter_to_digit: Letters misread in digit positions.
        digit_to_letter: Digits misread in letter positions.

    Returns:
        Date corrector.
    """
    letter_to_digit = dict(DEFAULT_LETTER_TO_DIGIT if letter_to_digit is None else letter_to_digit)
    digit_to_letter = dict(DEFAULT_DIGIT_TO_LETTER if digit_to_letter is None else digit_to_letter)
    confusable = re.escape("".join(sorted(letter_to_digit)))
    lenient = re.compile(
        rf"([0-9{confusable}]{{1,2}})\s*([0-9A-Z]{{2,4}}?)\s*([0-9{confusable}]{{4}})"
    )

    def corrector(value: str, history: History = None) -> Optional[str]:
        if not value:
            return None

        match = _DATE_PATTERN.search(value)
        if match:
            strict = _format_date(int(match.group(1)), _closest_month(match.group(2)), int(match.group(3)))
            if strict is not None:
                return strict

        match = lenient.search(value.upper())
        if not match:
            return None
        # A month token needs at least one letter; "08" is not a misread "OB"
        if not any(c in ASCII_UPPERCASE for c in match.group(2)):
            return None
        day = map_characters(match.group(1), letter_to_digit)
        month = map_characters(match.group(2), digit_to_letter)
        year = map_characters(match.group(3), letter_to_digit)
        if not (day.isdigit() and year.isdigit()):
            return None
        result = _format_date(int(day), _closest_month(month), int(year))
        if result is None:
            logger.debug(f"Rejected date '{value}'")
        return result

    return corrector


correct_date = make_date_corrector()


def correct_numeric_date(value: str, history: History = None) -> Optional[str]:
    """Parse a ``DD-MM-YYYY`` date with any separators.

    Example:
        >>> correct_numeric_date("17 08-1945")
        '17-08-1945'
    """
    match = _NUMERIC_DATE_PATTERN.search(value or "")
    if not match:
        return None
    day, month, year = (int(group) for group in match.groups())
    if not 1 <= day <= 31 or not 1 <= month <= 12 or not MIN_YEAR <= year <= MAX_YEAR:
        return None
    return f"{match.group(1)}-{match.group(2)}-{match.group(3)}"


def count_digits(value: str) -> int:
    return sum(1 for c in value if c in ASCII_DIGITS)


def digit_tokens(value: str, letter_to_digit: Optional[Mapping[str, str]] = None) -> List[str]:
    """Tokens that are mostly digits, with confusable letters mapped to digits.

    Tokens with fewer digits than other characters are treated as labels and
    dropped, so "NIK : 3171O12345678901" yields ``["3171012345678901"]``.
    """
    mapping = letter_to_digit if letter_to_digit is not None else DEFAULT_LETTER_TO_DIGIT
    tokens = []
    for token in value.upper().split():
        digits = count_digits(token)
        if digits == 0 or digits * 2 < len(token):
            continue
        mapped = "".join(c for c in map_characters(token, mapping) if c in ASCII_DIGITS)
        if mapped:
            tokens.append(mapped)
    return tokens
