"""Field registry of the Indonesian passport data page.

Every passport field is geometric: its box is relative to the canonical view
(the area right of the photo, from the document type down to the issuing
office). The sex field is declared twice because, depending on the page
layout, it is printed top-right or between the birth date and birth place;
the two candidates are reconciled by confidence.
"""

import re
from typing import Optional

import Levenshtein

from indodoc.common.types import RelativeBox
from indodoc.ocr.config_loader import CorrectionRulesConfig
from indodoc.ocr.corrector import (
    ASCII_DIGITS,
    ASCII_UPPERCASE,
    History,
    closest,
    make_date_corrector,
)
from indodoc.ocr.targets import FieldCorrection, FieldTarget, TargetRegistry

PASSPORT_NUMBER_LENGTH = 8
SEX_HISTORY_MAX_DISTANCE = 1

_SEX_PATTERN = re.compile(r"([A-Z])[\s/]*([A-Z])")


def correct_passport_type(value: str, history: History = None) -> Optional[str]:
    """First uppercase letter of the value (passport type, e.g. "P")."""
    for char in (value or "").upper():
        if char in ASCII_UPPERCASE:
            return char
    return None


def correct_passport_number(value: str, history: History = None) -> Optional[str]:
    """Uppercase letters and digits, first eight characters."""
    kept = "".join(c for c in (value or "").upper() if c in ASCII_UPPERCASE or c in ASCII_DIGITS)
    return kept[:PASSPORT_NUMBER_LENGTH] or None


def correct_full_name(value: str, history: History = None) -> Optional[str]:
    """Uppercase letters and single spaces."""
    kept = "".join(c for c in (value or "").upper() if c in ASCII_UPPERCASE or c == " ")
    return " ".join(kept.split()) or None


def correct_sex_code(value: str, history: History = None) -> Optional[str]:
    """Normalize a bilingual sex code to ``A/A`` (e.g. "P/F", "L/M").

    The two letters may be separated by spaces and slashes. When the history
    holds a value within one edit, that value is used.

    Example:
        >>> correct_sex_code("P / F")
        'P/F'
        >>> correct_sex_code("L M", ["L/M"])
        'L/M'
    """
    if not value:
        return None
    match = _SEX_PATTERN.search(value.upper())
    if not match:
        return None
    sex = f"{match.group(1)}/{match.group(2)}"
    if history:
        candidate = closest(sex, history)
        if Levenshtein.distance(sex, candidate) <= SEX_HISTORY_MAX_DISTANCE:
            sex = candidate
    return sex


def build_passport_targets(rules: Optional[CorrectionRulesConfig] = None) -> TargetRegistry:
    """Build the passport registry.

    Args:
        rules: Character confusion rules used by the date grammar.

    Returns:
        Immutable registry of passport field targets.
    """
    rules = rules or CorrectionRulesConfig()
    date = FieldCorrection.custom(make_date_corrector(rules.letter_to_digit, rules.digit_to_letter))
    sex = FieldCorrection.custom(correct_sex_code)
    history = FieldCorrection.history_only()

    def box(x0: float, y0: float, x1: float, y1: float) -> RelativeBox:
        return RelativeBox(x0=x0, y0=y0, x1=x1, y1=y1)

    return TargetRegistry(
        [
            FieldTarget(
                "type", "type", box(0.0, 0.06, 0.23, 0.2),
                correction=FieldCorrection.custom(correct_passport_type),
            ),
            FieldTarget(
                "country_code", "country_code", box(0.24, 0.06, 0.56, 0.2),
                correction=history, has_history=True,
            ),
            FieldTarget(
                "passport_number", "passport_number", box(0.6, 0.06, 1.0, 0.23),
                correction=FieldCorrection.custom(correct_passport_number),
            ),
            FieldTarget(
                "full_name", "full_name", box(0.0, 0.23, 0.82, 0.36),
                correction=FieldCorrection.custom(correct_full_name),
            ),
            FieldTarget("sex", "sex", box(0.82, 0.23, 1.0, 0.36), correction=sex, has_history=True),
            FieldTarget(
                "nationality", "nationality", box(0.0, 0.38, 0.78, 0.52),
                correction=history, has_history=True,
            ),
            FieldTarget(
                "date_of_birth", "date_of_birth", box(0.0, 0.54, 0.35, 0.68),
                is_date=True, correction=date,
            ),
            FieldTarget("sex2", "sex", box(0.36, 0.54, 0.54, 0.68), correction=sex, has_history=True),
            FieldTarget(
                "place_of_birth", "place_of_birth", box(0.56, 0.54, 1.0, 0.68),
                correction=history, has_history=True,
            ),
            FieldTarget(
                "date_of_issue", "date_of_issue", box(0.0, 0.7, 0.35, 0.84),
                is_date=True, correction=date,
            ),
            FieldTarget(
                "date_of_expiry", "date_of_expiry", box(0.64, 0.7, 1.0, 0.84),
                is_date=True, correction=date,
            ),
            FieldTarget("reg_number", "reg_number", box(0.0, 0.86, 0.5, 1.0)),
            FieldTarget(
                "issuing_office", "issuing_office", box(0.5, 0.86, 1.0, 1.0),
                correction=history, has_history=True,
            ),
        ]
    )


PASSPORT_TARGETS = build_passport_targets()
