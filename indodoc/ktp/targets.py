"""Field registry and grammars of the Indonesian identity card (KTP).

KTP fields are unlabeled left-aligned rows, so most targets are positional:
their ``index`` is the line number in one full read of the canonical view.
The remaining fields are read by dedicated steps:

- ``nik``: the digit row above the view
- ``province``/``regency``/``city``: the header lines found by the locator
- ``place_of_birth``/``date_of_birth``: split from positional line 1
- ``blood_type``: a fixed box at the right edge of the view
"""

import re
from typing import Mapping, Optional

import Levenshtein

from indodoc.common.types import RelativeBox
from indodoc.ocr.config_loader import CorrectionRulesConfig
from indodoc.ocr.corrector import (
    DEFAULT_LETTER_TO_DIGIT,
    Corrector,
    History,
    any_correctors,
    correct_alphabet,
    correct_alphanumeric,
    correct_by_history,
    correct_enums,
    correct_numeric_date,
    correct_starts_with,
    correct_stray_character,
    digit_tokens,
    merge_correctors,
)
from indodoc.ocr.targets import FieldCorrection, FieldTarget, TargetRegistry

NIK_LENGTH = 16
JAKARTA_MAX_DISTANCE = 3
NATIONALITY = "WNI"

BLOOD_TYPES = tuple(
    f"{base}{sign}" for sign in ("", "+", "-") for base in ("A", "B", "AB", "O")
)
BLOOD_TYPE_BOX = RelativeBox(x0=0.9, y0=0.2, x1=1.0, y1=0.32)

SEX_VALUES = ("PEREMPUAN", "LAKI-LAKI", "LAKI")

# Indonesian labels and their English renderings on newer cards
RELIGIONS = (
    "BUDDHA", "HINDU", "ISLAM", "KATOLIK", "KONGHUCU", "KRISTEN", "PROTESTAN",
    "BUDDHISM", "CATHOLICISM", "CHRISTIANITY", "CONFUCIANISM", "HINDUISM", "PROTESTANTISM",
)
MARITAL_STATUSES = (
    "BELUM KAWIN", "KAWIN", "CERAI HIDUP", "CERAI MATI",
    "SINGLE", "MARRIED", "DIVORCED", "WIDOWED",
)
LIFETIME = "SEUMUR HIDUP"

_RT_RW_PATTERN = re.compile(r"([0-9]{3}|-)[^a-zA-Z0-9]*([0-9]{3}|-)")


def correct_blood_type(value: str, history: History = None) -> Optional[str]:
    """Exact blood type after dropping everything but ``A``, ``B``, ``O``, ``+`` and ``-``."""
    cleaned = "".join(c for c in (value or "").upper() if c in "ABO-+")
    return cleaned if cleaned in BLOOD_TYPES else None


def correct_rt_rw(value: str, history: History = None) -> Optional[str]:
    """Neighbourhood numbers as ``RT/RW``; a missing part is printed as ``-``.

    Example:
        >>> correct_rt_rw("007 / 008")
        '007/008'
    """
    match = _RT_RW_PATTERN.search(value or "")
    if not match:
        return None
    return f"{match.group(1)}/{match.group(2)}"


_sex_enum = correct_enums(SEX_VALUES, exact=True, history=False)


def first_token(value: str, history: History = None) -> Optional[str]:
    tokens = (value or "").split()
    return tokens[0] if tokens else None


def correct_sex(value: str, history: History = None) -> Optional[str]:
    """PEREMPUAN or LAKI-LAKI.

    A lost hyphen leaves a lone "LAKI" once the row is tokenized, which means
    LAKI-LAKI.
    """
    sex = _sex_enum(value, None)
    return "LAKI-LAKI" if sex == "LAKI" else sex


def correct_jakarta_territory(value: str, history: History = None) -> Optional[str]:
    """Jakarta cities are printed without the KOTA label ("JAKARTA SELATAN")."""
    tag, _, rest = (value or "").strip().partition(" ")
    if Levenshtein.distance(tag.upper(), "JAKARTA") > JAKARTA_MAX_DISTANCE:
        return None
    return f"JAKARTA {rest.upper()}".strip()


def correct_nationality(value: str, history: History = None) -> Optional[str]:
    if NATIONALITY in value or Levenshtein.distance(value, NATIONALITY) <= 1 or "WM" in value:
        return NATIONALITY
    return correct_by_history(value, history)


def _is_valid_birth_code(nik: str) -> bool:
    # Digits 7-12 hold DDMMYY; women have 40 added to the day
    day = int(nik[6:8])
    month = int(nik[8:10])
    return (1 <= day <= 31 or 41 <= day <= 71) and 1 <= month <= 12


def make_nik_corrector(letter_to_digit: Optional[Mapping[str, str]] = None) -> Corrector:
    """Build the NIK corrector.

    Label tokens are dropped and confusable letters mapped to digits. The
    first 16-digit window with a valid birth date code is the NIK.
    """
    mapping = dict(DEFAULT_LETTER_TO_DIGIT if letter_to_digit is None else letter_to_digit)

    def correct_nik(value: str, history: History = None) -> Optional[str]:
        digits = "".join(digit_tokens(value or "", mapping))
        for start in range(len(digits) - NIK_LENGTH + 1):
            candidate = digits[start : start + NIK_LENGTH]
            if _is_valid_birth_code(candidate):
                return candidate
        return None

    return correct_nik


def _text_row(with_history: bool = True) -> Corrector:
    return merge_correctors(
        [correct_stray_character, correct_alphabet(with_history=with_history, whitelist=" ")]
    )


def build_ktp_targets(rules: Optional[CorrectionRulesConfig] = None) -> TargetRegistry:
    """Build the KTP registry.

    Args:
        rules: Character confusion rules used by the NIK grammar.

    Returns:
        Immutable registry of KTP field targets.
    """
    rules = rules or CorrectionRulesConfig()
    custom = FieldCorrection.custom
    header = correct_alphabet(with_history=False, whitelist=" ")

    province = merge_correctors([header, correct_starts_with("PROVINSI"), correct_by_history])
    regency = merge_correctors(
        [
            header,
            any_correctors(
                [
                    correct_starts_with("KABUPATEN"),
                    correct_enums(["KEPULAUAN SERIBU"], exact=True, history=False, space_insensitive=True),
                ]
            ),
            correct_by_history,
        ]
    )
    city = merge_correctors(
        [header, any_correctors([correct_starts_with("KOTA"), correct_jakarta_territory]), correct_by_history]
    )
    sex = merge_correctors(
        [correct_stray_character, first_token, correct_alphabet(with_history=False, whitelist="-"), correct_sex]
    )
    religion = merge_correctors(
        [
            correct_stray_character,
            correct_alphabet(with_history=False),
            correct_enums(RELIGIONS, exact=True, history=True, space_insensitive=True),
        ]
    )
    marital_status = merge_correctors(
        [
            correct_stray_character,
            correct_alphabet(with_history=False, whitelist=" "),
            correct_enums(MARITAL_STATUSES, exact=True, history=True, space_insensitive=True),
        ]
    )
    citizenship = merge_correctors(
        [correct_stray_character, correct_alphabet(with_history=False), correct_nationality]
    )
    valid_until = merge_correctors(
        [
            correct_stray_character,
            any_correctors(
                [correct_numeric_date, correct_enums([LIFETIME], exact=True, history=False)]
            ),
        ]
    )
    address = merge_correctors(
        [correct_stray_character, correct_alphanumeric(with_history=True, whitelist=" /.")]
    )

    return TargetRegistry(
        [
            FieldTarget("nik", "nik", correction=custom(make_nik_corrector(rules.letter_to_digit))),
            FieldTarget("province", "province", correction=custom(province), has_history=True),
            FieldTarget("regency", "regency", correction=custom(regency), has_history=True),
            FieldTarget("city", "city", correction=custom(city), has_history=True),
            FieldTarget("blood_type", "blood_type", bbox=BLOOD_TYPE_BOX, correction=custom(correct_blood_type)),
            FieldTarget("name", "name", index=0, correction=custom(_text_row())),
            FieldTarget("place_of_birth", "place_of_birth", correction=custom(_text_row()), has_history=True),
            FieldTarget("date_of_birth", "date_of_birth", correction=custom(correct_numeric_date)),
            FieldTarget("sex", "sex", index=2, correction=custom(sex)),
            FieldTarget("address", "address", index=3, correction=custom(address)),
            FieldTarget("rt_rw", "rt_rw", index=4, correction=custom(correct_rt_rw)),
            FieldTarget("village", "village", index=5, correction=custom(_text_row()), has_history=True),
            FieldTarget("district", "district", index=6, correction=custom(_text_row()), has_history=True),
            FieldTarget("religion", "religion", index=7, correction=custom(religion), has_history=True),
            FieldTarget(
                "marital_status", "marital_status", index=8, correction=custom(marital_status), has_history=True
            ),
            FieldTarget("occupation", "occupation", index=9, correction=custom(_text_row()), has_history=True),
            FieldTarget("citizenship", "citizenship", index=10, correction=custom(citizenship), has_history=True),
            FieldTarget("valid_until", "valid_until", index=11, correction=custom(valid_until)),
        ]
    )


KTP_TARGETS = build_ktp_targets()
