"""Configuration loader with Pydantic validation for the document OCR pipeline.

This module provides type-safe configuration loading from YAML files using
Pydantic models for validation and default values.
"""

from pathlib import Path
from typing import Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field

# Punctuation the engine tends to hallucinate from print noise
DEFAULT_CHAR_BLACKLIST = ",.\"'“:"
DIGITS = "0123456789"


class VariantConfig(BaseModel):
    """Recognition worker pool configuration.

    A variant is a named pool of engine instances sharing one recognition
    configuration. Changing ``count`` after the pool has been created has no
    effect.

    Attributes:
        count: Number of engine instances in the pool
        engine: Engine backend ("tesseract" or "rapidocr")
        lang: Tesseract language code
        psm: Tesseract page segmentation mode
        fast: Prefer speed to accuracy (use the fast tessdata models)
        fast_tessdata_dir: Directory holding the fast models (``--tessdata-dir``)
        disable_dictionaries: Turn off the system, frequency and number dawgs
        char_whitelist: Only these characters may be recognized
        char_blacklist: These characters are never recognized
        include_symbols: Also report per-character boxes
        text_score: Minimum line score kept by RapidOCR (0.0-1.0)
        use_gpu: Use GPU acceleration (RapidOCR only)
    """

    count: int = Field(default=1, ge=1)
    engine: Literal["tesseract", "rapidocr"] = "tesseract"
    lang: str = "ind"
    psm: int = Field(default=6, ge=0, le=13)
    fast: bool = False
    fast_tessdata_dir: Optional[str] = None
    disable_dictionaries: bool = True
    char_whitelist: Optional[str] = None
    char_blacklist: Optional[str] = None
    include_symbols: bool = False
    text_score: float = Field(default=0.5, ge=0.0, le=1.0)
    use_gpu: bool = False


def _number_variant(count: int) -> VariantConfig:
    return VariantConfig(count=count, char_whitelist=DIGITS)


def _default_variant(count: int) -> VariantConfig:
    return VariantConfig(count=count, char_blacklist=DEFAULT_CHAR_BLACKLIST)


class PassportConfig(BaseModel):
    """Passport pipeline configuration.

    Attributes:
        recommended_full_width: Width the raw photo is rescaled to before locating
        recommended_view_width: Width of the canonical view during field reads
        recommended_passport_number_width: Width of the bottom passport number strip
        section_grid_side: Sections per side for the title search grid
        bottom_digit_threshold: A line needs more digits than this to mark the bottom
        variants: Worker pools keyed by variant name ("number", "default")
    """

    recommended_full_width: int = Field(default=1440, gt=0)
    recommended_view_width: int = Field(default=960, gt=0)
    recommended_passport_number_width: int = Field(default=320, gt=0)
    section_grid_side: int = Field(default=3, ge=1)
    bottom_digit_threshold: int = Field(default=8, ge=0)
    variants: Dict[str, VariantConfig] = Field(
        default_factory=lambda: {"number": _number_variant(2), "default": _default_variant(4)}
    )


class KTPConfig(BaseModel):
    """ID card (KTP) pipeline configuration.

    Attributes:
        recommended_full_width: Width the raw photo is rescaled to before locating
        recommended_view_width: Width of the canonical view during field reads
        province_max_distance: Edit distance tolerated when matching "PROVINSI"
        line_budget: Lines scanned for the anchor and the ID number before giving up
        nik_min_digits: Digits a line needs to count as an ID number candidate
        variants: Worker pools keyed by variant name ("number", "default")
    """

    recommended_full_width: int = Field(default=1440, gt=0)
    recommended_view_width: int = Field(default=960, gt=0)
    province_max_distance: int = Field(default=3, ge=0)
    line_budget: int = Field(default=12, ge=1)
    nik_min_digits: int = Field(default=12, ge=1, le=16)
    variants: Dict[str, VariantConfig] = Field(
        default_factory=lambda: {"number": _number_variant(1), "default": _default_variant(4)}
    )


class HistoryConfig(BaseModel):
    """Field history configuration.

    Attributes:
        limit: Entries kept per field; the oldest is evicted first
    """

    limit: int = Field(default=10, ge=1)


class PreprocessingConfig(BaseModel):
    """Preprocessing configuration.

    Attributes:
        workers: Threads running the pixel filters
    """

    workers: int = Field(default=1, ge=1, le=2)


class CorrectionRulesConfig(BaseModel):
    """Character confusion rules.

    Attributes:
        letter_to_digit: Letters misread in digit positions (dates, ID numbers)
        digit_to_letter: Digits misread in letter positions (month tokens)
    """

    letter_to_digit: Dict[str, str] = {"O": "0", "I": "1", "L": "1", "S": "5", "B": "8", "Z": "2"}
    digit_to_letter: Dict[str, str] = {"0": "O", "1": "I", "5": "S", "8": "B"}


class DebugConfig(BaseModel):
    """Debug image configuration.

    Attributes:
        enabled: Emit debug images after every major raster mutation
        debug_dir: Directory the default debug callback writes PNG files to
    """

    enabled: bool = False
    debug_dir: Optional[str] = None


class Config(BaseModel):
    """Root configuration container.

    Attributes:
        passport: Passport pipeline configuration
        ktp: ID card pipeline configuration
        history: Field history configuration
        preprocessing: Preprocessing worker configuration
        correction: Character confusion rules
        debug: Debug image configuration
    """

    passport: PassportConfig = Field(default_factory=PassportConfig)
    ktp: KTPConfig = Field(default_factory=KTPConfig)
    history: HistoryConfig = HistoryConfig()
    preprocessing: PreprocessingConfig = PreprocessingConfig()
    correction: CorrectionRulesConfig = CorrectionRulesConfig()
    debug: DebugConfig = DebugConfig()


def load_config(config_path: Path) -> Config:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated Config object with all settings

    Raises:
        FileNotFoundError: If config file does not exist
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If configuration validation fails

    Example:
        >>> config = load_config(Path("indodoc/ocr/config.yaml"))
        >>> print(config.passport.recommended_view_width)
        960
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_dict = yaml.safe_load(f)

    # An empty file means "all defaults"
    return Config(**(config_dict or {}))


def get_default_config() -> Config:
    """Get default configuration from bundled config.yaml file.

    Returns:
        Config object loaded from indodoc/ocr/config.yaml

    Example:
        >>> config = get_default_config()
        >>> print(config.history.limit)
        10
    """
    default_config_path = Path(__file__).parent / "config.yaml"
    if default_config_path.exists():
        return load_config(default_config_path)
    else:
        # Fallback to hardcoded defaults if config file is missing
        return Config()
