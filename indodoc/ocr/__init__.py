"""Recognition and correction layer shared by the document pipelines.

Core Components:
    - config_loader: Configuration loading with Pydantic validation
    - engine_tesseract / engine_rapidocr: OCR engine backends
    - scheduler: Per-variant engine pools and their multiplexor
    - task_pool: Bounded concurrent runner with short-circuit
    - corrector: Composable correction grammar
    - targets: Field target declarations and registry
    - base: DocumentOCR base pipeline

Example:
    >>> from indodoc.ocr import SchedulerMultiplexor, get_default_config
    >>> multiplexor = SchedulerMultiplexor(get_default_config().passport.variants)
    >>> result = multiplexor.get_scheduler("number").recognize(image)
    >>> multiplexor.terminate()
"""

from .base import DocumentOCR, prefer_alternate
from .config_loader import (
    Config,
    CorrectionRulesConfig,
    DebugConfig,
    HistoryConfig,
    KTPConfig,
    PassportConfig,
    PreprocessingConfig,
    VariantConfig,
    get_default_config,
    load_config,
)
from .corrector import (
    any_correctors,
    correct_alphabet,
    correct_alphanumeric,
    correct_by_history,
    correct_date,
    correct_enums,
    correct_numeric_date,
    correct_starts_with,
    correct_stray_character,
    make_date_corrector,
    merge_correctors,
)
from .scheduler import RecognitionScheduler, SchedulerMultiplexor
from .targets import CorrectionKind, FieldCorrection, FieldTarget, TargetRegistry
from .task_pool import TaskPool, TaskResult, TaskResultStatus

__all__ = [
    # Pipeline
    "DocumentOCR",
    "prefer_alternate",
    # Configuration
    "Config",
    "CorrectionRulesConfig",
    "DebugConfig",
    "HistoryConfig",
    "KTPConfig",
    "PassportConfig",
    "PreprocessingConfig",
    "VariantConfig",
    "get_default_config",
    "load_config",
    # Correction
    "any_correctors",
    "correct_alphabet",
    "correct_alphanumeric",
    "correct_by_history",
    "correct_date",
    "correct_enums",
    "correct_numeric_date",
    "correct_starts_with",
    "correct_stray_character",
    "make_date_corrector",
    "merge_correctors",
    # Scheduling
    "RecognitionScheduler",
    "SchedulerMultiplexor",
    "TaskPool",
    "TaskResult",
    "TaskResultStatus",
    # Targets
    "CorrectionKind",
    "FieldCorrection",
    "FieldTarget",
    "TargetRegistry",
]
