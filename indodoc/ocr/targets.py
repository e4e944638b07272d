"""Field target types and the immutable per-document registry.

A field target says where a field is read from and how its raw text is
corrected:

- geometric targets carry a relative box inside the canonical view
- positional targets carry the index of their line in a full-view read
- targets without either are read by dedicated steps of the extractor

Correction is a tagged value (``FieldCorrection``) rather than a callable or
flag, so the extractor dispatches on ``CorrectionKind`` in one place.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple

from indodoc.common.types import RelativeBox

from .corrector import Corrector


class CorrectionKind(Enum):
    """How a field's raw text is corrected."""

    NONE = "none"  # whitespace-trimmed raw text
    HISTORY_ONLY = "history_only"  # snap to the field history
    CUSTOM = "custom"  # field-specific corrector pipeline


@dataclass(frozen=True)
class FieldCorrection:
    """Tagged correction strategy of a field."""

    kind: CorrectionKind
    corrector: Optional[Corrector] = None

    def __post_init__(self):
        if (self.kind is CorrectionKind.CUSTOM) != (self.corrector is not None):
            raise ValueError("A corrector function is required for CUSTOM correction only")

    @classmethod
    def none(cls) -> "FieldCorrection":
        return cls(CorrectionKind.NONE)

    @classmethod
    def history_only(cls) -> "FieldCorrection":
        return cls(CorrectionKind.HISTORY_ONLY)

    @classmethod
    def custom(cls, corrector: Corrector) -> "FieldCorrection":
        return cls(CorrectionKind.CUSTOM, corrector)


@dataclass(frozen=True)
class FieldTarget:
    """Declaration of one field.

    Attributes:
        name: Registry name. Usually equal to ``key``; duplicate candidates of
            one field (e.g. "sex2") have their own name but share the key.
        key: Payload and history key of the field.
        bbox: Relative box inside the canonical view (geometric fields).
        index: Line index in the full-view read (positional fields).
        is_date: Also read the field as three day/month/year sub-regions.
        correction: Correction strategy.
        has_history: Confirmed values of this field are kept in the history.
    """

    name: str
    key: str
    bbox: Optional[RelativeBox] = None
    index: Optional[int] = None
    is_date: bool = False
    correction: FieldCorrection = field(default_factory=FieldCorrection.none)
    has_history: bool = False

    @property
    def is_duplicate(self) -> bool:
        return self.name != self.key


class TargetRegistry(Mapping[str, FieldTarget]):
    """Read-only mapping of target name to FieldTarget.

    Args:
        targets: Targets in declaration order. Names must be unique.

    Raises:
        ValueError: On duplicate names or duplicate line indices.
    """

    def __init__(self, targets: Iterable[FieldTarget]):
        entries: Dict[str, FieldTarget] = {}
        indices: Dict[int, str] = {}
        for target in targets:
            if target.name in entries:
                raise ValueError(f"Duplicate target name: {target.name}")
            if target.index is not None:
                if target.index in indices:
                    raise ValueError(
                        f"Line index {target.index} used by both {indices[target.index]} and {target.name}"
                    )
                indices[target.index] = target.name
            entries[target.name] = target
        self._targets = MappingProxyType(entries)
        self._by_index = MappingProxyType({i: entries[name] for i, name in indices.items()})

    def __getitem__(self, name: str) -> FieldTarget:
        return self._targets[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._targets)

    def __len__(self) -> int:
        return len(self._targets)

    @property
    def by_index(self) -> Mapping[int, FieldTarget]:
        """Positional targets keyed by line index."""
        return self._by_index

    @property
    def geometric(self) -> Tuple[FieldTarget, ...]:
        """Targets with a relative box, in declaration order."""
        return tuple(t for t in self._targets.values() if t.bbox is not None)

    @property
    def payload_keys(self) -> Tuple[str, ...]:
        """Distinct payload keys in declaration order."""
        return tuple(dict.fromkeys(t.key for t in self._targets.values()))

    @property
    def history_keys(self) -> Tuple[str, ...]:
        """Distinct keys of fields that keep a history."""
        return tuple(dict.fromkeys(t.key for t in self._targets.values() if t.has_history))
