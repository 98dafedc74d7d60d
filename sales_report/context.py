import hashlib
import threading
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from .config import DEFAULT_REPORT_TITLE

# Dimensions the dashboard exposes as filters. Other keys are accepted and
# simply never match a view column unless a view declares them.
DIMENSIONS: Tuple[str, ...] = (
    "date_bucket",
    "ship_mode",
    "category",
    "sub_category",
    "state",
    "segment",
)


def _as_frozenset(values: Any) -> FrozenSet:
    if values is None:
        return frozenset()
    if isinstance(values, (str, bytes)):
        return frozenset([values])
    return frozenset(values)


@dataclass(frozen=True)
class FilterState:
    """
    Immutable snapshot of the active selections, one allowed-set per
    dimension. A dimension that is missing or maps to an empty set is
    unrestricted.
    """

    selections: Tuple[Tuple[str, FrozenSet], ...] = ()

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Iterable]] = None) -> "FilterState":
        pairs = []
        for dimension, values in (mapping or {}).items():
            allowed = _as_frozenset(values)
            if allowed:
                pairs.append((str(dimension), allowed))
        return cls(selections=tuple(sorted(pairs, key=lambda p: p[0])))

    def allowed(self, dimension: str) -> FrozenSet:
        for name, values in self.selections:
            if name == dimension:
                return values
        return frozenset()

    def active_dimensions(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.selections)

    def snapshot(self) -> "FilterState":
        return self

    def is_unrestricted(self) -> bool:
        return not self.selections

    def as_dict(self) -> Dict[str, list]:
        return {name: sorted(values, key=str) for name, values in self.selections}

    def summary(self) -> str:
        """Readable one-liner used on the PDF cover and in the manifest."""
        if not self.selections:
            return "All data"
        parts = []
        for name, values in self.selections:
            label = name.replace("_", " ")
            parts.append(f"{label}: {', '.join(str(v) for v in sorted(values, key=str))}")
        return "; ".join(parts)

    def cache_key(self) -> str:
        """Stable identifier for this selection regardless of set iteration order."""
        stem = repr(sorted((name, sorted(map(repr, values))) for name, values in self.selections))
        return hashlib.sha256(stem.encode("utf-8")).hexdigest()[:16]


class LiveFilterSelection:
    """
    Mutable selection owned by the filter widget. The report pipeline only
    calls ``snapshot()``, so edits made while a run is in flight are never
    observed by that run.
    """

    def __init__(self, initial: Optional[Mapping[str, Iterable]] = None):
        self._lock = threading.Lock()
        self._selections: Dict[str, FrozenSet] = {}
        for dimension, values in (initial or {}).items():
            self.select(dimension, values)

    def select(self, dimension: str, values: Optional[Iterable]) -> None:
        allowed = _as_frozenset(values)
        with self._lock:
            if allowed:
                self._selections[dimension] = allowed
            else:
                self._selections.pop(dimension, None)

    def clear(self, dimension: Optional[str] = None) -> None:
        with self._lock:
            if dimension is None:
                self._selections.clear()
            else:
                self._selections.pop(dimension, None)

    def snapshot(self) -> FilterState:
        with self._lock:
            return FilterState.from_mapping(dict(self._selections))


def new_run_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class ReportContext:
    """
    Immutable description of one report run. Passed through assembly,
    formatting and export so the artifact and its manifest carry the same
    provenance.
    """

    filters: FilterState
    view_order: Tuple[str, ...]
    as_of: date
    run_id: str = field(default_factory=new_run_id)
    issued_at: str = field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))
    title: str = DEFAULT_REPORT_TITLE

    def cache_key(self) -> str:
        stem = f"{self.filters.cache_key()}|{self.view_order}|{self.as_of.isoformat()}"
        return hashlib.sha256(stem.encode("utf-8")).hexdigest()[:16]
