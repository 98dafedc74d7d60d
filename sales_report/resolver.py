from dataclasses import dataclass
from typing import List, Tuple

import pandas as pd

from .context import FilterState
from .errors import AssemblyError
from .views import AggregationView


@dataclass(frozen=True)
class VisibleRow:
    """A view row that satisfies the filters, tagged with where it came from."""

    view: str
    position: int
    dimensions: Tuple
    values: Tuple


def visible_mask(view: AggregationView, filters: FilterState) -> pd.Series:
    """
    Boolean mask over ``view.rows``. Only dimensions the view declares take
    part; a view without a ``state`` column always passes a state filter.
    """
    rows = view.rows
    mask = pd.Series(True, index=rows.index, dtype=bool)
    for dimension in filters.active_dimensions():
        if dimension not in view.schema.dimensions or dimension not in rows.columns:
            continue
        allowed = filters.allowed(dimension)
        column = rows[dimension]
        # Widget selections arrive as strings; compare string forms as well.
        as_text = {str(v) for v in allowed}
        matches = column.isin(list(allowed)) | column.map(lambda v: str(v) in as_text).astype(bool)
        mask &= matches & column.notna()
    return mask


def resolve(view: AggregationView, filters: FilterState) -> List[VisibleRow]:
    """Stable filter of ``view`` against ``filters``; original row order is kept."""
    missing = view.missing_columns()
    if missing:
        raise AssemblyError(f"View {view.name!r} is missing declared columns: {', '.join(missing)}")
    rows = view.rows
    mask = visible_mask(view, filters)
    columns = list(view.schema.columns)
    dims = list(view.schema.dimensions)
    kept = rows.loc[mask]
    return [
        VisibleRow(
            view=view.name,
            position=int(position),
            dimensions=tuple(record[c] for c in dims),
            values=tuple(record[c] for c in columns),
        )
        for position, record in zip(kept.index, kept.to_dict("records"))
    ]
