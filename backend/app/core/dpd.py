"""
DPD (Days Past Due) buckets
===========================
Boundaries, evaluated in priority order (first match wins, upper bound inclusive):

  Current : dpd <= 0
  1-30    : 1  <= dpd <= 30
  31-60   : 31 <= dpd <= 60
  61-90   : 61 <= dpd <= 90
  90+     : dpd > 90

The same rules drive the SQL CASE (dpd_bucket_case) and the pandas/numpy
rendition used for extracts (assign_dpd_buckets), so both always agree.
Null DPD has no bucket.
"""
from typing import Optional

import numpy as np
import pandas as pd
from sqlalchemy import case

# (label, inclusive upper bound); None = unbounded
DPD_BUCKETS: list[tuple[str, Optional[int]]] = [
    ("Current", 0),
    ("1-30", 30),
    ("31-60", 60),
    ("61-90", 90),
    ("90+", None),
]

DPD_BUCKET_LABELS = [label for label, _ in DPD_BUCKETS]


def dpd_bucket(days_past_due: Optional[int]) -> Optional[str]:
    if days_past_due is None:
        return None
    for label, upper in DPD_BUCKETS:
        if upper is None or days_past_due <= upper:
            return label
    return None  # unreachable: the last bucket is unbounded


def dpd_bucket_case(dpd_column):
    """SQL CASE expression mapping a DPD column to its bucket label (NULL for NULL DPD)."""
    whens = [(dpd_column <= upper, label) for label, upper in DPD_BUCKETS if upper is not None]
    last_label, _ = DPD_BUCKETS[-1]
    lower = DPD_BUCKETS[-2][1]
    whens.append((dpd_column > lower, last_label))
    return case(*whens, else_=None)


def dpd_bucket_order_case(dpd_column):
    """1-based bucket position, for ordering grouped results."""
    whens = [
        (dpd_column <= upper, position)
        for position, (_, upper) in enumerate(DPD_BUCKETS, start=1)
        if upper is not None
    ]
    return case(*whens, else_=len(DPD_BUCKETS))


def assign_dpd_buckets(days_past_due: pd.Series) -> pd.Series:
    """Vectorised dpd_bucket() over a Series; NaN/None DPD -> None."""
    values = pd.to_numeric(days_past_due, errors="coerce")
    conditions = []
    choices = []
    for label, upper in DPD_BUCKETS:
        if upper is None:
            conditions.append(values.notna().to_numpy())
        else:
            conditions.append((values <= upper).to_numpy())
        choices.append(label)
    labels = np.select(conditions, choices, default="")
    return pd.Series([label or None for label in labels], index=days_past_due.index, dtype=object)
