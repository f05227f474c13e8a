"""Split a flat multi-subject reading table into per-subject series."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .exceptions import ConfigurationError
from .models import Series

ID_COLUMN = "id"
TIME_COLUMN = "time"
TZ_COLUMN = "tz"
SAMPLING_COLUMN = "reading_minutes"
VALUE_COLUMNS = ("value", "gl", "glucose_mg_dL")

ReadingMinutes = Union[None, float, Sequence[float], np.ndarray, pd.Series]


def _as_frame(data: Any) -> pd.DataFrame:
    if isinstance(data, pd.DataFrame):
        return data.reset_index(drop=True)
    return pd.DataFrame(data)


def _value_column(frame: pd.DataFrame) -> str:
    for name in VALUE_COLUMNS:
        if name in frame.columns:
            return name
    raise ConfigurationError(
        f"Reading table needs a value column (one of {', '.join(VALUE_COLUMNS)}); got {list(frame.columns)}"
    )


def to_epoch_seconds(column: pd.Series) -> pd.Series:
    """Convert numeric seconds, datetimes or ISO strings to float epoch seconds.

    Naive datetimes are read as UTC. Unparseable entries become NaN.
    """

    if pd.api.types.is_numeric_dtype(column) and not pd.api.types.is_bool_dtype(column):
        return pd.to_numeric(column, errors="coerce").astype(float)
    parsed = pd.to_datetime(column, utc=True, errors="coerce")
    return (parsed - pd.Timestamp(0, tz="UTC")) / pd.Timedelta(seconds=1)


def _sampling_column(frame: pd.DataFrame, reading_minutes: ReadingMinutes) -> Optional[pd.Series]:
    if reading_minutes is None:
        if SAMPLING_COLUMN in frame.columns:
            return pd.to_numeric(frame[SAMPLING_COLUMN], errors="coerce")
        return None
    if np.isscalar(reading_minutes):
        return pd.Series(float(reading_minutes), index=frame.index)

    values = np.asarray(reading_minutes, dtype=float)
    if values.ndim != 1 or len(values) != len(frame):
        raise ConfigurationError(
            f"reading_minutes has {values.size} entries but the reading table has {len(frame)} rows"
        )
    return pd.Series(values, index=frame.index)


def group_readings(data: Any, reading_minutes: ReadingMinutes = None) -> Dict[str, Series]:
    """Return one time-ordered ``Series`` per subject, in first-seen order.

    ``reading_minutes`` is a scalar, a per-row sequence or ``None`` (use the
    ``reading_minutes`` column when present). A subject uses the value on its
    first row.
    """

    frame = _as_frame(data)
    missing = [name for name in (ID_COLUMN, TIME_COLUMN) if name not in frame.columns]
    if missing:
        raise ConfigurationError(f"Reading table is missing required column(s): {', '.join(missing)}")
    value_column = _value_column(frame)
    sampling = _sampling_column(frame, reading_minutes)

    work = pd.DataFrame(
        {
            "row": np.arange(len(frame), dtype=np.int64),
            "id": frame[ID_COLUMN],
            "seconds": to_epoch_seconds(frame[TIME_COLUMN]),
            "value": pd.to_numeric(frame[value_column], errors="coerce").astype(float),
        },
        index=frame.index,
    )
    if sampling is not None:
        work["sampling"] = sampling
    if TZ_COLUMN in frame.columns:
        work["tz"] = frame[TZ_COLUMN]

    usable = work["id"].notna() & work["seconds"].notna()
    dropped = int((~usable).sum())
    if dropped:
        logging.warning(f"Dropped {dropped} reading(s) with a missing subject id or unparseable time")
    work = work[usable]
    if work.empty:
        return {}
    work = work.assign(id=work["id"].astype(str))

    series_by_subject: Dict[str, Series] = {}
    for subject_id, group in work.groupby("id", sort=False):
        nominal = None
        if "sampling" in group and pd.notna(group["sampling"].iloc[0]):
            nominal = float(group["sampling"].iloc[0])
        label = None
        if "tz" in group:
            labels = group["tz"].dropna()
            if not labels.empty:
                label = str(labels.iloc[0])

        ordered = group.sort_values("seconds", kind="mergesort")
        series_by_subject[subject_id] = Series(
            subject_id=subject_id,
            timestamps=ordered["seconds"].to_numpy(),
            values=ordered["value"].to_numpy(),
            rows=ordered["row"].to_numpy(),
            nominal_sampling_minutes=nominal,
            local_timezone=label,
        )
    return series_by_subject
