"""Input compatibility layer for optional Polars support.

Prediction data is handled internally as ``pandas.DataFrame`` because
every native prediction routine (statsmodels formula models,
scikit-learn estimators) consumes pandas.  When a user passes a
``polars.DataFrame`` (or ``polars.LazyFrame``) as the data to predict
on, it is converted at the boundary.

Polars is **not** a required dependency.  If it is not installed, the
converter simply passes pandas objects through untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeAlias

import pandas as pd

if TYPE_CHECKING:
    import polars as pl

    DataFrameLike: TypeAlias = pd.DataFrame | pl.DataFrame | pl.LazyFrame
else:
    DataFrameLike: TypeAlias = pd.DataFrame

# Runtime detection; Polars is optional.
try:
    import polars as pl

    _HAS_POLARS = True
except ImportError:
    _HAS_POLARS = False


def _is_dataframe_like(obj: Any) -> bool:
    """Return ``True`` if *obj* is a pandas or Polars frame."""
    if isinstance(obj, pd.DataFrame):
        return True
    if _HAS_POLARS:
        return isinstance(obj, (pl.DataFrame, pl.LazyFrame))
    return False


def _ensure_pandas_df(obj: DataFrameLike, *, name: str = "data") -> pd.DataFrame:
    """Return *obj* as a :class:`pandas.DataFrame`.

    pandas frames pass through unchanged; Polars frames are converted
    with ``.to_pandas()`` (lazy frames are collected first), so the
    prediction routines always see the pandas index and dtypes they
    were fit with.

    Args:
        obj: Target data to predict on.
        name: Argument name used in error messages (e.g. ``"newdata"``).

    Raises:
        TypeError: If *obj* is not a pandas or Polars frame.
    """
    if isinstance(obj, pd.DataFrame):
        return obj
    if not _is_dataframe_like(obj):
        accepted = "a pandas DataFrame"
        if _HAS_POLARS:
            accepted += " or Polars DataFrame/LazyFrame"
        msg = f"'{name}' must be {accepted}, got {type(obj).__name__}."
        raise TypeError(msg)
    if isinstance(obj, pl.LazyFrame):
        obj = obj.collect()
    return obj.to_pandas()
