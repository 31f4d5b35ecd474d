"""Typed result object for predictions.

A frozen dataclass that provides:

* **Attribute access** — ``result.predictions``, ``result.ci_data``.
* **Dict-like access** — ``result["ci_data"]``, ``result.get("key")``,
  ``"key" in result`` for consumers that prefer bracket syntax.
* **Array access** — ``len(result)``, iteration, and
  ``np.asarray(result)`` all act on the point predictions.
* **Serialisation** — ``.to_dict()`` returns a plain ``dict[str, Any]``
  with all NumPy and pandas types converted to native Python.
* **Tabular view** — ``.to_frame()`` lays predictions, the interval
  table, and (optionally) the draws side by side.

The result is frozen: it is a snapshot of one prediction call, and
carries the resolved request (``ci``, ``predict``, ``ci_type``,
``scale``) alongside the numbers so that downstream consumers never
have to re-derive it.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, fields
from typing import Any, ClassVar

import numpy as np
import pandas as pd

# ------------------------------------------------------------------ #
# Serialisation helper
# ------------------------------------------------------------------ #


def _numpy_to_python(obj: Any) -> Any:
    """Recursively convert NumPy / pandas objects to Python-native types.

    Handles nested dicts, lists, DataFrames, np.ndarray, np.integer,
    and np.floating so that :meth:`to_dict` returns a fully
    JSON-serialisable structure.  Missing values become ``None``.
    """
    if isinstance(obj, pd.DataFrame):
        frame = obj.astype(object).where(obj.notna(), None)
        return {
            str(col): [_numpy_to_python(v) for v in frame[col]] for col in frame.columns
        }
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (np.integer, np.bool_)):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, dict):
        return {k: _numpy_to_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        converted = [_numpy_to_python(item) for item in obj]
        return type(obj)(converted)
    return obj


# ------------------------------------------------------------------ #
# Dict-compatibility mixin
# ------------------------------------------------------------------ #


class _DictAccessMixin:
    """Dict-like access convenience for result dataclasses.

    Supports three access patterns:

    1. ``result["key"]``     — raises ``KeyError`` on miss
    2. ``result.get(key, d)`` — returns *d* on miss (default ``None``)
    3. ``"key" in result``   — membership test
    """

    # Fields to exclude from to_dict() serialisation.
    _EXCLUDE_FROM_DICT: ClassVar[frozenset[str]] = frozenset()

    def __getitem__(self, key: str) -> Any:
        """Attribute lookup via bracket syntax."""
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def get(self, key: str, default: Any = None) -> Any:
        """Attribute lookup with a fallback default."""
        return getattr(self, key, default)

    def __contains__(self, key: object) -> bool:
        """Membership test: ``"key" in result``."""
        if not isinstance(key, str):
            return False
        return hasattr(self, key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary.

        Runs :func:`_numpy_to_python` on every value so the returned
        dict is fully JSON-serialisable.
        """
        result: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            if f.name in self._EXCLUDE_FROM_DICT:
                continue
            result[f.name] = _numpy_to_python(getattr(self, f.name))
        return result


# ------------------------------------------------------------------ #
# PredictionResult
# ------------------------------------------------------------------ #


@dataclass(frozen=True, eq=False)
class PredictionResult(_DictAccessMixin):
    """Predictions for one model, with optional uncertainty.

    Returned by :func:`robust_predict.get_predicted`.

    All fields are accessible both as attributes (``result.ci_data``)
    and via dict syntax (``result["ci_data"]``).
    """

    # ---- Point estimates -------------------------------------------
    predictions: np.ndarray
    """Point predictions ``(n,)``, or component scores ``(n, k)``."""

    # ---- Uncertainty -----------------------------------------------
    ci_data: pd.DataFrame | None = None
    """``SE``, ``CI_low``, ``CI_high`` per prediction, or ``None``."""

    iterations: pd.DataFrame | None = None
    """Draw matrix ``(n, B)`` with columns ``iter_1 … iter_B``."""

    # ---- Resolved request ------------------------------------------
    data: pd.DataFrame | None = None
    """Target data the predictions were computed on."""

    ci: float | None = None
    """Confidence level of ``ci_data``."""

    predict: str = "expectation"
    """Output mode: ``"expectation"``, ``"link"``, or ``"prediction"``."""

    ci_type: str = "confidence"
    """``"confidence"`` or ``"prediction"``."""

    scale: str = "response"
    """``"response"`` or ``"link"``."""

    family: str | None = None
    """Name of the prediction family used."""

    columns: list[str] | None = None
    """Score column names (decomposition families only)."""

    # Target data can be large; it is returned by to_frame() callers
    # who ask for it, not serialised.
    _EXCLUDE_FROM_DICT: ClassVar[frozenset[str]] = frozenset({"data"})

    # ---- Array protocol --------------------------------------------

    def __len__(self) -> int:
        return len(self.predictions)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.predictions)

    def __array__(self, dtype: Any = None, copy: Any = None) -> np.ndarray:
        return np.asarray(self.predictions, dtype=dtype)

    # ---- Views -----------------------------------------------------

    def to_frame(self, keep_iterations: bool = True) -> pd.DataFrame:
        """Tabular view of the result.

        One row per observation: ``Predicted`` (or one column per
        component for score matrices), then ``SE``, ``CI_low``,
        ``CI_high`` when an interval exists, then ``iter_*`` draw
        columns when *keep_iterations* is set.

        Args:
            keep_iterations: Include the draw columns.
        """
        values = np.asarray(self.predictions)
        if values.ndim == 2:
            names = self.columns or [f"Component_{i + 1}" for i in range(values.shape[1])]
            out = pd.DataFrame(values, columns=names)
        else:
            out = pd.DataFrame({"Predicted": values})

        if self.ci_data is not None:
            ci = self.ci_data.reset_index(drop=True)
            out = pd.concat([out, ci], axis=1)
        if keep_iterations and self.iterations is not None:
            draws = self.iterations.reset_index(drop=True)
            out = pd.concat([out, draws], axis=1)
        return out
