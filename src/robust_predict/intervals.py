"""Interval computation for predictions.

Three sources of uncertainty are tried in order:

1. **Draws** — when a draw matrix exists (bootstrap or posterior), the
   interval is the equal-tailed row-wise quantile range and ``SE`` is
   the row-wise standard deviation.
2. **Native interval routine** — the family's own ``native_ci``
   (e.g. statsmodels' ``summary_frame`` for OLS).
3. **Standard error** — a Wald interval ``fit ± q · SE`` with ``q``
   from Student's t on the residual degrees of freedom, or from the
   standard normal when those are infinite.

If none applies (or ``ci`` is ``None``) there is no interval, which is
not an error.
"""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd
from scipy import stats

from ._arguments import ResolvedArguments
from .families import NativePrediction, PredictionFamily

_CI_COLUMNS = ["SE", "CI_low", "CI_high"]


def critical_value(ci: float, dof: float = np.inf) -> float:
    """Two-sided critical value at confidence level *ci*."""
    p = (1.0 + ci) / 2.0
    if not np.isfinite(dof) or dof <= 0:
        return float(stats.norm.ppf(p))
    return float(stats.t.ppf(p, dof))


def se_to_ci(
    predictions: np.ndarray,
    se: np.ndarray,
    ci: float | None,
    dof: float = np.inf,
) -> pd.DataFrame | None:
    """Wald interval table from point predictions and standard errors.

    Returns:
        DataFrame with columns ``SE``, ``CI_low``, ``CI_high``, or
        ``None`` when *ci* is ``None``.
    """
    if ci is None:
        return None
    fit = np.asarray(predictions, dtype=float)
    se = np.asarray(se, dtype=float)
    q = critical_value(ci, dof)
    return pd.DataFrame(
        {"SE": se, "CI_low": fit - q * se, "CI_high": fit + q * se},
        columns=_CI_COLUMNS,
    )


def draws_to_ci(draws: pd.DataFrame | np.ndarray, ci: float | None) -> pd.DataFrame | None:
    """Equal-tailed quantile interval from a ``(n, B)`` draw matrix.

    ``SE`` is the row-wise standard deviation (``ddof=1``; 0 for a
    single draw).
    """
    if ci is None:
        return None
    matrix = np.asarray(draws, dtype=float)
    alpha = 1.0 - ci
    low, high = np.quantile(matrix, [alpha / 2.0, 1.0 - alpha / 2.0], axis=1)
    ddof = 1 if matrix.shape[1] > 1 else 0
    return pd.DataFrame(
        {"SE": matrix.std(axis=1, ddof=ddof), "CI_low": low, "CI_high": high},
        columns=_CI_COLUMNS,
    )


def get_predicted_ci(
    model: Any,
    family: PredictionFamily,
    native: NativePrediction | None,
    args: ResolvedArguments,
    iterations: pd.DataFrame | None = None,
) -> pd.DataFrame | None:
    """Select and compute the interval table for one prediction call.

    Args:
        model: The fitted model.
        family: Its prediction family.
        native: Native point prediction (and SE), on the native scale.
        args: The resolved request (``ci``, ``ci_type``, ``data``).
        iterations: Draw matrix, if resampling was used.

    Returns:
        A table with one row per prediction, or ``None``.
    """
    if args.ci is None:
        return None
    if iterations is not None:
        return draws_to_ci(iterations, args.ci)
    if native is None:
        return None

    table = family.native_ci(model, native, args.data, args.ci_type, args.ci)
    if table is not None:
        return table.reset_index(drop=True)[_CI_COLUMNS]

    if native.se is None:
        return None
    return se_to_ci(native.fit, native.se, args.ci, family.residual_df(model))
