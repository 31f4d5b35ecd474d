"""Resampling engine: bootstrap and posterior draw matrices.

Produces a **draw matrix** — rows are observations of the target data,
columns ``iter_1 … iter_B`` are replicates — from which the dispatcher
derives a point estimate (row-wise centrality) and an interval (row-wise
quantiles).

Strategies
~~~~~~~~~~
* **Parametric bootstrap** (mixed families): every replicate simulates
  a response from the fitted model conditional on its estimated random
  effects (``family.native_simulate``), refits on the training frame
  with that response, and scores the refit with the caller's
  prediction function on the target data.
* **Case resampling** (all other refittable families): every replicate
  draws ``n`` training rows with replacement, refits, and scores the
  refit on the *original* target data.
* **Posterior draws** (Bayesian families): no refit; the family's own
  posterior sampler supplies one draw per column.

Replicates whose refit did not converge are kept as they are.  The
engine performs no quality control on the draw matrix; a caller that
needs to screen degenerate replicates must do so on ``iterations``.

Parallelism
~~~~~~~~~~~
Replicates are independent, so the map over ``range(B)`` is run with
``joblib.Parallel(prefer="threads")`` when ``n_jobs != 1``.  The refit
routines are statsmodels / scikit-learn solvers whose BLAS and LAPACK
calls release the GIL.  Every replicate owns a ``np.random.Generator``
spawned from one ``SeedSequence``, so results do not depend on the
worker count or scheduling order.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Callable
from typing import Any

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .families import PredictionFamily

logger = logging.getLogger(__name__)

PredictFunction = Callable[[Any, "pd.DataFrame | None"], np.ndarray]


def iteration_names(n: int) -> list[str]:
    """Column labels ``iter_1 … iter_n`` for a draw matrix."""
    return [f"iter_{i + 1}" for i in range(n)]


def _draws_frame(columns: list[np.ndarray], index: pd.Index | None) -> pd.DataFrame:
    matrix = np.column_stack([np.asarray(c, dtype=float).ravel() for c in columns])
    return pd.DataFrame(matrix, index=index, columns=iteration_names(matrix.shape[1]))


def _has_simulation(family: PredictionFamily) -> bool:
    """Whether *family* bootstraps by simulating from the fitted model."""
    return bool(getattr(family, "parametric_bootstrap", False))


# ------------------------------------------------------------------ #
# Bootstrap
# ------------------------------------------------------------------ #


def bootstrap_draws(
    model: Any,
    family: PredictionFamily,
    data: pd.DataFrame | None,
    predict_function: PredictFunction,
    iterations: int,
    *,
    random_state: int | None = None,
    n_jobs: int = 1,
    verbose: bool = True,
) -> pd.DataFrame:
    """Bootstrap a draw matrix of predictions.

    Args:
        model: The fitted model.
        family: Its prediction family.
        data: Target data to score each replicate on (``None`` = the
            training data).
        predict_function: ``(refit_model, data) -> predictions`` on the
            scale and type established by the argument normaliser.
        iterations: Number of replicates ``B``.
        random_state: Seed for reproducibility.
        n_jobs: joblib worker count (``1`` = sequential).
        verbose: When ``False``, warnings raised by the refits are
            silenced.  Replicates are never dropped.

    Returns:
        DataFrame of shape ``(n, B)`` with columns ``iter_1 … iter_B``.

    Raises:
        ValueError: If *iterations* is not a positive integer or the
            model has no training data to resample.
    """
    iterations = int(iterations)
    if iterations < 1:
        msg = f"iterations must be a positive integer, got {iterations}."
        raise ValueError(msg)

    training = family.get_data(model)
    if training is None:
        msg = (
            f"Cannot bootstrap {type(model).__name__}: the training data "
            f"is not available from the fitted model."
        )
        raise ValueError(msg)
    target = training if data is None else data

    seeds = np.random.SeedSequence(random_state).spawn(iterations)
    parametric = _has_simulation(family)
    response = family.find_variables(model).response if parametric else None
    if parametric and response is None:
        msg = f"Cannot simulate a response for {type(model).__name__}."
        raise ValueError(msg)

    def _replicate(seed: np.random.SeedSequence) -> np.ndarray:
        rng = np.random.default_rng(seed)
        if parametric:
            sample = training.copy()
            sample[response] = family.native_simulate(model, rng)
        else:
            rows = rng.integers(0, len(training), size=len(training))
            sample = training.iloc[rows].reset_index(drop=True)
        refit = family.native_refit(model, sample)
        return np.asarray(predict_function(refit, target), dtype=float)

    logger.debug(
        "Running %d %s bootstrap replicates (n_jobs=%s)",
        iterations,
        "parametric" if parametric else "case-resampling",
        n_jobs,
    )

    with warnings.catch_warnings():
        if not verbose:
            warnings.simplefilter("ignore")

        # Sequential path: no joblib overhead for small B.
        if n_jobs == 1:
            columns = [_replicate(seed) for seed in seeds]
        else:
            columns = Parallel(n_jobs=n_jobs, prefer="threads")(
                delayed(_replicate)(seed) for seed in seeds
            )

    index = target.index if isinstance(target, pd.DataFrame) else None
    return _draws_frame(columns, index)


# ------------------------------------------------------------------ #
# Posterior draws
# ------------------------------------------------------------------ #


def posterior_predictions(
    model: Any,
    family: PredictionFamily,
    data: pd.DataFrame | None,
    predict: str,
    iterations: int | None,
    re_form: str | None,
    *,
    random_state: int | None = None,
) -> pd.DataFrame:
    """Posterior draw matrix on the scale implied by *predict*.

    ``iterations=None`` uses the family's native draw count.
    """
    rng = np.random.default_rng(random_state)
    draws = np.asarray(
        family.posterior_draws(model, data, predict, iterations, re_form, rng),
        dtype=float,
    )
    if draws.ndim == 1:
        draws = draws[:, np.newaxis]
    index = data.index if isinstance(data, pd.DataFrame) else None
    return pd.DataFrame(draws, index=index, columns=iteration_names(draws.shape[1]))


# ------------------------------------------------------------------ #
# Reduction
# ------------------------------------------------------------------ #


def centrality_from_draws(
    draws: pd.DataFrame | np.ndarray,
    centrality_function: Callable[[np.ndarray], float] = np.mean,
) -> np.ndarray:
    """Reduce a draw matrix to one point estimate per row.

    Args:
        draws: ``(n, B)`` draw matrix.
        centrality_function: Location estimator applied to each row
            (arithmetic mean by default; e.g. ``np.median``).

    Returns:
        Array of shape ``(n,)``.
    """
    matrix = np.asarray(draws, dtype=float)
    if centrality_function is np.mean:
        return matrix.mean(axis=1)
    return np.array([centrality_function(row) for row in matrix], dtype=float)
