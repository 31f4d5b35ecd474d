"""Prediction dispatch for fitted statistical models.

:func:`get_predicted` computes fitted values ("predictions") for a
fitted model and attaches an uncertainty interval.  The pipeline is the
same for every model type; what differs is delegated to the model's
:class:`~robust_predict.families.PredictionFamily`:

1. **Normalise** the request (:mod:`._arguments`): canonical output
   mode, target data, ``(interval kind, scale)``, native predict type,
   smooth pinning, random-effect inclusion.
2. **Predict**, one of:

   * a single call to the family's native predict routine;
   * the resampling engine (:mod:`.resampling`) when ``iterations``
     is given — a case or parametric bootstrap whose replicate draws
     are reduced row-wise to a point estimate;
   * posterior draws for Bayesian families, which carry their own
     uncertainty and are produced directly on the requested scale.

3. **Interval** (:mod:`.intervals`): draw quantiles, the family's own
   interval routine, or a Wald interval from the standard error.
4. **Transform** (:mod:`.transform`): for nonlinear families on the
   response scale, map the link-scale point estimates, bounds, SEs
   (delta method), and draws through the inverse link.
5. **Assemble** a :class:`~robust_predict._results.PredictionResult`.

Scale handling
~~~~~~~~~~~~~~
Nonlinear families are always asked for *link*-scale predictions and
transformed afterwards.  Intervals therefore live on the link scale,
where the sampling distribution is close to normal, and their bounds
stay inside the support of the response after the (monotone) inverse
link.  For bootstrap runs the point estimate is the centrality of the
link-scale draws mapped through the inverse link, not the centrality
of the response-scale draws.

Examples:
    >>> import numpy as np, pandas as pd
    >>> import statsmodels.formula.api as smf
    >>> from robust_predict import get_predicted
    >>> rng = np.random.default_rng(0)
    >>> df = pd.DataFrame({"x": rng.normal(size=50)})
    >>> df["y"] = 1.0 + 2.0 * df["x"] + rng.normal(size=50)
    >>> result = get_predicted(smf.ols("y ~ x", data=df).fit())
    >>> result.ci_data.columns.tolist()
    ['SE', 'CI_low', 'CI_high']
"""

from __future__ import annotations

import logging
import warnings
from typing import Any

import numpy as np
import pandas as pd

from . import _config as _cfg
from ._arguments import ResolvedArguments, canonicalize_predict, resolve_arguments
from ._compat import _is_dataframe_like
from ._results import PredictionResult
from ._typing import CentralityFunction, RandomInclusion
from .families import PredictionFamily, resolve_family
from .intervals import draws_to_ci, get_predicted_ci
from .resampling import bootstrap_draws, centrality_from_draws, posterior_predictions
from .transform import transform_predictions

logger = logging.getLogger(__name__)


def _swap_data_first(x: Any, data: Any) -> tuple[Any, Any]:
    """Allow ``get_predicted(df, model)`` for pipe-style calls."""
    if not _is_dataframe_like(x):
        return x, data
    if data is not None and not _is_dataframe_like(data):
        return data, x
    msg = (
        "get_predicted() received a DataFrame as the model. Pass a fitted "
        "model first, or the data first followed by the model."
    )
    raise ValueError(msg)


def _package_result(
    predictions: np.ndarray,
    args: ResolvedArguments,
    family: PredictionFamily,
    ci_data: pd.DataFrame | None = None,
    iterations: pd.DataFrame | None = None,
    columns: list[str] | None = None,
) -> PredictionResult:
    """Bundle predictions with their interval, draws, and request."""
    return PredictionResult(
        predictions=np.asarray(predictions, dtype=float),
        ci_data=ci_data,
        iterations=iterations,
        data=args.data,
        ci=args.ci,
        predict=args.predict,
        ci_type=args.ci_type,
        scale=args.scale,
        family=family.name,
        columns=columns,
    )


def get_predicted(
    x: Any,
    data: Any = None,
    *,
    predict: str | None = "expectation",
    ci: float | None = 0.95,
    include_random: RandomInclusion = True,
    include_smooth: bool = True,
    iterations: int | None = None,
    centrality_function: CentralityFunction = np.mean,
    family: PredictionFamily | None = None,
    random_state: int | None = None,
    n_jobs: int | None = None,
    verbose: bool | None = None,
    newdata: Any = None,
) -> PredictionResult:
    """Compute predictions and their uncertainty for a fitted model.

    Args:
        x: A fitted model (statsmodels results, scikit-learn estimator,
            or any object with ``predict``).  A DataFrame is accepted
            here when the model is passed as *data*.
        data: Data to predict on.  ``None`` uses the data the model
            was fit on.  Accepts pandas or Polars DataFrames.
        predict: ``"expectation"`` (mean on the response scale),
            ``"link"`` (linear predictor), ``"prediction"`` (a new
            observation, with a prediction interval), or the
            deprecated ``"relation"``.
        ci: Confidence level, or ``None`` for no interval.
        include_random: ``True`` to condition on all random effects,
            ``False``/``None`` for population-level predictions, or a
            random-effects sub-formula.  Silently disabled when the
            data lacks the grouping columns.
        include_smooth: ``False`` pins every smooth term at its
            training mean.
        iterations: Number of bootstrap replicates (or posterior
            draws).  ``None`` skips resampling for frequentist models.
        centrality_function: Row-wise location estimator used to
            reduce the draw matrix.
        family: Force a specific ``PredictionFamily`` adaptor.
        random_state: Seed for reproducibility of resampling.
        n_jobs: Worker count for bootstrap replicates.  ``None`` uses
            :func:`robust_predict.get_n_jobs`.
        verbose: Report downgrades and let refit warnings through.
            ``None`` uses :func:`robust_predict.get_verbose`.
        newdata: Alias for *data*.

    Returns:
        A :class:`PredictionResult`.

    Raises:
        ValueError: If *predict* or *ci* is invalid, or a DataFrame is
            passed without a model.
        TypeError: If no prediction family supports *x*.
    """
    x, data = _swap_data_first(x, data)
    fam = resolve_family(x, family)
    if verbose is None:
        verbose = _cfg.get_verbose()
    if n_jobs is None:
        n_jobs = _cfg.get_n_jobs()

    mode = canonicalize_predict(predict, verbose=verbose)
    if mode == "prediction" and not fam.supports_prediction_interval(x):
        if verbose:
            warnings.warn(
                f"Prediction intervals are not available for the "
                f"'{fam.name}' family; returning predict='expectation' "
                f"instead.",
                UserWarning,
                stacklevel=2,
            )
        mode = "expectation"

    args = resolve_arguments(
        x,
        fam,
        data=data,
        predict=mode,
        include_random=include_random,
        include_smooth=include_smooth,
        ci=ci,
        newdata=newdata,
        verbose=verbose,
    )
    logger.debug(
        "get_predicted: family=%s predict=%s type=%s transform=%s re_form=%r",
        fam.name,
        args.predict,
        args.type,
        args.transform,
        args.re_form,
    )

    # ---- Posterior families: draws on the requested scale ----------
    if fam.posterior_sampling:
        draws = posterior_predictions(
            x,
            fam,
            args.data,
            args.predict,
            iterations,
            args.re_form,
            random_state=random_state,
        )
        predictions = centrality_from_draws(draws, centrality_function)
        return _package_result(
            predictions,
            args,
            fam,
            ci_data=draws_to_ci(draws, args.ci),
            iterations=draws,
        )

    # ---- Bootstrap ------------------------------------------------
    if iterations is not None:

        def _predict_replicate(refit: Any, target: pd.DataFrame | None) -> np.ndarray:
            return fam.native_predict(refit, target, args.type, args.re_form).fit

        draws = bootstrap_draws(
            x,
            fam,
            args.data,
            _predict_replicate,
            iterations,
            random_state=random_state,
            n_jobs=n_jobs,
            verbose=verbose,
        )
        predictions = centrality_from_draws(draws, centrality_function)
        ci_data = get_predicted_ci(x, fam, None, args, iterations=draws)
        if args.transform:
            predictions, ci_data, draws = transform_predictions(
                predictions, args.info, ci_data=ci_data, iterations=draws
            )
        return _package_result(
            predictions, args, fam, ci_data=ci_data, iterations=draws
        )

    # ---- Single native prediction ---------------------------------
    native = fam.native_predict(x, args.data, args.type, args.re_form)
    if np.ndim(native.fit) == 2:
        # Component scores: one column per component, no interval.
        k = np.shape(native.fit)[1]
        score_names = getattr(fam, "score_names", None)
        columns = (
            score_names(x, k)
            if score_names is not None
            else [f"Component_{i + 1}" for i in range(k)]
        )
        return _package_result(native.fit, args, fam, columns=columns)

    ci_data = get_predicted_ci(x, fam, native, args)
    predictions = native.fit
    if args.transform:
        predictions, ci_data, _ = transform_predictions(
            predictions, args.info, ci_data=ci_data
        )
    return _package_result(predictions, args, fam, ci_data=ci_data)
