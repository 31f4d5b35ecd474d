"""Link-scale to response-scale transform with delta-method SEs.

Applied only when the resolved request needs it (nonlinear family,
response scale).  Everything that was computed on the link scale is
mapped to the response scale:

* point predictions: ``mu = g⁻¹(eta)``;
* interval bounds: each bound through ``g⁻¹`` separately, which keeps
  the coverage because every supported inverse link is monotone;
* the ``SE`` column: first-order delta method,
  ``se_mu = se_eta · |d g⁻¹ / d eta|`` evaluated at the link-scale
  prediction (``p(1 - p)`` for the logit link);
* every draw column through ``g⁻¹``.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from .families import FamilyInfo


def _require_callable(info: FamilyInfo) -> None:
    for attr in ("inverse_link", "inverse_link_deriv"):
        if not callable(getattr(info, attr, None)):
            msg = (
                f"Family '{info.name}' does not provide a callable {attr}; "
                f"cannot transform link-scale predictions to the response scale."
            )
            raise ValueError(msg)


def transform_predictions(
    predictions: np.ndarray,
    info: FamilyInfo,
    ci_data: pd.DataFrame | None = None,
    iterations: pd.DataFrame | None = None,
) -> tuple[np.ndarray, pd.DataFrame | None, pd.DataFrame | None]:
    """Map link-scale predictions, intervals, and draws to the response scale.

    Args:
        predictions: Link-scale point predictions ``eta``.
        info: Link metadata of the model.
        ci_data: Link-scale interval table (``SE``, ``CI_low``,
            ``CI_high``), or ``None``.
        iterations: Link-scale draw matrix, or ``None``.

    Returns:
        ``(predictions, ci_data, iterations)`` on the response scale.

    Raises:
        ValueError: If the inverse link or its derivative is missing.
    """
    _require_callable(info)
    eta = np.asarray(predictions, dtype=float)

    if ci_data is not None:
        ci_data = ci_data.copy()
        for bound in ("CI_low", "CI_high"):
            if bound in ci_data.columns:
                ci_data[bound] = info.inverse_link(
                    np.asarray(ci_data[bound], dtype=float)
                )
        if "SE" in ci_data.columns:
            ci_data["SE"] = np.asarray(ci_data["SE"], dtype=float) * np.abs(
                info.inverse_link_deriv(eta)
            )

    if iterations is not None:
        iterations = pd.DataFrame(
            info.inverse_link(np.asarray(iterations, dtype=float)),
            index=iterations.index,
            columns=iterations.columns,
        )

    return np.asarray(info.inverse_link(eta), dtype=float), ci_data, iterations
