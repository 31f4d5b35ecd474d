"""Argument normalisation for :func:`robust_predict.get_predicted`.

Turns the caller's loosely-typed request (output mode, data override,
random/smooth inclusion policy, confidence level) into one
:class:`ResolvedArguments` record that the rest of the pipeline reads
without further branching.

The steps are applied in a fixed order:

1. canonicalise the output mode (``"relation"`` is a deprecated
   synonym of ``"expectation"``);
2. resolve the target data (explicit override, then the model's own
   training data);
3. map the mode to an ``(interval kind, scale)`` pair;
4. choose the native predict ``type`` (``"response"`` for linear
   families, ``"link"`` otherwise);
5. flag whether the link transform is needed;
6. pin smooth terms to their training mean where excluded or absent;
7. downgrade random-effect inclusion when columns are missing;
8. blank (or, for posterior families, drop) excluded random columns;
9. encode the inclusion policy as a native ``re_form`` argument.

The inclusion flags of steps 6–7 are computed by pure functions of
(requested policy, data columns) so the cascade is explicit.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from ._compat import _ensure_pandas_df
from ._typing import RandomInclusion
from .families import NO_RANDOM_EFFECTS, FamilyInfo, PredictionFamily

logger = logging.getLogger(__name__)

_PREDICT_MODES = ("expectation", "link", "prediction")

# Output mode -> (interval kind, scale).
_MODE_TABLE: dict[str, tuple[str, str]] = {
    "link": ("confidence", "link"),
    "expectation": ("confidence", "response"),
    "prediction": ("prediction", "response"),
}


@dataclass(frozen=True)
class ResolvedArguments:
    """Normalised prediction request.

    Attributes:
        data: Target data (a copy when it had to be modified), or
            ``None`` when the family has no stored data and none was
            given.
        predict: Canonical output mode.
        ci: Confidence level, or ``None`` for no interval.
        ci_type: ``"confidence"`` or ``"prediction"``.
        scale: ``"link"`` or ``"response"``.
        type: Native predict type, ``"link"`` or ``"response"``.
        transform: Whether the link transform must be applied.
        include_random: Final random-effect inclusion policy.
        include_smooth: Final smooth-term inclusion flag.
        re_form: Native random-effects argument (``None`` = all).
        info: Link metadata of the model.
    """

    data: pd.DataFrame | None
    predict: str
    ci: float | None
    ci_type: str
    scale: str
    type: str
    transform: bool
    include_random: RandomInclusion
    include_smooth: bool
    re_form: str | None
    info: FamilyInfo


# ------------------------------------------------------------------ #
# Step 1: output mode
# ------------------------------------------------------------------ #


def canonicalize_predict(predict: str | None, *, verbose: bool = True) -> str:
    """Return the canonical output mode.

    Raises:
        ValueError: If *predict* is not a recognised mode.
    """
    mode = "expectation" if predict is None else str(predict).strip().lower()
    if mode == "relation":
        if verbose:
            warnings.warn(
                "predict='relation' is deprecated; use 'expectation' instead.",
                FutureWarning,
                stacklevel=3,
            )
        return "expectation"
    if mode not in _PREDICT_MODES:
        msg = (
            f"Unknown predict='{predict}'. Use one of: "
            f"{', '.join(repr(m) for m in _PREDICT_MODES)}."
        )
        raise ValueError(msg)
    return mode


# ------------------------------------------------------------------ #
# Steps 6-9: inclusion policy (pure functions)
# ------------------------------------------------------------------ #


def smooth_terms_to_pin(
    smooth: Sequence[str],
    columns: Sequence[str],
    include_smooth: bool,
) -> tuple[list[str], bool]:
    """Return the smooth terms to pin and the final inclusion flag.

    Every term is pinned when smooth inclusion is disabled; otherwise
    only terms missing from *columns* are.  Once any term is pinned the
    flag is ``False``.
    """
    present = set(columns)
    pinned = [s for s in smooth if not include_smooth or s not in present]
    return pinned, bool(include_smooth) and not pinned


def resolve_random_inclusion(
    random: Sequence[str],
    columns: Sequence[str],
    include_random: RandomInclusion,
) -> RandomInclusion:
    """Downgrade *include_random* to ``False`` if random columns are missing.

    ``None`` is treated as ``False``.  Sub-formula strings and ``True``
    are both downgraded when any random-effect variable is absent.
    """
    if include_random is None or include_random is False:
        return False
    present = set(columns)
    missing = [v for v in random if v not in present]
    if missing:
        logger.debug(
            "Random-effect columns %s not in data; excluding random effects", missing
        )
        return False
    return include_random


def format_reform(include_random: RandomInclusion) -> str | None:
    """Encode an inclusion policy as a native ``re_form`` argument.

    ``True`` -> ``None`` (native default: all random effects);
    ``False``/``None`` -> ``"~0"`` (no random effects);
    a sub-formula string is passed through unchanged.
    """
    if isinstance(include_random, str):
        return include_random
    if include_random:
        return None
    return NO_RANDOM_EFFECTS


def _missing_column(column: pd.Series) -> pd.Series:
    """All-missing replacement for *column* with a nullable dtype."""
    if pd.api.types.is_numeric_dtype(column.dtype) and not pd.api.types.is_bool_dtype(
        column.dtype
    ):
        dtype = "Float64"
    else:
        dtype = "string"
    return pd.Series(pd.NA, index=column.index, dtype=dtype)


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def resolve_arguments(
    model: Any,
    family: PredictionFamily,
    data: Any = None,
    predict: str | None = "expectation",
    include_random: RandomInclusion = True,
    include_smooth: bool = True,
    ci: float | None = 0.95,
    newdata: Any = None,
    verbose: bool = True,
) -> ResolvedArguments:
    """Normalise a prediction request for *model*.

    Args:
        model: The fitted model.
        family: Its resolved prediction family.
        data: Target data; takes precedence over *newdata*.
        predict: ``"expectation"``, ``"link"``, ``"prediction"`` (or
            the deprecated ``"relation"``).
        include_random: ``True`` (all random effects), ``False``/
            ``None`` (none), or a sub-formula.
        include_smooth: Whether smooth terms vary with the data.
        ci: Confidence level, or ``None`` to skip intervals.
        newdata: Alias for *data*.
        verbose: Emit deprecation warnings.

    Returns:
        The resolved configuration.

    Raises:
        ValueError: If *predict* or *ci* is invalid, or a link-scale
            prediction is requested for a model whose link is unknown.
    """
    # 1. Output mode
    predict = canonicalize_predict(predict, verbose=verbose)

    if ci is not None and not 0.0 < float(ci) <= 1.0:
        msg = f"ci must be in (0, 1], got {ci}."
        raise ValueError(msg)

    # 2. Target data
    if data is None:
        data = newdata
    training = family.get_data(model)
    copied = data is not None
    if data is None:
        target = training
    else:
        target = _ensure_pandas_df(data, name="data").copy()

    # 3-5. Scale, native type, transform flag
    ci_type, scale = _MODE_TABLE[predict]
    info = family.family_info(model)
    if predict == "link" and info.link is None:
        msg = (
            f"Link-scale predictions are not available for the "
            f"'{family.name}' family: the link of {type(model).__name__} "
            f"is unknown. Use predict='expectation'."
        )
        raise ValueError(msg)
    native_type = "response" if info.is_linear else "link"
    transform = (not info.is_linear) and scale == "response"

    roles = family.find_variables(model)
    columns = list(target.columns) if target is not None else []

    # 6. Smooth terms
    pinned, include_smooth = smooth_terms_to_pin(roles.smooth, columns, include_smooth)
    if pinned and target is not None:
        if not copied:
            target = target.copy()
            copied = True
        for term in pinned:
            target[term] = float(np.mean(training[term]))
        logger.debug("Pinned smooth terms %s to their training mean", pinned)

    # 7. Random-effect downgrade
    include_random = resolve_random_inclusion(roles.random, columns, include_random)

    # 8. Disabled random effects
    if include_random is False and roles.random and target is not None:
        present = [v for v in roles.random if v in target.columns]
        if present:
            if not copied:
                target = target.copy()
                copied = True
            if family.posterior_sampling:
                target = target.drop(columns=present)
            else:
                for column in present:
                    target[column] = _missing_column(target[column])

    # 9. Native random-effects argument
    re_form = format_reform(include_random)

    return ResolvedArguments(
        data=target,
        predict=predict,
        ci=None if ci is None else float(ci),
        ci_type=ci_type,
        scale=scale,
        type=native_type,
        transform=transform,
        include_random=include_random,
        include_smooth=include_smooth,
        re_form=re_form,
        info=info,
    )
