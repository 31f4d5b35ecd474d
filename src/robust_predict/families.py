"""Prediction family protocol, adaptors, and resolution logic.

The ``PredictionFamily`` protocol defines the capability set that the
prediction dispatcher in ``core.py`` needs from a model representation:

* **metadata** — linearity, link function, inverse link and its
  derivative (``family_info``), variable roles (``find_variables``),
  and the training data (``get_data``);
* **native prediction** — a thin shim around the model's own predict
  routine (``native_predict``) and, where the model has one, its own
  interval routine (``native_ci``);
* **resampling hooks** — refit on new data (``native_refit``),
  simulate a response (``native_simulate``, mixed models only), and
  draw from the posterior (``posterior_draws``, Bayesian models only).

Each concrete adaptor is a ``@dataclass(frozen=True)`` that carries no
mutable state and communicates exclusively through the protocol
methods.  The dispatcher never branches on model classes — it programs
against the protocol.

Registry
~~~~~~~~
Adaptors are registered under a **class tag** (a class name on the
model object's MRO, see :mod:`classify`).  :func:`resolve_family`
walks the model's tags most-derived first and returns the first
registered adaptor, so ``GLMGamResults`` (a subclass of
``GLMResults``) resolves to the GAM adaptor rather than the GLM one.
Adding a model type means registering one adaptor; the dispatcher does
not change.

The mixed-effects adaptors live in ``families_mixed.py`` and register
themselves at import time.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import numpy as np
import pandas as pd
import statsmodels.api as sm

from .classify import get_class_list

logger = logging.getLogger(__name__)

_IDENTITY = sm.families.links.Identity()

# Explicit "no random effects" override (lme4 convention ``re.form = ~0``).
NO_RANDOM_EFFECTS = "~0"


# ------------------------------------------------------------------ #
# Value objects
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class FamilyInfo:
    """Link-function metadata for one fitted model.

    Attributes:
        name: Distribution name (e.g. ``"gaussian"``, ``"binomial"``).
        is_linear: ``True`` when predictions on the link scale are
            already on the response scale (identity link).
        link: ``mu -> eta``.
        inverse_link: ``eta -> mu``.
        inverse_link_deriv: ``d mu / d eta`` evaluated at ``eta``;
            used for delta-method SE propagation.
    """

    name: str
    is_linear: bool
    link: Callable[[np.ndarray], np.ndarray] | None
    inverse_link: Callable[[np.ndarray], np.ndarray] | None
    inverse_link_deriv: Callable[[np.ndarray], np.ndarray] | None


@dataclass(frozen=True)
class VariableRoles:
    """Variable names of a model, partitioned by role."""

    response: str | None = None
    fixed: tuple[str, ...] = ()
    random: tuple[str, ...] = ()
    smooth: tuple[str, ...] = ()


@dataclass(frozen=True)
class NativePrediction:
    """Output of a family's native predict routine.

    ``se`` is on the same scale as ``fit`` (the link scale for
    nonlinear families, the response scale for linear ones), or
    ``None`` when the routine provides no standard error.
    """

    fit: np.ndarray
    se: np.ndarray | None = None


def _linear_info(name: str = "gaussian") -> FamilyInfo:
    return FamilyInfo(
        name=name,
        is_linear=True,
        link=_IDENTITY,
        inverse_link=_IDENTITY.inverse,
        inverse_link_deriv=_IDENTITY.inverse_deriv,
    )


# ------------------------------------------------------------------ #
# Formula / data introspection helpers
# ------------------------------------------------------------------ #
#
# Only what the dispatcher consumes: variable names by role and the
# frame the model was fit on.

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")


def _formula_variables(
    formula: str | None,
    columns: list[str] | pd.Index | None,
) -> tuple[str | None, tuple[str, ...]]:
    """Split a Wilkinson formula into ``(response, predictors)``.

    Identifiers are kept only if they are columns of the model frame,
    which filters out function names (``np.log``, ``C``) and literals.
    """
    if not formula or columns is None:
        return None, ()
    cols = set(columns)
    lhs, _, rhs = formula.partition("~")
    if not rhs:
        lhs, rhs = "", lhs

    def _names(side: str) -> list[str]:
        found: list[str] = []
        for token in _IDENTIFIER.findall(side):
            if token in cols and token not in found:
                found.append(token)
        return found

    response = _names(lhs)
    predictors = [v for v in _names(rhs) if v not in response]
    return (response[0] if response else None), tuple(predictors)


def _model_frame(model: Any) -> pd.DataFrame | None:
    """Return the DataFrame a statsmodels formula model was fit on."""
    inner = getattr(model, "model", None)
    data = getattr(inner, "data", None)
    frame = getattr(data, "frame", None)
    return frame if isinstance(frame, pd.DataFrame) else None


def _model_formula(model: Any) -> str | None:
    """Formula the model was fit from.

    ``GLMGam`` keeps its parametric part in ``formula_linear`` and
    leaves ``formula`` unset.
    """
    inner = getattr(model, "model", None)
    formula = getattr(inner, "formula", None)
    if formula is None:
        formula = getattr(inner, "formula_linear", None)
    return formula


def _design_matrix(model: Any, data: pd.DataFrame) -> np.ndarray:
    """Rebuild the fixed-effects design matrix for *data*.

    statsmodels stores the formula's right-hand side on the model data:
    as ``model_spec`` (a formulaic ``ModelSpec`` or a patsy
    ``DesignInfo``, statsmodels >= 0.15) or as ``design_info`` (on the
    model or ``model.data``, earlier releases).  Either applies the same
    transformations and categorical codings as the fit.
    """
    from patsy import dmatrix

    inner = model.model
    spec = getattr(inner.data, "model_spec", None)
    if spec is not None:
        spec = getattr(spec, "rhs", spec)
        if hasattr(spec, "get_model_matrix"):
            return np.asarray(spec.get_model_matrix(data), dtype=float)
    design_info = getattr(inner, "design_info", None)
    if design_info is None:
        design_info = getattr(inner.data, "design_info", None)
    if design_info is None:
        design_info = spec
    if design_info is None:
        msg = (
            f"{type(inner).__name__} was not fit from a formula; cannot "
            f"rebuild the design matrix for new data."
        )
        raise ValueError(msg)
    return np.asarray(dmatrix(design_info, data, return_type="dataframe"), dtype=float)


def _require_formula(model: Any, action: str) -> str:
    formula = _model_formula(model)
    if formula is None:
        msg = (
            f"{action} requires a model fit with the formula interface "
            f"(e.g. statsmodels.formula.api); "
            f"{type(getattr(model, 'model', model)).__name__} has no formula."
        )
        raise ValueError(msg)
    return formula


def _prediction_interval_from_scale(
    native: NativePrediction,
    scale: float,
    ci: float,
    dof: float,
) -> pd.DataFrame | None:
    """Prediction interval from a mean SE plus residual variance.

    ``se_pred = sqrt(se_mean² + σ̂²)`` — the mean uncertainty plus the
    variability of a single new observation.
    """
    from .intervals import se_to_ci

    if native.se is None:
        return None
    se_pred = np.sqrt(np.asarray(native.se) ** 2 + float(scale))
    return se_to_ci(native.fit, se_pred, ci=ci, dof=dof)


# ------------------------------------------------------------------ #
# PredictionFamily protocol
# ------------------------------------------------------------------ #
#
# ``runtime_checkable`` enables isinstance() checks against the
# protocol at runtime, used by register_family() to reject adaptors
# with missing methods.


@runtime_checkable
class PredictionFamily(Protocol):
    """Interface that every prediction adaptor must implement.

    Attributes:
        name: Short identifier used in results (e.g. ``"linear"``,
            ``"glm"``, ``"mixed_lm"``).
        posterior_sampling: ``True`` for Bayesian families whose
            uncertainty comes from posterior draws.  These families
            reject missing values in new data, so excluded random-effect
            columns are dropped rather than blanked.
    """

    @property
    def name(self) -> str: ...

    @property
    def posterior_sampling(self) -> bool: ...

    # ---- Metadata --------------------------------------------------

    def family_info(self, model: Any) -> FamilyInfo:
        """Return linearity and link-function metadata for *model*."""
        ...

    def find_variables(self, model: Any) -> VariableRoles:
        """Return the model's variable names partitioned by role."""
        ...

    def get_data(self, model: Any) -> pd.DataFrame | None:
        """Return the data the model was fit on, or ``None``."""
        ...

    def supports_prediction_interval(self, model: Any) -> bool:
        """Whether ``predict="prediction"`` is meaningful for *model*."""
        ...

    def residual_df(self, model: Any) -> float:
        """Residual degrees of freedom for t critical values.

        ``np.inf`` selects normal critical values.
        """
        ...

    # ---- Native routines -------------------------------------------

    def native_predict(
        self,
        model: Any,
        data: pd.DataFrame | None,
        type: str = "response",
        re_form: str | None = None,
    ) -> NativePrediction:
        """Call the model's own prediction routine.

        Args:
            model: The fitted model.
            data: Rows to predict for (``None`` = training data).
            type: ``"link"`` or ``"response"``.  Nonlinear families
                are always asked for ``"link"``; the dispatcher applies
                the inverse link itself.
            re_form: ``None`` to condition on all random effects,
                ``"~0"`` for none, or a sub-formula.
        """
        ...

    def native_ci(
        self,
        model: Any,
        native: NativePrediction,
        data: pd.DataFrame | None,
        ci_type: str,
        ci: float,
    ) -> pd.DataFrame | None:
        """Return the model's own interval table, or ``None``.

        ``None`` tells the dispatcher to derive the interval from the
        standard error in *native* instead.
        """
        ...

    def native_refit(self, model: Any, data: pd.DataFrame) -> Any:
        """Refit *model* on *data* with the same formula and options."""
        ...

    def native_simulate(self, model: Any, rng: np.random.Generator) -> np.ndarray:
        """Simulate one response vector from the fitted model.

        Only mixed-model families implement this; it selects the
        parametric bootstrap in the resampling engine.
        """
        ...

    def posterior_draws(
        self,
        model: Any,
        data: pd.DataFrame | None,
        predict: str,
        iterations: int | None,
        re_form: str | None,
        rng: np.random.Generator,
    ) -> np.ndarray:
        """Return an ``(n, iterations)`` matrix of posterior draws.

        Draws are produced directly on the scale implied by *predict*
        (linear predictor, expectation, or posterior predictive).
        """
        ...


# ------------------------------------------------------------------ #
# Shared behaviour for statsmodels formula models
# ------------------------------------------------------------------ #


class _StatsmodelsFormulaMixin:
    """Metadata and hooks shared by statsmodels formula-model adaptors."""

    @property
    def posterior_sampling(self) -> bool:
        return False

    def find_variables(self, model: Any) -> VariableRoles:
        frame = _model_frame(model)
        columns = frame.columns if frame is not None else None
        response, fixed = _formula_variables(_model_formula(model), columns)
        return VariableRoles(response=response, fixed=fixed)

    def get_data(self, model: Any) -> pd.DataFrame | None:
        return _model_frame(model)

    def native_simulate(self, model: Any, rng: np.random.Generator) -> np.ndarray:
        raise NotImplementedError(
            f"{type(self).__name__} has no parametric simulation routine."
        )

    def posterior_draws(
        self,
        model: Any,
        data: pd.DataFrame | None,
        predict: str,
        iterations: int | None,
        re_form: str | None,
        rng: np.random.Generator,
    ) -> np.ndarray:
        raise NotImplementedError(f"{type(self).__name__} has no posterior.")


# ------------------------------------------------------------------ #
# LinearFamily
# ------------------------------------------------------------------ #
#
# OLS / WLS / GLS results from the statsmodels formula API.  The
# response is modelled on the identity scale, so the native predict
# call already returns response-scale values and no transform is ever
# applied.  statsmodels' ``get_prediction`` provides both the mean
# standard error and the observation (prediction) interval, so this is
# the one adaptor with a complete native interval routine.


@dataclass(frozen=True)
class LinearFamily(_StatsmodelsFormulaMixin):
    """Linear regression (statsmodels ``RegressionResults``)."""

    @property
    def name(self) -> str:
        return "linear"

    def family_info(self, model: Any) -> FamilyInfo:  # noqa: ARG002
        return _linear_info()

    def supports_prediction_interval(self, model: Any) -> bool:  # noqa: ARG002
        return True

    def residual_df(self, model: Any) -> float:
        return float(model.df_resid)

    def native_predict(
        self,
        model: Any,
        data: pd.DataFrame | None,
        type: str = "response",  # noqa: ARG002
        re_form: str | None = None,  # noqa: ARG002
    ) -> NativePrediction:
        """Mean prediction and its SE via ``get_prediction``."""
        pred = model.get_prediction(exog=data)
        return NativePrediction(
            fit=np.asarray(pred.predicted_mean, dtype=float),
            se=np.asarray(pred.se_mean, dtype=float),
        )

    def native_ci(
        self,
        model: Any,
        native: NativePrediction,  # noqa: ARG002
        data: pd.DataFrame | None,
        ci_type: str,
        ci: float,
    ) -> pd.DataFrame | None:
        """Confidence or prediction interval from ``summary_frame``.

        The prediction-interval SE is ``sqrt(se_mean² + σ̂²)`` so that
        the ``SE`` column is consistent with the reported bounds.
        """
        frame = model.get_prediction(exog=data).summary_frame(alpha=1.0 - ci)
        se_mean = np.asarray(frame["mean_se"], dtype=float)
        if ci_type == "prediction":
            return pd.DataFrame(
                {
                    "SE": np.sqrt(se_mean**2 + float(model.scale)),
                    "CI_low": np.asarray(frame["obs_ci_lower"], dtype=float),
                    "CI_high": np.asarray(frame["obs_ci_upper"], dtype=float),
                }
            )
        return pd.DataFrame(
            {
                "SE": se_mean,
                "CI_low": np.asarray(frame["mean_ci_lower"], dtype=float),
                "CI_high": np.asarray(frame["mean_ci_upper"], dtype=float),
            }
        )

    def native_refit(self, model: Any, data: pd.DataFrame) -> Any:
        """Refit with the same formula (weights are not carried over)."""
        formula = _require_formula(model, "Refitting")
        return type(model.model).from_formula(formula, data=data).fit()


# ------------------------------------------------------------------ #
# GLMFamily
# ------------------------------------------------------------------ #
#
# Generalised linear models carry their link on ``model.family.link``:
# a statsmodels ``Link`` object that is callable (mu → eta) and
# exposes ``inverse`` (eta → mu) and ``inverse_deriv`` (d mu / d eta).
# Those three are exactly what the transform stage needs.
#
# For nonlinear links the dispatcher always asks for the *link* scale
# and transforms itself, so that interval bounds are computed where
# the sampling distribution is approximately normal and only then
# mapped through the (monotone) inverse link.


@dataclass(frozen=True)
class GLMFamily(_StatsmodelsFormulaMixin):
    """Generalised linear model (statsmodels ``GLMResults``)."""

    @property
    def name(self) -> str:
        return "glm"

    def family_info(self, model: Any) -> FamilyInfo:
        family = model.model.family
        link = family.link
        is_linear = isinstance(family, sm.families.Gaussian) and isinstance(
            link, sm.families.links.Identity
        )
        return FamilyInfo(
            name=type(family).__name__.lower(),
            is_linear=is_linear,
            link=link,
            inverse_link=link.inverse,
            inverse_link_deriv=link.inverse_deriv,
        )

    def supports_prediction_interval(self, model: Any) -> bool:
        # For non-Gaussian outcomes the PI collapses to the support of
        # the distribution (e.g. [0, 1] for Bernoulli responses).
        return self.family_info(model).is_linear

    def residual_df(self, model: Any) -> float:
        if isinstance(model.model.family, sm.families.Gaussian):
            return float(model.df_resid)
        return float(np.inf)

    def native_predict(
        self,
        model: Any,
        data: pd.DataFrame | None,
        type: str = "link",
        re_form: str | None = None,  # noqa: ARG002
    ) -> NativePrediction:
        """Linear predictor (or mean) and its SE via ``get_prediction``.

        ``get_prediction`` returns mean-scale results whose ``linpred``
        attribute holds the linear-predictor prediction and SE.
        """
        pred = model.get_prediction(exog=data)
        if type == "link":
            pred = pred.linpred
        return NativePrediction(
            fit=np.asarray(pred.predicted_mean, dtype=float),
            se=np.asarray(pred.se_mean, dtype=float),
        )

    def native_ci(
        self,
        model: Any,
        native: NativePrediction,
        data: pd.DataFrame | None,  # noqa: ARG002
        ci_type: str,
        ci: float,
    ) -> pd.DataFrame | None:
        if ci_type != "prediction":
            return None
        return _prediction_interval_from_scale(
            native, float(model.scale), ci, self.residual_df(model)
        )

    def native_refit(self, model: Any, data: pd.DataFrame) -> Any:
        """Refit with the same formula and family.

        Offsets, exposures, and prior weights are not carried over.
        """
        formula = _require_formula(model, "Refitting")
        return (
            type(model.model)
            .from_formula(formula, data=data, family=model.model.family)
            .fit()
        )


# ------------------------------------------------------------------ #
# GAMFamily
# ------------------------------------------------------------------ #
#
# statsmodels ``GLMGam`` keeps the smooth terms outside the formula:
# the smoother object holds its own basis and variable names, and new
# values are passed separately as ``exog_smooth``.  Smooth terms can be
# "switched off" by pinning the covariate to its training mean, which
# the argument normaliser does before this adaptor is called.


@dataclass(frozen=True)
class GAMFamily(GLMFamily):
    """Generalised additive model (statsmodels ``GLMGamResults``)."""

    @property
    def name(self) -> str:
        return "gam"

    def find_variables(self, model: Any) -> VariableRoles:
        roles = super().find_variables(model)
        smooth = tuple(self._smooth_names(model))
        return VariableRoles(
            response=roles.response,
            fixed=tuple(v for v in roles.fixed if v not in smooth),
            smooth=smooth,
        )

    def get_data(self, model: Any) -> pd.DataFrame | None:
        """Training frame, with smooth covariates filled in if absent."""
        frame = _model_frame(model)
        if frame is None:
            return None
        smoother = model.model.smoother
        missing = [s for s in self._smooth_names(model) if s not in frame.columns]
        if not missing:
            return frame
        frame = frame.copy()
        names = list(self._smooth_names(model))
        x = np.asarray(smoother.x).reshape(len(frame), -1)
        for name in missing:
            frame[name] = x[:, names.index(name)]
        return frame

    def supports_prediction_interval(self, model: Any) -> bool:  # noqa: ARG002
        return False

    def native_predict(
        self,
        model: Any,
        data: pd.DataFrame | None,
        type: str = "link",
        re_form: str | None = None,  # noqa: ARG002
    ) -> NativePrediction:
        if data is None:
            pred = model.get_prediction()
        else:
            smooth = list(self._smooth_names(model))
            pred = model.get_prediction(exog=data, exog_smooth=data[smooth])
        if type == "link":
            pred = pred.linpred
        return NativePrediction(
            fit=np.asarray(pred.predicted_mean, dtype=float),
            se=np.asarray(pred.se_mean, dtype=float),
        )

    def native_ci(
        self,
        model: Any,  # noqa: ARG002
        native: NativePrediction,  # noqa: ARG002
        data: pd.DataFrame | None,  # noqa: ARG002
        ci_type: str,  # noqa: ARG002
        ci: float,  # noqa: ARG002
    ) -> pd.DataFrame | None:
        return None

    def native_refit(self, model: Any, data: pd.DataFrame) -> Any:
        """Refit with a B-spline smoother rebuilt on *data*.

        Only ``BSplines`` smoothers are supported; the basis dimension
        and degree of every univariate smoother are reused, and the outer
        knots stay at the training range so that a resample can still
        score every training row.
        """
        from statsmodels.gam.api import BSplines

        formula = _require_formula(model, "Refitting")
        smoother = model.model.smoother
        if not isinstance(smoother, BSplines):
            msg = (
                f"Refitting a GAM is only supported for BSplines smoothers, "
                f"got {type(smoother).__name__}."
            )
            raise NotImplementedError(msg)
        names = list(self._smooth_names(model))
        x = np.asarray(smoother.x, dtype=float).reshape(len(smoother.x), -1)
        bounds = [
            {"lower_bound": float(x[:, j].min()), "upper_bound": float(x[:, j].max())}
            for j in range(x.shape[1])
        ]
        new_smoother = BSplines(
            data[names],
            df=[s.df for s in smoother.smoothers],
            degree=[s.degree for s in smoother.smoothers],
            knot_kwds=bounds,
        )
        return (
            type(model.model)
            .from_formula(
                formula,
                data=data,
                smoother=new_smoother,
                alpha=model.model.alpha,
                family=model.model.family,
            )
            .fit()
        )

    @staticmethod
    def _smooth_names(model: Any) -> list[str]:
        return [str(v) for v in model.model.smoother.variable_names]


# ------------------------------------------------------------------ #
# DiscreteFamily
# ------------------------------------------------------------------ #
#
# statsmodels discrete-choice and count models (``Logit``, ``Probit``,
# ``Poisson``, ``NegativeBinomial``, ...) are not GLMs and carry no
# ``family`` object, but their predict routine evaluates either the
# linear predictor (``which="linear"``) or the mean.  The link is read
# from the model where it exposes one, otherwise from its class.

_DISCRETE_LINKS: dict[str, Any] = {
    "Logit": sm.families.links.Logit(),
    "Probit": sm.families.links.Probit(),
}


@dataclass(frozen=True)
class DiscreteFamily(_StatsmodelsFormulaMixin):
    """Binary and count models (``BinaryResults``, ``CountResults``)."""

    @property
    def name(self) -> str:
        return "discrete"

    @staticmethod
    def _link(model: Any) -> Any:
        inner = model.model
        link = getattr(inner, "link", None)
        if callable(link) and hasattr(link, "inverse_deriv"):
            return link
        return _DISCRETE_LINKS.get(type(inner).__name__, sm.families.links.Log())

    def family_info(self, model: Any) -> FamilyInfo:
        link = self._link(model)
        return FamilyInfo(
            name=type(model.model).__name__.lower(),
            is_linear=False,
            link=link,
            inverse_link=link.inverse,
            inverse_link_deriv=link.inverse_deriv,
        )

    def supports_prediction_interval(self, model: Any) -> bool:  # noqa: ARG002
        return False

    def residual_df(self, model: Any) -> float:  # noqa: ARG002
        return float(np.inf)

    def native_predict(
        self,
        model: Any,
        data: pd.DataFrame | None,
        type: str = "link",
        re_form: str | None = None,  # noqa: ARG002
    ) -> NativePrediction:
        """Linear predictor with its Wald SE, or the mean without one.

        The SE is ``sqrt(diag(X V X'))`` over the mean parameters;
        extra parameters such as the negative binomial ``alpha`` are
        excluded.
        """
        if type != "link":
            mean = model.predict(exog=data, which="mean")
            return NativePrediction(fit=np.asarray(mean, dtype=float))
        eta = np.asarray(model.predict(exog=data, which="linear"), dtype=float)
        if data is None:
            X = np.asarray(model.model.exog, dtype=float)
        else:
            X = _design_matrix(model, data)
        k = X.shape[1]
        cov = np.asarray(model.cov_params())[:k, :k]
        se = np.sqrt(np.einsum("ij,jk,ik->i", X, cov, X))
        return NativePrediction(fit=eta, se=se)

    def native_ci(
        self,
        model: Any,  # noqa: ARG002
        native: NativePrediction,  # noqa: ARG002
        data: pd.DataFrame | None,  # noqa: ARG002
        ci_type: str,  # noqa: ARG002
        ci: float,  # noqa: ARG002
    ) -> pd.DataFrame | None:
        return None

    def native_refit(self, model: Any, data: pd.DataFrame) -> Any:
        """Refit with the same formula (offsets and exposure are dropped)."""
        formula = _require_formula(model, "Refitting")
        return type(model.model).from_formula(formula, data=data).fit(disp=0)


# ------------------------------------------------------------------ #
# DecompositionFamily
# ------------------------------------------------------------------ #
#
# Factor-analytic models do not predict an outcome; their
# "predictions" are component / factor scores, one row per
# observation and one column per component.  No link, no interval.


@dataclass(frozen=True)
class DecompositionFamily:
    """Component scores from PCA / factor analysis.

    Supports scikit-learn decompositions (anything with
    ``transform``) and statsmodels ``FactorResults`` /
    ``PCA`` objects.
    """

    @property
    def name(self) -> str:
        return "decomposition"

    @property
    def posterior_sampling(self) -> bool:
        return False

    def family_info(self, model: Any) -> FamilyInfo:  # noqa: ARG002
        return _linear_info("scores")

    def find_variables(self, model: Any) -> VariableRoles:
        names = getattr(model, "feature_names_in_", None)
        if names is None:
            names = getattr(model, "endog_names", None)
        if names is None:
            return VariableRoles()
        return VariableRoles(fixed=tuple(str(n) for n in names))

    def get_data(self, model: Any) -> pd.DataFrame | None:  # noqa: ARG002
        return None

    def supports_prediction_interval(self, model: Any) -> bool:  # noqa: ARG002
        return False

    def residual_df(self, model: Any) -> float:  # noqa: ARG002
        return float(np.inf)

    def native_predict(
        self,
        model: Any,
        data: pd.DataFrame | None,
        type: str = "response",  # noqa: ARG002
        re_form: str | None = None,  # noqa: ARG002
    ) -> NativePrediction:
        """Return component scores of shape ``(n, k)``."""
        if hasattr(model, "transform") and hasattr(model, "fit"):
            if data is None:
                msg = (
                    f"{model.__class__.__name__} does not store its training "
                    f"data; pass the data to score (either the original "
                    f"or a new one)."
                )
                raise ValueError(msg)
            names = getattr(model, "feature_names_in_", None)
            X = data[list(names)] if names is not None else data
            return NativePrediction(fit=np.asarray(model.transform(X), dtype=float))
        if hasattr(model, "factor_scoring"):
            endog = None if data is None else np.asarray(data, dtype=float)
            return NativePrediction(
                fit=np.asarray(model.factor_scoring(endog=endog), dtype=float)
            )
        if hasattr(model, "factors"):
            if data is not None:
                msg = "statsmodels PCA can only return scores for its own data."
                raise ValueError(msg)
            return NativePrediction(fit=np.asarray(model.factors, dtype=float))
        msg = f"Cannot compute component scores for {model.__class__.__name__}."
        raise TypeError(msg)

    def native_ci(
        self,
        model: Any,  # noqa: ARG002
        native: NativePrediction,  # noqa: ARG002
        data: pd.DataFrame | None,  # noqa: ARG002
        ci_type: str,  # noqa: ARG002
        ci: float,  # noqa: ARG002
    ) -> pd.DataFrame | None:
        return None

    def native_refit(self, model: Any, data: pd.DataFrame) -> Any:
        raise NotImplementedError("Component scores cannot be bootstrapped.")

    def native_simulate(self, model: Any, rng: np.random.Generator) -> np.ndarray:
        raise NotImplementedError("Decompositions have no simulation routine.")

    def posterior_draws(
        self,
        model: Any,
        data: pd.DataFrame | None,
        predict: str,
        iterations: int | None,
        re_form: str | None,
        rng: np.random.Generator,
    ) -> np.ndarray:
        raise NotImplementedError("Decompositions have no posterior.")

    @staticmethod
    def score_names(model: Any, k: int) -> list[str]:
        """Column names for the score matrix."""
        if hasattr(model, "get_feature_names_out"):
            try:
                names = [str(n) for n in model.get_feature_names_out()]
            except (AttributeError, ValueError):
                names = []
            if len(names) == k:
                return names
        return [f"Component_{i + 1}" for i in range(k)]


# ------------------------------------------------------------------ #
# DefaultFamily
# ------------------------------------------------------------------ #
#
# Fallback for any object that exposes ``predict`` (scikit-learn
# regressors, custom models) or ``fittedvalues``.  Predictions are
# taken as-is on the response scale with no SE.  The link behind them is
# unknown, so link-scale requests are refused by the argument normaliser.


@dataclass(frozen=True)
class DefaultFamily:
    """Fallback adaptor: ``model.predict(data)`` or ``fittedvalues``."""

    @property
    def name(self) -> str:
        return "default"

    @property
    def posterior_sampling(self) -> bool:
        return False

    def family_info(self, model: Any) -> FamilyInfo:  # noqa: ARG002
        """Predictions are taken as-is; the link behind them is unknown."""
        return FamilyInfo(
            name="unknown",
            is_linear=True,
            link=None,
            inverse_link=_IDENTITY.inverse,
            inverse_link_deriv=_IDENTITY.inverse_deriv,
        )

    def find_variables(self, model: Any) -> VariableRoles:
        names = getattr(model, "feature_names_in_", None)
        if names is not None:
            return VariableRoles(fixed=tuple(str(n) for n in names))
        frame = _model_frame(model)
        response, fixed = _formula_variables(
            _model_formula(model), frame.columns if frame is not None else None
        )
        return VariableRoles(response=response, fixed=fixed)

    def get_data(self, model: Any) -> pd.DataFrame | None:
        return _model_frame(model)

    def supports_prediction_interval(self, model: Any) -> bool:  # noqa: ARG002
        return False

    def residual_df(self, model: Any) -> float:
        df_resid = getattr(model, "df_resid", None)
        return float(df_resid) if df_resid is not None else float(np.inf)

    def native_predict(
        self,
        model: Any,
        data: pd.DataFrame | None,
        type: str = "response",  # noqa: ARG002
        re_form: str | None = None,  # noqa: ARG002
    ) -> NativePrediction:
        if data is not None and hasattr(model, "predict"):
            names = getattr(model, "feature_names_in_", None)
            X = data[list(names)] if names is not None else data
            return NativePrediction(fit=np.asarray(model.predict(X), dtype=float))
        fitted = getattr(model, "fittedvalues", None)
        if fitted is None:
            msg = (
                f"{model.__class__.__name__} has no stored fitted values; "
                f"pass the data to predict on."
            )
            raise ValueError(msg)
        return NativePrediction(fit=np.asarray(fitted, dtype=float))

    def native_ci(
        self,
        model: Any,  # noqa: ARG002
        native: NativePrediction,  # noqa: ARG002
        data: pd.DataFrame | None,  # noqa: ARG002
        ci_type: str,  # noqa: ARG002
        ci: float,  # noqa: ARG002
    ) -> pd.DataFrame | None:
        return None

    def native_refit(self, model: Any, data: pd.DataFrame) -> Any:
        formula = _model_formula(model)
        if formula is not None and hasattr(model.model, "from_formula"):
            return type(model.model).from_formula(formula, data=data).fit()
        msg = (
            f"Case resampling needs a refit routine; "
            f"{type(model).__name__} does not provide one."
        )
        raise NotImplementedError(msg)

    def native_simulate(self, model: Any, rng: np.random.Generator) -> np.ndarray:
        raise NotImplementedError("DefaultFamily has no simulation routine.")

    def posterior_draws(
        self,
        model: Any,
        data: pd.DataFrame | None,
        predict: str,
        iterations: int | None,
        re_form: str | None,
        rng: np.random.Generator,
    ) -> np.ndarray:
        raise NotImplementedError("DefaultFamily has no posterior.")


# ------------------------------------------------------------------ #
# Family registry
# ------------------------------------------------------------------ #

_FAMILIES: dict[str, type] = {}
"""Registry mapping class tags to concrete PredictionFamily classes."""


def register_family(tag: str, cls: type) -> None:
    """Register a concrete ``PredictionFamily`` class under a class tag.

    Args:
        tag: A class name that appears on the MRO of the model objects
            this adaptor handles (e.g. ``"GLMResults"``).
        cls: A class implementing the ``PredictionFamily`` protocol.

    Raises:
        TypeError: If *cls* does not satisfy the ``PredictionFamily``
            protocol.
    """
    # runtime_checkable protocols with non-method members do not
    # support issubclass(); use isinstance() on a sentinel instance.
    try:
        instance = cls()
    except Exception:  # noqa: BLE001
        msg = f"{cls!r} could not be instantiated for protocol check."
        raise TypeError(msg) from None
    if not isinstance(instance, PredictionFamily):
        msg = f"{cls!r} does not implement the PredictionFamily protocol."
        raise TypeError(msg)
    _FAMILIES[tag] = cls


def resolve_family(
    model: Any,
    family: PredictionFamily | None = None,
) -> PredictionFamily:
    """Resolve the adaptor for *model*.

    When *family* is already a ``PredictionFamily`` instance, it is
    returned as-is (pass-through), so callers can force an adaptor.

    Otherwise the model's class tags are walked most-derived first and
    the first registered adaptor wins.  Objects with no registered tag
    but a ``predict`` method or ``fittedvalues`` attribute fall back to
    :class:`DefaultFamily`.

    Raises:
        TypeError: If no adaptor applies to *model*.
    """
    if family is not None:
        if not isinstance(family, PredictionFamily):
            msg = f"{family!r} does not implement the PredictionFamily protocol."
            raise TypeError(msg)
        return family

    for tag in get_class_list(model):
        cls = _FAMILIES.get(tag)
        if cls is not None:
            logger.debug(
                "Resolved %s to %s via tag %r", type(model).__name__, cls.__name__, tag
            )
            return cls()

    if hasattr(model, "predict") or hasattr(model, "fittedvalues"):
        return DefaultFamily()

    available = ", ".join(sorted(_FAMILIES)) or "(none registered)"
    msg = (
        f"No prediction family registered for {type(model).__name__}. "
        f"Registered class tags: {available}."
    )
    raise TypeError(msg)


# ------------------------------------------------------------------ #
# Register built-in families
# ------------------------------------------------------------------ #

register_family("RegressionResults", LinearFamily)
register_family("GLMResults", GLMFamily)
register_family("GLMGamResults", GAMFamily)
register_family("BinaryResults", DiscreteFamily)
register_family("CountResults", DiscreteFamily)
# Two-part count models mix two linear predictors.
for _tag in ("ZeroInflatedResults", "TruncatedLFGenericResults", "HurdleCountResults"):
    register_family(_tag, DefaultFamily)
for _tag in (
    "PCA",
    "IncrementalPCA",
    "KernelPCA",
    "SparsePCA",
    "TruncatedSVD",
    "FactorAnalysis",
    "FastICA",
    "FactorResults",
):
    register_family(_tag, DecompositionFamily)
del _tag
