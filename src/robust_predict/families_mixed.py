"""Mixed-effects prediction families for clustered/grouped outcomes.

Implements the ``PredictionFamily`` protocol for two statsmodels model
types whose predictions can be conditioned on group-level effects:

* ``MixedLMFamily`` — linear mixed models (``MixedLMResults``)::

      y = Xβ + Zu + ε,   u ~ N(0, Ψ),   ε ~ N(0, σ²I)

  The conditional prediction for a row of group g is
  ``x'β̂ + z'û_g`` where ``û_g`` is the BLUP of group g.  Rows of
  unseen groups (or with the group column blanked because random
  effects were excluded) get the population-level prediction ``x'β̂``.
  Bootstrap replicates are parametric: a response is simulated from
  the conditional fitted values plus Gaussian noise and the model is
  refit.

* ``BayesMixedGLMFamily`` — variational / Laplace Bayesian mixed GLMs
  (``BayesMixedGLMResults``).  The approximate posterior is mean-field
  Gaussian over fixed effects and random-effect realisations, so draws
  are generated directly from ``(fe_mean, fe_sd)`` and
  ``(vc_mean, vc_sd)``.  These families carry their own uncertainty;
  the dispatcher never bootstraps or link-transforms them.

Random-effect columns in the prediction data are identified by
matching model-frame columns against the grouping structure stored on
the fitted model.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, ClassVar, final

import numpy as np
import pandas as pd
import statsmodels.api as sm

from .families import (
    NO_RANDOM_EFFECTS,
    FamilyInfo,
    NativePrediction,
    VariableRoles,
    _design_matrix,
    _formula_variables,
    _IDENTIFIER,
    _linear_info,
    _model_formula,
    _model_frame,
    _prediction_interval_from_scale,
    _require_formula,
    _StatsmodelsFormulaMixin,
)

logger = logging.getLogger(__name__)


def _wants_random(re_form: str | None, group: str | None) -> bool:
    """Decide whether *re_form* conditions on the random effects.

    ``None`` means all random effects, ``"~0"`` none; any other
    sub-formula includes them when it mentions the grouping variable
    (or when the grouping variable is unnamed).
    """
    if re_form is None:
        return True
    if re_form.replace(" ", "") in (NO_RANDOM_EFFECTS, "~-1", "0", "~NA"):
        return False
    if group is None:
        return True
    return group in _IDENTIFIER.findall(re_form)


# ------------------------------------------------------------------ #
# MixedLMFamily
# ------------------------------------------------------------------ #


@final
@dataclass(frozen=True)
class MixedLMFamily(_StatsmodelsFormulaMixin):
    """Linear mixed model (statsmodels ``MixedLMResults``)."""

    # Bootstrap by simulating responses rather than resampling rows.
    parametric_bootstrap: ClassVar[bool] = True

    @property
    def name(self) -> str:
        return "mixed_lm"

    def family_info(self, model: Any) -> FamilyInfo:  # noqa: ARG002
        return _linear_info()

    def find_variables(self, model: Any) -> VariableRoles:
        frame = _model_frame(model)
        columns = frame.columns if frame is not None else None
        response, fixed = _formula_variables(_model_formula(model), columns)
        group = self.group_column(model)
        random: list[str] = [group] if group is not None else []
        # Random slopes on fixed predictors stay fixed-effect columns.
        for name in self._re_names(model):
            if columns is None or name not in columns:
                continue
            if name not in random and name not in fixed:
                random.append(name)
        return VariableRoles(
            response=response,
            fixed=tuple(v for v in fixed if v != group),
            random=tuple(random),
        )

    def supports_prediction_interval(self, model: Any) -> bool:  # noqa: ARG002
        return True

    def residual_df(self, model: Any) -> float:
        return float(len(model.model.endog) - model.k_fe)

    # ---- Grouping structure ---------------------------------------

    @staticmethod
    def group_labels(model: Any) -> np.ndarray:
        """Return the group label of every training row."""
        inner = model.model
        labels = np.empty(len(inner.endog), dtype=object)
        for label, rows in inner.row_indices.items():
            labels[rows] = label
        return labels

    def group_column(self, model: Any) -> str | None:
        """Name of the model-frame column holding the group labels.

        ``None`` when the groups were passed as a free-standing array.
        """
        frame = _model_frame(model)
        if frame is None:
            return None
        labels = self.group_labels(model)
        if len(frame) != len(labels):
            return None
        for column in frame.columns:
            values = frame[column].to_numpy(dtype=object)
            if all(v == label for v, label in zip(values, labels)):
                return str(column)
        return None

    @staticmethod
    def _re_names(model: Any) -> list[str]:
        inner = model.model
        names = getattr(inner.data, "exog_re_names", None)
        if names is None:
            names = getattr(inner, "exog_re_names", None)
        return [str(n) for n in names or ()]

    def _re_formula(self, model: Any, group: str | None) -> str | None:
        """Rebuild the ``re_formula`` used at fit time, if any."""
        names = self._re_names(model)
        frame = _model_frame(model)
        columns = set(frame.columns) if frame is not None else set()
        slopes = [n for n in names if n in columns and n != group]
        if not slopes:
            return None
        has_intercept = len(slopes) < len(names)
        return "~" + ("" if has_intercept else "0 + ") + " + ".join(slopes)

    def _random_contribution(self, model: Any, data: pd.DataFrame) -> np.ndarray:
        """Return ``z'û_g`` for every row of *data* (0 for unseen groups)."""
        group = self.group_column(model)
        if group is None or group not in data.columns:
            return np.zeros(len(data))
        effects = model.random_effects
        out = np.zeros(len(data))
        groups = data[group].to_numpy(dtype=object)
        for i, label in enumerate(groups):
            if label is pd.NA or label not in effects:
                continue
            for name, value in effects[label].items():
                if name in data.columns and name != group:
                    z = float(data[name].iloc[i])
                else:
                    z = 1.0
                out[i] += z * float(value)
        return out

    # ---- Native routines -------------------------------------------

    def native_predict(
        self,
        model: Any,
        data: pd.DataFrame | None,
        type: str = "response",  # noqa: ARG002
        re_form: str | None = None,
    ) -> NativePrediction:
        """Fixed-effects prediction plus the selected BLUPs.

        The SE covers the fixed-effects part only
        (``sqrt(diag(X V_β X'))``); the BLUPs are treated as known.
        """
        if data is None:
            data = _model_frame(model)
        fixed = np.asarray(model.predict(exog=data), dtype=float)
        if _wants_random(re_form, self.group_column(model)):
            fixed = fixed + self._random_contribution(model, data)

        X = _design_matrix(model, data)
        k_fe = model.k_fe
        cov_fe = np.asarray(model.cov_params())[:k_fe, :k_fe]
        se = np.sqrt(np.einsum("ij,jk,ik->i", X, cov_fe, X))
        return NativePrediction(fit=fixed, se=se)

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

    def native_simulate(self, model: Any, rng: np.random.Generator) -> np.ndarray:
        """Draw ``y* = fitted + ε``, ``ε ~ N(0, σ̂²)``.

        ``fittedvalues`` of a MixedLM already include the BLUPs, so
        the simulated responses keep the estimated group structure.
        """
        fitted = np.asarray(model.fittedvalues, dtype=float)
        return fitted + rng.normal(0.0, np.sqrt(float(model.scale)), size=len(fitted))

    def native_refit(self, model: Any, data: pd.DataFrame) -> Any:
        """Refit with the same fixed formula, grouping, and RE formula."""
        formula = _require_formula(model, "Refitting")
        group = self.group_column(model)
        groups: str | np.ndarray = (
            group if group is not None else self.group_labels(model)
        )
        return (
            type(model.model)
            .from_formula(
                formula,
                data=data,
                groups=groups,
                re_formula=self._re_formula(model, group),
            )
            .fit(reml=getattr(model, "method", "REML") == "REML")
        )


# ------------------------------------------------------------------ #
# BayesMixedGLMFamily
# ------------------------------------------------------------------ #
#
# Variance-component columns of a BayesMixedGLM are named after the
# patsy terms that built them, e.g. ``C(village)[v12]`` for level
# ``v12`` of ``village``.  Parsing the name back into
# (variable, level) lets the random design be rebuilt for new data.

_VC_CATEGORICAL = re.compile(r"^C\(\s*([^,)\s]+)[^)]*\)\[(?:T\.)?(.*)\]$")
_VC_PLAIN = re.compile(r"^([A-Za-z_][A-Za-z0-9_.]*)\[(?:T\.)?(.*)\]$")


def _parse_vc_name(name: str) -> tuple[str, str] | None:
    for pattern in (_VC_CATEGORICAL, _VC_PLAIN):
        match = pattern.match(name)
        if match is not None:
            return match.group(1), match.group(2)
    return None


@final
@dataclass(frozen=True)
class BayesMixedGLMFamily(_StatsmodelsFormulaMixin):
    """Bayesian mixed GLM (statsmodels ``BayesMixedGLMResults``).

    Attributes:
        default_draws: Number of posterior draws when the caller does
            not request a specific number of iterations.
    """

    default_draws: int = 1000

    @property
    def name(self) -> str:
        return "bayes_mixed_glm"

    @property
    def posterior_sampling(self) -> bool:
        return True

    def family_info(self, model: Any) -> FamilyInfo:
        family = model.model.family
        link = family.link
        return FamilyInfo(
            name=type(family).__name__.lower(),
            is_linear=isinstance(link, sm.families.links.Identity),
            link=link,
            inverse_link=link.inverse,
            inverse_link_deriv=link.inverse_deriv,
        )

    def find_variables(self, model: Any) -> VariableRoles:
        frame = _model_frame(model)
        columns = frame.columns if frame is not None else None
        response, fixed = _formula_variables(_model_formula(model), columns)
        random: list[str] = []
        for name in model.model.vc_names:
            parsed = _parse_vc_name(str(name))
            if parsed is None:
                continue
            var = parsed[0]
            if columns is not None and var in columns and var not in random:
                random.append(var)
        return VariableRoles(
            response=response,
            fixed=tuple(v for v in fixed if v not in random),
            random=tuple(random),
        )

    def supports_prediction_interval(self, model: Any) -> bool:  # noqa: ARG002
        return True

    def residual_df(self, model: Any) -> float:  # noqa: ARG002
        return float(np.inf)

    def _random_design(self, model: Any, data: pd.DataFrame) -> np.ndarray:
        """Indicator matrix of the variance-component levels for *data*."""
        vc_names = [str(n) for n in model.model.vc_names]
        Z = np.zeros((len(data), len(vc_names)))
        for j, name in enumerate(vc_names):
            parsed = _parse_vc_name(name)
            if parsed is None or parsed[0] not in data.columns:
                logger.debug("Variance component %r not rebuilt for new data", name)
                continue
            var, level = parsed
            Z[:, j] = (data[var].astype(str) == level).to_numpy(dtype=float)
        return Z

    def _linear_predictor_parts(
        self, model: Any, data: pd.DataFrame | None, re_form: str | None
    ) -> tuple[np.ndarray, np.ndarray | None]:
        training = _model_frame(model)
        if data is None:
            data = training
        roles = self.find_variables(model)
        include = re_form != NO_RANDOM_EFFECTS and all(
            v in data.columns for v in roles.random
        )
        if data is training:
            # Scoring the training rows: reuse the stored design.
            X = np.asarray(model.model.exog, dtype=float)
            exog_vc = model.model.exog_vc
            Z = exog_vc.toarray() if hasattr(exog_vc, "toarray") else np.asarray(exog_vc)
            return X, (Z if include else None)
        X = _design_matrix(model, data)
        Z = self._random_design(model, data) if include else None
        return X, Z

    def native_predict(
        self,
        model: Any,
        data: pd.DataFrame | None,
        type: str = "link",
        re_form: str | None = None,
    ) -> NativePrediction:
        """Posterior-mean linear predictor and its posterior SD."""
        X, Z = self._linear_predictor_parts(model, data, re_form)
        eta = X @ np.asarray(model.fe_mean)
        var = (X**2) @ np.asarray(model.fe_sd) ** 2
        if Z is not None:
            eta = eta + Z @ np.asarray(model.vc_mean)
            var = var + (Z**2) @ np.asarray(model.vc_sd) ** 2
        if type == "response":
            info = self.family_info(model)
            return NativePrediction(fit=info.inverse_link(eta))
        return NativePrediction(fit=eta, se=np.sqrt(var))

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
        raise NotImplementedError(
            "Bayesian models carry posterior uncertainty; refitting is not used."
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
        """Draw from the mean-field posterior on the requested scale.

        * ``"link"`` — linear predictor ``η = Xβ + Zu``;
        * ``"expectation"`` — ``g⁻¹(η)``;
        * ``"prediction"`` — an outcome drawn from the response
          distribution at ``g⁻¹(η)``.
        """
        X, Z = self._linear_predictor_parts(model, data, re_form)
        n_draws = int(iterations) if iterations else self.default_draws

        fe_mean = np.asarray(model.fe_mean, dtype=float)
        fe_sd = np.asarray(model.fe_sd, dtype=float)
        beta = rng.normal(fe_mean, fe_sd, size=(n_draws, len(fe_mean)))
        eta = X @ beta.T
        if Z is not None:
            vc_mean = np.asarray(model.vc_mean, dtype=float)
            vc_sd = np.asarray(model.vc_sd, dtype=float)
            u = rng.normal(vc_mean, vc_sd, size=(n_draws, len(vc_mean)))
            eta = eta + Z @ u.T

        if predict == "link":
            return eta
        mu = self.family_info(model).inverse_link(eta)
        if predict == "expectation":
            return mu

        family = model.model.family
        if isinstance(family, sm.families.Binomial):
            return rng.binomial(1, mu).astype(float)
        if isinstance(family, sm.families.Poisson):
            return rng.poisson(mu).astype(float)
        msg = (
            f"Posterior predictive draws are not available for the "
            f"{type(family).__name__} family."
        )
        raise ValueError(msg)


# ------------------------------------------------------------------ #
# Registry
# ------------------------------------------------------------------ #

from .families import register_family  # noqa: E402

register_family("MixedLMResults", MixedLMFamily)
register_family("BayesMixedGLMResults", BayesMixedGLMFamily)
