"""Tests for MixedLMFamily and BayesMixedGLMFamily."""

import numpy as np
import pandas as pd
import pytest
import statsmodels.formula.api as smf
from scipy.special import expit
from statsmodels.genmod.bayes_mixed_glm import BinomialBayesMixedGLM

from robust_predict.families import resolve_family
from robust_predict.families_mixed import (
    BayesMixedGLMFamily,
    MixedLMFamily,
    _parse_vc_name,
    _wants_random,
)

# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def rng():
    return np.random.default_rng(42)


@pytest.fixture()
def grouped_df(rng):
    n_groups, per_group = 8, 12
    groups = np.repeat([f"g{i}" for i in range(n_groups)], per_group)
    u = rng.normal(0.0, 1.0, n_groups)
    x = rng.standard_normal(n_groups * per_group)
    y = 1.0 + 2.0 * x + np.repeat(u, per_group) + rng.normal(0.0, 0.5, len(x))
    return pd.DataFrame({"y": y, "x": x, "g": groups})


@pytest.fixture()
def mixed_fit(grouped_df):
    return smf.mixedlm("y ~ x", data=grouped_df, groups="g").fit()


@pytest.fixture()
def bayes_df(rng):
    n_groups, per_group = 6, 30
    groups = np.repeat([f"v{i}" for i in range(n_groups)], per_group)
    u = rng.normal(0.0, 0.8, n_groups)
    x = rng.standard_normal(n_groups * per_group)
    p = expit(-0.2 + 1.0 * x + np.repeat(u, per_group))
    return pd.DataFrame({"y": rng.binomial(1, p), "x": x, "g": groups})


@pytest.fixture()
def bayes_fit(bayes_df):
    model = BinomialBayesMixedGLM.from_formula("y ~ x", {"g": "0 + C(g)"}, bayes_df)
    return model.fit_vb()


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


class TestWantsRandom:
    def test_none_includes(self):
        assert _wants_random(None, "g")

    def test_zero_excludes(self):
        assert not _wants_random("~0", "g")

    def test_formula_naming_group(self):
        assert _wants_random("~(1|g)", "g")
        assert not _wants_random("~(1|h)", "g")


class TestParseVcName:
    def test_categorical(self):
        assert _parse_vc_name("C(g)[v3]") == ("g", "v3")

    def test_treatment_coded(self):
        assert _parse_vc_name("C(site)[T.b]") == ("site", "b")

    def test_plain(self):
        assert _parse_vc_name("g[a]") == ("g", "a")

    def test_unparseable(self):
        assert _parse_vc_name("x") is None


# ------------------------------------------------------------------ #
# MixedLMFamily
# ------------------------------------------------------------------ #


class TestMixedLMFamily:
    def test_resolved(self, mixed_fit):
        assert isinstance(resolve_family(mixed_fit), MixedLMFamily)

    def test_group_column_detected(self, mixed_fit):
        assert MixedLMFamily().group_column(mixed_fit) == "g"

    def test_variables(self, mixed_fit):
        roles = MixedLMFamily().find_variables(mixed_fit)
        assert roles.response == "y"
        assert roles.fixed == ("x",)
        assert roles.random == ("g",)

    def test_conditional_prediction_matches_fitted(self, mixed_fit, grouped_df):
        native = MixedLMFamily().native_predict(mixed_fit, grouped_df)
        assert np.allclose(native.fit, mixed_fit.fittedvalues, atol=1e-4)

    def test_population_prediction(self, mixed_fit, grouped_df):
        native = MixedLMFamily().native_predict(mixed_fit, grouped_df, re_form="~0")
        assert np.allclose(native.fit, mixed_fit.predict(exog=grouped_df))

    def test_unseen_group_gets_population_prediction(self, mixed_fit):
        new = pd.DataFrame({"x": [0.0, 1.0], "g": ["unseen", "unseen"]})
        native = MixedLMFamily().native_predict(mixed_fit, new)
        assert np.allclose(native.fit, mixed_fit.predict(exog=new))

    def test_fixed_effect_se(self, mixed_fit, grouped_df):
        native = MixedLMFamily().native_predict(mixed_fit, grouped_df)
        assert native.se.shape == (len(grouped_df),)
        assert np.all(native.se > 0)

    def test_prediction_interval_wider(self, mixed_fit, grouped_df):
        fam = MixedLMFamily()
        native = fam.native_predict(mixed_fit, grouped_df)
        pred = fam.native_ci(mixed_fit, native, grouped_df, "prediction", 0.95)
        assert fam.native_ci(mixed_fit, native, grouped_df, "confidence", 0.95) is None
        assert np.all(pred["SE"] > native.se)

    def test_simulate_shape(self, mixed_fit, rng):
        y_star = MixedLMFamily().native_simulate(mixed_fit, rng)
        assert y_star.shape == (len(mixed_fit.model.endog),)

    def test_refit(self, mixed_fit, grouped_df):
        refit = MixedLMFamily().native_refit(mixed_fit, grouped_df)
        assert np.allclose(refit.fe_params, mixed_fit.fe_params, atol=1e-4)

    def test_parametric_bootstrap_flag(self):
        assert MixedLMFamily.parametric_bootstrap is True


# ------------------------------------------------------------------ #
# BayesMixedGLMFamily
# ------------------------------------------------------------------ #


class TestBayesMixedGLMFamily:
    def test_resolved(self, bayes_fit):
        assert isinstance(resolve_family(bayes_fit), BayesMixedGLMFamily)

    def test_variables(self, bayes_fit):
        roles = BayesMixedGLMFamily().find_variables(bayes_fit)
        assert roles.random == ("g",)
        assert "g" not in roles.fixed

    def test_nonlinear_logit(self, bayes_fit):
        info = BayesMixedGLMFamily().family_info(bayes_fit)
        assert not info.is_linear

    def test_draw_shapes(self, bayes_fit, bayes_df, rng):
        fam = BayesMixedGLMFamily()
        draws = fam.posterior_draws(bayes_fit, bayes_df, "expectation", 25, None, rng)
        assert draws.shape == (len(bayes_df), 25)
        assert np.all((draws > 0) & (draws < 1))

    def test_default_draw_count(self, bayes_fit, bayes_df, rng):
        fam = BayesMixedGLMFamily(default_draws=40)
        draws = fam.posterior_draws(bayes_fit, bayes_df, "link", None, None, rng)
        assert draws.shape[1] == 40

    def test_prediction_draws_are_outcomes(self, bayes_fit, bayes_df, rng):
        fam = BayesMixedGLMFamily()
        draws = fam.posterior_draws(bayes_fit, bayes_df, "prediction", 10, None, rng)
        assert set(np.unique(draws)) <= {0.0, 1.0}

    def test_rebuilt_design_matches_stored(self, bayes_fit, bayes_df):
        fam = BayesMixedGLMFamily()
        stored = fam.native_predict(bayes_fit, bayes_fit.model.data.frame)
        rebuilt = fam.native_predict(bayes_fit, bayes_df.copy())
        assert np.allclose(stored.fit, rebuilt.fit)

    def test_population_level_without_group_column(self, bayes_fit, bayes_df):
        fam = BayesMixedGLMFamily()
        new = bayes_df.drop(columns="g")
        native = fam.native_predict(bayes_fit, new, re_form="~0")
        expected = np.column_stack([np.ones(len(new)), new["x"]]) @ bayes_fit.fe_mean
        assert np.allclose(native.fit, expected)

    def test_no_refit(self, bayes_fit, bayes_df):
        with pytest.raises(NotImplementedError):
            BayesMixedGLMFamily().native_refit(bayes_fit, bayes_df)
