"""End-to-end tests for get_predicted()."""

import warnings

import numpy as np
import pandas as pd
import pytest
import statsmodels.api as sm
import statsmodels.formula.api as smf
from scipy.special import expit
from sklearn.decomposition import PCA
from sklearn.linear_model import LinearRegression
from statsmodels.gam.api import BSplines, GLMGam
from statsmodels.genmod.bayes_mixed_glm import BinomialBayesMixedGLM

from robust_predict import PredictionResult, get_predicted

# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def rng():
    return np.random.default_rng(42)


@pytest.fixture()
def linear_df(rng):
    n = 32
    df = pd.DataFrame({"x1": rng.standard_normal(n), "x2": rng.standard_normal(n)})
    df["y"] = 1.0 + 2.0 * df["x1"] - 1.0 * df["x2"] + rng.standard_normal(n) * 0.5
    return df


@pytest.fixture()
def ols_fit(linear_df):
    return smf.ols("y ~ x1 + x2", data=linear_df).fit()


@pytest.fixture()
def logit_df(rng):
    n = 150
    df = pd.DataFrame({"x": rng.standard_normal(n)})
    df["y"] = rng.binomial(1, expit(0.4 + 1.2 * df["x"]))
    return df


@pytest.fixture()
def logit_fit(logit_df):
    return smf.glm("y ~ x", data=logit_df, family=sm.families.Binomial()).fit()


@pytest.fixture()
def gaussian_glm_fit(linear_df):
    return smf.glm("y ~ x1 + x2", data=linear_df).fit()


@pytest.fixture()
def gam_fit(rng):
    n = 120
    df = pd.DataFrame({"x1": rng.standard_normal(n), "s": rng.uniform(0.0, 1.0, n)})
    df["y"] = 1.0 + df["x1"] + np.sin(2 * np.pi * df["s"]) + rng.standard_normal(n) * 0.3
    smoother = BSplines(df[["s"]], df=[6], degree=[3])
    return GLMGam.from_formula(
        "y ~ x1", data=df, smoother=smoother, alpha=np.array([1.0])
    ).fit()


@pytest.fixture()
def grouped_df(rng):
    n_groups, per_group = 8, 10
    g = np.repeat([f"g{i}" for i in range(n_groups)], per_group)
    x = rng.standard_normal(n_groups * per_group)
    y = 1.0 + 2.0 * x + np.repeat(rng.normal(0, 1, n_groups), per_group)
    return pd.DataFrame({"y": y + rng.normal(0, 0.5, len(x)), "x": x, "g": g})


@pytest.fixture()
def mixed_fit(grouped_df):
    return smf.mixedlm("y ~ x", data=grouped_df, groups="g").fit()


# ------------------------------------------------------------------ #
# Linear end-to-end scenario
# ------------------------------------------------------------------ #


class TestLinearScenario:
    def test_returns_result(self, ols_fit):
        assert isinstance(get_predicted(ols_fit), PredictionResult)

    def test_matches_fitted_values(self, ols_fit):
        result = get_predicted(ols_fit)
        assert len(result) == 32
        assert np.allclose(result.predictions, ols_fit.fittedvalues, atol=1e-6)

    def test_interval_table(self, ols_fit):
        result = get_predicted(ols_fit)
        assert list(result.ci_data.columns) == ["SE", "CI_low", "CI_high"]
        assert len(result.ci_data) == 32
        assert np.all(result.ci_data["CI_low"] < result.predictions)
        assert np.all(result.ci_data["CI_high"] > result.predictions)

    def test_bootstrap_draw_matrix(self, ols_fit):
        result = get_predicted(ols_fit, iterations=4, random_state=0)
        assert result.iterations.shape == (32, 4)
        assert list(result.iterations.columns) == ["iter_1", "iter_2", "iter_3", "iter_4"]
        assert result.predictions.shape == (32,)
        assert np.allclose(result.predictions, result.iterations.mean(axis=1))

    def test_bootstrap_interval_from_draws(self, ols_fit):
        result = get_predicted(ols_fit, iterations=20, random_state=0)
        draws = result.iterations.to_numpy()
        assert np.allclose(result.ci_data["CI_low"], np.quantile(draws, 0.025, axis=1))

    def test_link_equals_expectation(self, ols_fit):
        link = get_predicted(ols_fit, predict="link")
        expectation = get_predicted(ols_fit, predict="expectation")
        assert np.allclose(link.predictions, expectation.predictions)
        pd.testing.assert_frame_equal(link.ci_data, expectation.ci_data)

    def test_prediction_interval_wider(self, ols_fit):
        conf = get_predicted(ols_fit, predict="expectation").ci_data
        pred = get_predicted(ols_fit, predict="prediction").ci_data
        assert np.all(
            (pred["CI_high"] - pred["CI_low"]) >= (conf["CI_high"] - conf["CI_low"])
        )

    def test_resolved_request_recorded(self, ols_fit):
        result = get_predicted(ols_fit, predict="prediction", ci=0.9)
        assert result.ci == 0.9
        assert result.predict == "prediction"
        assert result.ci_type == "prediction"
        assert result.scale == "response"
        assert result.family == "linear"

    def test_new_data(self, ols_fit):
        new = pd.DataFrame({"x1": [0.0, 1.0], "x2": [0.0, 0.0]})
        result = get_predicted(ols_fit, data=new)
        assert np.allclose(result.predictions, ols_fit.predict(new))

    def test_ci_none(self, ols_fit):
        assert get_predicted(ols_fit, ci=None).ci_data is None

    def test_full_coverage_bootstrap_spans_draws(self, ols_fit):
        result = get_predicted(ols_fit, iterations=10, random_state=0, ci=1.0)
        draws = result.iterations.to_numpy()
        assert np.allclose(result.ci_data["CI_low"], draws.min(axis=1))
        assert np.allclose(result.ci_data["CI_high"], draws.max(axis=1))


# ------------------------------------------------------------------ #
# Binomial end-to-end scenario
# ------------------------------------------------------------------ #


class TestBinomialScenario:
    def test_link_through_inverse_equals_expectation(self, logit_fit):
        link = get_predicted(logit_fit, predict="link")
        expectation = get_predicted(logit_fit, predict="expectation")
        assert np.allclose(expit(link.predictions), expectation.predictions, atol=1e-6)

    def test_expectation_matches_fitted(self, logit_fit):
        result = get_predicted(logit_fit)
        assert np.allclose(result.predictions, logit_fit.fittedvalues, atol=1e-4)

    def test_link_scale_recorded(self, logit_fit):
        result = get_predicted(logit_fit, predict="link")
        assert result.scale == "link"
        assert result.ci_type == "confidence"

    def test_interval_within_unit_interval(self, logit_fit):
        ci = get_predicted(logit_fit).ci_data
        assert np.all(ci["CI_low"] > 0) and np.all(ci["CI_high"] < 1)

    def test_bounds_are_transformed_link_bounds(self, logit_fit):
        link = get_predicted(logit_fit, predict="link").ci_data
        response = get_predicted(logit_fit).ci_data
        assert np.allclose(response["CI_low"], expit(link["CI_low"]))
        assert np.allclose(response["CI_high"], expit(link["CI_high"]))

    def test_delta_method_se(self, logit_fit):
        link = get_predicted(logit_fit, predict="link")
        response = get_predicted(logit_fit)
        p = response.predictions
        assert np.allclose(response.ci_data["SE"], link.ci_data["SE"] * p * (1 - p))

    def test_prediction_downgraded_with_warning(self, logit_fit):
        with pytest.warns(UserWarning, match="Prediction intervals are not available"):
            result = get_predicted(logit_fit, predict="prediction")
        assert result.predict == "expectation"
        assert result.ci_type == "confidence"

    def test_downgrade_silent_when_not_verbose(self, logit_fit):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            get_predicted(logit_fit, predict="prediction", verbose=False)
        assert not [w for w in caught if "Prediction intervals" in str(w.message)]

    def test_bootstrap_draws_on_response_scale(self, logit_fit):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            result = get_predicted(logit_fit, iterations=5, random_state=0)
        draws = result.iterations.to_numpy()
        assert draws.shape == (150, 5)
        assert np.all((draws > 0) & (draws < 1))
        assert np.all((result.predictions > 0) & (result.predictions < 1))

    def test_full_coverage_spans_unit_interval(self, logit_fit):
        ci = get_predicted(logit_fit, ci=1.0).ci_data
        assert np.allclose(ci["CI_low"], 0.0)
        assert np.allclose(ci["CI_high"], 1.0)


# ------------------------------------------------------------------ #
# Gaussian GLM (linear link through the GLM adaptor)
# ------------------------------------------------------------------ #


class TestGaussianGLM:
    def test_matches_ols(self, gaussian_glm_fit, ols_fit):
        result = get_predicted(gaussian_glm_fit)
        assert np.allclose(result.predictions, ols_fit.fittedvalues)

    def test_prediction_interval_wider(self, gaussian_glm_fit):
        conf = get_predicted(gaussian_glm_fit).ci_data
        pred = get_predicted(gaussian_glm_fit, predict="prediction").ci_data
        assert np.all(
            (pred["CI_high"] - pred["CI_low"]) > (conf["CI_high"] - conf["CI_low"])
        )


# ------------------------------------------------------------------ #
# Smooth terms
# ------------------------------------------------------------------ #


class TestSmoothPinning:
    def test_missing_smooth_equals_training_mean(self, gam_fit):
        frame = gam_fit.model.data.frame
        without = frame[["x1"]].iloc[:10]
        pinned = frame[["x1", "s"]].iloc[:10].assign(s=frame["s"].mean())
        a = get_predicted(gam_fit, data=without)
        b = get_predicted(gam_fit, data=pinned)
        assert np.allclose(a.predictions, b.predictions)

    def test_include_smooth_false_pins(self, gam_fit):
        frame = gam_fit.model.data.frame
        a = get_predicted(gam_fit, include_smooth=False)
        b = get_predicted(gam_fit, data=frame.assign(s=frame["s"].mean()))
        assert np.allclose(a.predictions, b.predictions)

    def test_training_data_matches_fitted(self, gam_fit):
        result = get_predicted(gam_fit)
        assert np.allclose(result.predictions, gam_fit.fittedvalues, atol=1e-4)

    def test_prediction_downgraded(self, gam_fit):
        with pytest.warns(UserWarning, match="'gam' family"):
            get_predicted(gam_fit, predict="prediction")

    def test_bootstrap_draws(self, gam_fit):
        result = get_predicted(gam_fit, iterations=3, random_state=0, verbose=False)
        assert result.iterations.shape == (120, 3)
        assert np.allclose(result.predictions, result.iterations.mean(axis=1))
        assert np.all(result.ci_data["CI_low"] <= result.ci_data["CI_high"])

    def test_bootstrap_with_pinned_smooth(self, gam_fit):
        frame = gam_fit.model.data.frame
        result = get_predicted(
            gam_fit, data=frame[["x1"]].iloc[:5], iterations=2, random_state=1
        )
        assert result.iterations.shape == (5, 2)


# ------------------------------------------------------------------ #
# Random effects
# ------------------------------------------------------------------ #


class TestRandomEffects:
    def test_matches_conditional_fitted(self, mixed_fit):
        result = get_predicted(mixed_fit)
        assert np.allclose(result.predictions, mixed_fit.fittedvalues, atol=1e-4)

    def test_missing_group_column_does_not_raise(self, mixed_fit, grouped_df):
        new = grouped_df[["x"]]
        result = get_predicted(mixed_fit, data=new)
        assert np.allclose(result.predictions, mixed_fit.predict(exog=new))

    def test_exclusion_blanks_group_column(self, mixed_fit, grouped_df):
        result = get_predicted(mixed_fit, include_random=False)
        assert result.data["g"].isna().all()
        assert np.allclose(result.predictions, mixed_fit.predict(exog=grouped_df))

    def test_prediction_interval_wider(self, mixed_fit):
        conf = get_predicted(mixed_fit).ci_data
        pred = get_predicted(mixed_fit, predict="prediction").ci_data
        assert np.all(
            (pred["CI_high"] - pred["CI_low"]) > (conf["CI_high"] - conf["CI_low"])
        )

    def test_parametric_bootstrap(self, mixed_fit):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            result = get_predicted(mixed_fit, iterations=3, random_state=2, verbose=False)
        assert result.iterations.shape == (80, 3)


class TestPosteriorFamily:
    @pytest.fixture()
    def bayes_fit(self, rng):
        n_groups, per_group = 5, 30
        g = np.repeat([f"v{i}" for i in range(n_groups)], per_group)
        x = rng.standard_normal(n_groups * per_group)
        p = expit(0.2 + x + np.repeat(rng.normal(0, 0.7, n_groups), per_group))
        df = pd.DataFrame({"y": rng.binomial(1, p), "x": x, "g": g})
        model = BinomialBayesMixedGLM.from_formula("y ~ x", {"g": "0 + C(g)"}, df)
        return model.fit_vb()

    def test_draws_requested_count(self, bayes_fit):
        result = get_predicted(bayes_fit, iterations=30, random_state=0)
        assert result.iterations.shape == (150, 30)
        assert np.allclose(result.predictions, result.iterations.mean(axis=1))

    def test_expectation_on_response_scale(self, bayes_fit):
        result = get_predicted(bayes_fit, iterations=30, random_state=0)
        assert np.all((result.predictions > 0) & (result.predictions < 1))
        assert np.all(result.ci_data["CI_low"] <= result.ci_data["CI_high"])

    def test_link_draws_not_transformed(self, bayes_fit):
        result = get_predicted(bayes_fit, predict="link", iterations=30, random_state=0)
        assert np.any(result.iterations.to_numpy() < 0)

    def test_exclusion_drops_group_column(self, bayes_fit):
        result = get_predicted(
            bayes_fit, include_random=False, iterations=10, random_state=0
        )
        assert "g" not in result.data.columns


# ------------------------------------------------------------------ #
# Discrete-choice and count models
# ------------------------------------------------------------------ #


class TestDiscreteModels:
    @pytest.fixture()
    def discrete_logit(self, logit_df):
        return smf.logit("y ~ x", data=logit_df).fit(disp=0)

    def test_family_resolved(self, discrete_logit):
        assert get_predicted(discrete_logit).family == "discrete"

    def test_link_through_inverse_equals_expectation(self, discrete_logit):
        link = get_predicted(discrete_logit, predict="link")
        expectation = get_predicted(discrete_logit, predict="expectation")
        assert link.scale == "link"
        assert np.allclose(expit(link.predictions), expectation.predictions, atol=1e-6)

    def test_expectation_matches_model_predict(self, discrete_logit):
        result = get_predicted(discrete_logit)
        assert np.allclose(result.predictions, discrete_logit.predict(), atol=1e-6)

    def test_matches_binomial_glm(self, discrete_logit, logit_fit):
        a = get_predicted(discrete_logit, predict="link").ci_data
        b = get_predicted(logit_fit, predict="link").ci_data
        assert np.allclose(a["SE"], b["SE"], rtol=1e-3)

    def test_interval_within_unit_interval(self, discrete_logit):
        ci = get_predicted(discrete_logit).ci_data
        assert np.all(ci["CI_low"] > 0) and np.all(ci["CI_high"] < 1)

    def test_prediction_downgraded(self, discrete_logit):
        with pytest.warns(UserWarning, match="Prediction intervals are not available"):
            result = get_predicted(discrete_logit, predict="prediction")
        assert result.predict == "expectation"

    def test_poisson_link_is_log(self, rng):
        df = pd.DataFrame({"x": rng.standard_normal(100)})
        df["y"] = rng.poisson(np.exp(0.5 + 0.3 * df["x"]))
        fit = smf.poisson("y ~ x", data=df).fit(disp=0)
        link = get_predicted(fit, predict="link")
        expectation = get_predicted(fit)
        assert np.allclose(np.exp(link.predictions), expectation.predictions)


# ------------------------------------------------------------------ #
# Other model types
# ------------------------------------------------------------------ #


class TestDecomposition:
    def test_component_scores(self, linear_df):
        pca = PCA(n_components=2).fit(linear_df)
        result = get_predicted(pca, data=linear_df)
        assert result.predictions.shape == (32, 2)
        assert result.columns == ["pca0", "pca1"]
        assert result.ci_data is None
        assert result.family == "decomposition"

    def test_requires_data(self, linear_df):
        pca = PCA(n_components=2).fit(linear_df)
        with pytest.raises(ValueError, match="does not store its training data"):
            get_predicted(pca)


class TestDefaultFamily:
    def test_sklearn_regressor(self, linear_df):
        lr = LinearRegression().fit(linear_df[["x1", "x2"]], linear_df["y"])
        result = get_predicted(lr, data=linear_df)
        assert np.allclose(result.predictions, lr.predict(linear_df[["x1", "x2"]]))
        assert result.ci_data is None
        assert result.family == "default"

    def test_link_refused(self, linear_df):
        lr = LinearRegression().fit(linear_df[["x1", "x2"]], linear_df["y"])
        with pytest.raises(ValueError, match="Link-scale predictions are not available"):
            get_predicted(lr, data=linear_df, predict="link")


# ------------------------------------------------------------------ #
# Argument handling
# ------------------------------------------------------------------ #


class TestArgumentHandling:
    def test_data_first_swap(self, ols_fit):
        new = pd.DataFrame({"x1": [0.5], "x2": [-0.5]})
        result = get_predicted(new, ols_fit)
        assert np.allclose(result.predictions, ols_fit.predict(new))

    def test_dataframe_without_model(self, linear_df):
        with pytest.raises(ValueError, match="received a DataFrame as the model"):
            get_predicted(linear_df)

    def test_relation_alias(self, ols_fit):
        with pytest.warns(FutureWarning, match="deprecated"):
            result = get_predicted(ols_fit, predict="relation")
        assert result.predict == "expectation"

    def test_unknown_predict(self, ols_fit):
        with pytest.raises(ValueError, match="Unknown predict"):
            get_predicted(ols_fit, predict="classification")

    def test_unsupported_object(self):
        with pytest.raises(TypeError, match="No prediction family registered"):
            get_predicted(object())

    def test_newdata_alias(self, ols_fit):
        new = pd.DataFrame({"x1": [0.0, 1.0, 2.0], "x2": [0.0, 0.0, 0.0]})
        assert len(get_predicted(ols_fit, newdata=new)) == 3

    def test_custom_centrality(self, ols_fit):
        result = get_predicted(
            ols_fit, iterations=5, random_state=0, centrality_function=np.median
        )
        assert np.allclose(result.predictions, result.iterations.median(axis=1))

    def test_to_frame(self, ols_fit):
        frame = get_predicted(ols_fit, iterations=3, random_state=0).to_frame()
        assert list(frame.columns[:4]) == ["Predicted", "SE", "CI_low", "CI_high"]
        assert frame.shape == (32, 7)
