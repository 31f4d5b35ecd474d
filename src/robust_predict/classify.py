"""Model classification — is this object something we can predict from?

Two predicates answer the question at different strictness levels:

* :func:`is_model` — ``True`` for any supported fitted model *or*
  statistical-test result (anything an analysis pipeline can consume).
* :func:`is_regression_model` — ``True`` only for actual regression
  models; hypothesis-test results and pairwise-comparison objects are
  excluded.

Both work by intersecting the object's **class tags** with a static
registry of known class names.  The tags of an object are the names
on its MRO, so subclasses of a registered class are recognised
automatically.  statsmodels hands out thin ``*ResultsWrapper`` objects
whose real class lives on ``._results``; the wrapped class's MRO is
included as well.

One composite shape is special-cased: ``gamm4``-style fits are
returned as a plain mapping holding both a mixed-model part (``"mer"``)
and an additive-model part (``"gam"``).  Such a mapping is given the
synthesized tag ``"gamm4"``.

Neither predicate has a failure mode — unrecognised objects simply
return ``False``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

# ------------------------------------------------------------------ #
# Static registry
# ------------------------------------------------------------------ #
#
# Grouped by provenance.  Names are matched exactly against class
# names on the object's MRO (and on the MRO of ``obj._results`` for
# statsmodels wrappers).

_STATSMODELS_CLASSES = frozenset(
    {
        # Linear regression
        "RegressionResults",
        "OLSResults",
        "RegressionResultsWrapper",
        "OLSResultsWrapper",
        "QuantRegResults",
        "RecursiveLSResults",
        "RollingRegressionResults",
        # GLM / GAM / robust
        "GLMResults",
        "GLMResultsWrapper",
        "GLMGamResults",
        "GLMGamResultsWrapper",
        "RLMResults",
        "RLMResultsWrapper",
        "GEEResults",
        "GEEResultsWrapper",
        "OrdinalGEEResults",
        "NominalGEEResults",
        # Discrete choice / counts
        "BinaryResults",
        "LogitResults",
        "ProbitResults",
        "CountResults",
        "PoissonResults",
        "NegativeBinomialResults",
        "GeneralizedPoissonResults",
        "ZeroInflatedPoissonResults",
        "ZeroInflatedNegativeBinomialResults",
        "TruncatedLFPoissonResults",
        "HurdleCountResults",
        "MultinomialResults",
        "OrderedResults",
        "BetaResults",
        "ConditionalResults",
        # Mixed / Bayesian mixed
        "MixedLMResults",
        "MixedLMResultsWrapper",
        "BayesMixedGLMResults",
        # Survival / duration
        "PHRegResults",
        "PHRegResultsWrapper",
        # Time series
        "ARIMAResults",
        "ARIMAResultsWrapper",
        "AutoRegResults",
        "SARIMAXResults",
        "ExponentialSmoothingResults",
        "HoltWintersResults",
        "VARResults",
        "UnobservedComponentsResults",
        # Multivariate / factor-analytic
        "FactorResults",
        "PCA",
        "MANOVA",
        # ANOVA / comparisons / tests
        "ContrastResults",
        "TukeyHSDResults",
        "MultiComparison",
        "AnovaResults",
    }
)

_SKLEARN_CLASSES = frozenset(
    {
        # Linear models
        "LinearRegression",
        "Ridge",
        "RidgeCV",
        "Lasso",
        "LassoCV",
        "ElasticNet",
        "ElasticNetCV",
        "Lars",
        "LassoLars",
        "HuberRegressor",
        "QuantileRegressor",
        "TheilSenRegressor",
        "RANSACRegressor",
        "SGDRegressor",
        "BayesianRidge",
        "ARDRegression",
        "PoissonRegressor",
        "GammaRegressor",
        "TweedieRegressor",
        "LogisticRegression",
        "LogisticRegressionCV",
        # Factor-analytic / decompositions
        "PCA",
        "IncrementalPCA",
        "KernelPCA",
        "SparsePCA",
        "TruncatedSVD",
        "FactorAnalysis",
        "FastICA",
        # Other estimators
        "KMeans",
        "GaussianProcessRegressor",
        "RandomForestRegressor",
        "GradientBoostingRegressor",
        "Pipeline",
    }
)

_SCIPY_CLASSES = frozenset(
    {
        # Hypothesis-test result objects
        "TtestResult",
        "Ttest_indResult",
        "Ttest_relResult",
        "Ttest_1sampResult",
        "WilcoxonResult",
        "MannwhitneyuResult",
        "KruskalResult",
        "Chi2ContingencyResult",
        "PearsonRResult",
        "SignificanceResult",
        "LinregressResult",
        "TukeyHSDResult",
    }
)

_COMPOSITE_CLASSES = frozenset({"gamm4"})

# Statistical tests and pairwise comparisons: analysable, but not
# regression models.
_NON_REGRESSION_CLASSES = frozenset(
    {
        "ContrastResults",
        "TukeyHSDResults",
        "MultiComparison",
        "AnovaResults",
        "TtestResult",
        "Ttest_indResult",
        "Ttest_relResult",
        "Ttest_1sampResult",
        "WilcoxonResult",
        "MannwhitneyuResult",
        "KruskalResult",
        "Chi2ContingencyResult",
        "PearsonRResult",
        "SignificanceResult",
        "TukeyHSDResult",
    }
)

_MODEL_CLASSES = (
    _STATSMODELS_CLASSES | _SKLEARN_CLASSES | _SCIPY_CLASSES | _COMPOSITE_CLASSES
)


# ------------------------------------------------------------------ #
# Class tags
# ------------------------------------------------------------------ #


def get_class_list(x: Any) -> list[str]:
    """Return the class tags of *x*, most-derived first.

    Tags are the ``__name__`` of every class on ``type(x).__mro__``.
    For statsmodels results wrappers the MRO of the wrapped
    ``_results`` object is appended.  A bare mapping holding both
    ``"mer"`` and ``"gam"`` gets the synthesized tag ``"gamm4"``
    prepended, since its own type (``dict``) says nothing.

    Duplicates are removed while preserving order; ``object`` is
    dropped because it would match everything.
    """
    tags: list[str] = []

    if isinstance(x, Mapping) and "mer" in x and "gam" in x:
        tags.append("gamm4")

    tags.extend(cls.__name__ for cls in type(x).__mro__)

    inner = getattr(x, "_results", None)
    if inner is not None and inner is not x:
        tags.extend(cls.__name__ for cls in type(inner).__mro__)

    seen: set[str] = set()
    ordered: list[str] = []
    for tag in tags:
        if tag == "object" or tag in seen:
            continue
        seen.add(tag)
        ordered.append(tag)
    return ordered


def get_model_classes(regression_only: bool = False) -> frozenset[str]:
    """Return the registry of supported class names.

    Args:
        regression_only: Drop hypothesis-test and pairwise-comparison
            classes.
    """
    if regression_only:
        return _MODEL_CLASSES - _NON_REGRESSION_CLASSES
    return _MODEL_CLASSES


def is_model(x: Any) -> bool:
    """Check whether *x* is a supported model or statistical-test object.

    Examples:
        >>> import statsmodels.formula.api as smf
        >>> import pandas as pd
        >>> df = pd.DataFrame({"y": [1.0, 2.1, 2.9, 4.2], "x": [1, 2, 3, 4]})
        >>> is_model(smf.ols("y ~ x", data=df).fit())
        True
        >>> is_model(df)
        False
    """
    return not get_model_classes().isdisjoint(get_class_list(x))


def is_regression_model(x: Any) -> bool:
    """Stricter variant of :func:`is_model` — regression models only.

    Returns ``False`` for statistical-test results (e.g.
    ``scipy.stats.ttest_ind``) and pairwise comparisons (e.g.
    ``pairwise_tukeyhsd``), which :func:`is_model` accepts.
    """
    return not get_model_classes(regression_only=True).isdisjoint(get_class_list(x))


__all__ = [
    "get_class_list",
    "get_model_classes",
    "is_model",
    "is_regression_model",
]
