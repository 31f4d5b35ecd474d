"""robust_predict — Predictions with calibrated uncertainty for fitted models.

Computes fitted values for statsmodels and scikit-learn model objects
(linear, generalised linear, additive, linear mixed, Bayesian mixed,
and factor-analytic models) on the link or response scale, with
confidence or prediction intervals from the model's own routines, a
delta-method transform, a case or parametric bootstrap, or posterior
draws.

Public API:
    .. autosummary::
        get_predicted
        PredictionResult
        is_model
        is_regression_model
        get_n_jobs
        set_n_jobs
        get_verbose
        set_verbose
        PredictionFamily
        FamilyInfo
        VariableRoles
        NativePrediction
        LinearFamily
        GLMFamily
        GAMFamily
        MixedLMFamily
        BayesMixedGLMFamily
        DecompositionFamily
        DefaultFamily
        DiscreteFamily
        resolve_family
        register_family
        bootstrap_draws
        centrality_from_draws
        transform_predictions
"""

from ._config import get_n_jobs, get_verbose, set_n_jobs, set_verbose
from ._results import PredictionResult
from .classify import is_model, is_regression_model
from .core import get_predicted
from .families import (
    DecompositionFamily,
    DefaultFamily,
    DiscreteFamily,
    FamilyInfo,
    GAMFamily,
    GLMFamily,
    LinearFamily,
    NativePrediction,
    PredictionFamily,
    VariableRoles,
    register_family,
    resolve_family,
)
from .families_mixed import BayesMixedGLMFamily, MixedLMFamily
from .resampling import bootstrap_draws, centrality_from_draws
from .transform import transform_predictions

__all__ = [
    "get_predicted",
    "PredictionResult",
    "is_model",
    "is_regression_model",
    "get_n_jobs",
    "set_n_jobs",
    "get_verbose",
    "set_verbose",
    "PredictionFamily",
    "FamilyInfo",
    "VariableRoles",
    "NativePrediction",
    "LinearFamily",
    "GLMFamily",
    "GAMFamily",
    "MixedLMFamily",
    "BayesMixedGLMFamily",
    "DecompositionFamily",
    "DefaultFamily",
    "DiscreteFamily",
    "resolve_family",
    "register_family",
    "bootstrap_draws",
    "centrality_from_draws",
    "transform_predictions",
]

__version__ = "0.1.0"
