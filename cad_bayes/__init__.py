"""Bayesian analysis of CAD-predicted vs. actual 3D-print weights."""
from .data_prep import DataConfig, clean_filament_frame, load_filament_data
from .errors import CadBayesError, FailedApproximation, InvalidInput
from .importance import ImportanceResult, WeightedSample, do_importance, log_sum_exp, normalize_log_weights
from .intervals import make_credible_interval, predictive_interval, summarize_posterior, weighted_quantile
from .laplace import LaplaceApproximation, fit_laplace, ols_start
from .model import (
    Observations,
    PriorConfig,
    log_likelihood,
    log_posterior_density,
    log_posterior_gradient,
    log_posterior_hessian,
    log_prior_density,
    theta_to_beta,
)
from .pipeline import PosteriorResult, SamplerConfig, run_importance_pipeline

__all__ = [
    "CadBayesError",
    "DataConfig",
    "FailedApproximation",
    "ImportanceResult",
    "InvalidInput",
    "LaplaceApproximation",
    "Observations",
    "PosteriorResult",
    "PriorConfig",
    "SamplerConfig",
    "WeightedSample",
    "clean_filament_frame",
    "do_importance",
    "fit_laplace",
    "load_filament_data",
    "log_likelihood",
    "log_posterior_density",
    "log_posterior_gradient",
    "log_posterior_hessian",
    "log_prior_density",
    "log_sum_exp",
    "make_credible_interval",
    "normalize_log_weights",
    "ols_start",
    "predictive_interval",
    "run_importance_pipeline",
    "summarize_posterior",
    "theta_to_beta",
]
