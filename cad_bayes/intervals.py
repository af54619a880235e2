"""Weighted quantiles and credible/prediction intervals."""
from __future__ import annotations

from typing import Tuple

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike

from .errors import InvalidInput
from .importance import ImportanceResult
from .model import BETA_NAMES

WEIGHT_SUM_TOL = 1e-6


def _check_weighted(values: ArrayLike, weights: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    values = np.asarray(values, dtype=float).ravel()
    weights = np.asarray(weights, dtype=float).ravel()
    if values.size != weights.size:
        raise InvalidInput(f"values and weights must have equal length, got {values.size} and {weights.size}.")
    if values.size == 0:
        raise InvalidInput("Need at least one weighted value.")
    if not np.all(np.isfinite(values)):
        raise InvalidInput("values must be finite.")
    if not np.all(np.isfinite(weights)) or np.any(weights < 0):
        raise InvalidInput("weights must be finite and non-negative.")
    total = float(np.sum(weights))
    if abs(total - 1.0) > WEIGHT_SUM_TOL:
        raise InvalidInput(f"weights must sum to 1, got {total:.10g}.")
    return values, weights


def _check_coverage(coverage: float) -> float:
    coverage = float(coverage)
    if not 0.0 < coverage < 1.0:
        raise InvalidInput(f"coverage must lie strictly between 0 and 1, got {coverage}.")
    return coverage


def weighted_quantile(values: ArrayLike, weights: ArrayLike, probs: ArrayLike) -> np.ndarray:
    """Linear-interpolation quantiles of a weighted sample.

    The k-th sorted value (0-based, among m points with positive weight) sits
    at plotting position

        (C_k - w_k / 2 - w_0 / 2) / (1 - w_0 / 2 - w_{m-1} / 2)

    where C_k is the cumulative weight up to and including point k. With
    equal weights this is k / (m - 1), so the estimator reduces to the
    default ``numpy.quantile`` (linear) rule.
    """

    values, weights = _check_weighted(values, weights)
    probs = np.asarray(probs, dtype=float)
    if np.any((probs < 0) | (probs > 1)) or not np.all(np.isfinite(probs)):
        raise InvalidInput("probs must lie in [0, 1].")

    keep = weights > 0
    values, weights = values[keep], weights[keep]
    order = np.argsort(values, kind="stable")
    v, w = values[order], weights[order] / np.sum(weights)
    if v.size == 1:
        return np.full(probs.shape, v[0])

    cum = np.cumsum(w)
    positions = (cum - 0.5 * w - 0.5 * w[0]) / (1.0 - 0.5 * w[0] - 0.5 * w[-1])
    positions[0], positions[-1] = 0.0, 1.0
    return np.interp(probs, positions, v)


def make_credible_interval(values: ArrayLike, weights: ArrayLike, coverage: float) -> Tuple[float, float]:
    """Equal-tailed weighted credible interval at the given coverage."""

    coverage = _check_coverage(coverage)
    tail = (1.0 - coverage) / 2.0
    lower, upper = weighted_quantile(values, weights, [tail, 1.0 - tail])
    return float(lower), float(upper)


def summarize_posterior(result: ImportanceResult, coverage: float = 0.9) -> pd.DataFrame:
    """Weighted mean and credible interval for each beta parameter."""

    coverage = _check_coverage(coverage)
    w = result.weights
    rows = []
    for j, name in enumerate(BETA_NAMES):
        column = result.beta[:, j]
        lower, upper = make_credible_interval(column, w, coverage)
        rows.append(
            {
                "parameter": name,
                "mean": float(np.sum(w * column)),
                "lower": lower,
                "upper": upper,
                "coverage": coverage,
            }
        )
    return pd.DataFrame(rows)


def predictive_interval(
    result: ImportanceResult,
    x_new: ArrayLike,
    coverage: float,
    rng: np.random.Generator,
) -> pd.DataFrame:
    """Weighted posterior predictive interval for new CAD weights.

    One predictive draw of y is taken for every weighted beta sample and each
    new x; the draws inherit the sample weights.
    """

    coverage = _check_coverage(coverage)
    x_new = np.atleast_1d(np.asarray(x_new, dtype=float))
    if x_new.ndim != 1 or not np.all(np.isfinite(x_new)):
        raise InvalidInput("x_new must be a finite one-dimensional sequence.")

    beta = result.beta
    w = result.weights
    mean = beta[:, 0, None] + beta[:, 1, None] * x_new
    sd = np.sqrt(beta[:, 2, None] + beta[:, 3, None] * x_new**2)
    y_draws = mean + sd * rng.standard_normal(mean.shape)

    rows = []
    for k, x_val in enumerate(x_new):
        lower, upper = make_credible_interval(y_draws[:, k], w, coverage)
        rows.append(
            {
                "x": float(x_val),
                "mean": float(np.sum(w * mean[:, k])),
                "lower": lower,
                "upper": upper,
            }
        )
    return pd.DataFrame(rows)
