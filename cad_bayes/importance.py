"""Self-normalised importance sampling from a Gaussian proposal."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterator, NamedTuple

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike
from scipy.stats import multivariate_normal

from .errors import InvalidInput
from .model import (
    BETA_NAMES,
    N_PARAMS,
    GammaLike,
    as_gamma,
    check_xy,
    log_posterior_density,
    theta_to_beta,
)

logger = logging.getLogger(__name__)


class WeightedSample(NamedTuple):
    beta1: float
    beta2: float
    beta3: float
    beta4: float
    log_weight: float


@dataclass
class ImportanceResult:
    """Weighted draws of beta; ``exp(log_weights)`` sums to one."""

    beta: np.ndarray
    log_weights: np.ndarray

    def __len__(self) -> int:
        return int(self.log_weights.size)

    @property
    def weights(self) -> np.ndarray:
        return np.exp(self.log_weights)

    def effective_sample_size(self) -> float:
        w = self.weights
        return float(1.0 / np.sum(w**2))

    def records(self) -> Iterator[WeightedSample]:
        for row, lw in zip(self.beta, self.log_weights):
            yield WeightedSample(*(float(v) for v in row), float(lw))

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(self.beta, columns=list(BETA_NAMES))
        df["log_weight"] = self.log_weights
        return df


# ================================
#   Log-weight normalisation
# ================================
def log_sum_exp(values: ArrayLike) -> float:
    """log(sum(exp(values))) via the max-shift identity.

    Returns -inf for an empty input or when every value is -inf.
    """

    values = np.asarray(values, dtype=float).ravel()
    if values.size == 0:
        return -np.inf
    m = np.max(values)
    if np.isnan(m):
        raise InvalidInput("log_sum_exp received NaN values.")
    if not np.isfinite(m):
        # all -inf gives -inf; any +inf gives +inf
        return float(m)
    return float(m + np.log(np.sum(np.exp(values - m))))


def normalize_log_weights(raw: ArrayLike) -> np.ndarray:
    raw = np.asarray(raw, dtype=float)
    total = log_sum_exp(raw)
    if not np.isfinite(total):
        raise InvalidInput(f"Cannot normalise log-weights with log-sum {total}.")
    return raw - total


def _check_proposal(mu: ArrayLike, cov: ArrayLike):
    mu = np.asarray(mu, dtype=float)
    cov = np.asarray(cov, dtype=float)
    if mu.shape != (N_PARAMS,) or cov.shape != (N_PARAMS, N_PARAMS):
        raise InvalidInput(f"Expected mu of shape (4,) and cov of shape (4, 4), got {mu.shape} and {cov.shape}.")
    if not (np.all(np.isfinite(mu)) and np.all(np.isfinite(cov))):
        raise InvalidInput("Proposal mean and covariance must be finite.")
    if not np.allclose(cov, cov.T, rtol=1e-8, atol=1e-12):
        raise InvalidInput("Proposal covariance must be symmetric.")
    try:
        chol = np.linalg.cholesky(cov)
    except np.linalg.LinAlgError as exc:
        raise InvalidInput("Proposal covariance must be positive-definite.") from exc
    return mu, cov, chol


def _chunk_bounds(n: int, workers: int):
    edges = np.linspace(0, n, workers + 1).astype(int)
    return [(lo, hi) for lo, hi in zip(edges[:-1], edges[1:]) if hi > lo]


# ================================
#   Sampler
# ================================
def do_importance(
    n: int,
    mu: ArrayLike,
    cov: ArrayLike,
    x: ArrayLike,
    y: ArrayLike,
    gamma: GammaLike,
    rng: np.random.Generator,
    workers: int = 1,
) -> ImportanceResult:
    """Importance sample the posterior with proposal N(mu, cov).

    Draws come from ``rng`` before any fan-out, so the result does not
    depend on ``workers``; only the log-posterior evaluation is split
    across threads.
    """

    if isinstance(n, bool) or int(n) != n or n <= 0:
        raise InvalidInput(f"Number of samples must be a positive integer, got {n!r}.")
    n = int(n)
    if workers < 1:
        raise InvalidInput(f"workers must be at least 1, got {workers}.")
    mu, cov, chol = _check_proposal(mu, cov)
    x, y = check_xy(x, y)
    g = as_gamma(gamma)

    theta = mu + rng.standard_normal((n, N_PARAMS)) @ chol.T
    log_proposal = multivariate_normal(mean=mu, cov=cov).logpdf(theta)
    log_proposal = np.atleast_1d(log_proposal)

    if workers > 1 and n > 1:
        bounds = _chunk_bounds(n, workers)
        with ThreadPoolExecutor(max_workers=len(bounds)) as ex:
            parts = list(ex.map(lambda b: log_posterior_density(theta[b[0]:b[1]], x, y, g), bounds))
        log_target = np.concatenate(parts)
    else:
        log_target = log_posterior_density(theta, x, y, g)

    raw = log_target - log_proposal
    log_weights = normalize_log_weights(raw)
    result = ImportanceResult(beta=theta_to_beta(theta), log_weights=log_weights)
    logger.debug("Drew %d importance samples, effective sample size %.1f", n, result.effective_sample_size())
    return result
