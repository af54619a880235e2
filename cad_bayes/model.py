"""Heteroscedastic regression model for CAD-predicted vs. actual weights.

The observation model is

    y_i ~ N(beta1 + beta2 * x_i, beta3 + beta4 * x_i**2)

where the second argument is a variance. Inference works on the
unconstrained vector ``theta = (theta1, theta2, log(beta3), log(beta4))``;
``theta_to_beta`` converts back.

Priors (gamma are caller-supplied hyperparameters):

- theta1 ~ N(0, gamma1)
- theta2 ~ N(1, gamma2)
- theta3 = log(Z3), Z3 ~ Exponential(rate=gamma3)
- theta4 = log(Z4), Z4 ~ Exponential(rate=gamma4)

All density functions accept either a single length-4 parameter vector
(returning a float) or a ``(k, 4)`` stack (returning ``k`` values).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike
from scipy.stats import norm

from .errors import InvalidInput

N_PARAMS = 4
BETA_NAMES = ("beta1", "beta2", "beta3", "beta4")


@dataclass(frozen=True)
class PriorConfig:
    """Hyperparameters gamma of the prior.

    ``gamma1`` and ``gamma2`` are prior variances for theta1 and theta2,
    ``gamma3`` and ``gamma4`` are the Exponential rates behind theta3 and
    theta4. All must be strictly positive.
    """

    gamma1: float = 1.0
    gamma2: float = 1.0
    gamma3: float = 1.0
    gamma4: float = 1.0

    def __post_init__(self) -> None:
        _validate_gamma(self.as_array())

    def as_array(self) -> np.ndarray:
        return np.array([self.gamma1, self.gamma2, self.gamma3, self.gamma4], dtype=float)

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "PriorConfig":
        gamma = np.asarray(values, dtype=float)
        if gamma.shape != (N_PARAMS,):
            raise InvalidInput(f"gamma must have exactly {N_PARAMS} entries, got shape {gamma.shape}.")
        return cls(*(float(g) for g in gamma))


GammaLike = Union[PriorConfig, Sequence[float], np.ndarray]


@dataclass(frozen=True, eq=False)
class Observations:
    """Read-only paired observations (x = CAD weight, y = actual weight)."""

    x: np.ndarray
    y: np.ndarray

    def __post_init__(self) -> None:
        x, y = check_xy(self.x, self.y)
        if x.size == 0:
            raise InvalidInput("Need at least one observation.")
        if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
            raise InvalidInput("Observations must be finite.")
        x = x.copy()
        y = y.copy()
        x.setflags(write=False)
        y.setflags(write=False)
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)

    def __len__(self) -> int:
        return int(self.x.size)

    @classmethod
    def from_frame(cls, df: pd.DataFrame, x_col: str, y_col: str) -> "Observations":
        return cls(x=df[x_col].to_numpy(dtype=float), y=df[y_col].to_numpy(dtype=float))


def check_xy(x: ArrayLike, y: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.ndim != 1 or y.ndim != 1:
        raise InvalidInput("x and y must be one-dimensional sequences.")
    if x.size != y.size:
        raise InvalidInput(f"x and y must have equal length, got {x.size} and {y.size}.")
    return x, y


def _validate_gamma(gamma: np.ndarray) -> np.ndarray:
    if gamma.shape != (N_PARAMS,):
        raise InvalidInput(f"gamma must have exactly {N_PARAMS} entries, got shape {gamma.shape}.")
    if not np.all(np.isfinite(gamma)) or np.any(gamma <= 0):
        raise InvalidInput(f"gamma must be strictly positive and finite, got {gamma.tolist()}.")
    return gamma


def as_gamma(gamma: GammaLike) -> np.ndarray:
    """Return the hyperparameters as a validated float array of length 4."""

    if isinstance(gamma, PriorConfig):
        return gamma.as_array()
    return _validate_gamma(np.asarray(gamma, dtype=float))


def as_theta(theta: ArrayLike) -> np.ndarray:
    theta = np.asarray(theta, dtype=float)
    if theta.ndim not in (1, 2) or theta.shape[-1] != N_PARAMS:
        raise InvalidInput(f"theta must have shape (4,) or (k, 4), got {theta.shape}.")
    return theta


def _finish(value: np.ndarray, theta: np.ndarray):
    return float(value) if theta.ndim == 1 else np.asarray(value, dtype=float)


def theta_to_beta(theta: ArrayLike) -> np.ndarray:
    """Map theta to beta = (theta1, theta2, exp(theta3), exp(theta4))."""

    theta = as_theta(theta)
    beta = theta.copy()
    beta[..., 2:] = np.exp(theta[..., 2:])
    return beta


def log_logexp_density(v: ArrayLike, rate: float) -> np.ndarray:
    """Log-density of log(Z) for Z ~ Exponential(rate)."""

    v = np.asarray(v, dtype=float)
    return np.log(rate) + v - rate * np.exp(v)


# ================================
#   Prior, likelihood, posterior
# ================================
def log_prior_density(theta: ArrayLike, gamma: GammaLike):
    theta = as_theta(theta)
    g = as_gamma(gamma)
    value = (
        norm.logpdf(theta[..., 0], loc=0.0, scale=np.sqrt(g[0]))
        + norm.logpdf(theta[..., 1], loc=1.0, scale=np.sqrt(g[1]))
        + log_logexp_density(theta[..., 2], g[2])
        + log_logexp_density(theta[..., 3], g[3])
    )
    return _finish(value, theta)


def log_likelihood(theta: ArrayLike, x: ArrayLike, y: ArrayLike):
    theta = as_theta(theta)
    x, y = check_xy(x, y)
    beta = theta_to_beta(theta)
    mean = beta[..., 0, None] + beta[..., 1, None] * x
    var = beta[..., 2, None] + beta[..., 3, None] * x**2
    # an underflowed variance gives zero density rather than NaN
    positive = var > 0
    logpdf = np.where(
        positive,
        norm.logpdf(y, loc=mean, scale=np.sqrt(np.where(positive, var, 1.0))),
        -np.inf,
    )
    value = np.sum(logpdf, axis=-1)
    return _finish(value, theta)


def log_posterior_density(theta: ArrayLike, x: ArrayLike, y: ArrayLike, gamma: GammaLike):
    """Unnormalised log-posterior: log-likelihood plus log-prior."""

    theta = as_theta(theta)
    value = np.asarray(log_likelihood(theta, x, y)) + np.asarray(log_prior_density(theta, gamma))
    return _finish(value, theta)


# ================================
#   Derivatives (single theta)
# ================================
def _single_theta(theta: ArrayLike) -> np.ndarray:
    theta = as_theta(theta)
    if theta.ndim != 1:
        raise InvalidInput("Derivatives are defined for a single theta vector.")
    return theta


def _local_terms(theta: np.ndarray, x: np.ndarray, y: np.ndarray):
    a, b = np.exp(theta[2]), np.exp(theta[3])
    resid = y - (theta[0] + theta[1] * x)
    var = a + b * x**2
    ones, zeros = np.ones_like(x), np.zeros_like(x)
    # d mean / d theta and d var / d theta, one row per observation
    jac_mean = np.column_stack([ones, x, zeros, zeros])
    jac_var = np.column_stack([zeros, zeros, a * ones, b * x**2])
    return resid, var, jac_mean, jac_var


def log_posterior_gradient(theta: ArrayLike, x: ArrayLike, y: ArrayLike, gamma: GammaLike) -> np.ndarray:
    theta = _single_theta(theta)
    x, y = check_xy(x, y)
    g = as_gamma(gamma)
    resid, var, jac_mean, jac_var = _local_terms(theta, x, y)

    d_mean = resid / var
    d_var = (resid**2 - var) / (2.0 * var**2)
    grad_lik = jac_mean.T @ d_mean + jac_var.T @ d_var
    grad_prior = np.array(
        [
            -theta[0] / g[0],
            -(theta[1] - 1.0) / g[1],
            1.0 - g[2] * np.exp(theta[2]),
            1.0 - g[3] * np.exp(theta[3]),
        ]
    )
    return grad_lik + grad_prior


def log_posterior_hessian(theta: ArrayLike, x: ArrayLike, y: ArrayLike, gamma: GammaLike) -> np.ndarray:
    theta = _single_theta(theta)
    x, y = check_xy(x, y)
    g = as_gamma(gamma)
    resid, var, jac_mean, jac_var = _local_terms(theta, x, y)

    d_var = (resid**2 - var) / (2.0 * var**2)
    h_mm = -1.0 / var
    h_mv = -resid / var**2
    h_vv = (var - 2.0 * resid**2) / (2.0 * var**3)

    cross = jac_mean.T @ (h_mv[:, None] * jac_var)
    hess = (
        jac_mean.T @ (h_mm[:, None] * jac_mean)
        + cross
        + cross.T
        + jac_var.T @ (h_vv[:, None] * jac_var)
    )
    # var is linear in exp(theta3) and exp(theta4), so its own second derivative is diagonal
    hess[2, 2] += np.sum(d_var * jac_var[:, 2])
    hess[3, 3] += np.sum(d_var * jac_var[:, 3])

    hess[0, 0] -= 1.0 / g[0]
    hess[1, 1] -= 1.0 / g[1]
    hess[2, 2] -= g[2] * np.exp(theta[2])
    hess[3, 3] -= g[3] * np.exp(theta[3])
    return hess
