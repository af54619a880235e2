"""Posterior mode search and Gaussian (Laplace) approximation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import ArrayLike
from scipy.optimize import minimize

from .errors import FailedApproximation, InvalidInput
from .model import (
    N_PARAMS,
    GammaLike,
    as_gamma,
    as_theta,
    check_xy,
    log_posterior_density,
    log_posterior_gradient,
    log_posterior_hessian,
)

logger = logging.getLogger(__name__)

_HESSIAN_METHODS = {"trust-constr", "trust-exact", "trust-ncg", "trust-krylov", "Newton-CG", "dogleg"}


@dataclass
class LaplaceApproximation:
    """Gaussian N(mu, cov) centred at the posterior mode of theta."""

    mu: np.ndarray
    cov: np.ndarray
    log_posterior: float
    n_iter: int
    message: str = ""

    @property
    def sd(self) -> np.ndarray:
        return np.sqrt(np.diag(self.cov))


def ols_start(x: ArrayLike, y: ArrayLike) -> np.ndarray:
    """Starting point for the mode search from an ordinary least-squares fit.

    theta1 and theta2 are the OLS intercept and slope. The residual variance
    is split evenly between the constant term and the x**2 term (scaled by
    the mean of x**2), then log-transformed.
    """

    x, y = check_xy(x, y)
    if x.size < 2 or np.ptp(x) == 0:
        raise InvalidInput("Need at least two distinct x values for an OLS start.")
    slope, intercept = np.polyfit(x, y, 1)
    resid = y - (intercept + slope * x)
    resid_var = max(float(np.mean(resid**2)), 1e-6)
    mean_x2 = max(float(np.mean(x**2)), 1e-12)
    return np.array(
        [intercept, slope, np.log(resid_var / 2.0), np.log(resid_var / (2.0 * mean_x2))],
        dtype=float,
    )


def fit_laplace(
    x: ArrayLike,
    y: ArrayLike,
    gamma: GammaLike,
    theta0: Optional[ArrayLike] = None,
    method: str = "trust-constr",
    gtol: float = 1e-8,
    maxiter: int = 1_000,
) -> LaplaceApproximation:
    """Maximise the log-posterior and return the Laplace approximation.

    The objective is the negated log-posterior, minimised with
    ``scipy.optimize.minimize`` using the analytic gradient and Hessian. The
    approximate covariance is ``inv(-H)`` with ``H`` the log-posterior
    Hessian at the mode.

    Raises
    ------
    InvalidInput
        If the data, hyperparameters or starting point are malformed.
    FailedApproximation
        If the optimiser does not converge, or if ``-H`` is not
        positive-definite at the reported mode.
    """

    x, y = check_xy(x, y)
    if x.size == 0:
        raise InvalidInput("Need at least one observation.")
    g = as_gamma(gamma)
    start = np.zeros(N_PARAMS) if theta0 is None else as_theta(theta0)
    if start.ndim != 1 or not np.all(np.isfinite(start)):
        raise InvalidInput("theta0 must be a finite vector of length 4.")

    def objective(theta):
        return -log_posterior_density(theta, x, y, g)

    def objective_grad(theta):
        return -log_posterior_gradient(theta, x, y, g)

    def objective_hess(theta):
        return -log_posterior_hessian(theta, x, y, g)

    options = {"maxiter": maxiter, "gtol": gtol}
    if method == "trust-constr":
        options["xtol"] = 1e-12

    logger.debug("Starting mode search from theta0=%s with method=%s", start.tolist(), method)
    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        res = minimize(
            fun=objective,
            x0=start,
            jac=objective_grad,
            hess=objective_hess if method in _HESSIAN_METHODS else None,
            method=method,
            options=options,
        )

    if not res.success:
        raise FailedApproximation(f"Optimisation did not converge: {res.message}")

    mode = np.asarray(res.x, dtype=float)
    hess = log_posterior_hessian(mode, x, y, g)
    if not (np.all(np.isfinite(mode)) and np.all(np.isfinite(hess))):
        raise FailedApproximation("Non-finite mode or Hessian at the reported optimum.")

    neg_hess = -0.5 * (hess + hess.T)
    try:
        chol = np.linalg.cholesky(neg_hess)
    except np.linalg.LinAlgError as exc:
        raise FailedApproximation(
            f"Hessian is not negative-definite at theta={mode.tolist()}."
        ) from exc

    # inv(-H) from the Cholesky factor of -H
    chol_inv = np.linalg.inv(chol)
    cov = chol_inv.T @ chol_inv
    cov = 0.5 * (cov + cov.T)

    n_iter = int(res.nit)
    log_post = float(log_posterior_density(mode, x, y, g))
    logger.info(
        "Posterior mode found after %d iterations: theta=%s, log-posterior=%.4f",
        n_iter,
        np.round(mode, 4).tolist(),
        log_post,
    )
    return LaplaceApproximation(
        mu=mode,
        cov=cov,
        log_posterior=log_post,
        n_iter=n_iter,
        message=str(res.message),
    )

