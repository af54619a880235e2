import numpy as np
import pytest
from numpy.testing import assert_allclose

import cad_bayes.laplace as laplace_mod
from cad_bayes.errors import FailedApproximation, InvalidInput
from cad_bayes.laplace import fit_laplace, ols_start
from cad_bayes.model import log_posterior_gradient, log_posterior_hessian

GAMMA = [1.0, 1.0, 1.0, 1.0]


def test_mode_near_identity_line(toy_xy):
    x, y = toy_xy
    approx = fit_laplace(x, y, GAMMA, theta0=[0.0, 0.0, 0.0, 0.0])
    assert approx.mu.shape == (4,)
    assert np.all(np.isfinite(approx.mu))
    assert abs(approx.mu[0] - 0.0) <= 0.5
    assert abs(approx.mu[1] - 1.0) <= 0.5
    assert np.isfinite(approx.log_posterior)


def test_mode_is_stationary_and_covariance_valid(toy_xy):
    x, y = toy_xy
    approx = fit_laplace(x, y, GAMMA)
    grad = log_posterior_gradient(approx.mu, x, y, GAMMA)
    assert np.max(np.abs(grad)) < 1e-4

    cov = approx.cov
    assert cov.shape == (4, 4)
    assert_allclose(cov, cov.T)
    np.linalg.cholesky(cov)
    assert np.all(approx.sd > 0)

    hess = log_posterior_hessian(approx.mu, x, y, GAMMA)
    assert_allclose(cov @ (-hess), np.eye(4), atol=1e-6)


def test_start_point_does_not_change_mode(toy_xy):
    x, y = toy_xy
    from_zero = fit_laplace(x, y, GAMMA)
    from_ols = fit_laplace(x, y, GAMMA, theta0=ols_start(x, y))
    assert_allclose(from_zero.mu, from_ols.mu, atol=1e-4)


def test_non_convergence_is_reported(toy_xy):
    x, y = toy_xy
    with pytest.raises(FailedApproximation):
        fit_laplace(x, y, GAMMA, maxiter=1)


def test_indefinite_hessian_is_reported(toy_xy, monkeypatch):
    x, y = toy_xy
    monkeypatch.setattr(laplace_mod, "log_posterior_hessian", lambda *args, **kwargs: np.eye(4))
    with pytest.raises(FailedApproximation):
        fit_laplace(x, y, GAMMA, method="BFGS")


def test_bad_inputs(toy_xy):
    x, y = toy_xy
    with pytest.raises(InvalidInput):
        fit_laplace(x, y[:-1], GAMMA)
    with pytest.raises(InvalidInput):
        fit_laplace(x, y, GAMMA, theta0=[0.0, 0.0])
    with pytest.raises(InvalidInput):
        fit_laplace(x, y, [1.0, 1.0, 0.0, 1.0])


def test_ols_start(toy_xy):
    x, y = toy_xy
    start = ols_start(x, y)
    slope, intercept = np.polyfit(x, y, 1)
    assert np.isclose(start[0], intercept)
    assert np.isclose(start[1], slope)
    assert np.all(np.isfinite(start))
    with pytest.raises(InvalidInput):
        ols_start([2.0, 2.0], [1.0, 3.0])


def test_iteration_count_reported(toy_xy):
    x, y = toy_xy
    approx = fit_laplace(x, y, GAMMA)
    assert isinstance(approx.n_iter, int)
    assert approx.n_iter > 0
