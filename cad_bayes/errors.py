"""Exception types raised by the posterior approximation code."""
from __future__ import annotations


class CadBayesError(Exception):
    """Base class for errors raised by ``cad_bayes``."""


class InvalidInput(CadBayesError, ValueError):
    """Malformed or mismatched arguments supplied by the caller."""


class FailedApproximation(CadBayesError, RuntimeError):
    """The optimiser did not reach a usable posterior mode.

    Raised when the optimiser reports non-convergence, or when the negated
    Hessian at the reported mode is not positive-definite.
    """
