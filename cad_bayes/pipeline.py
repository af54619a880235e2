"""Laplace + importance sampling driver."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .errors import InvalidInput
from .importance import ImportanceResult, do_importance
from .intervals import summarize_posterior
from .laplace import LaplaceApproximation, fit_laplace
from .model import Observations, PriorConfig

logger = logging.getLogger(__name__)


@dataclass
class SamplerConfig:
    n_samples: int = 10_000
    seed: int = 123
    coverage: float = 0.90
    theta0: Optional[Sequence[float]] = None
    method: str = "trust-constr"
    workers: int = 1
    priors: PriorConfig = field(default_factory=PriorConfig)


@dataclass
class PosteriorResult:
    laplace: LaplaceApproximation
    samples: ImportanceResult
    summary: pd.DataFrame
    runtime_seconds: float

    @property
    def ess(self) -> float:
        return self.samples.effective_sample_size()


def run_importance_pipeline(observations: Observations, config: SamplerConfig) -> PosteriorResult:
    """Fit the Laplace approximation, importance sample, and summarise."""

    if not isinstance(observations, Observations):
        raise InvalidInput("observations must be an Observations instance.")
    rng = np.random.default_rng(config.seed)

    t0 = time.time()
    laplace = fit_laplace(
        observations.x,
        observations.y,
        config.priors,
        theta0=config.theta0,
        method=config.method,
    )
    samples = do_importance(
        config.n_samples,
        laplace.mu,
        laplace.cov,
        observations.x,
        observations.y,
        config.priors,
        rng,
        workers=config.workers,
    )
    summary = summarize_posterior(samples, coverage=config.coverage)
    elapsed = time.time() - t0

    result = PosteriorResult(
        laplace=laplace,
        samples=samples,
        summary=summary,
        runtime_seconds=elapsed,
    )
    logger.info(
        "Importance sampling done: n=%d, ESS=%.1f (%.1f%%), runtime=%.2fs",
        len(samples),
        result.ess,
        100.0 * result.ess / len(samples),
        elapsed,
    )
    return result
