"""
Pytest configuration and shared fixtures for probbreed tests.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from probbreed.config import RunMetadata
from probbreed.extraction import RawPosterior


@pytest.fixture
def rng():
    """Seeded generator for reproducible synthetic posteriors."""
    return np.random.default_rng(42)


def _summary(n_params: int, rng: np.random.Generator, n_draws: int) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "r_hat": 1 + rng.uniform(0, 0.01, n_params),
            "ess_bulk": rng.uniform(0.5, 1.0, n_params) * n_draws,
        },
        index=[f"param[{i}]" for i in range(n_params)],
    )


@pytest.fixture
def make_raw(rng):
    """Factory for synthetic RawPosterior objects.

    Effects are drawn from normal distributions, scale parameters from
    absolute normals. ``extra`` adds optional effect codes such as
    ("r", "b") or ("m", "gm").
    """

    def factory(
        n_draws: int = 1000,
        n_gen: int = 5,
        n_loc: int = 3,
        n_obs: int = 30,
        extra: tuple[str, ...] = (),
        heterogeneous: bool = False,
    ) -> RawPosterior:
        widths = {"g": n_gen, "l": n_loc, "gl": n_gen * n_loc}
        for code in extra:
            widths[code] = 2 if code in ("r", "b", "m", "t") else n_gen * 2
        draws = {}
        for code, width in widths.items():
            draws[code] = rng.normal(size=(n_draws, width))
            draws[f"s_{code}"] = np.abs(rng.normal(1.0, 0.2, n_draws))
        if heterogeneous:
            draws["sigma"] = np.abs(rng.normal(1.0, 0.1, (n_draws, n_loc)))
            draws["sigma_vec"] = draws["sigma"].copy()
        else:
            draws["sigma"] = np.abs(rng.normal(1.0, 0.1, n_draws))
        draws["mu"] = rng.normal(10.0, 0.5, n_draws)

        y_gen = rng.normal(10.0, 2.0, (n_draws, n_obs))
        log_lik = rng.normal(-2.0, 0.3, (n_draws, n_obs))
        return RawPosterior(
            draws=draws,
            y_gen=y_gen,
            log_lik=log_lik,
            summary=_summary(len(draws), rng, n_draws),
        )

    return factory


@pytest.fixture
def raw(make_raw):
    """Basic posterior: genotype, location, gen.loc and homogeneous residual."""
    return make_raw()


@pytest.fixture
def metadata():
    """Run layout matching the default 1000-draw posterior."""
    return RunMetadata(chains=4, iterations=350, warmup=100)


@pytest.fixture
def trial_data(rng):
    """Observed trial data with 30 finite records and two missing ones."""
    values = np.concatenate([rng.normal(10.0, 2.0, 30), [np.nan, np.nan]])
    return pd.DataFrame(
        {
            "gen": [f"G{i % 5 + 1}" for i in range(32)],
            "loc": [f"L{i % 3 + 1}" for i in range(32)],
            "GY": values,
        }
    )
