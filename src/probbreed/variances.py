"""Posterior summaries of variance components."""

import numpy as np
import pandas as pd

from probbreed.errors import SchemaError
from probbreed.extraction import RawPosterior
from probbreed.schema import RESIDUAL_SCALE, EffectSchema


def interval_labels(probs: tuple[float, float]) -> tuple[str, str]:
    """Column names for the lower and upper interval bounds."""
    return f"HPD_{probs[0]:g}", f"HPD_{probs[1]:g}"


def _summarize(name: str, variances: np.ndarray, probs: tuple[float, float]) -> dict:
    n = len(variances)
    sd = float(np.std(variances, ddof=1)) if n > 1 else np.nan
    lower, upper = np.quantile(variances, probs)
    lower_label, upper_label = interval_labels(probs)
    return {
        "effect": name,
        "var": float(np.mean(variances)),
        "sd": sd,
        "naive.se": sd / np.sqrt(n),
        lower_label: float(lower),
        upper_label: float(upper),
    }


def _scale_draws(raw: RawPosterior, name: str, owner: str) -> np.ndarray:
    if name not in raw.draws:
        raise SchemaError(
            f"Scale parameter '{name}' for '{owner}' not found in posterior"
        )
    return raw.draws[name]


def summarize_variances(
    raw: RawPosterior,
    schema: EffectSchema,
    probs: tuple[float, float] = (0.025, 0.975),
) -> pd.DataFrame:
    """Summarize the posterior of each variance component.

    Variance draws are the squared draws of each effect's scale parameter
    (``s_<code>``) and of the residual scale. The interval is the pair of
    empirical quantiles at ``probs``, not a highest-density region.

    Args:
        raw: Posterior output of the sampler
        schema: Active effects of the model
        probs: Lower and upper tail probabilities for the interval

    Returns:
        DataFrame with columns effect, var, sd, naive.se and the two interval
        bounds. One row per active effect, then the residual row(s).

    Raises:
        SchemaError: If a scale parameter is missing or has the wrong shape
        ValueError: If probs is not an increasing pair in [0, 1]
    """
    lower, upper = probs
    if not 0 <= lower < upper <= 1:
        raise ValueError(f"probs must satisfy 0 <= lower < upper <= 1, got {probs}")

    rows = []
    for effect in schema.effects:
        scale = _scale_draws(raw, effect.scale_name, effect.canonical)
        if scale.ndim != 1:
            raise SchemaError(
                f"Scale parameter '{effect.scale_name}' must be one value per "
                f"draw, got shape {scale.shape}"
            )
        rows.append(_summarize(effect.canonical, scale**2, probs))

    residual = _scale_draws(raw, RESIDUAL_SCALE, "residual")
    if schema.heterogeneous_residual:
        if residual.ndim != 2 or residual.shape[1] != schema.n_environments:
            raise SchemaError(
                f"Residual scale has shape {residual.shape}; expected "
                f"(draws, {schema.n_environments})"
            )
        for column, name in enumerate(schema.residual_names):
            rows.append(_summarize(name, residual[:, column] ** 2, probs))
    else:
        if residual.ndim != 1:
            raise SchemaError(
                f"Homogeneous residual scale must be one value per draw, "
                f"got shape {residual.shape}"
            )
        rows.append(_summarize(schema.residual_names[0], residual**2, probs))

    return pd.DataFrame(rows)
