"""Maximum a posteriori values from kernel density estimates of the draws."""

import numpy as np
import pandas as pd
from scipy import stats

from probbreed.errors import DensityError
from probbreed.extraction import SAMPLED_Y, PosteriorBundle


def silverman_bandwidth(draws: np.ndarray) -> float:
    """Silverman's rule-of-thumb bandwidth for a Gaussian kernel.

    0.9 * min(sd, IQR / 1.34) * n^(-1/5), falling back to the sd (or to
    |x[0]|, or 1) when the spread estimate is zero.
    """
    sd = float(np.std(draws, ddof=1))
    q75, q25 = np.quantile(draws, [0.75, 0.25])
    spread = min(sd, (q75 - q25) / 1.34)
    if spread == 0:
        spread = sd or abs(float(draws[0])) or 1.0
    return 0.9 * spread * len(draws) ** -0.2


def density_mode(
    draws: np.ndarray,
    grid_points: int = 512,
    cut: float = 3.0,
    name: str = "draws",
) -> float:
    """Locate the mode of a Gaussian kernel density estimate.

    The density is evaluated on an evenly spaced grid spanning the draws
    widened by ``cut`` bandwidths on each side. Constant draws return the
    constant, the limit of the density as a point mass.

    Args:
        draws: One-dimensional posterior draws
        grid_points: Number of grid points
        cut: Grid extension beyond the data range, in bandwidths
        name: Label used in error messages

    Returns:
        Grid value with the highest estimated density

    Raises:
        DensityError: If there are fewer than two draws or any draw is not finite
    """
    draws = np.asarray(draws, dtype=float).ravel()
    if len(draws) < 2:
        raise DensityError(
            f"Density of '{name}' needs at least two draws, got shape {draws.shape}"
        )
    if not np.all(np.isfinite(draws)):
        raise DensityError(
            f"Density of '{name}' has non-finite draws (shape {draws.shape})"
        )

    if np.ptp(draws) == 0:
        return float(draws[0])

    bandwidth = silverman_bandwidth(draws)
    kde = stats.gaussian_kde(draws, bw_method=bandwidth / np.std(draws, ddof=1))
    grid = np.linspace(
        draws.min() - cut * bandwidth, draws.max() + cut * bandwidth, grid_points
    )
    return float(grid[np.argmax(kde(grid))])


def map_values(
    draws: pd.DataFrame,
    grid_points: int = 512,
    cut: float = 3.0,
    name: str = "effect",
) -> pd.Series:
    """MAP value of each column (level) of a draws DataFrame."""
    return pd.Series(
        {
            level: density_mode(
                draws[level].to_numpy(), grid_points, cut, name=f"{name}[{level}]"
            )
            for level in draws.columns
        },
        name=name,
        dtype=float,
    )


def estimate_map(
    bundle: PosteriorBundle,
    grid_points: int = 512,
    cut: float = 3.0,
) -> dict[str, pd.Series]:
    """Maximum a posteriori value per level of every effect in the bundle.

    The generated response is not included.

    Returns:
        Dict of {effect name: Series of MAP values indexed by level}
    """
    return {
        name: map_values(draws, grid_points, cut, name=name)
        for name, draws in bundle.items()
        if name != SAMPLED_Y
    }
