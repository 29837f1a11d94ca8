"""Long-format posterior tables for trace, histogram and density plots."""

import numpy as np
import pandas as pd

from probbreed.config import RunMetadata
from probbreed.errors import MetadataMismatchError
from probbreed.extraction import PosteriorBundle


def _check_metadata(n_draws: int, metadata: RunMetadata, name: str) -> None:
    if metadata.chains < 1 or metadata.kept_per_chain < 1 or metadata.warmup < 0:
        raise MetadataMismatchError(
            f"Invalid run metadata for '{name}': chains={metadata.chains}, "
            f"iterations={metadata.iterations}, warmup={metadata.warmup}"
        )
    if n_draws != metadata.total_draws:
        raise MetadataMismatchError(
            f"'{name}' has {n_draws} draws but metadata implies "
            f"{metadata.chains} chains x ({metadata.iterations} - "
            f"{metadata.warmup}) = {metadata.total_draws}"
        )


def build_plot_frame(
    draws: pd.DataFrame, metadata: RunMetadata, name: str = "effect"
) -> pd.DataFrame:
    """Stack a draws DataFrame into long format with chain/iteration indices.

    Draws must be ordered chain-major. Levels are stacked one after another,
    each contributing chains * (iterations - warmup) rows.

    Args:
        draws: Posterior draws with rows=draws, columns=levels
        metadata: Sampler run layout
        name: Label used in error messages

    Returns:
        DataFrame with columns value, iteration, chain, level

    Raises:
        MetadataMismatchError: If the draw count does not match the metadata
    """
    n_draws, n_levels = draws.shape
    _check_metadata(n_draws, metadata, name)

    kept = metadata.kept_per_chain
    iteration = np.tile(np.arange(1, kept + 1), metadata.chains * n_levels)
    chain = np.tile(np.repeat(np.arange(1, metadata.chains + 1), kept), n_levels)
    return pd.DataFrame(
        {
            "value": draws.to_numpy().ravel(order="F"),
            "iteration": iteration,
            "chain": chain,
            "level": np.repeat(draws.columns.to_numpy(), n_draws),
        }
    )


def build_plot_frames(
    bundle: PosteriorBundle, metadata: RunMetadata
) -> dict[str, pd.DataFrame]:
    """Long-format frame for every entry of the bundle, sampled.Y included."""
    return {
        name: build_plot_frame(draws, metadata, name=name)
        for name, draws in bundle.items()
    }
