"""Probabilities of superior performance and stability of genotypes.

A genotype is "superior" in a posterior draw when it falls within the
selected fraction (the selection intensity) of candidates. Averaging that
indicator over draws gives the posterior probability of superiority.

Performance uses the genotype main effects. Stability uses, per draw, the
variance of each genotype's genotype-by-location effects across locations:
the smaller the variance, the more stable the genotype.

Genotype-by-location columns are ordered genotype-major: all locations of the
first genotype, then all locations of the second, and so on.
"""

import math
from dataclasses import dataclass

import numpy as np
import pandas as pd

from probbreed.errors import SchemaError
from probbreed.extraction import PosteriorBundle
from probbreed.schema import Effect


@dataclass(frozen=True, eq=False)
class ProbabilityResults:
    """Container for probabilities of superior performance and stability."""

    intensity: float
    increase: bool

    # per genotype
    performance: pd.Series
    stability: pd.Series
    joint: pd.Series

    # genotype x genotype: P(row superior to column)
    pairwise_performance: pd.DataFrame
    pairwise_stability: pd.DataFrame

    # genotype x location
    conditional: pd.DataFrame

    def summary(self) -> pd.DataFrame:
        """Per-genotype probabilities, sorted by joint probability."""
        return pd.DataFrame(
            {
                "performance": self.performance,
                "stability": self.stability,
                "joint": self.joint,
            }
        ).sort_values("joint", ascending=False)


def _check_intensity(intensity: float) -> None:
    if not 0 < intensity < 1:
        raise ValueError(f"intensity must be in (0, 1), got {intensity}")


def n_selected(n_candidates: int, intensity: float) -> int:
    """Number of candidates retained at a selection intensity (at least one)."""
    _check_intensity(intensity)
    return max(1, math.ceil(intensity * n_candidates))


def _top_mask(values: np.ndarray, k: int, largest: bool) -> np.ndarray:
    """Boolean mask of the k best entries along the last axis."""
    keys = -values if largest else values
    order = np.argsort(keys, axis=-1, kind="stable")[..., :k]
    mask = np.zeros(values.shape, dtype=bool)
    np.put_along_axis(mask, order, True, axis=-1)
    return mask


def _genotype_draws(bundle: PosteriorBundle) -> pd.DataFrame:
    return bundle[Effect.GENOTYPE.canonical]


def _interaction_draws(bundle: PosteriorBundle) -> np.ndarray:
    """Genotype-by-location draws reshaped to (draws, genotypes, locations)."""
    genotypes = bundle[Effect.GENOTYPE.canonical].shape[1]
    locations = bundle[Effect.LOCATION.canonical].shape[1]
    gen_loc = bundle[Effect.GEN_LOC.canonical]
    if gen_loc.shape[1] != genotypes * locations:
        raise SchemaError(
            f"'{Effect.GEN_LOC.canonical}' has {gen_loc.shape[1]} levels; "
            f"expected {genotypes} genotypes x {locations} locations"
        )
    return gen_loc.to_numpy().reshape(len(gen_loc), genotypes, locations)


def _pairwise(values: np.ndarray, labels, greater: bool) -> pd.DataFrame:
    """P(row > column) (or < when greater is False) across draws."""
    n = values.shape[1]
    result = np.empty((n, n))
    for i in range(n):
        column = values[:, [i]]
        beats = column > values if greater else column < values
        result[i] = beats.mean(axis=0)
    return pd.DataFrame(result, index=labels, columns=labels)


def prob_superior_performance(
    bundle: PosteriorBundle, intensity: float = 0.2, increase: bool = True
) -> pd.Series:
    """Probability that each genotype ranks within the selected fraction.

    Args:
        bundle: Posterior draws of the model effects
        intensity: Fraction of genotypes selected
        increase: Select the highest effects if True, the lowest otherwise

    Returns:
        Series of probabilities indexed by genotype
    """
    genotype = _genotype_draws(bundle)
    k = n_selected(genotype.shape[1], intensity)
    mask = _top_mask(genotype.to_numpy(), k, largest=increase)
    return pd.Series(mask.mean(axis=0), index=genotype.columns, name="performance")


def pairwise_superior_performance(
    bundle: PosteriorBundle, increase: bool = True
) -> pd.DataFrame:
    """Probability that the row genotype outperforms the column genotype."""
    genotype = _genotype_draws(bundle)
    return _pairwise(genotype.to_numpy(), genotype.columns, greater=increase)


def stability_variances(bundle: PosteriorBundle) -> pd.DataFrame:
    """Per-draw variance of each genotype's interaction effects across locations."""
    interaction = _interaction_draws(bundle)
    if interaction.shape[2] < 2:
        raise SchemaError("Stability needs genotype-by-location effects at >= 2 locations")
    return pd.DataFrame(
        np.var(interaction, axis=2, ddof=1),
        columns=_genotype_draws(bundle).columns,
    )


def prob_superior_stability(
    bundle: PosteriorBundle, intensity: float = 0.2
) -> pd.Series:
    """Probability that each genotype is among the most stable."""
    variances = stability_variances(bundle)
    k = n_selected(variances.shape[1], intensity)
    mask = _top_mask(variances.to_numpy(), k, largest=False)
    return pd.Series(mask.mean(axis=0), index=variances.columns, name="stability")


def pairwise_superior_stability(bundle: PosteriorBundle) -> pd.DataFrame:
    """Probability that the row genotype is more stable than the column genotype."""
    variances = stability_variances(bundle)
    return _pairwise(variances.to_numpy(), variances.columns, greater=False)


def joint_probability(performance: pd.Series, stability: pd.Series) -> pd.Series:
    """Joint probability of superior performance and stability."""
    return (performance * stability).rename("joint")


def conditional_superior_performance(
    bundle: PosteriorBundle, intensity: float = 0.2, increase: bool = True
) -> pd.DataFrame:
    """Probability of superior performance within each location.

    The genotypic value in a location is the genotype main effect plus its
    genotype-by-location effect for that location.

    Returns:
        DataFrame with rows=genotypes, columns=locations
    """
    genotype = _genotype_draws(bundle)
    values = genotype.to_numpy()[:, :, np.newaxis] + _interaction_draws(bundle)
    k = n_selected(values.shape[1], intensity)
    # rank genotypes within each location: move genotypes to the last axis
    mask = _top_mask(np.swapaxes(values, 1, 2), k, largest=increase)
    return pd.DataFrame(
        mask.mean(axis=0).T,
        index=genotype.columns,
        columns=bundle[Effect.LOCATION.canonical].columns,
    )


def compute_probabilities(
    bundle: PosteriorBundle, intensity: float = 0.2, increase: bool = True
) -> ProbabilityResults:
    """Compute every probability of superiority for a fitted model."""
    _check_intensity(intensity)
    performance = prob_superior_performance(bundle, intensity, increase)
    stability = prob_superior_stability(bundle, intensity)
    return ProbabilityResults(
        intensity=intensity,
        increase=increase,
        performance=performance,
        stability=stability,
        joint=joint_probability(performance, stability),
        pairwise_performance=pairwise_superior_performance(bundle, increase),
        pairwise_stability=pairwise_superior_stability(bundle),
        conditional=conditional_superior_performance(bundle, intensity, increase),
    )
