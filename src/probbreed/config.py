"""Configuration objects for posterior extraction."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RunMetadata:
    """Sampler run layout, used to recover chain/iteration indices.

    Attributes:
        chains: Number of independent chains
        iterations: Iterations per chain, including warmup
        warmup: Warmup (tuning) iterations per chain, discarded
    """

    chains: int
    iterations: int
    warmup: int = 0

    @property
    def kept_per_chain(self) -> int:
        """Post-warmup draws retained per chain."""
        return self.iterations - self.warmup

    @property
    def total_draws(self) -> int:
        return self.chains * self.kept_per_chain


@dataclass(frozen=True)
class ExtractionConfig:
    """Settings for extracting outputs from a fitted model.

    Attributes:
        probs: Lower and upper tail probabilities for the variance intervals
        check_sampler_diagnostics: Report sampler health and build ArviZ
            diagnostic plots (requires an InferenceData trace)
        verbose: Log each completed step
        grid_points: Grid size for the kernel density used by MAP estimation
        cut: Grid extends this many bandwidths beyond the data range
    """

    probs: tuple[float, float] = (0.025, 0.975)
    check_sampler_diagnostics: bool = True
    verbose: bool = False
    grid_points: int = 512
    cut: float = 3.0

    def __post_init__(self) -> None:
        lower, upper = self.probs
        if not 0 <= lower < upper <= 1:
            raise ValueError(
                f"probs must satisfy 0 <= lower < upper <= 1, got {self.probs}"
            )
        if self.grid_points < 2:
            raise ValueError(f"grid_points must be >= 2, got {self.grid_points}")
        if self.cut < 0:
            raise ValueError(f"cut must be >= 0, got {self.cut}")
