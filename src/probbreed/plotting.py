"""Histograms, trace plots and densities of posterior draws.

All functions return matplotlib Axes for composition; saving or showing the
figures is left to the caller.
"""

from collections.abc import Mapping

import arviz as az
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.axes import Axes
from scipy import stats

from probbreed.extraction import SAMPLED_Y

FILL_COLOR = "#33a02c"
EMPIRICAL_COLOR = "#1f78b4"


def _kde_curve(values: np.ndarray, points: int = 200) -> tuple[np.ndarray, np.ndarray]:
    values = values[np.isfinite(values)]
    x_range = np.linspace(values.min(), values.max(), points)
    if np.ptp(values) == 0:
        return x_range, np.ones_like(x_range)
    return x_range, stats.gaussian_kde(values)(x_range)


def plot_histograms(frames: Mapping[str, pd.DataFrame]) -> dict[str, Axes]:
    """Density-scaled histogram of the values of every frame."""
    histograms = {}
    for name, frame in frames.items():
        _, ax = plt.subplots()
        ax.hist(
            frame["value"], bins=30, density=True, color=FILL_COLOR, edgecolor="black"
        )
        ax.set_xlabel(f"Values of {name}")
        ax.set_ylabel("Density")
        histograms[name] = ax
    return histograms


def plot_traceplots(frames: Mapping[str, pd.DataFrame]) -> dict[str, Axes]:
    """Trace of the draws by iteration, one line per chain and level."""
    traceplots = {}
    for name, frame in frames.items():
        if name == SAMPLED_Y:
            continue
        _, ax = plt.subplots()
        chains = sorted(frame["chain"].unique())
        colors = plt.get_cmap("viridis_r")(np.linspace(0, 1, max(len(chains), 2)))
        for color, chain in zip(colors, chains):
            subset = frame[frame["chain"] == chain]
            for i, (_, level) in enumerate(subset.groupby("level", sort=False)):
                ax.plot(
                    level["iteration"],
                    level["value"],
                    color=color,
                    linewidth=0.5,
                    label=f"Chain {chain}" if i == 0 else "_",
                )
        ax.set_xlabel("Iterations")
        ax.set_ylabel(f"{name} effect")
        ax.legend(loc="upper center", ncol=len(chains), fontsize="x-small")
        traceplots[name] = ax
    return traceplots


def plot_densities(
    frames: Mapping[str, pd.DataFrame],
    observed: np.ndarray | None = None,
) -> dict[str, Axes]:
    """Kernel density of each effect, and sampled vs empirical response."""
    densities = {}
    for name, frame in frames.items():
        _, ax = plt.subplots()
        x_range, density = _kde_curve(frame["value"].to_numpy(dtype=float))
        if name == SAMPLED_Y:
            ax.plot(x_range, density, color=FILL_COLOR, linewidth=1.3, label="Sampled")
            if observed is not None:
                x_obs, density_obs = _kde_curve(np.asarray(observed, dtype=float))
                ax.plot(
                    x_obs,
                    density_obs,
                    color=EMPIRICAL_COLOR,
                    linewidth=1.3,
                    label="Empirical",
                )
            ax.set_xlabel("Y")
            ax.legend(loc="upper center", ncol=2)
        else:
            ax.plot(x_range, density, color=FILL_COLOR, linewidth=1)
            ax.fill_between(x_range, density, color=FILL_COLOR, alpha=0.8)
            ax.set_xlabel(f"{name} effect")
        ax.set_ylabel("Frequency")
        densities[name] = ax
    return densities


def plot_posterior_frames(
    frames: Mapping[str, pd.DataFrame],
    observed: np.ndarray | None = None,
) -> dict[str, dict[str, Axes]]:
    """Histograms, trace plots and densities for a set of plot frames."""
    return {
        "histograms": plot_histograms(frames),
        "traceplots": plot_traceplots(frames),
        "densities": plot_densities(frames, observed),
    }


def plot_rhat(trace: az.InferenceData) -> Axes:
    """Histogram of the R-hat of every parameter, with the 1.01 threshold."""
    r_hat = az.summary(trace, kind="diagnostics")["r_hat"].to_numpy(dtype=float)
    _, ax = plt.subplots()
    ax.hist(r_hat[np.isfinite(r_hat)], bins=30, color=FILL_COLOR, edgecolor="black")
    ax.axvline(1.01, color="black", linestyle="--", linewidth=1)
    ax.set_xlabel("R-hat")
    ax.set_ylabel("Parameters")
    return ax


def plot_sampler_diagnostics(trace: az.InferenceData) -> dict:
    """Sampler diagnostic plots: R-hat histogram, energy, ESS and MCSE.

    The energy plot is produced only when the trace records sample energies.
    """
    plots = {"rhat": plot_rhat(trace)}
    sample_stats = getattr(trace, "sample_stats", None)
    if sample_stats is not None and "energy" in sample_stats:
        plots["energy"] = az.plot_energy(trace)
    plots["ess"] = az.plot_ess(trace, kind="evolution")
    plots["mcse"] = az.plot_mcse(trace)
    return plots
