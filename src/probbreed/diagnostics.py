"""Goodness-of-fit and convergence diagnostics for fitted models.

Includes:
- Posterior predictive p-values for max, min, median, mean and sd
- WAIC from the pointwise log-likelihood (WAIC-2 variance estimator)
- Mean R-hat and effective sample size ratio
- Sampler health report for ArviZ traces
"""

from dataclasses import astuple, dataclass

import arviz as az
import numpy as np
import pandas as pd
from scipy.special import logsumexp

from probbreed.errors import DiagnosticsError

PPC_STATISTICS = ("max", "min", "median", "mean", "sd")


@dataclass(frozen=True)
class WAICResult:
    """WAIC decomposition.

    Attributes:
        lppd: Log pointwise predictive density, summed over observations
        p_waic2: Effective number of parameters (sum of pointwise variances)
        elppd: Expected log pointwise predictive density (lppd - p_waic2)
        waic2: Information criterion on the deviance scale (-2 * elppd)
    """

    lppd: float
    p_waic2: float
    elppd: float
    waic2: float


@dataclass(frozen=True)
class DiagnosticsReport:
    """Posterior predictive checks, WAIC and convergence summaries."""

    p_val_max: float
    p_val_min: float
    p_val_median: float
    p_val_mean: float
    p_val_sd: float
    eff_no_parameters: float
    waic2: float
    mean_rhat: float
    eff_sample_size: float

    LABELS = (
        "p.val_max",
        "p.val_min",
        "p.val_median",
        "p.val_mean",
        "p.val_sd",
        "Eff_No_parameters",
        "WAIC2",
        "mean_Rhat",
        "Eff_sample_size",
    )

    def to_frame(self) -> pd.DataFrame:
        """One-column DataFrame with the conventional row labels."""
        return pd.DataFrame({"Diagnostics": astuple(self)}, index=list(self.LABELS))


def _finite_observed(y: np.ndarray) -> np.ndarray:
    y = np.asarray(y, dtype=float).ravel()
    y = y[np.isfinite(y)]
    if y.size < 2:
        raise DiagnosticsError(
            f"Observed response needs at least 2 finite values, got {y.size}"
        )
    return y


def _statistics(values: np.ndarray, axis: int | None = None) -> dict[str, np.ndarray]:
    return {
        "max": np.max(values, axis=axis),
        "min": np.min(values, axis=axis),
        "median": np.median(values, axis=axis),
        "mean": np.mean(values, axis=axis),
        "sd": np.std(values, axis=axis, ddof=1),
    }


def posterior_predictive_pvalues(y_rep: np.ndarray, y: np.ndarray) -> dict[str, float]:
    """Bayesian p-values comparing replicated and observed data.

    For each draw, each statistic of the replicated data is compared with the
    same statistic of the observed data. The p-value is the fraction of draws
    where the replicated statistic is strictly greater. Values near 0 or 1
    flag poor fit for that aspect of the distribution.

    Args:
        y_rep: Replicated data, shape (draws, observations)
        y: Observed data; non-finite values are dropped

    Returns:
        Dict of {statistic: p-value} for max, min, median, mean and sd

    Raises:
        DiagnosticsError: If fewer than 2 observed values are finite, or if
            the replicated data has any non-finite value
    """
    y = _finite_observed(y)
    y_rep = np.asarray(y_rep, dtype=float)
    if y_rep.ndim != 2 or y_rep.shape[0] == 0 or y_rep.shape[1] < 2:
        raise DiagnosticsError(
            f"Replicated data must be (draws, observations >= 2), got shape {y_rep.shape}"
        )
    if not np.all(np.isfinite(y_rep)):
        raise DiagnosticsError(
            f"Replicated data has non-finite values (shape {y_rep.shape})"
        )

    observed = _statistics(y)
    replicated = _statistics(y_rep, axis=1)
    n_draws = y_rep.shape[0]
    return {
        stat: float(np.sum(replicated[stat] > observed[stat]) / n_draws)
        for stat in PPC_STATISTICS
    }


def waic(log_lik: np.ndarray) -> WAICResult:
    """Widely applicable information criterion from pointwise log-likelihoods.

    lppd_i = log(mean_s exp(log_lik[s, i])), computed with log-sum-exp, and
    p_waic2 = sum_i var_s(log_lik[s, i]).

    Args:
        log_lik: Log-likelihood of each observation, shape (draws, observations)

    Raises:
        DiagnosticsError: If the matrix is empty or not finite
    """
    log_lik = np.asarray(log_lik, dtype=float)
    if log_lik.ndim != 2 or log_lik.shape[0] < 2 or log_lik.shape[1] == 0:
        raise DiagnosticsError(
            f"Log-likelihood must be (draws >= 2, observations >= 1), "
            f"got shape {log_lik.shape}"
        )
    if not np.all(np.isfinite(log_lik)):
        raise DiagnosticsError(
            f"Log-likelihood has non-finite values (shape {log_lik.shape})"
        )

    n_draws = log_lik.shape[0]
    lppd = float(np.sum(logsumexp(log_lik, axis=0) - np.log(n_draws)))
    p_waic2 = float(np.sum(np.var(log_lik, axis=0, ddof=1)))
    elppd = lppd - p_waic2
    return WAICResult(lppd=lppd, p_waic2=p_waic2, elppd=elppd, waic2=-2 * elppd)


def convergence_summary(
    summary: pd.DataFrame,
    n_draws: int,
    ess_column: str = "ess_bulk",
) -> tuple[float, float]:
    """Mean R-hat and mean effective sample size as a fraction of draws.

    Parameters with undefined statistics (NaN, e.g. constants) are ignored.

    Returns:
        (mean R-hat, mean ESS / n_draws)

    Raises:
        DiagnosticsError: If a column is missing or holds no finite values
    """
    means = []
    for column in ("r_hat", ess_column):
        if column not in summary.columns:
            raise DiagnosticsError(
                f"Convergence summary lacks '{column}' "
                f"(columns: {list(summary.columns)})"
            )
        values = pd.to_numeric(summary[column], errors="coerce").to_numpy(dtype=float)
        values = values[np.isfinite(values)]
        if values.size == 0:
            raise DiagnosticsError(f"Convergence summary has no finite '{column}'")
        means.append(float(values.mean()))
    mean_rhat, mean_ess = means
    return mean_rhat, mean_ess / n_draws


def compute_diagnostics(
    y_rep: np.ndarray,
    y: np.ndarray,
    log_lik: np.ndarray,
    summary: pd.DataFrame | None,
) -> DiagnosticsReport:
    """Posterior predictive p-values, WAIC and convergence summaries.

    Args:
        y_rep: Replicated data, shape (draws, observations)
        y: Observed response; non-finite values are dropped
        log_lik: Pointwise log-likelihood, shape (draws, observations)
        summary: Convergence statistics with r_hat and ess_bulk columns

    Returns:
        DiagnosticsReport

    Raises:
        DiagnosticsError: If inputs are empty, non-finite or inconsistent
    """
    y_rep = np.asarray(y_rep, dtype=float)
    log_lik = np.asarray(log_lik, dtype=float)
    n_obs = _finite_observed(y).size
    if y_rep.ndim != 2 or log_lik.ndim != 2:
        raise DiagnosticsError(
            f"Expected 2-D draws, got y_rep {y_rep.shape} and log_lik {log_lik.shape}"
        )
    if not y_rep.shape[1] == log_lik.shape[1] == n_obs:
        raise DiagnosticsError(
            f"Observation counts disagree: y_rep {y_rep.shape}, "
            f"log_lik {log_lik.shape}, {n_obs} finite observed values"
        )
    if summary is None:
        raise DiagnosticsError("No convergence summary available for the posterior")

    p_values = posterior_predictive_pvalues(y_rep, y)
    criterion = waic(log_lik)
    mean_rhat, ess_ratio = convergence_summary(summary, y_rep.shape[0])

    return DiagnosticsReport(
        p_val_max=p_values["max"],
        p_val_min=p_values["min"],
        p_val_median=p_values["median"],
        p_val_mean=p_values["mean"],
        p_val_sd=p_values["sd"],
        eff_no_parameters=criterion.p_waic2,
        waic2=criterion.waic2,
        mean_rhat=mean_rhat,
        eff_sample_size=ess_ratio,
    )


# --- Sampler health ---


def check_model_diagnostics(trace: az.InferenceData) -> pd.DataFrame:
    """Check the inference data for potential sampling problems.

    Diagnostics applied:
    - R-hat: values > 1.01 suggest chains have not converged.
    - ESS: fewer than 400 effective draws signals high autocorrelation.
    - MCSE/sd ratio: above 5% the posterior means are not reliable.
    - Divergent transitions: more than 1 in 10,000 may bias estimates.
    - Tree depth saturation: 5% or more at max depth signals hard geometry.
      Without a recorded configured maximum, the observed maximum depth is
      used, and the check is skipped when that is below 10.
    - BFMI: below 0.3 suggests poor exploration of the energy distribution.

    Checks whose sample statistics are absent from the trace are skipped.

    Returns:
        DataFrame indexed by check with columns statistic, threshold, flagged
    """

    def warn(w: bool) -> str:
        return "--- THERE BE DRAGONS ---> " if w else ""

    rows = {}
    summary = az.summary(trace, kind="diagnostics")

    statistic = float(summary.r_hat.max())
    rows["Maximum R-hat"] = (statistic, 1.01, statistic > 1.01)

    statistic = float(summary[["ess_tail", "ess_bulk"]].min().min())
    rows["Minimum ESS"] = (statistic, 400, statistic < 400)

    stats_summary = az.summary(trace, kind="stats")
    statistic = float((summary["mcse_mean"] / stats_summary["sd"]).max())
    rows["Maximum MCSE/sd ratio"] = (statistic, 0.05, statistic > 0.05)

    sample_stats = getattr(trace, "sample_stats", None)
    total_samples = trace.posterior.sizes["draw"] * trace.posterior.sizes["chain"]
    if sample_stats is not None and "diverging" in sample_stats:
        rate = float(np.sum(sample_stats.diverging)) / total_samples
        rows["Divergence rate"] = (rate, 1 / 10_000, rate > 1 / 10_000)
    if sample_stats is not None and "reached_max_treedepth" in sample_stats:
        rate = float(sample_stats.reached_max_treedepth.to_numpy().mean())
        rows["Max tree depth rate"] = (rate, 0.05, rate >= 0.05)
    elif sample_stats is not None and "tree_depth" in sample_stats:
        # no configured maximum recorded: compare to the observed max
        tree_depth = sample_stats.tree_depth.to_numpy()
        max_depth = int(tree_depth.max())
        if max_depth < 10:
            print("Tree depth check skipped (max depth too low).")
        else:
            rate = float((tree_depth == max_depth).mean())
            rows["Max tree depth rate"] = (rate, 0.05, rate >= 0.05)
    if sample_stats is not None and "energy" in sample_stats:
        statistic = float(az.bfmi(trace).min())
        rows["Minimum BFMI"] = (statistic, 0.3, statistic < 0.3)

    report = pd.DataFrame.from_dict(
        rows, orient="index", columns=["statistic", "threshold", "flagged"]
    )
    for check, row in report.iterrows():
        print(f"{warn(row.flagged)}{check}: {row.statistic:0.4g}")
    return report
