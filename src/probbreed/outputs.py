"""Extract all outputs of a fitted multi-environment model in one pass.

Steps:
1. Resolve the effect schema and extract the posterior effects
2. Summarize the variance components
3. Estimate MAP values
4. Compute goodness-of-fit diagnostics
5. Build long-format plot frames
6. Report sampler health (ArviZ traces only)
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import arviz as az
import numpy as np
import pandas as pd

from probbreed.config import ExtractionConfig, RunMetadata
from probbreed.diagnostics import DiagnosticsReport, check_model_diagnostics, compute_diagnostics
from probbreed.extraction import (
    PosteriorBundle,
    RawPosterior,
    extract_posterior,
    raw_posterior_from_trace,
    resolve_schema,
    run_metadata_from_trace,
)
from probbreed.map_estimate import estimate_map
from probbreed.plot_data import build_plot_frames
from probbreed.plotting import plot_sampler_diagnostics
from probbreed.schema import EffectSchema
from probbreed.variances import summarize_variances

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ExtractedOutputs:
    """Container for the outputs of a fitted model.

    Attributes:
        schema: Active effects of the model
        post: Posterior draws of each effect, plus the generated response
        variances: Variance component summaries
        map: MAP values per effect level
        ppcheck: Posterior predictive checks, WAIC and convergence summaries
        plot_frames: Long-format draws with chain/iteration indices
        sampler_report: Sampler health checks (None without an ArviZ trace)
        sampler_plots: ArviZ diagnostic plots (None without an ArviZ trace)
    """

    schema: EffectSchema
    post: PosteriorBundle
    variances: pd.DataFrame
    map: dict[str, pd.Series]
    ppcheck: DiagnosticsReport
    plot_frames: dict[str, pd.DataFrame]
    sampler_report: pd.DataFrame | None = None
    sampler_plots: dict | None = None


def observed_response(data: pd.DataFrame, trait: str) -> np.ndarray:
    """Observed trait values with missing records dropped.

    Raises:
        KeyError: If the trait is not a column of data
        ValueError: If a recorded value is not numeric
    """
    if trait not in data.columns:
        raise KeyError(f"Trait '{trait}' not found in data columns {list(data.columns)}")
    values = data[trait]
    return values[values.notna()].to_numpy(dtype=float)


def extract_outputs(
    data: pd.DataFrame,
    trait: str,
    model: RawPosterior | az.InferenceData,
    metadata: RunMetadata | None = None,
    config: ExtractionConfig | None = None,
) -> ExtractedOutputs:
    """Extract posterior effects, variances, MAP values and diagnostics.

    Args:
        data: Trial observations
        trait: Column of data holding the analysed trait
        model: Posterior output of the fitted model, either as a RawPosterior
            or an ArviZ trace
        metadata: Sampler run layout. Derived from the trace when model is an
            ArviZ trace and metadata is None.
        config: Extraction settings (uses defaults if None)

    Returns:
        ExtractedOutputs

    Raises:
        SchemaError, DensityError, DiagnosticsError, MetadataMismatchError:
            when the corresponding step cannot be completed
    """
    if config is None:
        config = ExtractionConfig()

    trace = None
    if isinstance(model, az.InferenceData):
        trace = model
        raw = raw_posterior_from_trace(trace)
        if metadata is None:
            metadata = run_metadata_from_trace(trace)
    else:
        raw = model
    if metadata is None:
        raise ValueError("Run metadata is required when model is a RawPosterior")

    def progress(message: str) -> None:
        if config.verbose:
            logger.info(message)

    y = observed_response(data, trait)

    schema = resolve_schema(raw)
    post = extract_posterior(raw, schema)
    progress("1. Posterior effects extracted")

    variances = summarize_variances(raw, schema, config.probs)
    progress("2. Variances extracted")

    map_table = estimate_map(post, config.grid_points, config.cut)
    progress("3. Maximum posterior values extracted")

    ppcheck = compute_diagnostics(raw.y_gen, y, raw.log_lik, raw.summary)
    progress("4. Goodness-of-fit diagnostics computed")

    plot_frames = build_plot_frames(post, metadata)
    progress("5. Plot frames built")

    sampler_report = None
    sampler_plots = None
    if config.check_sampler_diagnostics:
        if trace is None:
            logger.warning("Sampler diagnostics need an ArviZ trace; skipped")
        else:
            sampler_report = check_model_diagnostics(trace)
            sampler_plots = plot_sampler_diagnostics(trace)
            progress("6. Sampler diagnostic plots built")

    return ExtractedOutputs(
        schema=schema,
        post=post,
        variances=variances,
        map=map_table,
        ppcheck=ppcheck,
        plot_frames=plot_frames,
        sampler_report=sampler_report,
        sampler_plots=sampler_plots,
    )


def map_table_frame(map_table: dict[str, pd.Series]) -> pd.DataFrame:
    """Long DataFrame of MAP values with columns effect, level, map."""
    return pd.concat(
        [
            pd.DataFrame({"effect": name, "level": values.index, "map": values.to_numpy()})
            for name, values in map_table.items()
        ],
        ignore_index=True,
    )


def save_outputs(outputs: ExtractedOutputs, directory: str | Path) -> None:
    """Write the variance, MAP and diagnostics tables as CSV files.

    Args:
        outputs: Extracted outputs
        directory: Output directory (created if missing)
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    outputs.variances.to_csv(directory / "variances.csv", index=False)
    map_table_frame(outputs.map).to_csv(directory / "map.csv", index=False)
    outputs.ppcheck.to_frame().to_csv(directory / "ppcheck.csv")
