"""Posterior outputs and probabilities for Bayesian multi-environment trials.

Provides:
- Effect schema resolution and posterior extraction (schema.py, extraction.py)
- Variance components and MAP estimates (variances.py, map_estimate.py)
- Posterior predictive checks, WAIC and sampler health (diagnostics.py)
- Plot frames and plots of posterior draws (plot_data.py, plotting.py)
- One-pass extraction of all outputs (outputs.py)
- Probabilities of superior performance and stability (probabilities.py)
"""

from probbreed.config import ExtractionConfig, RunMetadata
from probbreed.diagnostics import (
    DiagnosticsReport,
    WAICResult,
    check_model_diagnostics,
    compute_diagnostics,
    convergence_summary,
    posterior_predictive_pvalues,
    waic,
)
from probbreed.errors import (
    DensityError,
    DiagnosticsError,
    MetadataMismatchError,
    ProbBreedError,
    SchemaError,
)
from probbreed.extraction import (
    SAMPLED_Y,
    PosteriorBundle,
    RawPosterior,
    extract_posterior,
    load_trace,
    raw_posterior_from_trace,
    resolve_schema,
    run_metadata_from_trace,
    save_trace,
)
from probbreed.map_estimate import density_mode, estimate_map, silverman_bandwidth
from probbreed.outputs import ExtractedOutputs, extract_outputs, save_outputs
from probbreed.plot_data import build_plot_frame, build_plot_frames
from probbreed.probabilities import (
    ProbabilityResults,
    compute_probabilities,
    conditional_superior_performance,
    joint_probability,
    pairwise_superior_performance,
    pairwise_superior_stability,
    prob_superior_performance,
    prob_superior_stability,
)
from probbreed.schema import Effect, EffectSchema, Structure
from probbreed.variances import summarize_variances

__all__ = [
    "build_plot_frame",
    "build_plot_frames",
    "check_model_diagnostics",
    "compute_diagnostics",
    "compute_probabilities",
    "conditional_superior_performance",
    "convergence_summary",
    "density_mode",
    "DensityError",
    "DiagnosticsError",
    "DiagnosticsReport",
    "Effect",
    "EffectSchema",
    "estimate_map",
    "extract_outputs",
    "extract_posterior",
    "ExtractedOutputs",
    "ExtractionConfig",
    "joint_probability",
    "load_trace",
    "MetadataMismatchError",
    "pairwise_superior_performance",
    "pairwise_superior_stability",
    "posterior_predictive_pvalues",
    "PosteriorBundle",
    "prob_superior_performance",
    "prob_superior_stability",
    "ProbabilityResults",
    "ProbBreedError",
    "raw_posterior_from_trace",
    "RawPosterior",
    "resolve_schema",
    "run_metadata_from_trace",
    "RunMetadata",
    "SAMPLED_Y",
    "save_outputs",
    "save_trace",
    "SchemaError",
    "silverman_bandwidth",
    "Structure",
    "summarize_variances",
    "waic",
    "WAICResult",
]
