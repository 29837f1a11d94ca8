"""Extract posterior draws and map them onto named model effects.

Draw arrays are indexed (draws, ...) throughout. Multi-chain traces are
flattened chain-major, so draw k of chain c sits at c * draws_per_chain + k.
"""

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import arviz as az
import numpy as np
import pandas as pd

from probbreed.config import RunMetadata
from probbreed.errors import SchemaError
from probbreed.schema import RESIDUAL_SCALE, EffectSchema

SAMPLED_Y = "sampled.Y"


def _frozen(values) -> np.ndarray:
    array = np.array(values, dtype=float)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class RawPosterior:
    """Posterior output of a fitted model, as returned by the sampler.

    Attributes:
        draws: Parameter name -> draws, shape (draws,) or (draws, levels)
        y_gen: Generated response, shape (draws, observations)
        log_lik: Pointwise log-likelihood, shape (draws, observations)
        summary: Per-parameter convergence statistics with ``r_hat`` and
            ``ess_bulk`` columns (ArviZ naming), or None if unavailable
        levels: Optional level labels per parameter
    """

    draws: Mapping[str, np.ndarray]
    y_gen: np.ndarray
    log_lik: np.ndarray
    summary: pd.DataFrame | None = None
    levels: Mapping[str, Sequence] = field(default_factory=dict)

    def __post_init__(self) -> None:
        draws = {name: _frozen(values) for name, values in self.draws.items()}
        object.__setattr__(self, "draws", MappingProxyType(draws))
        object.__setattr__(self, "y_gen", _frozen(self.y_gen))
        object.__setattr__(self, "log_lik", _frozen(self.log_lik))
        object.__setattr__(self, "levels", MappingProxyType(dict(self.levels)))

        n_draws = self.n_draws
        for name, values in draws.items():
            if values.ndim not in (1, 2) or values.shape[0] != n_draws:
                raise SchemaError(
                    f"Parameter '{name}' has shape {values.shape}; expected "
                    f"({n_draws},) or ({n_draws}, levels)"
                )

    @property
    def n_draws(self) -> int:
        return self.y_gen.shape[0]

    @property
    def names(self) -> frozenset[str]:
        return frozenset(self.draws)

    def level_labels(self, name: str) -> list:
        """Level labels for a parameter, defaulting to 1-based positions."""
        values = self.draws[name]
        width = 1 if values.ndim == 1 else values.shape[1]
        labels = self.levels.get(name)
        if labels is None or len(labels) != width:
            return list(range(1, width + 1))
        return list(labels)


def resolve_schema(raw: RawPosterior) -> EffectSchema:
    """Resolve the effect schema of a raw posterior."""
    residual = raw.draws.get(RESIDUAL_SCALE)
    residual_shape = None if residual is None else residual.shape
    return EffectSchema.from_names(raw.names, residual_shape)


@dataclass(frozen=True, eq=False)
class PosteriorBundle(Mapping):
    """Posterior draws of the active effects under their canonical names.

    Each entry is a DataFrame with rows=draws, columns=levels. The generated
    response is stored last under ``sampled.Y``.
    """

    effects: Mapping[str, pd.DataFrame]
    sampled_y: pd.DataFrame

    def __post_init__(self) -> None:
        object.__setattr__(self, "effects", MappingProxyType(dict(self.effects)))

    def __getitem__(self, key: str) -> pd.DataFrame:
        if key == SAMPLED_Y:
            return self.sampled_y
        return self.effects[key]

    def __iter__(self) -> Iterator[str]:
        yield from self.effects
        yield SAMPLED_Y

    def __len__(self) -> int:
        return len(self.effects) + 1

    @property
    def n_draws(self) -> int:
        return len(self.sampled_y)


def _draws_frame(values: np.ndarray, labels: Sequence) -> pd.DataFrame:
    frame = pd.DataFrame(values.reshape(values.shape[0], -1).copy(), columns=labels)
    frame.index.name = "draw"
    return frame


def extract_posterior(raw: RawPosterior, schema: EffectSchema) -> PosteriorBundle:
    """Copy the draws of each active effect under its canonical name.

    Args:
        raw: Posterior output of the sampler
        schema: Active effects of the model

    Returns:
        PosteriorBundle in schema order, plus the generated response

    Raises:
        SchemaError: If an active effect has no draws in the raw posterior
    """
    effects = {}
    for effect in schema.effects:
        if effect.code not in raw.draws:
            raise SchemaError(
                f"Effect '{effect.canonical}' ('{effect.code}') is active "
                "but has no draws"
            )
        effects[effect.canonical] = _draws_frame(
            raw.draws[effect.code], raw.level_labels(effect.code)
        )

    y_gen = raw.y_gen.reshape(raw.n_draws, -1)
    sampled_y = _draws_frame(y_gen, list(range(1, y_gen.shape[1] + 1)))
    return PosteriorBundle(effects=effects, sampled_y=sampled_y)


# --- ArviZ traces ---


def _stacked_var(
    trace: az.InferenceData, group: str, var_name: str
) -> tuple[np.ndarray, list | None]:
    """Extract chains/draws for a variable, stacked chain-major.

    Returns array with rows=samples and the level labels of a vector variable.
    """
    data = az.extract(trace, group=group, var_names=var_name).transpose("sample", ...)
    labels = None
    if data.ndim == 2:
        labels = data.coords[data.dims[1]].to_numpy().tolist()
    values = data.to_numpy()
    if values.ndim > 2:
        values = values.reshape(values.shape[0], -1)
    return values, labels


def _find_group(trace: az.InferenceData, var_name: str, preferred: str) -> str:
    groups = trace.groups()
    if preferred in groups and var_name in getattr(trace, preferred).data_vars:
        return preferred
    if var_name in trace.posterior.data_vars:
        return "posterior"
    raise KeyError(f"Variable '{var_name}' not found in groups {groups}")


def raw_posterior_from_trace(
    trace: az.InferenceData,
    y_gen_var: str = "y_gen",
    log_lik_var: str = "y_log_like",
) -> RawPosterior:
    """Build a RawPosterior from an ArviZ InferenceData trace.

    The generated response is read from the posterior_predictive group and the
    log-likelihood from the log_likelihood group when present, otherwise from
    the posterior (where Stan stores generated quantities).

    Args:
        trace: Fitted model trace
        y_gen_var: Name of the generated response variable
        log_lik_var: Name of the pointwise log-likelihood variable

    Returns:
        RawPosterior with a convergence summary attached
    """
    skip = {y_gen_var, log_lik_var}
    draws = {}
    levels = {}
    for var_name in trace.posterior.data_vars:
        if var_name in skip:
            continue
        values, labels = _stacked_var(trace, "posterior", var_name)
        draws[var_name] = values
        if labels is not None:
            levels[var_name] = labels

    y_gen, _ = _stacked_var(
        trace, _find_group(trace, y_gen_var, "posterior_predictive"), y_gen_var
    )
    log_lik, _ = _stacked_var(
        trace, _find_group(trace, log_lik_var, "log_likelihood"), log_lik_var
    )

    return RawPosterior(
        draws=draws,
        y_gen=y_gen.reshape(y_gen.shape[0], -1),
        log_lik=log_lik.reshape(log_lik.shape[0], -1),
        summary=az.summary(trace, kind="diagnostics"),
        levels=levels,
    )


def run_metadata_from_trace(trace: az.InferenceData) -> RunMetadata:
    """Recover chain and iteration counts from a trace.

    Warmup length comes from the ``tuning_steps`` attribute written by PyMC,
    or the warmup_posterior group when warmup draws were saved.
    """
    sizes = trace.posterior.sizes
    warmup = trace.posterior.attrs.get("tuning_steps")
    if warmup is None:
        if "warmup_posterior" in trace.groups():
            warmup = trace.warmup_posterior.sizes["draw"]
        else:
            warmup = 0
    warmup = int(warmup)
    return RunMetadata(
        chains=int(sizes["chain"]),
        iterations=int(sizes["draw"]) + warmup,
        warmup=warmup,
    )


def save_trace(trace: az.InferenceData, path: str | Path) -> None:
    """Save trace to NetCDF file.

    Args:
        trace: ArviZ InferenceData to save
        path: Output file path (.nc extension recommended)
    """
    trace.to_netcdf(str(path))


def load_trace(path: str | Path) -> az.InferenceData:
    """Load trace from NetCDF file."""
    return az.from_netcdf(str(path))
