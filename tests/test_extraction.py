"""
Tests for posterior extraction and ArviZ trace adapters.

Run with: pytest tests/test_extraction.py -v
"""

import arviz as az
import numpy as np
import pytest

from probbreed.errors import SchemaError
from probbreed.extraction import (
    SAMPLED_Y,
    RawPosterior,
    extract_posterior,
    load_trace,
    raw_posterior_from_trace,
    resolve_schema,
    run_metadata_from_trace,
    save_trace,
)
from probbreed.schema import EffectSchema


class TestRawPosterior:
    """Construction and validation of raw sampler output."""

    def test_arrays_are_read_only(self, raw):
        with pytest.raises(ValueError):
            raw.draws["g"][0, 0] = 1.0
        with pytest.raises(TypeError):
            raw.draws["new"] = np.zeros(3)

    def test_draw_count_mismatch(self, rng):
        with pytest.raises(SchemaError, match="'g'"):
            RawPosterior(
                draws={"g": rng.normal(size=(10, 2))},
                y_gen=rng.normal(size=(20, 5)),
                log_lik=rng.normal(size=(20, 5)),
            )

    def test_level_labels_default_to_positions(self, raw):
        assert raw.level_labels("g") == [1, 2, 3, 4, 5]
        assert raw.level_labels("sigma") == [1]


class TestExtractPosterior:
    """Renaming and selection of effect draws."""

    def test_canonical_names_and_shapes(self, raw):
        bundle = extract_posterior(raw, resolve_schema(raw))
        assert list(bundle) == ["location", "genotype", "gen.loc", SAMPLED_Y]
        assert bundle["genotype"].shape == (1000, 5)
        assert bundle["location"].shape == (1000, 3)
        assert bundle["gen.loc"].shape == (1000, 15)
        assert bundle[SAMPLED_Y].shape == (1000, 30)
        assert len(bundle) == 4

    def test_values_are_copied_unchanged(self, raw):
        bundle = extract_posterior(raw, resolve_schema(raw))
        np.testing.assert_array_equal(bundle["gen.loc"].to_numpy(), raw.draws["gl"])
        np.testing.assert_array_equal(bundle[SAMPLED_Y].to_numpy(), raw.y_gen)

    def test_non_effects_excluded(self, raw):
        bundle = extract_posterior(raw, resolve_schema(raw))
        assert "mu" not in bundle
        assert "sigma" not in bundle

    def test_optional_effects(self, make_raw):
        raw = make_raw(extra=("r", "b", "t", "gt"))
        bundle = extract_posterior(raw, resolve_schema(raw))
        assert list(bundle)[:2] == ["replicate", "block"]
        assert {"year", "gen.year"} <= set(bundle)

    def test_missing_active_effect(self, raw):
        schema = EffectSchema(replicate=True)
        with pytest.raises(SchemaError, match="replicate"):
            extract_posterior(raw, schema)


@pytest.fixture
def trace(rng):
    """Two-chain ArviZ trace with labelled genotypes."""
    chains, draws, n_obs = 2, 50, 12
    return az.from_dict(
        posterior={
            "g": rng.normal(size=(chains, draws, 4)),
            "l": rng.normal(size=(chains, draws, 3)),
            "gl": rng.normal(size=(chains, draws, 12)),
            "s_g": np.abs(rng.normal(1, 0.1, (chains, draws))),
            "s_l": np.abs(rng.normal(1, 0.1, (chains, draws))),
            "s_gl": np.abs(rng.normal(1, 0.1, (chains, draws))),
            "sigma": np.abs(rng.normal(1, 0.1, (chains, draws))),
        },
        posterior_predictive={"y_gen": rng.normal(size=(chains, draws, n_obs))},
        log_likelihood={"y_log_like": rng.normal(-1, 0.1, (chains, draws, n_obs))},
        coords={"genotype": ["G1", "G2", "G3", "G4"]},
        dims={"g": ["genotype"]},
    )


class TestTraceAdapter:
    """RawPosterior built from ArviZ InferenceData."""

    def test_shapes_and_labels(self, trace):
        raw = raw_posterior_from_trace(trace)
        assert raw.n_draws == 100
        assert raw.draws["g"].shape == (100, 4)
        assert raw.draws["sigma"].shape == (100,)
        assert raw.y_gen.shape == (100, 12)
        assert raw.log_lik.shape == (100, 12)
        assert raw.level_labels("g") == ["G1", "G2", "G3", "G4"]

    def test_chain_major_order(self, trace):
        raw = raw_posterior_from_trace(trace)
        g = trace.posterior["g"].to_numpy()
        np.testing.assert_allclose(raw.draws["g"][:50], g[0])
        np.testing.assert_allclose(raw.draws["g"][50:], g[1])

    def test_summary_attached(self, trace):
        raw = raw_posterior_from_trace(trace)
        assert {"r_hat", "ess_bulk"} <= set(raw.summary.columns)

    def test_labels_flow_into_bundle(self, trace):
        raw = raw_posterior_from_trace(trace)
        bundle = extract_posterior(raw, resolve_schema(raw))
        assert list(bundle["genotype"].columns) == ["G1", "G2", "G3", "G4"]

    def test_run_metadata(self, trace):
        metadata = run_metadata_from_trace(trace)
        assert metadata.chains == 2
        assert metadata.iterations == 50
        assert metadata.warmup == 0

    def test_run_metadata_with_tuning_steps(self, trace):
        trace.posterior.attrs["tuning_steps"] = 25
        metadata = run_metadata_from_trace(trace)
        assert metadata.iterations == 75
        assert metadata.kept_per_chain == 50

    def test_missing_generated_response(self, trace):
        with pytest.raises(KeyError, match="y_rep"):
            raw_posterior_from_trace(trace, y_gen_var="y_rep")

    def test_netcdf_round_trip(self, trace, tmp_path):
        path = tmp_path / "trace.nc"
        save_trace(trace, path)
        loaded = load_trace(path)
        np.testing.assert_allclose(
            loaded.posterior["g"].to_numpy(), trace.posterior["g"].to_numpy()
        )
