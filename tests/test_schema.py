"""
Tests for effect schema resolution.

Run with: pytest tests/test_schema.py -v
"""

import pytest

from probbreed.errors import SchemaError
from probbreed.extraction import resolve_schema
from probbreed.schema import CANONICAL_NAMES, Effect, EffectSchema, Structure


class TestEffect:
    """Static code -> name table."""

    def test_canonical_names(self):
        assert CANONICAL_NAMES == {
            "r": "replicate",
            "b": "block",
            "m": "region",
            "l": "location",
            "t": "year",
            "g": "genotype",
            "gl": "gen.loc",
            "gt": "gen.year",
            "gm": "gen.reg",
        }

    def test_scale_name(self):
        assert Effect.GEN_LOC.scale_name == "s_gl"
        assert Effect.from_code("g") is Effect.GENOTYPE


class TestFromNames:
    """Resolution from sampler variable names."""

    def test_basic_model(self):
        schema = EffectSchema.from_names({"g", "l", "gl", "sigma", "s_g", "mu"})
        assert schema.structure is Structure.LOCATION
        assert schema.canonical_names == ("location", "genotype", "gen.loc")
        assert schema.residual_names == ("error",)
        assert not schema.heterogeneous_residual

    def test_region_with_design_effects(self):
        schema = EffectSchema.from_names({"r", "b", "m", "gm", "g", "l", "gl"})
        assert schema.structure is Structure.REGION
        assert schema.replicate and schema.block
        assert schema.codes == ("r", "b", "m", "l", "g", "gl", "gm")

    def test_year_model(self):
        schema = EffectSchema.from_names({"t", "gt", "g", "l", "gl"})
        assert schema.structure is Structure.YEAR
        assert "gen.year" in schema.canonical_names

    def test_heterogeneous_residual(self):
        schema = EffectSchema.from_names({"g", "l", "gl", "sigma_vec"}, (100, 3))
        assert schema.n_environments == 3
        assert schema.residual_names == ("error_env1", "error_env2", "error_env3")

    def test_heterogeneous_needs_matrix(self):
        with pytest.raises(SchemaError, match="Heterogeneous"):
            EffectSchema.from_names({"g", "l", "gl", "sigma_vec"}, (100,))

    @pytest.mark.parametrize("missing", ["g", "l", "gl"])
    def test_required_effects(self, missing):
        names = {"g", "l", "gl"} - {missing}
        with pytest.raises(SchemaError, match=missing):
            EffectSchema.from_names(names)

    @pytest.mark.parametrize(
        "optional",
        [{"m"}, {"gt"}, {"m", "gm", "t"}, {"m", "gm", "t", "gt"}],
    )
    def test_unsupported_structures(self, optional):
        with pytest.raises(SchemaError, match="structure"):
            EffectSchema.from_names({"g", "l", "gl"} | optional)

    def test_idempotent(self):
        names = ["gl", "g", "l", "r", "sigma"]
        assert EffectSchema.from_names(names) == EffectSchema.from_names(reversed(names))

    def test_invalid_environment_count(self):
        with pytest.raises(ValueError):
            EffectSchema(n_environments=0)


class TestResolveSchema:
    """Resolution from a RawPosterior."""

    def test_example_model(self, raw):
        schema = resolve_schema(raw)
        assert set(schema.canonical_names) == {"genotype", "location", "gen.loc"}
        assert schema.residual_names == ("error",)

    def test_heterogeneous(self, make_raw):
        schema = resolve_schema(make_raw(n_loc=4, heterogeneous=True))
        assert schema.n_environments == 4

    def test_same_keys_same_schema(self, make_raw):
        assert resolve_schema(make_raw(extra=("r",))) == resolve_schema(
            make_raw(extra=("r",))
        )
