"""
Tests for long-format plot frames.

Run with: pytest tests/test_plot_data.py -v
"""

import numpy as np
import pandas as pd
import pytest

from probbreed.config import RunMetadata
from probbreed.errors import MetadataMismatchError
from probbreed.extraction import SAMPLED_Y, extract_posterior, resolve_schema
from probbreed.plot_data import build_plot_frame, build_plot_frames


@pytest.fixture
def draws(rng):
    """4000 draws of a three-level effect from 4 chains of 1000."""
    return pd.DataFrame(rng.normal(size=(4000, 3)), columns=["L1", "L2", "L3"])


class TestBuildPlotFrame:

    def test_layout(self, draws):
        metadata = RunMetadata(chains=4, iterations=1100, warmup=100)
        frame = build_plot_frame(draws, metadata)
        assert len(frame) == 4000 * 3
        assert list(frame.columns) == ["value", "iteration", "chain", "level"]
        assert sorted(frame["chain"].unique()) == [1, 2, 3, 4]
        counts = frame.groupby(["level", "chain"])["iteration"].agg(["min", "max", "count"])
        assert (counts["min"] == 1).all()
        assert (counts["max"] == 1000).all()
        assert (counts["count"] == 1000).all()

    def test_values_stacked_by_level(self, draws):
        metadata = RunMetadata(chains=4, iterations=1100, warmup=100)
        frame = build_plot_frame(draws, metadata)
        level2 = frame[frame["level"] == "L2"]
        np.testing.assert_array_equal(level2["value"].to_numpy(), draws["L2"].to_numpy())

    def test_chain_major_indices(self, draws):
        metadata = RunMetadata(chains=4, iterations=1100, warmup=100)
        frame = build_plot_frame(draws, metadata)
        row = frame.iloc[2 * 1000 + 9]
        assert row["chain"] == 3
        assert row["iteration"] == 10
        assert row["value"] == draws["L1"].iloc[2009]

    def test_warmup_mismatch(self, draws):
        metadata = RunMetadata(chains=4, iterations=1100, warmup=200)
        with pytest.raises(MetadataMismatchError, match="4000 draws"):
            build_plot_frame(draws, metadata, name="location")

    @pytest.mark.parametrize(
        "metadata",
        [
            RunMetadata(chains=0, iterations=100, warmup=0),
            RunMetadata(chains=2, iterations=100, warmup=100),
            RunMetadata(chains=2, iterations=100, warmup=-1),
        ],
    )
    def test_invalid_metadata(self, draws, metadata):
        with pytest.raises(MetadataMismatchError):
            build_plot_frame(draws, metadata)


class TestBuildPlotFrames:

    def test_every_bundle_entry(self, raw, metadata):
        bundle = extract_posterior(raw, resolve_schema(raw))
        frames = build_plot_frames(bundle, metadata)
        assert list(frames) == list(bundle)
        assert len(frames["gen.loc"]) == 1000 * 15
        assert len(frames[SAMPLED_Y]) == 1000 * 30
