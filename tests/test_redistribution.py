# tests/test_redistribution.py
import os
import sys
import pytest
import numpy as np
import pandas as pd

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from redistribution import (
    apply_coefficients,
    sprague,
    grabill_weights,
    blend_grabill,
    grabill,
)
from coefficients import sprague_expand, grabill_expand
from errors import DimensionMismatch, InsufficientGroups
from helpers import group_ages
from sample_data import p5_matrix, p6_matrix, heaped_series


class TestApplyCoefficients:
    """Coefficient matrix times count matrix"""

    def test_labels(self):
        p5 = p5_matrix()
        out = apply_coefficients(sprague_expand(21), p5)
        assert list(out.index) == list(range(0, 101))
        assert list(out.columns) == list(p5.columns)

    def test_index_starts_at_youngest_age(self):
        p5 = p5_matrix().loc[20:]
        out = apply_coefficients(sprague_expand(len(p5)), p5)
        assert out.index[0] == 20
        assert out.index[-1] == 100

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatch, match="columns"):
            apply_coefficients(sprague_expand(20), p5_matrix())

    def test_matches_matrix_product(self):
        p5 = p5_matrix()
        bm = sprague_expand(21)
        out = apply_coefficients(bm, p5)
        np.testing.assert_allclose(out.to_numpy(), bm @ p5.to_numpy())


class TestSprague:
    """Sprague split"""

    def test_worked_example_shape(self):
        out = sprague(p5_matrix())
        assert out.shape == (101, 5)
        assert out.index[0] == 0 and out.index[-1] == 100

    def test_preserves_period_totals(self):
        p5 = p5_matrix()
        out = sprague(p5)
        np.testing.assert_allclose(out.sum().to_numpy(), p5.sum().to_numpy(), rtol=1e-12)

    def test_open_group_passthrough(self):
        p5 = p5_matrix()
        out = sprague(p5)
        np.testing.assert_array_equal(out.loc[100].to_numpy(), p5.loc[100].to_numpy())

    def test_regrouping_recovers_groups(self):
        """Sprague multipliers reproduce each 5-year group total"""
        p5 = p5_matrix()
        out = sprague(p5)
        for col in p5.columns:
            regrouped = group_ages(out[col].to_numpy(), out.index.to_numpy())
            np.testing.assert_allclose(regrouped.to_numpy(), p5[col].to_numpy(), rtol=1e-9, atol=1e-6)

    def test_series_in_series_out(self):
        p5 = p5_matrix()
        out = sprague(p5[1950])
        assert isinstance(out, pd.Series)
        assert len(out) == 101
        assert out.sum() == pytest.approx(p5[1950].sum(), rel=1e-12)

    def test_series_name_kept(self):
        p5 = p5_matrix()
        assert sprague(p5[1950].rename(0)).name == 0
        assert sprague(p5[1950].rename(None)).name is None

    def test_float_input_not_mutated_through_view(self):
        p5 = p5_matrix()
        before = p5.copy()
        out = grabill(p5)
        out.iloc[:, :] = -1.0
        pd.testing.assert_frame_equal(p5, before)

    def test_string_age_labels(self):
        p5 = p5_matrix()
        labelled = p5.copy()
        labelled.index = [f"{a}-{a + 4}" for a in range(0, 100, 5)] + ["100+"]
        pd.testing.assert_frame_equal(sprague(labelled), sprague(p5), check_names=False)

    def test_closed_final_group(self):
        p5 = p5_matrix().iloc[:-1]
        out = sprague(p5, oag=False)
        assert out.shape == (100, 5)
        assert out.index[-1] == 99
        np.testing.assert_allclose(out.sum().to_numpy(), p5.sum().to_numpy(), rtol=1e-12)

    def test_does_not_mutate_input(self):
        p5 = p5_matrix()
        before = p5.copy()
        sprague(p5)
        pd.testing.assert_frame_equal(p5, before)

    def test_heaped_data_gives_negative_at_top(self):
        """Known behaviour: no clamp on the oldest closed ages"""
        grouped = group_ages(heaped_series())
        out = sprague(grouped)
        assert len(out) == 101
        assert (out.loc[90:99] < 0).any()
        assert out.loc[99] < 0

    def test_too_few_groups(self):
        with pytest.raises(InsufficientGroups):
            sprague(p5_matrix().iloc[:5])

    def test_non_increasing_ages_rejected(self):
        p5 = p5_matrix().iloc[::-1]
        with pytest.raises(ValueError, match="strictly increasing"):
            sprague(p5)


class TestGrabillWeights:
    """Exponential blending weights"""

    def test_values(self):
        w = grabill_weights(10)
        assert len(w) == 10
        assert w[0] == pytest.approx(np.exp(1) / np.exp(10.1))
        assert w[-1] == pytest.approx(np.exp(-0.1))

    def test_increasing_below_one(self):
        w = grabill_weights()
        assert np.all(np.diff(w) > 0)
        assert np.all((w > 0) & (w < 1))


class TestBlendGrabill:
    """Blend of Grabill into Sprague with marginal constraint"""

    def test_column_sums_match_sprague(self):
        p5 = p5_matrix().to_numpy()
        pops = sprague_expand(21) @ p5
        popg = grabill_expand(21) @ p5
        out = blend_grabill(pops, popg)
        np.testing.assert_allclose(out.sum(axis=0), pops.sum(axis=0), rtol=1e-9)

    def test_open_row_untouched(self):
        p5 = p5_matrix().to_numpy()
        pops = sprague_expand(21) @ p5
        popg = grabill_expand(21) @ p5
        out = blend_grabill(pops, popg)
        np.testing.assert_array_equal(out[-1], pops[-1])

    def test_does_not_mutate_inputs(self):
        p5 = p5_matrix().to_numpy()
        pops = sprague_expand(21) @ p5
        popg = grabill_expand(21) @ p5
        popg_before = popg.copy()
        blend_grabill(pops, popg)
        np.testing.assert_array_equal(popg, popg_before)

    def test_shape_mismatch(self):
        with pytest.raises(DimensionMismatch):
            blend_grabill(np.zeros((26, 2)), np.zeros((25, 2)))

    def test_identical_inputs_unchanged(self):
        pops = sprague_expand(6) @ p6_matrix().to_numpy()
        out = blend_grabill(pops, pops.copy())
        np.testing.assert_allclose(out, pops, rtol=1e-12)


class TestGrabill:
    """Grabill split"""

    def test_preserves_period_totals(self):
        p5 = p5_matrix()
        out = grabill(p5)
        assert out.shape == (101, 5)
        np.testing.assert_allclose(out.sum().to_numpy(), p5.sum().to_numpy(), rtol=1e-9)

    def test_open_group_passthrough(self):
        p5 = p5_matrix()
        out = grabill(p5)
        np.testing.assert_array_equal(out.loc[100].to_numpy(), p5.loc[100].to_numpy())

    def test_six_groups(self):
        p6 = p6_matrix()
        out = grabill(p6)
        assert out.shape == (26, 6)
        np.testing.assert_allclose(out.sum().to_numpy(), p6.sum().to_numpy(), rtol=1e-9)

    def test_differs_from_sprague(self):
        p5 = p5_matrix()
        assert not np.allclose(grabill(p5).to_numpy(), sprague(p5).to_numpy())

    def test_series_in_series_out(self):
        p5 = p5_matrix()
        out = grabill(p5[1952])
        assert isinstance(out, pd.Series)
        assert out.sum() == pytest.approx(p5[1952].sum(), rel=1e-9)
