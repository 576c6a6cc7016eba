# tests/test_coefficients.py
import os
import sys
import pytest
import numpy as np

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from coefficients import (
    G1G2,
    G3,
    G4G5,
    G3_GRABILL,
    sprague_expand,
    grabill_expand,
)
from errors import InsufficientGroups


class TestCoefficientBlocks:
    """Published multiplier tables"""

    def test_block_shapes(self):
        assert G1G2.shape == (10, 5)
        assert G3.shape == (5, 5)
        assert G4G5.shape == (10, 5)
        assert G3_GRABILL.shape == (5, 5)

    def test_old_block_mirrors_young_block(self):
        np.testing.assert_array_equal(G4G5, G1G2[::-1, ::-1])

    def test_middle_panel_reproduces_central_group(self):
        """Each 5-row panel returns the central group's total exactly"""
        np.testing.assert_allclose(G3.sum(axis=0), [0, 0, 1, 0, 0], atol=1e-12)

    def test_blocks_are_read_only(self):
        with pytest.raises(ValueError):
            G3[0, 0] = 1.0


class TestSpragueExpand:
    """Sprague coefficient matrix layout"""

    def test_shape_open_group(self):
        assert sprague_expand(21, oag=True).shape == (101, 21)

    def test_shape_closed_group(self):
        assert sprague_expand(21, oag=False).shape == (105, 21)

    @pytest.mark.parametrize("m", [6, 7, 21])
    @pytest.mark.parametrize("oag", [True, False])
    def test_columns_sum_to_one(self, m, oag):
        bm = sprague_expand(m, oag=oag)
        np.testing.assert_allclose(bm.sum(axis=0), np.ones(m), atol=1e-12)

    def test_open_group_passthrough_cell(self):
        bm = sprague_expand(21)
        assert bm[-1, -1] == 1.0
        assert np.all(bm[-1, :-1] == 0.0)
        assert np.all(bm[:-1, -1] == 0.0)

    def test_block_placement(self):
        bm = sprague_expand(8)
        np.testing.assert_array_equal(bm[0:10, 0:5], G1G2)
        # middle panels staggered one column per five rows
        np.testing.assert_array_equal(bm[10:15, 0:5], G3)
        np.testing.assert_array_equal(bm[15:20, 1:6], G3)
        np.testing.assert_array_equal(bm[25:35, 2:7], G4G5)

    def test_closed_layout_last_block(self):
        bm = sprague_expand(7, oag=False)
        np.testing.assert_array_equal(bm[-10:, -5:], G4G5)

    def test_idempotent(self):
        a = sprague_expand(17, oag=True)
        b = sprague_expand(17, oag=True)
        assert a.tobytes() == b.tobytes()

    def test_too_few_groups(self):
        with pytest.raises(InsufficientGroups, match="at least 6"):
            sprague_expand(5)

    def test_insufficient_groups_is_value_error(self):
        with pytest.raises(ValueError):
            sprague_expand(3, oag=False)


class TestGrabillExpand:
    """Grabill coefficient matrix layout"""

    def test_shape(self):
        assert grabill_expand(21).shape == (101, 21)
        assert grabill_expand(6).shape == (26, 6)

    def test_open_group_passthrough_cell(self):
        bm = grabill_expand(10)
        assert bm[-1, -1] == 1.0
        assert np.all(bm[:-1, -1] == 0.0)

    def test_middle_columns_sum_to_one(self):
        bm = grabill_expand(21)
        np.testing.assert_allclose(bm[:, 4:15].sum(axis=0), 1.0, atol=1e-12)

    def test_boundary_columns_not_constrained(self):
        bm = grabill_expand(21)
        assert not np.isclose(bm[:, 0].sum(), 1.0)
        assert not np.isclose(bm[:, -2].sum(), 1.0)

    def test_young_block_from_grabill_panel(self):
        bm = grabill_expand(8)
        np.testing.assert_array_equal(bm[0:5, 0:3], G3_GRABILL[:, 2:5])
        np.testing.assert_array_equal(bm[5:10, 0:4], G3_GRABILL[:, 1:5])
        assert np.all(bm[0:5, 3:] == 0.0)

    def test_old_block_from_grabill_panel(self):
        m = 8
        bm = grabill_expand(m)
        fr, fc = (m - 3) * 5, m - 6
        np.testing.assert_array_equal(bm[fr:fr + 5, fc + 1:fc + 5], G3_GRABILL[:, 0:4])
        np.testing.assert_array_equal(bm[fr + 5:fr + 10, fc + 2:fc + 5], G3_GRABILL[:, 0:3])

    def test_middle_panels(self):
        bm = grabill_expand(8)
        np.testing.assert_array_equal(bm[10:15, 0:5], G3_GRABILL)
        np.testing.assert_array_equal(bm[20:25, 2:7], G3_GRABILL)

    def test_too_few_groups(self):
        with pytest.raises(InsufficientGroups):
            grabill_expand(5)
