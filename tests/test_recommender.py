"""Tests for the foam configuration recommender."""

import pytest

from intellifoam.physics.building_physics import PartType
from intellifoam.physics.recommender import (
    ConfigKind,
    FoamRecommendation,
    find_min_closed_split,
    recommend_foam_configuration,
)


def recommend(part_type, barrier=False, outdoor=-20, target=None, **kwargs):
    return recommend_foam_configuration(part_type, barrier, 21, outdoor, 40, target_thickness_mm=target, **kwargs)


class TestOuterWallWithoutBarrier:
    def test_zone_ii_150mm_is_flash_and_batt(self):
        rec = recommend(PartType.YTTERVAGG, target=150)
        assert rec.config == ConfigKind.FLASH_AND_BATT
        assert rec.closed_thickness_mm == 95
        assert rec.open_thickness_mm == 55
        assert rec.total_thickness_mm == 150
        assert "Flash-and-batt" in rec.explanation

    def test_open_remainder_respects_cutoff(self):
        """flash_and_batt only when the open-cell remainder is at least 50 mm."""
        for target in range(100, 260, 10):
            rec = recommend(PartType.YTTERVAGG, target=target)
            if rec.config == ConfigKind.FLASH_AND_BATT:
                assert rec.open_thickness_mm >= 50
            else:
                assert rec.config == ConfigKind.CLOSED_ONLY
                assert rec.closed_thickness_mm == target

    def test_short_remainder_falls_back_to_closed_only(self):
        rec = recommend(PartType.YTTERVAGG, target=120)
        assert rec.config == ConfigKind.CLOSED_ONLY
        assert rec.closed_thickness_mm == 120
        assert "45 mm öppencell" in rec.explanation

    def test_cutoff_is_configurable(self):
        rec = recommend(PartType.YTTERVAGG, target=120, flash_batt_min_open_mm=40)
        assert rec.config == ConfigKind.FLASH_AND_BATT
        assert (rec.closed_thickness_mm, rec.open_thickness_mm) == (75, 45)

    def test_default_target_is_closed_cell_code_minimum(self):
        rec = recommend(PartType.YTTERVAGG)
        assert rec.total_thickness_mm == 150

    def test_roof_default(self):
        rec = recommend(PartType.TAK)
        assert rec.config == ConfigKind.FLASH_AND_BATT
        assert (rec.closed_thickness_mm, rec.open_thickness_mm) == (125, 75)
        assert rec.interface.interface_temp - rec.interface.dew_point >= 2.0


class TestWithVaporBarrier:
    def test_zone_i_open_only_at_code_minimum(self):
        rec = recommend(PartType.YTTERVAGG, barrier=True, outdoor=-16)
        assert rec.config == ConfigKind.OPEN_ONLY
        assert rec.open_thickness_mm == 240
        assert rec.closed_thickness_mm == 0
        assert rec.u_value <= 0.18

    def test_target_is_kept(self):
        rec = recommend(PartType.TAK, barrier=True, target=200)
        assert rec.config == ConfigKind.OPEN_ONLY
        assert rec.open_thickness_mm == 200


class TestOtherParts:
    def test_inner_wall_defaults_to_100mm_open_cell(self):
        rec = recommend(PartType.INNERVAGG)
        assert rec.config == ConfigKind.OPEN_ONLY
        assert rec.open_thickness_mm == 100

    def test_inner_wall_target(self):
        assert recommend(PartType.INNERVAGG, target=70).open_thickness_mm == 70

    def test_floor_without_barrier_is_closed_only(self):
        rec = recommend(PartType.GOLV)
        assert rec.config == ConfigKind.CLOSED_ONLY
        assert rec.closed_thickness_mm == 180


class TestSplitSearch:
    def test_returns_smallest_safe_split(self):
        closed, needed = find_min_closed_split(150, 21, -20, 40)
        assert closed == 95
        assert needed.min_thickness_mm <= 95

    def test_no_split_when_target_below_floor(self):
        assert find_min_closed_split(30, 21, -20, 40) == (None, None)


class TestRecommendationShape:
    def test_flash_and_batt_needs_both_layers(self):
        with pytest.raises(ValueError):
            FoamRecommendation(ConfigKind.FLASH_AND_BATT, 100, 0, 100, 0.2, "")

    def test_closed_only_rejects_open_layer(self):
        with pytest.raises(ValueError):
            FoamRecommendation(ConfigKind.CLOSED_ONLY, 100, 20, 120, 0.2, "")
