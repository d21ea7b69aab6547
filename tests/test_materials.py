"""
Tests for the material lookup table.
"""

import json
import logging

import pytest

from voxverb.config import OCTAVE_CENTERS
from voxverb.materials import MaterialTable


class TestBuiltin:
    """Tests for the seed material library."""

    def test_block_to_material(self, materials):
        assert materials.material_key_of("cobblestone") == "stone"
        assert materials.material_key_of("oak_planks") == "wood"

    def test_every_set_covers_all_bands(self, materials):
        for key in materials.materials():
            bands = [c.band for c in materials.coefficients_of(key)]
            assert bands == OCTAVE_CENTERS

    def test_every_block_resolves(self, materials):
        for block in materials.block_keys:
            assert materials.coefficients_for_block(block) is not None


class TestLookup:
    """Tests for lookups and assignment."""

    def test_unknown_block(self, materials):
        assert materials.material_key_of("bedrock") is None
        assert materials.coefficients_of(None) is None
        assert materials.coefficients_for_block("bedrock") is None

    def test_missing_block_warns_once(self, materials, caplog):
        caplog.set_level(logging.WARNING, logger="voxverb.materials")
        materials.coefficients_for_block("bedrock")
        materials.coefficients_for_block("bedrock")

        assert len([r for r in caplog.records if "bedrock" in r.getMessage()]) == 1

    def test_assign(self, materials):
        materials.assign("bedrock", "concrete")
        assert materials.material_key_of("bedrock") == "concrete"

        with pytest.raises(KeyError):
            materials.assign("bedrock", "unobtainium")


class TestLoading:
    """Tests for building tables from data."""

    def test_from_dicts_list_format(self):
        table = MaterialTable.from_dicts(
            {"tw": {"1000": 0.1, "125": 0.5}},
            [{"block": "test_wall", "coefficients": "tw"}],
        )
        coeffs = table.coefficients_for_block("test_wall")

        assert {(c.band, c.coefficient) for c in coeffs} == {(1000, 0.1), (125, 0.5)}

    def test_from_json(self, tmp_path):
        coef_path = tmp_path / "coefficients.json"
        blocks_path = tmp_path / "blocks.json"
        coef_path.write_text(json.dumps({"stone": {"125": 0.02, "4000": 0.05}}))
        blocks_path.write_text(json.dumps([{"block": "granite", "coefficients": "stone"}]))

        table = MaterialTable.from_json(coef_path, blocks_path)

        assert table.material_key_of("granite") == "stone"
        assert len(table.coefficients_of("stone")) == 2
