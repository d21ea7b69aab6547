"""
Tests for octave bands, energy vectors, media and the filter table.
"""

import numpy as np
import pytest

from voxverb.bands import (
    BAND_FILTERS,
    NUM_BANDS,
    band_index,
    coefficient_factors,
    energy_from_mapping,
    energy_to_mapping,
    is_dissipated,
    new_energy,
)
from voxverb.config import AIR, MEDIA, OCTAVE_CENTERS, AbsorptionCoefficient, SimConfig


class TestEnergyVectors:
    """Tests for per-band energy vectors."""

    def test_new_energy_is_ones(self):
        e = new_energy()
        assert e.shape == (NUM_BANDS,)
        assert np.all(e == 1.0)

    def test_missing_bands_read_as_zero(self):
        e = energy_from_mapping({1000: 0.5})
        assert e[band_index(1000)] == 0.5
        assert e.sum() == 0.5

    def test_mapping_roundtrip_keys(self):
        assert list(energy_to_mapping(new_energy())) == OCTAVE_CENTERS

    def test_unknown_band(self):
        with pytest.raises(KeyError):
            band_index(440)

    def test_dissipated_needs_every_band(self):
        e = np.zeros(NUM_BANDS)
        assert is_dissipated(e, 1e-8)
        e[0] = 1e-3
        assert not is_dissipated(e, 1e-8)

    def test_coefficient_factors_skip_unknown_bands(self):
        f = coefficient_factors([AbsorptionCoefficient(1000, 0.25), AbsorptionCoefficient(440, 0.9)])
        assert f[band_index(1000)] == 0.75
        assert f.sum() == pytest.approx(NUM_BANDS - 0.25)


class TestMedia:
    """Tests for media and config lookup."""

    def test_air_values(self):
        assert AIR.coef(125) == 0.0
        assert AIR.coef(4000) == 0.029
        assert AIR.as_array().shape == (NUM_BANDS,)

    def test_missing_band(self):
        with pytest.raises(KeyError):
            AIR.coef(440)

    def test_media_registry(self):
        assert set(MEDIA) == {"air", "water", "lava"}
        assert SimConfig(medium="Water").medium_obj() is MEDIA["water"]

    def test_unknown_medium(self):
        with pytest.raises(ValueError):
            SimConfig(medium="honey").medium_obj()


class TestFilterTable:
    """Tests for the band -> filter lookup."""

    def test_edges(self):
        assert BAND_FILTERS[125].btype == "lowpass"
        assert BAND_FILTERS[125].cutoff == (125.0,)
        assert BAND_FILTERS[4000].btype == "highpass"
        assert BAND_FILTERS[4000].cutoff == (4000.0,)

    def test_inner_bands_are_octave_wide(self):
        for band in (250, 500, 1000, 2000):
            spec = BAND_FILTERS[band]
            assert spec.btype == "bandpass"
            assert spec.cutoff == (band / 2.0, band * 2.0)
