# voxverb/synthesis.py
"""
Sparse IR matrix -> playable impulse response.

Each octave band is rendered independently: the sparse arrivals are
seeded into a dense envelope, broadened by explicit diffusion, shaped by an
estimated decay curve, turned into noise (a real IR is diffuse broadband
noise under an energy envelope), and band-limited. The bands are then
mixed and the tail is cleaned up.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
import logging
import math

import numpy as np
from scipy.signal import butter, sosfilt

from .aggregation import IRMatrix
from .bands import BAND_FILTERS, FilterSpec
from .config import OCTAVE_CENTERS, SynthConfig
from .errors import EmptyImpulseResponseError
from .physics import schroeder_edc, estimate_rt60_from_edc

logger = logging.getLogger(__name__)


@dataclass
class ImpulseResponse:
    bands: Dict[int, np.ndarray]   # per-band filtered signals, full length
    combined: np.ndarray           # mixed + cleaned
    fs: int

    @property
    def duration_s(self) -> float:
        return float(self.combined.size) / float(self.fs)

    def rt60(self) -> Optional[float]:
        return estimate_rt60_from_edc(schroeder_edc(self.combined), self.fs)


# -----------------------------
# Envelope
# -----------------------------

def seed_band(matrix: IRMatrix, band: int, length: int, decimals: int = 8) -> np.ndarray:
    env = np.zeros(int(length), dtype=float)
    keys, vals = matrix.band_series(band)
    env[keys] = np.round(np.clip(vals, 0.0, 1.0), int(decimals))
    return env


def estimate_decay(matrix: IRMatrix, band: int, decay_scale: float) -> Tuple[float, int]:
    """
    (decay rate, first arrival index) from the first, middle and last
    non-zero taps: rate = ln(last / first) / (last - first) * decay_scale.
    """
    keys, vals = matrix.band_series(band)
    nz = keys[vals > 0]
    if nz.size == 0:
        return 0.0, 0
    first, middle, last = int(nz[0]), int(nz[nz.size // 2]), int(nz[-1])
    if middle == 0 or last == 0:
        return 0.1, first
    if first <= 0 or last <= first:
        return 0.0, first
    rate = math.log(last / first) / (last - first)
    return rate * float(decay_scale), first


def diffuse(env: np.ndarray, alpha: float, iterations: int) -> np.ndarray:
    """Explicit 1-D diffusion: buf[i] += alpha * (buf[i-1] + buf[i+1] - 2 buf[i])."""
    buf = np.asarray(env, dtype=float).copy()
    if buf.size < 3:
        return buf
    for _ in range(int(iterations)):
        buf[1:-1] += float(alpha) * (buf[:-2] + buf[2:] - 2.0 * buf[1:-1])
    return buf


def decay_envelope(length: int, first: int, rate: float) -> np.ndarray:
    if rate == 0:
        return np.ones(int(length), dtype=float)
    i = np.arange(int(length), dtype=float)
    return np.clip(1.0 - rate * (i - first), 0.0, 1.0) ** 3


def shape_noise(env: np.ndarray, first: int, rate: float, noise_floor: float,
                rng: np.random.Generator) -> np.ndarray:
    e = np.clip(env, 0.0, 1.0) * decay_envelope(env.size, first, rate)
    noise = (rng.random(e.size) - 0.5) * e
    return noise + np.where(e > 0.0, float(noise_floor) * e, 0.0)


# -----------------------------
# Filtering & mixing
# -----------------------------

def apply_band_filter(x: np.ndarray, spec: FilterSpec, fs: int, order: int = 2) -> np.ndarray:
    cutoff = spec.cutoff[0] if len(spec.cutoff) == 1 else list(spec.cutoff)
    sos = butter(int(order), cutoff, btype=spec.btype, fs=float(fs), output="sos")
    return sosfilt(sos, np.asarray(x, dtype=float))


def mix_bands(bands: Dict[int, np.ndarray]) -> np.ndarray:
    return np.sum(np.stack([bands[b] for b in sorted(bands)]), axis=0)


# -----------------------------
# Cleanup
# -----------------------------

def trim_trailing_zeros(x: np.ndarray) -> np.ndarray:
    rev = np.asarray(x)[::-1]
    nz = np.flatnonzero(rev != 0.0)
    if nz.size == 0:
        return rev[:0].copy()
    return rev[nz[0]:][::-1].copy()


def find_silence_run(x: np.ndarray, start: int, run: int, threshold: float = 0.0) -> int:
    """Index of the last sample of the first `run` quiet samples from `start`, or -1."""
    quiet = (np.abs(np.asarray(x)[start:]) <= threshold).astype(np.int64)
    run = int(run)
    if run <= 0 or quiet.size < run:
        return -1
    window = np.convolve(quiet, np.ones(run, dtype=np.int64), mode="valid")
    hits = np.flatnonzero(window == run)
    if hits.size == 0:
        return -1
    return int(start + hits[0] + run - 1)


def find_decay_floor(x: np.ndarray, start: int, chunk: int, count: int) -> int:
    """
    End index of the `count`-th consecutive chunk whose peak |x| falls
    under the previous chunk's mean |x|, or -1.
    """
    a = np.abs(np.asarray(x, dtype=float))
    prev_mean = math.inf
    streak = 0
    for i in range(int(start), a.size, int(chunk)):
        c = a[i:i + int(chunk)]
        cmax = float(c.max())
        cmean = float(c.mean())
        if cmax < prev_mean or (cmax == 0.0 and prev_mean == 0.0):
            streak += 1
            if streak == int(count):
                return min(i + int(chunk), a.size) - 1
        else:
            streak = 0
        prev_mean = cmean
    return -1


def apply_taper(x: np.ndarray, start_frac: float, rate: float) -> np.ndarray:
    x = np.asarray(x, dtype=float).copy()
    start = int(round(x.size * float(start_frac)))
    i = np.arange(start, x.size, dtype=float)
    x[start:] *= np.exp(-float(rate) * (i - start))
    return x


def cleanup(x: np.ndarray, cfg: Optional[SynthConfig] = None) -> np.ndarray:
    cfg = cfg or SynthConfig()
    x = trim_trailing_zeros(x)
    if x.size == 0:
        logger.warning("Combined IR is silent after trimming")
        return x

    peak = int(np.argmax(np.abs(x)))
    cuts = [
        find_silence_run(x, peak, cfg.silence_run, cfg.silence_threshold),
        find_decay_floor(x, peak, cfg.decay_chunk, cfg.decay_chunks),
    ]
    cuts = [c for c in cuts if c > peak]
    if cuts:
        x = x[:min(cuts)]
    if cfg.taper:
        x = apply_taper(x, cfg.taper_start, cfg.taper_rate)
    return x


# -----------------------------
# Entry point
# -----------------------------

def synthesize(matrix: IRMatrix, cfg: Optional[SynthConfig] = None) -> ImpulseResponse:
    cfg = cfg or SynthConfig()
    if len(matrix) == 0:
        raise EmptyImpulseResponseError("No energy data available for IR generation")
    matrix.freeze()

    length = matrix.max_delay + 1
    rng = np.random.default_rng(int(cfg.rng_seed))
    logger.info("Synthesizing IR: %d samples (%.2f s)", length, length / float(cfg.fs))

    bands: Dict[int, np.ndarray] = {}
    for band in OCTAVE_CENTERS:
        logger.debug("processing band: %d Hz", band)
        env = seed_band(matrix, band, length, cfg.energy_decimals)
        rate, first = estimate_decay(matrix, band, cfg.decay_scale)
        env = diffuse(env, cfg.diffusion_alpha, cfg.smoothing_iterations)
        sig = shape_noise(env, first, rate, cfg.noise_floor, rng)
        bands[band] = apply_band_filter(sig, BAND_FILTERS[band], cfg.fs, cfg.filter_order)

    combined = cleanup(mix_bands(bands), cfg)
    logger.info("IR waveform generated (%.2f seconds)", combined.size / float(cfg.fs))
    return ImpulseResponse(bands, combined, int(cfg.fs))
