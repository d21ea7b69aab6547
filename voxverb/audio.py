# voxverb/audio.py
from __future__ import annotations
import io
import logging
import pathlib

import numpy as np
import soundfile as sf

logger = logging.getLogger(__name__)

PCM_SCALE = 32767


def to_pcm16(y: np.ndarray) -> np.ndarray:
    """Float samples -> int16, peak-normalised only when the peak exceeds 1."""
    y = np.asarray(y, dtype=np.float64).ravel()
    peak = float(np.max(np.abs(y))) if y.size else 0.0
    if peak > 1.0:
        y = y / peak
    return np.round(y * PCM_SCALE).astype(np.int16)


def wav_bytes(y: np.ndarray, sr: int) -> io.BytesIO:
    """Convert a mono signal to an in-memory 16-bit PCM WAV buffer."""
    buf = io.BytesIO()
    sf.write(buf, to_pcm16(y), int(sr), format="WAV", subtype="PCM_16")
    buf.seek(0)
    return buf


def write_wav(path: str | pathlib.Path, y: np.ndarray, sr: int) -> pathlib.Path:
    path = pathlib.Path(path)
    pcm = to_pcm16(y)
    try:
        sf.write(str(path), pcm, int(sr), format="WAV", subtype="PCM_16")
    except Exception:
        # no half-written files
        if path.exists():
            path.unlink()
        raise
    logger.info("Wrote %d samples (%.2f s) to %s", pcm.size, pcm.size / float(sr), path)
    return path
