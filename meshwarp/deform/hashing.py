from __future__ import annotations

import numpy as np


_MOD = 100000.0


def lattice_hash(ix: np.ndarray, iy: np.ndarray, iz: np.ndarray, seed: int = 0) -> np.ndarray:
    """
    Seeded pseudo-noise of integer lattice coordinates, in [0, 1].

    Uses truncated remainders (sign follows the dividend), so negative
    coordinates hash the same way on every platform.
    """
    h = np.full(np.shape(ix), 17.0 + 31.0 * float(seed), dtype=np.float64)
    h = np.fmod(31.0 * h + np.asarray(ix, dtype=np.float64) * 12345.0, _MOD)
    h = np.fmod(31.0 * h + np.asarray(iy, dtype=np.float64) * 67890.0, _MOD)
    h = np.fmod(31.0 * h + np.asarray(iz, dtype=np.float64) * 123.0, _MOD)
    return np.sin((h / _MOD) * 2.0 * np.pi) * 0.5 + 0.5


def value_noise(points: np.ndarray, seed: int = 0) -> np.ndarray:
    """Blocky noise: lattice_hash of the points floored on a 0.1 grid. points: (N,3)."""
    cells = np.floor(np.asarray(points, dtype=np.float64) * 10.0)
    return lattice_hash(cells[:, 0], cells[:, 1], cells[:, 2], seed=seed)


def fract_hash(points: np.ndarray) -> np.ndarray:
    """Classic shader hash fract(|sin(p . k) * 43758.5453|) in [0, 1). points: (N,3)."""
    p = np.asarray(points, dtype=np.float64)
    s = np.sin(p[:, 0] * 12.9898 + p[:, 1] * 78.233 + p[:, 2] * 37.719) * 43758.5453
    return np.mod(np.abs(s), 1.0)
