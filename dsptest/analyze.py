"""Plot selections and the analysis window used for spectra."""

from __future__ import annotations

from enum import Enum

import numpy as np


class PlotView(Enum):
    """What the central plot shows."""

    TIME_SERIES = "Time Series"
    SPECTRUM = "Spectrum"
    WINDOW = "Window"


class TimeSeriesTracking(Enum):
    """How the time-series plot is aligned from one frame to the next."""

    STATIC = "Static"
    FOLLOWING = "Following"


def build_window_function(size: int) -> np.ndarray:
    """Return a periodic Hann window of ``size`` samples as float32."""
    if size < 0:
        raise ValueError(f"window size must not be negative, got {size}")
    if size == 0:
        return np.zeros(0, dtype=np.float32)
    index = np.arange(size, dtype=np.float32)
    angle = np.float32(2.0 * np.pi) * index / np.float32(size)
    return (np.float32(0.5) - np.float32(0.5) * np.cos(angle)).astype(np.float32)