import numpy as np
import pytest

from dsptest.analyze import PlotView, TimeSeriesTracking, build_window_function


@pytest.mark.parametrize("size", [4, 64, 8192])
def test_window_has_requested_length_and_dtype(size):
    window = build_window_function(size)
    assert window.shape == (size,)
    assert window.dtype == np.float32


def test_window_starts_at_zero():
    assert build_window_function(1024)[0] == 0.0


def test_window_peaks_in_the_middle():
    window = build_window_function(1024)
    assert int(np.argmax(window)) == 512
    assert window[512] == pytest.approx(1.0, abs=1e-6)


def test_window_is_periodic_symmetric():
    size = 256
    window = build_window_function(size)
    for i in range(1, size):
        assert window[i] == pytest.approx(window[size - i], abs=1e-6)


def test_window_values_are_bounded():
    window = build_window_function(500)
    assert float(window.min()) >= 0.0
    assert float(window.max()) <= 1.0 + 1e-6


def test_window_mean_is_one_half():
    window = build_window_function(2048)
    assert float(window.mean()) == pytest.approx(0.5, abs=1e-5)


def test_empty_window():
    assert build_window_function(0).shape == (0,)


def test_negative_size_is_rejected():
    with pytest.raises(ValueError):
        build_window_function(-1)


def test_enum_labels_are_distinct():
    assert len({view.value for view in PlotView}) == len(PlotView)
    assert TimeSeriesTracking("Following") is TimeSeriesTracking.FOLLOWING