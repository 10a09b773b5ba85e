"""The host context: runs a module, analyses its output and shows controls and plots."""

from __future__ import annotations

import math
import queue
from abc import ABC, abstractmethod
from typing import Any, MutableSequence, Sequence

import numpy as np

from dsptest.analyze import PlotView, TimeSeriesTracking, build_window_function
from dsptest.input import Command as InputCommand
from dsptest.input import InputWidget, StateEvent
from dsptest.output import (
    InputControl,
    OutputBuffer,
    OutputCommand,
    OutputControl,
    OutputStream,
    OutputWidget,
    build_output_stream,
)

BUFFER_SIZE = 8192
RINGBUFFER_CAPACITY = 64

_WINDOW_INCHES = (10.24, 7.0)
_WINDOW_DPI = 100
_REFRESH_MS = 16
_TWO_PI = 2.0 * math.pi


class Module(ABC):
    """A signal processor with ``inputs`` input and ``outputs`` output channels."""

    inputs: int = 0
    outputs: int = 0

    @abstractmethod
    def map_inputs(self, input_buffer: Sequence[float]) -> None:
        """Take one sample for every input channel."""

    @abstractmethod
    def map_outputs(self, output_buffer: MutableSequence[float]) -> None:
        """Write one sample for every output channel into ``output_buffer``."""

    def run(self) -> None:
        """Open the audio output and the analysis windows until they are closed."""
        Context(self, BUFFER_SIZE).run()


def _forward_fft(signal: np.ndarray) -> np.ndarray:
    """Full forward spectrum of a real signal, with exactly conjugate-symmetric bins."""
    size = len(signal)
    half = np.fft.rfft(signal)
    spectrum = np.empty(size, dtype=np.complex64)
    spectrum[: len(half)] = half
    spectrum[len(half):] = np.conj(half[1: size - len(half) + 1][::-1])
    return spectrum


def _estimate_frequency(bin_frequency: float, phase_diff: float, elapsed: int) -> float:
    """Refine a bin frequency with the phase advance seen over ``elapsed`` samples.

    Among the candidates ``(phase_diff + 2*pi*k) / (2*pi*elapsed)`` the first one
    above ``bin_frequency`` and its predecessor are compared, and the closer wins.
    """
    step = _TWO_PI * elapsed

    def candidate(k: int) -> float:
        return (phase_diff + _TWO_PI * k) / step

    k = max(0, math.floor((bin_frequency * step - phase_diff) / _TWO_PI) + 1)
    while k > 0 and candidate(k - 1) > bin_frequency:
        k -= 1
    while candidate(k) <= bin_frequency:
        k += 1

    frequency = candidate(k)
    previous = candidate(k - 1) if k > 0 else 0.0
    if frequency - bin_frequency < bin_frequency - previous:
        return frequency
    return previous


class OutputAnalyzer:
    """Spectrum, frequency estimate and aligned time series of one output channel."""

    def __init__(self, size: int) -> None:
        if size <= 0:
            raise ValueError(f"analysis size must be positive, got {size}")
        self.size = size
        self.window = build_window_function(size)
        self.time_x = np.arange(size, dtype=np.float64)
        self.time_series = np.zeros(size, dtype=np.float64)
        self.spectrum_x = np.log2(np.arange(1, size + 1, dtype=np.float64) / size)
        self.spectrum = np.zeros(size, dtype=np.complex64)
        self.magnitude = np.zeros(size, dtype=np.float64)
        self.spectrum_phase = np.zeros(size, dtype=np.float32)
        self.filtered = np.zeros(size, dtype=np.float64)
        self.freq_est = 0.0
        self.phase = 0

    def process(
        self,
        output_buffer: OutputBuffer,
        channel: int,
        tracking: TimeSeriesTracking,
    ) -> None:
        """Analyse ``channel`` of ``output_buffer`` and reset its frame counter."""
        if output_buffer.size != self.size:
            raise ValueError(
                f"output buffer holds {output_buffer.size} samples, expected {self.size}"
            )
        with output_buffer:
            row = output_buffer.buffer[channel]
            start = output_buffer.index

            self.spectrum = _forward_fft(self.window * np.roll(row, -start))
            norm = np.abs(self.spectrum).astype(np.float64)
            phase = np.angle(self.spectrum).astype(np.float32)
            phase_diff = phase - self.spectrum_phase
            self.spectrum_phase = phase

            self.filtered += 0.5 * (norm - self.filtered)
            peak = int(np.argmax(self.filtered))
            if self.filtered[peak] > 0.0:
                max_norm = float(self.filtered[peak])
                peak_phase_diff = float(phase_diff[peak])
            else:
                peak, max_norm, peak_phase_diff = 0, 0.0, 0.0

            with np.errstate(divide="ignore", invalid="ignore"):
                self.magnitude = self.filtered / max_norm

            elapsed = output_buffer.counter
            output_buffer.counter = 0
            if elapsed:
                self.freq_est = _estimate_frequency(peak / self.size, peak_phase_diff, elapsed)

            if self.freq_est > 0.0:
                period = 1.0 / self.freq_est
                if math.isfinite(period):
                    self.phase = (self.phase + math.floor(period + 0.5)) % self.size

            offset = start if tracking is TimeSeriesTracking.STATIC else self.phase
            self.time_series = np.roll(row, -offset).astype(np.float64)


class Context:
    """Connects a module to the audio output, the control panels and the plots."""

    def __init__(self, module: Module, size: int = BUFFER_SIZE) -> None:
        self.module = module
        self.size = size
        self.inputs = module.inputs
        self.outputs = module.outputs
        self.messages: queue.Queue = queue.Queue(maxsize=RINGBUFFER_CAPACITY)
        self.events: queue.Queue = queue.Queue(maxsize=RINGBUFFER_CAPACITY)
        self.output_buffer = OutputBuffer(self.outputs, size)
        self.analyzer = OutputAnalyzer(size)
        self.input_widget = InputWidget(self.inputs)
        self.output_widget = OutputWidget(self.outputs)
        self.output_channel = 0
        self.plot_view = PlotView.TIME_SERIES
        self.tracking = TimeSeriesTracking.STATIC
        self.running = True
        self.stream: OutputStream | None = None
        self._figure: Any = None
        self._axes: Any = None
        self._line: Any = None
        self._keep: list[Any] = []

    def _send_input(self, channel: int, command: InputCommand) -> None:
        self.messages.put_nowait(InputControl(channel, command))

    def _send_output(self, channel: int, command: OutputCommand) -> None:
        self.messages.put_nowait(OutputControl(channel, command))

    def update(self) -> None:
        """Take in input state from the audio side, analyse the output and redraw."""
        while True:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                break
            if not isinstance(event, StateEvent):
                break
            self.input_widget.set_models(event.channels)

        self.analyzer.process(self.output_buffer, self.output_channel, self.tracking)

        if self._line is not None:
            self._draw()

    def _draw(self) -> None:
        analyzer = self.analyzer
        if self.plot_view is PlotView.TIME_SERIES:
            x, y = analyzer.time_x, analyzer.time_series
            xlim, ylim = (0.0, float(self.size)), (-1.0, 1.0)
        elif self.plot_view is PlotView.SPECTRUM:
            half = self.size // 2
            x, y = analyzer.spectrum_x[:half], analyzer.magnitude[:half]
            xlim, ylim = (math.log2(1.0 / self.size), math.log2(0.5)), (0.0, 1.0)
        else:
            x, y = analyzer.time_x, analyzer.window
            xlim, ylim = (0.0, float(self.size)), (0.0, 1.0)
        self._line.set_data(x, y)
        self._axes.set_xlim(*xlim)
        self._axes.set_ylim(*ylim)
        self._axes.set_title(self.plot_view.value)

    def _build_main(self, figure: Any) -> None:
        from matplotlib.widgets import RadioButtons

        if self.outputs > 0:
            channel_axes = figure.add_axes([0.02, 0.84, 0.12, 0.14])
            channel_axes.set_title("Output Channel:", fontsize="small")
            channels = RadioButtons(
                channel_axes, [str(i) for i in range(self.outputs)], active=self.output_channel
            )

            def on_channel(label: str) -> None:
                self.output_channel = int(label)

            channels.on_clicked(on_channel)
            self._keep.append(channels)

        views = list(PlotView)
        view_axes = figure.add_axes([0.2, 0.84, 0.2, 0.14])
        view_axes.set_title("Plot View:", fontsize="small")
        view_buttons = RadioButtons(
            view_axes, [view.value for view in views], active=views.index(self.plot_view)
        )

        def on_view(label: str) -> None:
            self.plot_view = PlotView(label)

        view_buttons.on_clicked(on_view)

        trackings = list(TimeSeriesTracking)
        tracking_axes = figure.add_axes([0.46, 0.84, 0.2, 0.14])
        tracking_axes.set_title("Tracking:", fontsize="small")
        tracking_buttons = RadioButtons(
            tracking_axes,
            [tracking.value for tracking in trackings],
            active=trackings.index(self.tracking),
        )

        def on_tracking(label: str) -> None:
            self.tracking = TimeSeriesTracking(label)

        tracking_buttons.on_clicked(on_tracking)
        self._keep.extend([view_buttons, tracking_buttons])

        self._axes = figure.add_axes([0.07, 0.07, 0.9, 0.7])
        (self._line,) = self._axes.plot(self.analyzer.time_x, self.analyzer.time_series)
        self._figure = figure
        self._draw()

    def _tick(self) -> None:
        if not self.running:
            return
        self.update()
        self._figure.canvas.draw_idle()

    def run(self) -> None:
        """Start the audio stream and show the windows until they are closed."""
        import matplotlib.pyplot as plt

        self.stream = build_output_stream(
            self.module, self.messages, self.events, self.output_buffer, self.inputs, self.outputs
        )
        self.stream.play()
        try:
            inputs_figure = plt.figure("Inputs", figsize=(4.0, 7.0))
            self._keep.append(self.input_widget.render(inputs_figure, self._send_input))
            outputs_figure = plt.figure("Outputs", figsize=(4.0, 5.0))
            self._keep.append(self.output_widget.render(outputs_figure, self._send_output))

            figure = plt.figure("DSP Test", figsize=_WINDOW_INCHES, dpi=_WINDOW_DPI)
            self._build_main(figure)
            timer = figure.canvas.new_timer(interval=_REFRESH_MS)
            timer.add_callback(self._tick)
            timer.start()
            self._keep.append(timer)
            plt.show()
        finally:
            self.running = False
            self.stream.stop()