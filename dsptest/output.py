"""Output channels, the audio rendering engine and the output control panel."""

from __future__ import annotations

import os
import queue
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Iterable, Sequence, Union

import numpy as np

from dsptest.input import InputChannel, StateEvent
from dsptest.input import Command as InputCommand

EVENT_UPDATE_INTERVAL = 1024
SAMPLE_RATE = 48_000

_BLOCK_FRAMES = 1024
_FLOAT32_FORMAT = 32
_IDLE_WAIT = 0.002


class OutputBuffer:
    """A ring of the most recent module outputs, one row per output channel.

    ``index`` is the next write position and ``counter`` the number of frames
    written since the reader last reset it. Hold the buffer (``with buffer:``)
    while reading or writing from different threads.
    """

    def __init__(self, outputs: int, size: int) -> None:
        if outputs < 0:
            raise ValueError(f"output count must not be negative, got {outputs}")
        if size <= 0:
            raise ValueError(f"buffer size must be positive, got {size}")
        self.buffer = np.zeros((outputs, size), dtype=np.float32)
        self.index = 0
        self.counter = 0
        self.lock = threading.Lock()

    @property
    def size(self) -> int:
        return self.buffer.shape[1]

    def __enter__(self) -> OutputBuffer:
        self.lock.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.lock.release()

    def record(self, outputs: Sequence[float]) -> None:
        """Store one frame of outputs and advance the write position."""
        if len(outputs) != self.buffer.shape[0]:
            raise ValueError(f"expected {self.buffer.shape[0]} outputs, got {len(outputs)}")
        self.buffer[:, self.index] = outputs
        self.index = (self.index + 1) % self.size
        self.counter += 1


class OutputMap(Enum):
    """Which stereo side an output channel is mixed into."""

    BOTH = "L+R"
    LEFT = "L"
    RIGHT = "R"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SetMap:
    output_map: OutputMap


@dataclass(frozen=True)
class SetVolume:
    volume: float


@dataclass(frozen=True)
class SetOutputEnabled:
    pass


@dataclass(frozen=True)
class SetOutputDisabled:
    pass


OutputCommand = Union[SetMap, SetVolume, SetOutputEnabled, SetOutputDisabled]
Sender = Callable[[int, OutputCommand], None]


@dataclass
class OutputChannel:
    """Mixing settings of one module output."""

    output_map: OutputMap = OutputMap.BOTH
    volume: float = 0.5
    enabled: bool = True

    def handle_command(self, command: OutputCommand) -> None:
        """Apply a control command to this channel."""
        match command:
            case SetMap(output_map=output_map):
                self.output_map = output_map
            case SetVolume(volume=volume):
                self.volume = volume
            case SetOutputEnabled():
                self.enabled = True
            case SetOutputDisabled():
                self.enabled = False
            case _:
                raise TypeError(f"not an output command: {command!r}")


@dataclass(frozen=True)
class OutputControl:
    channel: int
    command: OutputCommand


@dataclass(frozen=True)
class InputControl:
    channel: int
    command: InputCommand


ControlMessage = Union[OutputControl, InputControl]


class AudioEngine:
    """Runs a module sample by sample and mixes its outputs into stereo frames.

    Control messages are read from ``receiver`` (``get_nowait``) and input
    state snapshots are offered to ``sender`` (``put_nowait``); a full sender
    is ignored.
    """

    def __init__(
        self,
        module: Any,
        receiver: Any,
        sender: Any,
        output_buffer: OutputBuffer,
        inputs: int,
        outputs: int,
        channels: int = 2,
    ) -> None:
        if channels < 2:
            raise ValueError(f"at least two device channels are needed, got {channels}")
        if output_buffer.buffer.shape[0] != outputs:
            raise ValueError(
                f"output buffer holds {output_buffer.buffer.shape[0]} channels, expected {outputs}"
            )
        self.module = module
        self.receiver = receiver
        self.sender = sender
        self.output_buffer = output_buffer
        self.channels = channels
        self.input_channels = [InputChannel() for _ in range(inputs)]
        self.output_channels = [OutputChannel() for _ in range(outputs)]

    def handle_messages(self) -> None:
        """Apply every pending control message."""
        while True:
            try:
                message = self.receiver.get_nowait()
            except queue.Empty:
                return
            match message:
                case InputControl(channel=channel, command=command):
                    self.input_channels[channel].handle_command(command)
                case OutputControl(channel=channel, command=command):
                    self.output_channels[channel].handle_command(command)
                case _:
                    raise TypeError(f"not a control message: {message!r}")

    def render(self, frames: int) -> np.ndarray:
        """Produce ``frames`` interleaved frames as a (frames, channels) float32 array."""
        self.handle_messages()
        data = np.zeros((frames, self.channels), dtype=np.float32)
        output_count = len(self.output_channels)

        with self.output_buffer:
            for frame in data:
                self.module.map_inputs([channel.process() for channel in self.input_channels])
                outputs = [0.0] * output_count
                self.module.map_outputs(outputs)

                left = right = 0.0
                for channel, value in zip(self.output_channels, outputs):
                    if not channel.enabled:
                        continue
                    scaled = channel.volume * value
                    if channel.output_map is not OutputMap.RIGHT:
                        left += scaled
                    if channel.output_map is not OutputMap.LEFT:
                        right += scaled
                frame[0] = left
                frame[1] = right

                self.output_buffer.record(outputs)

            if self.output_buffer.index % EVENT_UPDATE_INTERVAL == 0:
                self._send_state()
        return data

    def _send_state(self) -> None:
        event = StateEvent(tuple(replace(channel) for channel in self.input_channels))
        try:
            self.sender.put_nowait(event)
        except queue.Full:
            pass


def _import_pygame():
    os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
    import pygame

    return pygame


class OutputStream:
    """Feeds blocks rendered by an :class:`AudioEngine` to the pygame mixer."""

    def __init__(self, engine: AudioEngine, block_frames: int = _BLOCK_FRAMES) -> None:
        self.engine = engine
        self.block_frames = block_frames
        self.error: BaseException | None = None
        self._stopping = threading.Event()
        self._thread: threading.Thread | None = None

    def play(self) -> None:
        """Start streaming; does nothing if already playing."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stopping.clear()
        self._thread = threading.Thread(target=self._run, name="audio-output", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop streaming and wait for the feeding thread to finish."""
        self._stopping.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        if self.error is not None:
            error, self.error = self.error, None
            raise RuntimeError("audio output failed") from error

    def _run(self) -> None:
        pygame = _import_pygame()
        try:
            channel = pygame.mixer.Channel(0)
            while not self._stopping.is_set():
                if channel.get_busy() and channel.get_queue() is not None:
                    self._stopping.wait(_IDLE_WAIT)
                    continue
                data = self.engine.render(self.block_frames)
                sound = pygame.mixer.Sound(buffer=data.tobytes())
                if channel.get_busy():
                    channel.queue(sound)
                else:
                    channel.play(sound)
            channel.stop()
        except BaseException as error:  # reported to the caller of stop()
            self.error = error


def build_output_stream(
    module: Any,
    receiver: Any,
    sender: Any,
    output_buffer: OutputBuffer,
    inputs: int,
    outputs: int,
) -> OutputStream:
    """Open the default audio output and return a stream driving ``module``."""
    pygame = _import_pygame()
    if not pygame.mixer.get_init():
        pygame.mixer.init(frequency=SAMPLE_RATE, size=_FLOAT32_FORMAT, channels=2, buffer=_BLOCK_FRAMES)
    _frequency, sample_format, channels = pygame.mixer.get_init()
    if channels < 2:
        raise RuntimeError(f"the output device has {channels} channel(s), at least two are needed")
    if sample_format != _FLOAT32_FORMAT:
        raise RuntimeError(f"the output device does not take 32-bit float samples (format {sample_format})")
    engine = AudioEngine(module, receiver, sender, output_buffer, inputs, outputs, channels)
    return OutputStream(engine)


def _audio_device_names() -> list[str]:
    try:
        from pygame._sdl2 import audio

        names = list(audio.get_audio_device_names(False))
    except Exception:  # device listing is optional; fall back to the default device
        names = []
    return names or ["Default"]


@dataclass
class _OutputControls:
    enabled: object
    output_map: object
    volume: object


class OutputWidget:
    """Control panel for a fixed number of output channels and the device choice."""

    def __init__(self, count: int) -> None:
        if count < 0:
            raise ValueError(f"channel count must not be negative, got {count}")
        self.models = [OutputChannel() for _ in range(count)]
        self.host_name = "SDL"
        self.devices: list[str] = []
        self.selected_device_index = 0
        self.selected_device_name = ""
        self._controls: list[object] = []

    def render(self, parent, sender: Sender) -> list[object]:
        """Build the controls in a matplotlib figure; changes go to ``sender(channel, command)``."""
        parent.text(0.02, 0.98, "Outputs", fontsize="large", weight="bold", va="top")
        count = max(len(self.models), 1)
        band = 0.7 / count
        self._controls = [
            self._render_channel(index, parent, sender, 0.93 - index * band, band)
            for index in range(len(self.models))
        ]
        self._controls.append(self._render_options(parent))
        return list(self._controls)

    def _render_channel(self, index: int, parent, sender: Sender, top: float, band: float) -> _OutputControls:
        from matplotlib.widgets import CheckButtons, RadioButtons, Slider

        model = self.models[index]
        row_height = band / 3.0
        pad = row_height * 0.1

        def rect(row: int) -> list[float]:
            bottom = top - (row + 1) * row_height + pad
            return [0.3, bottom, 0.6, row_height - 2 * pad]

        maps = list(OutputMap)
        enabled = CheckButtons(parent.add_axes(rect(0)), ["Audio"], [model.enabled])
        map_row = rect(1)
        parent.text(0.02, map_row[1] + map_row[3] / 2, "Map:", va="center")
        output_map = RadioButtons(
            parent.add_axes(map_row), [str(m) for m in maps], active=maps.index(model.output_map)
        )
        volume = Slider(parent.add_axes(rect(2)), "Volume:", 0.0, 1.0, valinit=model.volume)
        volume.valtext.set_text(f"{100.0 * model.volume:.2f}%")

        def on_enabled(_label: str) -> None:
            current = self.models[index]
            current.enabled = bool(enabled.get_status()[0])
            sender(index, SetOutputEnabled() if current.enabled else SetOutputDisabled())

        def on_map(label: str) -> None:
            chosen = next(m for m in maps if str(m) == label)
            self.models[index].output_map = chosen
            sender(index, SetMap(chosen))

        def on_volume(value: float) -> None:
            self.models[index].volume = value
            volume.valtext.set_text(f"{100.0 * value:.2f}%")
            sender(index, SetVolume(value))

        enabled.on_clicked(on_enabled)
        output_map.on_clicked(on_map)
        volume.on_changed(on_volume)
        return _OutputControls(enabled, output_map, volume)

    def _render_options(self, parent):
        from matplotlib.widgets import RadioButtons

        self.devices = _audio_device_names()
        if not self.selected_device_name:
            self.selected_device_index = 0
            self.selected_device_name = self.devices[0]

        parent.text(0.02, 0.2, "Options", fontsize="large", weight="bold", va="top")
        parent.text(0.02, 0.15, f"Host: {self.host_name}", va="center")
        parent.text(0.02, 0.1, "Device:", va="center")
        devices = RadioButtons(
            parent.add_axes([0.3, 0.01, 0.6, 0.12]), self.devices, active=self.selected_device_index
        )

        def on_device(label: str) -> None:
            self.selected_device_index = self.devices.index(label)
            self.selected_device_name = label
            print(f"device changed: {self.selected_device_name}")

        devices.on_clicked(on_device)
        return devices


def _labels(values: Iterable[object]) -> list[str]:
    return [str(value) for value in values]