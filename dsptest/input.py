"""Signal generator channels that feed a module's inputs, and their controls."""

from __future__ import annotations

import math
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Iterable, Iterator, Union


class WaveKind(Enum):
    """The shapes a generator channel can produce."""

    SINE = "Sine"
    RAMP_UP = "Ramp Up"
    RAMP_DOWN = "Ramp Down"
    SQUARE = "Square"
    CONST = "Const"


@dataclass(frozen=True, eq=False)
class Wave:
    """A wave shape; ``pw`` is the pulse width used by square waves."""

    kind: WaveKind
    pw: float = 0.0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Wave):
            return NotImplemented
        return self.kind is other.kind

    def __hash__(self) -> int:
        return hash(self.kind)

    def __str__(self) -> str:
        return self.kind.value


def all_waves() -> list[Wave]:
    """Every wave shape, in display order, with default parameters."""
    return [Wave(kind) for kind in WaveKind]


@dataclass(frozen=True)
class SetWave:
    wave: Wave


@dataclass(frozen=True)
class SetFrequency:
    frequency: float


@dataclass(frozen=True)
class SetScale:
    scale: float


@dataclass(frozen=True)
class SetOffset:
    offset: float


@dataclass(frozen=True)
class SetEnabled:
    pass


@dataclass(frozen=True)
class SetDisabled:
    pass


Command = Union[SetWave, SetFrequency, SetScale, SetOffset, SetEnabled, SetDisabled]
Sender = Callable[[int, Command], None]


@dataclass
class InputChannel:
    """A phase-accumulating oscillator; frequency is in cycles per sample."""

    wave: Wave = field(default_factory=lambda: Wave(WaveKind.SINE))
    phase: float = 0.0
    frequency: float = 0.0022
    scale: float = 1.0
    offset: float = 0.0
    enabled: bool = True

    def handle_command(self, command: Command) -> None:
        """Apply a control command to this channel."""
        match command:
            case SetWave(wave=wave):
                self.wave = wave
            case SetFrequency(frequency=frequency):
                self.frequency = frequency
            case SetScale(scale=scale):
                self.scale = scale
            case SetOffset(offset=offset):
                self.offset = offset
            case SetEnabled():
                self.enabled = True
            case SetDisabled():
                self.enabled = False
            case _:
                raise TypeError(f"not an input command: {command!r}")

    def process(self) -> float:
        """Advance one sample and return the channel's output."""
        self.phase += self.frequency
        if self.phase >= 1.0:
            self.phase -= 1.0

        if not self.enabled:
            return 0.0

        kind = self.wave.kind
        if kind is WaveKind.SINE:
            sample = math.sin(2.0 * math.pi * self.phase)
        elif kind is WaveKind.RAMP_UP:
            sample = 2.0 * self.phase - 1.0
        elif kind is WaveKind.RAMP_DOWN:
            sample = 1.0 - 2.0 * self.phase
        elif kind is WaveKind.SQUARE:
            sample = 1.0 if self.phase < self.wave.pw else -1.0
        else:
            sample = 0.0

        return self.scale * sample + self.offset


@dataclass(frozen=True)
class StateEvent:
    """A snapshot of every input channel, sent from the audio side."""

    channels: tuple[InputChannel, ...]


_FREQUENCY_FLOOR = 1e-5
_FREQUENCY_MAX = 0.5
_SQUARE_DEFAULT_PW = 0.5


def _to_log(frequency: float) -> float:
    return math.log10(max(frequency, _FREQUENCY_FLOOR))


@contextmanager
def _muted(*widgets) -> Iterator[None]:
    saved = [widget.eventson for widget in widgets]
    for widget in widgets:
        widget.eventson = False
    try:
        yield
    finally:
        for widget, state in zip(widgets, saved):
            widget.eventson = state


@dataclass
class _ChannelControls:
    enabled: object
    frequency: object
    scale: object
    offset: object
    wave: object
    width: object
    width_placeholder: object

    def show_width(self, wave: Wave) -> None:
        square = wave.kind is WaveKind.SQUARE
        self.width.ax.set_visible(square)
        self.width_placeholder.set_visible(not square)
        if square:
            self.width.valtext.set_text(f"{100.0 * wave.pw:.0f}%")

    def sync(self, model: InputChannel) -> None:
        with _muted(self.enabled, self.frequency, self.scale, self.offset, self.wave, self.width):
            if self.enabled.get_status()[0] != model.enabled:
                self.enabled.set_active(0)
            self.frequency.set_val(_to_log(model.frequency))
            self.frequency.valtext.set_text(f"{model.frequency:.4f}")
            self.scale.set_val(model.scale)
            self.offset.set_val(model.offset)
            if self.wave.value_selected != str(model.wave):
                self.wave.set_active(all_waves().index(model.wave))
            if model.wave.kind is WaveKind.SQUARE:
                self.width.set_val(model.wave.pw)
        self.show_width(model.wave)


class InputWidget:
    """Control panel for a fixed number of input channels."""

    def __init__(self, count: int) -> None:
        if count < 0:
            raise ValueError(f"channel count must not be negative, got {count}")
        self.models = [InputChannel() for _ in range(count)]
        self._controls: list[_ChannelControls] = []

    def set_models(self, models: Iterable[InputChannel]) -> None:
        """Replace the displayed channel states with copies of ``models``."""
        models = list(models)
        if len(models) != len(self.models):
            raise ValueError(f"expected {len(self.models)} channels, got {len(models)}")
        self.models = [replace(model) for model in models]
        for controls, model in zip(self._controls, self.models):
            controls.sync(model)

    def render(self, parent, sender: Sender) -> list[_ChannelControls]:
        """Build the controls in a matplotlib figure; changes go to ``sender(channel, command)``."""
        parent.text(0.02, 0.98, "Inputs", fontsize="large", weight="bold", va="top")
        count = max(len(self.models), 1)
        band = 0.9 / count
        self._controls = [
            self._render_channel(index, parent, sender, 0.93 - index * band, band)
            for index in range(len(self.models))
        ]
        return list(self._controls)

    def _render_channel(self, index: int, parent, sender: Sender, top: float, band: float) -> _ChannelControls:
        from matplotlib.widgets import CheckButtons, RadioButtons, Slider

        model = self.models[index]
        row_height = band / 6.0
        pad = row_height * 0.1

        def rect(row: int) -> list[float]:
            bottom = top - (row + 1) * row_height + pad
            return [0.3, bottom, 0.6, row_height - 2 * pad]

        waves = all_waves()
        enabled = CheckButtons(parent.add_axes(rect(0)), ["Enabled"], [model.enabled])
        frequency = Slider(
            parent.add_axes(rect(1)), "Frequency:",
            math.log10(_FREQUENCY_FLOOR), math.log10(_FREQUENCY_MAX),
            valinit=_to_log(model.frequency),
        )
        frequency.valtext.set_text(f"{model.frequency:.4f}")
        scale = Slider(parent.add_axes(rect(2)), "Scale:", 0.0, 1.0, valinit=model.scale, valfmt="%.2f")
        offset = Slider(parent.add_axes(rect(3)), "Offset:", -1.0, 1.0, valinit=model.offset, valfmt="%.2f")
        wave_row = rect(4)
        parent.text(0.02, wave_row[1] + wave_row[3] / 2, "Wave:", va="center")
        wave = RadioButtons(parent.add_axes(wave_row), [str(w) for w in waves], active=waves.index(model.wave))
        width_row = rect(5)
        width = Slider(parent.add_axes(width_row), "Width:", 0.0, 1.0, valinit=model.wave.pw)
        placeholder = parent.text(0.3, width_row[1] + width_row[3] / 2, "Width: —-", va="center")

        controls = _ChannelControls(enabled, frequency, scale, offset, wave, width, placeholder)
        controls.show_width(model.wave)

        def on_enabled(_label: str) -> None:
            current = self.models[index]
            current.enabled = bool(enabled.get_status()[0])
            sender(index, SetEnabled() if current.enabled else SetDisabled())

        def on_frequency(value: float) -> None:
            current = self.models[index]
            current.frequency = 10.0 ** value
            frequency.valtext.set_text(f"{current.frequency:.4f}")
            sender(index, SetFrequency(current.frequency))

        def on_scale(value: float) -> None:
            self.models[index].scale = value
            sender(index, SetScale(value))

        def on_offset(value: float) -> None:
            self.models[index].offset = value
            sender(index, SetOffset(value))

        def on_wave(label: str) -> None:
            chosen = next(w for w in waves if str(w) == label)
            if chosen.kind is WaveKind.SQUARE:
                chosen = Wave(WaveKind.SQUARE, _SQUARE_DEFAULT_PW)
                with _muted(width):
                    width.set_val(chosen.pw)
            self.models[index].wave = chosen
            controls.show_width(chosen)
            sender(index, SetWave(chosen))

        def on_width(value: float) -> None:
            current = self.models[index]
            if current.wave.kind is not WaveKind.SQUARE:
                return
            current.wave = Wave(WaveKind.SQUARE, value)
            width.valtext.set_text(f"{100.0 * value:.0f}%")
            sender(index, SetWave(current.wave))

        enabled.on_clicked(on_enabled)
        frequency.on_changed(on_frequency)
        scale.on_changed(on_scale)
        offset.on_changed(on_offset)
        wave.on_clicked(on_wave)
        width.on_changed(on_width)
        return controls