import queue

import numpy as np
import pytest

from dsptest.input import SetDisabled, SetOffset, SetWave, StateEvent, Wave, WaveKind
from dsptest.output import (
    EVENT_UPDATE_INTERVAL,
    AudioEngine,
    InputControl,
    OutputBuffer,
    OutputChannel,
    OutputControl,
    OutputMap,
    OutputWidget,
    SetMap,
    SetOutputDisabled,
    SetOutputEnabled,
    SetVolume,
)


class PassThrough:
    def __init__(self, count):
        self.values = [0.0] * count

    def map_inputs(self, input_buffer):
        self.values = list(input_buffer)

    def map_outputs(self, output_buffer):
        output_buffer[:] = self.values


def make_engine(count=2, size=8192, channels=2, receiver=None, sender=None):
    receiver = receiver if receiver is not None else queue.Queue()
    sender = sender if sender is not None else queue.Queue(maxsize=64)
    buffer = OutputBuffer(count, size)
    engine = AudioEngine(PassThrough(count), receiver, sender, buffer, count, count, channels)
    return engine, receiver, sender, buffer


def constant_inputs(receiver, count, value):
    for channel in range(count):
        receiver.put(InputControl(channel, SetWave(Wave(WaveKind.CONST))))
        receiver.put(InputControl(channel, SetOffset(value)))


@pytest.mark.parametrize(
    "output_map, label",
    [(OutputMap.BOTH, "L+R"), (OutputMap.LEFT, "L"), (OutputMap.RIGHT, "R")],
)
def test_output_map_labels(output_map, label):
    channel = OutputChannel()
    channel.handle_command(SetMap(output_map))
    assert str(channel.output_map) == label


def test_output_channel_defaults():
    channel = OutputChannel()
    assert channel.output_map is OutputMap.BOTH
    assert channel.volume == 0.5
    assert channel.enabled is True


def test_output_channel_commands():
    channel = OutputChannel()
    channel.handle_command(SetMap(OutputMap.LEFT))
    channel.handle_command(SetVolume(0.25))
    channel.handle_command(SetOutputDisabled())
    assert (channel.output_map, channel.volume, channel.enabled) == (OutputMap.LEFT, 0.25, False)
    channel.handle_command(SetOutputEnabled())
    assert channel.enabled is True


def test_output_channel_rejects_foreign_command():
    with pytest.raises(TypeError):
        OutputChannel().handle_command(SetOffset(0.1))


def test_output_buffer_record_wraps():
    buffer = OutputBuffer(2, 3)
    for value in (1.0, 2.0, 3.0, 4.0):
        buffer.record([value, -value])
    assert buffer.index == 1
    assert buffer.counter == 4
    assert buffer.buffer[0].tolist() == [4.0, 2.0, 3.0]
    assert buffer.buffer[1].tolist() == [-4.0, -2.0, -3.0]


def test_output_buffer_errors():
    with pytest.raises(ValueError):
        OutputBuffer(2, 0)
    with pytest.raises(ValueError):
        OutputBuffer(2, 4).record([1.0])


def test_engine_needs_two_channels():
    with pytest.raises(ValueError):
        make_engine(channels=1)


def test_engine_checks_buffer_width():
    with pytest.raises(ValueError):
        AudioEngine(PassThrough(2), queue.Queue(), queue.Queue(), OutputBuffer(3, 16), 2, 2)


def test_render_mixes_both_sides():
    engine, receiver, _, _ = make_engine(count=1)
    constant_inputs(receiver, 1, 0.5)
    receiver.put(OutputControl(0, SetVolume(1.0)))
    data = engine.render(8)
    assert data.shape == (8, 2)
    assert data.dtype == np.float32
    assert np.all(data == 0.5)


def test_render_left_and_right_maps():
    engine, receiver, _, _ = make_engine(count=2)
    constant_inputs(receiver, 2, 0.5)
    receiver.put(OutputControl(0, SetMap(OutputMap.LEFT)))
    receiver.put(OutputControl(1, SetMap(OutputMap.RIGHT)))
    receiver.put(OutputControl(0, SetVolume(1.0)))
    receiver.put(OutputControl(1, SetVolume(0.0)))
    data = engine.render(4)
    assert data.tolist() == [[0.5, 0.0]] * 4


def test_disabled_output_is_silent_but_recorded():
    engine, receiver, _, buffer = make_engine(count=1)
    constant_inputs(receiver, 1, 0.5)
    receiver.put(OutputControl(0, SetOutputDisabled()))
    data = engine.render(5)
    assert np.all(data == 0.0)
    assert np.all(buffer.buffer[0, :5] == 0.5)
    assert buffer.index == 5
    assert buffer.counter == 5


def test_disabled_input_gives_zero():
    engine, receiver, _, buffer = make_engine(count=1)
    constant_inputs(receiver, 1, 0.5)
    receiver.put(OutputControl(0, SetVolume(1.0)))
    receiver.put(InputControl(0, SetDisabled()))
    data = engine.render(3)
    assert data.tolist() == [[0.0, 0.0]] * 3
    assert buffer.buffer[0, :3].tolist() == [0.0, 0.0, 0.0]


def test_extra_device_channels_stay_zero():
    engine, receiver, _, _ = make_engine(count=1, channels=4)
    constant_inputs(receiver, 1, 0.5)
    data = engine.render(6)
    assert data.shape == (6, 4)
    assert np.all(data[:, 2:] == 0.0)
    assert np.all(data[:, 0] == data[:, 1])


def test_state_event_sent_on_interval():
    engine, _, sender, _ = make_engine(count=2)
    engine.render(10)
    assert sender.empty()
    engine.render(EVENT_UPDATE_INTERVAL - 10)
    event = sender.get_nowait()
    assert isinstance(event, StateEvent)
    assert len(event.channels) == 2


def test_state_event_is_a_snapshot():
    engine, receiver, sender, _ = make_engine(count=1)
    engine.render(EVENT_UPDATE_INTERVAL)
    event = sender.get_nowait()
    before = event.channels[0].offset
    receiver.put(InputControl(0, SetOffset(0.75)))
    engine.handle_messages()
    assert engine.input_channels[0].offset == 0.75
    assert event.channels[0].offset == before


def test_full_sender_is_ignored():
    sender = queue.Queue(maxsize=1)
    sender.put_nowait("old")
    engine, _, sender, buffer = make_engine(count=1, sender=sender)
    engine.render(EVENT_UPDATE_INTERVAL)
    assert sender.qsize() == 1
    assert sender.get_nowait() == "old"
    assert buffer.index == EVENT_UPDATE_INTERVAL


def test_message_for_missing_channel_raises():
    engine, receiver, _, _ = make_engine(count=1)
    receiver.put(OutputControl(5, SetVolume(1.0)))
    with pytest.raises(IndexError):
        engine.handle_messages()


def test_unknown_message_raises():
    engine, receiver, _, _ = make_engine(count=1)
    receiver.put("noise")
    with pytest.raises(TypeError):
        engine.handle_messages()


def test_output_widget_models():
    widget = OutputWidget(3)
    assert len(widget.models) == 3
    assert all(model == OutputChannel() for model in widget.models)
    with pytest.raises(ValueError):
        OutputWidget(-1)