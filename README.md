# dsptest

dsptest is a small test bench for audio signal-processing modules. A module
takes a fixed number of input samples per frame and produces a fixed number of
output samples. dsptest feeds the module from configurable signal generators
and mixes its outputs to stereo. It plays the result on the default audio
output through the pygame mixer at 48 kHz with 32-bit float samples. It also
shows one chosen output as a time series, a normalised spectrum, or the
analysis window.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Trying it out

The bundled pass-through module, `dsptest.through.Through`, copies two
generator channels straight to two outputs:

```
dsptest
```

This opens three matplotlib windows:

- "Inputs" holds the generator controls.
- "Outputs" holds the mixing controls and the device list.
- "DSP Test" holds the plot.

Sound plays until the windows are closed.

## Writing a module

Subclass `dsptest.context.Module`. Set `inputs` and `outputs` to the number of
channels, then implement `map_inputs` and `map_outputs`:

- `map_inputs` receives a list with one generator value per input for the
  current frame.
- `map_outputs` receives a list of `outputs` zeros to fill in for the same
  frame.

Calling `run()` starts the audio stream and the windows:

```python
from dsptest.context import Module


class Mixer(Module):
    def __init__(self):
        self.inputs = 2
        self.outputs = 1
        self.value = 0.0

    def map_inputs(self, input_buffer):
        self.value = sum(input_buffer) / len(input_buffer)

    def map_outputs(self, output_buffer):
        output_buffer[0] = self.value


Mixer().run()
```

## Controls

Each input channel (`dsptest.input.InputChannel`) is an oscillator with these
settings:

- on/off
- frequency, in cycles per sample. The slider is logarithmic and runs up to 0.5.
- scale
- offset
- waveform: sine, ramp up, ramp down, square with adjustable width, or constant

Each output channel (`dsptest.output.OutputChannel`) has these settings:

- on/off
- volume
- routing to L, R or L+R

The main window has these selectors:

- **Output channel**: the output that is analysed and plotted.
- **Plot view**:
  - Time Series: the last 8192 samples.
  - Spectrum: the smoothed, normalised magnitude spectrum on a log2-frequency
    axis.
  - Window: the Hann window used before the FFT.
- **Tracking**: Static or Following. Following shifts the time series by the
  period estimated from the spectral peak and its phase advance, so periodic
  signals hold still.

## Building blocks

You can use these parts without the windows:

- `dsptest.output.AudioEngine.render(frames)` runs a module and returns a
  `(frames, channels)` float32 array. It also records every output in a
  `dsptest.output.OutputBuffer`.
- `dsptest.context.OutputAnalyzer.process(...)` computes the spectrum, the
  frequency estimate and the aligned time series from such a buffer.
- `dsptest.analyze.build_window_function(size)` returns a periodic Hann window.

## What it does not do

The "Device" list in the Outputs window only records and prints the choice.
Sound always goes to the default output device, and there is no way to pick a
different audio host. If the mixer cannot deliver 32-bit float stereo output,
`run()` raises `RuntimeError` instead of converting the samples.