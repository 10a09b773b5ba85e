"""Interactive test bench for audio DSP modules: generators, audio output and live analysis."""

__version__ = "0.1.2"
__all__ = ["analyze", "input", "output", "context", "through"]