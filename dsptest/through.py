"""A module that passes every input straight to the matching output."""

from __future__ import annotations

import argparse
from typing import MutableSequence, Sequence

from dsptest.context import Module


class Through(Module):
    """Copies ``count`` inputs to ``count`` outputs unchanged."""

    def __init__(self, count: int = 2) -> None:
        if count < 0:
            raise ValueError(f"channel count must not be negative, got {count}")
        self.inputs = count
        self.outputs = count
        self.values = [0.0] * count

    def map_inputs(self, input_buffer: Sequence[float]) -> None:
        values = list(input_buffer)
        if len(values) != len(self.values):
            raise ValueError(f"expected {len(self.values)} inputs, got {len(values)}")
        self.values = values

    def map_outputs(self, output_buffer: MutableSequence[float]) -> None:
        if len(output_buffer) != len(self.values):
            raise ValueError(f"expected {len(self.values)} outputs, got {len(output_buffer)}")
        output_buffer[:] = self.values


def main(argv: Sequence[str] | None = None) -> int:
    """Run a two-channel pass-through module with the analysis windows."""
    parser = argparse.ArgumentParser(
        prog="dsp-test",
        description="Play two generator channels through a pass-through module and analyse them.",
    )
    parser.parse_args(argv)
    Through(2).run()
    return 0