"""Shared fixtures for the Chip 8 tests."""

import sys
from pathlib import Path
from random import Random

# Make the package importable without installing it
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from chip8.cpu import CPU


def assemble(*operands):
    """Turn instruction words into a big-endian program image."""
    return b''.join(operand.to_bytes(2, 'big') for operand in operands)


@pytest.fixture
def cpu():
    """A CPU with no key settling delay and a seeded random source."""
    return CPU(input_delay=0, random_source=Random(1234))


@pytest.fixture
def run(cpu):
    """Load the given instruction words and step once per word."""
    def _run(*operands, steps=None):
        cpu.cpu_load_program(assemble(*operands))
        for _ in range(len(operands) if steps is None else steps):
            cpu.cpu_step()
        return cpu
    return _run
