"""Pytest configuration for the simulator test suite."""

import os
import sys

import pytest

ROOT = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..")
sys.path.insert(0, ROOT)
sys.path.insert(0, os.path.join(ROOT, "web"))

from isa import Instruction, AddressRef  # noqa: E402
from simulator import CPU  # noqa: E402


def build_cpu(program, regs=None):
    """CPU with (opcode, op1, op2, op3) tuples loaded from offset 0."""
    cpu = CPU()
    for index, value in (regs or {}).items():
        cpu.set_register(index, value)
    for slot, fields in enumerate(program):
        cpu.load_instruction(AddressRef.code(slot * 2), Instruction(*fields))
    return cpu


@pytest.fixture
def make_cpu():
    return build_cpu


def input_text(regs=None, data=(), program=()):
    """Render an input file: registers, data pairs, instruction records."""
    values = [0] * 16
    for index, value in (regs or {}).items():
        values[index] = value
    lines = [" ".join(str(v) for v in values)]
    lines += [f"{addr} {value}" for addr, value in data]
    lines.append("-1 0")
    lines += [" ".join(str(int(f)) for f in fields) for fields in program]
    lines.append("-1 0 0 0")
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_input():
    return input_text
