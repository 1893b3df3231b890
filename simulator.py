#!/usr/bin/env python3
"""ISA simulator: executes loaded programs for the 16-register, 11-opcode CPU."""

import sys
import argparse

from isa import (
    IMEM_SLOTS, DMEM_SIZE, NUM_REGS, DATA_BASE, OFFSET_MASK,
    Opcode, Instruction, decode_opcode, to_s16,
)

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class SimulatorError(RuntimeError):
    """Fatal condition raised while executing a program."""


class MemoryAccessError(SimulatorError):
    """A data access fell outside the 512-byte data memory."""


class AlignmentError(ValueError):
    """An instruction was loaded at an odd code offset."""

# ---------------------------------------------------------------------------
# CPU state
# ---------------------------------------------------------------------------


class CPU:
    def __init__(self):
        self.regs = [0] * NUM_REGS
        self.pc = 0          # 9-bit offset into code
        self.imem = [Instruction() for _ in range(IMEM_SLOTS)]
        self.dmem = bytearray(DMEM_SIZE)
        self.halted = False
        self.cycles = 0
        self.error = None    # SimulatorError that stopped run(), if any

    # -------------------------------------------------------------------
    # Loader-facing accessors
    # -------------------------------------------------------------------
    def load_instruction(self, addr, instr):
        """Install instr at a word-aligned code offset."""
        if addr.offset % 2:
            raise AlignmentError(
                f"Misaligned instruction address {addr.offset} "
                f"(must be even)")
        self.imem[addr.offset >> 1] = instr

    def store_data(self, addr, value):
        """Store a 16-bit value big-endian at a data offset."""
        self._check_data(addr.offset, f"store to {addr.logical}")
        value &= 0xFFFF
        self.dmem[addr.offset] = value >> 8
        self.dmem[addr.offset + 1] = value & 0xFF

    def set_register(self, index, value):
        if index < 0 or index >= NUM_REGS:
            return
        self.regs[index] = to_s16(value)

    # -------------------------------------------------------------------
    # Read accessors
    # -------------------------------------------------------------------
    def get_register(self, index):
        if index < 0 or index >= NUM_REGS:
            raise IndexError(f"Register index {index} outside 0..{NUM_REGS - 1}")
        return self.regs[index]

    @property
    def registers(self):
        return list(self.regs)

    def instruction_at(self, offset):
        """Instruction stored at a code byte offset (even, 0..510)."""
        if offset < 0 or offset > OFFSET_MASK:
            raise IndexError(f"Code offset {offset} outside 0..{OFFSET_MASK - 1}")
        if offset % 2:
            raise AlignmentError(
                f"Misaligned instruction address {offset} (must be even)")
        return self.imem[offset >> 1]

    def data_byte(self, index):
        if index < 0 or index >= DMEM_SIZE:
            raise IndexError(f"Data index {index} outside 0..{DMEM_SIZE - 1}")
        return self.dmem[index]

    def read_word(self, logical_addr):
        """Signed 16-bit word at an absolute data address."""
        loc = logical_addr - DATA_BASE
        self._check_data(loc, f"read from {logical_addr}")
        return to_s16((self.dmem[loc] << 8) | self.dmem[loc + 1])

    def _check_data(self, loc, what):
        if loc < 0 or loc + 1 >= DMEM_SIZE:
            raise MemoryAccessError(
                f"Data {what} out of range (data offset {loc}, "
                f"valid 0..{DMEM_SIZE - 2})")

    def _data_index(self, base, index, pc):
        """Physical data index for an LD/SD address pair of registers.

        Addresses are 16-bit, so the sum wraps before it is rebased.
        """
        loc = (base + index - DATA_BASE) & 0xFFFF
        if loc + 1 >= DMEM_SIZE:
            raise MemoryAccessError(
                f"Data address {(base + index) & 0xFFFF} out of range "
                f"at PC {pc}")
        return loc

    # -------------------------------------------------------------------
    # Execute one instruction
    # -------------------------------------------------------------------
    def step(self, trace=False, log=None):
        """Execute one instruction. State is committed only if it retires."""
        if self.halted:
            return False

        pc_before = self.pc
        ir = self.imem[self.pc >> 1]
        next_pc = (self.pc + 2) & OFFSET_MASK

        if trace:
            self._trace(pc_before, ir, log)

        op = decode_opcode(ir.opcode)
        r = self.regs

        if op == Opcode.ADD:
            r[ir.op1] = to_s16(r[ir.op2] + r[ir.op3])

        elif op == Opcode.ADDI:
            r[ir.op1] = to_s16(r[ir.op2] + ir.immediate)

        elif op == Opcode.SUB:
            r[ir.op1] = to_s16(r[ir.op2] - r[ir.op3])

        elif op == Opcode.SUBI:
            r[ir.op1] = to_s16(r[ir.op2] - ir.immediate)

        elif op == Opcode.MUL:
            r[ir.op1] = to_s16(r[ir.op2] * r[ir.op3])

        elif op == Opcode.MULI:
            r[ir.op1] = to_s16(r[ir.op2] * ir.immediate)

        elif op == Opcode.LD:
            loc = self._data_index(r[ir.op2], r[ir.op3], pc_before)
            r[ir.op1] = to_s16((self.dmem[loc] << 8) | self.dmem[loc + 1])

        elif op == Opcode.SD:
            loc = self._data_index(r[ir.op1], r[ir.op2], pc_before)
            value = r[ir.op3] & 0xFFFF
            self.dmem[loc] = value >> 8
            self.dmem[loc + 1] = value & 0xFF

        # Offsets are relative to the branch itself; next_pc is already past it.
        elif op == Opcode.JMP:
            next_pc = (next_pc + ir.branch_offset - 2) & OFFSET_MASK

        elif op == Opcode.BEQZ:
            if r[ir.op1] == 0:
                next_pc = (next_pc + ir.branch_offset - 2) & OFFSET_MASK

        elif op == Opcode.HLT:
            self.halted = True

        else:
            # Reserved opcode: skipped without touching state.
            pass

        self.pc = next_pc
        self.cycles += 1
        return not self.halted

    def _trace(self, pc, ir, log=None):
        regs = " ".join(f"{v & 0xFFFF:04X}" for v in self.regs)
        print(
            f"  PC={pc:03d} IR={ir.opcode:X}{ir.op1:X}{ir.op2:X}{ir.op3:X}  "
            f"R=[{regs}]",
            file=log if log is not None else sys.stderr,
        )

    def run(self, trace=False, max_cycles=None, log=None):
        """Run until HLT. Without max_cycles the loop has no bound.

        Diagnostics go to log (default: stderr). A runtime error is sticky:
        once self.error is set, later calls return 1 without executing.
        """
        if log is None:
            log = sys.stderr

        if self.error is not None:
            print(f"\nCPU stopped by earlier error: {self.error}", file=log)
            return 1

        start = self.cycles
        while max_cycles is None or self.cycles - start < max_cycles:
            try:
                if not self.step(trace=trace, log=log):
                    break
            except SimulatorError as e:
                self.error = e
                print(f"\nRuntime error at cycle {self.cycles}: {e}",
                      file=log)
                return 1

        if not self.halted:
            print(f"\nExecution stopped: max cycles ({max_cycles}) reached",
                  file=log)
            return 1

        if trace:
            print(f"\nHalted after {self.cycles} cycles.", file=log)
        return 0

# ---------------------------------------------------------------------------
# State dump
# ---------------------------------------------------------------------------


def _nibbles(hi, lo):
    return f"{hi & 0xF:04b} {lo & 0xF:04b}"


def generate_dump(cpu):
    """Render instruction and data memory, one address per line."""
    lines = []
    for i, ir in enumerate(cpu.imem):
        lines.append(f"{2 * i:04d} : {_nibbles(ir.opcode, ir.op1)}")
        lines.append(f"{2 * i + 1:04d} : {_nibbles(ir.op2, ir.op3)}")
    for j, b in enumerate(cpu.dmem):
        lines.append(f"{DATA_BASE + j:04d} : {_nibbles(b >> 4, b)}")
    return "\n".join(lines) + "\n"


def write_dump(cpu, path):
    with open(path, "w") as f:
        f.write(generate_dump(cpu))


def format_registers(cpu):
    """Register file listing, one register per line."""
    return "\n".join(
        f"R{i:<2d} = {v:6d}  (0x{v & 0xFFFF:04X})"
        for i, v in enumerate(cpu.regs)) + "\n"

# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        self.print_usage(sys.stderr)
        print(f"{self.prog}: error: {message}", file=sys.stderr)
        sys.exit(1)


def main(argv=None):
    from loader import LoadError, load_file

    parser = _ArgumentParser(description="ISA Simulator")
    parser.add_argument("infile", help="Program input file")
    parser.add_argument("outfile", help="Memory dump output file")
    parser.add_argument("--trace", action="store_true",
                        help="Print CPU state before each instruction")
    parser.add_argument("--max-cycles", type=int, default=None,
                        help="Stop after this many cycles (default: no limit)")
    parser.add_argument("--registers", action="store_true",
                        help="Print the final register file to stdout")
    args = parser.parse_args(argv)

    try:
        cpu = load_file(args.infile)
    except OSError as e:
        print(f"ERROR: cannot read {args.infile}: {e.strerror}",
              file=sys.stderr)
        sys.exit(1)
    except LoadError as e:
        print(f"ERROR: {args.infile}: {e}", file=sys.stderr)
        sys.exit(1)

    rc = cpu.run(trace=args.trace, max_cycles=args.max_cycles)

    try:
        write_dump(cpu, args.outfile)
    except OSError as e:
        print(f"ERROR: cannot write {args.outfile}: {e.strerror}",
              file=sys.stderr)
        sys.exit(1)

    if args.registers:
        sys.stdout.write(format_registers(cpu))

    sys.exit(rc)


if __name__ == "__main__":
    main()
