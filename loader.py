"""Program loader: parses simulator input files into CPU state.

Input files are whitespace-delimited decimal integers; line breaks carry
no meaning beyond error reporting. A ';' starts a comment that runs to the
end of the line.

    <r0> <r1> ... <r15>                  16 initial register values
    <address> <value> ...  -1 <any>      data words, absolute address 512..1022
    <op> <op1> <op2> <op3> ...  -1       instructions, placed from offset 0
"""

from isa import (
    IMEM_SLOTS, DMEM_SIZE, NUM_REGS, DATA_BASE,
    Instruction, AddressRef,
)
from simulator import CPU, AlignmentError, MemoryAccessError

SENTINEL = -1

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class LoadError(Exception):
    def __init__(self, line_num, message):
        self.line_num = line_num
        if line_num is None:
            super().__init__(message)
        else:
            super().__init__(f"Line {line_num}: {message}")

# ---------------------------------------------------------------------------
# Tokenizing
# ---------------------------------------------------------------------------


def strip_comment(line):
    idx = line.find(";")
    if idx >= 0:
        return line[:idx]
    return line


def tokenize(text):
    """Yield (line_num, int_value) for every integer in the input."""
    for line_num, raw_line in enumerate(text.splitlines(), 1):
        for tok in strip_comment(raw_line).split():
            try:
                yield line_num, int(tok, 10)
            except ValueError:
                raise LoadError(line_num, f"Invalid integer '{tok}'") from None


class _TokenStream:
    def __init__(self, text):
        self._tokens = tokenize(text)
        self.line_num = 0

    def take(self, what):
        try:
            self.line_num, val = next(self._tokens)
        except StopIteration:
            raise LoadError(
                self.line_num or None,
                f"Unexpected end of input while reading {what}") from None
        return val

# ---------------------------------------------------------------------------
# Parsed program
# ---------------------------------------------------------------------------


class Program:
    """Parsed input file: registers, data words and instructions.

    data and instructions keep the source line of each entry so that
    install-time failures can point back at the input.
    """

    def __init__(self):
        self.registers = [0] * NUM_REGS
        self.data = []          # (line_num, logical_addr, value)
        self.instructions = []  # (line_num, Instruction)


def parse_program(text):
    stream = _TokenStream(text)
    prog = Program()

    for i in range(NUM_REGS):
        prog.registers[i] = stream.take(f"register R{i}")

    while True:
        addr = stream.take("data address")
        line_num = stream.line_num
        value = stream.take("data value")
        if addr == SENTINEL:
            break
        if addr < DATA_BASE or addr > DATA_BASE + DMEM_SIZE - 2:
            raise LoadError(
                line_num,
                f"Data address {addr} outside {DATA_BASE}.."
                f"{DATA_BASE + DMEM_SIZE - 2}")
        prog.data.append((line_num, addr, value))

    while True:
        opcode = stream.take("opcode")
        line_num = stream.line_num
        if opcode == SENTINEL:
            # Anything after the terminating opcode is ignored.
            break
        fields = [stream.take(name) for name in ("op1", "op2", "op3")]
        if len(prog.instructions) >= IMEM_SLOTS:
            raise LoadError(
                line_num,
                f"Program exceeds instruction memory ({IMEM_SLOTS} slots)")
        prog.instructions.append((line_num, Instruction(opcode, *fields)))

    return prog


def load_program(cpu, prog):
    """Install a parsed program into cpu."""
    for i, val in enumerate(prog.registers):
        cpu.set_register(i, val)

    for line_num, addr, value in prog.data:
        try:
            cpu.store_data(AddressRef.data(addr), value)
        except MemoryAccessError as e:
            raise LoadError(line_num, str(e)) from None

    for slot, (line_num, instr) in enumerate(prog.instructions):
        try:
            cpu.load_instruction(AddressRef.code(slot * 2), instr)
        except AlignmentError as e:
            raise LoadError(line_num, str(e)) from None
    return cpu


def load_text(text, cpu=None):
    """Parse text and return a loaded CPU (a fresh one unless given)."""
    if cpu is None:
        cpu = CPU()
    return load_program(cpu, parse_program(text))


def load_file(path):
    with open(path, "r") as f:
        text = f.read()
    return load_text(text)
