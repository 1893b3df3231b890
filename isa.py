"""ISA definitions: instruction words, address values and field decoding."""

from enum import IntEnum

# ---------------------------------------------------------------------------
# Machine sizes
# ---------------------------------------------------------------------------

IMEM_SLOTS = 256     # 512 bytes of code => 256 two-byte instructions
DMEM_SIZE = 512      # bytes of data memory
NUM_REGS = 16
DATA_BASE = 512      # logical address of data byte 0

FIELD_MASK = 0xF
OFFSET_MASK = 0x1FF  # 9-bit address offset / program counter

# ---------------------------------------------------------------------------
# Opcodes
# ---------------------------------------------------------------------------


class Opcode(IntEnum):
    ADD = 0
    ADDI = 1
    SUB = 2
    SUBI = 3
    MUL = 6
    MULI = 7
    LD = 8
    SD = 10
    JMP = 12
    BEQZ = 13
    HLT = 14


# Unassigned 4-bit values. They decode and execute as no-ops.
RESERVED_OPCODES = frozenset(range(16)) - set(Opcode)


def decode_opcode(value):
    """Return the Opcode for a 4-bit value, or None if it is reserved."""
    try:
        return Opcode(value & FIELD_MASK)
    except ValueError:
        return None

# ---------------------------------------------------------------------------
# Two's-complement helpers
# ---------------------------------------------------------------------------


def sign4(value):
    """Decode a 4-bit two's-complement field (ADDI/SUBI/MULI immediates)."""
    value &= 0xF
    return value - 16 if value > 7 else value


def sign8(value):
    """Decode an 8-bit two's-complement field (JMP/BEQZ offsets)."""
    value &= 0xFF
    return value - 256 if value > 127 else value


def to_s16(value):
    """Wrap an integer into the signed 16-bit register range."""
    return ((value + 0x8000) & 0xFFFF) - 0x8000

# ---------------------------------------------------------------------------
# Instruction word
# ---------------------------------------------------------------------------


class Instruction:
    """A 16-bit instruction: opcode, op1, op2, op3, four bits each.

    Fields are truncated to 4 bits on construction and never validated,
    so reserved opcodes are representable.
    """

    __slots__ = ("opcode", "op1", "op2", "op3")

    def __init__(self, opcode=0, op1=0, op2=0, op3=0):
        self.opcode = opcode & FIELD_MASK
        self.op1 = op1 & FIELD_MASK
        self.op2 = op2 & FIELD_MASK
        self.op3 = op3 & FIELD_MASK

    @classmethod
    def decode(cls, word):
        """Unpack a 16-bit word (opcode in the top nibble)."""
        return cls((word >> 12) & FIELD_MASK, (word >> 8) & FIELD_MASK,
                   (word >> 4) & FIELD_MASK, word & FIELD_MASK)

    def encode(self):
        return (self.opcode << 12) | (self.op1 << 8) | (self.op2 << 4) | self.op3

    @property
    def immediate(self):
        """op3 as a signed 4-bit immediate."""
        return sign4(self.op3)

    @property
    def branch_offset(self):
        """op2:op3 concatenated as a signed 8-bit offset."""
        return sign8((self.op2 << 4) | self.op3)

    def __eq__(self, other):
        if not isinstance(other, Instruction):
            return NotImplemented
        return self.encode() == other.encode()

    def __hash__(self):
        return hash(self.encode())

    def __repr__(self):
        op = decode_opcode(self.opcode)
        name = op.name if op is not None else f"RSV{self.opcode}"
        return f"Instruction({name}, {self.op1}, {self.op2}, {self.op3})"

# ---------------------------------------------------------------------------
# Address value (load time only)
# ---------------------------------------------------------------------------

SEG_CODE = 0
SEG_DATA = 1


class AddressRef:
    """10-bit load-time address: 1-bit segment flag + 9-bit offset."""

    __slots__ = ("segment", "offset")

    def __init__(self, segment, offset):
        self.segment = segment & 1
        self.offset = offset & OFFSET_MASK

    @classmethod
    def code(cls, offset):
        return cls(SEG_CODE, offset)

    @classmethod
    def data(cls, logical_addr):
        """Build a data reference from an absolute logical address (512+)."""
        return cls(SEG_DATA, logical_addr - DATA_BASE)

    @property
    def is_data(self):
        return self.segment == SEG_DATA

    @property
    def logical(self):
        """The address in the unified 0..1023 space."""
        return self.offset + (DATA_BASE if self.is_data else 0)

    def __eq__(self, other):
        if not isinstance(other, AddressRef):
            return NotImplemented
        return (self.segment, self.offset) == (other.segment, other.offset)

    def __hash__(self):
        return hash((self.segment, self.offset))

    def __repr__(self):
        seg = "data" if self.is_data else "code"
        return f"AddressRef({seg}, {self.offset})"
