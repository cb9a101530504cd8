"""
LEGv8 Instruction Encoding
===========================
Bit-field helpers and the opcode catalog shared by the assembler, the
disassembler and the CPU.

Five formats come straight from the course reference sheet (R, I, D,
B, CB); the rest are custom extensions parked in opcode space the sheet
leaves unused:

  Format   Opcode     Fields
  ------   --------   -------------------------------------------------
  B        [31:26]    imm26 [25:0]
  CB       [31:24]    imm19 [23:5]   Rt [4:0]
  B.cond   [31:24]    cond [23:20]   imm15 [19:5]   Rt=31 [4:0]
  I        [31:22]    imm12 [21:10]  Rn [9:5]       Rd [4:0]
  R        [31:21]    Rm [20:16]     shamt [15:10]  Rn [9:5]  Rd [4:0]
  D        [31:21]    imm9 [20:12]   op [11:10]     Rn [9:5]  Rt [4:0]
  XEXT     [31:21]    Rm [20:16]     funct [15:10]  Rn [9:5]  Rd [4:0]

B.cond keeps its condition in [23:20], which the CB layout would
otherwise hand to the top of imm19.  The branch offset is therefore
only 15 bits wide ([19:5]) so the two never overlap.

LSL/LSR put the shift amount in the Rm slot, which holds only 5 bits.
Bit 5 of the amount goes in bit 15, the top bit of funct; the function
codes themselves stay below 8.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
#  Constants
# ---------------------------------------------------------------------------

MASK32 = 0xFFFF_FFFF
MASK64 = (1 << 64) - 1
SIGN64 = 1 << 63

NUM_REGS = 32
LINK_REG = 30      # written by BL, default target of RET
DISCARD_REG = 31   # CMP destination, B.cond Rt filler

# Sentinel words (checked before any format match)
WORD_NOP  = 0xD503201F   # AArch64 NOP
WORD_HALT = 0xFFFFFFFF

# B-format, opcode [31:26]
OP_B  = 0b000101
OP_BL = 0b100101

# CB-format, opcode [31:24]
OP_CBZ   = 0b10110100
OP_CBNZ  = 0b10110101
OP_BCOND = 0b10110110   # custom

# I-format, opcode [31:22]
OP_ADDI = 0b1001000100
OP_SUBI = 0b1101000100

# R-format, opcode [31:21]
OP_ADD = 0b10001011000
OP_SUB = 0b11001011000

# D-format, opcode [31:21]
OP_LDUR = 0b11111000010
OP_STUR = 0b11111000000

# Custom extended format, opcode [31:21]
OP_XEXT = 0b10101010101

# Condition codes (B.cond [23:20])
COND_EQ = 0x0  # Z=1
COND_NE = 0x1  # Z=0
COND_LT = 0x2  # N=1
COND_GE = 0x3  # N=0

COND_NAMES = {COND_EQ: "EQ", COND_NE: "NE", COND_LT: "LT", COND_GE: "GE"}

# Extended function codes (XEXT [15:10])
FN_CMP = 0
FN_AND = 1
FN_ORR = 2
FN_EOR = 3
FN_LSL = 4
FN_LSR = 5
FN_MUL = 6
FN_RET = 7

XEXT_NAMES = {
    FN_CMP: "CMP", FN_AND: "AND", FN_ORR: "ORR", FN_EOR: "EOR",
    FN_LSL: "LSL", FN_LSR: "LSR", FN_MUL: "MUL", FN_RET: "RET",
}

# Opcode width per format, in decode order (narrowest first)
OPCODE_WIDTH = {"B": 6, "CB": 8, "BCOND": 8, "I": 10, "R": 11, "D": 11, "XEXT": 11}

# Every opcode in the catalog: name -> (format, value)
OPCODES = {
    "B":    ("B", OP_B),
    "BL":   ("B", OP_BL),
    "CBZ":  ("CB", OP_CBZ),
    "CBNZ": ("CB", OP_CBNZ),
    "B.cond": ("BCOND", OP_BCOND),
    "ADDI": ("I", OP_ADDI),
    "SUBI": ("I", OP_SUBI),
    "ADD":  ("R", OP_ADD),
    "SUB":  ("R", OP_SUB),
    "LDUR": ("D", OP_LDUR),
    "STUR": ("D", OP_STUR),
    "XEXT": ("XEXT", OP_XEXT),
}

# Signed immediate widths (bits) of each offset field
IMM26_BITS = 26
IMM19_BITS = 19
IMM15_BITS = 15
IMM9_BITS  = 9
IMM12_MAX  = (1 << 12) - 1
SHIFT_MAX  = 63
SHIFT_HI   = 0x20   # funct bit carrying shift-amount bit 5

# ---------------------------------------------------------------------------
#  Bit-field helpers
# ---------------------------------------------------------------------------

def mask(bits: int) -> int:
    """All-ones mask *bits* wide."""
    return (1 << bits) - 1

def get_field(word: int, hi: int, lo: int) -> int:
    """Unsigned value of bits [hi:lo] of *word*."""
    return (word >> lo) & mask(hi - lo + 1)

def set_field(word: int, hi: int, lo: int, value: int) -> int:
    """Return *word* with bits [hi:lo] replaced by *value*.

    *value* is truncated to the field width; bits outside the range are
    left as they were.
    """
    m = mask(hi - lo + 1) << lo
    return ((word & ~m) | ((value << lo) & m)) & MASK32

def sign_extend(value: int, width: int) -> int:
    """Interpret the low *width* bits of *value* as two's complement."""
    value &= mask(width)
    if value & (1 << (width - 1)):
        value -= (1 << width)
    return value

def u64(v: int) -> int:
    """Mask to unsigned 64 bits."""
    return v & MASK64

def s64(v: int) -> int:
    """Interpret a 64-bit value as signed."""
    v = u64(v)
    return v - (1 << 64) if v >= SIGN64 else v

def signed_range(bits: int) -> tuple[int, int]:
    """Inclusive (lo, hi) of a *bits*-wide two's-complement field."""
    return -(1 << (bits - 1)), (1 << (bits - 1)) - 1

# ---------------------------------------------------------------------------
#  Field encoders
# ---------------------------------------------------------------------------

def enc_r(op11: int, rm: int, shamt: int, rn: int, rd: int) -> int:
    w = set_field(0, 31, 21, op11)
    w = set_field(w, 20, 16, rm)
    w = set_field(w, 15, 10, shamt)
    w = set_field(w, 9, 5, rn)
    return set_field(w, 4, 0, rd)

def enc_i(op10: int, imm12: int, rn: int, rd: int) -> int:
    w = set_field(0, 31, 22, op10)
    w = set_field(w, 21, 10, imm12)
    w = set_field(w, 9, 5, rn)
    return set_field(w, 4, 0, rd)

def enc_d(op11: int, imm9: int, rn: int, rt: int) -> int:
    # [11:10] op field stays zero for LDUR/STUR
    w = set_field(0, 31, 21, op11)
    w = set_field(w, 20, 12, imm9)
    w = set_field(w, 9, 5, rn)
    return set_field(w, 4, 0, rt)

def enc_b(op6: int, imm26: int) -> int:
    w = set_field(0, 31, 26, op6)
    return set_field(w, 25, 0, imm26)

def enc_cb(op8: int, imm19: int, rt: int) -> int:
    w = set_field(0, 31, 24, op8)
    w = set_field(w, 23, 5, imm19)
    return set_field(w, 4, 0, rt)

def enc_bcond(cond: int, imm15: int) -> int:
    w = set_field(0, 31, 24, OP_BCOND)
    w = set_field(w, 23, 20, cond)
    w = set_field(w, 19, 5, imm15)
    return set_field(w, 4, 0, DISCARD_REG)

def enc_xext(funct: int, rm: int, rn: int, rd: int) -> int:
    """Extended format: R layout with the shamt slot holding *funct*."""
    return enc_r(OP_XEXT, rm, funct, rn, rd)

def enc_shift(funct: int, shamt: int, rn: int, rd: int) -> int:
    """LSL/LSR: low 5 bits of *shamt* in Rm, bit 5 in the funct field."""
    hi = SHIFT_HI if shamt & 0x20 else 0
    return enc_xext(funct | hi, shamt & 0x1F, rn, rd)

# ---------------------------------------------------------------------------
#  Catalog invariant
# ---------------------------------------------------------------------------

def _left_aligned(value: int, width: int) -> int:
    return value << (32 - width)

def check_disjoint() -> list[tuple[str, str]]:
    """Return every pair of catalog opcodes whose leading bits collide.

    Two opcodes collide when the narrower one, left-aligned in a 32-bit
    word, is a prefix of the wider one (or they are equal at the same
    width).  An empty list means the catalog decodes unambiguously.
    """
    entries = [(name, OPCODE_WIDTH[fmt], val) for name, (fmt, val) in OPCODES.items()]
    clashes = []
    for i, (na, wa, va) in enumerate(entries):
        for nb, wb, vb in entries[i + 1:]:
            w = min(wa, wb)
            top = mask(w) << (32 - w)
            if (_left_aligned(va, wa) & top) == (_left_aligned(vb, wb) & top):
                clashes.append((na, nb))
    return clashes
