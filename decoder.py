"""
LEGv8 Instruction Decoder
==========================
Parses a 32-bit word once into one of a closed set of instruction
variants.  The disassembler and the CPU both dispatch on the variant
type instead of re-testing opcode bits.

Decode order follows opcode width, narrowest first:

  sentinels (HALT, NOP) -> B (6) -> CB / B.cond (8) -> I (10) -> R / D / XEXT (11)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Union

from encoding import (
    WORD_NOP, WORD_HALT,
    OP_B, OP_BL, OP_CBZ, OP_CBNZ, OP_BCOND, OP_ADDI, OP_SUBI,
    OP_ADD, OP_SUB, OP_LDUR, OP_STUR, OP_XEXT,
    COND_NAMES, XEXT_NAMES, FN_LSL, FN_LSR, SHIFT_HI,
    IMM26_BITS, IMM19_BITS, IMM15_BITS, IMM9_BITS,
    get_field, sign_extend,
)


class IllegalInstruction(Exception):
    """No format matches the word (corrupted or hand-poked memory)."""

    def __init__(self, word: int, pc: int | None = None):
        self.word = word & 0xFFFFFFFF
        self.pc = pc
        where = f" at PC={pc:#x}" if pc is not None else ""
        super().__init__(f"Illegal instruction {self.word:#010x}{where}")


# ---------------------------------------------------------------------------
#  Variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Nop:
    pass


@dataclass(frozen=True)
class Halt:
    pass


@dataclass(frozen=True)
class Branch:
    """B / BL.  *imm* is a signed word offset from the branch itself."""
    link: bool
    imm: int

    @property
    def mnemonic(self) -> str:
        return "BL" if self.link else "B"


@dataclass(frozen=True)
class CompareBranch:
    """CBZ / CBNZ."""
    nonzero: bool
    rt: int
    imm: int

    @property
    def mnemonic(self) -> str:
        return "CBNZ" if self.nonzero else "CBZ"


@dataclass(frozen=True)
class CondBranch:
    """Custom B.<cond>, taken on the flags left by the last CMP."""
    cond: int
    imm: int

    @property
    def mnemonic(self) -> str:
        return "B." + COND_NAMES[self.cond]


@dataclass(frozen=True)
class Immediate:
    """ADDI / SUBI with an unsigned 12-bit immediate."""
    subtract: bool
    rd: int
    rn: int
    imm: int

    @property
    def mnemonic(self) -> str:
        return "SUBI" if self.subtract else "ADDI"


@dataclass(frozen=True)
class Register:
    """ADD / SUB (R-format)."""
    subtract: bool
    rd: int
    rn: int
    rm: int
    shamt: int = 0

    @property
    def mnemonic(self) -> str:
        return "SUB" if self.subtract else "ADD"


@dataclass(frozen=True)
class MemoryOp:
    """LDUR / STUR.  *offset* is a signed byte offset."""
    load: bool
    rt: int
    rn: int
    offset: int

    @property
    def mnemonic(self) -> str:
        return "LDUR" if self.load else "STUR"


@dataclass(frozen=True)
class Extended:
    """Custom XEXT family.  For LSL/LSR *rm* holds the full 6-bit shift amount."""
    funct: int
    rd: int
    rn: int
    rm: int

    @property
    def mnemonic(self) -> str:
        return XEXT_NAMES[self.funct]


Instruction = Union[Nop, Halt, Branch, CompareBranch, CondBranch,
                    Immediate, Register, MemoryOp, Extended]


# ---------------------------------------------------------------------------
#  Decode
# ---------------------------------------------------------------------------

def decode(word: int) -> Instruction:
    """Decode *word* into an instruction variant.

    Raises IllegalInstruction if no format claims it.
    """
    word &= 0xFFFFFFFF

    if word == WORD_HALT:
        return Halt()
    if word == WORD_NOP:
        return Nop()

    op6 = get_field(word, 31, 26)
    if op6 == OP_B or op6 == OP_BL:
        return Branch(link=(op6 == OP_BL),
                      imm=sign_extend(get_field(word, 25, 0), IMM26_BITS))

    op8 = get_field(word, 31, 24)
    if op8 == OP_CBZ or op8 == OP_CBNZ:
        return CompareBranch(nonzero=(op8 == OP_CBNZ),
                             rt=get_field(word, 4, 0),
                             imm=sign_extend(get_field(word, 23, 5), IMM19_BITS))
    if op8 == OP_BCOND:
        cond = get_field(word, 23, 20)
        if cond not in COND_NAMES:
            raise IllegalInstruction(word)
        return CondBranch(cond=cond,
                          imm=sign_extend(get_field(word, 19, 5), IMM15_BITS))

    op10 = get_field(word, 31, 22)
    if op10 == OP_ADDI or op10 == OP_SUBI:
        return Immediate(subtract=(op10 == OP_SUBI),
                         rd=get_field(word, 4, 0),
                         rn=get_field(word, 9, 5),
                         imm=get_field(word, 21, 10))

    op11 = get_field(word, 31, 21)
    rm = get_field(word, 20, 16)
    rn = get_field(word, 9, 5)
    rd = get_field(word, 4, 0)

    if op11 == OP_ADD or op11 == OP_SUB:
        return Register(subtract=(op11 == OP_SUB), rd=rd, rn=rn, rm=rm,
                        shamt=get_field(word, 15, 10))
    if op11 == OP_LDUR or op11 == OP_STUR:
        return MemoryOp(load=(op11 == OP_LDUR), rt=rd, rn=rn,
                        offset=sign_extend(get_field(word, 20, 12), IMM9_BITS))
    if op11 == OP_XEXT:
        funct = get_field(word, 15, 10)
        if funct & SHIFT_HI and (funct & ~SHIFT_HI) in (FN_LSL, FN_LSR):
            return Extended(funct=funct & ~SHIFT_HI, rd=rd, rn=rn, rm=rm | 0x20)
        if funct not in XEXT_NAMES:
            raise IllegalInstruction(word)
        return Extended(funct=funct, rd=rd, rn=rn, rm=rm)

    raise IllegalInstruction(word)
