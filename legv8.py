"""
LEGv8 CPU Emulator
===================
Fetch/decode/execute engine for the course LEGv8 subset plus custom
extensions.  Machine state is one explicit CPU object; memory is passed
into every step so the core has no ambient state.

  - 32 × 64-bit registers X0..X31.  X31 is an ordinary register here,
    not a hard-wired zero.
  - PC is a byte address, kept 4-aligned by every instruction.
  - Two flags, Z and N, written only by CMP.
  - HALT (0xFFFFFFFF) stops the machine without moving PC.
"""

from __future__ import annotations
from dataclasses import dataclass

from encoding import (
    NUM_REGS, LINK_REG,
    FN_CMP, FN_AND, FN_ORR, FN_EOR, FN_LSL, FN_LSR, FN_MUL, FN_RET,
    COND_EQ, COND_NE, COND_LT, COND_GE,
    MASK32, u64, s64,
)
from decoder import (
    IllegalInstruction, decode,
    Nop, Halt, Branch, CompareBranch, CondBranch, Immediate, Register,
    MemoryOp, Extended,
)
from memory import Memory

DEFAULT_MAX_STEPS = 1_000_000


class RegisterIndexError(IndexError):
    """Register index outside 0..31 (debug pokes only)."""

    def __init__(self, index: int):
        self.index = index
        super().__init__(f"Register index out of range X0..X31: {index}")


@dataclass
class Flags:
    z: bool = False  # zero
    n: bool = False  # negative


class CPU:
    """LEGv8 emulator: one 32-bit word per instruction."""

    def __init__(self):
        self.regs: list[int] = [0] * NUM_REGS
        self._pc: int = 0
        self.flags = Flags()
        self.halted: bool = False
        self.instret: int = 0   # instructions retired since reset

    # -- Program counter --

    @property
    def pc(self) -> int:
        return self._pc

    @pc.setter
    def pc(self, value: int):
        self._pc = u64(value)

    def get_pc(self) -> int:
        return self._pc

    def set_pc(self, value: int):
        self.pc = value

    # -- Registers --

    @staticmethod
    def _check_index(i: int):
        if not isinstance(i, int) or not 0 <= i < NUM_REGS:
            raise RegisterIndexError(i)

    def get_x(self, i: int) -> int:
        self._check_index(i)
        return self.regs[i]

    def set_x(self, i: int, value: int):
        self._check_index(i)
        self.regs[i] = u64(value)

    def get_flags(self) -> Flags:
        return self.flags

    def set_flags(self, z: bool, n: bool):
        self.flags.z = bool(z)
        self.flags.n = bool(n)

    # -- Reset --

    def clear_registers(self):
        self.regs = [0] * NUM_REGS

    def reset(self):
        """Back to the initial Running state: PC 0, registers and flags 0."""
        self.clear_registers()
        self._pc = 0
        self.set_flags(False, False)
        self.halted = False
        self.instret = 0

    # -- Condition evaluation --

    def eval_cond(self, cc: int) -> bool:
        if cc == COND_EQ: return self.flags.z
        if cc == COND_NE: return not self.flags.z
        if cc == COND_LT: return self.flags.n
        if cc == COND_GE: return not self.flags.n
        return False

    def _branch(self, imm: int):
        self.pc = self._pc + 4 * imm

    # =====================================================================
    #  STEP: the core decode/execute loop
    # =====================================================================

    def step(self, mem: Memory) -> bool:
        """Execute one instruction.  Returns False if HALT was fetched.

        Memory faults from the fetch or a load/store propagate unchanged.
        """
        word = mem.load_word(self._pc)
        try:
            ins = decode(word)
        except IllegalInstruction:
            raise IllegalInstruction(word, self._pc) from None

        if isinstance(ins, Halt):
            self.halted = True
            return False

        self.halted = False
        self.instret += 1

        if isinstance(ins, Nop):
            self.pc = self._pc + 4
        elif isinstance(ins, Branch):
            if ins.link:
                self.regs[LINK_REG] = u64(self._pc + 4)
            self._branch(ins.imm)
        elif isinstance(ins, CompareBranch):
            v = self.regs[ins.rt]
            take = (v != 0) if ins.nonzero else (v == 0)
            if take:
                self._branch(ins.imm)
            else:
                self.pc = self._pc + 4
        elif isinstance(ins, CondBranch):
            if self.eval_cond(ins.cond):
                self._branch(ins.imm)
            else:
                self.pc = self._pc + 4
        elif isinstance(ins, Immediate):
            a = self.regs[ins.rn]
            self.regs[ins.rd] = u64(a - ins.imm if ins.subtract else a + ins.imm)
            self.pc = self._pc + 4
        elif isinstance(ins, MemoryOp):
            self._exec_mem(ins, mem)
            self.pc = self._pc + 4
        elif isinstance(ins, Register):
            # SUB leaves the flags alone; only CMP writes them
            a = self.regs[ins.rn]
            b = self.regs[ins.rm]
            self.regs[ins.rd] = u64(a - b if ins.subtract else a + b)
            self.pc = self._pc + 4
        elif isinstance(ins, Extended):
            self._exec_xext(ins)
        else:
            raise IllegalInstruction(word, self._pc)
        return True

    # =====================================================================
    #  Executors
    # =====================================================================

    def _exec_mem(self, ins: MemoryOp, mem: Memory):
        ea = u64(self.regs[ins.rn] + ins.offset)
        if ins.load:
            self.regs[ins.rt] = mem.load_word(ea)
        else:
            mem.store_word(ea, self.regs[ins.rt] & MASK32)

    def _exec_xext(self, ins: Extended):
        f = ins.funct
        a = self.regs[ins.rn]
        b = self.regs[ins.rm]

        if f == FN_RET:
            self.pc = a
            return
        if f == FN_CMP:
            r = u64(a - b)
            self.flags.z = r == 0
            self.flags.n = s64(r) < 0
        elif f == FN_AND:
            self.regs[ins.rd] = a & b
        elif f == FN_ORR:
            self.regs[ins.rd] = a | b
        elif f == FN_EOR:
            self.regs[ins.rd] = a ^ b
        elif f == FN_MUL:
            self.regs[ins.rd] = u64(a * b)
        elif f == FN_LSL:
            self.regs[ins.rd] = u64(a << (ins.rm & 63))
        elif f == FN_LSR:
            self.regs[ins.rd] = a >> (ins.rm & 63)
        self.pc = self._pc + 4

    # -- Run loop --

    def run(self, mem: Memory, max_steps: int = DEFAULT_MAX_STEPS) -> int:
        """Step until HALT or *max_steps*.  Returns instructions executed."""
        executed = 0
        for _ in range(max_steps):
            if not self.step(mem):
                break
            executed += 1
        return executed

    # -- Debug / introspection --

    def dump_regs(self) -> str:
        lines = []
        for i in range(0, NUM_REGS, 2):
            lines.append(f"  X{i:<2d} = {self.regs[i]:#018x}    "
                         f"X{i + 1:<2d} = {self.regs[i + 1]:#018x}")
        lines.append(f"  PC  = {self._pc:#018x}")
        lines.append(f"  FLAGS = Z={int(self.flags.z)} N={int(self.flags.n)}")
        return "\n".join(lines)
