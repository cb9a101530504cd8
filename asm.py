"""
LEGv8 Assembler
================
Translates one line of assembly into a 32-bit instruction word, and a
word back into display text.

Syntax:
  - Registers X0..X31 (case-insensitive)
  - Immediates prefixed with '#': decimal, or hex with 0x prefix
  - Comments start with ';' or '//'  ('#' is the immediate prefix)
  - Memory operands: LDUR Xt, [Xn, #imm]   (or [Xn] for offset 0)

Supported:
  NOP HALT  B BL  B.EQ B.NE B.LT B.GE  CBZ CBNZ  LDUR STUR
  ADD SUB  ADDI SUBI  AND ORR EOR MUL  LSL LSR  CMP  RET

Usage:
  from asm import assemble_line, disassemble
  word = assemble_line("ADDI X1, X0, #5")
  text = disassemble(word)
"""

from __future__ import annotations
import re
from typing import Optional

from encoding import (
    WORD_NOP, WORD_HALT,
    OP_B, OP_BL, OP_CBZ, OP_CBNZ, OP_ADDI, OP_SUBI,
    OP_ADD, OP_SUB, OP_LDUR, OP_STUR,
    COND_EQ, COND_NE, COND_LT, COND_GE,
    FN_CMP, FN_AND, FN_ORR, FN_EOR, FN_LSL, FN_LSR, FN_MUL, FN_RET,
    IMM26_BITS, IMM19_BITS, IMM15_BITS, IMM9_BITS, IMM12_MAX, SHIFT_MAX,
    LINK_REG, DISCARD_REG, NUM_REGS,
    enc_b, enc_cb, enc_bcond, enc_i, enc_r, enc_d, enc_xext, enc_shift,
    signed_range,
)
from decoder import (
    IllegalInstruction, decode,
    Nop, Halt, Branch, CompareBranch, CondBranch, Immediate, Register,
    MemoryOp, Extended,
)

# ---------------------------------------------------------------------------
#  Mnemonic maps
# ---------------------------------------------------------------------------

COND_MAP = {"b.eq": COND_EQ, "b.ne": COND_NE, "b.lt": COND_LT, "b.ge": COND_GE}

BRANCH_OPS = {"b": OP_B, "bl": OP_BL}
CB_OPS     = {"cbz": OP_CBZ, "cbnz": OP_CBNZ}
MEM_OPS    = {"ldur": OP_LDUR, "stur": OP_STUR}
REG_OPS    = {"add": OP_ADD, "sub": OP_SUB}
IMM_OPS    = {"addi": OP_ADDI, "subi": OP_SUBI}
XEXT_OPS   = {"and": FN_AND, "orr": FN_ORR, "eor": FN_EOR, "mul": FN_MUL}
SHIFT_OPS  = {"lsl": FN_LSL, "lsr": FN_LSR}

# ---------------------------------------------------------------------------
#  Errors
# ---------------------------------------------------------------------------

class AsmError(Exception):
    """Base for assembler errors.  *line* is set when assembling a file."""

    def __init__(self, msg: str, line: Optional[int] = None):
        self.msg = msg
        self.line = line
        super().__init__(msg)

    def __str__(self):
        if self.line is not None:
            return f"Line {self.line}: {self.msg}"
        return self.msg

class AsmSyntaxError(AsmError):
    """Malformed input line."""
    pass

class ArityError(AsmSyntaxError):
    pass

class InvalidOperand(AsmSyntaxError):
    pass

class RangeError(AsmSyntaxError):
    pass

class UnknownInstruction(AsmSyntaxError):
    pass

# ---------------------------------------------------------------------------
#  Parser helpers
# ---------------------------------------------------------------------------

_REG_RE = re.compile(r"[xX](\d+)")
_IMM_RE = re.compile(r"#(-?)(0[xX][0-9a-fA-F]+|\d+)")


def _strip_comment(line: str) -> str:
    cut = len(line)
    for marker in (";", "//"):
        pos = line.find(marker)
        if pos != -1:
            cut = min(cut, pos)
    return line[:cut]

def _tokenize(line: str) -> list[str]:
    """Split on commas and whitespace, keeping '[Xn' / '#imm]' glued."""
    line = re.sub(r"\[\s+", "[", line)
    line = re.sub(r"\s+\]", "]", line)
    return [t for t in re.split(r"[,\s]+", line) if t]

def _parse_reg(tok: str) -> int:
    """Parse 'X0'-'X31'. Returns register index."""
    m = _REG_RE.fullmatch(tok)
    if m is None:
        raise InvalidOperand(f"Expected register like X3, got {tok!r}")
    n = int(m.group(1))
    if n >= NUM_REGS:
        raise InvalidOperand(f"Register out of range X0..X31: {tok!r}")
    return n

def _parse_imm(tok: str) -> int:
    """Parse '#n' (decimal, or 0x hex, optionally negative)."""
    m = _IMM_RE.fullmatch(tok)
    if m is None:
        raise InvalidOperand(f"Expected immediate like #4 or #0x10, got {tok!r}")
    body = m.group(2)
    val = int(body[2:], 16) if body[:2] in ("0x", "0X") else int(body)
    return -val if m.group(1) else val

def _check_range(val: int, lo: int, hi: int, what: str) -> int:
    if not lo <= val <= hi:
        raise RangeError(f"{what} {val} out of range [{lo}, {hi}]")
    return val

def _expect(toks: list[str], count: int, usage: str):
    if len(toks) != count:
        raise ArityError(f"{toks[0].upper()} expects: {usage}")

def _parse_mem_operand(toks: list[str]) -> tuple[int, int]:
    """Parse '[Xn', '#imm]'  or  '[Xn]'.  Returns (rn, offset)."""
    base = toks[0]
    if not base.startswith("["):
        raise AsmSyntaxError(f"Expected '[Xn, #imm]', got {base!r}")
    if len(toks) == 1:
        if not base.endswith("]"):
            raise AsmSyntaxError(f"Missing ']' in {base!r}")
        return _parse_reg(base[1:-1]), 0
    off = toks[1]
    if "]" in base or not off.endswith("]"):
        raise AsmSyntaxError(f"Expected '[Xn, #imm]', got {base} {off}")
    return _parse_reg(base[1:]), _parse_imm(off[:-1])

# ---------------------------------------------------------------------------
#  Encode
# ---------------------------------------------------------------------------

def assemble_line(line: str) -> Optional[int]:
    """Assemble one line.  Returns None for blank/comment-only lines."""
    text = _strip_comment(line).strip()
    if not text:
        return None
    toks = _tokenize(text)
    mnem = toks[0].lower()

    # ---- Sentinels ----
    if mnem == "nop":
        _expect(toks, 1, "NOP")
        return WORD_NOP
    if mnem == "halt":
        _expect(toks, 1, "HALT")
        return WORD_HALT

    # ---- B.cond ----
    if mnem in COND_MAP:
        _expect(toks, 2, f"{mnem.upper()} #imm15")
        lo, hi = signed_range(IMM15_BITS)
        imm = _check_range(_parse_imm(toks[1]), lo, hi, "Conditional branch offset")
        return enc_bcond(COND_MAP[mnem], imm)

    # ---- B / BL ----
    if mnem in BRANCH_OPS:
        _expect(toks, 2, f"{mnem.upper()} #imm26")
        lo, hi = signed_range(IMM26_BITS)
        imm = _check_range(_parse_imm(toks[1]), lo, hi, "Branch offset")
        return enc_b(BRANCH_OPS[mnem], imm)

    # ---- CBZ / CBNZ ----
    if mnem in CB_OPS:
        _expect(toks, 3, f"{mnem.upper()} Xt, #imm19")
        rt = _parse_reg(toks[1])
        lo, hi = signed_range(IMM19_BITS)
        imm = _check_range(_parse_imm(toks[2]), lo, hi, "Compare-branch offset")
        return enc_cb(CB_OPS[mnem], imm, rt)

    # ---- LDUR / STUR ----
    if mnem in MEM_OPS:
        if len(toks) not in (3, 4):
            raise ArityError(f"{mnem.upper()} expects: {mnem.upper()} Xt, [Xn, #imm9]")
        rt = _parse_reg(toks[1])
        rn, off = _parse_mem_operand(toks[2:])
        lo, hi = signed_range(IMM9_BITS)
        _check_range(off, lo, hi, "D-format offset")
        return enc_d(MEM_OPS[mnem], off, rn, rt)

    # ---- ADD / SUB ----
    if mnem in REG_OPS:
        _expect(toks, 4, f"{mnem.upper()} Xd, Xn, Xm")
        rd, rn, rm = (_parse_reg(t) for t in toks[1:])
        return enc_r(REG_OPS[mnem], rm, 0, rn, rd)

    # ---- AND / ORR / EOR / MUL ----
    if mnem in XEXT_OPS:
        _expect(toks, 4, f"{mnem.upper()} Xd, Xn, Xm")
        rd, rn, rm = (_parse_reg(t) for t in toks[1:])
        return enc_xext(XEXT_OPS[mnem], rm, rn, rd)

    # ---- LSL / LSR (shift amount in the Rm slot, bit 5 in funct) ----
    if mnem in SHIFT_OPS:
        _expect(toks, 4, f"{mnem.upper()} Xd, Xn, #shamt")
        rd = _parse_reg(toks[1])
        rn = _parse_reg(toks[2])
        sh = _check_range(_parse_imm(toks[3]), 0, SHIFT_MAX, "Shift amount")
        return enc_shift(SHIFT_OPS[mnem], sh, rn, rd)

    # ---- ADDI / SUBI ----
    if mnem in IMM_OPS:
        _expect(toks, 4, f"{mnem.upper()} Xd, Xn, #imm12")
        rd = _parse_reg(toks[1])
        rn = _parse_reg(toks[2])
        imm = _check_range(_parse_imm(toks[3]), 0, IMM12_MAX, "I-format immediate")
        return enc_i(IMM_OPS[mnem], imm, rn, rd)

    # ---- CMP ----
    if mnem == "cmp":
        _expect(toks, 3, "CMP Xn, Xm")
        rn = _parse_reg(toks[1])
        rm = _parse_reg(toks[2])
        return enc_xext(FN_CMP, rm, rn, DISCARD_REG)

    # ---- RET ----
    if mnem == "ret":
        if len(toks) == 1:
            rn = LINK_REG
        elif len(toks) == 2:
            rn = _parse_reg(toks[1])
        else:
            raise ArityError("RET expects: RET or RET Xn")
        return enc_xext(FN_RET, 0, rn, 0)

    raise UnknownInstruction(f"Unknown/unsupported instruction: {toks[0].upper()}")


def assemble(source: str, listing: bool = False) -> list[int]:
    """Assemble a multi-line program into consecutive words.

    Blank and comment-only lines emit nothing.  Errors carry the 1-based
    source line.  If listing=True, print an address/hex/source listing.
    """
    words: list[int] = []
    for lineno, raw in enumerate(source.splitlines(), 1):
        try:
            w = assemble_line(raw)
        except AsmError as e:
            e.line = lineno
            raise
        if w is None:
            continue
        if listing:
            print(f"  {len(words) * 4:04X}  {w:08X}  {raw.strip()}")
        words.append(w)
    return words

# ---------------------------------------------------------------------------
#  Disassemble
# ---------------------------------------------------------------------------

def disassemble(word: int, pc: int = 0) -> str:
    """Render *word* as assembly text.  Unknown words render as hex.

    *pc* is accepted for callers that track it; offsets are shown raw.
    """
    try:
        ins = decode(word)
    except IllegalInstruction:
        return f"0x{word & 0xFFFFFFFF:08X}"

    if isinstance(ins, Nop):
        return "NOP"
    if isinstance(ins, Halt):
        return "HALT"
    if isinstance(ins, (Branch, CondBranch)):
        return f"{ins.mnemonic} #{ins.imm}"
    if isinstance(ins, CompareBranch):
        return f"{ins.mnemonic} X{ins.rt}, #{ins.imm}"
    if isinstance(ins, Immediate):
        return f"{ins.mnemonic} X{ins.rd}, X{ins.rn}, #{ins.imm}"
    if isinstance(ins, Register):
        return f"{ins.mnemonic} X{ins.rd}, X{ins.rn}, X{ins.rm}"
    if isinstance(ins, MemoryOp):
        return f"{ins.mnemonic} X{ins.rt}, [X{ins.rn}, #{ins.offset}]"
    if isinstance(ins, Extended):
        if ins.funct == FN_CMP:
            return f"CMP X{ins.rn}, X{ins.rm}"
        if ins.funct == FN_RET:
            return f"RET X{ins.rn}"
        if ins.funct in (FN_LSL, FN_LSR):
            return f"{ins.mnemonic} X{ins.rd}, X{ins.rn}, #{ins.rm}"
        return f"{ins.mnemonic} X{ins.rd}, X{ins.rn}, X{ins.rm}"
    return f"0x{word & 0xFFFFFFFF:08X}"
