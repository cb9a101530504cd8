"""
LEGv8 Machine State Display
============================
Renders the CPU and memory as a text panel for the command loop:

    LEGv8 Simulator
    PC = 8, instruction = 0x91002822 =
                                    2432706594

    Registers                                  Memory
    -------------  ---------------------------------------------------------
    X00                    0    M[000] = ADDI X1, X0, #5          M[004]=...
    X01                    5  > M[008] = ADDI X2, X1, #10         M[012]=...
    ...

    Flags: Z=0 N=0

Register values print as unsigned decimal.  Memory words print as hex,
decimal or disassembly depending on the selected mode.  Words outside
memory show as '?'.

Usage:
    from display import render_state
    print(render_state(cpu, mem, "My Program", "hex"))
"""

from __future__ import annotations
from typing import TYPE_CHECKING

from asm import disassemble
from encoding import NUM_REGS
from memory import MemoryFault

if TYPE_CHECKING:
    from legv8 import CPU
    from memory import Memory

MEM_MODES = ("hex", "dec", "code")

HELP_TEXT = """\
memory hex, memory dec, memory code
PC=#00
M[#00]=#
R[#]=#, X#=#
break [#addr] | break list | break del #addr | break toggle #addr | break clear
step [n] (execute n instructions, stops before next breakpoint)
continue | cont | c (continue execution; steps once if currently on a breakpoint)
disasm [#addr] [n]
save fname[.arm]
load fname[.arm]
title title
clear registers, clear memory, clear
LEGv8 instruction (LDUR,STUR,B,BL,CBZ,CBNZ,B.cond,ADD,SUB,ADDI,SUBI + extras)
run [fast|slow] [nsteps] (default: 20 steps for slow; fast runs until HALT)
quit | exit"""


def hex32(v: int) -> str:
    return f"0x{v & 0xFFFFFFFF:08X}"


def format_word(word: int, addr: int, mode: str) -> str:
    """One memory word in *mode* (hex, dec or code)."""
    if mode == "hex":
        return hex32(word)
    if mode == "code":
        return disassemble(word, addr)
    if mode == "dec":
        return str(word)
    raise ValueError(f"Unknown memory mode {mode!r} (hex|dec|code)")


def _word_at(mem: Memory, addr: int, mode: str) -> str:
    try:
        return format_word(mem.load_word(addr), addr, mode)
    except MemoryFault:
        return "?"


def render_state(cpu: CPU, mem: Memory, title: str = "", mode: str = "code") -> str:
    """Full state panel: title, current instruction, registers beside memory, flags."""
    pc = cpu.pc
    try:
        instr = mem.load_word(pc)
    except MemoryFault:
        instr = 0

    out = [
        "",
        title,
        f"PC = {pc}, instruction = {hex32(instr)} =",
        f"{instr:>42d}",
        "",
        f"{'Registers':<43s}Memory",
        "-------------  " + "-" * 57,
    ]

    # 32 rows; row i shows register Xi beside words at 8i and 8i+4
    for i in range(NUM_REGS):
        addr = i * 8
        lmark = ">" if pc == addr else " "
        rmark = ">" if pc == addr + 4 else " "
        left = _word_at(mem, addr, mode)
        right = _word_at(mem, addr + 4, mode)
        out.append(f"X{i:02d}{cpu.regs[i]:>20d}  "
                   f"{lmark} M[{addr:03d}] = {left:<24s}"
                   f"{rmark} M[{addr + 4:03d}]={right}")

    out.append("")
    out.append(f"Flags: Z={int(cpu.flags.z)} N={int(cpu.flags.n)}")
    return "\n".join(out)
