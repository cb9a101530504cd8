"""
LEGv8 Simulator Session
========================
Wires together:
  - One LEGv8 CPU (legv8.py)
  - A word memory (memory.py)
  - The line assembler (asm.py) for typing instructions into memory
  - Breakpoints, .arm program files and the text renderer (display.py)

The session owns the machine state; the command loop in cli.py only
parses lines and calls into it.

Environment:
  LEGSIM_MEM_WORDS   memory size in 32-bit words (default 64)
  LEGSIM_MAX_STEPS   step cap for run-until-halt (default 1000000)
"""

from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from typing import Optional

from legv8 import CPU, DEFAULT_MAX_STEPS
from memory import Memory, DEFAULT_WORDS
from asm import assemble_line, disassemble
from display import render_state, MEM_MODES

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
#  Defaults
# ---------------------------------------------------------------------------

DEFAULT_TITLE      = "LEGv8 Simulator"
DEFAULT_MEM_MODE   = "code"
DEFAULT_SLOW_STEPS = 20
ARM_EXT            = ".arm"
SAVE_HEADER        = "; saved by simulator"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        val = int(raw, 0)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if val <= 0:
        raise ValueError(f"{name} must be positive, got {val}")
    return val


def default_mem_words() -> int:
    return _env_int("LEGSIM_MEM_WORDS", DEFAULT_WORDS)


def default_max_steps() -> int:
    return _env_int("LEGSIM_MAX_STEPS", DEFAULT_MAX_STEPS)


def ensure_arm_ext(path: str) -> str:
    path = path.strip()
    if not path:
        raise ValueError("Missing file name")
    return path if path.endswith(ARM_EXT) else path + ARM_EXT


@dataclass
class RunResult:
    """Outcome of step/run/cont.

    reason is one of:
      "steps"       requested count executed
      "halt"        HALT fetched
      "breakpoint"  stopped before an enabled breakpoint
      "limit"       step cap reached while running to halt
    """
    executed: int
    reason: str


# ---------------------------------------------------------------------------
#  Simulator
# ---------------------------------------------------------------------------

class Simulator:
    """One interactive LEGv8 session: CPU, memory and debugger state."""

    def __init__(self, mem_words: Optional[int] = None,
                 max_steps: Optional[int] = None):
        self.mem = Memory(mem_words if mem_words is not None else default_mem_words())
        self.cpu = CPU()
        self.max_steps = max_steps if max_steps is not None else default_max_steps()
        self.title = DEFAULT_TITLE
        self.mem_mode = DEFAULT_MEM_MODE
        self.breakpoints: dict[int, bool] = {}   # addr -> enabled
        log.debug("session: %d words, step cap %d",
                  self.mem.size_words, self.max_steps)

    # -- Editing --

    def assemble_to_memory(self, line: str) -> Optional[int]:
        """Assemble *line* into memory at PC and advance PC.

        Nothing is executed.  Returns the word, or None for a blank line.
        """
        word = assemble_line(line)
        if word is None:
            return None
        pc = self.cpu.pc
        self.mem.store_word(pc, word)
        self.cpu.pc = pc + 4
        log.debug("stored %#010x at %#x", word, pc)
        return word

    def set_pc(self, addr: int):
        self.cpu.set_pc(addr)

    def set_mem(self, addr: int, value: int):
        self.mem.store_word(addr, value)

    def set_reg(self, index: int, value: int):
        self.cpu.set_x(index, value)

    def set_mode(self, mode: str):
        if mode not in MEM_MODES:
            raise ValueError("Usage: memory hex|dec|code")
        self.mem_mode = mode

    def clear(self, what: str = ""):
        what = what.strip()
        if what == "registers":
            self.cpu.clear_registers()
        elif what == "memory":
            self.mem.clear()
        elif not what:
            self.cpu.reset()
            self.mem.clear()
        else:
            raise ValueError("Usage: clear [registers|memory]")

    # -- Program files --

    def save(self, path: str) -> str:
        """Write all of memory as a .arm file.  Returns the path written."""
        path = ensure_arm_ext(path)
        lines = [SAVE_HEADER] + self.mem.dump_program()
        with open(path, "w") as f:
            f.write("\n".join(lines) + "\n")
        log.info("saved %d words to %s", self.mem.size_words, path)
        return path

    def load(self, path: str) -> str:
        """Replace memory with a .arm file and restart at PC 0."""
        path = ensure_arm_ext(path)
        with open(path, "r") as f:
            lines = f.read().splitlines()
        self.mem.load_program(lines)
        self.cpu.pc = 0
        self.cpu.halted = False
        log.info("loaded %s", path)
        return path

    # -- Breakpoints --

    @staticmethod
    def _check_bp_addr(addr: int) -> int:
        if addr < 0 or addr % 4:
            raise ValueError(f"Breakpoint address must be a multiple of 4: {addr}")
        return addr

    def add_breakpoint(self, addr: int):
        self.breakpoints[self._check_bp_addr(addr)] = True

    def remove_breakpoint(self, addr: int):
        if self.breakpoints.pop(self._check_bp_addr(addr), None) is None:
            raise ValueError(f"No breakpoint at {addr}")

    def toggle_breakpoint(self, addr: int) -> bool:
        """Flip a breakpoint.  Returns the new enabled state."""
        addr = self._check_bp_addr(addr)
        if addr not in self.breakpoints:
            raise ValueError(f"No breakpoint at {addr}")
        self.breakpoints[addr] = not self.breakpoints[addr]
        return self.breakpoints[addr]

    def clear_breakpoints(self):
        self.breakpoints.clear()

    def list_breakpoints(self) -> list[tuple[int, bool]]:
        return sorted(self.breakpoints.items())

    def _at_breakpoint(self) -> bool:
        return self.breakpoints.get(self.cpu.pc, False)

    # -- Execution --

    def _step_one(self) -> bool:
        pc = self.cpu.pc
        if log.isEnabledFor(logging.DEBUG):
            word = self.mem.load_word(pc)
            log.debug("%#06x  %08X  %s", pc, word, disassemble(word, pc))
        return self.cpu.step(self.mem)

    def _execute(self, limit: int, cap_reason: str) -> RunResult:
        executed = 0
        while executed < limit:
            if executed and self._at_breakpoint():
                log.debug("breakpoint hit at %#x", self.cpu.pc)
                return RunResult(executed, "breakpoint")
            if not self._step_one():
                return RunResult(executed, "halt")
            executed += 1
        if cap_reason == "limit":
            log.warning("stopped after %d steps (step cap)", executed)
        return RunResult(executed, cap_reason)

    def step(self, count: int = 1) -> RunResult:
        """Execute up to *count* instructions.

        Stops before an enabled breakpoint, except one at the PC the
        call started from.
        """
        if count < 1:
            raise ValueError(f"Step count must be positive: {count}")
        return self._execute(count, "steps")

    def run(self, steps: Optional[int] = None) -> RunResult:
        """Run *steps* instructions, or until HALT/breakpoint/step cap."""
        if steps is None:
            return self._execute(self.max_steps, "limit")
        return self.step(steps)

    def cont(self) -> RunResult:
        """Continue to the next HALT or breakpoint.

        A breakpoint at the current PC is stepped over once.
        """
        return self._execute(self.max_steps, "limit")

    # -- Display --

    def state_text(self) -> str:
        return render_state(self.cpu, self.mem, self.title, self.mem_mode)
