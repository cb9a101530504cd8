#!/usr/bin/env python3
"""
LEGv8 Simulator CLI
====================
Interactive command loop for the LEGv8 simulator.

Provides:
  - Typing instructions straight into memory at PC
  - Register / PC / memory pokes (X1=#5, R[#1]=#5, PC=#0, M[#8]=#0x1234)
  - Run / step / continue with breakpoints
  - Disassembly and .arm program save/load

Usage:
  python cli.py [--mem-words N] [--max-steps N] [--load FILE] [--run] [-v]
  python cli.py --assemble prog.s prog.arm
"""

from __future__ import annotations
import argparse
import cmd
import logging
import re
import sys

from asm import assemble, AsmError
from decoder import IllegalInstruction
from display import HELP_TEXT, format_word
from legv8 import RegisterIndexError
from memory import MemoryFault
from system import Simulator, DEFAULT_SLOW_STEPS, SAVE_HEADER, ensure_arm_ext


# Every failure the session can report and survive
CMD_ERRORS = (AsmError, MemoryFault, IllegalInstruction, RegisterIndexError,
              ValueError, OSError)

_PC_RE   = re.compile(r"PC\s*=\s*(\S+)", re.IGNORECASE)
_MEM_RE  = re.compile(r"M\[\s*([^\]]+?)\s*\]\s*=\s*(\S+)", re.IGNORECASE)
_XREG_RE = re.compile(r"X(\d+)\s*=\s*(\S+)", re.IGNORECASE)
_RREG_RE = re.compile(r"R\[\s*([^\]]+?)\s*\]\s*=\s*(\S+)", re.IGNORECASE)


def parse_hash_num(tok: str) -> int:
    """Parse '#n' or 'n' (decimal, or hex with a 0x prefix)."""
    t = tok.strip()
    if t.startswith("#"):
        t = t[1:]
    try:
        if t[:2] in ("0x", "0X"):
            return int(t[2:], 16)
        return int(t, 10)
    except ValueError:
        raise ValueError(f"Expected a number like #12 or #0x1C, got {tok!r}") from None


class LegSimCLI(cmd.Cmd):
    """Interactive LEGv8 simulator."""

    intro = "LEGv8 Simulator.  Type 'help' for commands, 'quit' to exit."
    prompt = "> "

    def __init__(self, sim: Simulator, **kwargs):
        super().__init__(**kwargs)
        self.sim = sim

    def show(self):
        print(self.sim.state_text())

    # -- Dispatch --

    def onecmd(self, line):
        try:
            return super().onecmd(line)
        except CMD_ERRORS as e:
            print(f"Error: {e}")
            return False

    def default(self, line):
        """Pokes, then anything else is an instruction for memory at PC."""
        s = line.strip()
        m = _PC_RE.fullmatch(s)
        if m:
            self.sim.set_pc(parse_hash_num(m.group(1)))
            self.show()
            return
        m = _MEM_RE.fullmatch(s)
        if m:
            self.sim.set_mem(parse_hash_num(m.group(1)), parse_hash_num(m.group(2)))
            self.show()
            return
        m = _XREG_RE.fullmatch(s)
        if m:
            self.sim.set_reg(int(m.group(1)), parse_hash_num(m.group(2)))
            self.show()
            return
        m = _RREG_RE.fullmatch(s)
        if m:
            self.sim.set_reg(parse_hash_num(m.group(1)), parse_hash_num(m.group(2)))
            self.show()
            return
        self.sim.assemble_to_memory(s)
        self.show()

    def emptyline(self):
        """Don't repeat the last command on empty input."""
        pass

    # ================================================================
    #  Commands
    # ================================================================

    def do_help(self, arg):
        """Show the command summary."""
        print(HELP_TEXT)

    def do_memory(self, arg):
        """Memory display mode: memory hex|dec|code"""
        self.sim.set_mode(arg.strip())
        self.show()

    def do_title(self, arg):
        """Set the panel title: title <text>"""
        self.sim.title = arg.strip()
        self.show()

    def do_clear(self, arg):
        """Reset state: clear [registers|memory]"""
        self.sim.clear(arg)
        self.show()

    # -- Files --

    def do_save(self, arg):
        """Save memory: save fname[.arm]"""
        path = self.sim.save(arg)
        print(f"Saved to {path}")

    def do_load(self, arg):
        """Load memory: load fname[.arm]"""
        path = self.sim.load(arg)
        print(f"Loaded {path}")
        self.show()

    # -- Execution --

    def _report(self, res):
        if res.reason == "halt":
            print("\nHALT")
        elif res.reason == "breakpoint":
            print(f"\nBreakpoint hit at {self.sim.cpu.pc}")
        elif res.reason == "limit":
            print(f"\nStopped after {res.executed} steps (safety cap).")

    def do_run(self, arg):
        """Run: run [fast|slow] [nsteps]
        run / run fast runs until HALT; run slow defaults to 20 steps."""
        parts = arg.split()
        mode = "fast"
        steps = None
        if parts:
            if parts[0] in ("fast", "slow"):
                mode = parts.pop(0)
            else:
                mode = "slow"
            if parts:
                steps = parse_hash_num(parts[0])
        if mode == "fast":
            res = self.sim.run(steps)
            self._report(res)
            self.show()
            return
        self._run_slow(steps if steps is not None else DEFAULT_SLOW_STEPS)

    def _run_slow(self, steps: int):
        for _ in range(steps):
            self.show()
            res = self.sim.step(1)
            if res.reason == "halt":
                self._report(res)
                return
            try:
                input("Press ENTER to step...")
            except EOFError:
                break
        self.show()

    def do_step(self, arg):
        """Step N instructions: step [n]"""
        count = parse_hash_num(arg) if arg.strip() else 1
        res = self.sim.step(count)
        self._report(res)
        self.show()

    def do_continue(self, arg):
        """Continue to HALT or the next breakpoint: continue | cont | c"""
        res = self.sim.cont()
        self._report(res)
        self.show()
    do_cont = do_continue
    do_c = do_continue

    # -- Breakpoints --

    def do_break(self, arg):
        """Breakpoints: break [#addr] | break list | break del #addr |
        break toggle #addr | break clear"""
        parts = arg.split()
        if not parts:
            addr = self.sim.cpu.pc
            self.sim.add_breakpoint(addr)
            print(f"Breakpoint set at {addr}")
            return
        sub = parts[0].lower()
        if sub == "list":
            bps = self.sim.list_breakpoints()
            if not bps:
                print("No breakpoints set.")
            for addr, enabled in bps:
                print(f"  {addr:4d}  {'enabled' if enabled else 'disabled'}")
        elif sub == "clear":
            self.sim.clear_breakpoints()
            print("Breakpoints cleared.")
        elif sub in ("del", "toggle"):
            if len(parts) != 2:
                raise ValueError(f"Usage: break {sub} #addr")
            addr = parse_hash_num(parts[1])
            if sub == "del":
                self.sim.remove_breakpoint(addr)
                print(f"Breakpoint removed at {addr}")
            else:
                on = self.sim.toggle_breakpoint(addr)
                print(f"Breakpoint at {addr} {'enabled' if on else 'disabled'}")
        else:
            addr = parse_hash_num(parts[0])
            self.sim.add_breakpoint(addr)
            print(f"Breakpoint set at {addr}")

    # -- Inspection --

    def do_disasm(self, arg):
        """Disassemble: disasm [#addr] [n]
        Defaults to current PC, 8 instructions."""
        parts = arg.split()
        addr = parse_hash_num(parts[0]) if parts else self.sim.cpu.pc
        count = parse_hash_num(parts[1]) if len(parts) > 1 else 8
        for _ in range(count):
            word = self.sim.mem.load_word(addr)
            marker = ">" if addr == self.sim.cpu.pc else " "
            print(f"  {marker} {addr:04d}: {word:08X}  {format_word(word, addr, 'code')}")
            addr += 4

    def do_regs(self, arg):
        """Show registers, PC and flags."""
        print(self.sim.cpu.dump_regs())

    # -- Exit --

    def do_quit(self, arg):
        """Exit the simulator."""
        return True
    do_exit = do_quit

    def do_EOF(self, arg):
        print()
        return self.do_quit(arg)


# ---------------------------------------------------------------------------
#  Main
# ---------------------------------------------------------------------------

def assemble_file(src_path: str, out_path: str, listing: bool = False) -> int:
    """Assemble SRC to an .arm word file.  Returns the word count."""
    with open(src_path, "r") as f:
        source = f.read()
    words = assemble(source, listing=listing)
    out_path = ensure_arm_ext(out_path)
    with open(out_path, "w") as f:
        f.write(SAVE_HEADER + "\n")
        for w in words:
            f.write(f"0x{w:08X}\n")
    return len(words)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="LEGv8 Simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
               "  python cli.py\n"
               "  python cli.py --load prog.arm --run\n"
               "  python cli.py --assemble prog.s prog.arm\n"
               "\n"
               "Environment:\n"
               "  LEGSIM_MEM_WORDS, LEGSIM_MAX_STEPS override the defaults\n"
    )
    parser.add_argument("--mem-words", type=int, default=None, metavar="N",
                        help="Memory size in 32-bit words (default: 64)")
    parser.add_argument("--max-steps", type=int, default=None, metavar="N",
                        help="Step cap for run-until-halt (default: 1000000)")
    parser.add_argument("--load", type=str, default=None, metavar="FILE",
                        help="Load an .arm program at startup")
    parser.add_argument("--run", action="store_true",
                        help="Run the loaded program to HALT and exit")
    parser.add_argument("--assemble", nargs=2, metavar=("SRC", "OUT"),
                        help="Assemble SRC to OUT.arm and exit")
    parser.add_argument("--listing", "-l", action="store_true",
                        help="Print assembly listing (with --assemble)")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="-v for INFO, -vv for per-instruction DEBUG trace")
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level,
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # ---- Assemble-only mode -------------------------------------------
    if args.assemble:
        src_path, out_path = args.assemble
        try:
            n = assemble_file(src_path, out_path, listing=args.listing)
        except AsmError as e:
            print(f"Assembly error: {e}", file=sys.stderr)
            return 1
        except OSError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"Assembled {src_path} → {ensure_arm_ext(out_path)} ({n} words)")
        return 0

    try:
        sim = Simulator(mem_words=args.mem_words, max_steps=args.max_steps)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.load:
        try:
            path = sim.load(args.load)
        except (OSError, MemoryFault) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"Loaded {path}")

    shell = LegSimCLI(sim)
    if args.run:
        shell.onecmd("run")
        return 0

    shell.show()
    try:
        shell.cmdloop()
    except KeyboardInterrupt:
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
