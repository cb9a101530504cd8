"""
Command loop tests: dispatch through onecmd with captured stdout.
"""

import contextlib
import io
import os
import tempfile
import unittest
from unittest import mock

from cli import LegSimCLI, main, parse_hash_num
from system import Simulator


def make_cli(mem_words: int = 64) -> LegSimCLI:
    return LegSimCLI(Simulator(mem_words=mem_words, max_steps=1000))


def run_cmd(shell: LegSimCLI, line: str) -> str:
    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        shell.onecmd(line)
    return buf.getvalue()


class TestParseNumber(unittest.TestCase):
    def test_forms(self):
        self.assertEqual(parse_hash_num("#12"), 12)
        self.assertEqual(parse_hash_num("#0x1C"), 28)
        self.assertEqual(parse_hash_num("40"), 40)

    def test_bad(self):
        with self.assertRaises(ValueError):
            parse_hash_num("#twelve")


class TestCommands(unittest.TestCase):
    def test_instruction_goes_to_memory(self):
        shell = make_cli()
        out = run_cmd(shell, "ADDI X1, X0, #5")
        self.assertEqual(shell.sim.mem.load_word(0), 0x91001401)
        self.assertEqual(shell.sim.cpu.pc, 4)
        self.assertIn("PC = 4", out)

    def test_lowercase_instruction(self):
        shell = make_cli()
        run_cmd(shell, "b.eq #2")
        self.assertEqual(shell.sim.cpu.pc, 4)

    def test_pokes(self):
        shell = make_cli()
        run_cmd(shell, "X3=#7")
        run_cmd(shell, "R[#4]=#0x10")
        run_cmd(shell, "M[#8]=#0xFFFFFFFF")
        run_cmd(shell, "PC=#8")
        self.assertEqual(shell.sim.cpu.regs[3], 7)
        self.assertEqual(shell.sim.cpu.regs[4], 16)
        self.assertEqual(shell.sim.mem.load_word(8), 0xFFFFFFFF)
        self.assertEqual(shell.sim.cpu.pc, 8)

    def test_errors_are_reported(self):
        shell = make_cli()
        cases = {
            "FROB X1": "Error: Unknown/unsupported instruction",
            "X40=#1": "Error: Register index out of range",
            "M[#6]=#1": "Error: Unaligned address",
            "memory octal": "Error: Usage: memory hex|dec|code",
            "clear stuff": "Error: Usage: clear [registers|memory]",
            "ADDI X1, X0, #5000": "Error: I-format immediate",
        }
        for line, msg in cases.items():
            with self.subTest(line=line):
                self.assertIn(msg, run_cmd(shell, line))

    def test_run_until_halt(self):
        shell = make_cli()
        for line in ("ADDI X1, X0, #2", "ADDI X2, X1, #3", "HALT", "PC=#0"):
            run_cmd(shell, line)
        out = run_cmd(shell, "run")
        self.assertIn("HALT", out)
        self.assertEqual(shell.sim.cpu.regs[2], 5)

    def test_run_hits_safety_cap(self):
        shell = make_cli()
        run_cmd(shell, "B #0")
        run_cmd(shell, "PC=#0")
        out = run_cmd(shell, "run fast")
        self.assertIn("Stopped after 1000 steps", out)

    def test_run_slow_prompts(self):
        shell = make_cli()
        run_cmd(shell, "NOP")
        run_cmd(shell, "NOP")
        run_cmd(shell, "PC=#0")
        with mock.patch("builtins.input", return_value="") as fake:
            run_cmd(shell, "run slow 2")
        self.assertEqual(fake.call_count, 2)
        self.assertEqual(shell.sim.cpu.pc, 8)

    def test_numeric_run_is_slow(self):
        shell = make_cli()
        run_cmd(shell, "HALT")
        run_cmd(shell, "PC=#0")
        with mock.patch("builtins.input", return_value="") as fake:
            out = run_cmd(shell, "run 3")
        self.assertIn("HALT", out)
        fake.assert_not_called()

    def test_step_and_breakpoints(self):
        shell = make_cli()
        for line in ("NOP", "NOP", "NOP", "HALT", "PC=#0"):
            run_cmd(shell, line)
        self.assertIn("Breakpoint set at 8", run_cmd(shell, "break #8"))
        out = run_cmd(shell, "continue")
        self.assertIn("Breakpoint hit at 8", out)
        out = run_cmd(shell, "break list")
        self.assertIn("8  enabled", out)
        run_cmd(shell, "break toggle #8")
        self.assertIn("disabled", run_cmd(shell, "break list"))
        run_cmd(shell, "break del #8")
        self.assertIn("No breakpoints set.", run_cmd(shell, "break list"))
        self.assertIn("HALT", run_cmd(shell, "c"))

    def test_step_count(self):
        shell = make_cli()
        for line in ("NOP", "NOP", "NOP", "PC=#0"):
            run_cmd(shell, line)
        run_cmd(shell, "step 2")
        self.assertEqual(shell.sim.cpu.pc, 8)
        run_cmd(shell, "step")
        self.assertEqual(shell.sim.cpu.pc, 12)

    def test_disasm(self):
        shell = make_cli()
        run_cmd(shell, "ADDI X1, X0, #5")
        run_cmd(shell, "HALT")
        out = run_cmd(shell, "disasm #0 2")
        self.assertIn("0000: 91001401  ADDI X1, X0, #5", out)
        self.assertIn("0004: FFFFFFFF  HALT", out)

    def test_memory_mode_and_title(self):
        shell = make_cli()
        run_cmd(shell, "title My Program")
        out = run_cmd(shell, "memory hex")
        self.assertIn("My Program", out)
        self.assertIn("M[000] = 0x00000000", out)

    def test_clear(self):
        shell = make_cli()
        run_cmd(shell, "X1=#5")
        run_cmd(shell, "clear registers")
        self.assertEqual(shell.sim.cpu.regs[1], 0)

    def test_help_and_quit(self):
        shell = make_cli()
        self.assertIn("run [fast|slow]", run_cmd(shell, "help"))
        buf = io.StringIO()
        with contextlib.redirect_stdout(buf):
            self.assertTrue(shell.onecmd("quit"))
            self.assertTrue(shell.onecmd("exit"))

    def test_save_load(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "prog")
            shell = make_cli()
            run_cmd(shell, "ADDI X1, X0, #9")
            run_cmd(shell, "HALT")
            self.assertIn("Saved to", run_cmd(shell, f"save {path}"))
            other = make_cli()
            self.assertIn("Loaded", run_cmd(other, f"load {path}"))
            run_cmd(other, "run")
            self.assertEqual(other.sim.cpu.regs[1], 9)

    def test_load_missing_reports_error(self):
        shell = make_cli()
        out = run_cmd(shell, "load /nonexistent/dir/prog")
        self.assertIn("Error:", out)


class TestMain(unittest.TestCase):
    def test_assemble_mode(self):
        with tempfile.TemporaryDirectory() as tmp:
            src = os.path.join(tmp, "prog.s")
            with open(src, "w") as f:
                f.write("ADDI X1, X0, #5 ; five\nADDI X2, X1, #10\nHALT\n")
            out_path = os.path.join(tmp, "prog")
            with contextlib.redirect_stdout(io.StringIO()):
                rc = main(["--assemble", src, out_path])
            self.assertEqual(rc, 0)
            with open(out_path + ".arm") as f:
                lines = f.read().splitlines()
            self.assertEqual(lines[1:], ["0x91001401", "0x91002822", "0xFFFFFFFF"])

    def test_assemble_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            src = os.path.join(tmp, "bad.s")
            with open(src, "w") as f:
                f.write("NOP\nFROB\n")
            err = io.StringIO()
            with contextlib.redirect_stderr(err):
                rc = main(["--assemble", src, os.path.join(tmp, "bad")])
            self.assertEqual(rc, 1)
            self.assertIn("Line 2", err.getvalue())

    def test_load_and_run(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "p.arm")
            with open(path, "w") as f:
                f.write("0x91001401\n0xFFFFFFFF\n")
            buf = io.StringIO()
            with contextlib.redirect_stdout(buf):
                rc = main(["--load", path, "--run", "--mem-words", "16"])
            self.assertEqual(rc, 0)
            self.assertIn("HALT", buf.getvalue())


if __name__ == "__main__":
    unittest.main()
