"""
Word memory tests: addressing faults and hex program text.
"""

import unittest

from memory import (
    Memory, MemoryFault, AlignmentError, OutOfBounds, CapacityError,
    parse_hex_word, DEFAULT_WORDS,
)


class TestAccess(unittest.TestCase):
    def test_fresh_memory_is_zero(self):
        mem = Memory(16)
        self.assertEqual(mem.size_words, 16)
        self.assertEqual(mem.size_bytes, 64)
        for i in range(16):
            self.assertEqual(mem.load_word(i * 4), 0)

    def test_default_size(self):
        self.assertEqual(Memory().size_words, DEFAULT_WORDS)

    def test_invalid_size(self):
        with self.assertRaises(ValueError):
            Memory(0)

    def test_store_load(self):
        mem = Memory(8)
        mem.store_word(12, 0xDEADBEEF)
        self.assertEqual(mem.load_word(12), 0xDEADBEEF)
        self.assertEqual(mem.get_word_index(3), 0xDEADBEEF)

    def test_store_truncates_to_32_bits(self):
        mem = Memory(4)
        mem.store_word(0, 0x1_2345_6789)
        self.assertEqual(mem.load_word(0), 0x2345_6789)

    def test_misaligned(self):
        mem = Memory(8)
        for addr in (1, 2, 3, 5, 30):
            with self.subTest(addr=addr):
                with self.assertRaises(AlignmentError):
                    mem.load_word(addr)
                with self.assertRaises(AlignmentError):
                    mem.store_word(addr, 1)

    def test_out_of_bounds(self):
        mem = Memory(8)
        with self.assertRaises(OutOfBounds):
            mem.load_word(32)
        with self.assertRaises(OutOfBounds):
            mem.store_word(1 << 20, 1)
        # Negative addresses wrap to the top of the 64-bit space
        with self.assertRaises(OutOfBounds):
            mem.load_word(-4)

    def test_index_access_bounds(self):
        mem = Memory(4)
        mem.set_word_index(3, 7)
        self.assertEqual(mem.get_word_index(3), 7)
        with self.assertRaises(OutOfBounds):
            mem.get_word_index(4)
        with self.assertRaises(OutOfBounds):
            mem.set_word_index(-1, 0)

    def test_faults_share_base(self):
        self.assertTrue(issubclass(AlignmentError, MemoryFault))
        self.assertTrue(issubclass(OutOfBounds, MemoryFault))
        self.assertTrue(issubclass(CapacityError, MemoryFault))

    def test_clear(self):
        mem = Memory(4)
        mem.store_word(4, 99)
        mem.clear()
        self.assertEqual(mem.words, [0, 0, 0, 0])


class TestProgramText(unittest.TestCase):
    def test_parse_hex_word(self):
        self.assertEqual(parse_hex_word("0x91001401"), 0x91001401)
        self.assertEqual(parse_hex_word("91001401"), 0x91001401)
        self.assertEqual(parse_hex_word("  0XffffFFFF  ; halt"), 0xFFFFFFFF)
        self.assertEqual(parse_hex_word("1F # comment"), 0x1F)

    def test_parse_hex_word_skips(self):
        for line in ("", "   ", "; saved by simulator", "# note",
                     "0x", "hello", "0x12G4"):
            with self.subTest(line=line):
                self.assertIsNone(parse_hex_word(line))

    def test_load_program(self):
        mem = Memory(8)
        mem.store_word(28, 0x55)
        mem.load_program(["; header", "0x1", "", "0x2", "bogus", "3"])
        self.assertEqual(mem.words[:4], [1, 2, 3, 0])
        self.assertEqual(mem.load_word(28), 0)   # cleared first

    def test_capacity_error_leaves_memory_untouched(self):
        mem = Memory(64)
        mem.store_word(0, 0xAB)
        lines = [f"0x{i:08X}" for i in range(70)]
        with self.assertRaises(CapacityError) as cm:
            mem.load_program(lines)
        self.assertEqual(cm.exception.needed, 70)
        self.assertEqual(cm.exception.capacity, 64)
        self.assertEqual(mem.load_word(0), 0xAB)

    def test_interleaved_lines_fit_larger_memory(self):
        words = [f"0x{i + 1:08X}" for i in range(70)]
        lines = []
        for i, w in enumerate(words):
            lines.append(w)
            if i % 3 == 0:
                lines.append("")
            if i % 5 == 0:
                lines.append("; comment only")
        mem = Memory(80)
        mem.load_program(lines)
        self.assertEqual(mem.words[:70], list(range(1, 71)))
        self.assertEqual(mem.words[70:], [0] * 10)

    def test_dump_program(self):
        mem = Memory(4)
        mem.store_word(0, 0x91001401)
        mem.store_word(4, 0xFFFFFFFF)
        self.assertEqual(mem.dump_program(),
                         ["0x91001401", "0xFFFFFFFF", "0x00000000", "0x00000000"])
        self.assertEqual(mem.dump_program(2), ["0x91001401", "0xFFFFFFFF"])
        self.assertEqual(len(mem.dump_program(100)), 4)

    def test_dump_then_load(self):
        src = Memory(6)
        for i in range(6):
            src.set_word_index(i, 0x1000 + i)
        dst = Memory(6)
        dst.load_program(src.dump_program())
        self.assertEqual(dst.words, src.words)


if __name__ == "__main__":
    unittest.main()
