"""
LEGv8 Word Memory
==================
A fixed-capacity array of 32-bit words, addressed by byte address.
Every access must be 4-aligned and land inside the array.

Programs move in and out as line-oriented hex text, one word per line:

    ; saved by simulator
    0x91001401
    0x91002822
    0xFFFFFFFF
"""

from __future__ import annotations
import string
from typing import Iterable, Optional

from encoding import MASK32, u64

DEFAULT_WORDS = 64   # 256 bytes


class MemoryFault(Exception):
    """Base for memory access errors."""
    pass

class AlignmentError(MemoryFault):
    def __init__(self, addr: int):
        self.addr = addr
        super().__init__(f"Unaligned address {addr:#x} (must be multiple of 4)")

class OutOfBounds(MemoryFault):
    def __init__(self, addr: int, size_bytes: int):
        self.addr = addr
        super().__init__(f"Address {addr:#x} outside memory (0..{size_bytes - 4:#x})")

class CapacityError(MemoryFault):
    def __init__(self, needed: int, capacity: int):
        self.needed = needed
        self.capacity = capacity
        super().__init__(f"Program too large for memory: {needed} words, "
                         f"capacity {capacity}")


_HEX = set(string.hexdigits)


def parse_hex_word(line: str) -> Optional[int]:
    """Parse one program line.  Returns None for blank/comment/garbage."""
    for marker in (";", "#"):
        pos = line.find(marker)
        if pos != -1:
            line = line[:pos]
    t = line.strip()
    if t[:2] in ("0x", "0X"):
        t = t[2:]
    if not t or not all(c in _HEX for c in t):
        return None
    return int(t, 16) & MASK32


class Memory:
    """Word-addressed memory with byte-address accessors."""

    def __init__(self, n_words: int = DEFAULT_WORDS):
        if n_words <= 0:
            raise ValueError(f"Memory needs at least one word, got {n_words}")
        self.words: list[int] = [0] * n_words

    @property
    def size_words(self) -> int:
        return len(self.words)

    @property
    def size_bytes(self) -> int:
        return len(self.words) * 4

    def clear(self):
        self.words = [0] * len(self.words)

    # -- Addressing --

    def addr_to_index(self, addr: int) -> int:
        addr = u64(addr)
        if addr % 4:
            raise AlignmentError(addr)
        idx = addr // 4
        if idx >= len(self.words):
            raise OutOfBounds(addr, self.size_bytes)
        return idx

    # -- Word access --

    def load_word(self, addr: int) -> int:
        return self.words[self.addr_to_index(addr)]

    def store_word(self, addr: int, value: int):
        self.words[self.addr_to_index(addr)] = value & MASK32

    def get_word_index(self, i: int) -> int:
        if not 0 <= i < len(self.words):
            raise OutOfBounds(i * 4, self.size_bytes)
        return self.words[i]

    def set_word_index(self, i: int, value: int):
        if not 0 <= i < len(self.words):
            raise OutOfBounds(i * 4, self.size_bytes)
        self.words[i] = value & MASK32

    # -- Program text --

    def load_program(self, lines: Iterable[str]):
        """Replace memory contents with the hex words found in *lines*.

        Blank, comment-only and unparseable lines are skipped.  Raises
        CapacityError, leaving memory untouched, if there are more words
        than slots.
        """
        program = [w for w in (parse_hex_word(ln) for ln in lines) if w is not None]
        if len(program) > len(self.words):
            raise CapacityError(len(program), len(self.words))
        self.clear()
        self.words[:len(program)] = program

    def dump_program(self, max_words: Optional[int] = None) -> list[str]:
        """One ``0xHHHHHHHH`` line per word (all words if *max_words* is falsy)."""
        n = len(self.words) if not max_words else min(max_words, len(self.words))
        return [f"0x{w:08X}" for w in self.words[:n]]
