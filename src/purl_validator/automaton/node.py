"""Decoding of compiled automaton nodes.

Nodes are laid out the way the Rust ``fst`` crate writes them: a node's
address is the offset of its *last* byte (the state byte), and the rest of
the node is read backwards from there. Nothing is deserialized up front; a
``Node`` is a small view that records where its pieces live in the buffer.

State byte, top two bits:

    0b11  one transition, target is the node compiled just before this one
    0b10  one transition, explicit (delta encoded) target address
    0b0F  any number of transitions, F is the accept flag

Transition target addresses are stored as deltas from the node's first
byte. A delta of zero points at the empty final node, which is never
written out and lives at the reserved address ``0``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from purl_validator.errors import IndexFormatError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from mmap import mmap

    Buffer = bytes | bytearray | mmap

EMPTY_ADDRESS = 0
NONE_ADDRESS = 1

# Nodes with more transitions than this carry a 256-byte input -> transition
# lookup table (format version 2 and later).
TRANS_INDEX_THRESHOLD = 32

# version: u64, fst_type: u64
HEADER_SIZE = 16

# len: u64, root address: u64, checksum: u32 (format version 3 and later).
FOOTER_SIZE = 20

# Bytes that can be stored in the low six bits of a state byte instead of a
# separate input byte, most frequent first. Index 0 in the state byte means
# "not a common input", so only the first 63 entries are ever used.
COMMON_INPUTS_INV = (
    b"te/oasripcnw"
    b".hlm-du012g="
    b":bf3y5&_4v96"
    b"78k%?xCDASFI"
    b"BEjPTzRNM+LO"
    b"qHGW"
)

_COMMON_IDX = {b: i + 1 for i, b in enumerate(COMMON_INPUTS_INV) if i + 1 <= 0b111111}

_SINGLE_BYTES = [bytes((b,)) for b in range(256)]

KIND_EMPTY = "empty"
KIND_ONE_NEXT = "one_next"
KIND_ONE = "one"
KIND_ANY = "any"


def common_idx(inp: int) -> int:
    """Return the state-byte index for ``inp``, or 0 if it must be stored."""
    return _COMMON_IDX.get(inp, 0)


def pack_size(n: int) -> int:
    """Number of little-endian bytes needed to store ``n`` (at least one)."""
    return max(1, (n.bit_length() + 7) // 8)


def unpack_uint(data: Buffer, at: int, nbytes: int) -> int:
    if nbytes == 0:
        return 0
    return int.from_bytes(data[at : at + nbytes], "little")


class Node:
    """A decoded view over one compiled node."""

    __slots__ = (
        "_data",
        "_index_size",
        "_input",
        "_osize",
        "_sizes_pos",
        "_target",
        "_tsize",
        "end",
        "is_final",
        "kind",
        "ntrans",
        "start",
        "version",
    )

    def __init__(self, data: Buffer, version: int) -> None:
        self._data = data
        self.version = version
        self.kind = KIND_EMPTY
        self.start = EMPTY_ADDRESS
        self.end = EMPTY_ADDRESS
        self.is_final = True
        self.ntrans = 0
        self._input = 0
        self._target = EMPTY_ADDRESS
        self._tsize = 0
        self._osize = 0
        self._sizes_pos = 0
        self._index_size = 0

    @classmethod
    def decode(cls, data: Buffer, addr: int, version: int) -> Node:
        """Decode the node whose state byte sits at ``addr``.

        Raises ``IndexFormatError`` if the node would extend outside the
        node region of the buffer, which lies between the header and the
        footer.
        """
        node = cls(data, version)
        if addr == EMPTY_ADDRESS:
            return node
        footer = FOOTER_SIZE if version >= 3 else FOOTER_SIZE - 4
        if addr < HEADER_SIZE or addr >= len(data) - footer:
            raise IndexFormatError(f"node address {addr} is outside the node region")

        state = data[addr]
        node.start = addr
        kind = state >> 6
        if kind == 0b11:
            node._decode_one_next(state)
        elif kind == 0b10:
            node._decode_one(state)
        else:
            node._decode_any(state)

        if node.end < HEADER_SIZE:
            raise IndexFormatError(f"node at address {addr} overlaps the index header")
        return node

    def _decode_one_next(self, state: int) -> None:
        self.kind = KIND_ONE_NEXT
        self.is_final = False
        self.ntrans = 1
        idx = state & 0b00_111111
        if idx:
            self._input = COMMON_INPUTS_INV[idx - 1]
            self.end = self.start
        else:
            self._input = self._data[self.start - 1]
            self.end = self.start - 1
        self._target = self.end - 1

    def _decode_one(self, state: int) -> None:
        self.kind = KIND_ONE
        self.is_final = False
        self.ntrans = 1
        idx = state & 0b00_111111
        if idx:
            self._input = COMMON_INPUTS_INV[idx - 1]
            input_len = 0
        else:
            self._input = self._data[self.start - 1]
            input_len = 1

        sizes_pos = self.start - input_len - 1
        self._read_sizes(sizes_pos)
        self.end = sizes_pos - self._tsize - self._osize
        delta = unpack_uint(self._data, sizes_pos - self._tsize, self._tsize)
        self._target = self._resolve_delta(delta)

    def _decode_any(self, state: int) -> None:
        self.kind = KIND_ANY
        self.is_final = bool(state & 0b01_000000)
        ntrans = state & 0b00_111111
        ntrans_len = 0
        if ntrans == 0:
            ntrans_len = 1
            ntrans = self._data[self.start - 1]
            # A count of 1 is always stored in the state byte, so a stored
            # 1 stands for 256.
            if ntrans == 1:
                ntrans = 256
        self.ntrans = ntrans

        self._sizes_pos = self.start - ntrans_len - 1
        self._read_sizes(self._sizes_pos)
        if self.version >= 2 and ntrans > TRANS_INDEX_THRESHOLD:
            self._index_size = 256

        final_osize = self._osize if self.is_final else 0
        self.end = (
            self._sizes_pos
            - self._index_size
            - ntrans
            - ntrans * self._tsize
            - ntrans * self._osize
            - final_osize
        )

    def _read_sizes(self, pos: int) -> None:
        sizes = self._data[pos]
        self._tsize = sizes >> 4
        self._osize = sizes & 0b0000_1111

    def _resolve_delta(self, delta: int) -> int:
        if delta == EMPTY_ADDRESS:
            return EMPTY_ADDRESS
        return self.end - delta

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def find_input(self, inp: int) -> int | None:
        """Return the index of the transition on byte ``inp``, if any."""
        if self.kind == KIND_ANY:
            if self._index_size:
                i = self._data[self._sizes_pos - 256 + inp]
                return i if i < self.ntrans else None
            start = self._sizes_pos - self.ntrans
            pos = self._data.find(_SINGLE_BYTES[inp], start, self._sizes_pos)
            if pos < 0:
                return None
            # Inputs are stored in reverse transition order.
            return self.ntrans - (pos - start) - 1
        if self.kind == KIND_EMPTY:
            return None
        return 0 if inp == self._input else None

    def input(self, i: int) -> int:
        """Input byte of transition ``i``."""
        if self.kind == KIND_ANY:
            return self._data[self._sizes_pos - self._index_size - i - 1]
        return self._input

    def transition_addr(self, i: int) -> int:
        """Address of the node transition ``i`` leads to."""
        if self.kind != KIND_ANY:
            return self._target
        tsize = self._tsize
        at = self._sizes_pos - self._index_size - self.ntrans - i * tsize - tsize
        return self._resolve_delta(unpack_uint(self._data, at, tsize))

    def transitions(self) -> Iterator[tuple[int, int]]:
        """Yield ``(input, target_address)`` pairs in stored order."""
        for i in range(self.ntrans):
            yield self.input(i), self.transition_addr(i)

    def __repr__(self) -> str:
        return (
            f"Node(kind={self.kind!r}, start={self.start}, end={self.end}, "
            f"final={self.is_final}, ntrans={self.ntrans})"
        )
