"""Read-only set of byte strings backed by an encoded automaton.

``FstSet`` interprets the buffer in place: only the header and footer are
read at construction time, and a membership test touches just the nodes on
the path of the key. The buffer can be ``bytes`` or a read-only ``mmap``.

Layout (all integers little-endian)::

    version: u64 | fst_type: u64 | nodes ... | len: u64 | root_addr: u64 | checksum: u32

The checksum trailer only exists from format version 3 on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import crc32c

from purl_validator.automaton.node import EMPTY_ADDRESS, HEADER_SIZE, Node
from purl_validator.errors import IndexChecksumError, IndexFormatError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from purl_validator.automaton.node import Buffer

VERSION = 3
# First format version with a checksum trailer.
CHECKSUM_VERSION = 3


def masked_checksum(data: bytes | memoryview) -> int:
    """CRC-32C of ``data``, rotated and offset the way the format stores it."""
    crc = crc32c.crc32c(data)
    rotated = ((crc >> 15) | (crc << 17)) & 0xFFFFFFFF
    return (rotated + 0xA282EAD8) & 0xFFFFFFFF


def encode_key(key: str | bytes) -> bytes:
    """UTF-8 encode ``key``; lone surrogates pass through instead of failing."""
    if isinstance(key, str):
        return key.encode("utf-8", "surrogatepass")
    return bytes(key)


class FstSet:
    """A lexicographically ordered set of byte strings."""

    def __init__(self, data: Buffer, *, verify_checksum: bool = False) -> None:
        size = len(data)
        if size < 32:
            raise IndexFormatError(f"index is too small to be valid ({size} bytes)")

        version = int.from_bytes(data[0:8], "little")
        if version == 0 or version > VERSION:
            raise IndexFormatError(
                f"unsupported index format version {version} (expected 1..{VERSION})"
            )
        fst_type = int.from_bytes(data[8:16], "little")

        if version >= CHECKSUM_VERSION:
            if size < 36:
                raise IndexFormatError(f"index is too small to be valid ({size} bytes)")
            end = size - 4
            checksum: int | None = int.from_bytes(data[end:size], "little")
            empty_total, addr_offset = 36, 21
        else:
            end = size
            checksum = None
            empty_total, addr_offset = 32, 17

        root_addr = int.from_bytes(data[end - 8 : end], "little")
        length = int.from_bytes(data[end - 16 : end - 8], "little")

        # The root is the last node written, so its state byte sits right in
        # front of the footer. An empty final root is never written at all.
        if root_addr == EMPTY_ADDRESS:
            if size != empty_total:
                raise IndexFormatError(
                    f"index with an empty root must be {empty_total} bytes, got {size}"
                )
        elif root_addr + addr_offset != size:
            raise IndexFormatError(
                f"root address {root_addr} does not match index size {size}"
            )

        self._data = data
        self._size = size
        self._version = version
        self._fst_type = fst_type
        self._checksum = checksum
        self._root_addr = root_addr
        self._len = length

        if verify_checksum:
            self.verify()
        self._root = Node.decode(data, root_addr, version)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        return self._version

    @property
    def fst_type(self) -> int:
        return self._fst_type

    @property
    def root_addr(self) -> int:
        return self._root_addr

    @property
    def checksum(self) -> int | None:
        return self._checksum

    @property
    def has_checksum(self) -> bool:
        return self._checksum is not None

    @property
    def size(self) -> int:
        return self._size

    @property
    def root(self) -> Node:
        return self._root

    def verify(self) -> None:
        """Recompute the checksum over the whole index and compare.

        Raises ``IndexFormatError`` when the index predates checksums and
        ``IndexChecksumError`` when the stored value does not match.
        """
        if self._checksum is None:
            raise IndexFormatError(
                f"index format version {self._version} carries no checksum"
            )
        with memoryview(self._data) as view:
            got = masked_checksum(view[: self._size - 4])
        if got != self._checksum:
            raise IndexChecksumError(self._checksum, got)

    def node(self, addr: int) -> Node:
        return Node.decode(self._data, addr, self._version)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def contains(self, key: str | bytes) -> bool:
        """Walk the automaton along ``key``; stop at the first missing byte."""
        node = self._root
        for b in encode_key(key):
            i = node.find_input(b)
            if i is None:
                return False
            node = self.node(node.transition_addr(i))
        return node.is_final

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (str, bytes)):
            return False
        return self.contains(key)

    def __len__(self) -> int:
        return self._len

    def __iter__(self) -> Iterator[bytes]:
        """Yield every key in lexicographic order.

        Depth-first with an explicit stack, so deep keys cost no recursion.
        """
        root = self._root
        if root.is_final:
            yield b""
        stack: list[tuple[Node, int, bytes]] = [(root, 0, b"")]
        while stack:
            node, i, prefix = stack.pop()
            if i >= node.ntrans:
                continue
            stack.append((node, i + 1, prefix))
            key = prefix + bytes((node.input(i),))
            child = self.node(node.transition_addr(i))
            if child.is_final:
                yield key
            stack.append((child, 0, key))

    def keys(self) -> Iterator[str]:
        """Like iterating, but decoded back to ``str``."""
        for key in self:
            yield key.decode("utf-8", "surrogatepass")

    def __repr__(self) -> str:
        return f"FstSet(version={self._version}, len={self._len}, size={self._size})"
