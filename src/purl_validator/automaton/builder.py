"""Offline construction of a minimal automaton from sorted keys.

Keys are streamed in lexicographic order. The builder keeps only the path
of the most recent key unfinished; as soon as a new key diverges from it,
the nodes below the divergence point can never change again and are
compiled to bytes. Every compiled node is remembered by content, so an
identical node (same accept flag and transitions) is written once and
shared. With sorted input that yields the minimal automaton.

The output is format version 3, readable by ``FstSet`` and by the Rust
``fst`` crate.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from purl_validator.automaton.fst_set import VERSION, encode_key, masked_checksum
from purl_validator.automaton.node import (
    EMPTY_ADDRESS,
    NONE_ADDRESS,
    TRANS_INDEX_THRESHOLD,
    common_idx,
    pack_size,
)
from purl_validator.errors import DuplicateKeyError, OutOfOrderError

if TYPE_CHECKING:
    from collections.abc import Iterable

log = structlog.get_logger()


@dataclass
class _BuilderNode:
    is_final: bool = False
    # (input byte, compiled target address), ascending by input
    trans: list[tuple[int, int]] = field(default_factory=list)


@dataclass
class _UnfinishedNode:
    node: _BuilderNode
    # Input of the transition still being extended, if any.
    last: int | None = None


class SetBuilder:
    """Incrementally compiles keys into an encoded automaton."""

    def __init__(self, fst_type: int = 0) -> None:
        self._buf = bytearray()
        self._buf += VERSION.to_bytes(8, "little")
        self._buf += fst_type.to_bytes(8, "little")
        self._stack: list[_UnfinishedNode] = [_UnfinishedNode(_BuilderNode())]
        self._registry: dict[tuple[bool, tuple[tuple[int, int], ...]], int] = {}
        self._last_addr = NONE_ADDRESS
        self._last_key: bytes | None = None
        self._len = 0
        self._finished = False

    def __len__(self) -> int:
        return self._len

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def insert(self, key: str | bytes) -> None:
        """Add ``key``, which must sort strictly after the previous key."""
        if self._finished:
            raise RuntimeError("builder is already finished")
        key = encode_key(key)
        self._check_order(key)

        if not key:
            self._stack[0].node.is_final = True
            self._len += 1
            return

        prefix_len = self._common_prefix(key)
        self._compile_from(prefix_len)
        self._add_suffix(key[prefix_len:])
        self._len += 1

    def extend(self, keys: Iterable[str | bytes]) -> None:
        for key in keys:
            self.insert(key)

    def _check_order(self, key: bytes) -> None:
        last = self._last_key
        if last is not None:
            if key == last:
                raise DuplicateKeyError(key)
            if key < last:
                raise OutOfOrderError(last, key)
        self._last_key = key

    def _common_prefix(self, key: bytes) -> int:
        i = 0
        while i < len(key) and i < len(self._stack) and self._stack[i].last == key[i]:
            i += 1
        return i

    def _add_suffix(self, suffix: bytes) -> None:
        self._stack[-1].last = suffix[0]
        for b in suffix[1:]:
            self._stack.append(_UnfinishedNode(_BuilderNode(), last=b))
        self._stack.append(_UnfinishedNode(_BuilderNode(is_final=True)))

    def _compile_from(self, istate: int) -> None:
        """Freeze every unfinished node deeper than ``istate``."""
        addr = NONE_ADDRESS
        while istate + 1 < len(self._stack):
            unfinished = self._stack.pop()
            node = unfinished.node
            if addr != NONE_ADDRESS and unfinished.last is not None:
                node.trans.append((unfinished.last, addr))
            addr = self._compile(node)
        top = self._stack[-1]
        if top.last is not None:
            top.node.trans.append((top.last, addr))
            top.last = None

    # ------------------------------------------------------------------
    # Node compilation
    # ------------------------------------------------------------------

    def _compile(self, node: _BuilderNode) -> int:
        if node.is_final and not node.trans:
            return EMPTY_ADDRESS

        key = (node.is_final, tuple(node.trans))
        addr = self._registry.get(key)
        if addr is not None:
            return addr

        start = len(self._buf)
        if len(node.trans) != 1 or node.is_final:
            self._write_any(start, node)
        else:
            inp, target = node.trans[0]
            if target == self._last_addr:
                self._write_one_next(inp)
            else:
                self._write_one(start, inp, target)

        self._last_addr = len(self._buf) - 1
        self._registry[key] = self._last_addr
        return self._last_addr

    @staticmethod
    def _delta(start: int, target: int) -> int:
        return EMPTY_ADDRESS if target == EMPTY_ADDRESS else start - target

    def _write_one_next(self, inp: int) -> None:
        idx = common_idx(inp)
        if not idx:
            self._buf.append(inp)
        self._buf.append(0b11_000000 | idx)

    def _write_one(self, start: int, inp: int, target: int) -> None:
        delta = self._delta(start, target)
        tsize = pack_size(delta)
        self._buf += delta.to_bytes(tsize, "little")
        self._buf.append(tsize << 4)
        idx = common_idx(inp)
        if not idx:
            self._buf.append(inp)
        self._buf.append(0b10_000000 | idx)

    def _write_any(self, start: int, node: _BuilderNode) -> None:
        trans = node.trans
        ntrans = len(trans)
        tsize = max((pack_size(self._delta(start, t)) for _, t in trans), default=0)

        for _, target in reversed(trans):
            self._buf += self._delta(start, target).to_bytes(tsize, "little")
        for inp, _ in reversed(trans):
            self._buf.append(inp)
        if ntrans > TRANS_INDEX_THRESHOLD:
            index = bytearray(b"\xff" * 256)
            for i, (inp, _) in enumerate(trans):
                index[inp] = i
            self._buf += index
        self._buf.append(tsize << 4)

        state = 0b01_000000 if node.is_final else 0
        if 0 < ntrans <= 0b00_111111:
            state |= ntrans
        else:
            # 256 does not fit in a byte; 1 is free since it always fits
            # in the state byte.
            self._buf.append(1 if ntrans == 256 else ntrans)
        self._buf.append(state)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def finish(self) -> bytes:
        """Compile the remaining nodes and return the encoded index."""
        if self._finished:
            raise RuntimeError("builder is already finished")
        self._compile_from(0)
        root = self._stack.pop().node
        root_addr = self._compile(root)
        self._finished = True

        buf = self._buf
        buf += self._len.to_bytes(8, "little")
        buf += root_addr.to_bytes(8, "little")
        buf += masked_checksum(bytes(buf)).to_bytes(4, "little")
        return bytes(buf)


def build_set(keys: Iterable[str | bytes]) -> bytes:
    """Encode an arbitrary collection of keys (sorted and deduplicated here)."""
    builder = SetBuilder()
    builder.extend(sorted({encode_key(key) for key in keys}))
    return builder.finish()


def write_set(path: str | os.PathLike[str], keys: Iterable[str | bytes]) -> int:
    """Build an index from ``keys`` and write it to ``path``.

    The file is written next to its destination and renamed into place, so
    a reader never maps a half-written index. Returns the number of keys.
    """
    path = Path(path)
    builder = SetBuilder()
    builder.extend(sorted({encode_key(key) for key in keys}))
    data = builder.finish()

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    log.debug("index_built", path=str(path), keys=len(builder), size=len(data))
    return len(builder)
