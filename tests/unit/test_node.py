"""Unit tests for purl_validator.automaton.node."""

from __future__ import annotations

import pytest

from purl_validator.automaton import FstSet, build_set
from purl_validator.automaton.node import (
    COMMON_INPUTS_INV,
    EMPTY_ADDRESS,
    KIND_ANY,
    KIND_EMPTY,
    KIND_ONE,
    KIND_ONE_NEXT,
    Node,
    common_idx,
    pack_size,
)
from purl_validator.errors import IndexFormatError

_HEADER = (3).to_bytes(8, "little") + (0).to_bytes(8, "little")

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestPackSize:
    def test_zero_needs_one_byte(self) -> None:
        assert pack_size(0) == 1

    def test_boundaries(self) -> None:
        assert pack_size(255) == 1
        assert pack_size(256) == 2
        assert pack_size(65535) == 2
        assert pack_size(65536) == 3
        assert pack_size(2**63) == 8


class TestCommonInputs:
    def test_table_has_64_distinct_bytes(self) -> None:
        assert len(COMMON_INPUTS_INV) == 64
        assert len(set(COMMON_INPUTS_INV)) == 64

    def test_most_common_input(self) -> None:
        assert common_idx(ord("t")) == 1

    def test_only_63_indexes_fit_in_state_byte(self) -> None:
        assert common_idx(ord("H")) == 62
        assert common_idx(ord("G")) == 63
        assert common_idx(ord("W")) == 0

    def test_uncommon_byte(self) -> None:
        assert common_idx(0x01) == 0
        assert common_idx(ord("Z")) == 0


# ---------------------------------------------------------------------------
# Encoded layouts
# ---------------------------------------------------------------------------


class TestNodeLayouts:
    def test_single_transition_to_empty_final(self) -> None:
        data = build_set(["a"])
        # delta 0 (empty node), pack sizes, state with common input "a"
        assert data[:16] == _HEADER
        assert data[16:19] == b"\x00\x10\x85"
        assert int.from_bytes(data[19:27], "little") == 1
        assert int.from_bytes(data[27:35], "little") == 18
        assert len(data) == 39

        root = FstSet(data).root
        assert root.kind == KIND_ONE
        assert root.is_final is False
        assert root.find_input(ord("a")) == 0
        assert root.transition_addr(0) == EMPTY_ADDRESS

    def test_uncommon_input_is_stored_before_state(self) -> None:
        data = build_set([b"\x01"])
        assert data[16:20] == b"\x00\x10\x01\x80"
        root = FstSet(data).root
        assert root.input(0) == 0x01
        assert root.find_input(0x01) == 0
        assert root.find_input(0x02) is None

    def test_transition_to_previous_node_uses_next_encoding(self) -> None:
        data = build_set(["ab"])
        assert data[16:20] == b"\x00\x10\x9a\xc5"
        fst = FstSet(data)
        assert fst.root_addr == 19
        assert fst.root.kind == KIND_ONE_NEXT
        assert fst.root.transition_addr(0) == 18

        child = fst.node(18)
        assert child.kind == KIND_ONE
        assert child.input(0) == ord("b")

    def test_final_node_with_transition(self) -> None:
        data = build_set(["a", "ab"])
        # delta, input "b", pack sizes, final state with one transition
        assert data[16:20] == b"\x00b\x10\x41"
        fst = FstSet(data)
        child = fst.node(fst.root.transition_addr(0))
        assert child.kind == KIND_ANY
        assert child.is_final is True
        assert child.ntrans == 1
        assert child.find_input(ord("b")) == 0

    def test_empty_address_decodes_to_empty_final(self) -> None:
        node = Node.decode(build_set(["a"]), EMPTY_ADDRESS, 3)
        assert node.kind == KIND_EMPTY
        assert node.is_final is True
        assert node.ntrans == 0
        assert node.find_input(ord("a")) is None


class TestAnyTransitions:
    def test_small_fanout_without_index(self) -> None:
        keys = [chr(c) for c in range(ord("a"), ord("a") + 10)]
        root = FstSet(build_set(keys)).root
        assert root.kind == KIND_ANY
        assert root.ntrans == 10
        assert [inp for inp, _ in root.transitions()] == [ord(k) for k in keys]
        assert root.find_input(ord("c")) == 2
        assert root.find_input(ord("z")) is None

    def test_large_fanout_uses_input_index(self) -> None:
        keys = [chr(c) for c in range(ord("!"), ord("!") + 40)]
        fst = FstSet(build_set(keys))
        root = fst.root
        assert root.ntrans == 40
        for i, key in enumerate(keys):
            assert root.find_input(ord(key)) == i
        assert root.find_input(0x00) is None
        assert root.find_input(0xFF) is None

    def test_full_fanout_of_256(self) -> None:
        keys = [bytes((b,)) for b in range(256)]
        fst = FstSet(build_set(keys))
        assert fst.root.ntrans == 256
        assert all(fst.contains(key) for key in keys)
        assert not fst.contains(b"\x00\x00")

    def test_fanout_above_63_stores_count_separately(self) -> None:
        keys = [bytes((b,)) for b in range(100)]
        fst = FstSet(build_set(keys))
        assert fst.root.ntrans == 100
        assert fst.contains(b"\x63")
        assert not fst.contains(b"\x64")


class TestMalformedNodes:
    def test_address_past_end(self) -> None:
        data = build_set(["a"])
        with pytest.raises(IndexFormatError):
            Node.decode(data, len(data) + 10, 3)

    def test_node_reaching_into_header(self) -> None:
        # A one-transition node whose explicit input byte would sit at
        # offset 15, inside the header.
        data = _HEADER + b"\x80" + bytes(20)
        with pytest.raises(IndexFormatError, match="header"):
            Node.decode(data, 16, 3)

    def test_negative_address(self) -> None:
        data = build_set(["a"])
        for addr in (-1, -len(data), -len(data) - 10):
            with pytest.raises(IndexFormatError, match="node region"):
                Node.decode(data, addr, 3)

    def test_address_inside_footer(self) -> None:
        data = build_set(["a"])
        with pytest.raises(IndexFormatError, match="node region"):
            Node.decode(data, len(data) - 20, 3)
        # Root state byte is the last byte of the node region.
        assert Node.decode(data, len(data) - 21, 3).kind == KIND_ONE

    def test_address_inside_version_2_footer(self) -> None:
        data = (2).to_bytes(8, "little") + build_set(["a"])[8:-4]
        with pytest.raises(IndexFormatError, match="node region"):
            Node.decode(data, len(data) - 16, 2)
        assert Node.decode(data, len(data) - 17, 2).kind == KIND_ONE

    @pytest.mark.parametrize("delta", [0x15, 0xFF])
    def test_corrupt_delta_is_a_format_error(self, delta: int) -> None:
        # Root of ["a"] is one transition with its delta at offset 16. Both
        # deltas point before the start of the buffer: 0x15 lands on the
        # footer when wrapped, 0xFF past the start of the buffer.
        data = bytearray(build_set(["a"]))
        data[16] = delta
        fst = FstSet(bytes(data))
        assert fst.root.transition_addr(0) < 0
        with pytest.raises(IndexFormatError, match="node region"):
            fst.contains("a")
        with pytest.raises(IndexFormatError):
            list(fst)

    def test_any_single_byte_corruption_fails_cleanly(self) -> None:
        keys = ["pkg:a/bc", "pkg:a/bd", "pkg:zz"]
        original = build_set(keys)
        for pos in range(16, len(original) - 20):
            for flip in (0x01, 0x80, 0xFF):
                data = bytearray(original)
                data[pos] ^= flip
                try:
                    fst = FstSet(bytes(data))
                except IndexFormatError:
                    continue
                for key in [*keys, "pkg:a/be", "pkg:", ""]:
                    try:
                        assert isinstance(fst.contains(key), bool)
                    except IndexFormatError:
                        pass
                try:
                    list(fst)
                except IndexFormatError:
                    pass
