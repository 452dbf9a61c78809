from __future__ import annotations

from purl_validator.automaton.builder import SetBuilder, build_set, write_set
from purl_validator.automaton.fst_set import VERSION, FstSet, encode_key, masked_checksum
from purl_validator.automaton.node import EMPTY_ADDRESS, Node

__all__ = [
    # reading
    "FstSet",
    "Node",
    "EMPTY_ADDRESS",
    "VERSION",
    "encode_key",
    "masked_checksum",
    # building
    "SetBuilder",
    "build_set",
    "write_set",
]
