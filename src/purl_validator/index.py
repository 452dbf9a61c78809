"""Index loading and the process-wide index handle.

The index file is mapped read-only and interpreted in place, so startup cost
and resident memory follow the pages queries actually touch rather than the
size of the index.

Any failure while opening, mapping or validating the file raises an
``IndexLoadError`` subclass. There is no degraded mode: a partially loaded
or corrupt index could answer membership queries wrongly.

Precondition: the index file must not be modified, truncated or removed
while a process has it mapped. This is not checked at runtime.
"""

from __future__ import annotations

import mmap
import os
import threading
from pathlib import Path

import structlog

from purl_validator.automaton.fst_set import CHECKSUM_VERSION, FstSet
from purl_validator.errors import (
    IndexFormatError,
    IndexLoadError,
    IndexNotFoundError,
    IndexUnreadableError,
)
from purl_validator.models.index import IndexInfo

log = structlog.get_logger()

# Built by the offline pipeline (``purl-validator build``) and shipped with
# the installed package.
DEFAULT_INDEX_PATH = Path(__file__).parent / "purls.fst"


class PurlIndex:
    """A loaded, validated index. Safe to share between threads."""

    def __init__(self, path: Path, mapping: mmap.mmap, fst: FstSet, info: IndexInfo) -> None:
        self._path = path
        self._mapping = mapping
        self._fst = fst
        self._info = info

    @property
    def path(self) -> Path:
        return self._path

    @property
    def fst(self) -> FstSet:
        return self._fst

    @property
    def info(self) -> IndexInfo:
        return self._info

    def contains(self, key: str | bytes) -> bool:
        return self._fst.contains(key)

    def __len__(self) -> int:
        return len(self._fst)

    def __repr__(self) -> str:
        return f"PurlIndex(path={str(self._path)!r}, keys={len(self._fst)})"


def _map_file(path: Path) -> mmap.mmap:
    try:
        with path.open("rb") as f:
            if os.fstat(f.fileno()).st_size == 0:
                raise IndexFormatError(f"index file is empty: {path}")
            # The mapping stays valid after the file object is closed.
            return mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ)
    except FileNotFoundError:
        raise IndexNotFoundError(str(path)) from None
    except OSError as exc:
        raise IndexUnreadableError(str(path), exc.strerror or str(exc)) from exc


def _has_checksum(mapping: mmap.mmap) -> bool:
    """Whether the header declares a format version with a checksum trailer."""
    return int.from_bytes(mapping[0:8], "little") >= CHECKSUM_VERSION


def load_index(path: str | os.PathLike[str], *, verify_checksum: bool = True) -> PurlIndex:
    """Open, map and validate the index at ``path``.

    With ``verify_checksum`` the whole file is read once to check its
    CRC-32C trailer. Indexes in format versions without a trailer are
    accepted with a warning.
    """
    path = Path(path)
    try:
        mapping = _map_file(path)
        try:
            # Checked before any node is decoded, so corruption is reported
            # as a checksum mismatch rather than as a structural error.
            verified = verify_checksum and _has_checksum(mapping)
            fst = FstSet(mapping, verify_checksum=verified)
            if verify_checksum and not verified:
                log.warning("index_checksum_missing", path=str(path), version=fst.version)
        except IndexLoadError:
            mapping.close()
            raise
    except IndexLoadError as exc:
        log.error("index_load_failed", path=str(path), code=exc.code, reason=exc.message)
        raise

    info = IndexInfo(
        path=str(path),
        size=fst.size,
        version=fst.version,
        fst_type=fst.fst_type,
        keys=len(fst),
        root_addr=fst.root_addr,
        checksum=fst.checksum,
        checksum_verified=verified,
    )
    log.info("index_loaded", path=str(path), keys=info.keys, size=info.size)
    return PurlIndex(path, mapping, fst, info)


class _LazyIndex:
    """Loads an index on first use, exactly once, for all threads.

    Failed loads are not remembered: every caller that finds the handle
    uninitialized attempts the load and gets the error.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._index: PurlIndex | None = None

    @property
    def loaded(self) -> bool:
        return self._index is not None

    def get(self) -> PurlIndex:
        index = self._index
        if index is not None:
            return index
        with self._lock:
            if self._index is None:
                self._index = load_index(self._path)
            return self._index


_default = _LazyIndex(DEFAULT_INDEX_PATH)


def get_index() -> PurlIndex:
    """The bundled index, loaded on first call and shared afterwards."""
    return _default.get()
