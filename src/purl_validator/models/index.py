from __future__ import annotations

from pydantic import BaseModel


class IndexInfo(BaseModel):
    """Header and footer metadata of a loaded index."""

    path: str
    size: int  # Bytes on disk
    version: int  # Encoding format version (1..3)
    fst_type: int
    keys: int  # Number of stored PURLs
    root_addr: int
    checksum: int | None  # None for format versions without a checksum
    checksum_verified: bool = False
