from __future__ import annotations

from purl_validator.models.index import IndexInfo

__all__ = [
    "IndexInfo",
]
