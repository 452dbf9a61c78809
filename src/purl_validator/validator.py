"""PURL existence checks against a loaded index.

A candidate PURL is looked up as an opaque byte string: trailing ``/``
characters are stripped and nothing else is normalized. Lookups never
raise; "not found" is an ordinary answer.
"""

from __future__ import annotations

from typing import Protocol, overload

from purl_validator.index import get_index


class MembershipSet(Protocol):
    def contains(self, key: str | bytes) -> bool: ...


@overload
def normalize(purl: str) -> str: ...
@overload
def normalize(purl: bytes) -> bytes: ...
def normalize(purl: str | bytes) -> str | bytes:
    """Strip trailing slashes, any number of them."""
    if isinstance(purl, bytes):
        return purl.rstrip(b"/")
    return purl.rstrip("/")


def check_purl(purl: str | bytes, index: MembershipSet) -> bool:
    return index.contains(normalize(purl))


class PurlValidator:
    """Checks PURLs against one specific index."""

    def __init__(self, index: MembershipSet) -> None:
        self._index = index

    def validate(self, purl: str | bytes) -> bool:
        return check_purl(purl, self._index)

    def __contains__(self, purl: object) -> bool:
        if not isinstance(purl, (str, bytes)):
            return False
        return self.validate(purl)


def validate(purl: str) -> bool:
    """Return ``True`` if ``purl`` is a base PURL of a known package.

    The bundled index is loaded on the first call; if it is missing or
    corrupt, that call raises an ``IndexLoadError``.

    >>> validate("pkg:nuget/FluentValidation")  # doctest: +SKIP
    True
    """
    return check_purl(purl, get_index())
