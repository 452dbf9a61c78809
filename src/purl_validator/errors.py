"""Exception hierarchy.

Every error raised by this package carries an ``ErrorCode`` so wrappers can
report failures without parsing messages. Index load failures are fatal to
the calling path; queries never raise.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INDEX_NOT_FOUND = "INDEX_NOT_FOUND"
    INDEX_UNREADABLE = "INDEX_UNREADABLE"
    INDEX_MALFORMED = "INDEX_MALFORMED"
    INDEX_CHECKSUM_MISMATCH = "INDEX_CHECKSUM_MISMATCH"
    KEY_OUT_OF_ORDER = "KEY_OUT_OF_ORDER"
    DUPLICATE_KEY = "DUPLICATE_KEY"


class PurlValidatorError(Exception):
    """Base error with a machine-readable code."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


# ---------------------------------------------------------------------------
# Index loading
# ---------------------------------------------------------------------------


class IndexLoadError(PurlValidatorError):
    """The index could not be opened, mapped or validated."""


class IndexNotFoundError(IndexLoadError):
    def __init__(self, path: str) -> None:
        super().__init__(ErrorCode.INDEX_NOT_FOUND, f"index file not found: {path}")
        self.path = path


class IndexUnreadableError(IndexLoadError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(ErrorCode.INDEX_UNREADABLE, f"cannot read index {path}: {reason}")
        self.path = path


class IndexFormatError(IndexLoadError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INDEX_MALFORMED, message)


class IndexChecksumError(IndexLoadError):
    def __init__(self, expected: int, got: int) -> None:
        super().__init__(
            ErrorCode.INDEX_CHECKSUM_MISMATCH,
            f"index checksum mismatch: expected 0x{expected:08x}, got 0x{got:08x}",
        )
        self.expected = expected
        self.got = got


# ---------------------------------------------------------------------------
# Index building
# ---------------------------------------------------------------------------


class BuildError(PurlValidatorError):
    """Keys were fed to the builder in a way the format cannot encode."""


class OutOfOrderError(BuildError):
    def __init__(self, previous: bytes, key: bytes) -> None:
        super().__init__(
            ErrorCode.KEY_OUT_OF_ORDER,
            f"keys must be inserted in lexicographic order: {key!r} after {previous!r}",
        )


class DuplicateKeyError(BuildError):
    def __init__(self, key: bytes) -> None:
        super().__init__(ErrorCode.DUPLICATE_KEY, f"duplicate key: {key!r}")
