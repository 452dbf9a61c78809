"""Offline existence checks for Package URLs (PURLs).

``validate`` answers whether a base PURL belongs to a package known to
exist, using a precomputed index shipped with the package. No network
access is needed at any point.
"""

from __future__ import annotations

from purl_validator.errors import IndexLoadError, PurlValidatorError
from purl_validator.validator import PurlValidator, normalize, validate

__version__ = "0.1.0"

__all__ = [
    "validate",
    "normalize",
    "PurlValidator",
    "IndexLoadError",
    "PurlValidatorError",
]
