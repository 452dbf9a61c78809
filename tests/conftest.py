"""Shared fixtures: small PURL corpora and index files built from them."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import structlog

from purl_validator.automaton import FstSet, build_set, write_set
from purl_validator.index import PurlIndex, load_index

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def sample_purls() -> list[str]:
    return [
        "pkg:nuget/FluentValidation",
        "pkg:nuget/Newtonsoft.Json",
        "pkg:npm/left-pad",
        "pkg:npm/%40angular/core",
        "pkg:npm/lodash",
        "pkg:npm/lodash.merge",
        "pkg:pypi/django",
        "pkg:pypi/django-rest-framework",
        "pkg:pypi/requests",
        "pkg:maven/org.apache.commons/commons-lang3",
        "pkg:maven/org.apache.commons/commons-text",
        "pkg:cargo/fst",
        "pkg:gem/rails",
        "pkg:github/package-url/purl-spec",
    ]


@pytest.fixture()
def fst_set(sample_purls: list[str]) -> FstSet:
    return FstSet(build_set(sample_purls), verify_checksum=True)


@pytest.fixture()
def index_path(tmp_path: Path, sample_purls: list[str]) -> Path:
    path = tmp_path / "purls.fst"
    write_set(path, sample_purls)
    return path


@pytest.fixture()
def purl_index(index_path: Path) -> PurlIndex:
    return load_index(index_path)


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()
