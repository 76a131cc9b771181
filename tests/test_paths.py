"""Tests for request and include path normalization."""

from pathlib import Path

import pytest

from tkml.exceptions import DocumentNotFoundError
from tkml.paths import (
    identifier_for,
    normalize_identifier,
    normalize_request_path,
    resolve_include,
    script_identifier,
)


def test_root_path_maps_to_default_document():
    assert normalize_request_path("/") == "index.tkml"
    assert normalize_request_path("") == "index.tkml"


def test_directory_paths_get_default_document():
    assert normalize_request_path("/docs") == "docs/index.tkml"
    assert normalize_request_path("/docs/") == "docs/index.tkml"


def test_document_paths_are_kept():
    assert normalize_request_path("/about.tkml") == "about.tkml"
    assert normalize_request_path("/a/./b/../c.tkml") == "a/c.tkml"


def test_custom_extension_and_default_document():
    assert normalize_request_path("/x", ".tk", "main.tk") == "x/main.tk"
    assert normalize_request_path("/x/page.tk", ".tk", "main.tk") == "x/page.tk"


def test_backslashes_are_separators():
    assert normalize_identifier("docs\\a.tkml") == "docs/a.tkml"


def test_paths_above_root_are_rejected():
    with pytest.raises(DocumentNotFoundError):
        normalize_request_path("/../secret.tkml")
    with pytest.raises(DocumentNotFoundError):
        normalize_identifier("a/../../b.tkml")


def test_include_relative_to_includer():
    assert resolve_include("part.tkml", "docs/index.tkml") == "docs/part.tkml"
    assert resolve_include("../top.tkml", "docs/index.tkml") == "top.tkml"
    assert resolve_include("./sub/x.tkml", "index.tkml") == "sub/x.tkml"


def test_include_rooted_target():
    assert resolve_include("/shared/nav.tkml", "docs/deep/a.tkml") == "shared/nav.tkml"


def test_include_cannot_escape_root():
    with pytest.raises(DocumentNotFoundError):
        resolve_include("../../x.tkml", "docs/a.tkml")


def test_identifier_for_paths(tmp_path):
    assert identifier_for(tmp_path / "docs" / "a.tkml", tmp_path) == "docs/a.tkml"
    assert identifier_for(Path("/elsewhere/a.tkml"), tmp_path) is None


def test_script_identifier():
    assert script_identifier("index.tkml", ".script") == "index.script"
    assert script_identifier("docs/list.tkml", ".py") == "docs/list.py"
    assert script_identifier("docs/v1.2/page.tkml", ".script") == "docs/v1.2/page.script"
