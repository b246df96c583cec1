import pytest

from drivesync import paths


def test_normalize_path():
    assert paths.normalize_path(None) == "/"
    assert paths.normalize_path("") == "/"
    assert paths.normalize_path("/") == "/"
    assert paths.normalize_path("docs") == "/docs"
    assert paths.normalize_path("//docs//2024/") == "/docs/2024"


def test_tree_arithmetic():
    assert paths.join_path("/", "docs") == "/docs"
    assert paths.join_path("/docs", "2024") == "/docs/2024"
    assert paths.parent_path("/docs/2024") == "/docs"
    assert paths.parent_path("/docs") == "/"
    assert paths.parent_path("/") == "/"
    assert paths.path_name("/docs/2024") == "2024"
    assert paths.ancestor_paths("/a/b/c") == ["/a", "/a/b", "/a/b/c"]
    assert paths.ancestor_paths("/") == []


def test_is_same_or_below():
    assert paths.is_same_or_below("/docs", "/docs")
    assert paths.is_same_or_below("/docs/a", "/docs")
    assert not paths.is_same_or_below("/docsx", "/docs")
    assert paths.is_same_or_below("/anything", "/")


def test_keys():
    assert paths.folder_prefix("u1", "/") == "u1/"
    assert paths.folder_prefix("u1", "/docs") == "u1/docs/"
    assert paths.key_to_path("u1", "u1/docs/a.pdf") == "/docs/a.pdf"
    assert paths.key_to_path("u1", "u1/docs/") == "/docs"
    assert paths.key_to_path("u1", "u1/") == "/"
    assert paths.is_marker("u1/docs/")
    assert not paths.is_marker("u1/docs/a.pdf")
    with pytest.raises(ValueError):
        paths.key_to_path("u1", "u2/docs/a.pdf")


def test_breadcrumbs():
    assert paths.breadcrumbs("/") == [("Home", "/")]
    assert paths.breadcrumbs("/docs/2024") == [("Home", "/"), ("docs", "/docs"), ("2024", "/docs/2024")]
