"""Tests for folder-key derivation and the folder tree."""

from __future__ import annotations

import logging

import pytest

from unitorrent.utils.folder_key import (
    EXTERNAL_ROOT,
    FolderKeyMapper,
    build_folder_tree,
    is_external_key,
    split_segments,
    strip_external_prefix,
)

pytestmark = [pytest.mark.unit]


class TestSplitSegments:
    @pytest.mark.parametrize(
        ("path", "segments"),
        [
            ("/data/dl/", ["data", "dl"]),
            ("C:\\Users\\me\\dl", ["C:", "Users", "me", "dl"]),
            ("/a/./b//c", ["a", "b", "c"]),
            ("/a/b/../c", ["a", "c"]),
            ("/../a", ["a"]),
            ("", []),
            (None, []),
        ],
    )
    def test_normalization(self, path, segments):
        assert split_segments(path) == segments


class TestFolderKeyMapper:
    def test_paths_under_root(self):
        mapper = FolderKeyMapper("/data/dl")
        assert mapper.folder_key("/data/dl") == ""
        assert mapper.folder_key("/data/dl/") == ""
        assert mapper.folder_key("/data/dl/movies") == "movies"
        assert mapper.folder_key("/data/dl/movies/hd/") == "movies/hd"

    def test_paths_outside_root(self):
        mapper = FolderKeyMapper("/data/dl")
        assert mapper.folder_key("/mnt/usb") == f"{EXTERNAL_ROOT}/mnt/usb"
        assert mapper.folder_key("/data/dlx") == f"{EXTERNAL_ROOT}/data/dlx"
        assert mapper.folder_key("/") == EXTERNAL_ROOT

    def test_unknown_root_joins_segments(self):
        mapper = FolderKeyMapper()
        assert mapper.default_dir is None
        assert mapper.folder_key("/data/dl/movies") == "data/dl/movies"
        assert mapper.resolve_save_path("movies") is None

    def test_filesystem_root_as_default(self):
        mapper = FolderKeyMapper("/")
        assert mapper.folder_key("/srv/x") == "srv/x"
        assert mapper.resolve_save_path("srv/x") == "/srv/x"
        assert mapper.resolve_save_path("") == "/"

    def test_case_only_mismatch_warns_once(self, caplog):
        mapper = FolderKeyMapper("/Data/DL")
        with caplog.at_level(logging.WARNING, logger="unitorrent.utils.folder_key"):
            assert mapper.folder_key("/data/dl/a") == "a"
            assert mapper.folder_key("/data/dl/b") == "b"
            assert mapper.folder_key("/DATA/dl/c") == "c"

        warnings = [r for r in caplog.records if "case-insensitively" in r.getMessage()]
        assert len(warnings) == 2

    def test_default_dir_can_change(self):
        mapper = FolderKeyMapper("/data/dl")
        mapper.set_default_dir("/srv")
        assert mapper.folder_key("/srv/tv") == "tv"
        mapper.set_default_dir("  ")
        assert mapper.default_dir is None

    def test_resolve_save_path(self):
        mapper = FolderKeyMapper("/data/dl/")
        assert mapper.resolve_save_path("") == "/data/dl"
        assert mapper.resolve_save_path("movies/hd") == "/data/dl/movies/hd"
        assert mapper.resolve_save_path("/movies//hd/") == "/data/dl/movies/hd"
        assert mapper.resolve_save_path(f"{EXTERNAL_ROOT}/mnt/usb") == "/mnt/usb"

    def test_round_trip(self):
        mapper = FolderKeyMapper("/data/dl")
        for path in ("/data/dl", "/data/dl/a/b", "/mnt/usb/x"):
            assert mapper.resolve_save_path(mapper.folder_key(path)) == path


class TestExternalKeys:
    def test_helpers(self):
        assert is_external_key(EXTERNAL_ROOT)
        assert is_external_key(f"{EXTERNAL_ROOT}/mnt")
        assert not is_external_key("movies")
        assert strip_external_prefix(f"{EXTERNAL_ROOT}/mnt/usb") == "mnt/usb"
        assert strip_external_prefix(EXTERNAL_ROOT) == ""
        assert strip_external_prefix("movies") == "movies"


class TestBuildFolderTree:
    def test_nested_and_sorted(self):
        tree = build_folder_tree(["tv/show", "", "movies/hd", "movies", "tv", "movies/sd"])

        assert tree.has_root
        assert [n.name for n in tree.nodes] == ["movies", "tv"]
        movies = tree.nodes[0]
        assert movies.path == "movies"
        assert [(c.name, c.path) for c in movies.children] == [
            ("hd", "movies/hd"),
            ("sd", "movies/sd"),
        ]
        assert tree.nodes[1].children[0].path == "tv/show"

    def test_intermediate_folders_are_created(self):
        tree = build_folder_tree(["a/b/c"])
        assert not tree.has_root
        assert tree.nodes[0].children[0].children[0].path == "a/b/c"

    def test_empty(self):
        tree = build_folder_tree([])
        assert not tree.has_root
        assert tree.nodes == []
