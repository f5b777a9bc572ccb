import os
import re
import uuid

import pytest

from securescan.path_guard import (
    InvalidNameError,
    InvalidScanIdError,
    PathGuardError,
    PathTraversalError,
    generate_temp_dir_name,
    relative_to_base,
    sanitize_name,
    validate_scan_id,
    validate_within,
)


@pytest.mark.parametrize("raw, expected", [
    ("my-repo", "my-repo"),
    ("repo name!", "repo_name_"),
    ("../../etc", "etc"),
    ("./local", "local"),
    ("/abs", "abs"),
    ("Repo.v2_final", "Repo.v2_final"),
    ("-flag", "_-flag"),
])
def test_sanitize_name(raw, expected):
    assert sanitize_name(raw) == expected


@pytest.mark.parametrize("raw", ["", None, 42, "a/../b", "foo..bar", "bad\x00name", "tab\tname", "!!!", "..."])
def test_sanitize_name_rejects(raw):
    with pytest.raises(InvalidNameError):
        sanitize_name(raw)


@pytest.mark.parametrize("raw", ["my-repo", "repo name!", "../../etc", "-flag", ".hidden", "a b c"])
def test_sanitize_name_is_idempotent(raw):
    once = sanitize_name(raw)
    assert sanitize_name(once) == once
    assert re.fullmatch(r"[A-Za-z0-9._-]+", once)


def test_path_guard_errors_are_value_errors():
    assert issubclass(PathGuardError, ValueError)
    with pytest.raises(ValueError):
        validate_scan_id("nope")


def test_validate_within_accepts_base_and_descendants(tmp_path):
    base = str(tmp_path)
    assert validate_within(base, base) == os.path.realpath(base)
    resolved = validate_within(base, "sub/file.txt")
    assert resolved == os.path.join(os.path.realpath(base), "sub", "file.txt")
    assert validate_within(base, resolved) == resolved


@pytest.mark.parametrize("candidate", ["../outside", "/etc/passwd", "sub/../../x"])
def test_validate_within_rejects_escape(tmp_path, candidate):
    with pytest.raises(PathTraversalError):
        validate_within(str(tmp_path / "base"), candidate)


def test_validate_within_uses_separator_boundary(tmp_path):
    base = tmp_path / "base"
    sibling = tmp_path / "base2"
    base.mkdir()
    sibling.mkdir()
    with pytest.raises(PathTraversalError):
        validate_within(str(base), str(sibling / "file"))


def test_validate_within_follows_symlinks(tmp_path):
    base = tmp_path / "base"
    base.mkdir()
    outside = tmp_path / "secret.txt"
    outside.write_text("x")
    (base / "link").symlink_to(outside)
    with pytest.raises(PathTraversalError):
        validate_within(str(base), "link")


def test_validate_within_rejects_nul(tmp_path):
    with pytest.raises(PathTraversalError):
        validate_within(str(tmp_path), "a\x00b")


def test_relative_to_base(tmp_path):
    assert relative_to_base(str(tmp_path), str(tmp_path / "src" / "a.js")) == "src/a.js"
    assert relative_to_base(str(tmp_path), "src/a.js") == "src/a.js"


def test_generate_temp_dir_name():
    first = generate_temp_dir_name("owner/repo")
    second = generate_temp_dir_name("owner/repo")
    assert first != second
    assert "/" not in first
    assert re.fullmatch(r"owner_repo-[0-9a-f]{32}", first)
    assert generate_temp_dir_name("scan", "work").endswith("-work")


def test_validate_scan_id():
    value = str(uuid.uuid4())
    assert validate_scan_id(value) == value
    assert validate_scan_id(value.upper()) == value.upper()


@pytest.mark.parametrize("raw", ["", None, "123", "../etc", "00000000-0000-0000-0000-000000000000",
                                 str(uuid.uuid4()) + "x"])
def test_validate_scan_id_rejects(raw):
    with pytest.raises(InvalidScanIdError):
        validate_scan_id(raw)
