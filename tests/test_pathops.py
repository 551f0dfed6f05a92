import os
import stat
from pathlib import Path

import pytest

import pathops


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    """A directory with 2 executables, a symlink to one, and some non-executables."""
    d = tmp_path / "bin"
    d.mkdir()
    for name, mode in [("tool", 0o755), ("other", 0o700), ("readme", 0o644)]:
        f = d / name
        f.write_text("#!/bin/sh\n")
        f.chmod(mode)
    (d / "subdir").mkdir()
    (d / "subdir" / "nested").write_text("")
    (d / "subdir" / "nested").chmod(0o755)
    (d / "linked").symlink_to(d / "tool")
    (d / "dangling").symlink_to(d / "nowhere")
    return d


# ---- Parsing -----------------------------------------------------------------

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("/usr/bin:/bin", ["/usr/bin", "/bin"]),
        ("", [""]),
        (":", ["", ""]),
        (":/usr/bin", ["", "/usr/bin"]),
        ("/usr/bin:", ["/usr/bin", ""]),
        ("/a::/b", ["/a", "", "/b"]),
        (" /a : /b ", [" /a ", " /b "]),
    ],
)
def test_split_keeps_empty_segments(raw, expected):
    assert pathops.split(raw) == expected
    assert pathops.join(pathops.split(raw)) == raw


def test_read_path_uses_given_mapping():
    assert pathops.read_path("PATH", {"PATH": "/x:/y"}) == "/x:/y"
    assert pathops.read_path("MANPATH", {"MANPATH": "/man"}) == "/man"


def test_read_path_unset_is_empty(caplog):
    assert pathops.read_path("PATH", {}) == ""
    assert "PATH is not set" in caplog.text


def test_read_path_defaults_to_process_environment(monkeypatch):
    monkeypatch.setenv("PATH", "/only/this")
    assert pathops.read_path() == "/only/this"


# ---- Validation --------------------------------------------------------------

def test_classify(tmp_path: Path):
    f = tmp_path / "file"
    f.write_text("")
    link = tmp_path / "link"
    link.symlink_to(tmp_path)

    assert pathops.classify(str(tmp_path)) == pathops.OK
    assert pathops.classify(str(link)) == pathops.OK
    assert pathops.classify(str(f)) == pathops.NOT_A_DIRECTORY
    assert pathops.classify(str(tmp_path / "nope")) == pathops.MISSING
    assert pathops.classify("") == pathops.MISSING


def test_validate_keeps_order_and_repeats(tmp_path: Path):
    d = str(tmp_path)
    missing = str(tmp_path / "missing")
    assert pathops.validate([d, missing, d]) == [
        (d, pathops.OK),
        (missing, pathops.MISSING),
        (d, pathops.OK),
    ]


def test_resolve(tmp_path: Path):
    real = tmp_path / "real"
    real.mkdir()
    link = tmp_path / "link"
    link.symlink_to(real)

    assert pathops.resolve(str(link)) == os.path.realpath(real)
    assert pathops.resolve(str(tmp_path / "missing")) is None
    assert pathops.resolve("") is None


# ---- Duplicates --------------------------------------------------------------

def test_dedup_keeps_first_occurrence():
    entries = ["/c", "/a", "/c", "/b", "/a", "", ""]
    assert pathops.dedup(entries) == ["/c", "/a", "/b", ""]


def test_dedup_is_exact_string_match():
    assert pathops.dedup(["/usr/bin", "/usr/bin/", "/usr//bin"]) == ["/usr/bin", "/usr/bin/", "/usr//bin"]


@pytest.mark.parametrize(
    "entries",
    [[], [""], ["/a"], ["/a", "/a", "/a"], ["/b", "/a", "/b", "/c", "/a", "/d"]],
)
def test_dedup_idempotent_and_ordered(entries):
    once = pathops.dedup(entries)
    assert pathops.dedup(once) == once
    assert len(set(once)) == len(once)
    firsts = [e for i, e in enumerate(entries) if e not in entries[:i]]
    assert once == firsts


def test_find_duplicates():
    entries = ["/usr/local/bin", "/usr/local/sbin", "/usr/bin", "/bin", "/usr/local/bin", "/bin", "/bin"]
    assert pathops.find_duplicates(entries) == ["/usr/local/bin", "/bin", "/bin"]
    assert pathops.occurrences(pathops.find_duplicates(entries)) == {"/usr/local/bin": 2, "/bin": 3}
    assert pathops.find_duplicates(["/a", "/b"]) == []


def test_find_resolved_duplicates(tmp_path: Path):
    real = tmp_path / "real"
    real.mkdir()
    link = tmp_path / "link"
    link.symlink_to(real)
    missing = str(tmp_path / "missing")

    entries = [str(real), missing, str(link), missing]
    assert pathops.find_resolved_duplicates(entries) == [os.path.realpath(real)]


# ---- Counting ----------------------------------------------------------------

def test_count_executables(bin_dir: Path):
    # tool, other and the link to tool; not readme, subdir, nested or dangling
    assert pathops.count_executables(str(bin_dir)) == 3


def test_count_executables_empty_dir(tmp_path: Path):
    assert pathops.count_executables(str(tmp_path)) == 0


def test_count_executables_unlistable(tmp_path: Path):
    f = tmp_path / "file"
    f.write_text("")
    f.chmod(f.stat().st_mode | stat.S_IXUSR)

    assert pathops.count_executables(str(tmp_path / "missing")) is None
    assert pathops.count_executables(str(f)) is None
    assert pathops.count_executables("") is None


def test_count_survives_bad_entries(bin_dir: Path, tmp_path: Path):
    missing = str(tmp_path / "does" / "not" / "exist")
    entries = [str(bin_dir), missing, str(bin_dir)]
    assert pathops.count(entries) == [(str(bin_dir), 3), (missing, None), (str(bin_dir), 3)]


# ---- Mutation ----------------------------------------------------------------

def test_append_and_prepend_new_entry():
    entries = ["/usr/bin", "/bin"]
    assert pathops.append(entries, "/opt/bin") == ["/usr/bin", "/bin", "/opt/bin"]
    assert pathops.prepend(entries, "/opt/bin") == ["/opt/bin", "/usr/bin", "/bin"]
    # input untouched
    assert entries == ["/usr/bin", "/bin"]


@pytest.mark.parametrize("candidate", ["/usr/bin", "/bin", ""])
def test_existing_entry_is_not_moved(candidate):
    entries = ["/usr/bin", "", "/bin"]
    assert pathops.append(entries, candidate) == entries
    assert pathops.prepend(entries, candidate) == entries


def test_membership_is_exact_string_match():
    assert pathops.append(["/usr/bin"], "/usr/bin/") == ["/usr/bin", "/usr/bin/"]


def test_mutation_does_not_check_existence(tmp_path: Path):
    missing = str(tmp_path / "missing")
    assert pathops.append([], missing) == [missing]


def test_append_path_and_prepend_path():
    raw = "/usr/local/bin:/usr/local/sbin:/usr/bin:/bin:/usr/local/bin"
    assert pathops.append_path(raw, "/unique/addition") == raw + ":/unique/addition"
    assert pathops.prepend_path(raw, "/unique/addition") == "/unique/addition:" + raw
    assert pathops.append_path(raw, "/usr/bin") == raw
    assert pathops.prepend_path(raw, "/usr/local/bin") == raw
    # an empty variable is one empty entry
    assert pathops.append_path("", "/opt/bin") == ":/opt/bin"


@pytest.mark.skipif(os.geteuid() == 0, reason="root can list any directory")
def test_count_executables_permission_denied(bin_dir: Path):
    bin_dir.chmod(0)
    try:
        assert pathops.count_executables(str(bin_dir)) is None
        assert pathops.count([str(bin_dir)]) == [(str(bin_dir), None)]
    finally:
        bin_dir.chmod(0o755)


def test_find_empty(bin_dir: Path, tmp_path: Path):
    empty = tmp_path / "empty"
    empty.mkdir()
    (empty / "data").write_text("")
    missing = str(tmp_path / "missing")
    f = str(bin_dir / "readme")

    entries = [str(bin_dir), str(empty), missing, f, str(empty)]
    assert pathops.find_empty(entries) == [str(empty)]
