"""Tests for the tree walk, binary heuristic and combined writer."""

from pathlib import Path

import pytest

from combinefiles.core import (
    ConfigFileError,
    InvalidRootError,
    combine_files,
    is_binary,
    load_extra_patterns,
    walk_tree,
)
from combinefiles.ruleset import gather_ancestor_rules


def walked(root: Path, **kwargs) -> list:
    rule_set = gather_ancestor_rules(root, **kwargs)
    return [p.relative_to(rule_set.base).as_posix() for p in walk_tree(rule_set)]


@pytest.fixture(params=["token", "regex"])
def matcher(request) -> str:
    return request.param


# End-to-end scenarios
def test_negated_object_file_is_kept(make_tree, matcher) -> None:
    root = make_tree(
        {
            ".gitignore": "*.o\n!keep.o\n",
            "src/a.o": "obj",
            "src/keep.o": "keep",
            "src/main.cpp": "int main() {}",
        }
    )
    assert walked(root, matcher=matcher) == ["src/keep.o", "src/main.cpp"]


def test_directory_only_rule_prunes_directory(make_tree, matcher) -> None:
    root = make_tree(
        {
            ".gitignore": "build/\n",
            "build/output.txt": "out",
            "build_notes.txt": "notes",
        }
    )
    assert walked(root, matcher=matcher) == ["build_notes.txt"]


def test_directory_only_rule_ignores_file_named_like_it(make_tree) -> None:
    root = make_tree({".gitignore": "build/\n", "build": "I am a file"})
    assert walked(root) == ["build"]


def test_nested_ignore_file_applies_to_its_subtree_only(make_tree) -> None:
    root = make_tree(
        {
            "a/.gitignore": "*.log\n",
            "a/x.log": "",
            "a/deep/y.log": "",
            "b/z.log": "",
        }
    )
    assert walked(root) == ["b/z.log"]


def test_nested_anchored_rule_resolves_at_its_directory(make_tree) -> None:
    root = make_tree(
        {
            "pkg/.gitignore": "/out\n",
            "pkg/out/gen.txt": "",
            "pkg/sub/out/kept.txt": "",
            "out/also_kept.txt": "",
        }
    )
    assert walked(root) == ["out/also_kept.txt", "pkg/sub/out/kept.txt"]


def test_child_rule_overrides_parent(make_tree) -> None:
    root = make_tree(
        {
            ".gitignore": "*.txt\n",
            "docs/.gitignore": "!*.txt\n",
            "docs/readme.txt": "",
            "notes.txt": "",
        }
    )
    assert walked(root) == ["docs/readme.txt"]


def test_ancestor_ignore_files_apply(make_tree, tmp_path: Path) -> None:
    root = make_tree({"keep.py": "", "drop.tmp": ""})
    (tmp_path / ".gitignore").write_text("*.tmp\n", encoding="utf-8")
    assert walked(root) == ["keep.py"]


def test_ancestor_anchored_rule_resolves_at_its_directory(make_tree, tmp_path: Path) -> None:
    root = make_tree({"docs/a.txt": "", "b.txt": ""})
    (tmp_path / ".gitignore").write_text("/docs\n", encoding="utf-8")
    assert walked(root) == ["b.txt", "docs/a.txt"]


def test_ancestor_multi_segment_rule_reaches_into_base(make_tree, tmp_path: Path, matcher) -> None:
    root = make_tree({"gen.tmp": "", "b.txt": "", "sub/gen.tmp": ""})
    (tmp_path / ".gitignore").write_text("root/*.tmp\n", encoding="utf-8")
    assert walked(root, matcher=matcher) == ["b.txt", "sub/gen.tmp"]


def test_ignore_file_and_vcs_dirs_are_never_listed(make_tree) -> None:
    root = make_tree(
        {
            ".gitignore": "# nothing\n",
            ".git/config": "",
            "sub/.hg/store": "",
            "main.py": "",
        }
    )
    assert walked(root) == ["main.py"]


def test_custom_ignore_filename(make_tree) -> None:
    root = make_tree({".rgignore": "*.md\n", "a.md": "", "b.py": "", ".gitignore": "*.py\n"})
    assert walked(root, ignore_filename=".rgignore") == [".gitignore", "b.py"]


def test_extra_spec_excludes(make_tree, tmp_path: Path) -> None:
    root = make_tree({"a.py": "", "gen/b.py": "", "c.py": ""})
    cfg = tmp_path / "extra.txt"
    cfg.write_text("# extra\ngen/\nc.py\n", encoding="utf-8")
    rule_set = gather_ancestor_rules(root)
    kept = [p.name for p in walk_tree(rule_set, extra_spec=load_extra_patterns(cfg))]
    assert kept == ["a.py"]


def test_directory_symlinks_are_not_followed(make_tree) -> None:
    root = make_tree({"real/a.txt": ""})
    try:
        (root / "link").symlink_to(root / "real", target_is_directory=True)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")
    assert walked(root) == ["real/a.txt"]


# Binary heuristic
@pytest.mark.parametrize(
    "sample, expected",
    [
        (b"", False),
        (b"plain text\n\twith tabs\r\n", False),
        (b"\x00\x01\x02\x03", True),
        # 3 of 10 bytes is the threshold itself, not above it
        (b"abcdefg\x00\x00\x00", False),
        (b"abcdef\x00\x00\x00\x00", True),
        ("héllo world, plain text".encode("utf-8"), False),
    ],
)
def test_is_binary(sample: bytes, expected: bool) -> None:
    assert is_binary(sample) is expected


def test_is_binary_custom_threshold() -> None:
    assert is_binary(b"ab\x00", threshold=0.2)
    assert not is_binary(b"ab\x00", threshold=0.5)


# Writer
def test_combine_files_writes_text_files(make_tree, tmp_path: Path) -> None:
    root = make_tree(
        {
            ".gitignore": "*.o\n!keep.o\n",
            "src/a.o": "obj",
            "src/keep.o": "keep",
            "src/main.cpp": "int main() {}",
            "img.bin": bytes(range(256)),
        }
    )
    out = tmp_path / "out" / "combined.txt"
    summary = combine_files(root, out)

    text = out.read_text(encoding="utf-8")
    assert "# File: src/keep.o\n\nkeep\n\n" in text
    assert "# File: src/main.cpp\n\nint main() {}\n\n" in text
    assert "src/a.o" not in text
    assert "img.bin" not in text
    assert ".gitignore" not in text
    assert summary.files_written == 2
    assert summary.skipped_binary == ["img.bin"]
    assert summary.bytes_written == len("keep") + len("int main() {}")


def test_combine_files_skips_its_own_output(make_tree) -> None:
    root = make_tree({"a.txt": "hello", "combined.txt": "stale"})
    out = root / "combined.txt"
    summary = combine_files(root, out)
    assert summary.files_written == 1
    assert out.read_text(encoding="utf-8") == "# File: a.txt\n\nhello\n\n"


def test_combine_files_truncates(make_tree, tmp_path: Path) -> None:
    root = make_tree({"long.txt": "x" * 50})
    out = tmp_path / "combined.txt"
    summary = combine_files(root, out, max_bytes=10)
    assert summary.truncated == ["long.txt"]
    assert "x" * 10 + "\n# [truncated]" in out.read_text(encoding="utf-8")


def test_combine_files_verbose_reports(make_tree, tmp_path: Path, capsys) -> None:
    root = make_tree({"a.txt": "a", "b.bin": b"\x00" * 10})
    combine_files(root, tmp_path / "combined.txt", verbose=True)
    out = capsys.readouterr().out
    assert "[combinefiles] Scanning" in out
    assert "Skipping binary b.bin" in out
    assert "1 files written" in out


def test_combine_files_invalid_root(tmp_path: Path) -> None:
    with pytest.raises(InvalidRootError):
        combine_files(tmp_path / "missing", tmp_path / "combined.txt")
    (tmp_path / "file").write_text("", encoding="utf-8")
    with pytest.raises(InvalidRootError):
        combine_files(tmp_path / "file", tmp_path / "combined.txt")


# Config
def test_load_extra_patterns_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigFileError):
        load_extra_patterns(tmp_path / "missing.txt")
    with pytest.raises(ConfigFileError):
        load_extra_patterns(tmp_path)


def test_unreadable_file_is_logged_not_printed(make_tree, tmp_path: Path, monkeypatch, capsys, caplog) -> None:
    root = make_tree({"a.txt": "a", "locked.txt": "secret"})
    real_read_bytes = Path.read_bytes

    def read_bytes(self):
        if self.name == "locked.txt":
            raise PermissionError("permission denied")
        return real_read_bytes(self)

    monkeypatch.setattr(Path, "read_bytes", read_bytes)
    with caplog.at_level("WARNING", logger="combinefiles.core"):
        summary = combine_files(root, tmp_path / "combined.txt")

    assert summary.unreadable == ["locked.txt"]
    assert summary.files_written == 1
    assert "Could not read locked.txt" in caplog.text
    assert "locked.txt" not in capsys.readouterr().out
