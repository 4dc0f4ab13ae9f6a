"""Tests for ignore rules, file listing and the scanner."""

import pytest

from inline_issues.config import ProjectConfig
from inline_issues.errors import ScanError
from inline_issues.models import Priority
from inline_issues.scanner import Scanner, list_tracked_files, read_source, should_ignore

from conftest import requires_git


class TestShouldIgnore:
    """Tests for should_ignore."""

    def test_example_pattern_set(self):
        patterns = ["vendor/", "*.min.js"]
        assert should_ignore("vendor/lib.ts", patterns)
        assert should_ignore("app.min.js", patterns)
        assert not should_ignore("src/app.ts", patterns)

    def test_directory_pattern_is_prefix_only(self):
        assert not should_ignore("src/vendor/lib.ts", ["vendor/"])

    def test_extension_pattern(self):
        assert should_ignore("static/js/app.min.js", ["*.min.js"])
        assert not should_ignore("app.js", ["*.min.js"])

    def test_plain_pattern_equality(self):
        assert should_ignore("Makefile", ["Makefile"])

    def test_plain_pattern_substring(self):
        assert should_ignore("src/generated_pb2.py", ["_pb2"])

    def test_order_does_not_matter(self):
        assert should_ignore("dist/x.js", ["*.py", "dist/"])
        assert should_ignore("dist/x.js", ["dist/", "*.py"])

    def test_empty_patterns(self):
        assert not should_ignore("anything", [])
        assert not should_ignore("anything", [""])


class TestScanner:
    """Tests for Scanner over in-memory files."""

    def test_scan_files_line_numbers(self):
        scanner = Scanner(["TODO", "BUG"])
        text = "line one\n# TODO: first\n\n# BUG!: second\n"
        found = list(scanner.scan_files([("src/a.py", text)]))
        assert [(a.line, a.tag, a.message) for a in found] == [
            (2, "TODO", "first"),
            (4, "BUG", "second"),
        ]
        assert found[1].priority == Priority.HIGH

    def test_scan_files_skips_ignored(self):
        scanner = Scanner(["TODO"], ignore=["vendor/"])
        files = [
            ("vendor/lib.py", "# TODO: not mine"),
            ("src/app.py", "# TODO: mine"),
        ]
        found = list(scanner.scan_files(files))
        assert [a.file for a in found] == ["src/app.py"]

    def test_scan_files_preserves_file_order(self):
        scanner = Scanner(["TODO"])
        files = [("b.py", "# TODO: b"), ("a.py", "# TODO: a")]
        assert [a.file for a in scanner.scan_files(files)] == ["b.py", "a.py"]

    def test_crlf_line_endings(self):
        scanner = Scanner(["TODO"])
        found = list(scanner.scan_files([("a.py", "x = 1\r\n# TODO: windows\r\n")]))
        assert found[0].line == 2
        assert found[0].message == "windows"

    def test_generator_is_single_use(self):
        scanner = Scanner(["TODO"])
        gen = scanner.scan_files([("a.py", "# TODO: once")])
        assert len(list(gen)) == 1
        assert list(gen) == []

    def test_tags_uppercased(self):
        scanner = Scanner(["todo"])
        found = list(scanner.scan_text("a.py", "# Todo: mixed"))
        assert found[0].tag == "TODO"

    def test_from_config_includes_resolved_tags(self, temp_project):
        config = ProjectConfig(project_root=temp_project, include_resolved=True)
        scanner = Scanner.from_config(config)
        assert "DONE" in scanner.tags
        assert "RESOLVED" in scanner.tags
        found = list(scanner.scan_text("a.py", "# DONE: shipped"))
        assert found[0].tag == "DONE"

    def test_from_config_tag_override(self, temp_project):
        config = ProjectConfig(project_root=temp_project)
        scanner = Scanner.from_config(config, tags=["hack"])
        assert scanner.tags == ["HACK"]


class TestFileCollaborators:
    """Tests for git listing and file reading."""

    def test_read_source_missing_file_raises(self, temp_project):
        with pytest.raises(ScanError):
            read_source(temp_project, "missing.py")

    def test_read_source_replaces_bad_bytes(self, temp_project):
        (temp_project / "bin.dat").write_bytes(b"\xff\xfe# TODO: after junk\n")
        text = read_source(temp_project, "bin.dat")
        assert "TODO: after junk" in text

    def test_list_outside_git_raises(self, temp_project, monkeypatch):
        monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(temp_project.parent))
        with pytest.raises(ScanError):
            list_tracked_files(temp_project)

    def test_missing_git_binary_raises(self, temp_project, monkeypatch):
        monkeypatch.setenv("PATH", "")
        with pytest.raises(ScanError):
            list_tracked_files(temp_project)

    @requires_git
    def test_lists_untracked_and_honors_gitignore(self, git_project):
        (git_project / "src").mkdir()
        (git_project / "src" / "app.py").write_text("# TODO: x\n")
        (git_project / "build.log").write_text("TODO: ignored\n")
        (git_project / ".gitignore").write_text("*.log\n")

        files = list_tracked_files(git_project)
        assert "src/app.py" in files
        assert ".gitignore" in files
        assert "build.log" not in files

    @requires_git
    def test_scan_tree(self, git_project):
        (git_project / "src").mkdir()
        (git_project / "src" / "app.py").write_text("ok\n# FIXME?: maybe later\n")
        (git_project / "vendor").mkdir()
        (git_project / "vendor" / "lib.py").write_text("# FIXME: vendored\n")

        scanner = Scanner(["FIXME"], ignore=["vendor/"])
        found = list(scanner.scan_tree(git_project))
        assert len(found) == 1
        assert found[0].file == "src/app.py"
        assert found[0].line == 2
        assert found[0].priority == Priority.LOW
