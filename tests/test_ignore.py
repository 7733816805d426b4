import pytest
from repomerge.core.ignore import IgnoreMatcher, compile_rules
from repomerge.core.models import Config


class TestCompileRules:
    def test_skips_blanks_and_comments(self):
        rules = compile_rules(["", "# comment", "*.log", "   "])
        assert [rule.text for rule in rules] == ["*.log"]

    def test_negation(self):
        rules = compile_rules(["!keep.log"])
        assert rules[0].negated is True

    def test_reversed_character_range_is_skipped(self):
        rules = compile_rules(["[z-a]", "*.log"], ".gitignore")
        assert [rule.text for rule in rules] == ["*.log"]

    def test_matcher_survives_bad_range(self):
        matcher = IgnoreMatcher()
        matcher.add_file("", "[z-a]\n*.log\n", ".gitignore")
        assert matcher.is_ignored("debug.log")
        assert not matcher.is_ignored("a.py")


class TestIgnoreMatcher:
    def test_simple_glob(self):
        matcher = IgnoreMatcher()
        matcher.add_file("", "*.log\n")
        assert matcher.is_ignored("debug.log")
        assert matcher.is_ignored("sub/dir/trace.log")
        assert not matcher.is_ignored("main.py")

    def test_last_match_wins_with_negation(self):
        matcher = IgnoreMatcher()
        matcher.add_file("", "*.log\n!keep.log\n")
        assert matcher.is_ignored("debug.log")
        assert not matcher.is_ignored("keep.log")

    def test_directory_only_pattern(self):
        matcher = IgnoreMatcher()
        matcher.add_file("", "build/\n")
        assert matcher.is_ignored("build", is_dir=True)
        assert matcher.is_ignored("build/out.txt")
        assert not matcher.is_ignored("build")  # a file named build

    def test_anchored_pattern(self):
        matcher = IgnoreMatcher()
        matcher.add_file("", "/top.txt\n")
        assert matcher.is_ignored("top.txt")
        assert not matcher.is_ignored("sub/top.txt")

    def test_nested_file_is_scoped_to_its_directory(self):
        matcher = IgnoreMatcher()
        matcher.add_file("pkg", "*.tmp\n")
        assert matcher.is_ignored("pkg/a.tmp")
        assert not matcher.is_ignored("a.tmp")
        assert not matcher.is_ignored("pkgother/a.tmp")

    def test_deeper_file_overrides_parent(self):
        matcher = IgnoreMatcher()
        matcher.add_file("", "*.txt\n")
        matcher.add_file("docs", "!*.txt\n")
        assert matcher.is_ignored("notes.txt")
        assert not matcher.is_ignored("docs/notes.txt")

    def test_defaults_have_lowest_precedence(self):
        matcher = IgnoreMatcher(["*.cfg"])
        assert matcher.is_ignored("setup.cfg")
        matcher.add_file("", "!setup.cfg\n")
        assert not matcher.is_ignored("setup.cfg")
        assert matcher.is_ignored("other.cfg")

    def test_scopes_ordered_most_specific_first(self):
        matcher = IgnoreMatcher(["*.bak"])
        matcher.add_file("", "*.log\n")
        matcher.add_file("a/b", "*.tmp\n")
        bases = [scope.base for scope in matcher.scopes]
        assert bases[0] == "a/b"
        assert matcher.scopes[-1].is_default


class TestForConfig:
    def test_hidden_and_vcs_ignored_by_default(self):
        matcher = IgnoreMatcher.for_config(Config(github_token=""))
        assert matcher.is_ignored(".env")
        assert matcher.is_ignored(".git", is_dir=True)
        assert matcher.is_ignored("node_modules", is_dir=True)
        assert matcher.is_ignored("notes.txt~")
        assert not matcher.is_ignored("src/main.py")

    def test_show_hidden(self):
        matcher = IgnoreMatcher.for_config(Config(github_token="", show_hidden=True))
        assert not matcher.is_ignored(".env")
        # version-control metadata stays hidden
        assert matcher.is_ignored(".git", is_dir=True)

    @pytest.mark.parametrize("path", [".github/workflows/ci.yml", "src/.secret"])
    def test_hidden_at_any_depth(self, path):
        matcher = IgnoreMatcher.for_config(Config(github_token=""))
        assert matcher.is_ignored(path)
