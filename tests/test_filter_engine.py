import pytest
from repomerge.adapters.local import LocalFilesystemProvider
from repomerge.core.filter_engine import ExtensionFilter, FilterEngine
from repomerge.core.ignore import IgnoreMatcher
from repomerge.core.models import BinaryState, FileEntry, LocalPath, Origin


def make_entry(path, is_binary=BinaryState.UNKNOWN):
    return FileEntry(path, 1, Origin.LOCAL, f"/tmp/{path}", is_binary=is_binary)


class TestExtensionFilter:
    def test_from_entries(self):
        entries = [make_entry("a.py"), make_entry("b.md"), make_entry("Makefile"), make_entry("c.py")]
        ext_filter = ExtensionFilter.from_entries(entries)
        assert ext_filter.items() == [("", True), ("md", True), ("py", True)]

    def test_denied_extensions_start_disabled(self):
        ext_filter = ExtensionFilter.from_entries([make_entry("logo.svg"), make_entry("a.py")], {"svg"})
        assert ext_filter.is_enabled("svg") is False
        assert ext_filter.is_enabled("py") is True

    def test_toggle_twice_restores(self):
        ext_filter = ExtensionFilter({"py": True})
        assert ext_filter.toggle("py") is False
        assert ext_filter.toggle("py") is True
        assert ext_filter == ExtensionFilter({"py": True})

    def test_unknown_extension_is_enabled(self):
        assert ExtensionFilter().is_enabled("rs") is True

    def test_all_enabled(self):
        ext_filter = ExtensionFilter({"py": True, "md": False})
        assert not ext_filter.all_enabled()
        ext_filter.set("md", True)
        assert ext_filter.all_enabled()
        assert "md" in ext_filter
        assert len(ext_filter) == 2


class TestFilterEngine:
    def test_sample_repo(self, sample_repo, config):
        provider = LocalFilesystemProvider(config)
        listing = provider.list(LocalPath(str(sample_repo)))
        engine = FilterEngine(config, sampler=provider.read_sample)

        result = engine.apply(listing.entries, None, listing.ignore_matcher)

        assert [entry.path for entry in result.visible] == [
            "README.md", "setup.py", "docs/guide.md",
            "src/__init__.py", "src/main.py", "src/utils/helpers.py",
            "tests/test_main.py",
        ]
        assert result.hidden_ignored == [".gitignore", "debug.log"]
        assert result.hidden_binary == ["image.png"]
        assert result.hidden_count == 3
        assert result.extension_filter.items() == [("md", True), ("py", True)]
        assert all(entry.included for entry in result.visible)

    def test_text_file_next_to_binary(self, tmp_path, config):
        (tmp_path / "a.py").write_text("print(1)\n")
        (tmp_path / "b.bin").write_bytes(b"\x00\x01\x02")
        (tmp_path / ".gitignore").write_text("*.log\n")
        provider = LocalFilesystemProvider(config)
        listing = provider.list(LocalPath(str(tmp_path)))

        result = FilterEngine(config, sampler=provider.read_sample).apply(
            listing.entries, None, listing.ignore_matcher)

        assert [entry.path for entry in result.visible] == ["a.py"]
        assert result.extension_filter.extensions() == ["py"]
        assert result.hidden_count == 2

    def test_existing_filter_is_applied(self, config):
        entries = [make_entry("a.py"), make_entry("b.md")]
        ext_filter = ExtensionFilter({"py": False, "md": True})

        result = FilterEngine(config).apply(entries, ext_filter, IgnoreMatcher())

        assert [entry.included for entry in result.visible] == [False, True]
        assert result.extension_filter is ext_filter

    def test_denied_extension_visible_but_excluded(self, config):
        entries = [make_entry("logo.svg"), make_entry("a.py")]
        result = FilterEngine(config).apply(entries, None, IgnoreMatcher())
        svg = result.visible[0]
        assert svg.path == "logo.svg"
        assert svg.included is False

    def test_unknown_binary_state_kept_without_sampler(self, config):
        entries = [make_entry("remote.py")]
        result = FilterEngine(config).apply(entries, None, IgnoreMatcher())
        assert result.visible[0].is_binary is BinaryState.UNKNOWN

    def test_already_classified_binary_is_hidden(self, config):
        entries = [make_entry("blob.dat", is_binary=BinaryState.BINARY), make_entry("a.py")]
        result = FilterEngine(config).apply(entries, None, IgnoreMatcher())
        assert result.hidden_binary == ["blob.dat"]

    @pytest.mark.parametrize("toggles", [1, 2, 3, 4])
    def test_repeated_extension_toggles(self, config, toggles):
        entries = [make_entry("a.py"), make_entry("b.py"), make_entry("c.md")]
        ext_filter = ExtensionFilter.from_entries(entries)
        for _ in range(toggles):
            ext_filter.toggle("py")

        result = FilterEngine(config).apply(entries, ext_filter, IgnoreMatcher())
        expected = toggles % 2 == 0
        assert [entry.included for entry in result.visible] == [expected, expected, True]
