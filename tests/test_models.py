import pytest
from repomerge.core.models import (
    BinaryState, Config, DestinationResult, FileEntry, LocalPath, MergeOutcome,
    MergeRequest, Origin, RemoteBlob, RemoteRepo, ToClipboard, ToFile, extension_of,
)
from repomerge.core.errors import ClipboardError


def make_entry(path, **kwargs):
    return FileEntry(path=path, size_bytes=10, origin=Origin.LOCAL, retrieval=f"/tmp/{path}", **kwargs)


class TestConfig:
    def test_default_config(self):
        config = Config(github_token="")
        assert config.token_encoding == "o200k_base"
        assert config.output_format == "delimited"
        assert config.default_output_path == "merged.txt"
        assert config.show_hidden is False
        assert ".gitignore" in config.ignore_filenames
        assert ".git/" in config.default_ignore_patterns
        assert "exe" in config.denied_extensions
        assert "py" not in config.denied_extensions

    def test_custom_config(self):
        config = Config(github_token="abc", output_format="xml", max_files=10)
        assert config.github_token == "abc"
        assert config.output_format == "xml"
        assert config.max_files == 10

    def test_mutable_defaults_are_not_shared(self):
        first = Config(github_token="")
        second = Config(github_token="")
        first.default_ignore_patterns.append("extra/")
        assert "extra/" not in second.default_ignore_patterns


class TestExtension:
    @pytest.mark.parametrize("path,expected", [
        ("src/main.py", "py"),
        ("README.MD", "md"),
        ("archive.tar.gz", "gz"),
        ("Makefile", ""),
        (".bashrc", ""),
        ("dir.v2/file", ""),
    ])
    def test_extension_of(self, path, expected):
        assert extension_of(path) == expected


class TestFileEntry:
    def test_defaults(self):
        entry = make_entry("src/app.js")
        assert entry.extension == "js"
        assert entry.name == "app.js"
        assert entry.is_binary is BinaryState.UNKNOWN
        assert entry.included is True
        assert entry.token_count is None

    def test_remote_retrieval(self):
        blob = RemoteBlob("owner", "repo", "main", "docs/x.md", "abc123")
        entry = FileEntry("x.md", 5, Origin.REMOTE, blob)
        assert entry.retrieval.path == "docs/x.md"
        assert entry.origin is Origin.REMOTE


class TestSourceReferences:
    def test_remote_repo_str(self):
        repo = RemoteRepo("owner", "repo", "main", "docs")
        assert repo.full_name == "owner/repo"
        assert str(repo) == "https://github.com/owner/repo/tree/main/docs"

    def test_remote_repo_without_ref(self):
        assert str(RemoteRepo("owner", "repo")) == "https://github.com/owner/repo"

    def test_references_compare_by_value(self):
        assert LocalPath("/a") == LocalPath("/a")
        assert RemoteRepo("o", "r", "main") != RemoteRepo("o", "r", "dev")


class TestMergeRequest:
    def test_requires_destination(self):
        with pytest.raises(ValueError, match="destination"):
            MergeRequest((make_entry("a.py"),), ())

    def test_rejects_empty_output_path(self):
        with pytest.raises(ValueError, match="Output file path"):
            MergeRequest((make_entry("a.py"),), (ToFile("  "),))

    def test_valid_request(self):
        request = MergeRequest((make_entry("a.py"),), (ToFile("out.txt"), ToClipboard()))
        assert len(request.destinations) == 2


class TestMergeOutcome:
    def test_partial_success(self):
        outcome = MergeOutcome("text", 1, [
            DestinationResult(ToFile("out.txt")),
            DestinationResult(ToClipboard(), ClipboardError("no clipboard")),
        ])
        assert outcome.partial is True
        assert outcome.succeeded is False
        assert len(outcome.errors()) == 1

    def test_full_success(self):
        outcome = MergeOutcome("text", 1, [DestinationResult(ToFile("out.txt"))])
        assert outcome.succeeded is True
        assert outcome.partial is False
        assert outcome.errors() == []
