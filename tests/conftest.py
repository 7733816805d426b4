import pytest
import tempfile
import shutil
from concurrent.futures import Executor, Future
from pathlib import Path
from unittest.mock import MagicMock

from repomerge.core.models import Config


@pytest.fixture
def temp_workspace():
    """Create a temporary directory for test files."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)


@pytest.fixture
def sample_repo(temp_workspace):
    """Create a sample repository structure for testing."""
    repo_root = temp_workspace / "sample_repo"
    repo_root.mkdir()

    # Create directory structure
    (repo_root / "src").mkdir()
    (repo_root / "src" / "utils").mkdir()
    (repo_root / "tests").mkdir()
    (repo_root / "docs").mkdir()
    (repo_root / "build").mkdir()
    (repo_root / ".git").mkdir()
    (repo_root / "node_modules").mkdir()

    # Create files
    (repo_root / "README.md").write_text("# Sample Repository\n\nTest repository for repomerge")
    (repo_root / "setup.py").write_text("from setuptools import setup\n\nsetup(name='sample')")
    (repo_root / "src" / "__init__.py").write_text("")
    (repo_root / "src" / "main.py").write_text("def main():\n    print('Hello, World!')")
    (repo_root / "src" / "utils" / "helpers.py").write_text("def helper():\n    return 42")
    (repo_root / "tests" / "test_main.py").write_text("def test_main():\n    assert True")
    (repo_root / "docs" / "guide.md").write_text("# Guide\n")
    (repo_root / "build" / "out.txt").write_text("generated")
    (repo_root / "debug.log").write_text("log line")
    (repo_root / ".git" / "config").write_text("[core]\n    repositoryformatversion = 0")
    (repo_root / "node_modules" / "package.json").write_text('{"name": "test"}')
    (repo_root / ".gitignore").write_text("*.log\nbuild/\n")

    # Create binary file
    (repo_root / "image.png").write_bytes(b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR')

    return repo_root


@pytest.fixture
def config():
    """Config without a GitHub token, independent of the environment."""
    return Config(github_token="")


@pytest.fixture
def token_counter():
    """Token counter stand-in: one token per whitespace-separated word."""
    counter = MagicMock()
    counter.count.side_effect = lambda content: len(content.decode('utf-8').split())
    counter.count_text.side_effect = lambda text: len(text.split())
    return counter


class ManualExecutor(Executor):
    """Executor whose jobs only run when the test says so."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_next(self):
        future, fn, args, kwargs = self.pending.pop(0)
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as e:
            future.set_exception(e)

    def run_all(self):
        while self.pending:
            self.run_next()

    def shutdown(self, wait=True, *, cancel_futures=False):
        self.pending.clear()


@pytest.fixture
def manual_executor():
    return ManualExecutor()
