"""Tests for the working directory and environment stacks."""

import os
import threading
from pathlib import Path

import pytest

from pysh.context import ContextStack
from pysh.errors import DirectoryNotFound
from pysh.models import ContextFrame


@pytest.fixture
def dirs(tmp_path):
    start = tmp_path / "start"
    one = tmp_path / "one"
    two = tmp_path / "two"
    for path in (start, one, two):
        path.mkdir()
    return start.resolve(), one.resolve(), two.resolve()


class TestDirectories:
    """Tests for directory operations."""

    def test_defaults_to_process_cwd(self):
        """Test a stack without an initial directory starts at os.getcwd()."""
        assert ContextStack().working_directory() == Path(os.getcwd()).resolve()

    def test_dir_pushing(self, dirs):
        """Test pushd/popd restore each prior directory, and popd at the bottom is a no-op."""
        start, one, two = dirs
        stack = ContextStack(start)

        assert stack.working_directory() == start
        stack.pop_directory()
        assert stack.working_directory() == start
        stack.push_directory(one)
        assert stack.working_directory() == one
        stack.pop_directory()
        assert stack.working_directory() == start
        stack.push_directory(one)
        stack.push_directory(two)
        assert stack.working_directory() == two
        stack.pop_directory()
        assert stack.working_directory() == one
        stack.pop_directory()
        assert stack.working_directory() == start
        stack.pop_directory()
        assert stack.working_directory() == start

    def test_deep_nesting(self, dirs):
        """Test push then pop restores the directory at any depth."""
        start, one, two = dirs
        stack = ContextStack(start)
        pushed = [one, two] * 10

        for target in pushed:
            stack.push_directory(target)
        for expected in reversed([start, *pushed[:-1]]):
            assert stack.pop_directory() == expected

    def test_change_directory_replaces_top(self, dirs):
        """Test cd does not push a frame."""
        start, one, two = dirs
        stack = ContextStack(start)

        stack.push_directory(one)
        stack.change_directory(two)
        assert stack.working_directory() == two
        assert stack.depth == 2
        assert stack.pop_directory() == start

    def test_change_directory_missing(self, dirs):
        """Test a missing directory raises and leaves the stack alone."""
        start, _, _ = dirs
        stack = ContextStack(start)

        with pytest.raises(DirectoryNotFound):
            stack.change_directory("/no/such/path")
        assert stack.working_directory() == start

    def test_push_directory_missing(self, dirs):
        """Test a failed pushd does not push."""
        start, _, _ = dirs
        stack = ContextStack(start)

        with pytest.raises(DirectoryNotFound):
            stack.push_directory("/no/such/path")
        assert stack.depth == 1

    def test_file_is_not_a_directory(self, dirs, tmp_path):
        """Test a regular file is rejected."""
        (tmp_path / "file").write_text("")
        stack = ContextStack(dirs[0])

        with pytest.raises(DirectoryNotFound):
            stack.change_directory(tmp_path / "file")

    def test_relative_and_dotdot(self, dirs):
        """Test relative targets resolve against the stack, not the process cwd."""
        start, one, _ = dirs
        stack = ContextStack(start)

        assert stack.change_directory("../one") == one
        assert stack.change_directory("..") == one.parent

    def test_canonical_path(self, dirs, tmp_path):
        """Test symlinks are resolved."""
        link = tmp_path / "link"
        link.symlink_to(dirs[1])
        stack = ContextStack(dirs[0])

        assert stack.change_directory(link) == dirs[1]

    def test_cd_home(self, dirs):
        """Test cd without a target goes home."""
        stack = ContextStack(dirs[0])
        assert stack.change_directory() == Path.home().resolve()

    def test_relative_path(self, dirs):
        """Test paths are built under the current directory."""
        stack = ContextStack(dirs[0])
        assert stack.relative_path("a", "b") == dirs[0] / "a" / "b"

    def test_host_cwd_untouched(self, dirs):
        """Test the stack never changes the process's own directory."""
        before = os.getcwd()
        stack = ContextStack(dirs[0])
        stack.push_directory(dirs[1])
        assert os.getcwd() == before

    def test_concurrent_push_pop(self, dirs):
        """Test balanced pushes and pops from many threads leave one frame."""
        start, one, _ = dirs
        stack = ContextStack(start)

        def worker():
            for _ in range(200):
                stack.push_directory(one)
                stack.pop_directory()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert stack.depth == 1
        assert stack.working_directory() == start


class TestEnvironment:
    """Tests for environment overlays."""

    def test_env_pushing(self, dirs):
        """Test overlays stack and unwind, and popping an empty stack is a no-op."""
        stack = ContextStack(dirs[0])

        assert stack.env() == {}
        stack.push_environment({"a": "b"})
        assert stack.env() == {"a": "b"}
        stack.pop_environment()
        assert stack.env() == {}
        stack.push_environment({"a": "b"})
        stack.push_environment({"a": "c"})
        assert stack.env() == {"a": "c"}
        stack.pop_environment()
        assert stack.env() == {"a": "b"}
        stack.pop_environment()
        assert stack.env() == {}
        stack.pop_environment()
        assert stack.env() == {}

    def test_overlays_merge(self, dirs):
        """Test a push keeps keys from the frame below."""
        stack = ContextStack(dirs[0])
        stack.push_environment({"a": "b"})
        stack.push_environment({"x": "y"})
        assert stack.env() == {"a": "b", "x": "y"}

    def test_child_environment_inherits(self, dirs, monkeypatch):
        """Test the child sees the inherited environment plus the overlay."""
        monkeypatch.setenv("PYSH_INHERITED", "yes")
        stack = ContextStack(dirs[0])
        stack.push_environment({"PYSH_INHERITED": "overridden", "EXTRA": "1"})

        child = stack.child_environment()
        assert child["PYSH_INHERITED"] == "overridden"
        assert child["EXTRA"] == "1"
        assert "PATH" in child
        assert os.environ["PYSH_INHERITED"] == "yes"

    def test_env_returns_copy(self, dirs):
        """Test mutating the returned mapping does not change the stack."""
        stack = ContextStack(dirs[0])
        stack.env()["a"] = "b"
        assert stack.env() == {}

    def test_directory_and_environment_independent(self, dirs):
        """Test popping the environment leaves the directory stack alone."""
        start, one, _ = dirs
        stack = ContextStack(start)
        stack.push_directory(one)
        stack.push_environment({"a": "b"})

        stack.pop_environment()
        assert stack.working_directory() == one

    def test_frame_snapshot(self, dirs):
        """Test frame() captures both halves and later changes do not leak in."""
        start, one, _ = dirs
        stack = ContextStack(start)
        stack.push_environment({"a": "b"})
        frame = stack.frame()

        stack.push_directory(one)
        stack.push_environment({"a": "c"})

        assert frame == ContextFrame(start, {"a": "b"})
