import os
import stat
import sys
from pathlib import Path
import pytest

# Ensure we can import modules from src/ at collection time
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_executable(directory: Path, name: str, body: str = "#!/bin/sh\nexit 0\n") -> Path:
    """Create a shell script in ``directory`` with the execute bits set."""
    path = directory / name
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture()
def sandbox(tmp_path, monkeypatch):
    # Work in an isolated temp directory
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    # Prune environment to a minimal safe set
    safe_env = {
        "PATH": os.environ.get("PATH", "/usr/bin:/bin"),
        "HOME": str(tmp_path),
        "LANG": os.environ.get("LANG", "C"),
        "LC_ALL": os.environ.get("LC_ALL", "C"),
        "TERM": os.environ.get("TERM", "dumb"),
    }
    monkeypatch.setenv("PATH", safe_env["PATH"])  # at least PATH is guaranteed
    monkeypatch.setenv("HOME", safe_env["HOME"])
    monkeypatch.delenv("HISTFILE", raising=False)
    # Return path and env dict for session creation
    return work, safe_env


@pytest.fixture()
def session(sandbox):
    from session import ShellSession
    _, safe_env = sandbox
    sess = ShellSession(inherit_env=False)
    sess.env.update(safe_env)
    return sess


@pytest.fixture()
def bin_dir(tmp_path):
    """A private directory of fake executables for search-path tests."""
    d = tmp_path / "bin"
    d.mkdir()
    return d
