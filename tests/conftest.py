"""Pytest configuration and fixtures for deconflict tests."""

import platform
import tempfile
from pathlib import Path

import pytest

from deconflict.core.log import ConsoleSink, setup_logger

CONFLICT = "Ideas.sync-conflict-20240501-120000-ABC1234.md"


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Console-only logging at debug level for the whole session."""
    setup_logger(
        log_root=Path(tempfile.gettempdir()) / "deconflict-tests",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user/project YAML and stray env vars out of the tests."""
    monkeypatch.setattr(
        "deconflict.core.yaml_settings.user_config_dir",
        lambda *args, **kwargs: str(tmp_path / "user-config"),
    )
    for name in (
        "WATCH_PATH", "SYNC_ROOT", "VERSIONS_DIR", "GIT_BIN", "SETTLE_DELAY",
        "DRY_RUN", "USE_UNION_MERGE", "ALLOWED_EXTENSIONS", "VERBOSE",
        "BACKUP_BEFORE_MERGE", "BACKUP_KEEP", "MERGE_LOG_PATH",
        "STABILITY_THRESHOLD", "CLEANUP_GRACE", "LOG_ROOT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def sync_tree(tmp_path):
    """A Syncthing folder with one pending conflict and its history.

    sync/
      Notes/Ideas.md
      Notes/Ideas.sync-conflict-20240501-120000-ABC1234.md
      .stversions/Notes/Ideas~20240501-110000.md
    """
    root = tmp_path / "sync"
    notes = root / "Notes"
    notes.mkdir(parents=True)
    (notes / "Ideas.md").write_text("one\ntwo\nthree\n")
    (notes / CONFLICT).write_text("one\ntwo\nthree\nfour\n")

    versions = root / ".stversions" / "Notes"
    versions.mkdir(parents=True)
    (versions / "Ideas~20240501-110000.md").write_text("one\ntwo\n")
    return root


@pytest.fixture
def fake_git(tmp_path):
    """Factory for a stand-in git that records its merge-file calls.

    Calls are appended to bin/calls.log. With markers=True the current
    file is overwritten with a single conflict block.
    """
    if platform.system() == "Windows":
        pytest.skip("POSIX-only test (fake git is a shell script)")

    def make(exit_code: int = 0, markers: bool = False) -> Path:
        bindir = tmp_path / "bin"
        bindir.mkdir(exist_ok=True)
        calls = bindir / "calls.log"
        write = (
            "printf '<<<<<<< ours\\nmine\\n=======\\ntheirs\\n"
            ">>>>>>> theirs\\n' > \"$1\""
            if markers else ":"
        )
        script = bindir / "git"
        script.write_text(
            "#!/bin/sh\n"
            "if [ \"$1\" = \"--version\" ]; then\n"
            "    echo 'git version 2.43.0'\n"
            "    exit 0\n"
            "fi\n"
            f"echo \"$*\" >> \"{calls}\"\n"
            "shift\n"
            "if [ \"$1\" = \"--union\" ]; then shift; fi\n"
            f"{write}\n"
            f"exit {exit_code}\n"
        )
        script.chmod(0o755)
        return script

    return make


@pytest.fixture
def make_settings(sync_tree):
    """Build Settings pointing at sync_tree with no waiting."""
    from deconflict.core.config import Settings

    def make(git: Path | str = "git", **overrides):
        values = {
            "watch_path": sync_tree / "Notes",
            "sync_root": sync_tree,
            "git_bin": str(git),
            "settle_delay": 0,
            "cleanup_grace": 0,
            "merge_log_path": str(sync_tree / "merge-log.md"),
        }
        values.update(overrides)
        return Settings(**values)

    return make


@pytest.fixture
def merge_calls():
    """Lines recorded by a fake git, one per merge-file call."""

    def read(git: Path) -> list[str]:
        calls = git.parent / "calls.log"
        if not calls.exists():
            return []
        return calls.read_text().splitlines()

    return read
