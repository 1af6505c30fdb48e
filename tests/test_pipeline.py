"""End-to-end tests for the reconciliation pipeline."""

import asyncio
import platform
import shutil
from unittest.mock import patch

import pytest

from deconflict.pipeline import Reconciler, Status

CONFLICT = "Ideas.sync-conflict-20240501-120000-ABC1234.md"
ANCESTOR = "Ideas~20240501-110000.md"


def _handle(settings, path, **kwargs):
    return asyncio.run(Reconciler(settings).handle(path, **kwargs))


def test_clean_merge(sync_tree, fake_git, make_settings, merge_calls):
    git = fake_git(exit_code=0)
    conflict = sync_tree / "Notes" / CONFLICT
    original = sync_tree / "Notes" / "Ideas.md"
    ancestor = sync_tree / ".stversions" / "Notes" / ANCESTOR

    outcome = _handle(make_settings(git=git), conflict)

    assert outcome.status == Status.MERGED
    assert outcome.reason == "Clean Merge"
    assert outcome.exit_code == 0
    assert merge_calls(git) == [f"merge-file {original} {ancestor} {conflict}"]
    assert not conflict.exists()
    assert len(list(original.parent.glob("Ideas.md.*.bak"))) == 1

    log = (sync_tree / "merge-log.md").read_text()
    assert "- **Status:** Clean Merge" in log
    assert "- **File:** `Notes/Ideas.md`" in log
    assert f"- **Conflict:** `{CONFLICT}`" in log
    assert f"- **Base:** `{ANCESTOR}`" in log
    assert "- **Peer:** `ABC1234`" in log


def test_conflicts_marked(sync_tree, fake_git, make_settings):
    git = fake_git(exit_code=1, markers=True)
    conflict = sync_tree / "Notes" / CONFLICT

    outcome = _handle(make_settings(git=git), conflict)

    assert outcome.status == Status.MERGED
    assert outcome.reason == "Conflicts Marked (1)"
    assert "<<<<<<<" in (sync_tree / "Notes" / "Ideas.md").read_text()
    assert not conflict.exists()
    log = (sync_tree / "merge-log.md").read_text()
    assert "- **Status:** Conflicts Marked (1)" in log


def test_disallowed_extension_is_untouched(
    sync_tree, fake_git, make_settings, merge_calls
):
    git = fake_git()
    conflict = sync_tree / "Notes" / CONFLICT
    settings = make_settings(git=git, allowed_extensions=["txt"])

    outcome = _handle(settings, conflict)

    assert outcome.status == Status.IGNORED
    assert outcome.reason == "extension not allowed"
    assert conflict.exists()
    assert merge_calls(git) == []
    assert not (sync_tree / "merge-log.md").exists()
    assert list((sync_tree / "Notes").glob("*.bak")) == []


def test_non_conflict_file_is_ignored(sync_tree, fake_git, make_settings):
    outcome = _handle(
        make_settings(git=fake_git()), sync_tree / "Notes" / "Ideas.md"
    )

    assert outcome.status == Status.IGNORED
    assert outcome.reason == "not a conflict file"


def test_directory_is_ignored(sync_tree, fake_git, make_settings):
    folder = sync_tree / "Notes" / "Old.sync-conflict-20240501-120000-ABC1234.md"
    folder.mkdir()

    outcome = _handle(make_settings(git=fake_git()), folder)

    assert outcome.status == Status.IGNORED
    assert outcome.reason == "not a regular file"


def test_nested_markers_are_refused(
    sync_tree, fake_git, make_settings, merge_calls
):
    git = fake_git()
    original = sync_tree / "Notes" / "Ideas.md"
    original.write_text("<<<<<<< a\nx\n=======\ny\n>>>>>>> b\n")
    conflict = sync_tree / "Notes" / CONFLICT

    outcome = _handle(make_settings(git=git), conflict)

    assert outcome.status == Status.SKIPPED
    assert outcome.reason == "nested markers"
    assert conflict.exists()
    assert merge_calls(git) == []


def test_union_merge_ignores_existing_markers(
    sync_tree, fake_git, make_settings, merge_calls
):
    git = fake_git()
    (sync_tree / "Notes" / "Ideas.md").write_text("<<<<<<< a\nx\n")
    conflict = sync_tree / "Notes" / CONFLICT

    outcome = _handle(make_settings(git=git, use_union_merge=True), conflict)

    assert outcome.status == Status.MERGED
    call, = merge_calls(git)
    assert call.startswith("merge-file --union ")


def test_missing_original(sync_tree, fake_git, make_settings, merge_calls):
    git = fake_git()
    (sync_tree / "Notes" / "Ideas.md").unlink()
    conflict = sync_tree / "Notes" / CONFLICT

    outcome = _handle(make_settings(git=git), conflict)

    assert outcome.status == Status.SKIPPED
    assert outcome.reason == "original missing"
    assert conflict.exists()
    assert merge_calls(git) == []


def test_no_ancestor(sync_tree, fake_git, make_settings, merge_calls):
    git = fake_git()
    (sync_tree / ".stversions" / "Notes" / ANCESTOR).unlink()
    conflict = sync_tree / "Notes" / CONFLICT

    outcome = _handle(make_settings(git=git), conflict)

    assert outcome.status == Status.SKIPPED
    assert outcome.reason == "no ancestor"
    assert conflict.exists()
    assert merge_calls(git) == []
    assert not (sync_tree / "merge-log.md").exists()


def test_dry_run_changes_nothing(
    sync_tree, fake_git, make_settings, merge_calls
):
    git = fake_git()
    conflict = sync_tree / "Notes" / CONFLICT
    before = {
        p: p.read_bytes() for p in sync_tree.rglob("*") if p.is_file()
    }

    outcome = _handle(make_settings(git=git, dry_run=True), conflict)

    assert outcome.status == Status.DRY_RUN
    assert merge_calls(git) == []
    after = {
        p: p.read_bytes() for p in sync_tree.rglob("*") if p.is_file()
    }
    assert after == before


def test_temp_files_removed_after_merge(sync_tree, fake_git, make_settings):
    notes = sync_tree / "Notes"
    temp = notes / f"~syncthing~{CONFLICT}.tmp"
    temp.write_text("")
    unrelated = notes / "~syncthing~Other.md.tmp"
    unrelated.write_text("")

    outcome = _handle(make_settings(git=fake_git()), notes / CONFLICT)

    assert outcome.status == Status.MERGED
    assert not temp.exists()
    assert unrelated.exists()


def test_backup_can_be_disabled(sync_tree, fake_git, make_settings):
    settings = make_settings(git=fake_git(), backup_before_merge=False)

    _handle(settings, sync_tree / "Notes" / CONFLICT)

    assert list((sync_tree / "Notes").glob("*.bak")) == []


def test_concurrent_events_merge_once(
    sync_tree, fake_git, make_settings, merge_calls
):
    git = fake_git()
    reconciler = Reconciler(make_settings(git=git, settle_delay=50))
    conflict = sync_tree / "Notes" / CONFLICT

    async def twice():
        return await asyncio.gather(
            reconciler.handle(conflict), reconciler.handle(conflict)
        )

    first, second = asyncio.run(twice())

    assert first.status == Status.MERGED
    assert second.status == Status.IGNORED
    assert second.reason == "already processing"
    assert len(merge_calls(git)) == 1
    assert len(reconciler.processing) == 0


@pytest.mark.skipif(
    platform.system() == "Windows", reason="fake git is a shell script"
)
def test_conflicts_of_one_file_merge_in_turn(
    sync_tree, make_settings, tmp_path
):
    """Each merge must see the result of the one before it."""
    slow_git = tmp_path / "slow-git"
    slow_git.write_text(
        "#!/bin/sh\n"
        "shift\n"
        "current=\"$(cat \"$1\")\"\n"
        "sleep 0.3\n"
        "{ printf '%s\\n' \"$current\"; tail -n 1 \"$3\"; } > \"$1\"\n"
    )
    slow_git.chmod(0o755)
    notes = sync_tree / "Notes"
    (notes / CONFLICT).unlink()
    first = notes / "Ideas.sync-conflict-20240501-120000-AAAAAAA.md"
    second = notes / "Ideas.sync-conflict-20240501-120000-BBBBBBB.md"
    first.write_text("one\ntwo\nthree\nfrom-peer-A\n")
    second.write_text("one\ntwo\nthree\nfrom-peer-B\n")
    reconciler = Reconciler(make_settings(git=slow_git))

    async def both():
        return await asyncio.gather(
            reconciler.handle(first), reconciler.handle(second)
        )

    outcomes = asyncio.run(both())

    assert [o.status for o in outcomes] == [Status.MERGED, Status.MERGED]
    content = (notes / "Ideas.md").read_text()
    assert "from-peer-A\n" in content
    assert "from-peer-B\n" in content
    assert content.startswith("one\ntwo\nthree\n")
    assert not first.exists()
    assert not second.exists()
    assert len(reconciler.deps.locks) == 0


def test_merge_tool_error_fails_attempt(sync_tree, fake_git, make_settings):
    settings = make_settings(git=fake_git(exit_code=255))
    reconciler = Reconciler(settings)
    conflict = sync_tree / "Notes" / CONFLICT

    outcome = asyncio.run(reconciler.handle(conflict))

    assert outcome.status == Status.FAILED
    assert "exit 255" in outcome.reason
    assert conflict.exists()
    assert len(reconciler.processing) == 0
    log = (sync_tree / "merge-log.md").read_text()
    assert "- **Status:** Failed" in log
    assert "- **Error:** " in log


def test_missing_merge_tool(sync_tree, make_settings, tmp_path):
    settings = make_settings(git=tmp_path / "no-such-git")
    conflict = sync_tree / "Notes" / CONFLICT

    outcome = _handle(settings, conflict)

    assert outcome.status == Status.FAILED
    assert conflict.exists()


def test_unexpected_error_is_contained(sync_tree, fake_git, make_settings):
    reconciler = Reconciler(make_settings(git=fake_git()))
    conflict = sync_tree / "Notes" / CONFLICT

    with patch(
        "deconflict.pipeline.reconciler.reconcile_graph.run",
        side_effect=RuntimeError("boom"),
    ):
        outcome = asyncio.run(reconciler.handle(conflict))

    assert outcome.status == Status.FAILED
    assert outcome.reason == "boom"
    assert len(reconciler.processing) == 0


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_real_git_merges_both_edits(sync_tree, make_settings):
    notes = sync_tree / "Notes"
    (sync_tree / ".stversions" / "Notes" / ANCESTOR).write_text(
        "1\n2\n3\n4\n5\n"
    )
    (notes / "Ideas.md").write_text("1 local\n2\n3\n4\n5\n")
    (notes / CONFLICT).write_text("1\n2\n3\n4\n5 remote\n")

    outcome = _handle(make_settings(), notes / CONFLICT)

    assert outcome.status == Status.MERGED
    assert outcome.reason == "Clean Merge"
    assert (notes / "Ideas.md").read_text() == "1 local\n2\n3\n4\n5 remote\n"
    assert not (notes / CONFLICT).exists()
