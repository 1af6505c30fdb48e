"""Reconciliation pipeline nodes.

Validate → Settle → LocateOriginal → GuardNesting → LocateAncestor →
BackUp → Merge → Clean → Record, where any node may end the run early
with a skipped or ignored Outcome.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass

from pydantic_graph import BaseNode, End, Graph, GraphRunContext

from deconflict import markers
from deconflict.audit import CLEAN_MERGE, FAILED, AuditEntry, conflicts_marked
from deconflict.core.log import logger
from deconflict.fs.ancestor import AncestorNotFound, find_ancestor
from deconflict.fs.backup import backup_file
from deconflict.fs.classifier import classify, parse_conflict_name
from deconflict.fs.sweeper import remove_temp_files
from deconflict.git.merge import MergeToolError
from deconflict.pipeline.state import (
    Outcome,
    PipelineDeps,
    ReconcileState,
    Status,
)

Ctx = GraphRunContext[ReconcileState, PipelineDeps]


def _end(ctx: Ctx, status: Status, reason: str = "") -> End[Outcome]:
    return End(Outcome(
        status=status,
        reason=reason,
        artifact=ctx.state.artifact,
        exit_code=ctx.state.exit_code,
    ))


@dataclass
class Validate(BaseNode[ReconcileState, PipelineDeps, Outcome]):
    """Accept only allow-listed conflict files."""

    async def run(self, ctx: Ctx) -> Settle | End[Outcome]:
        name = ctx.state.artifact.name
        conflict = classify(name, ctx.deps.settings.allowed_extensions)
        if conflict is None:
            if parse_conflict_name(name) is not None:
                logger.debug("Ignoring {name}: extension not allowed", name=name)
                return _end(ctx, Status.IGNORED, "extension not allowed")
            return _end(ctx, Status.IGNORED, "not a conflict file")

        ctx.state.conflict = conflict
        return Settle()


@dataclass
class Settle(BaseNode[ReconcileState, PipelineDeps, Outcome]):
    """Give Syncthing time to finish writing the conflict file."""

    async def run(self, ctx: Ctx) -> LocateOriginal | End[Outcome]:
        delay = ctx.deps.settings.settle_delay
        if delay and not ctx.state.startup:
            await asyncio.sleep(delay / 1000)

        if not ctx.state.artifact.exists():
            logger.debug(
                "{name} vanished while settling", name=ctx.state.artifact.name
            )
            return _end(ctx, Status.IGNORED, "vanished")
        return LocateOriginal()


@dataclass
class LocateOriginal(BaseNode[ReconcileState, PipelineDeps, Outcome]):
    """Find the logical file and take its lock.

    The lock is held until the run ends, so conflict files of the same
    logical file are guarded, merged and cleaned one at a time.
    """

    async def run(self, ctx: Ctx) -> GuardNesting | End[Outcome]:
        state = ctx.state
        original = state.artifact.with_name(state.conflict.original_name)
        state.original = original
        await ctx.deps.locks.acquire(original)
        state.locked = True
        state.relative = os.path.relpath(
            original, ctx.deps.settings.sync_root.absolute()
        )

        if not original.is_file():
            logger.notice(
                "Skip: original file not found for {name}",
                name=state.artifact.name,
            )
            return _end(ctx, Status.SKIPPED, "original missing")
        return GuardNesting()


@dataclass
class GuardNesting(BaseNode[ReconcileState, PipelineDeps, Outcome]):
    """Refuse to merge into a file that still has conflict markers.

    Union merges never write markers, so they are exempt.
    """

    async def run(self, ctx: Ctx) -> LocateAncestor | End[Outcome]:
        if ctx.deps.settings.marker_strategy:
            content = ctx.state.original.read_text(
                encoding="utf-8", errors="replace"
            )
            if markers.has_conflict_markers(content):
                logger.warn(
                    "Skipping {file}: already contains conflict markers. "
                    "Resolve them manually first.",
                    file=ctx.state.relative,
                )
                return _end(ctx, Status.SKIPPED, "nested markers")
        return LocateAncestor()


@dataclass
class LocateAncestor(BaseNode[ReconcileState, PipelineDeps, Outcome]):
    async def run(self, ctx: Ctx) -> BackUp | End[Outcome]:
        settings = ctx.deps.settings
        try:
            ctx.state.ancestor = find_ancestor(
                ctx.state.original,
                ctx.state.conflict,
                settings.sync_root,
                settings.versions_dir,
            )
        except AncestorNotFound as e:
            logger.notice(
                "Skip: no ancestor for {file}",
                file=ctx.state.relative,
                reason=str(e),
            )
            return _end(ctx, Status.SKIPPED, "no ancestor")
        return BackUp()


@dataclass
class BackUp(BaseNode[ReconcileState, PipelineDeps, Outcome]):
    async def run(self, ctx: Ctx) -> Merge | Record:
        settings = ctx.deps.settings
        if settings.backup_before_merge and not settings.dry_run:
            try:
                ctx.state.backup = backup_file(
                    ctx.state.original, keep=settings.backup_keep
                )
            except OSError as e:
                return Record(error=f"Backup failed: {e}")
        return Merge()


@dataclass
class Merge(BaseNode[ReconcileState, PipelineDeps, Outcome]):
    async def run(self, ctx: Ctx) -> Clean | Record:
        state = ctx.state
        try:
            state.exit_code = await asyncio.to_thread(
                ctx.deps.merge_tool.merge,
                state.original,
                state.ancestor,
                state.artifact,
            )
        except (MergeToolError, OSError) as e:
            return Record(error=str(e))

        if state.exit_code > 0:
            try:
                regions = markers.parse(
                    state.original.read_text(encoding="utf-8", errors="replace")
                )
            except (OSError, ValueError) as e:
                logger.debug("Could not parse merge result", error=str(e))
            else:
                logger.debug(
                    "{file} has {count} conflict regions",
                    file=state.relative,
                    count=len(regions),
                    reported=state.exit_code,
                )
        return Clean()


@dataclass
class Clean(BaseNode[ReconcileState, PipelineDeps, Outcome]):
    """Delete the conflict file and the temp files Syncthing left."""

    async def run(self, ctx: Ctx) -> Record:
        settings = ctx.deps.settings
        if settings.dry_run:
            return Record()

        try:
            ctx.state.artifact.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            return Record(error=f"Could not remove conflict file: {e}")

        await remove_temp_files(
            ctx.state.artifact, grace=settings.cleanup_grace / 1000
        )
        return Record()


@dataclass
class Record(BaseNode[ReconcileState, PipelineDeps, Outcome]):
    """Report the attempt on the console and in the audit log."""

    error: str | None = None

    async def run(self, ctx: Ctx) -> End[Outcome]:
        state = ctx.state
        settings = ctx.deps.settings

        if self.error:
            status = FAILED
        elif state.exit_code == 0:
            status = CLEAN_MERGE
        else:
            status = conflicts_marked(state.exit_code)

        if settings.dry_run and not self.error:
            logger.info(
                "Dry run: would resolve {file}", file=state.relative
            )
            return _end(ctx, Status.DRY_RUN)

        entry = AuditEntry(
            status=status,
            file=state.relative,
            conflict=state.artifact.name,
            base=state.ancestor.name if state.ancestor else "",
            peer=state.conflict.peer,
            error=self.error,
        )
        if self.error:
            logger.error(
                "Failed {name}: {error}",
                name=state.artifact.name,
                error=self.error,
            )
        else:
            logger.info(
                "Resolved: {file} ({status})",
                file=state.relative,
                status=status,
                peer=state.conflict.peer,
            )

        if not settings.dry_run:
            ctx.deps.audit.append(entry)

        if self.error:
            return _end(ctx, Status.FAILED, self.error)
        return _end(ctx, Status.MERGED, status)


reconcile_graph = Graph(
    nodes=(
        Validate,
        Settle,
        LocateOriginal,
        GuardNesting,
        LocateAncestor,
        BackUp,
        Merge,
        Clean,
        Record,
    ),
    name="reconcile",
    state_type=ReconcileState,
    run_end_type=Outcome,
)
