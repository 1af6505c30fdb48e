"""Conflict reconciliation pipeline."""

from deconflict.pipeline.reconciler import Reconciler
from deconflict.pipeline.state import (
    FileLocks,
    Outcome,
    PipelineDeps,
    ProcessingSet,
    ReconcileState,
    Status,
)

__all__ = [
    "FileLocks",
    "Outcome",
    "PipelineDeps",
    "ProcessingSet",
    "ReconcileState",
    "Reconciler",
    "Status",
]
