"""Watch-progress state: schema history, reconciliation and helpers."""

from watchstate.watched.reconciler import ReconcileReport, Reconciler
from watchstate.watched.store import VideoProgress, build_progress_chain

__all__ = ["ReconcileReport", "Reconciler", "VideoProgress", "build_progress_chain"]
