"""Workflow orchestration for primary verification runs and reconciliation."""

from .reconcile import ReconciliationPass
from .service import BatchRunner, RunAborted

__all__ = ["BatchRunner", "ReconciliationPass", "RunAborted"]
