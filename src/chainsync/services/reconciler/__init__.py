"""Entity reconciliation module."""

from chainsync.services.reconciler.base import (
    EntityReconciler,
    FieldCorrection,
    MergeReport,
    Outcome,
    Record,
    Refreshable,
    gather_tolerant,
)

__all__ = [
    "EntityReconciler",
    "FieldCorrection",
    "MergeReport",
    "Outcome",
    "Record",
    "Refreshable",
    "gather_tolerant",
]
