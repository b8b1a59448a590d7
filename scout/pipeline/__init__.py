"""Scout research pipeline — batch orchestration, tracking and aggregation.

Components (leaves first):
    KnowledgeStore      — accepted records, unique by product_id
    BatchOrchestrator   — job state machine, concurrent dispatch, dismissal
    SelectionTracker    — what is already known or in flight
    AggregationSession  — new/duplicate partition, selection, commit, export
    DiscoverySession    — category and product selection feeding launches
"""

from .aggregation import AggregationSession, CommitOutcome, ExportOutcome, Partition, partition
from .discovery import DiscoverySession
from .interfaces import Destination
from .knowledge import KnowledgeStore
from .orchestrator import BatchOrchestrator
from .tracker import SelectionTracker

__all__ = [
    "AggregationSession",
    "BatchOrchestrator",
    "CommitOutcome",
    "Destination",
    "DiscoverySession",
    "ExportOutcome",
    "KnowledgeStore",
    "Partition",
    "SelectionTracker",
    "partition",
]
