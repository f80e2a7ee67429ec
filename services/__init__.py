"""Status aggregation and orchestration services."""

from services.orchestrator import Orchestrator, OperationOutcome, OperationResult
from services.status_aggregator import StatusAggregator

__all__ = ["Orchestrator", "OperationOutcome", "OperationResult", "StatusAggregator"]
