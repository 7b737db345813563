"""
Batch pipeline: checkpoint-driven coordinator.
"""

from lottery_indexer.pipeline.coordinator import BatchCoordinator, CoordinatorState, RunStats

__all__ = ["BatchCoordinator", "CoordinatorState", "RunStats"]
