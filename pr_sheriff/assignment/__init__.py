"""Reviewer assignment."""

from .engine import AssignmentEngine, create_assignment_engine
from .persistence import AssignmentPersistence
from .strategies import (
    AssignmentContext,
    AssignmentStrategy,
    InMemoryRotationStore,
    LeastBusyStrategy,
    RandomStrategy,
    RoundRobinStrategy,
    StrategyName,
)

__all__ = [
    "AssignmentContext",
    "AssignmentEngine",
    "AssignmentPersistence",
    "AssignmentStrategy",
    "InMemoryRotationStore",
    "LeastBusyStrategy",
    "RandomStrategy",
    "RoundRobinStrategy",
    "StrategyName",
    "create_assignment_engine",
]
