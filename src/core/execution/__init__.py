from src.core.execution.engine import (
    DEFAULT_SETTLEMENT_DELAY_SECONDS,
    PayloadExecutionEngine,
    StepExecutionError,
)
from src.core.execution.ordering import (
    CALLER_ORDERING,
    PAYLOAD_PRECEDENCE,
    PRECEDENCE_ORDERING,
    CallerOrdering,
    OrderingStrategy,
    PrecedenceOrdering,
    build_ordering_strategy,
)

__all__ = [
    "CALLER_ORDERING",
    "CallerOrdering",
    "DEFAULT_SETTLEMENT_DELAY_SECONDS",
    "OrderingStrategy",
    "PAYLOAD_PRECEDENCE",
    "PRECEDENCE_ORDERING",
    "PayloadExecutionEngine",
    "PrecedenceOrdering",
    "StepExecutionError",
    "build_ordering_strategy",
]
