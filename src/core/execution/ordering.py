from typing import Dict, List, Protocol, Sequence

from src.core.models import Allocation, ExecutionStep, PayloadKind

PRECEDENCE_ORDERING = "PRECEDENCE"
CALLER_ORDERING = "CALLER_ORDER"

# Approvals settle before any pool action; exits free liquidity before joins.
PAYLOAD_PRECEDENCE: Dict[PayloadKind, int] = {
    PayloadKind.TOKEN_APPROVE_JOIN: 0,
    PayloadKind.TOKEN_APPROVE_EXIT: 0,
    PayloadKind.POOL_EXIT: 1,
    PayloadKind.POOL_JOIN: 2,
}


class OrderingStrategy(Protocol):
    name: str

    def order(self, allocations: Sequence[Allocation]) -> List[ExecutionStep]: ...


def _to_steps(allocations: Sequence[Allocation]) -> List[ExecutionStep]:
    return [
        ExecutionStep(
            position=index,
            pool_id=allocation.pool_id,
            status_label=allocation.status_label,
            payload=allocation.payload,
        )
        for index, allocation in enumerate(allocations, start=1)
    ]


class PrecedenceOrdering:
    """Global stable sort of the whole batch by payload precedence."""

    name = PRECEDENCE_ORDERING

    def order(self, allocations: Sequence[Allocation]) -> List[ExecutionStep]:
        ranked = sorted(allocations, key=lambda item: PAYLOAD_PRECEDENCE[item.payload.kind])
        return _to_steps(ranked)


class CallerOrdering:
    """Executes allocations exactly as delivered by the risk service."""

    name = CALLER_ORDERING

    def order(self, allocations: Sequence[Allocation]) -> List[ExecutionStep]:
        return _to_steps(allocations)


ORDERING_STRATEGIES = {
    PRECEDENCE_ORDERING: PrecedenceOrdering,
    CALLER_ORDERING: CallerOrdering,
}


def build_ordering_strategy(name: str) -> OrderingStrategy:
    try:
        return ORDERING_STRATEGIES[name.strip().upper()]()
    except KeyError as exc:
        raise ValueError(f"Unknown ordering policy: {name}") from exc
