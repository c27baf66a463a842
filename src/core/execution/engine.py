import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence

from src.core.chain import ChainAdapter, TransactionRequest, build_signed_transaction
from src.core.execution.ordering import OrderingStrategy, PrecedenceOrdering
from src.core.models import Allocation, BatchResult, ExecutionStep, ServiceEnvelope
from src.core.risk_service import RiskServiceClient

logger = logging.getLogger(__name__)

DEFAULT_SETTLEMENT_DELAY_SECONDS = 5.0


class StepExecutionError(RuntimeError):
    pass


class PayloadExecutionEngine:
    """Signs and submits one rebalance batch, strictly in sequence.

    The first failing step halts the batch. Step failures never escape
    `execute_batch`; they are returned as a failed `BatchResult`.
    """

    def __init__(
        self,
        *,
        chain: ChainAdapter,
        client: RiskServiceClient,
        ordering: OrderingStrategy | None = None,
        settlement_delay_seconds: float = DEFAULT_SETTLEMENT_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._chain = chain
        self._client = client
        self._ordering = ordering or PrecedenceOrdering()
        self._settlement_delay_seconds = max(0.0, settlement_delay_seconds)
        self._sleep = sleep

    @property
    def ordering(self) -> OrderingStrategy:
        return self._ordering

    def plan(self, allocations: Sequence[Allocation]) -> List[ExecutionStep]:
        return self._ordering.order(allocations)

    async def execute_batch(self, allocations: Sequence[Allocation]) -> BatchResult:
        steps = self.plan(allocations)
        total = len(steps)
        logger.info(
            "execution.batch.started",
            extra={"extra_fields": {"steps_total": total, "ordering": self._ordering.name}},
        )

        for step in steps:
            try:
                envelope = await self._execute_step(step)
            except Exception as exc:
                await self._report_failure(step)
                logger.error(
                    "execution.step.failed",
                    extra={"extra_fields": {**_step_fields(step), "error": str(exc)}},
                )
                return BatchResult.failure(step=step, steps_total=total, error=str(exc))

            logger.info(
                "execution.step.succeeded",
                extra={"extra_fields": {**_step_fields(step), "result": envelope.res}},
            )
            if step.kind.is_pool_action and self._settlement_delay_seconds > 0:
                await self._sleep(self._settlement_delay_seconds)

        logger.info("execution.batch.succeeded", extra={"extra_fields": {"steps_total": total}})
        return BatchResult.success(steps_total=total)

    async def _execute_step(self, step: ExecutionStep) -> ServiceEnvelope:
        payload = step.payload
        request = TransactionRequest(
            sender=self._chain.address,
            to=payload.to,
            data=payload.data,
            value=payload.value,
            chain_id=payload.chain_id,
        )
        signed_tx = await build_signed_transaction(self._chain, request)
        envelope = await self._client.submit_signed_transaction(signed_tx=signed_tx)
        if not envelope.status:
            raise StepExecutionError(f"SUBMISSION_REJECTED: {envelope.error}")
        return envelope

    async def _report_failure(self, step: ExecutionStep) -> None:
        try:
            await self._client.mark_transaction_failed(
                sender=self._chain.address, to=step.payload.to, data=step.payload.data
            )
        except Exception as exc:
            logger.warning(
                "execution.mark_failed.error",
                extra={"extra_fields": {**_step_fields(step), "error": str(exc)}},
            )


def _step_fields(step: ExecutionStep) -> dict:
    return {
        "position": step.position,
        "pool_id": step.pool_id,
        "kind": step.kind.value,
        "status_label": step.status_label,
    }
