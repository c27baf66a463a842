from collections import deque
from copy import deepcopy
from typing import Any, Deque, Dict, List, Optional, Union

from src.core.models import PortfolioSpec, ServiceEnvelope

ScriptedOutcome = Union[ServiceEnvelope, Exception]


class InMemoryRiskService:
    """Risk-service stand-in that keeps portfolios in memory and records every call.

    Submission outcomes can be scripted in order with `queue_submission`;
    unscripted submissions succeed.
    """

    def __init__(self, *, org_id: Optional[str] = None) -> None:
        self._org_id = org_id
        self.portfolios: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple[str, Dict[str, Any]]] = []
        self.submitted: List[str] = []
        self.failed_reports: List[Dict[str, str]] = []
        self._submission_outcomes: Deque[ScriptedOutcome] = deque()
        self.fail_next: Dict[str, ScriptedOutcome] = {}
        self.closed = False

    def queue_submission(self, outcome: ScriptedOutcome) -> None:
        self._submission_outcomes.append(outcome)

    def calls_named(self, name: str) -> List[Dict[str, Any]]:
        return [args for call_name, args in self.calls if call_name == name]

    def _scripted(self, name: str) -> Optional[ServiceEnvelope]:
        outcome = self.fail_next.pop(name, None)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def list_portfolios(self) -> ServiceEnvelope:
        self.calls.append(("list_portfolios", {}))
        scripted = self._scripted("list_portfolios")
        if scripted is not None:
            return scripted
        return ServiceEnvelope(
            status=True, res={"portfolios": [deepcopy(item) for item in self.portfolios.values()]}
        )

    async def create_portfolio(self, spec: PortfolioSpec) -> ServiceEnvelope:
        query = spec.to_create_query()
        self.calls.append(("create_portfolio", query))
        scripted = self._scripted("create_portfolio")
        if scripted is not None:
            return scripted
        record = {
            "id": spec.portfolio_id,
            "orgId": self._org_id or spec.org_id,
            "isActive": False,
            "name": spec.name,
            "chainId": spec.chain_id,
            "walletAddr": spec.wallet_addr,
        }
        self.portfolios[spec.portfolio_id] = record
        return ServiceEnvelope(status=True, res=deepcopy(record))

    async def activate_portfolio(self, *, portfolio_id: str) -> ServiceEnvelope:
        self.calls.append(("activate_portfolio", {"portfolioId": portfolio_id}))
        scripted = self._scripted("activate_portfolio")
        if scripted is not None:
            return scripted
        record = self.portfolios.get(portfolio_id)
        if record is None:
            return ServiceEnvelope(status=False, error="PORTFOLIO_NOT_FOUND")
        record["isActive"] = True
        return ServiceEnvelope(status=True, res={"portfolioId": portfolio_id, "isActive": True})

    async def submit_signed_transaction(self, *, signed_tx: str) -> ServiceEnvelope:
        self.calls.append(("submit_signed_transaction", {"signedTx": signed_tx}))
        self.submitted.append(signed_tx)
        if not self._submission_outcomes:
            return ServiceEnvelope(status=True, res={"txHash": f"0x{len(self.submitted):064x}"})
        outcome = self._submission_outcomes.popleft()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def mark_transaction_failed(self, *, sender: str, to: str, data: str) -> ServiceEnvelope:
        report = {"from": sender, "to": to, "data": data}
        self.calls.append(("mark_transaction_failed", report))
        self.failed_reports.append(report)
        scripted = self._scripted("mark_transaction_failed")
        if scripted is not None:
            return scripted
        return ServiceEnvelope(status=True)


    async def aclose(self) -> None:
        self.closed = True
