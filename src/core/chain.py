from typing import Optional, Protocol, Union

from pydantic import BaseModel, Field


class TransactionRequest(BaseModel):
    sender: str = Field(description="Signing wallet address.")
    to: str
    data: str = "0x"
    value: Optional[Union[int, str]] = 0
    chain_id: int


class FeeData(BaseModel):
    max_fee_per_gas: int
    max_priority_fee_per_gas: int


class UnsignedTransaction(BaseModel):
    """EIP-1559 transaction record handed to the signer."""

    sender: str
    to: str
    data: str
    value: int
    chain_id: int
    gas_limit: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    nonce: int


class ChainAdapter(Protocol):
    @property
    def address(self) -> str: ...

    async def get_pending_nonce(self, address: str) -> int: ...

    async def estimate_gas(self, request: TransactionRequest) -> int: ...

    async def get_fee_data(self) -> FeeData: ...

    def sign_transaction(self, transaction: UnsignedTransaction) -> str: ...


def parse_wei(value: Union[int, str, None]) -> int:
    """Accept decimal or 0x-prefixed wei amounts as delivered by the risk service."""
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    text = value.strip()
    return int(text, 16) if text.lower().startswith("0x") else int(text)


async def build_signed_transaction(
    adapter: ChainAdapter, request: TransactionRequest, *, nonce: Optional[int] = None
) -> str:
    """Resolve nonce, gas and fees for `request`, then sign it.

    The nonce is read from the pending view on every call unless given.
    """
    resolved_nonce = nonce if nonce is not None else await adapter.get_pending_nonce(request.sender)
    gas_limit = await adapter.estimate_gas(request)
    fees = await adapter.get_fee_data()
    transaction = UnsignedTransaction(
        sender=request.sender,
        to=request.to,
        data=request.data,
        value=parse_wei(request.value),
        chain_id=request.chain_id,
        gas_limit=gas_limit,
        max_fee_per_gas=fees.max_fee_per_gas,
        max_priority_fee_per_gas=fees.max_priority_fee_per_gas,
        nonce=resolved_nonce,
    )
    return adapter.sign_transaction(transaction)
