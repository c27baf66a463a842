import logging
from typing import Any, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3

from src.core.chain import FeeData, TransactionRequest, UnsignedTransaction, parse_wei

logger = logging.getLogger(__name__)


def load_account(private_key: str) -> LocalAccount:
    try:
        return Account.from_key(private_key.strip())
    except Exception as exc:
        raise ValueError("PRIVATE_KEY_INVALID") from exc


def derive_wallet_address(private_key: str) -> str:
    return load_account(private_key).address


class Web3ChainAdapter:
    """Chain-state queries over JSON-RPC plus local EIP-1559 signing."""

    def __init__(
        self,
        *,
        private_key: str,
        rpc_url: Optional[str] = None,
        web3: Optional[Any] = None,
    ) -> None:
        if web3 is None and not rpc_url:
            raise ValueError("RPC_URL_REQUIRED")
        self._account = load_account(private_key)
        self._web3 = web3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))

    @property
    def address(self) -> str:
        return self._account.address

    async def get_pending_nonce(self, address: str) -> int:
        return await self._web3.eth.get_transaction_count(
            Web3.to_checksum_address(address), "pending"
        )

    async def estimate_gas(self, request: TransactionRequest) -> int:
        return await self._web3.eth.estimate_gas(
            {
                "from": Web3.to_checksum_address(request.sender),
                "to": Web3.to_checksum_address(request.to),
                "data": request.data,
                "value": parse_wei(request.value),
            }
        )

    async def get_fee_data(self) -> FeeData:
        block = await self._web3.eth.get_block("latest")
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            gas_price = await self._web3.eth.gas_price
            return FeeData(max_fee_per_gas=gas_price, max_priority_fee_per_gas=gas_price)
        priority_fee = await self._web3.eth.max_priority_fee
        return FeeData(
            max_fee_per_gas=base_fee * 2 + priority_fee,
            max_priority_fee_per_gas=priority_fee,
        )

    def sign_transaction(self, transaction: UnsignedTransaction) -> str:
        if transaction.sender.lower() != self.address.lower():
            raise ValueError("SENDER_MISMATCH")
        signed = self._account.sign_transaction(
            {
                "type": 2,
                "chainId": transaction.chain_id,
                "nonce": transaction.nonce,
                "to": Web3.to_checksum_address(transaction.to),
                "data": transaction.data,
                "value": transaction.value,
                "gas": transaction.gas_limit,
                "maxFeePerGas": transaction.max_fee_per_gas,
                "maxPriorityFeePerGas": transaction.max_priority_fee_per_gas,
            }
        )
        logger.debug(
            "chain.transaction.signed",
            extra={"extra_fields": {"nonce": transaction.nonce, "to": transaction.to}},
        )
        return Web3.to_hex(signed.raw_transaction)
