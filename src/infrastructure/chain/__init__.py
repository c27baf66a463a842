from src.infrastructure.chain.web3_adapter import (
    Web3ChainAdapter,
    derive_wallet_address,
    load_account,
)

__all__ = ["Web3ChainAdapter", "derive_wallet_address", "load_account"]
