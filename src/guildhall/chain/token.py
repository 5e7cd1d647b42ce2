"""ERC-20 token gateway — holder checks and withdrawals against a live chain.

Implements the FungibleTransfer protocol on top of an ERC-20 contract:

- balance_of(identity) calls ``balanceOf`` (read-only, no gas).
- transfer(to, amount) builds a ``transfer`` call, signs it locally with the
  registry's own key, sends it, and waits for one confirmation. The boolean
  result is the receipt status.

The registry only ever asks "is this balance positive?" and "did the
withdrawal go through?". Decimals, allowances, and fee accounting are not
handled here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

ERC20_ABI: list[dict[str, Any]] = [
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


@dataclass(frozen=True)
class TransferReceipt:
    """A confirmed (or reverted) token transfer."""
    tx_hash: str
    block_number: int
    succeeded: bool
    to: str
    amount: int
    timestamp_utc: str


class ERC20TokenGateway:
    """FungibleTransfer backed by an ERC-20 contract.

    Usage:
        token = ERC20TokenGateway.from_rpc(rpc_url, token_address, private_key)
        token.balance_of("0xabc...")
        token.transfer("0xdef...", 10)
    """

    def __init__(
        self,
        w3: Any,
        token_address: str,
        account: Any = None,
        gas: int = 100_000,
        receipt_timeout: int = 300,
    ) -> None:
        self._w3 = w3
        self._contract = w3.eth.contract(
            address=w3.to_checksum_address(token_address), abi=ERC20_ABI,
        )
        self._account = account
        self._gas = gas
        self._receipt_timeout = receipt_timeout
        self.receipts: list[TransferReceipt] = []

    @classmethod
    def from_rpc(
        cls,
        rpc_url: str,
        token_address: str,
        private_key: Optional[str] = None,
        **kwargs: Any,
    ) -> ERC20TokenGateway:
        """Connect over HTTP. Without a key the gateway is read-only."""
        from web3 import Web3, HTTPProvider
        from eth_account import Account

        w3 = Web3(HTTPProvider(rpc_url))
        account = Account.from_key(private_key) if private_key else None
        return cls(w3, token_address, account=account, **kwargs)

    @property
    def account_address(self) -> Optional[str]:
        return self._account.address if self._account is not None else None

    def balance_of(self, identity: str) -> int:
        address = self._w3.to_checksum_address(identity)
        return int(self._contract.functions.balanceOf(address).call())

    def transfer(self, to: str, amount: int) -> bool:
        """Send ``amount`` from the gateway account to ``to``.

        Raises:
            ValueError: If the gateway has no signing account.
        """
        if self._account is None:
            raise ValueError("Token gateway is read-only: no private key configured")

        w3 = self._w3
        recipient = w3.to_checksum_address(to)
        tx = self._contract.functions.transfer(recipient, amount).build_transaction({
            "from": self._account.address,
            "nonce": w3.eth.get_transaction_count(self._account.address),
            "gas": self._gas,
            "gasPrice": w3.eth.gas_price,
            "chainId": w3.eth.chain_id,
        })
        signed = self._account.sign_transaction(tx)
        tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self._receipt_timeout,
        )

        succeeded = receipt.status == 1
        self.receipts.append(TransferReceipt(
            tx_hash=tx_hash.hex(),
            block_number=receipt.blockNumber,
            succeeded=succeeded,
            to=recipient,
            amount=amount,
            timestamp_utc=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        ))
        return succeeded
